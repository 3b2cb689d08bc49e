from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import requests

from app.common.files import download_filename, write_bytes

from .errors import DownloadError
from .http import ExportApi
from .statuses import Completed, JobStatus

logger = logging.getLogger(__name__)


class ResultDownloader:
    def __init__(self, api: ExportApi):
        self.api = api

    def fetch(self, proposal_id: Any, job_id: str, status: JobStatus | None) -> bytes:
        """Return the artifact bytes. Refuses, without a request, unless ``status`` is completed."""
        if not isinstance(status, Completed):
            raise DownloadError('Export is not completed; nothing to download')
        url = self.api.export_url(proposal_id, '/download')
        try:
            resp = self.api.get(url, params={'jobId': job_id}, accept='application/pdf')
        except requests.RequestException as exc:
            raise DownloadError(f'Failed to download PDF: {exc}') from exc
        if not resp.ok:
            raise DownloadError('Failed to download PDF', status_code=resp.status_code)
        return resp.content

    def download(
        self,
        proposal_id: Any,
        job_id: str,
        status: JobStatus | None,
        *,
        title: str | None = None,
        dest_dir: str | Path = '.',
    ) -> Path:
        data = self.fetch(proposal_id, job_id, status)
        path = Path(dest_dir) / download_filename(title)
        write_bytes(path, data)
        logger.info('[export.download] job=%s saved %d bytes to %s', job_id, len(data), path)
        return path
