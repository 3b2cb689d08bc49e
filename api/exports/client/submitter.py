from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any

import requests

from exports.options import ExportOptions

from .errors import SubmissionError
from .http import ExportApi, error_message

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Submission:
    job_id: str
    method: str | None
    estimated_time: int | None
    cached: bool = False


class JobSubmitter:
    """POSTs export options and returns the job handle. Never retries."""

    def __init__(self, api: ExportApi):
        self.api = api

    def submit(self, proposal_id: Any, options: ExportOptions) -> Submission:
        url = self.api.export_url(proposal_id)
        try:
            resp = self.api.post_json(url, options.to_payload())
        except requests.RequestException as exc:
            logger.warning('[export.submit] transport error for proposal %s: %s', proposal_id, exc)
            raise SubmissionError(f'Failed to start PDF generation: {exc}') from exc

        if not resp.ok:
            message = error_message(resp, 'Failed to start PDF generation')
            logger.warning('[export.submit] rejected proposal=%s status=%s error=%s', proposal_id, resp.status_code, message)
            raise SubmissionError(message, status_code=resp.status_code)

        try:
            data = resp.json()
        except ValueError as exc:
            raise SubmissionError('Export response is not valid JSON', status_code=resp.status_code) from exc
        job_id = data.get('jobId') if isinstance(data, dict) else None
        if not job_id:
            raise SubmissionError('Export response did not include a jobId', status_code=resp.status_code)

        estimated = data.get('estimatedTime')
        if isinstance(estimated, bool) or not isinstance(estimated, (int, float)) or not math.isfinite(estimated):
            estimated = None
        submission = Submission(
            job_id=str(job_id),
            method=data.get('method'),
            estimated_time=None if estimated is None else int(estimated),
            cached=bool(data.get('cached', False)),
        )
        logger.info('[export.submit] proposal=%s job=%s method=%s', proposal_id, submission.job_id, submission.method)
        return submission
