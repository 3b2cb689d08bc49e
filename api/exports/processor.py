"""Server-side export job processing.

The only code that moves an ExportJob through its lifecycle::

    queued -> processing (10, 20, 30, 80) -> completed (100) | failed
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage

from .cache import cache_key, check_cache, save_to_cache
from .methods import estimate_generation_time, select_method
from .models import ExportJob
from .options import ExportOptions, build_export_options
from .renderers import get_renderer

logger = logging.getLogger(__name__)


def storage_path(proposal_id, job_id) -> str:
    prefix = getattr(settings, 'EXPORTS_STORAGE_PREFIX', 'exports').strip('/')
    return f'{prefix}/proposal-{proposal_id}-{job_id}.pdf'


def create_job(proposal, options: ExportOptions) -> ExportJob:
    """Record a new job; a cache hit yields a job that is already completed."""
    method = select_method(proposal, options.method)
    key = cache_key(proposal, method, options)
    job = ExportJob.objects.create(
        proposal=proposal,
        requested_method=options.method.value,
        method=method,
        options=options.to_payload(),
        cache_key=key,
        estimated_time=estimate_generation_time(proposal, method),
    )
    hit = check_cache(key)
    if hit is not None:
        job.mark_completed(hit.file_path, hit.file_size, cached=True)
        logger.info('[export.job] %s served from cache %s', job.job_id, key)
    else:
        logger.info('[export.job] %s queued proposal=%s method=%s', job.job_id, proposal.pk, method)
    return job


def _store(proposal, key: str, method: str, name: str, data: bytes) -> str:
    saved = default_storage.save(name, ContentFile(data))
    save_to_cache(proposal=proposal, key=key, method=method, file_path=saved, file_size=len(data))
    return saved


def run_export(job: ExportJob, *, final_attempt: bool = True) -> ExportJob:
    """Render and store the PDF for ``job``.

    On error the job is marked failed when ``final_attempt``; otherwise the
    exception propagates so the caller can retry (progress is kept).
    """
    job.mark_processing()
    job.advance(10)
    try:
        proposal = job.proposal
        options = build_export_options(job.options)
        job.advance(20)
        renderer = get_renderer(job.method)
        job.advance(30)
        data = renderer.render(proposal, options)
        job.advance(80)
        saved = _store(proposal, job.cache_key, job.method, storage_path(proposal.pk, job.job_id), data)
    except Exception as exc:  # noqa: BLE001
        if not final_attempt:
            logger.warning('[export.job] %s attempt %d failed, will retry: %s', job.job_id, job.attempts, exc)
            raise
        logger.exception('[export.job] %s failed after %d attempt(s)', job.job_id, job.attempts)
        job.mark_failed(str(exc))
        return job
    job.mark_completed(saved, len(data))
    logger.info('[export.job] %s completed (%d bytes)', job.job_id, len(data))
    return job


def export_now(proposal, options: ExportOptions) -> tuple[bytes, str]:
    """Render synchronously without a job record; returns ``(pdf bytes, method)``."""
    method = select_method(proposal, options.method)
    key = cache_key(proposal, method, options)
    hit = check_cache(key)
    if hit is not None:
        with default_storage.open(hit.file_path, 'rb') as f:
            return f.read(), method
    data = get_renderer(method).render(proposal, options)
    _store(proposal, key, method, storage_path(proposal.pk, key), data)
    return data, method
