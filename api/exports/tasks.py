from celery import shared_task
from django.conf import settings

from .models import ExportJob
from .processor import run_export


@shared_task(bind=True)
def perform_export(self, job_id: str):
    job = ExportJob.objects.select_related('proposal').filter(job_id=job_id).first()
    if job is None or job.is_terminal:
        return
    max_attempts = max(1, int(getattr(settings, 'EXPORT_MAX_ATTEMPTS', 3)))
    final_attempt = self.request.retries + 1 >= max_attempts
    try:
        run_export(job, final_attempt=final_attempt)
    except Exception as exc:  # noqa: BLE001 - run_export only raises when a retry remains
        # Exponential backoff: 2s, 4s, 8s...
        raise self.retry(exc=exc, countdown=2 * 2 ** self.request.retries, max_retries=max_attempts - 1)
