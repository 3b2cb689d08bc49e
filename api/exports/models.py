import uuid

from django.db import models
from django.utils import timezone


class JobStateError(Exception):
    """Illegal ExportJob transition (terminal records never change)."""


class ExportJob(models.Model):
    STATUS_CHOICES = (
        ('queued', 'Queued'),
        ('processing', 'Processing'),
        ('completed', 'Completed'),
        ('failed', 'Failed'),
    )
    METHOD_CHOICES = (
        ('auto', 'Auto'),
        ('browser', 'Headless browser'),
        ('office', 'Office suite'),
    )
    TERMINAL = ('completed', 'failed')

    job_id = models.UUIDField(default=uuid.uuid4, unique=True, editable=False)
    proposal = models.ForeignKey('proposals.Proposal', on_delete=models.CASCADE, related_name='export_jobs')
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default='queued')
    progress = models.PositiveSmallIntegerField(default=0)
    requested_method = models.CharField(max_length=16, choices=METHOD_CHOICES, default='auto')
    # Concrete engine; resolved from 'auto' at submission time.
    method = models.CharField(max_length=16, choices=METHOD_CHOICES)
    options = models.JSONField(default=dict)
    cache_key = models.CharField(max_length=64, blank=True, default='')
    cached = models.BooleanField(default=False)
    estimated_time = models.PositiveIntegerField(default=0)  # ms, advisory
    attempts = models.PositiveSmallIntegerField(default=0)
    file_path = models.CharField(max_length=500, blank=True, default='')
    file_size = models.PositiveIntegerField(null=True, blank=True)
    error = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    started_at = models.DateTimeField(null=True, blank=True)
    finished_at = models.DateTimeField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['status', 'finished_at'], name='exports_job_status_fin_idx'),
        ]

    def __str__(self):  # pragma: no cover
        return f"ExportJob {self.job_id} {self.method} {self.status}"

    @property
    def is_terminal(self) -> bool:
        return self.status in self.TERMINAL

    def _guard(self, target: str) -> None:
        if self.is_terminal:
            raise JobStateError(f'job {self.job_id} is {self.status}; cannot move to {target}')

    def mark_processing(self) -> None:
        self._guard('processing')
        if self.status == 'queued':
            self.status = 'processing'
            self.started_at = timezone.now()
        self.attempts += 1
        self.save(update_fields=['status', 'started_at', 'attempts', 'updated_at'])

    def advance(self, progress: int) -> None:
        """Raise progress; lower values (e.g. a retried attempt) are ignored."""
        self._guard('processing')
        progress = max(0, min(100, int(progress)))
        if progress > self.progress:
            self.progress = progress
            self.save(update_fields=['progress', 'updated_at'])

    def mark_completed(self, file_path: str, file_size: int, *, cached: bool = False) -> None:
        self._guard('completed')
        self.status = 'completed'
        self.progress = 100
        self.file_path = file_path
        self.file_size = file_size
        self.cached = cached
        self.finished_at = timezone.now()
        self.save(update_fields=['status', 'progress', 'file_path', 'file_size', 'cached', 'finished_at', 'updated_at'])

    def mark_failed(self, error: str) -> None:
        self._guard('failed')
        self.status = 'failed'
        self.error = (error or 'Unknown error')[:2000]
        self.finished_at = timezone.now()
        self.save(update_fields=['status', 'error', 'finished_at', 'updated_at'])

    def to_status_payload(self) -> dict:
        """Wire shape of ``GET .../export/status``; optional fields only appear for their status."""
        payload = {
            'jobId': str(self.job_id),
            'status': self.status,
            'progress': self.progress,
            'method': self.method,
            'estimatedTime': self.estimated_time,
            'cached': self.cached,
        }
        if self.status == 'completed':
            payload['filePath'] = self.file_path
            payload['fileSize'] = self.file_size
        elif self.status == 'failed':
            payload['error'] = self.error or 'Unknown error'
        return payload


class PDFCacheEntry(models.Model):
    proposal = models.ForeignKey('proposals.Proposal', on_delete=models.CASCADE, related_name='pdf_cache_entries')
    cache_key = models.CharField(max_length=64, unique=True)
    method = models.CharField(max_length=16)
    file_path = models.CharField(max_length=500)
    file_size = models.PositiveIntegerField(default=0)
    generated_at = models.DateTimeField(default=timezone.now)
    last_accessed_at = models.DateTimeField(default=timezone.now)
    access_count = models.PositiveIntegerField(default=0)
    expires_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        indexes = [
            models.Index(fields=['last_accessed_at'], name='exports_cache_lru_idx'),
        ]

    def __str__(self):  # pragma: no cover
        return f"PDFCacheEntry {self.cache_key} ({self.method})"

    def is_expired(self, now=None) -> bool:
        return self.expires_at is not None and self.expires_at <= (now or timezone.now())
