from datetime import timedelta

from django.conf import settings
from django.core.management.base import BaseCommand
from django.utils import timezone

from exports.cache import purge_expired
from exports.models import ExportJob


class Command(BaseCommand):
    help = 'Delete expired PDF cache entries and old export job records.'

    def add_arguments(self, parser):
        parser.add_argument('--dry-run', action='store_true', help='Only count, do not delete')

    def handle(self, *args, **options):
        dry_run = options.get('dry_run')
        now = timezone.now()
        completed_cutoff = now - timedelta(hours=int(getattr(settings, 'EXPORT_JOB_RETENTION_HOURS', 24)))
        failed_cutoff = now - timedelta(days=int(getattr(settings, 'EXPORT_FAILED_RETENTION_DAYS', 7)))
        completed = ExportJob.objects.filter(status='completed', finished_at__lt=completed_cutoff)
        failed = ExportJob.objects.filter(status='failed', finished_at__lt=failed_cutoff)

        if dry_run:
            cache_count = purge_expired(dry_run=True)
            self.stdout.write(self.style.WARNING(
                f'Would delete: cache={cache_count} completed={completed.count()} failed={failed.count()}'
            ))
            return
        cache_count = purge_expired()
        completed_count, _ = completed.delete()
        failed_count, _ = failed.delete()
        self.stdout.write(self.style.SUCCESS(
            f'Export data purged: cache={cache_count} completed={completed_count} failed={failed_count}'
        ))
