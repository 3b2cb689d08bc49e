import shutil

from django.conf import settings
from django.core.management.base import BaseCommand

CHROME_CANDIDATES = ('google-chrome', 'google-chrome-stable', 'chromium', 'chromium-browser', 'chrome')


def find_chrome() -> str | None:
    configured = getattr(settings, 'CHROME_BINARY', '')
    if configured:
        return shutil.which(configured)
    for name in CHROME_CANDIDATES:
        found = shutil.which(name)
        if found:
            return found
    return None


def find_libreoffice() -> str | None:
    return shutil.which(getattr(settings, 'LIBREOFFICE_BIN', 'libreoffice') or 'libreoffice')


class Command(BaseCommand):
    help = 'Check that PDF export engines and the job broker are available. Exits non-zero on failure.'

    def add_arguments(self, parser):
        parser.add_argument('--strict', action='store_true', help='Fail on warnings as well as errors.')

    def handle(self, *args, **options):
        errors: list[str] = []
        warnings: list[str] = []

        office = find_libreoffice()
        chrome = find_chrome()
        if office:
            self.stdout.write(f'office engine: {office}')
        else:
            warnings.append(f"LibreOffice not found ({getattr(settings, 'LIBREOFFICE_BIN', 'libreoffice')}); office exports will fail")
        if chrome:
            self.stdout.write(f'browser engine: {chrome}')
        else:
            warnings.append('Chrome/Chromium not found; browser exports will fail')
        if not office and not chrome:
            errors.append('No PDF engine available')

        if getattr(settings, 'EXPORTS_ASYNC', False) and not getattr(settings, 'CELERY_BROKER_URL', ''):
            errors.append('EXPORTS_ASYNC is set but CELERY_BROKER_URL (REDIS_URL) is missing')

        for w in warnings:
            self.stdout.write(self.style.WARNING(f'WARN: {w}'))
        if errors or (options.get('strict') and warnings):
            for e in errors:
                self.stderr.write(self.style.ERROR(f'ERROR: {e}'))
            self.stderr.write(self.style.ERROR(f'export_doctor failed with {len(errors)} error(s).'))
            raise SystemExit(1 if errors else 2)
        self.stdout.write(self.style.SUCCESS('export_doctor passed with no fatal errors.'))
