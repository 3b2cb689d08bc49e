from django.conf import settings
from django.utils.deprecation import MiddlewareMixin


class SecurityHeadersMiddleware(MiddlewareMixin):
    """Security headers for a JSON/file API.

    - Attachments (exported PDF/DOCX): ``X-Content-Type-Options: nosniff`` and
      ``Cache-Control: private, no-store`` always, since they carry proposal content.
    - Production: a locked-down CSP plus frame, referrer and permissions policies.
    """

    def process_response(self, request, response):
        if 'attachment' in response.get('Content-Disposition', ''):
            response.setdefault('X-Content-Type-Options', 'nosniff')
            response['Cache-Control'] = 'private, no-store'
        if not settings.DEBUG:
            # API responses never load subresources
            response.setdefault('Content-Security-Policy', "default-src 'none'; frame-ancestors 'none'")
            response.setdefault('X-Content-Type-Options', 'nosniff')
            response.setdefault('X-Frame-Options', 'DENY')
            response.setdefault('Referrer-Policy', 'strict-origin-when-cross-origin')
            response.setdefault('Permissions-Policy', 'geolocation=(), microphone=(), camera=()')
            response.setdefault('Cross-Origin-Resource-Policy', 'same-origin')
        return response
