import os
from django.http import HttpResponse
from django.urls import path, include
from django.conf.urls.static import static
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from django.conf import settings
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from app.errors import error_response
from rest_framework.routers import DefaultRouter
from proposals.views import ProposalViewSet
from exports import views as export_views


def healthz(_request):
    return HttpResponse('ok')


@api_view(['GET'])
@permission_classes([AllowAny])
def api_health(_request):
    """Lightweight liveness probe (no DB)."""
    return Response({'status': 'ok'})


@api_view(['GET'])
@permission_classes([AllowAny])
def api_ready(_request):
    """Readiness probe: checks DB connectivity and the export storage backend.

    Returns shape:
    {"status":"ok|error","db":bool,"storage":bool,"details":{...}}
    """
    db_ok = False
    storage_ok = False
    details = {}
    try:
        from django.db import connections

        with connections['default'].cursor() as cur:  # type: ignore[index]
            cur.execute('SELECT 1')
            cur.fetchone()
        db_ok = True
    except Exception as exc:  # pragma: no cover
        details['db_error'] = str(exc)[:200]
    try:
        from django.core.files.storage import default_storage

        prefix = getattr(settings, 'EXPORTS_STORAGE_PREFIX', 'exports').strip('/')
        default_storage.exists(prefix)
        storage_ok = True
    except Exception as exc:  # pragma: no cover
        details['storage_error'] = str(exc)[:200]
    status = 'ok' if db_ok else 'error'
    payload = {'status': status, 'db': db_ok, 'storage': storage_ok, 'details': details}
    if status == 'error':
        return error_response('One or more readiness checks failed', status=503, **payload)
    return Response(payload)


router = DefaultRouter()
router.register(r'proposals', ProposalViewSet, basename='proposal')

export_prefix = 'api/proposals/<int:proposal_id>/export'

urlpatterns = [
    path('healthz', healthz),
    path('api/health', api_health),  # liveness
    path('api/ready', api_ready),  # readiness (db/storage)
    path('api/token', TokenObtainPairView.as_view()),
    path('api/token/refresh', TokenRefreshView.as_view()),
    # Exports
    path(export_prefix, export_views.create_export),
    path(f'{export_prefix}/status', export_views.export_status),
    path(f'{export_prefix}/download', export_views.export_download),
    path(f'{export_prefix}/sync', export_views.export_sync),
    path(f'{export_prefix}/docx', export_views.export_docx),
    path(f'{export_prefix}/html', export_views.export_html),
    path(f'{export_prefix}/cache', export_views.clear_export_cache),
    path('api/exports/methods', export_views.export_methods),
    path('api/exports/cache/stats', export_views.export_cache_stats),
    # Proposals API
    path('api/', include(router.urls)),
]

if settings.DEBUG or os.getenv('SERVE_MEDIA', '0') == '1':
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
