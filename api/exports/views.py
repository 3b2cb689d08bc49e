import logging
import uuid

from django.conf import settings
from django.core.files.storage import default_storage
from django.db.models import F
from django.http import FileResponse, HttpResponse
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from app.common.files import download_filename
from app.errors import error_response
from app.permissions import DebugOrAuthPermission
from proposals.models import Proposal
from proposals.views import scoped_proposals
from .cache import cache_stats, clear_cache
from .methods import METHOD_CAPABILITIES
from .models import ExportJob
from .options import ValidationError, build_export_options
from .processor import create_job, export_now, run_export
from .renderers import RenderError, render_docx, render_html
from .tasks import perform_export

logger = logging.getLogger(__name__)

DOCX_CONTENT_TYPE = 'application/vnd.openxmlformats-officedocument.wordprocessingml.document'


def _proposal(request, proposal_id: int) -> Proposal | None:
    return scoped_proposals(request.user).filter(pk=proposal_id).first()


def _attachment(proposal: Proposal, ext: str) -> str:
    return download_filename(proposal.display_title, proposal.client_company, ext=ext)


def _dispatch(job: ExportJob) -> None:
    # Async path when enabled and broker configured
    if getattr(settings, 'EXPORTS_ASYNC', False) and getattr(settings, 'CELERY_BROKER_URL', ''):
        try:
            perform_export.delay(str(job.job_id))
            return
        except Exception:  # noqa: BLE001
            logger.warning('[export.views] enqueue failed for job %s; rendering inline', job.job_id, exc_info=True)
    run_export(job)


def _job_for(request, proposal: Proposal):
    """Resolve ``?jobId=`` within ``proposal``; returns ``(job, error response)``."""
    raw = request.query_params.get('jobId')
    if not raw:
        return None, error_response('jobId is required', status=400)
    try:
        job_uuid = uuid.UUID(str(raw))
    except ValueError:
        return None, error_response('jobId is invalid', status=400)
    job = ExportJob.objects.filter(proposal=proposal, job_id=job_uuid).first()
    if job is None:
        return None, error_response('Job not found', status=404)
    return job, None


@api_view(["POST"])
@permission_classes([DebugOrAuthPermission])
def create_export(request, proposal_id: int):
    proposal = _proposal(request, proposal_id)
    if proposal is None:
        return error_response('Proposal not found', status=404)
    try:
        options = build_export_options(request.data)
    except ValidationError as exc:
        return error_response(exc.message, status=400, field=exc.field)

    job = create_job(proposal, options)
    if job.status == 'queued':
        _dispatch(job)
        job.refresh_from_db()
    return Response({
        'jobId': str(job.job_id),
        'status': job.status,
        'method': job.method,
        'estimatedTime': job.estimated_time,
        'cached': job.cached,
    })


@api_view(["GET"])
@permission_classes([DebugOrAuthPermission])
def export_status(request, proposal_id: int):
    proposal = _proposal(request, proposal_id)
    if proposal is None:
        return error_response('Proposal not found', status=404)
    job, err = _job_for(request, proposal)
    if err is not None:
        return err
    return Response(job.to_status_payload())


@api_view(["GET"])
@permission_classes([DebugOrAuthPermission])
def export_download(request, proposal_id: int):
    proposal = _proposal(request, proposal_id)
    if proposal is None:
        return error_response('Proposal not found', status=404)
    job, err = _job_for(request, proposal)
    if err is not None:
        return err
    if job.status != 'completed' or not job.file_path or not default_storage.exists(job.file_path):
        return error_response('PDF not ready or not found', status=404)
    Proposal.objects.filter(pk=proposal.pk).update(downloads=F('downloads') + 1)
    return FileResponse(
        default_storage.open(job.file_path, 'rb'),
        as_attachment=True,
        filename=_attachment(proposal, 'pdf'),
        content_type='application/pdf',
    )


@api_view(["POST"])
@permission_classes([DebugOrAuthPermission])
def export_sync(request, proposal_id: int):
    """Render inline and return the PDF (small proposals, tooling)."""
    proposal = _proposal(request, proposal_id)
    if proposal is None:
        return error_response('Proposal not found', status=404)
    try:
        options = build_export_options(request.data)
    except ValidationError as exc:
        return error_response(exc.message, status=400, field=exc.field)
    try:
        data, method = export_now(proposal, options)
    except RenderError as exc:
        logger.warning('[export.views] sync export failed for proposal %s: %s', proposal.pk, exc)
        return error_response(str(exc), status=500)
    resp = HttpResponse(data, content_type='application/pdf')
    resp['Content-Disposition'] = f'attachment; filename="{_attachment(proposal, "pdf")}"'
    resp['X-Export-Method'] = method
    return resp


@api_view(["GET"])
@permission_classes([DebugOrAuthPermission])
def export_docx(request, proposal_id: int):
    proposal = _proposal(request, proposal_id)
    if proposal is None:
        return error_response('Proposal not found', status=404)
    landscape = request.query_params.get('landscape', '').lower() in ('1', 'true', 'yes')
    options = build_export_options(landscape=landscape)
    data, checksum = render_docx(proposal, options)
    resp = HttpResponse(data, content_type=DOCX_CONTENT_TYPE)
    resp['Content-Disposition'] = f'attachment; filename="{_attachment(proposal, "docx")}"'
    resp['ETag'] = f'"{checksum}"'
    return resp


@api_view(["GET"])
@permission_classes([DebugOrAuthPermission])
def export_html(request, proposal_id: int):
    """Print-ready HTML of the proposal, as fed to the browser engine."""
    proposal = _proposal(request, proposal_id)
    if proposal is None:
        return error_response('Proposal not found', status=404)
    landscape = request.query_params.get('landscape', '').lower() in ('1', 'true', 'yes')
    html = render_html(proposal, build_export_options(landscape=landscape))
    resp = HttpResponse(html, content_type='text/html; charset=utf-8')
    resp['Content-Disposition'] = f'attachment; filename="{_attachment(proposal, "html")}"'
    return resp


@api_view(["DELETE"])
@permission_classes([DebugOrAuthPermission])
def clear_export_cache(request, proposal_id: int):
    proposal = _proposal(request, proposal_id)
    if proposal is None:
        return error_response('Proposal not found', status=404)
    cleared = clear_cache(proposal)
    return Response({'success': True, 'cleared': cleared, 'message': 'Cache cleared'})


@api_view(["GET"])
@permission_classes([AllowAny])
def export_methods(_request):
    return Response(METHOD_CAPABILITIES)


@api_view(["GET"])
@permission_classes([DebugOrAuthPermission])
def export_cache_stats(_request):
    return Response(cache_stats())
