"""Reports API - stored damage cases, remote sync state and documents"""
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse
from pydantic import BaseModel

from application.editor_sessions import EditorSessionRegistry
from application.report_service import ReportService
from domain.models import Report, ReportStatus
from .dependencies import domain_errors, get_report_service, get_session_registry

router = APIRouter()


class SyncStatus(BaseModel):
    remote_enabled: bool
    pending: List[str]


class SyncResponse(BaseModel):
    synced: List[str]
    failed: Dict[str, str]
    pending: List[str]


class DocumentRequest(BaseModel):
    cause: str = ""


@router.get("/", response_model=List[Report])
async def list_reports(
    status: Optional[ReportStatus] = None,
    service: ReportService = Depends(get_report_service),
):
    """List stored reports, newest first"""
    return service.list_reports(status)


@router.get("/sync/status", response_model=SyncStatus)
async def sync_status(service: ReportService = Depends(get_report_service)):
    """Reports whose last remote write failed"""
    return SyncStatus(remote_enabled=service.remote.enabled, pending=sorted(service.pending_remote))


@router.post("/sync", response_model=SyncResponse)
async def sync_pending(service: ReportService = Depends(get_report_service)):
    """Retry the remote write of every pending report"""
    result = await service.resync()
    return SyncResponse(synced=result.synced, failed=result.failed, pending=sorted(service.pending_remote))


@router.get("/{report_id}", response_model=Report)
async def get_report(report_id: str, service: ReportService = Depends(get_report_service)):
    with domain_errors():
        return service.get(report_id)


@router.post("/{report_id}/document")
async def generate_document(
    report_id: str,
    body: DocumentRequest,
    registry: EditorSessionRegistry = Depends(get_session_registry),
):
    """Render the stored report as PDF and attach the file to it"""
    with domain_errors():
        session = registry.open(report_id)
        try:
            document = await session.render_document(body.cause)
        finally:
            await registry.close(session.id)

    return FileResponse(document.path, media_type="application/pdf", filename=document.filename)
