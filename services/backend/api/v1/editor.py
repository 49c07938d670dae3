"""Editor API - edit sessions over one report buffer"""
import datetime as dt
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import FileResponse
from pydantic import BaseModel

from application.editor_sessions import EditorSession, EditorSessionRegistry
from domain.models import Contact, EquipmentEntry, Report, ReportImage, Room
from .dependencies import domain_errors, get_editor_session, get_session_registry
from .reports import DocumentRequest

router = APIRouter()


class OpenSessionRequest(BaseModel):
    report_id: Optional[str] = None


class SessionState(BaseModel):
    session_id: str
    view: str
    report: Report
    autosave_pending: bool
    dirty: bool
    last_save_error: Optional[str] = None


class SaveResponse(BaseModel):
    report: Report
    created: bool
    remote_error: Optional[str] = None


class RoomCreate(BaseModel):
    name: str
    apartment: str = ""
    description: str = ""


class EquipmentCreate(BaseModel):
    device_number: str
    room: str
    apartment: str = ""
    start_date: Optional[dt.date] = None
    counter_start: Optional[str] = None


class DryingGroup(BaseModel):
    apartment: str = ""
    room: str


class ConfirmRequest(BaseModel):
    confirm: bool = False


class AnnotateRequest(BaseModel):
    confirm: bool = False
    center_x: float = 0.5
    center_y: float = 0.5
    radius: Optional[float] = None


def session_state(session: EditorSession) -> SessionState:
    return SessionState(
        session_id=session.id,
        view=session.editor.view.value,
        report=session.editor.report,
        autosave_pending=session.autosave.pending,
        dirty=session.autosave.dirty,
        last_save_error=session.autosave.last_error,
    )


@router.post("/", response_model=SessionState, status_code=201)
async def open_session(
    body: OpenSessionRequest,
    registry: EditorSessionRegistry = Depends(get_session_registry),
):
    """Open an editor on a stored report, or on an empty one"""
    with domain_errors():
        session = registry.open(body.report_id)
    return session_state(session)


@router.get("/{session_id}", response_model=SessionState)
async def get_session_state(session: EditorSession = Depends(get_editor_session)):
    return session_state(session)


@router.patch("/{session_id}", response_model=SessionState)
async def update_fields(changes: Dict[str, Any], session: EditorSession = Depends(get_editor_session)):
    with domain_errors():
        session.editor.update_fields(**changes)
    return session_state(session)


@router.delete("/{session_id}")
async def close_session(
    session_id: str,
    registry: EditorSessionRegistry = Depends(get_session_registry),
):
    """Tear down the editor; pending edits are flushed first"""
    with domain_errors():
        flushed = await registry.close(session_id)
    return {"closed": True, "flushed": flushed}


@router.post("/{session_id}/save")
async def save_now(session: EditorSession = Depends(get_editor_session)):
    """Run the auto-save check immediately and wait for it"""
    saved = session.autosave.flush_if_dirty() is not None
    await session.autosave.drain()
    return {"saved": saved, "report_id": session.editor.report_id, "error": session.autosave.last_error}


@router.post("/{session_id}/submit", response_model=SaveResponse)
async def submit(session: EditorSession = Depends(get_editor_session)):
    """Explicit save: normalize the buffer and switch to the details view"""
    with domain_errors():
        outcome = await session.submit()
    return SaveResponse(report=outcome.report, created=outcome.created, remote_error=outcome.remote_error)


# ----------------------------------------------------------------------
# Contacts

@router.post("/{session_id}/contacts", response_model=Contact, status_code=201)
async def add_contact(contact: Optional[Contact] = None, session: EditorSession = Depends(get_editor_session)):
    return session.editor.add_contact(contact)


@router.patch("/{session_id}/contacts/{index}", response_model=Contact)
async def update_contact(index: int, changes: Dict[str, Any], session: EditorSession = Depends(get_editor_session)):
    with domain_errors():
        return session.editor.update_contact(index, **changes)


@router.delete("/{session_id}/contacts/{index}", status_code=204)
async def remove_contact(index: int, session: EditorSession = Depends(get_editor_session)):
    with domain_errors():
        session.editor.remove_contact(index)


# ----------------------------------------------------------------------
# Rooms

@router.post("/{session_id}/rooms", response_model=Room, status_code=201)
async def add_room(body: RoomCreate, session: EditorSession = Depends(get_editor_session)):
    with domain_errors():
        return session.editor.add_room(body.name, apartment=body.apartment, description=body.description)


@router.patch("/{session_id}/rooms/{room_id}", response_model=Room)
async def update_room(room_id: str, changes: Dict[str, Any], session: EditorSession = Depends(get_editor_session)):
    with domain_errors():
        return session.editor.update_room(room_id, **changes)


@router.delete("/{session_id}/rooms/{room_id}", status_code=204)
async def remove_room(room_id: str, session: EditorSession = Depends(get_editor_session)):
    with domain_errors():
        session.editor.remove_room(room_id)


# ----------------------------------------------------------------------
# Equipment and drying

@router.post("/{session_id}/equipment", response_model=EquipmentEntry, status_code=201)
async def add_equipment(body: EquipmentCreate, session: EditorSession = Depends(get_editor_session)):
    with domain_errors():
        return session.editor.add_equipment(
            body.device_number,
            body.room,
            apartment=body.apartment,
            start_date=body.start_date,
            counter_start=body.counter_start,
        )


@router.patch("/{session_id}/equipment/{entry_id}", response_model=EquipmentEntry)
async def update_equipment(entry_id: str, changes: Dict[str, Any], session: EditorSession = Depends(get_editor_session)):
    with domain_errors():
        return session.editor.update_equipment(entry_id, **changes)


@router.delete("/{session_id}/equipment/{entry_id}", status_code=204)
async def remove_equipment(entry_id: str, session: EditorSession = Depends(get_editor_session)):
    with domain_errors():
        session.editor.remove_equipment(entry_id)


@router.post("/{session_id}/drying/start", response_model=SessionState)
async def start_drying(session: EditorSession = Depends(get_editor_session)):
    session.editor.start_drying()
    return session_state(session)


@router.post("/{session_id}/drying/end", response_model=SessionState)
async def end_drying(session: EditorSession = Depends(get_editor_session)):
    with domain_errors():
        session.editor.end_drying()
    return session_state(session)


@router.post("/{session_id}/drying/check", response_model=List[EquipmentEntry])
async def check_drying_group(body: DryingGroup, session: EditorSession = Depends(get_editor_session)):
    """Validate the devices of one unit/room group"""
    with domain_errors():
        return session.editor.check_drying_group(body.apartment, body.room)


# ----------------------------------------------------------------------
# Lifecycle

@router.post("/{session_id}/close", response_model=SessionState)
async def close_project(body: ConfirmRequest, session: EditorSession = Depends(get_editor_session)):
    with domain_errors():
        session.editor.close_project(confirmed=body.confirm)
    return session_state(session)


@router.post("/{session_id}/reactivate", response_model=SessionState)
async def reactivate(body: ConfirmRequest, session: EditorSession = Depends(get_editor_session)):
    with domain_errors():
        session.editor.reactivate(confirmed=body.confirm)
    return session_state(session)


# ----------------------------------------------------------------------
# Images and documents

@router.post("/{session_id}/images", response_model=ReportImage, status_code=201)
async def upload_image(
    file: UploadFile = File(...),
    room_id: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    session: EditorSession = Depends(get_editor_session),
):
    """Store a photo or document; a failed upload is kept with error=true"""
    content = await file.read()
    with domain_errors():
        return await session.upload_image(
            file.filename or "upload",
            content,
            file.content_type or "application/octet-stream",
            room_id=room_id,
            category=category,
        )


@router.patch("/{session_id}/images/{image_id}", response_model=ReportImage)
async def update_image(image_id: str, changes: Dict[str, Any], session: EditorSession = Depends(get_editor_session)):
    with domain_errors():
        return session.editor.update_image(image_id, **changes)


@router.delete("/{session_id}/images/{image_id}", status_code=204)
async def remove_image(image_id: str, session: EditorSession = Depends(get_editor_session)):
    with domain_errors():
        session.editor.remove_image(image_id)


@router.post("/{session_id}/images/{image_id}/annotate", response_model=ReportImage)
async def annotate_image(image_id: str, body: AnnotateRequest, session: EditorSession = Depends(get_editor_session)):
    """Circle the damage on a stored photo"""
    with domain_errors():
        return await session.annotate_image(
            image_id,
            confirmed=body.confirm,
            center=(body.center_x, body.center_y),
            radius=body.radius,
        )


@router.post("/{session_id}/document")
async def generate_document(body: DocumentRequest, session: EditorSession = Depends(get_editor_session)):
    """Render the buffer as PDF; the file is also attached to the report"""
    with domain_errors():
        document = await session.render_document(body.cause)
    return FileResponse(document.path, media_type="application/pdf", filename=document.filename)
