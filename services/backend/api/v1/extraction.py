"""Extraction API - AI import preview of one editor session"""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from pydantic import BaseModel

from application.document_text import SourceFile
from application.editor_sessions import EditorSession
from domain.models import ExtractionResult
from domain.models.extraction import ExtractedContact
from .dependencies import domain_errors, get_editor_session
from .editor import SessionState, session_state

router = APIRouter()


class InputText(BaseModel):
    text: str
    pasted: bool = False


class PreviewField(BaseModel):
    group: str
    field: str
    value: Any = ""


class PreviewResponse(BaseModel):
    busy: bool
    model: str = ""
    parse_error: Optional[str] = None
    last_error: Optional[str] = None
    attachments: List[str] = []
    data: Optional[ExtractionResult] = None


def preview_response(session: EditorSession) -> PreviewResponse:
    bridge = session.extraction
    preview = bridge.preview
    if preview is None:
        return PreviewResponse(busy=bridge.busy, last_error=bridge.last_error)
    return PreviewResponse(
        busy=bridge.busy,
        model=preview.model,
        parse_error=preview.parse_error,
        last_error=bridge.last_error,
        attachments=[a.name for a in preview.attachments],
        data=preview.data,
    )


@router.get("/", response_model=PreviewResponse)
async def get_preview(session: EditorSession = Depends(get_editor_session)):
    return preview_response(session)


@router.put("/input", response_model=PreviewResponse)
async def set_input_text(body: InputText, session: EditorSession = Depends(get_editor_session)):
    """Typed text is analysed after a quiet period, pasted text right away"""
    session.extraction.set_input_text(body.text, pasted=body.pasted)
    return preview_response(session)


@router.post("/", response_model=PreviewResponse)
async def extract(
    text: str = Form(""),
    files: Optional[List[UploadFile]] = File(None),
    session: EditorSession = Depends(get_editor_session),
):
    """Analyse text and dropped files (PDF, TXT, EML, MSG, images)"""
    sources = [
        SourceFile(name=f.filename or "upload", content=await f.read(), content_type=f.content_type or "")
        for f in files or []
    ]
    with domain_errors():
        await session.extract_files(text, sources)
    return preview_response(session)


@router.patch("/fields", response_model=PreviewResponse)
async def update_preview_field(body: PreviewField, session: EditorSession = Depends(get_editor_session)):
    with domain_errors():
        session.extraction.update_field(body.group, body.field, body.value)
    return preview_response(session)


@router.post("/contacts", response_model=ExtractedContact, status_code=201)
async def add_preview_contact(session: EditorSession = Depends(get_editor_session)):
    with domain_errors():
        return session.extraction.add_contact()


@router.patch("/contacts/{index}", response_model=ExtractedContact)
async def update_preview_contact(
    index: int,
    changes: Dict[str, Any],
    session: EditorSession = Depends(get_editor_session),
):
    with domain_errors():
        return session.extraction.update_contact(index, **changes)


@router.delete("/contacts/{index}", status_code=204)
async def remove_preview_contact(index: int, session: EditorSession = Depends(get_editor_session)):
    with domain_errors():
        session.extraction.remove_contact(index)


@router.post("/confirm", response_model=SessionState)
async def confirm_preview(session: EditorSession = Depends(get_editor_session)):
    """Merge the corrected preview into the report buffer"""
    with domain_errors():
        await session.confirm_extraction()
    return session_state(session)


@router.delete("/", status_code=204)
async def discard_preview(session: EditorSession = Depends(get_editor_session)):
    session.extraction.discard()
