"""
Editor sessions

One session per report being edited: the edit buffer, its auto-save
controller and its extraction preview. Closing a session is the teardown
path (final flush); the application closes every open session on shutdown.
"""
import asyncio
from dataclasses import dataclass
from typing import Dict, List, Optional
from uuid import uuid4

import structlog

from domain.exceptions import ConfirmationRequiredError, EditorSessionNotFoundError, MediaUploadError
from domain.models import ImageCategory, Report, ReportImage, ReportStatus
from infrastructure.ai import ExtractionClient
from infrastructure.media import MediaStorage
from .autosave import AutoSaveController
from .document_text import SourceFile
from .extraction_bridge import ExtractionBridge, ExtractionPreview
from .image_annotation import draw_circle
from .report_editor import ReportEditor
from .report_renderer import RenderedDocument, ReportDocumentRenderer
from .report_service import ReportService, SaveOutcome

logger = structlog.get_logger()

ANNOTATE_PROMPT = "Mark the damage on this photo? The original image will be replaced."


@dataclass
class EditorSession:
    id: str
    editor: ReportEditor
    autosave: AutoSaveController
    extraction: ExtractionBridge
    media: MediaStorage
    renderer: ReportDocumentRenderer

    async def submit(self) -> SaveOutcome:
        report = self.editor.submit()
        return await self.autosave.save_explicit(report)

    async def upload_image(
        self,
        filename: str,
        content: bytes,
        content_type: str,
        room_id: Optional[str] = None,
        category: Optional[str] = None,
    ) -> ReportImage:
        """Add the entry right away; the upload result fills in the reference"""
        if not room_id and not category:
            category = ImageCategory.DAMAGE_PHOTOS.value
        image = self.editor.add_image(
            ReportImage(
                name=filename,
                content_type=content_type,
                room_id=room_id,
                category=category,
                uploading=True,
            )
        )

        try:
            stored = await self.media.upload(self.editor.report_id, filename, content, content_type)
        except MediaUploadError as e:
            logger.error("image_upload_failed", session_id=self.id, image_id=image.id, error=str(e))
            return self.editor.record_upload(image.id, uploading=False, error=True)

        return self.editor.record_upload(
            image.id,
            url=stored.url,
            storage_path=stored.storage_path,
            uploading=False,
            error=False,
        )

    async def annotate_image(self, image_id: str, confirmed: bool = False, center=None, radius=None) -> ReportImage:
        image = self.editor.image(image_id)
        if not confirmed:
            raise ConfirmationRequiredError("annotate", ANNOTATE_PROMPT)
        if not image.storage_path:
            raise MediaUploadError(f"Image has no stored file: {image_id}")

        original = await self.media.download(image.storage_path)
        try:
            marked = await asyncio.to_thread(draw_circle, original, center=center, radius=radius)
        except (OSError, ValueError) as e:
            raise MediaUploadError(f"Image cannot be annotated: {e}") from e

        stored = await self.media.upload(self.editor.report_id, f"edited_{image.name or 'image'}.jpg", marked, "image/jpeg")
        logger.info("image_annotated", session_id=self.id, image_id=image_id)
        return self.editor.record_upload(image_id, url=stored.url, storage_path=stored.storage_path, content_type="image/jpeg")

    async def render_document(self, cause: str = "") -> RenderedDocument:
        """Render the current buffer and attach the document to the report"""
        self.editor.ensure_identifier()
        if cause.strip() and self.editor.report.status != ReportStatus.CLOSED:
            self.editor.update_fields(cause=cause)
        report = self.editor.snapshot()
        document = await self.renderer.render(report, cause=cause)

        try:
            stored = await self.media.upload(report.id, document.filename, document.content, "application/pdf")
        except MediaUploadError as e:
            logger.warning("document_attach_failed", session_id=self.id, error=str(e))
            return document

        self.editor.add_image(
            ReportImage(
                name=document.filename,
                url=stored.url,
                storage_path=stored.storage_path,
                content_type="application/pdf",
                category=ImageCategory.OTHER.value,
                include_in_report=False,
            )
        )
        return document

    async def confirm_extraction(self) -> ExtractionPreview:
        preview = self.extraction.confirm(self.editor)
        for attachment in preview.attachments:
            await self.upload_image(attachment.name, attachment.content, attachment.content_type)
        return preview

    async def extract_files(self, text: str, files: List[SourceFile]) -> ExtractionPreview:
        return await self.extraction.request_extraction(text=text, files=files)


class EditorSessionRegistry:
    def __init__(
        self,
        reports: ReportService,
        media: MediaStorage,
        renderer: ReportDocumentRenderer,
        extraction_client: Optional[ExtractionClient] = None,
        autosave_quiet_period: float = 1.0,
        extraction_quiet_period: float = 1.5,
    ):
        self.reports = reports
        self.media = media
        self.renderer = renderer
        self.extraction_client = extraction_client
        self.autosave_quiet_period = autosave_quiet_period
        self.extraction_quiet_period = extraction_quiet_period
        self._sessions: Dict[str, EditorSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    async def _save(self, report: Report, silent: bool) -> SaveOutcome:
        return await self.reports.save_report(report, silent=silent)

    def open(self, report_id: Optional[str] = None) -> EditorSession:
        initial = self.reports.get(report_id) if report_id else None
        editor = ReportEditor(initial, identifier_factory=self.reports.allocate_identifier)
        autosave = AutoSaveController(
            snapshot=editor.snapshot,
            save=self._save,
            identify=editor.ensure_identifier,
            quiet_period=self.autosave_quiet_period,
        )
        editor.subscribe(autosave.notify_change)

        session = EditorSession(
            id=uuid4().hex,
            editor=editor,
            autosave=autosave,
            extraction=ExtractionBridge(self.extraction_client, quiet_period=self.extraction_quiet_period),
            media=self.media,
            renderer=self.renderer,
        )
        self._sessions[session.id] = session
        logger.info("editor_session_opened", session_id=session.id, report_id=report_id)
        return session

    def get(self, session_id: str) -> EditorSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise EditorSessionNotFoundError(session_id)
        return session

    async def close(self, session_id: str) -> bool:
        """Tear a session down; returns True when the final flush saved something"""
        session = self._sessions.pop(session_id, None)
        if session is None:
            raise EditorSessionNotFoundError(session_id)

        await session.extraction.aclose()
        flushed = await session.autosave.aclose()
        logger.info("editor_session_closed", session_id=session_id, flushed=flushed)
        return flushed

    async def close_all(self) -> None:
        for session_id in list(self._sessions):
            await self.close(session_id)
