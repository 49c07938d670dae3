"""
Extraction preview bridge

Sends import text to the AI collaborator, keeps the cleaned answer as an
editable preview and, on confirmation, merges it into the report editor.
"""
import asyncio
import contextlib
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

import openai
import structlog

from domain.exceptions import (
    ExtractionBusyError,
    ExtractionError,
    ExtractionUnavailableError,
    ItemNotFoundError,
    InvalidFieldError,
    RateLimitExhaustedError,
)
from domain.models import ExtractionParseError, ExtractionResult
from domain.models.extraction import ExtractedContact
from infrastructure.ai import ExtractionClient
from .autosave import Debouncer
from .document_text import SourceFile, collect_source_text
from .extraction_mapping import EXTRACTION_INSTRUCTIONS, clean_extraction, parse_extraction_response, to_report_changes
from .report_editor import ReportEditor

logger = structlog.get_logger()

RATE_LIMIT_MESSAGE = "API limit reached. Please wait a minute or use a paid API key."
PREVIEW_GROUPS = ("projekt_daten", "auftrag_verwaltung", "rechnungs_details", "schadenort")


@dataclass
class ExtractionPreview:
    data: ExtractionResult
    model: str = ""
    parse_error: Optional[str] = None
    attachments: List[SourceFile] = field(default_factory=list)


class ExtractionBridge:
    def __init__(self, client: Optional[ExtractionClient], quiet_period: float = 1.5):
        self.client = client
        self.busy = False
        self.preview: Optional[ExtractionPreview] = None
        self.input_text = ""
        self.last_error: Optional[str] = None
        self._debouncer = Debouncer(quiet_period, self._start_auto_extraction)
        self._task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Requests

    async def request_extraction(
        self,
        text: str = "",
        files: Sequence[SourceFile] = (),
    ) -> ExtractionPreview:
        if self.client is None:
            raise ExtractionUnavailableError("AI extraction is not configured")
        if self.busy:
            raise ExtractionBusyError("An analysis is already running")

        attachments = [f for f in files if f.is_image]
        source_text = collect_source_text(text, files)
        if not source_text.strip():
            raise ExtractionError("No text content found to analyze")

        self.busy = True
        try:
            outcome = await self._attempt_models(source_text)
        finally:
            self.busy = False

        parse_error = outcome.error if isinstance(outcome, ExtractionParseError) else None
        if parse_error:
            logger.warning("extraction_response_unparsed", model=outcome.model, error=parse_error)

        self.preview = ExtractionPreview(
            data=clean_extraction(outcome.data),
            model=outcome.model,
            parse_error=parse_error,
            attachments=attachments,
        )
        self.last_error = None
        return self.preview

    async def _attempt_models(self, source_text: str):
        models = await self.client.candidate_models()
        rate_limited = 0
        last_error: Optional[Exception] = None

        for model in models:
            try:
                raw = await self.client.complete(model, EXTRACTION_INSTRUCTIONS, source_text)
            except openai.RateLimitError as e:
                rate_limited += 1
                last_error = e
                logger.warning("extraction_attempt_failed", model=model, reason="rate_limit")
                continue
            except openai.NotFoundError as e:
                last_error = e
                logger.warning("extraction_attempt_failed", model=model, reason="model_not_found")
                continue
            except openai.OpenAIError as e:
                logger.error("extraction_failed", model=model, error=str(e))
                raise ExtractionError(f"AI analysis failed: {e}") from e

            logger.info("extraction_completed", model=model, chars=len(source_text))
            return parse_extraction_response(raw, model)

        if models and rate_limited == len(models):
            raise RateLimitExhaustedError(RATE_LIMIT_MESSAGE)
        raise ExtractionError(f"No AI model available: {last_error}")

    # ------------------------------------------------------------------
    # Free-text input

    def set_input_text(self, text: str, pasted: bool = False) -> None:
        """Typing is debounced; a paste starts the analysis right away"""
        self.input_text = text
        if pasted:
            self._debouncer.cancel()
            self._start_auto_extraction()
        else:
            self._debouncer.trigger()

    def _start_auto_extraction(self) -> None:
        if not self.input_text.strip() or self.busy or self.client is None:
            return
        self._task = asyncio.get_running_loop().create_task(self._auto_extract(self.input_text))

    async def _auto_extract(self, text: str) -> None:
        try:
            await self.request_extraction(text=text)
        except ExtractionError as e:
            self.last_error = str(e)
            logger.warning("auto_extraction_failed", error=str(e))

    async def wait_idle(self) -> None:
        if self._task is not None:
            await self._task

    # ------------------------------------------------------------------
    # Preview corrections

    def _require_preview(self) -> ExtractionPreview:
        if self.preview is None:
            raise ItemNotFoundError("Extraction preview", "current")
        return self.preview

    def update_field(self, group: str, name: str, value: Any) -> ExtractionResult:
        preview = self._require_preview()
        if group not in PREVIEW_GROUPS:
            raise InvalidFieldError(f"Unknown preview group: {group}")
        section = getattr(preview.data, group)
        if name not in type(section).model_fields:
            raise InvalidFieldError(f"Unknown field {group}.{name}")
        setattr(section, name, "" if value is None else str(value))
        return preview.data

    def update_contact(self, index: int, **changes) -> ExtractedContact:
        preview = self._require_preview()
        if not 0 <= index < len(preview.data.kontakte):
            raise ItemNotFoundError("Preview contact", index)
        current = preview.data.kontakte[index]
        contact = ExtractedContact.model_validate({**current.model_dump(), **changes})
        preview.data.kontakte[index] = contact
        return contact

    def add_contact(self) -> ExtractedContact:
        contact = ExtractedContact()
        self._require_preview().data.kontakte.append(contact)
        return contact

    def remove_contact(self, index: int) -> None:
        preview = self._require_preview()
        if not 0 <= index < len(preview.data.kontakte):
            raise ItemNotFoundError("Preview contact", index)
        del preview.data.kontakte[index]

    def confirm(self, editor: ReportEditor) -> ExtractionPreview:
        """Merge the corrected preview into the editor and clear it"""
        preview = self._require_preview()
        fields, contacts = to_report_changes(preview.data)
        editor.apply_import(fields, contacts)
        self.preview = None
        self.input_text = ""
        return preview

    def discard(self) -> None:
        self.preview = None

    async def aclose(self) -> None:
        self._debouncer.cancel()
        if self._task is not None and not self._task.done():
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
