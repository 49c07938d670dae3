"""Plain text from dropped import files (PDF, text/e-mail, Outlook .msg)"""
import io
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

import structlog
from pypdf import PdfReader
from pypdf.errors import PyPdfError

logger = structlog.get_logger()

IMAGE_SUFFIXES = {".jpg", ".jpeg", ".png", ".gif", ".webp", ".heic", ".bmp"}
TEXT_SUFFIXES = {".txt", ".eml"}

_MSG_PRINTABLE_RE = re.compile(r"[^\x20-\x7E\xA0-\xFF\n\r\t]")
_MSG_ASCII_RE = re.compile(r"[^\x20-\x7E\n\r\t]")
_WHITESPACE_RE = re.compile(r"\s+")
MSG_MIN_CHARS = 50


@dataclass
class SourceFile:
    name: str
    content: bytes
    content_type: str = ""

    @property
    def suffix(self) -> str:
        return Path(self.name).suffix.lower()

    @property
    def is_image(self) -> bool:
        return self.content_type.startswith("image/") or self.suffix in IMAGE_SUFFIXES


def pdf_text(content: bytes) -> str:
    reader = PdfReader(io.BytesIO(content))
    pages = []
    for number, page in enumerate(reader.pages, start=1):
        pages.append(f"--- Seite {number} ---\n{(page.extract_text() or '').strip()}")
    return "\n\n".join(pages).strip()


def msg_text(content: bytes) -> str:
    """Printable runs of an Outlook .msg; retried as raw ASCII when too little survives"""
    text = _MSG_PRINTABLE_RE.sub(" ", content.decode("utf-8", errors="ignore"))
    text = _WHITESPACE_RE.sub(" ", text).strip()
    if len(text) < MSG_MIN_CHARS:
        ascii_text = _MSG_ASCII_RE.sub(" ", content.decode("latin-1"))
        text = _WHITESPACE_RE.sub(" ", ascii_text).strip()
    return text


def extract_text(source: SourceFile) -> Optional[str]:
    """Text of one file, or None when the type is not supported"""
    suffix = source.suffix
    if suffix == ".pdf" or source.content_type == "application/pdf":
        try:
            return pdf_text(source.content)
        except (PyPdfError, ValueError) as e:
            logger.warning("pdf_text_failed", file=source.name, error=str(e))
            return ""
    if suffix in TEXT_SUFFIXES or source.content_type.startswith("text/"):
        return source.content.decode("utf-8", errors="replace")
    if suffix == ".msg":
        return msg_text(source.content)
    return None


def collect_source_text(text: str, files: Sequence[SourceFile]) -> str:
    """Typed text plus the text of every readable file, one block per file"""
    blocks: List[str] = []
    if text and text.strip():
        blocks.append(text.strip())

    for source in files:
        if source.is_image:
            continue
        extracted = extract_text(source)
        if extracted is None:
            logger.warning("import_file_unsupported", file=source.name)
            continue
        if extracted.strip():
            blocks.append(f"=== {source.name} ===\n{extracted.strip()}")

    return "\n\n".join(blocks)
