"""
Shared pytest fixtures
Every test works on its own temporary storage; no remote, no AI key
"""
import io
import os
import tempfile
from typing import List, Optional

# Importing main builds the default app; keep its directories out of the repo
_DEFAULT_DATA = tempfile.mkdtemp(prefix="qservice-test-")
os.environ.setdefault("STORAGE_DIR", _DEFAULT_DATA)
os.environ.setdefault("MEDIA_DIR", os.path.join(_DEFAULT_DATA, "media"))
os.environ.setdefault("REPORT_OUTPUT_DIR", os.path.join(_DEFAULT_DATA, "reports"))
os.environ.setdefault("LOG_JSON", "false")

import pytest
from PIL import Image

from application.report_renderer import CompanyInfo, ReportDocumentRenderer
from application.report_service import ReportService
from config import Settings
from domain.exceptions import RemoteSyncError
from domain.models import Report
from infrastructure.database import InertRemoteSync, RemoteSyncAdapter
from infrastructure.media import LocalMediaStorage
from infrastructure.storage import JsonBlobStorage, LocalStore


class FakeRemote(RemoteSyncAdapter):
    """Remote adapter double that records upserts and can be told to fail"""

    enabled = True

    def __init__(self, rows: Optional[List[Report]] = None):
        self.rows = rows
        self.upserts: List[Report] = []
        self.fail = False

    async def hydrate(self):
        return self.rows

    async def upsert(self, report: Report) -> None:
        if self.fail:
            raise RemoteSyncError("Cloud save failed: connection refused")
        self.upserts.append(report)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        storage_dir=str(tmp_path / "data"),
        media_dir=str(tmp_path / "media"),
        report_output_dir=str(tmp_path / "reports"),
        database_url="",
        supabase_url="",
        supabase_service_key="",
        openai_api_key="",
        autosave_quiet_period=0.05,
        extraction_quiet_period=0.05,
        log_json=False,
    )


@pytest.fixture
def blob_storage(tmp_path) -> JsonBlobStorage:
    return JsonBlobStorage(str(tmp_path / "data"))


@pytest.fixture
def report_store(blob_storage) -> LocalStore:
    return LocalStore(blob_storage, "qservice_reports_prod", Report)


@pytest.fixture
def fake_remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def report_service(report_store) -> ReportService:
    return ReportService(report_store, InertRemoteSync())


@pytest.fixture
def media(tmp_path) -> LocalMediaStorage:
    return LocalMediaStorage(str(tmp_path / "media"), "http://testserver")


@pytest.fixture
def company() -> CompanyInfo:
    return CompanyInfo(
        name="Q-Service AG",
        address="Kriesbachstrasse 30, 8600 Dübendorf",
        web="www.q-service.ch",
        phone="+41 43 819 14 18",
    )


@pytest.fixture
def renderer(tmp_path, company, media) -> ReportDocumentRenderer:
    return ReportDocumentRenderer(str(tmp_path / "reports"), company, media)


@pytest.fixture
def png_bytes() -> bytes:
    image = Image.new("RGB", (400, 300), "white")
    out = io.BytesIO()
    image.save(out, format="PNG")
    return out.getvalue()
