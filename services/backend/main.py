"""
Q-Service Schadenmanagement - Backend API
FastAPI + local JSON store + optional Supabase mirror
"""
from dotenv import load_dotenv
load_dotenv()  # Load .env before any other imports

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from api.v1 import devices, editor, extraction, reports
from application.device_inventory import DeviceInventory
from application.editor_sessions import EditorSessionRegistry
from application.report_renderer import CompanyInfo, ReportDocumentRenderer
from application.report_service import ReportService
from config import Settings, get_settings
from domain.models import Device, Report
from infrastructure.ai import build_extraction_client
from infrastructure.database import build_remote_sync
from infrastructure.media import LocalMediaStorage, build_media_storage
from infrastructure.storage import JsonBlobStorage, LocalStore
from logging_config import configure_logging

logger = structlog.get_logger()

# CORS - local frontend dev servers
ALLOWED_ORIGINS = [
    *[f"http://localhost:{port}" for port in (3000, 3001, 5173, 5174)],
    *[f"http://127.0.0.1:{port}" for port in (3000, 3001, 5173, 5174)],
]


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level, settings.log_json)

    # Built eagerly so /media can be mounted before startup
    media = build_media_storage(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        storage = JsonBlobStorage(settings.storage_dir)
        remote = build_remote_sync(settings)

        report_service = ReportService(LocalStore(storage, settings.reports_storage_key, Report), remote)
        await report_service.startup()

        device_inventory = DeviceInventory(LocalStore(storage, settings.devices_storage_key, Device))
        device_inventory.load()

        renderer = ReportDocumentRenderer(
            settings.report_output_dir,
            CompanyInfo(
                name=settings.company_name,
                address=settings.company_address,
                web=settings.company_web,
                phone=settings.company_phone,
            ),
            media,
        )

        app.state.settings = settings
        app.state.report_service = report_service
        app.state.device_inventory = device_inventory
        app.state.editor_sessions = EditorSessionRegistry(
            report_service,
            media,
            renderer,
            extraction_client=build_extraction_client(settings),
            autosave_quiet_period=settings.autosave_quiet_period,
            extraction_quiet_period=settings.extraction_quiet_period,
        )

        logger.info(
            "backend_started",
            reports=len(report_service.list_reports()),
            remote_sync=remote.enabled,
        )

        yield

        # Shutdown
        await app.state.editor_sessions.close_all()
        await remote.close()
        logger.info("backend_stopped")

    app = FastAPI(
        title="Q-Service Schadenmanagement API",
        description="Damage case intake, drying logs, AI import and report documents",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(reports.router, prefix="/api/v1/reports", tags=["reports"])
    app.include_router(editor.router, prefix="/api/v1/editor", tags=["editor"])
    app.include_router(
        extraction.router,
        prefix="/api/v1/editor/{session_id}/extraction",
        tags=["extraction"],
    )
    app.include_router(devices.router, prefix="/api/v1/devices", tags=["devices"])

    if isinstance(media, LocalMediaStorage):
        app.mount("/media", StaticFiles(directory=str(Path(settings.media_dir))), name="media")

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "service": "qservice-backend"}

    @app.get("/")
    async def root():
        return {"message": "Q-Service Schadenmanagement API", "docs": "/docs"}

    return app


app = create_app()
