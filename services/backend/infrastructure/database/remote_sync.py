"""
Remote Sync Adapter
Mirrors reports into the remote `damage_reports` table (last write wins by id)
"""
from typing import List, Optional

import structlog
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlmodel import select

from config import Settings
from domain.exceptions import RemoteSyncError
from domain.models import DamageReportRow, Report
from .connection import create_engine, create_session_maker, init_schema

logger = structlog.get_logger()


class RemoteSyncAdapter:
    """Base adapter; `enabled` is False when there is nothing to talk to"""

    enabled = False

    async def prepare(self) -> None:
        return None

    async def hydrate(self) -> Optional[List[Report]]:
        return None

    async def upsert(self, report: Report) -> None:
        return None

    async def close(self) -> None:
        return None


class InertRemoteSync(RemoteSyncAdapter):
    """Used when no remote credentials are configured: every call is a no-op"""


class SqlRemoteSync(RemoteSyncAdapter):
    enabled = True

    def __init__(
        self,
        engine: AsyncEngine,
        create_schema: bool = True,
        connect_retries: int = 3,
        retry_delay: float = 1,
    ):
        self.engine = engine
        self.create_schema = create_schema
        self.connect_retries = connect_retries
        self.retry_delay = retry_delay
        self._session_maker = create_session_maker(engine)

    async def prepare(self) -> None:
        """Create the table; an unreachable database leaves the local data in charge"""
        if not self.create_schema:
            return
        try:
            await init_schema(self.engine, max_retries=self.connect_retries, retry_delay=self.retry_delay)
        except Exception as e:
            logger.error("remote_prepare_failed", error=str(e))

    async def hydrate(self) -> Optional[List[Report]]:
        """
        Fetch every remote row and unwrap the embedded report

        Returns None when the fetch fails or no usable row exists, so the
        caller keeps whatever the local store already holds.
        """
        try:
            async with self._session_maker() as session:
                query = select(DamageReportRow).order_by(DamageReportRow.created_at.desc())
                result = await session.execute(query)
                rows = result.scalars().all()
        except Exception as e:
            logger.error("remote_hydrate_failed", error=str(e))
            return None

        reports: List[Report] = []
        for row in rows:
            try:
                reports.append(Report.model_validate(row.report_data))
            except ValidationError as e:
                logger.warning("remote_row_invalid", report_id=row.id, error=str(e))

        logger.info("remote_hydrate_complete", rows=len(rows), reports=len(reports))
        return reports or None

    async def upsert(self, report: Report) -> None:
        if not report.id:
            raise RemoteSyncError("cannot sync a report without identifier")

        mapped = DamageReportRow.from_report(report)
        try:
            async with self._session_maker() as session:
                existing = await session.get(DamageReportRow, report.id)
                if existing:
                    existing.apply(mapped)
                    session.add(existing)
                else:
                    session.add(mapped)
                await session.commit()
        except Exception as e:
            logger.error("remote_upsert_failed", report_id=report.id, error=str(e))
            raise RemoteSyncError(f"Cloud save failed: {e}") from e

        logger.info("remote_upsert_complete", report_id=report.id)

    async def close(self) -> None:
        await self.engine.dispose()


def build_remote_sync(settings: Settings) -> RemoteSyncAdapter:
    if not settings.database_url:
        logger.info("remote_sync_disabled", reason="database_url not configured")
        return InertRemoteSync()

    engine = create_engine(settings.database_url, echo=settings.database_echo)
    return SqlRemoteSync(engine, create_schema=settings.database_create_schema)
