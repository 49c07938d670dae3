"""
Report collection service

Local store is the source of truth; the remote adapter mirrors every save.
A failed remote write keeps the local copy and remembers the id as pending,
so local and remote may drift until `resync()` succeeds.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

import structlog

from domain.exceptions import ReportNotFoundError, RemoteSyncError
from domain.models import Report, ReportStatus
from domain.models.report import generated_identifier
from infrastructure.database import RemoteSyncAdapter
from infrastructure.storage import LocalStore

logger = structlog.get_logger()


@dataclass
class SaveOutcome:
    report: Report
    created: bool
    silent: bool = False
    remote_error: Optional[str] = None


@dataclass
class SyncResult:
    synced: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)


class ReportService:
    def __init__(self, store: LocalStore[Report], remote: RemoteSyncAdapter):
        self.store = store
        self.remote = remote
        self._reports: List[Report] = []
        self.pending_remote: Set[str] = set()

    async def startup(self) -> None:
        """Load the local collection, then let a non-empty remote replace it"""
        self._reports = self.store.load()
        logger.info("local_reports_loaded", count=len(self._reports))

        await self.remote.prepare()
        hydrated = await self.remote.hydrate()
        if hydrated:
            self._reports = hydrated
            await self.store.asave(self._reports)
            logger.info("reports_hydrated_from_remote", count=len(hydrated))

    def list_reports(self, status: Optional[ReportStatus] = None) -> List[Report]:
        if status is None:
            return list(self._reports)
        return [r for r in self._reports if r.status == status]

    def get(self, report_id: str) -> Report:
        report = next((r for r in self._reports if r.id == report_id), None)
        if report is None:
            raise ReportNotFoundError(report_id)
        return report

    def allocate_identifier(self, report: Report) -> str:
        """Project title, else a generated token; suffixed until unique"""
        if report.id:
            return report.id

        candidate = report.project_title.strip() or generated_identifier()
        taken = {r.id for r in self._reports}
        identifier = candidate
        suffix = 2
        while identifier in taken:
            identifier = f"{candidate}-{suffix}"
            suffix += 1
        return identifier

    async def save_report(self, report: Report, silent: bool = False) -> SaveOutcome:
        if not report.id:
            report = report.model_copy(update={"id": self.allocate_identifier(report)})

        index = next((i for i, r in enumerate(self._reports) if r.id == report.id), None)
        created = index is None
        if created:
            self._reports.insert(0, report)
        else:
            self._reports[index] = report

        await self.store.asave(self._reports)

        remote_error = None
        if self.remote.enabled:
            try:
                await self.remote.upsert(report)
                self.pending_remote.discard(report.id)
            except RemoteSyncError as e:
                remote_error = str(e)
                self.pending_remote.add(report.id)
                logger.warning("remote_write_pending", report_id=report.id, error=remote_error)

        logger.info("report_saved", report_id=report.id, created=created, silent=silent)
        return SaveOutcome(report=report, created=created, silent=silent, remote_error=remote_error)

    async def resync(self) -> SyncResult:
        """Retry the remote write of every pending report"""
        result = SyncResult()
        for report_id in sorted(self.pending_remote):
            report = next((r for r in self._reports if r.id == report_id), None)
            if report is None:
                self.pending_remote.discard(report_id)
                continue
            try:
                await self.remote.upsert(report)
            except RemoteSyncError as e:
                result.failed[report_id] = str(e)
                continue
            self.pending_remote.discard(report_id)
            result.synced.append(report_id)

        logger.info("remote_resync_complete", synced=len(result.synced), failed=len(result.failed))
        return result
