"""Report service: startup hydration, saves, identifiers and pending remote writes"""
import pytest

from application.report_service import ReportService
from conftest import FakeRemote
from domain.exceptions import ReportNotFoundError
from domain.models import Report, ReportStatus


async def test_startup_hydrates_from_non_empty_remote(report_store):
    report_store.save([Report(id="LOCAL-1")])
    remote = FakeRemote(rows=[Report(id="REMOTE-1"), Report(id="REMOTE-2")])
    service = ReportService(report_store, remote)

    await service.startup()

    assert [r.id for r in service.list_reports()] == ["REMOTE-1", "REMOTE-2"]
    assert [r.id for r in report_store.load()] == ["REMOTE-1", "REMOTE-2"]


async def test_startup_keeps_local_when_remote_has_nothing(report_store):
    report_store.save([Report(id="LOCAL-1")])
    service = ReportService(report_store, FakeRemote(rows=None))

    await service.startup()

    assert [r.id for r in service.list_reports()] == ["LOCAL-1"]


async def test_new_reports_are_prepended_and_existing_replaced(report_service):
    await report_service.save_report(Report(id="A"))
    outcome = await report_service.save_report(Report(id="B"))
    assert outcome.created is True

    outcome = await report_service.save_report(Report(id="A", client="Halter AG"))
    assert outcome.created is False

    assert [r.id for r in report_service.list_reports()] == ["B", "A"]
    assert report_service.get("A").client == "Halter AG"
    assert [r.id for r in report_service.store.load()] == ["B", "A"]


async def test_identifier_from_title_or_generated(report_service):
    titled = await report_service.save_report(Report(project_title="P-2026-01-1000"))
    untitled = await report_service.save_report(Report())

    assert titled.report.id == "P-2026-01-1000"
    assert untitled.report.id.startswith("TMP-")


async def test_identifier_is_unique(report_service):
    await report_service.save_report(Report(project_title="P-1"))

    second = await report_service.save_report(Report(project_title="P-1"))

    assert second.report.id == "P-1-2"
    assert len(report_service.list_reports()) == 2


async def test_status_filter_and_missing_report(report_service):
    await report_service.save_report(Report(id="A", status=ReportStatus.DRYING))
    await report_service.save_report(Report(id="B"))

    assert [r.id for r in report_service.list_reports(ReportStatus.DRYING)] == ["A"]
    with pytest.raises(ReportNotFoundError):
        report_service.get("missing")


async def test_remote_failure_keeps_local_write(report_store):
    remote = FakeRemote()
    remote.fail = True
    service = ReportService(report_store, remote)

    outcome = await service.save_report(Report(id="P-1"))

    assert "Cloud save failed" in outcome.remote_error
    assert service.pending_remote == {"P-1"}
    assert [r.id for r in report_store.load()] == ["P-1"]


async def test_resync_clears_pending(report_store):
    remote = FakeRemote()
    remote.fail = True
    service = ReportService(report_store, remote)
    await service.save_report(Report(id="P-1"))

    remote.fail = False
    result = await service.resync()

    assert result.synced == ["P-1"]
    assert service.pending_remote == set()
    assert [r.id for r in remote.upserts] == ["P-1"]


async def test_inert_remote_is_never_called(report_service):
    outcome = await report_service.save_report(Report(id="P-1"))

    assert outcome.remote_error is None
    assert report_service.remote.enabled is False
