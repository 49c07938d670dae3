"""Debounced auto-save, single-writer queue and teardown flush"""
import asyncio

import pytest

from application.autosave import AutoSaveController, Debouncer, SaveQueue
from application.editor_sessions import EditorSessionRegistry
from application.report_editor import ReportEditor
from domain.models import Report

QUIET = 0.05


class RecordingSave:
    def __init__(self, delay: float = 0.0, fail: bool = False):
        self.calls = []
        self.delay = delay
        self.fail = fail
        self.active = 0
        self.max_active = 0

    async def __call__(self, report: Report, silent: bool):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delay)
            if self.fail:
                raise OSError("disk full")
            self.calls.append((report, silent))
            return report
        finally:
            self.active -= 1


def build(editor: ReportEditor, save: RecordingSave) -> AutoSaveController:
    controller = AutoSaveController(editor.snapshot, save, identify=editor.ensure_identifier, quiet_period=QUIET)
    editor.subscribe(controller.notify_change)
    return controller


async def test_debouncer_fires_once_after_quiet_period():
    fired = []
    debouncer = Debouncer(QUIET, lambda: fired.append(1))

    for _ in range(5):
        debouncer.trigger()
        await asyncio.sleep(QUIET / 5)
    assert fired == []

    await asyncio.sleep(QUIET * 3)
    assert fired == [1]
    assert debouncer.pending is False


async def test_unchanged_buffer_is_saved_once():
    editor = ReportEditor(identifier_factory=lambda r: r.project_title)
    save = RecordingSave()
    controller = build(editor, save)
    editor.update_fields(project_title="P-2026-01-1000")

    controller.flush_if_dirty()
    controller.flush_if_dirty()
    await controller.drain()

    assert len(save.calls) == 1
    report, silent = save.calls[0]
    assert silent is True
    assert report.id == "P-2026-01-1000"


async def test_untouched_editor_never_saves():
    save = RecordingSave()
    controller = build(ReportEditor(), save)

    assert controller.flush_if_dirty() is None
    assert await controller.aclose() is False
    assert save.calls == []


async def test_edits_are_saved_after_quiet_period():
    editor = ReportEditor(identifier_factory=lambda r: "TMP-1")
    save = RecordingSave()
    build(editor, save)

    editor.update_fields(client="A")
    editor.update_fields(client="AB")
    editor.update_fields(client="ABC")
    await asyncio.sleep(QUIET * 4)

    assert [r.client for r, _ in save.calls] == ["ABC"]


async def test_teardown_flushes_pending_edits():
    editor = ReportEditor(identifier_factory=lambda r: "TMP-1")
    save = RecordingSave()
    controller = build(editor, save)

    editor.update_fields(notes="last words")
    assert controller.pending is True

    flushed = await controller.aclose()

    assert flushed is True
    assert [r.notes for r, _ in save.calls] == ["last words"]

    editor.update_fields(notes="after close")
    await asyncio.sleep(QUIET * 3)
    assert len(save.calls) == 1


async def test_saves_never_overlap():
    save = RecordingSave(delay=0.02)
    queue = SaveQueue(save)

    futures = [queue.submit(Report(id=f"P-{i}"), silent=True) for i in range(3)]
    await asyncio.gather(*futures)

    assert save.max_active == 1
    assert [r.id for r, _ in save.calls] == ["P-0", "P-1", "P-2"]


async def test_explicit_save_waits_for_queued_autosave():
    editor = ReportEditor(identifier_factory=lambda r: "TMP-1")
    save = RecordingSave(delay=0.02)
    controller = build(editor, save)

    editor.update_fields(client="A")
    controller.flush_if_dirty()
    editor.update_fields(client="B")
    result = await controller.save_explicit(editor.submit())

    assert result.client == "B"
    assert [(r.client, silent) for r, silent in save.calls] == [("A", True), ("B", False)]
    assert save.max_active == 1
    assert controller.dirty is False


async def test_failed_save_is_reported_not_raised():
    editor = ReportEditor(identifier_factory=lambda r: "TMP-1")
    save = RecordingSave(fail=True)
    controller = build(editor, save)

    editor.update_fields(client="A")
    controller.flush_if_dirty()
    await controller.drain()

    assert controller.last_error == "disk full"


async def test_failed_save_is_retried_on_teardown():
    editor = ReportEditor(identifier_factory=lambda r: "TMP-1")
    save = RecordingSave(fail=True)
    controller = build(editor, save)

    editor.update_fields(client="Muster AG")
    controller.flush_if_dirty()
    await controller.drain()
    assert controller.dirty is True

    save.fail = False
    assert await controller.aclose() is True
    assert [(r.client, silent) for r, silent in save.calls] == [("Muster AG", True)]
    assert controller.dirty is False


async def test_explicit_save_failure_propagates():
    save = RecordingSave(fail=True)
    controller = AutoSaveController(lambda: Report(), save, quiet_period=QUIET)

    with pytest.raises(OSError):
        await controller.save_explicit(Report(id="P-1"))


async def test_new_report_is_stored_exactly_once(report_service, media, renderer):
    registry = EditorSessionRegistry(report_service, media, renderer, autosave_quiet_period=QUIET)
    session = registry.open()
    session.editor.update_fields(project_title="P-2026-01-1000")

    await asyncio.sleep(QUIET * 4)
    session.autosave.flush_if_dirty()
    await registry.close(session.id)

    stored = report_service.list_reports()
    assert [r.id for r in stored] == ["P-2026-01-1000"]
    assert report_service.store.load() == stored
