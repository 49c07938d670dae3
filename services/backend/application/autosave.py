"""
Debounced auto-save for one report edit buffer

Edits restart a quiet-period timer; when it fires the buffer is compared with
the last persisted snapshot and only saved when it differs. Saves go through
a single-writer queue, so a debounced save, an explicit save and the final
teardown flush never run concurrently and always land in submission order.
"""
import asyncio
import contextlib
import json
from typing import Any, Awaitable, Callable, Optional

import structlog

from domain.models import Report

logger = structlog.get_logger()

SaveCallable = Callable[[Report, bool], Awaitable[Any]]


def serialize_snapshot(report: Report) -> str:
    return json.dumps(report.model_dump(mode="json"), sort_keys=True)


class Debouncer:
    """Calls `callback` once `delay` seconds pass without another trigger"""

    def __init__(self, delay: float, callback: Callable[[], Any]):
        self.delay = delay
        self.callback = callback
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def trigger(self) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        self.callback()


class SaveQueue:
    """Runs save calls one at a time, in the order they were submitted"""

    def __init__(self, save: SaveCallable):
        self._save = save
        self._queue: asyncio.Queue = asyncio.Queue()
        self._worker: Optional[asyncio.Task] = None
        self.last_error: Optional[str] = None
        self.completed = 0

    def submit(self, report: Report, silent: bool = True) -> asyncio.Future:
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        self._queue.put_nowait((report, silent, future))
        if self._worker is None or self._worker.done():
            self._worker = loop.create_task(self._run())
        return future

    async def _run(self) -> None:
        while True:
            report, silent, future = await self._queue.get()
            try:
                result = await self._save(report, silent)
            except Exception as e:
                self.last_error = str(e)
                logger.error("report_save_failed", report_id=report.id, silent=silent, error=str(e))
                if not future.done():
                    future.set_exception(e)
                # Silent saves have nobody awaiting them
                if silent:
                    future.exception()
            else:
                self.last_error = None
                self.completed += 1
                if not future.done():
                    future.set_result(result)
            finally:
                self._queue.task_done()

    async def drain(self) -> None:
        await self._queue.join()

    async def close(self) -> None:
        await self.drain()
        if self._worker is not None:
            self._worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._worker
            self._worker = None


class AutoSaveController:
    def __init__(
        self,
        snapshot: Callable[[], Report],
        save: SaveCallable,
        identify: Optional[Callable[[], Report]] = None,
        quiet_period: float = 1.0,
    ):
        self._snapshot = snapshot
        self._identify = identify
        self._save = save
        self._queue = SaveQueue(self._persist)
        self._debouncer = Debouncer(quiet_period, self._on_quiet_period)
        self._last_saved: Optional[str] = serialize_snapshot(snapshot())
        self._closed = False

    async def _persist(self, report: Report, silent: bool) -> Any:
        try:
            result = await self._save(report, silent)
        except Exception:
            # Nothing is known to be persisted; the next check or teardown saves again
            self._last_saved = None
            raise
        if self._last_saved is None:
            self._last_saved = serialize_snapshot(report)
        return result

    @property
    def pending(self) -> bool:
        return self._debouncer.pending

    @property
    def dirty(self) -> bool:
        return serialize_snapshot(self._snapshot()) != self._last_saved

    @property
    def last_error(self) -> Optional[str]:
        return self._queue.last_error

    @property
    def saves_completed(self) -> int:
        return self._queue.completed

    def notify_change(self) -> None:
        if self._closed:
            return
        self._debouncer.trigger()

    def _on_quiet_period(self) -> None:
        self.flush_if_dirty()

    def flush_if_dirty(self) -> Optional[asyncio.Future]:
        """Queue a silent save when the buffer differs from the last saved one"""
        report = self._snapshot()
        if serialize_snapshot(report) == self._last_saved:
            logger.debug("autosave_skipped", report_id=report.id)
            return None

        if report.id is None and self._identify is not None:
            report = self._identify()

        self._last_saved = serialize_snapshot(report)
        logger.info("autosave_triggered", report_id=report.id, equipment=len(report.equipment))
        return self._queue.submit(report, silent=True)

    async def save_explicit(self, report: Report) -> Any:
        """Non-silent save, ordered behind any queued auto-save"""
        self._debouncer.cancel()
        self._last_saved = serialize_snapshot(report)
        return await self._queue.submit(report, silent=False)

    async def drain(self) -> None:
        await self._queue.drain()

    async def aclose(self) -> bool:
        """Final check-and-flush, then wait for every queued save"""
        self._debouncer.cancel()
        flushed = self.flush_if_dirty() is not None
        self._closed = True
        await self._queue.close()
        logger.info("autosave_closed", flushed=flushed)
        return flushed
