"""MonitorScheduler — background loop running a cycle every interval."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from types import TracebackType

import structlog

from fleetwatch.service.cycle import CycleReport, MonitorCycle

logger = structlog.stdlib.get_logger()

CycleCallback = Callable[[CycleReport], Awaitable[None] | None]


class MonitorScheduler:
    """Runs :class:`MonitorCycle` periodically until stopped.

    A failing cycle is logged and counted; the loop keeps running.
    ``stop()`` cancels the running cycle, keeping whatever it already wrote.

    Usage::

        scheduler = MonitorScheduler(cycle, interval_secs=300)
        scheduler.on_cycle(print_report)
        async with scheduler:
            await stop_event.wait()
    """

    def __init__(
        self,
        cycle: MonitorCycle,
        interval_secs: float = 300.0,
        run_on_start: bool = True,
    ) -> None:
        self._cycle = cycle
        self._interval_secs = interval_secs
        self._run_on_start = run_on_start
        self._callbacks: list[CycleCallback] = []
        self._task: asyncio.Task[None] | None = None
        self._running = False
        self._cycle_count = 0
        self._error_count = 0
        self._last_run_time: float = 0.0

    @property
    def running(self) -> bool:
        return self._running

    @property
    def cycle_count(self) -> int:
        return self._cycle_count

    @property
    def error_count(self) -> int:
        return self._error_count

    @property
    def last_run_time(self) -> float:
        return self._last_run_time

    def on_cycle(self, callback: CycleCallback) -> None:
        """Register a callback invoked with every completed cycle report."""
        self._callbacks.append(callback)

    async def _emit(self, report: CycleReport) -> None:
        for cb in self._callbacks:
            try:
                result = cb(report)
                if asyncio.iscoroutine(result):
                    await result
            except Exception:
                logger.exception("cycle_callback_error", timestamp=report.timestamp)

    async def start(self) -> None:
        """Start the background loop."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info(
            "scheduler_started",
            interval_secs=self._interval_secs,
            run_on_start=self._run_on_start,
        )

    async def stop(self) -> None:
        """Cancel the loop and wait for it to finish."""
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("scheduler_stopped", cycles=self._cycle_count, errors=self._error_count)

    async def run_cycle(self) -> CycleReport | None:
        """Run one cycle now; errors are logged and yield None."""
        try:
            report = await self._cycle.run_once()
        except asyncio.CancelledError:
            raise
        except Exception:
            self._error_count += 1
            logger.exception("cycle_error", error_count=self._error_count)
            return None

        self._cycle_count += 1
        self._last_run_time = time.time()
        await self._emit(report)
        return report

    async def _loop(self) -> None:
        if not self._run_on_start:
            try:
                await asyncio.sleep(self._interval_secs)
            except asyncio.CancelledError:
                return

        while self._running:
            try:
                await self.run_cycle()
            except asyncio.CancelledError:
                break

            try:
                await asyncio.sleep(self._interval_secs)
            except asyncio.CancelledError:
                break

    async def __aenter__(self) -> MonitorScheduler:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.stop()
