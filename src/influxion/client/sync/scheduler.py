"""Interval scheduler for sync cycles.

This module provides:
- UploadScheduler: Runs SyncEngine cycles on a fixed interval

The scheduler owns a single timer handle. The first cycle runs after an
initial delay; each following cycle is armed only once the previous one
has finished, so cycles never overlap even when one takes longer than the
interval. A manual run_now() shares the same lock as scheduled cycles.
"""

from __future__ import annotations

import asyncio
import logging

from influxion.client.sync.engine import SyncEngine
from influxion.client.sync.types import CycleResult
from influxion.core.types import SyncPhase

logger = logging.getLogger(__name__)


class UploadScheduler:
    """Drives an engine on an interval.

    Usage:
        scheduler = UploadScheduler(engine, interval=900, initial_delay=10)
        scheduler.start()
        ...
        await scheduler.stop()
    """

    def __init__(
        self,
        engine: SyncEngine,
        interval: float,
        initial_delay: float = 10.0,
    ) -> None:
        """Initialize the scheduler.

        Args:
            engine: Engine whose cycles are scheduled.
            interval: Seconds between the end of one cycle and the next.
            initial_delay: Seconds before the first cycle.
        """
        self._engine = engine
        self._interval = interval
        self._initial_delay = initial_delay
        self._lock = asyncio.Lock()
        self._timer: asyncio.TimerHandle | None = None
        self._task: asyncio.Task[None] | None = None
        self._running = False
        self._stopped = False
        self.runs = 0

    @property
    def running(self) -> bool:
        return self._running

    @property
    def phase(self) -> SyncPhase:
        """Current phase: the engine's while a cycle runs, else the timer's."""
        if self._engine.phase != SyncPhase.IDLE:
            return self._engine.phase
        if self._timer is not None:
            return SyncPhase.SCHEDULED
        if self._stopped:
            return SyncPhase.STOPPED
        return SyncPhase.IDLE

    def start(self) -> None:
        """Arm the first cycle. Calling start() again has no effect."""
        if self._running:
            return
        self._running = True
        self._stopped = False
        self._arm(self._initial_delay)
        logger.info(
            f"Upload scheduler started (every {self._interval:g}s, "
            f"first run in {self._initial_delay:g}s)"
        )

    async def stop(self) -> None:
        """Cancel the pending timer and wait for an in-flight cycle.

        A running cycle is never cancelled; it completes and persists its
        ledger before this returns.
        """
        if not self._running:
            return
        self._running = False
        self._stopped = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

        task = self._task
        if task is not None and not task.done():
            await asyncio.shield(task)
        logger.info("Upload scheduler stopped")

    async def run_now(self) -> CycleResult:
        """Run one cycle immediately, after any cycle already in progress.

        Raises:
            OSError: If the ledger cannot be read or written.
        """
        async with self._lock:
            return await self._engine.run_cycle()

    def _arm(self, delay: float) -> None:
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(delay, self._fire)

    def _fire(self) -> None:
        self._timer = None
        if not self._running:
            return
        self._task = asyncio.create_task(self._scheduled_run())

    async def _scheduled_run(self) -> None:
        try:
            await self.run_now()
        except Exception:
            logger.exception("Scheduled sync cycle failed")
        finally:
            self.runs += 1
            if self._running:
                self._arm(self._interval)
