"""Probe scheduler — runs one cycle per fixed-cadence tick.

Each tick re-reads the settings file, opens the store, runs a cycle and
closes the store again. Ticks never overlap: a tick that fires while the
previous cycle is still running is skipped.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from enum import Enum
from pathlib import Path

import httpx

from ..config import ConfigError, Settings, load_settings
from .cycle import run_cycle
from .recorder import CycleReport
from .store import StatusStore, StoreError, open_store

logger = logging.getLogger(__name__)


class SchedulerState(str, Enum):
    WAITING = "waiting"
    RUNNING = "running"
    STOPPED = "stopped"


class ProbeScheduler:
    """Drives probe cycles at a fixed interval until stopped."""

    def __init__(
        self,
        settings_path: Path | str,
        interval_seconds: float = 3600,
        pool_size: int = 10,
        run_on_start: bool = False,
        store_factory: Callable[[Settings, int], StatusStore] = open_store,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings_path = Path(settings_path)
        self.interval = interval_seconds
        self.pool_size = pool_size
        self.run_on_start = run_on_start
        self.store_factory = store_factory
        self.transport = transport
        self.cycles_run = 0
        self.ticks_skipped = 0
        self.last_report: CycleReport | None = None
        self._current: asyncio.Task[CycleReport | None] | None = None
        self._stop = asyncio.Event()
        self._stopped = False

    @property
    def state(self) -> SchedulerState:
        if self._stopped:
            return SchedulerState.STOPPED
        if self._current is not None and not self._current.done():
            return SchedulerState.RUNNING
        return SchedulerState.WAITING

    async def run_once(self) -> CycleReport | None:
        """Load settings → open store → run cycle → close store.

        Configuration and connectivity failures abandon this cycle only.
        """
        try:
            settings = load_settings(self.settings_path)
        except ConfigError as e:
            logger.error("Skipping cycle: %s", e)
            return None

        loop = asyncio.get_running_loop()
        try:
            store = await loop.run_in_executor(None, self.store_factory, settings, self.pool_size)
        except StoreError as e:
            logger.error("Skipping cycle: %s", e)
            return None

        try:
            report = await run_cycle(
                settings, store, transport=self.transport, max_workers=self.pool_size,
            )
        finally:
            store.close()

        self.cycles_run += 1
        self.last_report = report
        return report

    def tick(self) -> bool:
        """Start a cycle unless one is still in flight. Returns True if started."""
        if self.state is SchedulerState.RUNNING:
            self.ticks_skipped += 1
            logger.warning("Previous cycle still running, skipping this tick")
            return False
        self._current = asyncio.create_task(self.run_once(), name="probe-cycle")
        self._current.add_done_callback(self._on_cycle_done)
        return True

    @staticmethod
    def _on_cycle_done(task: asyncio.Task[CycleReport | None]) -> None:
        if task.cancelled():
            logger.warning("Probe cycle cancelled")
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Probe cycle failed", exc_info=exc)

    async def run(self) -> None:
        """Tick every ``interval`` seconds, measured from launch, until ``stop()``."""
        loop = asyncio.get_running_loop()
        logger.info("Probe scheduler started (interval=%ss)", self.interval)

        if self.run_on_start:
            self.tick()

        next_tick = loop.time() + self.interval
        while not self._stop.is_set():
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=max(0.0, next_tick - loop.time()))
            except asyncio.TimeoutError:
                self.tick()
                next_tick += self.interval
                # Catch up without bursting if the loop fell behind
                while next_tick <= loop.time():
                    next_tick += self.interval

        await self._cancel_current()
        self._stopped = True
        logger.info("Probe scheduler stopped")

    def stop(self) -> None:
        """Ask ``run()`` to return. Safe to call from a signal handler."""
        self._stop.set()

    async def _cancel_current(self) -> None:
        if self._current is not None and not self._current.done():
            self._current.cancel()
            try:
                await self._current
            except asyncio.CancelledError:
                pass
