"""Status recorder — drains probe results off the queue and persists them.

Inserts run on a thread pool sized to the store's connection limit, so a
long target list cannot exhaust database connections. A failed insert is
logged and reported for its record only; the rest of the cycle carries on.
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone

from .engine import StatusRecord
from .store import StatusStore, StoreError

logger = logging.getLogger(__name__)


@dataclass
class PersistOutcome:
    """What happened to one record on its way into the store."""

    record: StatusRecord
    row_id: int | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class CycleReport:
    """Summary of one full dispatch + record pass."""

    probed: int = 0
    outcomes: list[PersistOutcome] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: datetime | None = None

    @property
    def recorded(self) -> int:
        return sum(1 for o in self.outcomes if o.ok)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.ok)

    @property
    def available(self) -> int:
        return sum(1 for o in self.outcomes if o.record.available)


class StatusRecorder:
    """Consumes StatusRecords and writes one row per record."""

    def __init__(self, store: StatusStore, max_workers: int | None = None) -> None:
        self.store = store
        self.max_workers = max(1, max_workers or store.max_connections)

    async def consume(
        self, queue: asyncio.Queue[StatusRecord], expected: int,
    ) -> list[PersistOutcome]:
        """Persist exactly ``expected`` records; return once every insert has finished."""
        if expected <= 0:
            return []

        loop = asyncio.get_running_loop()
        executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="recorder")
        pending: list[asyncio.Future[PersistOutcome]] = []
        try:
            for _ in range(expected):
                record = await queue.get()
                pending.append(asyncio.ensure_future(self._persist(loop, executor, record)))
                queue.task_done()
            return list(await asyncio.gather(*pending))
        except asyncio.CancelledError:
            for p in pending:
                p.cancel()
            raise
        finally:
            # Never block the event loop on inserts still running in worker threads
            executor.shutdown(wait=False, cancel_futures=True)

    async def _persist(
        self,
        loop: asyncio.AbstractEventLoop,
        executor: ThreadPoolExecutor,
        record: StatusRecord,
    ) -> PersistOutcome:
        try:
            row_id = await loop.run_in_executor(executor, self.store.insert, record)
        except StoreError as e:
            logger.error("Failed to record %s: %s", record.url, e)
            return PersistOutcome(record=record, error=str(e))

        logger.info("Status %s => %s", record.url, record.available)
        return PersistOutcome(record=record, row_id=row_id)
