"""One probe cycle: fan out a probe per target, fan in through the recorder."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

import httpx

from ..config import Settings
from .engine import StatusRecord, dispatch
from .recorder import CycleReport, StatusRecorder
from .store import StatusStore

logger = logging.getLogger(__name__)


async def run_cycle(
    settings: Settings,
    store: StatusStore,
    transport: httpx.AsyncBaseTransport | None = None,
    max_workers: int | None = None,
) -> CycleReport:
    """Probe every configured target and persist each result.

    Returns after every dispatched probe's insert has finished.
    """
    report = CycleReport()
    targets = list(settings.servers)
    if not targets:
        logger.info("No targets configured, nothing to probe")
        report.finished_at = datetime.now(timezone.utc)
        return report

    queue: asyncio.Queue[StatusRecord] = asyncio.Queue(maxsize=len(targets))
    recorder = StatusRecorder(store, max_workers=max_workers)

    # One connection per target; httpx would otherwise pool at 100
    limits = httpx.Limits(max_connections=None, max_keepalive_connections=None)
    async with httpx.AsyncClient(follow_redirects=True, limits=limits, transport=transport) as client:
        probed, outcomes = await asyncio.gather(
            dispatch(targets, settings.httptimeout_ms, queue, client),
            recorder.consume(queue, len(targets)),
        )

    report.probed = probed
    report.outcomes = outcomes
    report.finished_at = datetime.now(timezone.utc)
    logger.info(
        "Cycle completed: %d probed, %d available, %d recorded, %d failed",
        report.probed, report.available, report.recorded, report.failed,
    )
    return report
