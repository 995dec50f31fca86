"""Probe engine — one HTTP(S) GET per target, one StatusRecord per probe.

A probe never raises: transport failures (timeouts, DNS, refused
connections, malformed URLs) are folded into ``available=False`` so every
configured target yields exactly one record per cycle.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone

import httpx

logger = logging.getLogger(__name__)

_SCHEMES = ("http://", "https://")


# ── Models ───────────────────────────────────────────────────────────────────


@dataclass
class StatusRecord:
    """Result of a single probe, held only until it is persisted."""

    url: str
    available: bool
    observed_at: datetime
    status_code: int | None = None
    message: str = ""


# ── Probing ──────────────────────────────────────────────────────────────────


def normalize_url(target: str) -> str:
    """Prefix ``https://`` when the target carries no http/https scheme."""
    target = target.strip()
    if target.lower().startswith(_SCHEMES):
        return target
    return "https://" + target


def is_available(status_code: int | None) -> bool:
    return status_code is not None and status_code < 400


async def _fetch_status(client: httpx.AsyncClient, url: str, timeout: float) -> httpx.Response:
    # Status line + headers only; the body is never read
    async with client.stream("GET", url, timeout=timeout) as resp:
        return resp


async def probe(client: httpx.AsyncClient, target: str, timeout_ms: int) -> StatusRecord:
    """Issue a single GET against ``target`` and classify the outcome.

    ``timeout_ms`` bounds the whole request, not just each socket read.
    """
    url = normalize_url(target)
    observed_at = datetime.now(timezone.utc)
    logger.debug("Check status: %s", url)

    timeout = timeout_ms / 1000
    try:
        resp = await asyncio.wait_for(_fetch_status(client, url, timeout), timeout)
    except (httpx.TimeoutException, asyncio.TimeoutError):
        return StatusRecord(
            url=url, available=False, observed_at=observed_at,
            message=f"Timed out ({timeout_ms}ms)",
        )
    except httpx.HTTPError as e:
        return StatusRecord(
            url=url, available=False, observed_at=observed_at,
            message=f"Connection error: {type(e).__name__}: {e}",
        )
    except Exception as e:
        # httpx.InvalidURL and friends sit outside the HTTPError hierarchy
        return StatusRecord(
            url=url, available=False, observed_at=observed_at,
            message=f"Error: {type(e).__name__}: {e}",
        )

    return StatusRecord(
        url=url,
        available=is_available(resp.status_code),
        observed_at=observed_at,
        status_code=resp.status_code,
        message=f"{resp.status_code} {resp.reason_phrase}".strip(),
    )


async def _probe_into(
    client: httpx.AsyncClient,
    target: str,
    timeout_ms: int,
    queue: asyncio.Queue[StatusRecord],
) -> None:
    record = await probe(client, target, timeout_ms)
    await queue.put(record)


async def dispatch(
    targets: Iterable[str],
    timeout_ms: int,
    queue: asyncio.Queue[StatusRecord],
    client: httpx.AsyncClient,
) -> int:
    """Probe every target concurrently, pushing each record onto ``queue``.

    No concurrency cap: one task per target. Returns the number of probes
    dispatched once they have all been queued.
    """
    tasks = [
        asyncio.create_task(_probe_into(client, t, timeout_ms, queue), name=f"probe-{t}")
        for t in targets
    ]
    for t in tasks:
        logger.debug("Run %s", t.get_name())
    if tasks:
        await asyncio.gather(*tasks)
    return len(tasks)
