"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
import pytest
import yaml

from serverstat.health.store import SqliteStatusStore


@pytest.fixture
def write_settings(tmp_path: Path) -> Callable[..., Path]:
    """Write a settings.yaml into tmp_path; keyword args override / drop keys."""

    def _write(**overrides: Any) -> Path:
        data: dict[str, Any] = {
            "host": "localhost",
            "port": 5432,
            "database": str(tmp_path / "status.db"),
            "user": "tester",
            "pass": "secret",
            "httptimeout_ms": 2000,
            "servers": ["example.com", "https://bad.invalid:9999"],
            "driver": "sqlite",
        }
        for key, value in overrides.items():
            key = "pass" if key == "password" else key
            if value is None:
                data.pop(key, None)
            else:
                data[key] = value
        path = tmp_path / "settings.yaml"
        path.write_text(yaml.safe_dump(data), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def store(tmp_path: Path) -> SqliteStatusStore:
    s = SqliteStatusStore(tmp_path / "status.db")
    yield s
    s.close()


@pytest.fixture
def routing_transport() -> Callable[..., httpx.MockTransport]:
    """Build a MockTransport keyed by host: an int is a status code, an exception is raised."""

    def _build(
        routes: dict[str, int | Exception],
        calls: list[httpx.Request] | None = None,
    ) -> httpx.MockTransport:

        def handler(request: httpx.Request) -> httpx.Response:
            if calls is not None:
                calls.append(request)
            outcome = routes.get(request.url.host, httpx.ConnectError("unknown host"))
            if isinstance(outcome, Exception):
                raise outcome
            return httpx.Response(outcome)

        return httpx.MockTransport(handler)

    return _build
