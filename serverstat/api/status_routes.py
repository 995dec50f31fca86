"""Status view routes.

Endpoints:
  GET /         : HTML page with a live DB reachability flag
  GET /refresh  : JSON array of rows observed within the refresh window

Only GET is routed for /refresh; any other method is answered with 405
by the router before the store is touched.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from pathlib import Path
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse, Response
from fastapi.templating import Jinja2Templates
from jinja2 import TemplateError

from ..health.store import StatusStore, StoreError

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent.parent / "templates"

templates = Jinja2Templates(directory=str(TEMPLATE_DIR))

status_router = APIRouter()


def _store(request: Request) -> StatusStore:
    return request.app.state.store


@status_router.get("/")
def index(request: Request, name: str = "Operator") -> Response:
    """Render the status page."""
    logger.debug("Serving /")
    context = {
        "name": name,
        "db_status": _store(request).ping(),
    }
    try:
        return templates.TemplateResponse(request, "index.html", context)
    except TemplateError as e:
        logger.exception("Template rendering failed")
        return PlainTextResponse(str(e), status_code=500)


@status_router.get("/refresh", response_model=None)
def refresh(request: Request) -> list[dict[str, Any]] | Response:
    """Rows observed strictly within the trailing refresh window."""
    logger.debug("Serving /refresh")
    window: timedelta = request.app.state.refresh_window
    try:
        return _store(request).recent(window)
    except StoreError as e:
        logger.error("Refresh query failed: %s", e)
        return PlainTextResponse(str(e), status_code=500)
