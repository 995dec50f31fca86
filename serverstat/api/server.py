"""FastAPI server for the status view."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from pathlib import Path

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from serverstat import __version__
from serverstat.api.status_routes import status_router
from serverstat.config import app_settings, load_settings
from serverstat.health.store import open_store

logger = logging.getLogger(__name__)

ASSETS_DIR = Path(__file__).parent.parent / "assets"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the store on startup; a bad config or unreachable DB aborts startup."""
    settings = load_settings(app_settings.settings_file)
    store = open_store(settings, pool_size=app_settings.store_pool_size)
    app.state.store = store
    logger.info("Server started OK")

    yield

    store.close()


def create_app() -> FastAPI:
    app = FastAPI(
        title="serverstat",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.refresh_window = timedelta(minutes=app_settings.refresh_window_minutes)

    app.include_router(status_router)
    app.mount("/assets", StaticFiles(directory=str(ASSETS_DIR)), name="assets")

    return app


app = create_app()
