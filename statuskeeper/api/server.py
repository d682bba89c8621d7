"""FastAPI server exposing the uptime monitor."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from statuskeeper import __version__
from statuskeeper.api.status_routes import status_router
from statuskeeper.config import settings
from statuskeeper.monitor.service import UptimeMonitor

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load the ledger and start probing on startup; flush on shutdown."""
    monitor = UptimeMonitor.from_settings(settings)
    app.state.monitor = monitor
    monitor.start()
    logger.info("Monitoring %s (ledger: %s)", settings.target_url, settings.ledger_path)

    yield

    await monitor.stop()


def create_app(static_dir: Path | str | None = None) -> FastAPI:
    app = FastAPI(
        title="StatusKeeper",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    app.include_router(status_router)

    # Dashboard assets, when shipped alongside the server
    static_path = Path(static_dir if static_dir is not None else settings.static_dir)
    if static_path.is_dir():
        app.mount("/", StaticFiles(directory=str(static_path), html=True), name="static")

    return app


app = create_app()
