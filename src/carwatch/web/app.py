"""FastAPI application factory for the carwatch web API."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import FastAPI

from carwatch.notify.broadcast import BroadcastHub
from carwatch.web.config import WebConfig
from carwatch.web.routes import health_router, router, ws_router

if TYPE_CHECKING:
    from carwatch.scheduler import PollScheduler


def create_app(
    config: WebConfig,
    *,
    broadcast_hub: BroadcastHub | None = None,
    poll_scheduler: PollScheduler | None = None,
    lifespan=None,
) -> FastAPI:
    """Build and return a configured FastAPI application."""
    app = FastAPI(title="carwatch", docs_url="/api/docs", lifespan=lifespan)
    app.state.database_path = config.database_path
    app.state.vapid_public_key = config.vapid_public_key
    app.state.broadcast_hub = broadcast_hub or BroadcastHub()
    app.state.poll_scheduler = poll_scheduler
    app.include_router(health_router)
    app.include_router(router, prefix="/api/v1")
    app.include_router(ws_router)
    return app
