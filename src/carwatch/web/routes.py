"""API route handlers for the carwatch web API."""

from __future__ import annotations

import asyncio
import logging
import sqlite3

from fastapi import APIRouter, HTTPException, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from carwatch.ingestion.normalize import Source
from carwatch.notify.broadcast import NOTIFICATIONS_TOPIC
from carwatch.storage.connection import get_connection
from carwatch.storage.subscriptions import upsert_subscription
from carwatch.web.models import (
    ListingListResponse,
    ListingOut,
    PollStatusResponse,
    PollTriggerResponse,
    PushSubscriptionRequest,
    PushSubscriptionResponse,
    StatsResponse,
)
from carwatch.web.queries import get_stats, list_listings

logger = logging.getLogger(__name__)

router = APIRouter()
health_router = APIRouter()
ws_router = APIRouter()

_LISTENER_QUEUE_SIZE = 100


@health_router.get("/health")
def health(request: Request) -> JSONResponse:
    """Check database connectivity and return health status."""
    database_path = request.app.state.database_path
    try:
        with get_connection(database_path) as conn:
            conn.execute("SELECT 1")
        return JSONResponse({"status": "healthy", "database": "ok"})
    except (sqlite3.Error, OSError) as exc:
        logger.warning("Health check failed: %s", exc)
        return JSONResponse(
            {"status": "unhealthy", "database": "error", "detail": str(exc)},
            status_code=503,
        )


@router.get("/stats", response_model=StatsResponse)
def stats(request: Request) -> StatsResponse:
    database_path = request.app.state.database_path
    data = get_stats(database_path)
    return StatsResponse(**data)


@router.get("/listings", response_model=ListingListResponse)
def listings(
    request: Request,
    source: Source | None = None,
    min_price: int | None = Query(None, ge=0),
    max_price: int | None = Query(None, ge=0),
    search: str | None = None,
    limit: int = Query(100, ge=1, le=500),
) -> ListingListResponse:
    """Newest listings first. Prices are whole currency units."""
    database_path = request.app.state.database_path

    filters: dict[str, object] = {}
    if source is not None:
        filters["source"] = source.value
    if min_price is not None:
        filters["min_price_cents"] = min_price * 100
    if max_price is not None:
        filters["max_price_cents"] = max_price * 100
    if search:
        filters["search"] = search

    rows, total = list_listings(database_path, filters=filters, limit=limit)
    return ListingListResponse(listings=[ListingOut(**r) for r in rows], total=total)


@router.post("/push/subscriptions", response_model=PushSubscriptionResponse)
def create_push_subscription(
    request: Request, body: PushSubscriptionRequest
) -> JSONResponse:
    database_path = request.app.state.database_path
    _, created = upsert_subscription(
        database_path, body.endpoint, body.keys.p256dh, body.keys.auth
    )
    if created:
        logger.info("Registered new push subscription")
    return JSONResponse(
        PushSubscriptionResponse(success=True, created=created).model_dump(),
        status_code=201 if created else 200,
    )


@router.get("/push/vapid-public-key")
def vapid_public_key(request: Request) -> JSONResponse:
    public_key = request.app.state.vapid_public_key
    if not public_key:
        return JSONResponse(
            {"error": "VAPID public key not configured"}, status_code=500
        )
    return JSONResponse({"publicKey": public_key})


def _poll_scheduler(request: Request):
    poll_scheduler = request.app.state.poll_scheduler
    if poll_scheduler is None:
        raise HTTPException(status_code=503, detail="Polling is not available")
    return poll_scheduler


def _trigger(poll_scheduler, sources) -> dict[str, str]:
    try:
        return {s.value: poll_scheduler.trigger(s) for s in sources}
    except RuntimeError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc


@router.post("/poll", response_model=PollTriggerResponse)
def trigger_all(request: Request) -> PollTriggerResponse:
    poll_scheduler = _poll_scheduler(request)
    outcome = _trigger(poll_scheduler, poll_scheduler.sources)
    return PollTriggerResponse(status="ok", sources=outcome)


@router.post("/poll/{source}", response_model=PollTriggerResponse)
def trigger_source(request: Request, source: Source) -> PollTriggerResponse:
    poll_scheduler = _poll_scheduler(request)
    if source not in poll_scheduler.sources:
        raise HTTPException(status_code=404, detail="Source not polled")
    return PollTriggerResponse(
        status="ok", sources=_trigger(poll_scheduler, [source])
    )


@router.get("/poll/status", response_model=PollStatusResponse)
def poll_status(request: Request) -> PollStatusResponse:
    poll_scheduler = request.app.state.poll_scheduler
    if poll_scheduler is None:
        return PollStatusResponse(running=False, sources=[])
    return PollStatusResponse(
        running=poll_scheduler.running, sources=poll_scheduler.status()
    )


@ws_router.websocket("/ws/notifications")
async def notifications(websocket: WebSocket) -> None:
    """Stream new-listing events published after the client connected."""
    hub = websocket.app.state.broadcast_hub
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue[dict] = asyncio.Queue(maxsize=_LISTENER_QUEUE_SIZE)

    def _put(message: dict) -> None:
        try:
            queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning("Notification listener queue full; dropping event")

    def _listener(message: dict) -> None:
        loop.call_soon_threadsafe(_put, message)

    async def _forward() -> None:
        while True:
            message = await queue.get()
            await websocket.send_json(message)

    # Subscribe before accepting so nothing published after the handshake is missed.
    unsubscribe = hub.subscribe(NOTIFICATIONS_TOPIC, _listener)
    sender: asyncio.Task | None = None
    try:
        await websocket.accept()
        sender = asyncio.create_task(_forward())
        # Inbound frames are ignored; receiving is how a disconnect is noticed.
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        if sender is not None:
            sender.cancel()
        unsubscribe()
