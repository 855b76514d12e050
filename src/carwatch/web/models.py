"""Pydantic v2 request/response models for the carwatch web API."""

from __future__ import annotations

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------
class SourceStats(BaseModel):
    total: int
    today: int


class StatsResponse(BaseModel):
    total_listings: int
    sources: dict[str, SourceStats]
    push_subscriptions: int


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------
class ListingOut(BaseModel):
    id: str
    identity_url: str
    title: str
    source: str | None
    price_display: str | None
    price_cents: int | None
    image_url: str | None
    locality: str | None
    created_at: str


class ListingListResponse(BaseModel):
    listings: list[ListingOut]
    total: int


# ---------------------------------------------------------------------------
# Push subscriptions
# ---------------------------------------------------------------------------
class PushKeys(BaseModel):
    p256dh: str = Field(min_length=1)
    auth: str = Field(min_length=1)


class PushSubscriptionRequest(BaseModel):
    endpoint: str = Field(min_length=1)
    keys: PushKeys


class PushSubscriptionResponse(BaseModel):
    success: bool
    created: bool


# ---------------------------------------------------------------------------
# Polling
# ---------------------------------------------------------------------------
class PollTriggerResponse(BaseModel):
    status: str
    sources: dict[str, str]


class PollSourceStatus(BaseModel):
    source: str
    scheduled: bool
    next_run_at: str | None
    last_started_at: str | None
    last_finished_at: str | None
    last_fetched: int | None
    last_inserted: int | None
    last_error: str | None


class PollStatusResponse(BaseModel):
    running: bool
    sources: list[PollSourceStatus]
