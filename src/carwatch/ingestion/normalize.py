"""Listing shapes shared by adapters, the store and the notifiers."""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

_NON_DIGIT_RE = re.compile(r"\D")


class Source(str, Enum):
    """Supported listing sources."""

    BAZOS = "bazos"
    SAUTO = "sauto"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]


_DISPLAY_NAMES = {
    Source.BAZOS: "Bazos.cz",
    Source.SAUTO: "Sauto.cz",
}


def parse_price_to_cents(price_display: str | None) -> int | None:
    """Parse a formatted price into integer cents.

    "150 000 Kč" -> 15000000. Every non-digit character is dropped, so
    "150,000 Kč" gives the same result. Returns None when nothing numeric
    is left ("Dohodou", "on request", empty string).
    """
    if not price_display:
        return None
    digits = _NON_DIGIT_RE.sub("", price_display)
    if not digits:
        return None
    return int(digits) * 100


@dataclass(frozen=True)
class RawListing:
    """Listing as emitted by a source adapter, before persistence."""

    identity_url: str
    title: str
    source: Source
    price_display: str | None = None
    price_cents: int | None = None
    image_url: str | None = None
    locality: str | None = None


@dataclass(frozen=True)
class Listing:
    """Persisted listing. Created once per identity URL and never mutated."""

    id: str
    identity_url: str
    title: str
    source: Source | None
    price_display: str | None
    price_cents: int | None
    image_url: str | None
    locality: str | None
    created_at: str


def make_raw_listing(
    source: Source,
    *,
    identity_url: str,
    title: str,
    price_display: str | None = None,
    image_url: str | None = None,
    locality: str | None = None,
) -> RawListing:
    """Build a RawListing, deriving price_cents from price_display."""
    price_display = price_display.strip() if price_display else None
    return RawListing(
        identity_url=identity_url,
        title=title.strip(),
        source=source,
        price_display=price_display or None,
        price_cents=parse_price_to_cents(price_display),
        image_url=image_url or None,
        locality=locality or None,
    )


def to_listing(raw: RawListing) -> Listing:
    """Stamp a RawListing with an id and ingestion time."""
    return Listing(
        id=str(uuid.uuid4()),
        identity_url=raw.identity_url,
        title=raw.title,
        source=raw.source,
        price_display=raw.price_display,
        price_cents=raw.price_cents,
        image_url=raw.image_url,
        locality=raw.locality,
        created_at=datetime.now(timezone.utc).isoformat(),
    )
