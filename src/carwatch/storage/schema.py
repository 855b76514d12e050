"""Database schema definition and initialization."""

from __future__ import annotations

import logging

from carwatch.storage.connection import get_connection

logger = logging.getLogger(__name__)

_SCHEMA_SQL = """\
-- Listings ingested from the car sources
CREATE TABLE IF NOT EXISTS listings (
    id              TEXT PRIMARY KEY,
    identity_url    TEXT NOT NULL UNIQUE,
    title           TEXT NOT NULL CHECK (length(title) > 0),
    source          TEXT CHECK (source IS NULL OR source IN ('bazos', 'sauto')),
    price_display   TEXT,
    price_cents     INTEGER,
    image_url       TEXT,
    locality        TEXT,
    created_at      TEXT NOT NULL
);

-- Web Push endpoints registered by browsers
CREATE TABLE IF NOT EXISTS push_subscriptions (
    id              TEXT PRIMARY KEY,
    endpoint        TEXT NOT NULL UNIQUE,
    p256dh          TEXT NOT NULL,
    auth            TEXT NOT NULL,
    created_at      TEXT NOT NULL
);

-- Indexes: listings
CREATE INDEX IF NOT EXISTS idx_listings_source ON listings(source);
CREATE INDEX IF NOT EXISTS idx_listings_created_at ON listings(created_at);
CREATE INDEX IF NOT EXISTS idx_listings_price_cents ON listings(price_cents);
"""


def init_db(database_path: str) -> None:
    """Create all tables and indexes if they do not already exist."""
    with get_connection(database_path) as conn:
        conn.executescript(_SCHEMA_SQL)
    logger.info("Database initialized at %s", database_path)
