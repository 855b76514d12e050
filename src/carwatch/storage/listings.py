"""Listing store — batched existence lookup and all-or-nothing bulk insert."""

from __future__ import annotations

import logging
import sqlite3
from typing import Iterable

from carwatch.ingestion.normalize import Listing, Source
from carwatch.storage.connection import get_connection

logger = logging.getLogger(__name__)

# Stay well under SQLITE_MAX_VARIABLE_NUMBER on older builds.
_MAX_PARAMS = 500


class PersistConflict(Exception):
    """A bulk insert hit the identity_url uniqueness constraint.

    The whole batch was rolled back.
    """

    def __init__(self, message: str, identity_urls: list[str]) -> None:
        super().__init__(message)
        self.identity_urls = identity_urls


def existing_identities(database_path: str, urls: Iterable[str]) -> set[str]:
    """Return the subset of ``urls`` already stored.

    One query per call; only batches larger than the SQLite parameter
    limit are split.
    """
    wanted = sorted(set(urls))
    if not wanted:
        return set()

    found: set[str] = set()
    with get_connection(database_path) as conn:
        for start in range(0, len(wanted), _MAX_PARAMS):
            chunk = wanted[start : start + _MAX_PARAMS]
            placeholders = ", ".join("?" for _ in chunk)
            rows = conn.execute(
                f"SELECT identity_url FROM listings WHERE identity_url IN ({placeholders})",  # noqa: S608
                chunk,
            ).fetchall()
            found.update(row["identity_url"] for row in rows)
    return found


def bulk_insert(database_path: str, listings: list[Listing]) -> None:
    """Insert all listings in a single transaction.

    All-or-nothing: if any row violates the identity_url uniqueness
    constraint, nothing from the batch is kept and PersistConflict is raised.
    """
    if not listings:
        return

    rows = [
        (
            listing.id,
            listing.identity_url,
            listing.title,
            listing.source.value if listing.source is not None else None,
            listing.price_display,
            listing.price_cents,
            listing.image_url,
            listing.locality,
            listing.created_at,
        )
        for listing in listings
    ]
    try:
        with get_connection(database_path) as conn:
            conn.executemany(
                "INSERT INTO listings "
                "(id, identity_url, title, source, price_display, price_cents, "
                "image_url, locality, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                rows,
            )
    except sqlite3.IntegrityError as exc:
        urls = [listing.identity_url for listing in listings]
        raise PersistConflict(
            f"Bulk insert of {len(listings)} listing(s) rejected: {exc}", urls
        ) from exc

    logger.debug("Inserted %d listing(s)", len(listings))


def _row_to_listing(row: sqlite3.Row) -> Listing:
    return Listing(
        id=row["id"],
        identity_url=row["identity_url"],
        title=row["title"],
        source=Source(row["source"]) if row["source"] is not None else None,
        price_display=row["price_display"],
        price_cents=row["price_cents"],
        image_url=row["image_url"],
        locality=row["locality"],
        created_at=row["created_at"],
    )


def get_listing(database_path: str, identity_url: str) -> Listing | None:
    """Look up a single listing by its identity URL."""
    with get_connection(database_path) as conn:
        row = conn.execute(
            "SELECT * FROM listings WHERE identity_url = ?", (identity_url,)
        ).fetchone()
    return _row_to_listing(row) if row is not None else None


def count_listings(database_path: str, source: Source | None = None) -> int:
    """Count stored listings, optionally for a single source.

    Rows without a source are only included in the unfiltered count.
    """
    with get_connection(database_path) as conn:
        if source is None:
            row = conn.execute("SELECT COUNT(*) FROM listings").fetchone()
        else:
            row = conn.execute(
                "SELECT COUNT(*) FROM listings WHERE source = ?", (source.value,)
            ).fetchone()
    return row[0]
