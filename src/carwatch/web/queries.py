"""Read-only query functions for the web API."""

from __future__ import annotations

from datetime import datetime, timezone

from carwatch.ingestion.normalize import Source
from carwatch.web.deps import get_readonly_connection

_LISTING_COLUMNS = (
    "id, identity_url, title, source, price_display, price_cents, "
    "image_url, locality, created_at"
)


def _start_of_today_utc() -> str:
    now = datetime.now(timezone.utc)
    return now.replace(hour=0, minute=0, second=0, microsecond=0).isoformat()


# ---------------------------------------------------------------------------
# get_stats
# ---------------------------------------------------------------------------
def get_stats(database_path: str) -> dict:
    """Return per-source listing counts, overall and since UTC midnight.

    Listings without a source only count toward ``total_listings``.
    """
    today = _start_of_today_utc()
    with get_readonly_connection(database_path) as conn:
        total_listings = conn.execute("SELECT COUNT(*) FROM listings").fetchone()[0]

        rows = conn.execute(
            "SELECT source, COUNT(*) AS total, "
            "SUM(CASE WHEN created_at >= ? THEN 1 ELSE 0 END) AS today "
            "FROM listings WHERE source IS NOT NULL GROUP BY source",
            (today,),
        ).fetchall()

        push_subscriptions = conn.execute(
            "SELECT COUNT(*) FROM push_subscriptions"
        ).fetchone()[0]

    by_source = {source.value: {"total": 0, "today": 0} for source in Source}
    for r in rows:
        by_source[r["source"]] = {"total": r["total"], "today": r["today"] or 0}

    return {
        "total_listings": total_listings,
        "sources": by_source,
        "push_subscriptions": push_subscriptions,
    }


# ---------------------------------------------------------------------------
# list_listings
# ---------------------------------------------------------------------------
def list_listings(
    database_path: str,
    *,
    filters: dict | None = None,
    limit: int = 100,
) -> tuple[list[dict], int]:
    """Return the newest listings matching the filters, plus the match count.

    Supported filters: ``source``, ``min_price_cents``, ``max_price_cents``,
    ``search`` (case-insensitive substring of the title).
    """
    filters = filters or {}

    conditions: list[str] = []
    params: list[object] = []

    if "source" in filters:
        conditions.append("source = ?")
        params.append(filters["source"])

    if "min_price_cents" in filters:
        conditions.append("price_cents >= ?")
        params.append(filters["min_price_cents"])

    if "max_price_cents" in filters:
        conditions.append("price_cents <= ?")
        params.append(filters["max_price_cents"])

    if "search" in filters:
        conditions.append("title LIKE ?")
        params.append(f"%{filters['search']}%")

    where_clause = ""
    if conditions:
        where_clause = "WHERE " + " AND ".join(conditions)

    with get_readonly_connection(database_path) as conn:
        total = conn.execute(
            f"SELECT COUNT(*) FROM listings {where_clause}", params  # noqa: S608
        ).fetchone()[0]
        rows = conn.execute(
            f"SELECT {_LISTING_COLUMNS} FROM listings {where_clause} "  # noqa: S608
            f"ORDER BY created_at DESC LIMIT ?",
            [*params, limit],
        ).fetchall()

    listings = [
        {
            "id": r["id"],
            "identity_url": r["identity_url"],
            "title": r["title"],
            "source": r["source"],
            "price_display": r["price_display"],
            "price_cents": r["price_cents"],
            "image_url": r["image_url"],
            "locality": r["locality"],
            "created_at": r["created_at"],
        }
        for r in rows
    ]
    return listings, total
