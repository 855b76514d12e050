"""Push subscription storage."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from carwatch.storage.connection import get_connection


@dataclass(frozen=True)
class PushSubscription:
    """A browser Web Push endpoint with its encryption keys."""

    id: str
    endpoint: str
    p256dh: str
    auth: str

    def to_subscription_info(self) -> dict:
        """Shape expected by pywebpush."""
        return {
            "endpoint": self.endpoint,
            "keys": {"p256dh": self.p256dh, "auth": self.auth},
        }


def list_subscriptions(database_path: str) -> list[PushSubscription]:
    with get_connection(database_path) as conn:
        rows = conn.execute(
            "SELECT id, endpoint, p256dh, auth FROM push_subscriptions ORDER BY created_at"
        ).fetchall()
    return [
        PushSubscription(
            id=row["id"], endpoint=row["endpoint"], p256dh=row["p256dh"], auth=row["auth"]
        )
        for row in rows
    ]


def upsert_subscription(
    database_path: str, endpoint: str, p256dh: str, auth: str
) -> tuple[PushSubscription, bool]:
    """Find a subscription by endpoint or create it.

    Returns the subscription and whether it was newly created. Keys of an
    existing endpoint are left untouched.
    """
    now = datetime.now(timezone.utc).isoformat()
    with get_connection(database_path) as conn:
        cursor = conn.execute(
            "INSERT OR IGNORE INTO push_subscriptions (id, endpoint, p256dh, auth, created_at) "
            "VALUES (?, ?, ?, ?, ?)",
            (str(uuid.uuid4()), endpoint, p256dh, auth, now),
        )
        created = cursor.rowcount == 1
        row = conn.execute(
            "SELECT id, endpoint, p256dh, auth FROM push_subscriptions WHERE endpoint = ?",
            (endpoint,),
        ).fetchone()
    subscription = PushSubscription(
        id=row["id"], endpoint=row["endpoint"], p256dh=row["p256dh"], auth=row["auth"]
    )
    return subscription, created


def delete_subscription(database_path: str, subscription_id: str) -> bool:
    """Delete a subscription. Returns True if a row was removed."""
    with get_connection(database_path) as conn:
        cursor = conn.execute(
            "DELETE FROM push_subscriptions WHERE id = ?", (subscription_id,)
        )
    return cursor.rowcount > 0


def count_subscriptions(database_path: str) -> int:
    with get_connection(database_path) as conn:
        row = conn.execute("SELECT COUNT(*) FROM push_subscriptions").fetchone()
    return row[0]
