"""Tests for carwatch.storage — schema, listing store and push subscriptions."""

from __future__ import annotations

import sqlite3

import pytest

from carwatch.ingestion.normalize import Source, make_raw_listing, to_listing
from carwatch.storage.connection import get_connection
from carwatch.storage.listings import (
    PersistConflict,
    bulk_insert,
    count_listings,
    existing_identities,
    get_listing,
)
from carwatch.storage.schema import init_db
from carwatch.storage.subscriptions import (
    count_subscriptions,
    delete_subscription,
    list_subscriptions,
    upsert_subscription,
)


def _listing(url, title="Car", source=Source.BAZOS, price="150 000 Kč"):
    return to_listing(
        make_raw_listing(source, identity_url=url, title=title, price_display=price)
    )


@pytest.fixture
def db_path(tmp_path):
    path = str(tmp_path / "test.db")
    init_db(path)
    return path


class TestInitDb:
    def test_creates_tables(self, db_path):
        with get_connection(db_path) as conn:
            tables = {
                row[0]
                for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
            }
        assert {"listings", "push_subscriptions"} <= tables

    def test_idempotent(self, db_path):
        init_db(db_path)
        init_db(db_path)

    def test_rejects_empty_title(self, db_path):
        with pytest.raises(sqlite3.IntegrityError):
            with get_connection(db_path) as conn:
                conn.execute(
                    "INSERT INTO listings (id, identity_url, title, created_at) "
                    "VALUES ('1', 'https://x/1', '', '2025-01-01T00:00:00+00:00')"
                )

    def test_rejects_unknown_source(self, db_path):
        with pytest.raises(sqlite3.IntegrityError):
            with get_connection(db_path) as conn:
                conn.execute(
                    "INSERT INTO listings (id, identity_url, title, source, created_at) "
                    "VALUES ('1', 'https://x/1', 'Car', 'mobile', '2025-01-01T00:00:00+00:00')"
                )

    def test_allows_null_source(self, db_path):
        with get_connection(db_path) as conn:
            conn.execute(
                "INSERT INTO listings (id, identity_url, title, source, created_at) "
                "VALUES ('1', 'https://x/1', 'Legacy', NULL, '2025-01-01T00:00:00+00:00')"
            )
        legacy = get_listing(db_path, "https://x/1")
        assert legacy.source is None


class TestBulkInsert:
    def test_inserts_all(self, db_path):
        bulk_insert(db_path, [_listing("https://x/1"), _listing("https://x/2", source=Source.SAUTO)])

        assert count_listings(db_path) == 2
        assert count_listings(db_path, Source.BAZOS) == 1
        assert count_listings(db_path, Source.SAUTO) == 1

    def test_round_trips_fields(self, db_path):
        original = _listing("https://x/1", title="Škoda Octavia")
        bulk_insert(db_path, [original])

        stored = get_listing(db_path, "https://x/1")

        assert stored == original

    def test_empty_batch_is_noop(self, db_path):
        bulk_insert(db_path, [])
        assert count_listings(db_path) == 0

    def test_conflict_rolls_back_whole_batch(self, db_path):
        bulk_insert(db_path, [_listing("https://x/1")])

        with pytest.raises(PersistConflict) as excinfo:
            bulk_insert(db_path, [_listing("https://x/2"), _listing("https://x/1")])

        assert count_listings(db_path) == 1
        assert get_listing(db_path, "https://x/2") is None
        assert "https://x/1" in excinfo.value.identity_urls

    def test_duplicate_inside_batch_conflicts(self, db_path):
        with pytest.raises(PersistConflict):
            bulk_insert(db_path, [_listing("https://x/1"), _listing("https://x/1")])
        assert count_listings(db_path) == 0


class TestExistingIdentities:
    def test_returns_stored_subset(self, db_path):
        bulk_insert(db_path, [_listing("https://x/1"), _listing("https://x/3")])

        found = existing_identities(db_path, {"https://x/1", "https://x/2", "https://x/3"})

        assert found == {"https://x/1", "https://x/3"}

    def test_empty_input(self, db_path):
        assert existing_identities(db_path, []) == set()

    def test_large_batch(self, db_path):
        bulk_insert(db_path, [_listing(f"https://x/{i}") for i in range(0, 1200, 2)])

        found = existing_identities(db_path, [f"https://x/{i}" for i in range(1200)])

        assert len(found) == 600


class TestPushSubscriptions:
    def test_upsert_creates(self, db_path):
        sub, created = upsert_subscription(db_path, "https://push.example/1", "p", "a")

        assert created is True
        assert sub.endpoint == "https://push.example/1"
        assert sub.to_subscription_info() == {
            "endpoint": "https://push.example/1",
            "keys": {"p256dh": "p", "auth": "a"},
        }
        assert count_subscriptions(db_path) == 1

    def test_upsert_existing_endpoint(self, db_path):
        first, _ = upsert_subscription(db_path, "https://push.example/1", "p", "a")
        second, created = upsert_subscription(db_path, "https://push.example/1", "p2", "a2")

        assert created is False
        assert second.id == first.id
        assert second.p256dh == "p"
        assert count_subscriptions(db_path) == 1

    def test_list_and_delete(self, db_path):
        a, _ = upsert_subscription(db_path, "https://push.example/a", "p", "a")
        upsert_subscription(db_path, "https://push.example/b", "p", "a")

        assert len(list_subscriptions(db_path)) == 2
        assert delete_subscription(db_path, a.id) is True
        assert delete_subscription(db_path, a.id) is False
        assert [s.endpoint for s in list_subscriptions(db_path)] == ["https://push.example/b"]
