"""Listing and push-subscription persistence on SQLite."""

from carwatch.storage.connection import get_connection
from carwatch.storage.listings import PersistConflict, bulk_insert, existing_identities
from carwatch.storage.schema import init_db

__all__ = [
    "PersistConflict",
    "bulk_insert",
    "existing_identities",
    "get_connection",
    "init_db",
]
