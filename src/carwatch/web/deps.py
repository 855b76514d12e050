"""Read-only SQLite access for API queries."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from typing import Generator

# Poll loops commit every few seconds; readers wait briefly instead of erroring.
_READ_BUSY_TIMEOUT_SECONDS = 5.0


@contextmanager
def get_readonly_connection(database_path: str) -> Generator[sqlite3.Connection, None, None]:
    """Yield a connection that cannot write to the listing store.

    The file is opened in URI ``mode=ro`` with ``query_only`` on, so an API
    handler can never alter listings or subscriptions by accident.
    """
    conn = sqlite3.connect(
        f"file:{database_path}?mode=ro", uri=True, timeout=_READ_BUSY_TIMEOUT_SECONDS
    )
    conn.row_factory = sqlite3.Row
    try:
        conn.execute("PRAGMA query_only=ON")
        yield conn
    finally:
        conn.close()
