"""Shared SQLite helpers: WAL mode, busy timeout, row_factory defaults."""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

# Seconds a writer waits on a locked database before sqlite3 raises
BUSY_TIMEOUT = 5.0


@contextmanager
def wal_connect(db_path: str | Path, row_factory: bool = False) -> Iterator[sqlite3.Connection]:
    """Open SQLite connection with WAL journal mode for one block of work.

    The block commits on success, rolls back on error, and the connection is
    closed either way. Run ``BEGIN IMMEDIATE`` first inside the block when
    reads and writes must see the same snapshot.

    Args:
        db_path: Path to database file.
        row_factory: If True, set conn.row_factory = sqlite3.Row.
    """
    conn = sqlite3.connect(str(db_path), timeout=BUSY_TIMEOUT)
    try:
        conn.execute("PRAGMA journal_mode=WAL")
        if row_factory:
            conn.row_factory = sqlite3.Row
        with conn:
            yield conn
    finally:
        conn.close()
