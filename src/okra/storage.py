"""SQLite connection handling shared by every store.

All stores in one ledger file share a single connection; each request or
command opens its own and closes it when done.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from .errors import DuplicateKey, StorageUnavailable

logger = logging.getLogger(__name__)

MEMORY = ":memory:"


def connect(path: str | Path) -> sqlite3.Connection:
    """Open a SQLite connection configured for okra stores.

    Args:
        path: Database file, or ":memory:" for a private in-memory store.

    Raises:
        StorageUnavailable: If the file cannot be opened.
    """
    target = str(path)
    try:
        if target != MEMORY:
            Path(target).parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(target, timeout=30.0, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA busy_timeout=30000")
        if target != MEMORY:
            # WAL lets readers proceed while another connection writes
            conn.execute("PRAGMA journal_mode=WAL")
    except (sqlite3.Error, OSError) as e:
        logger.error(f"Cannot open store {target}: {e}")
        raise StorageUnavailable(f"cannot open store {target}: {e}") from e
    return conn


@contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    """Translate sqlite3 errors raised inside the block.

    Unique-constraint violations become DuplicateKey; every other
    sqlite3 error becomes StorageUnavailable.
    """
    try:
        yield
    except sqlite3.IntegrityError as e:
        if "UNIQUE" in str(e).upper():
            raise DuplicateKey(f"{operation}: {e}") from e
        logger.error(f"{operation} failed: {e}")
        raise StorageUnavailable(f"{operation}: {e}") from e
    except sqlite3.Error as e:
        logger.error(f"{operation} failed: {e}")
        raise StorageUnavailable(f"{operation}: {e}") from e


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Group several writes into one commit, rolling back on any error."""
    try:
        yield conn
    except BaseException:
        conn.rollback()
        raise
    else:
        conn.commit()


def placeholders(count: int) -> str:
    return ", ".join("?" for _ in range(count))
