"""Shared test fixtures and helpers for okra tests."""

import sqlite3
import tempfile
from pathlib import Path

import pytest

from okra.auth import SessionAuth
from okra.ledger import ActivityLedger
from okra.storage import connect

# 2025-01-15T00:00:00Z
T0 = 1_736_899_200_000


class FakeClock:
    """Deterministic epoch-millisecond clock."""

    def __init__(self, now: int = T0):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, millis: int) -> None:
        self.now += millis


# --- Fixtures ---


@pytest.fixture
def temp_dir():
    """Provide a temporary directory, cleaned up after the test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def conn():
    """Provide a private in-memory SQLite connection."""
    connection = connect(":memory:")
    yield connection
    connection.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ledger(clock):
    """Provide an empty in-memory ledger driven by the fake clock."""
    with ActivityLedger(":memory:", clock=clock) as ledger:
        yield ledger


@pytest.fixture
def auth(clock):
    """Provide an empty in-memory identity table driven by the fake clock."""
    with SessionAuth(":memory:", clock=clock) as auth:
        yield auth


# --- Helper Functions (not fixtures) ---


def drain(fetch_page, page_size: int, cursor_of) -> list:
    """Collect every page until a short page is returned.

    Args:
        fetch_page: Callable taking (cursor, limit) and returning a page
        page_size: Limit passed to every call
        cursor_of: Maps the last item of a page to the next cursor

    Returns:
        All items, in the order the pages produced them.
    """
    items = []
    cursor = 0
    for _ in range(10_000):
        page = fetch_page(cursor, page_size)
        items.extend(page)
        if len(page) < page_size:
            return items
        cursor = cursor_of(page[-1])
    raise AssertionError("pagination did not terminate")


def table_names(connection: sqlite3.Connection) -> set[str]:
    rows = connection.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()
    return {row[0] for row in rows}
