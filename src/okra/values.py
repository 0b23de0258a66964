"""Deduplicating text store ("intern table") backed by SQLite.

Each distinct text is stored once and gets a stable integer id. Ids start
at 1 and are never reused, so 0 never names a row.
"""

from __future__ import annotations

import logging
import re
import sqlite3
from typing import Iterable

from .constants import DEFAULT_PAGE_SIZE
from .errors import DuplicateKey, NotFound
from .models import InternedValue
from .storage import placeholders, storage_errors

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_ESCAPE = "ESCAPE '\\'"


def check_identifier(name: str) -> str:
    """Reject table/column names that are not plain SQL identifiers."""
    if not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return name


def like_pattern(substring: str) -> str:
    """Build a LIKE pattern matching `substring` literally anywhere."""
    escaped = substring.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def check_limit(limit: int) -> int:
    if limit < 0:
        raise ValueError(f"limit must be >= 0, got {limit}")
    return limit


class ValueStore:
    """Text values with stable ids, unique on text."""

    def __init__(self, conn: sqlite3.Connection, table: str, column: str):
        """Bind to `table` on `conn`, creating it if needed.

        Args:
            conn: Connection shared with the other stores of the same file
            table: Table name (owned exclusively by this store)
            column: Name of the text column
        """
        self.conn = conn
        self.table = check_identifier(table)
        self.column = check_identifier(column)
        self._init_table()

    def _init_table(self) -> None:
        with storage_errors(f"create table {self.table}"):
            self.conn.execute(
                f'CREATE TABLE IF NOT EXISTS "{self.table}" ('
                f"id INTEGER PRIMARY KEY AUTOINCREMENT, "
                f'"{self.column}" TEXT NOT NULL UNIQUE)'
            )
            self.conn.commit()

    def _row(self, row: sqlite3.Row) -> InternedValue:
        return InternedValue(id=row[0], text=row[1])

    def create(self, text: str, commit: bool = True) -> int:
        """Intern `text`, returning its id.

        Returns the existing id when the text is already stored; never
        creates a second row for the same text.
        """
        with storage_errors(f"create in {self.table}"):
            cursor = self.conn.execute(
                f'INSERT OR IGNORE INTO "{self.table}" ("{self.column}") VALUES (?)',
                (text,),
            )
            if cursor.rowcount == 1:
                new_id = cursor.lastrowid
            else:
                new_id = self.find(text)
            if commit:
                self.conn.commit()
        return new_id

    def add(self, text: str, commit: bool = True) -> int:
        """Insert `text` as a new row.

        Raises:
            DuplicateKey: If the text is already stored.
        """
        try:
            with storage_errors(f"add to {self.table}"):
                cursor = self.conn.execute(
                    f'INSERT INTO "{self.table}" ("{self.column}") VALUES (?)',
                    (text,),
                )
                if commit:
                    self.conn.commit()
        except DuplicateKey:
            raise DuplicateKey(f"{self.table} already contains {text!r}") from None
        return cursor.lastrowid

    def get(self, value_id: int) -> str:
        """Return the text stored under `value_id`.

        Raises:
            NotFound: If no row has this id.
        """
        with storage_errors(f"get from {self.table}"):
            row = self.conn.execute(
                f'SELECT "{self.column}" FROM "{self.table}" WHERE id = ?',
                (value_id,),
            ).fetchone()
        if row is None:
            raise NotFound(self.table, value_id)
        return row[0]

    def find(self, text: str) -> int:
        """Return the id of `text`.

        Raises:
            NotFound: If the text is not stored.
        """
        with storage_errors(f"find in {self.table}"):
            row = self.conn.execute(
                f'SELECT id FROM "{self.table}" WHERE "{self.column}" = ?',
                (text,),
            ).fetchone()
        if row is None:
            raise NotFound(self.table, text)
        return row[0]

    def exists(self, value_id: int) -> bool:
        with storage_errors(f"exists in {self.table}"):
            row = self.conn.execute(
                f'SELECT 1 FROM "{self.table}" WHERE id = ?', (value_id,)
            ).fetchone()
        return row is not None

    def search_page(
        self,
        substring: str,
        after_id: int = 0,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> list[InternedValue]:
        """Return one page of values containing `substring`.

        Matching is case-insensitive for ASCII and treats LIKE wildcards in
        `substring` literally. An empty substring matches every row.

        Args:
            substring: Text to look for
            after_id: Cursor; only ids strictly greater are returned (0 = start)
            limit: Maximum rows in the page

        Returns:
            Rows in ascending id order. A page shorter than `limit` is the last.
        """
        if check_limit(limit) == 0:
            return []
        with storage_errors(f"search {self.table}"):
            rows = self.conn.execute(
                f'SELECT id, "{self.column}" FROM "{self.table}" '
                f'WHERE id > ? AND "{self.column}" LIKE ? {_ESCAPE} '
                f"ORDER BY id LIMIT ?",
                (after_id, like_pattern(substring), limit),
            ).fetchall()
        return [self._row(row) for row in rows]

    def get_bulk(self, ids: Iterable[int]) -> list[InternedValue]:
        """Look up several ids at once; missing ids are omitted."""
        wanted = sorted(set(ids))
        if not wanted:
            return []
        with storage_errors(f"bulk get from {self.table}"):
            rows = self.conn.execute(
                f'SELECT id, "{self.column}" FROM "{self.table}" '
                f"WHERE id IN ({placeholders(len(wanted))}) ORDER BY id",
                wanted,
            ).fetchall()
        return [self._row(row) for row in rows]

    def count(self) -> int:
        with storage_errors(f"count {self.table}"):
            return self.conn.execute(f'SELECT COUNT(*) FROM "{self.table}"').fetchone()[0]
