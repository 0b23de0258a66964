"""Ordered key -> value multi-map backed by SQLite.

A key may map to several values and the same (key, value) pair may be
stored more than once; every row gets a surrogate id recording insertion
order.
"""

from __future__ import annotations

import logging
import sqlite3

from .constants import DEFAULT_PAGE_SIZE
from .errors import NotFound
from .models import PairRow
from .storage import storage_errors
from .values import check_identifier, check_limit

logger = logging.getLogger(__name__)


class PairRelation:
    """Multi-map of integer keys to integer or text values."""

    def __init__(
        self,
        conn: sqlite3.Connection,
        table: str,
        key_column: str,
        value_column: str,
        value_type: str = "INTEGER",
    ):
        """Bind to `table` on `conn`, creating it if needed.

        Args:
            conn: Connection shared with the other stores of the same file
            table: Table name (owned exclusively by this relation)
            key_column: Integer key column (parent, time, activity id)
            value_column: Value column
            value_type: SQL type of the value column, INTEGER or TEXT
        """
        if value_type not in ("INTEGER", "TEXT"):
            raise ValueError(f"value_type must be INTEGER or TEXT, got {value_type!r}")
        self.conn = conn
        self.table = check_identifier(table)
        self.key_column = check_identifier(key_column)
        self.value_column = check_identifier(value_column)
        self.value_type = value_type
        self._init_table()

    def _init_table(self) -> None:
        with storage_errors(f"create table {self.table}"):
            self.conn.executescript(f"""
                CREATE TABLE IF NOT EXISTS "{self.table}" (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    "{self.key_column}" INTEGER NOT NULL,
                    "{self.value_column}" {self.value_type} NOT NULL
                );

                CREATE INDEX IF NOT EXISTS "idx_{self.table}_key"
                    ON "{self.table}" ("{self.key_column}", "{self.value_column}");
                CREATE INDEX IF NOT EXISTS "idx_{self.table}_value"
                    ON "{self.table}" ("{self.value_column}");
            """)

    def _row(self, row: sqlite3.Row) -> PairRow:
        return PairRow(id=row[0], key=row[1], value=row[2])

    def insert(self, key: int, value: int | str, commit: bool = True) -> int:
        """Append a (key, value) row and return its surrogate id.

        Args:
            key: Row key
            value: Row value
            commit: If True, commit immediately. Set False when called within
                   an enclosing transaction.
        """
        with storage_errors(f"insert into {self.table}"):
            cursor = self.conn.execute(
                f'INSERT INTO "{self.table}" ("{self.key_column}", "{self.value_column}") '
                f"VALUES (?, ?)",
                (key, value),
            )
            if commit:
                self.conn.commit()
        return cursor.lastrowid

    def get(self, row_id: int) -> PairRow:
        """Fetch a single row by surrogate id.

        Raises:
            NotFound: If no row has this id.
        """
        with storage_errors(f"get from {self.table}"):
            row = self.conn.execute(
                f'SELECT id, "{self.key_column}", "{self.value_column}" '
                f'FROM "{self.table}" WHERE id = ?',
                (row_id,),
            ).fetchone()
        if row is None:
            raise NotFound(self.table, row_id)
        return self._row(row)

    def get_page(
        self,
        key: int,
        after_value: int | str = 0,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> list[int | str]:
        """Return one page of the values stored under `key`.

        Values are distinct and ascending; only values strictly greater than
        `after_value` are returned, so feeding back the last value of a page
        walks forward and always terminates, even over duplicate pairs.
        """
        if check_limit(limit) == 0:
            return []
        with storage_errors(f"page {self.table}"):
            rows = self.conn.execute(
                f'SELECT DISTINCT "{self.value_column}" FROM "{self.table}" '
                f'WHERE "{self.key_column}" = ? AND "{self.value_column}" > ? '
                f'ORDER BY "{self.value_column}" LIMIT ?',
                (key, after_value, limit),
            ).fetchall()
        return [row[0] for row in rows]

    def page_left(
        self,
        from_key: int,
        to_key: int,
        limit: int = DEFAULT_PAGE_SIZE,
        after: tuple[int, int] | None = None,
    ) -> list[PairRow]:
        """Return rows with from_key <= key < to_key, ordered by (key, id).

        Args:
            from_key: Inclusive lower bound
            to_key: Exclusive upper bound
            limit: Maximum rows in the page
            after: (key, id) of the last row of the previous page

        Returns:
            Matching rows; an empty or inverted interval yields [].
        """
        if check_limit(limit) == 0 or from_key >= to_key:
            return []

        where = f'"{self.key_column}" >= ? AND "{self.key_column}" < ?'
        params: list[int] = [from_key, to_key]
        if after is not None:
            after_key, after_id = after
            where += f' AND ("{self.key_column}" > ? OR ("{self.key_column}" = ? AND id > ?))'
            params.extend([after_key, after_key, after_id])

        with storage_errors(f"range {self.table}"):
            rows = self.conn.execute(
                f'SELECT id, "{self.key_column}", "{self.value_column}" '
                f'FROM "{self.table}" WHERE {where} '
                f'ORDER BY "{self.key_column}", id LIMIT ?',
                (*params, limit),
            ).fetchall()
        return [self._row(row) for row in rows]

    def keys_for(self, value: int | str, limit: int = DEFAULT_PAGE_SIZE) -> list[int]:
        """Return the distinct keys that map to `value`, ascending."""
        if check_limit(limit) == 0:
            return []
        with storage_errors(f"reverse lookup {self.table}"):
            rows = self.conn.execute(
                f'SELECT DISTINCT "{self.key_column}" FROM "{self.table}" '
                f'WHERE "{self.value_column}" = ? '
                f'ORDER BY "{self.key_column}" LIMIT ?',
                (value, limit),
            ).fetchall()
        return [row[0] for row in rows]

    def count(self) -> int:
        with storage_errors(f"count {self.table}"):
            return self.conn.execute(f'SELECT COUNT(*) FROM "{self.table}"').fetchone()[0]
