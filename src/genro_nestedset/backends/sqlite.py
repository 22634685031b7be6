# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""SQLiteBackend - nested-set storage in an SQLite table.

The table holds the structural columns plus any number of domain columns
declared up front::

    CREATE TABLE nested_set (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        parent_id INTEGER,
        depth INTEGER,
        lft INTEGER,
        rgt INTEGER,
        name TEXT
    )

Transactions are SAVEPOINTs, so they nest. The connection is switched to
autocommit mode (``isolation_level = None``) and writes outside any
transaction are committed one statement at a time.
"""

from __future__ import annotations

import re
import sqlite3
from typing import Any, Iterable

from loguru import logger

from ..config import NestedSetColumns
from ..exceptions import NestedSetPersistenceError
from .base import StorageBackend

_IDENTIFIER = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')

# SQLite's default limit on host parameters per statement is 999
_DELETE_CHUNK = 500


def _quote(name: str) -> str:
    if not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return f'"{name}"'


class SQLiteBackend(StorageBackend):
    """Nested-set storage backed by an ``sqlite3`` connection.

    Args:
        connection: Open connection; its row factory and isolation level
            are taken over by the backend.
        table: Table name.
        extra_columns: Domain columns as ``name`` or ``(name, sql_type)``.
        columns: Column naming of the structural columns.
        guarded: Columns protected from mass assignment.
        create: If True, create the table and its indexes when missing.

    Example:
        >>> conn = sqlite3.connect(':memory:')
        >>> backend = SQLiteBackend(conn, extra_columns=['name'])
        >>> SetMapper(backend).map([{'name': 'root'}])
        True
    """

    def __init__(
        self,
        connection: sqlite3.Connection,
        table: str = 'nested_set',
        extra_columns: Iterable[str | tuple[str, str]] = (),
        columns: NestedSetColumns | None = None,
        guarded: Iterable[str] | None = None,
        create: bool = True,
    ) -> None:
        super().__init__(columns=columns, guarded=guarded)
        self.connection = connection
        self.connection.row_factory = sqlite3.Row
        self.connection.isolation_level = None
        self.table = _quote(table)
        self._table_name = table
        self.extra_columns: list[tuple[str, str]] = [
            (spec, 'TEXT') if isinstance(spec, str) else tuple(spec)
            for spec in extra_columns
        ]
        if create:
            self.create_table()

    def __repr__(self) -> str:
        return f"SQLiteBackend({self._table_name!r})"

    def _execute(self, sql: str, params: Iterable[Any] = ()) -> sqlite3.Cursor:
        try:
            return self.connection.execute(sql, tuple(params))
        except sqlite3.Error as e:
            logger.warning("SQLite error on {!r}: {}", sql, e)
            raise NestedSetPersistenceError(str(e)) from e

    def create_table(self) -> None:
        """Create the table and its bound/parent indexes if missing."""
        cols = self.columns
        definitions = [
            f"{_quote(cols.key)} INTEGER PRIMARY KEY AUTOINCREMENT",
            f"{_quote(cols.parent)} INTEGER",
            f"{_quote(cols.depth)} INTEGER",
            f"{_quote(cols.left)} INTEGER",
            f"{_quote(cols.right)} INTEGER",
        ]
        definitions += [f"{_quote(name)} {sql_type}" for name, sql_type in self.extra_columns]
        self._execute(
            f"CREATE TABLE IF NOT EXISTS {self.table} ({', '.join(definitions)})"
        )
        self._execute(
            f"CREATE INDEX IF NOT EXISTS {_quote(self._table_name + '_bounds')} "
            f"ON {self.table} ({_quote(cols.left)}, {_quote(cols.right)})"
        )
        self._execute(
            f"CREATE INDEX IF NOT EXISTS {_quote(self._table_name + '_parent')} "
            f"ON {self.table} ({_quote(cols.parent)})"
        )

    def _where(self, search: dict[str, Any]) -> tuple[str, list[Any]]:
        clauses = []
        params = []
        for name, value in search.items():
            if value is None:
                clauses.append(f"{_quote(name)} IS NULL")
            else:
                clauses.append(f"{_quote(name)} = ?")
                params.append(value)
        return ' AND '.join(clauses), params

    def _select(self, key: Any) -> dict[str, Any] | None:
        return self._select_where({self.columns.key: key})

    def _select_where(self, search: dict[str, Any]) -> dict[str, Any] | None:
        where, params = self._where(search)
        row = self._execute(
            f"SELECT * FROM {self.table} WHERE {where} LIMIT 1", params
        ).fetchone()
        return dict(row) if row is not None else None

    def _insert(self, values: dict[str, Any]) -> Any:
        names = list(values)
        if not names:
            cursor = self._execute(f"INSERT INTO {self.table} DEFAULT VALUES")
        else:
            cursor = self._execute(
                f"INSERT INTO {self.table} ({', '.join(_quote(n) for n in names)}) "
                f"VALUES ({', '.join('?' for _ in names)})",
                [values[n] for n in names],
            )
        key = values.get(self.columns.key)
        return cursor.lastrowid if key is None else key

    def _update(self, key: Any, values: dict[str, Any]) -> None:
        if not values:
            return
        assignments = ', '.join(f"{_quote(name)} = ?" for name in values)
        cursor = self._execute(
            f"UPDATE {self.table} SET {assignments} WHERE {_quote(self.columns.key)} = ?",
            [*values.values(), key],
        )
        if cursor.rowcount == 0:
            raise NestedSetPersistenceError(f"Cannot update missing key {key!r}")

    def _delete_keys(self, keys: list[Any]) -> int:
        count = 0
        for start in range(0, len(keys), _DELETE_CHUNK):
            chunk = keys[start:start + _DELETE_CHUNK]
            cursor = self._execute(
                f"DELETE FROM {self.table} WHERE {_quote(self.columns.key)} "
                f"IN ({', '.join('?' for _ in chunk)})",
                chunk,
            )
            count += cursor.rowcount
        return count

    def _all(self) -> list[dict[str, Any]]:
        rows = self._execute(
            f"SELECT * FROM {self.table} ORDER BY {_quote(self.columns.left)}, "
            f"{_quote(self.columns.key)}"
        ).fetchall()
        return [dict(row) for row in rows]

    def _savepoint(self, level: int) -> str:
        return f"nestedset_{level}"

    def _begin(self, level: int) -> None:
        self._execute(f"SAVEPOINT {self._savepoint(level)}")

    def _commit(self, level: int) -> None:
        self._execute(f"RELEASE SAVEPOINT {self._savepoint(level)}")

    def _rollback(self, level: int) -> None:
        name = self._savepoint(level)
        self._execute(f"ROLLBACK TO SAVEPOINT {name}")
        self._execute(f"RELEASE SAVEPOINT {name}")
