# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""MemoryBackend - dict-based nested-set storage."""

from __future__ import annotations

import copy
from typing import Any, Iterable

from ..config import NestedSetColumns
from ..exceptions import NestedSetPersistenceError
from .base import StorageBackend


class MemoryBackend(StorageBackend):
    """Keeps rows in a dict keyed by identity, in insertion order.

    Keys are auto-incremented integers unless supplied. Transactions
    snapshot the rows and restore the snapshot on rollback.

    Example:
        >>> backend = MemoryBackend()
        >>> SetMapper(backend).map([{'name': 'root'}])
        True
        >>> backend.find(1).get_attr('name')
        'root'
    """

    def __init__(
        self,
        rows: Iterable[dict[str, Any]] = (),
        columns: NestedSetColumns | None = None,
        guarded: Iterable[str] | None = None,
    ) -> None:
        super().__init__(columns=columns, guarded=guarded)
        self._rows: dict[Any, dict[str, Any]] = {}
        self._next_key = 1
        self._snapshots: list[tuple[dict[Any, dict[str, Any]], int]] = []
        for row in rows:
            self._insert(dict(row))

    def __len__(self) -> int:
        return len(self._rows)

    def __repr__(self) -> str:
        return f"MemoryBackend({list(self._rows)})"

    def _select(self, key: Any) -> dict[str, Any] | None:
        row = self._rows.get(key)
        return dict(row) if row is not None else None

    def _select_where(self, search: dict[str, Any]) -> dict[str, Any] | None:
        for row in self._rows.values():
            if all(row.get(name) == value for name, value in search.items()):
                return dict(row)
        return None

    def _insert(self, values: dict[str, Any]) -> Any:
        key_name = self.columns.key
        key = values.get(key_name)
        if key is None:
            key = self._next_key
        elif key in self._rows:
            raise NestedSetPersistenceError(f"Duplicate key {key!r}")
        if isinstance(key, int):
            self._next_key = max(self._next_key, key + 1)
        values[key_name] = key
        self._rows[key] = values
        return key

    def _update(self, key: Any, values: dict[str, Any]) -> None:
        if key not in self._rows:
            raise NestedSetPersistenceError(f"Cannot update missing key {key!r}")
        self._rows[key].update(values)

    def _delete_keys(self, keys: list[Any]) -> int:
        return sum(1 for key in keys if self._rows.pop(key, None) is not None)

    def _all(self) -> list[dict[str, Any]]:
        return [dict(row) for row in self._rows.values()]

    def _begin(self, level: int) -> None:
        self._snapshots.append((copy.deepcopy(self._rows), self._next_key))

    def _commit(self, level: int) -> None:
        self._snapshots.pop()

    def _rollback(self, level: int) -> None:
        self._rows, self._next_key = self._snapshots.pop()
