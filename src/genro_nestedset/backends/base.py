# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""StorageBackend - Abstract base class for nested-set storage.

A backend stores ``NestedSetRecord`` rows and offers the operations the
mapper needs: find-or-new lookup, save, scoped deletion, nestable
transactions and the rebalancing step that recomputes bounds from parent
links.

Subclasses implement the row-level primitives (``_select``, ``_insert``,
``_update``, ``_delete_keys``, ``_all`` and the transaction hooks); the
base class turns them into the public contract and keeps track of
structural changes.

Rebalancing:
    Saving a new record or changing a record's parent marks the structure
    dirty, unless the save also writes the bound columns or the caller
    passes ``structural=False``. Bounds are then recomputed by
    ``rebuild()``: immediately when no transaction is open, otherwise once,
    before the outermost transaction commits. New and re-parented records
    are placed after their existing siblings, in save order.
"""

from __future__ import annotations

import itertools
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Iterator

from loguru import logger

from ..config import NestedSetColumns
from ..exceptions import RecordNotFoundError
from ..flatten import rebuild_bounds
from ..protection import ProtectionPolicy
from ..record import NestedSetRecord


@dataclass(frozen=True)
class Scope:
    """Set of records eligible for deletion.

    ``left``/``right`` are the bounds of the enclosing record, exclusive;
    both None means the whole forest.
    """

    left: int | None = None
    right: int | None = None

    @classmethod
    def forest(cls) -> Scope:
        return cls()

    @property
    def is_forest(self) -> bool:
        return self.left is None and self.right is None

    def includes(self, record: NestedSetRecord) -> bool:
        if self.is_forest:
            return True
        if record.left is None or record.right is None:
            return False
        return self.left < record.left and record.right < self.right


class _Rollback(Exception):
    """Unwinds a transaction whose callback reported failure."""


class StorageBackend(ABC):
    """Abstract base class for nested-set storage backends.

    Args:
        columns: Column naming. Defaults to ``NestedSetColumns()``.
        guarded: Columns protected from mass assignment. Defaults to
            ``columns.guarded``.
    """

    def __init__(
        self,
        columns: NestedSetColumns | None = None,
        guarded: Iterable[str] | None = None,
    ) -> None:
        self.columns = columns or NestedSetColumns()
        self.protection = ProtectionPolicy(
            self.columns.guarded if guarded is None else guarded
        )
        self._tx_depth = 0
        self._structure_dirty = False
        self._placement: dict[Any, int] = {}
        self._sequence = itertools.count()

    # ==================== Row primitives ====================

    @abstractmethod
    def _select(self, key: Any) -> dict[str, Any] | None:
        """Return the row stored under ``key``."""

    @abstractmethod
    def _select_where(self, search: dict[str, Any]) -> dict[str, Any] | None:
        """Return the first row matching every item of ``search``."""

    @abstractmethod
    def _insert(self, values: dict[str, Any]) -> Any:
        """Insert a row and return its key."""

    @abstractmethod
    def _update(self, key: Any, values: dict[str, Any]) -> None:
        """Write ``values`` to the row stored under ``key``."""

    @abstractmethod
    def _delete_keys(self, keys: list[Any]) -> int:
        """Delete the rows stored under ``keys``; return how many went."""

    @abstractmethod
    def _all(self) -> list[dict[str, Any]]:
        """Return every row."""

    @abstractmethod
    def _begin(self, level: int) -> None:
        """Open a transaction (level 0) or a savepoint (level > 0)."""

    @abstractmethod
    def _commit(self, level: int) -> None:
        """Commit the transaction or release the savepoint at ``level``."""

    @abstractmethod
    def _rollback(self, level: int) -> None:
        """Undo every write since ``_begin(level)``."""

    # ==================== Records ====================

    def _record(self, row: dict[str, Any] | None) -> NestedSetRecord | None:
        if row is None:
            return None
        return NestedSetRecord(row, exists=True, columns=self.columns)

    def new_record(self, attributes: dict[str, Any] | None = None) -> NestedSetRecord:
        """Instantiate an unsaved record."""
        return NestedSetRecord(attributes, columns=self.columns)

    def find(self, key: Any) -> NestedSetRecord | None:
        """Return the record stored under ``key``, or None."""
        if key is None:
            return None
        return self._record(self._select(key))

    def find_or_fail(self, key: Any) -> NestedSetRecord:
        """Return the record stored under ``key``.

        Raises:
            RecordNotFoundError: If there is none.
        """
        record = self.find(key)
        if record is None:
            raise RecordNotFoundError(key)
        return record

    def first_or_new(self, search: dict[str, Any]) -> NestedSetRecord:
        """Return the first record matching ``search``, or a new one holding it."""
        if not search:
            return self.new_record()
        record = self._record(self._select_where(search))
        if record is None:
            return self.new_record(search)
        return record

    def all_records(self) -> list[NestedSetRecord]:
        """Return every record in preorder (ascending left bound)."""
        records = [self._record(row) for row in self._all()]
        return sorted(records, key=lambda r: (r.left is None, r.left or 0))

    def saving(self, record: NestedSetRecord) -> bool:
        """Hook run before every write. Returning False cancels the save."""
        return True

    def save(self, record: NestedSetRecord, structural: bool | None = None) -> bool:
        """Insert a new record or write the dirty attributes of a stored one.

        Args:
            record: Record to persist.
            structural: False when the caller writes consistent bounds
                itself, so the save never schedules a rebuild. None
                detects structural changes from the dirty columns.

        Returns:
            False if the ``saving`` hook cancelled the write.

        Raises:
            NestedSetPersistenceError: If the storage rejects the write.
        """
        if record.exists and not record.is_dirty:
            return True
        if not self.saving(record):
            logger.debug("Save of {!r} cancelled", record)
            return False

        dirty = record.get_dirty()
        # Explicitly written bounds are the caller's business
        explicit = self.columns.left in dirty or self.columns.right in dirty
        if record.exists:
            changed = self.columns.parent in dirty and not explicit
            self._update(record.key, dirty)
        else:
            changed = not explicit
            record.attr[self.columns.key] = self._insert(dict(record.attr))

        record.sync_original()
        if structural is None:
            structural = changed
        if structural:
            self._mark_structural(record.key)
        return True

    # ==================== Scopes ====================

    def forest_scope(self) -> Scope:
        return Scope.forest()

    def descendants_scope(self, record: NestedSetRecord) -> Scope:
        """Scope covering the stored descendants of ``record``."""
        if self._structure_dirty:
            self.rebuild()
        stored = self.find_or_fail(record.key)
        return Scope(stored.left, stored.right)

    def delete_scope(self, scope: Scope, exclude: Iterable[Any] = ()) -> int:
        """Delete every record in ``scope`` whose key is not in ``exclude``."""
        exclude = set(exclude)
        keys = [
            record.key
            for record in self.all_records()
            if scope.includes(record) and record.key not in exclude
        ]
        if not keys:
            return 0
        count = self._delete_keys(keys)
        logger.debug("Deleted {} record(s) from {}", count, scope)
        self._structure_dirty = True
        if not self._tx_depth:
            self.rebuild()
        return count

    # ==================== Rebalancing ====================

    def _mark_structural(self, key: Any) -> None:
        self._placement[key] = next(self._sequence)
        self._structure_dirty = True
        if not self._tx_depth:
            self.rebuild()

    def rebuild(self) -> int:
        """Recompute depth and bounds of every record from parent links.

        Returns:
            Number of records whose bounds changed.
        """
        records = {record.key: record for record in self.all_records()}
        flat = rebuild_bounds(records.values(), self.columns, self._placement)
        changed = 0
        for node in flat:
            record = records[node.key]
            values = {
                self.columns.depth: node.depth,
                self.columns.left: node.left,
                self.columns.right: node.right,
            }
            if any(record.attr.get(name) != value for name, value in values.items()):
                self._update(node.key, values)
                changed += 1
        self._placement.clear()
        self._structure_dirty = False
        logger.debug("Rebuilt bounds of {} record(s), {} changed", len(flat), changed)
        return changed

    # ==================== Transactions ====================

    @contextmanager
    def transaction(self) -> Iterator[StorageBackend]:
        """Run the block atomically. Nested blocks become savepoints.

        The outermost block rebalances a dirty structure before committing.
        Any exception rolls back the block's writes and is re-raised.
        """
        level = self._tx_depth
        state = (self._structure_dirty, dict(self._placement))
        self._begin(level)
        self._tx_depth += 1
        try:
            yield self
            if level == 0 and self._structure_dirty:
                self.rebuild()
        except BaseException:
            self._tx_depth -= 1
            self._rollback(level)
            self._structure_dirty, self._placement = state
            raise
        self._tx_depth -= 1
        self._commit(level)

    def run_in_transaction(self, callback: Callable[[], bool]) -> bool:
        """Run ``callback`` in a transaction; a falsy result rolls it back."""
        try:
            with self.transaction():
                if not callback():
                    raise _Rollback()
        except _Rollback:
            logger.info("Transaction rolled back: operation reported failure")
            return False
        return True

    @property
    def in_transaction(self) -> bool:
        return self._tx_depth > 0
