# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""SetMapper - Synchronize a nested input tree with nested-set storage.

Two strategies share the bound flattener:

- ``map`` / ``map_tree``: walk the nested input, find-or-create a record
  per node, write its attributes and parent link, then delete the stored
  records the input no longer mentions. Bounds are left to the backend's
  rebalancing step.
- ``update_map``: flatten the input and overwrite parent, depth and bounds
  of records that must already exist. Nothing is created or deleted.

``map`` and ``update_map`` run inside a transaction with mass-assignment
protection lifted; a failed call is rolled back. ``map_tree`` is the bare
walk, for callers composing their own transaction.

Example:
    >>> backend = MemoryBackend()
    >>> SetMapper(backend).map([
    ...     {'id': 1, 'name': 'root', 'children': [{'id': 2, 'name': 'child'}]},
    ... ])
    True
    >>> backend.find(2).left, backend.find(2).right
    (2, 3)
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Callable

from loguru import logger

from .backends.base import Scope, StorageBackend
from .config import DEFAULT_CHILDREN_KEY, NestedSetColumns
from .exceptions import NestedSetPersistenceError, NestedSetPruneError
from .flatten import BoundCounter, children_of, flatten_nestable, to_node_list
from .hierarchy import to_hierarchy
from .record import FlatNode, NestedSetRecord


class SetMapper:
    """Maps nested trees into a storage backend.

    Args:
        backend: Storage to synchronize.
        node: Reference record. Top-level input nodes become its children
            and pruning is limited to its descendants. None maps a whole
            forest.
        children_key: Key holding the children of an input node.
    """

    def __init__(
        self,
        backend: StorageBackend,
        node: NestedSetRecord | None = None,
        children_key: str = DEFAULT_CHILDREN_KEY,
    ) -> None:
        self.backend = backend
        self.node = node
        self.children_key = children_key

    def __repr__(self) -> str:
        return f"SetMapper({self.backend!r}, node={self.node!r})"

    @property
    def columns(self) -> NestedSetColumns:
        return self.backend.columns

    def get_children_key(self) -> str:
        return self.children_key

    # ==================== Wrapped entry points ====================

    def map(self, nodes: Any) -> bool:
        """Map a tree into storage, atomically and unguarded."""
        return self.run_atomic(lambda: self.map_tree(nodes))

    def update_map(self, nodes: Any) -> bool:
        """Overwrite parent, depth and bounds of existing records, atomically.

        Returns:
            False if a node has no stored record or a save fails; the
            transaction is then rolled back.
        """
        return self.run_atomic(lambda: self._update_flattened(nodes))

    def run_atomic(self, operation: Callable[[], bool]) -> bool:
        """Run ``operation`` in a transaction with protection lifted."""
        with self.backend.protection.unguarded():
            return self.backend.run_in_transaction(operation)

    # ==================== Flattening ====================

    def flatten_nestable(
        self,
        nodes: Any,
        parent_key: Any = None,
        depth: int = 0,
        bound: BoundCounter | None = None,
    ) -> list[FlatNode]:
        """Flatten ``nodes`` using this mapper's key and children names."""
        return flatten_nestable(
            nodes, parent_key, depth, bound,
            key_name=self.columns.key, children_key=self.children_key,
        )

    def _update_flattened(self, nodes: Any) -> bool:
        for node in self.flatten_nestable(nodes):
            record = self.backend.find(node.key)
            if record is None:
                logger.warning("update_map: no record for key {!r}", node.key)
                return False
            values = node.as_dict(self.columns)
            del values[self.columns.key]
            record.fill(values, self.backend.protection)
            if not self._save(record, structural=False):
                return False
        return True

    # ==================== Create/update walk ====================

    def map_tree(self, nodes: Any) -> bool:
        """Map a tree into storage without a transaction or unguarding.

        Returns:
            False as soon as one save fails; pruning is then skipped.

        Raises:
            NestedSetValidationError: On malformed input.
            NestedSetPruneError: If deleting unaffected records fails.
        """
        tree = to_node_list(nodes)
        affected: list[Any] = []

        result = self._map_tree_recursive(tree, self._reference_key(), affected)

        if result and affected:
            self._delete_unaffected(affected)

        logger.info(
            "Mapped {} node(s) (result={})", len(affected), result
        )
        return result

    def _map_tree_recursive(
        self,
        tree: list[Mapping[str, Any]],
        parent_key: Any,
        affected: list[Any],
    ) -> bool:
        # Each node is loaded by key (or instantiated), filled with its data
        # attributes and parent link, saved, then its children are mapped
        # under it. Parent links alone describe the nesting.
        for attributes in tree:
            children = children_of(attributes, self.children_key)

            record = self.backend.first_or_new(self._search_attributes(attributes))

            data = self._data_attributes(attributes)
            data[self.columns.parent] = parent_key
            record.fill(data, self.backend.protection)

            if not self._save(record):
                return False

            affected.append(record.key)

            if children:
                if not self._map_tree_recursive(children, record.key, affected):
                    return False

        return True

    def _save(
        self, record: NestedSetRecord, structural: bool | None = None
    ) -> bool:
        try:
            saved = self.backend.save(record, structural=structural)
        except NestedSetPersistenceError as e:
            logger.warning("Saving {!r} failed: {}", record, e)
            return False
        if not saved:
            logger.warning("Saving {!r} was refused", record)
        else:
            logger.debug("Saved {!r}", record)
        return saved

    def _search_attributes(self, attributes: Mapping[str, Any]) -> dict[str, Any]:
        key = attributes.get(self.columns.key)
        if key is None:
            return {}
        return {self.columns.key: key}

    def _data_attributes(self, attributes: Mapping[str, Any]) -> dict[str, Any]:
        exceptions = (self.columns.key, self.children_key)
        return {k: v for k, v in attributes.items() if k not in exceptions}

    # ==================== Pruning ====================

    def _reference_key(self) -> Any:
        if self.node is None or not self.node.exists:
            return None
        return self.node.key

    def _reference_exists(self) -> bool:
        return self.backend.find(self._reference_key()) is not None

    def prune_scope(self) -> Scope:
        """Descendants of the reference record if stored, else the forest."""
        if self._reference_exists():
            return self.backend.descendants_scope(self.node)
        return self.backend.forest_scope()

    def _delete_unaffected(self, keys: list[Any]) -> int:
        try:
            count = self.backend.delete_scope(self.prune_scope(), exclude=keys)
        except NestedSetPruneError:
            raise
        except Exception as e:
            raise NestedSetPruneError(f"Pruning unaffected records failed: {e}") from e
        if count:
            logger.info("Pruned {} unaffected record(s)", count)
        return count

    # ==================== Reading back ====================

    def hierarchy(self, with_bounds: bool = False) -> list[dict[str, Any]]:
        """Return the stored tree under the reference (or the forest) as input-shaped dicts."""
        scope = self.prune_scope()
        records = [r for r in self.backend.all_records() if scope.includes(r)]
        return to_hierarchy(
            records, self.columns, self.children_key, with_bounds=with_bounds
        )


def build_tree(
    backend: StorageBackend, nodes: Any, children_key: str = DEFAULT_CHILDREN_KEY
) -> bool:
    """Map ``nodes`` as the whole forest of ``backend``."""
    return SetMapper(backend, children_key=children_key).map(nodes)


def make_tree(
    backend: StorageBackend,
    node: NestedSetRecord,
    nodes: Any,
    children_key: str = DEFAULT_CHILDREN_KEY,
) -> bool:
    """Map ``nodes`` as the children of ``node``."""
    return SetMapper(backend, node, children_key=children_key).map(nodes)
