# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""Bound computation for nested-set trees.

This module holds the pure part of the library: turning a nested input
forest into flat ``FlatNode`` tuples carrying left/right bounds, depth and
parent key, and recomputing the bounds of already stored records from their
parent links.

Bounds are handed out by a single counter shared by the whole traversal,
so a preorder walk visits ascending left bounds and no two nodes share a
bound value.

Example:
    >>> flatten_nestable([{'id': 1, 'children': [{'id': 2}]}])
    [FlatNode(key=1, parent_key=None, depth=0, left=1, right=4),
     FlatNode(key=2, parent_key=1, depth=1, left=2, right=3)]
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Iterable

from .config import DEFAULT_CHILDREN_KEY, NestedSetColumns
from .exceptions import NestedSetValidationError
from .record import FlatNode, NestedSetRecord

_CONVERTERS = ('to_dict', 'as_dict', 'to_array')


class BoundCounter:
    """Mutable bound accumulator threaded through a traversal."""

    __slots__ = ('value',)

    def __init__(self, start: int = 0) -> None:
        self.value = start

    def __repr__(self) -> str:
        return f"BoundCounter({self.value})"

    def next(self) -> int:
        self.value += 1
        return self.value


def _convert(value: Any) -> Any:
    """Apply the first 'convert to mapping' method ``value`` exposes."""
    if isinstance(value, Mapping):
        return value
    for name in _CONVERTERS:
        converter = getattr(value, name, None)
        if callable(converter):
            return converter()
    return value


def as_mapping(node: Any) -> Mapping[str, Any]:
    """Return ``node`` as a mapping.

    Raises:
        NestedSetValidationError: If ``node`` is neither a mapping nor
            convertible to one.
    """
    converted = _convert(node)
    if not isinstance(converted, Mapping):
        raise NestedSetValidationError(
            f"Tree node must be a mapping, not {type(node).__name__}"
        )
    return converted


def to_node_list(nodes: Any) -> list[Mapping[str, Any]]:
    """Normalize a forest to a list of mappings.

    ``nodes`` may be a sequence of mappings, or an object exposing
    ``to_dict()``, ``as_dict()`` or ``to_array()`` that converts to one.

    Raises:
        NestedSetValidationError: If ``nodes`` is not a sequence of nodes.
    """
    converted = _convert(nodes)
    if (
        isinstance(converted, (str, bytes, Mapping))
        or not isinstance(converted, Iterable)
    ):
        raise NestedSetValidationError(
            f"Tree must be a sequence of nodes, not {type(nodes).__name__}"
        )
    return [as_mapping(node) for node in converted]


def children_of(
    node: Mapping[str, Any], children_key: str = DEFAULT_CHILDREN_KEY
) -> list[Mapping[str, Any]]:
    """Return the children declared by ``node``, or an empty list.

    Raises:
        NestedSetValidationError: If the children value is not a sequence.
    """
    children = node.get(children_key)
    if children is None:
        return []
    children = _convert(children)
    if isinstance(children, (str, bytes, Mapping)) or not isinstance(children, Sequence):
        raise NestedSetValidationError(
            f"'{children_key}' must be a sequence, not {type(children).__name__}"
        )
    return [as_mapping(child) for child in children]


def flatten_nestable(
    nodes: Any,
    parent_key: Any = None,
    depth: int = 0,
    bound: BoundCounter | None = None,
    *,
    key_name: str = 'id',
    children_key: str = DEFAULT_CHILDREN_KEY,
) -> list[FlatNode]:
    """Flatten a nested forest into bound-carrying tuples, in preorder.

    Args:
        nodes: Sequence of tree nodes (see ``to_node_list``).
        parent_key: Parent key given to the top-level nodes.
        depth: Depth of the top-level nodes.
        bound: Shared counter; a fresh one starting at 0 if omitted.
        key_name: Name of the identity key in the input nodes.
        children_key: Name of the children key in the input nodes.

    Returns:
        One FlatNode per input node; each node precedes its descendants.
    """
    if bound is None:
        bound = BoundCounter()

    flat: list[FlatNode] = []
    for node in to_node_list(nodes):
        key = node.get(key_name)
        left = bound.next()

        descendants: list[FlatNode] = []
        children = children_of(node, children_key)
        if children:
            descendants = flatten_nestable(
                children, key, depth + 1, bound,
                key_name=key_name, children_key=children_key,
            )

        right = bound.next()
        flat.append(FlatNode(key, parent_key, depth, left, right))
        flat.extend(descendants)

    return flat


def _sibling_order(placement: dict[Any, int]):
    def sort_key(record: NestedSetRecord) -> tuple[int, int]:
        if record.key in placement:
            return (2, placement[record.key])
        if record.left is None:
            return (1, 0)
        return (0, record.left)
    return sort_key


def rebuild_bounds(
    records: Iterable[NestedSetRecord],
    columns: NestedSetColumns | None = None,
    placement: dict[Any, int] | None = None,
) -> list[FlatNode]:
    """Recompute bounds and depth of stored records from their parent links.

    Siblings keep their current relative order (ascending left bound).
    Records listed in ``placement`` (key -> save sequence) are appended
    after their existing siblings, in sequence order. Records whose parent
    is missing become roots.

    Raises:
        NestedSetValidationError: If parent links form a cycle.
    """
    columns = columns or NestedSetColumns()
    order = _sibling_order(placement or {})
    records = list(records)
    keys = {record.key for record in records}

    roots: list[NestedSetRecord] = []
    children: dict[Any, list[NestedSetRecord]] = {}
    for record in records:
        if record.parent_key is None or record.parent_key not in keys:
            roots.append(record)
        else:
            children.setdefault(record.parent_key, []).append(record)

    def nest(level: list[NestedSetRecord]) -> list[dict[str, Any]]:
        return [
            {columns.key: record.key, 'children': nest(children.get(record.key, []))}
            for record in sorted(level, key=order)
        ]

    flat = flatten_nestable(nest(roots), key_name=columns.key)
    if len(flat) != len(records):
        reached = {node.key for node in flat}
        cyclic = sorted(repr(key) for key in keys - reached)
        raise NestedSetValidationError(
            f"Parent links form a cycle through {', '.join(cyclic)}"
        )
    return flat
