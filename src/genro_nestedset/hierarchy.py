# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""Reading stored nested sets back as trees, and checking their bounds."""

from __future__ import annotations

from typing import Any, Iterable

from .config import DEFAULT_CHILDREN_KEY, NestedSetColumns
from .record import NestedSetRecord


def to_hierarchy(
    records: Iterable[NestedSetRecord],
    columns: NestedSetColumns | None = None,
    children_key: str = DEFAULT_CHILDREN_KEY,
    with_bounds: bool = False,
) -> list[dict[str, Any]]:
    """Nest records ordered by left bound into the mapper's input shape.

    Args:
        records: Stored records. They are sorted by left bound first.
        columns: Column naming in use.
        children_key: Key under which children are listed.
        with_bounds: If False, parent/depth/bound columns are omitted so the
            result can be fed back to ``SetMapper.map``.

    Returns:
        List of root dicts; nodes with children carry ``children_key``.

    Example:
        >>> to_hierarchy(backend.all_records())
        [{'id': 1, 'name': 'root', 'children': [{'id': 2, 'name': 'child'}]}]
    """
    columns = columns or NestedSetColumns()
    hidden = set() if with_bounds else {columns.parent, *columns.bounds}

    roots: list[dict[str, Any]] = []
    # (record, rendered dict) of the open ancestors
    stack: list[tuple[NestedSetRecord, dict[str, Any]]] = []

    for record in sorted(records, key=lambda r: r.left or 0):
        item = {k: v for k, v in record.attr.items() if k not in hidden}
        while stack and not stack[-1][0].contains(record):
            stack.pop()
        if stack:
            stack[-1][1].setdefault(children_key, []).append(item)
        else:
            roots.append(item)
        stack.append((record, item))

    return roots


def validation_errors(records: Iterable[NestedSetRecord]) -> list[str]:
    """Return a description of every nested-set invariant the records break."""
    records = list(records)
    by_key = {record.key: record for record in records}
    errors: list[str] = []
    seen_bounds: dict[int, Any] = {}

    for record in records:
        label = f"record {record.key!r}"
        left, right = record.left, record.right
        if left is None or right is None:
            errors.append(f"{label}: missing bounds")
            continue
        if left >= right:
            errors.append(f"{label}: left {left} is not below right {right}")
        for bound in (left, right):
            if bound in seen_bounds:
                errors.append(
                    f"{label}: bound {bound} already used by {seen_bounds[bound]!r}"
                )
            seen_bounds[bound] = record.key

        parent = by_key.get(record.parent_key)
        if record.parent_key is None:
            if record.depth != 0:
                errors.append(f"{label}: root at depth {record.depth}")
        elif parent is None:
            errors.append(f"{label}: parent {record.parent_key!r} does not exist")
        else:
            if not parent.contains(record):
                errors.append(f"{label}: bounds not inside parent {parent.key!r}")
            if parent.depth is not None and record.depth != parent.depth + 1:
                errors.append(
                    f"{label}: depth {record.depth} under parent at depth {parent.depth}"
                )

    ordered = sorted(
        (r for r in records if r.left is not None and r.right is not None),
        key=lambda r: r.left,
    )
    # Intervals must nest or be disjoint
    open_ranges: list[NestedSetRecord] = []
    for record in ordered:
        while open_ranges and open_ranges[-1].right < record.left:
            open_ranges.pop()
        if open_ranges and not open_ranges[-1].contains(record):
            errors.append(
                f"record {record.key!r}: overlaps {open_ranges[-1].key!r}"
            )
        open_ranges.append(record)

    return errors


def is_valid_nested_set(records: Iterable[NestedSetRecord]) -> bool:
    """True if the records form a consistent nested-set forest."""
    return not validation_errors(records)
