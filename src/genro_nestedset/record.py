# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""Nested-set record classes."""

from __future__ import annotations

from typing import Any, NamedTuple, TYPE_CHECKING

from loguru import logger

from .config import NestedSetColumns
from .exceptions import MassAssignmentError

if TYPE_CHECKING:
    from .protection import ProtectionPolicy


class FlatNode(NamedTuple):
    """One node of a flattened tree, as emitted by ``flatten_nestable``."""

    key: Any
    parent_key: Any
    depth: int
    left: int
    right: int

    def as_dict(self, columns: NestedSetColumns | None = None) -> dict[str, Any]:
        """Render the tuple using the configured column names."""
        columns = columns or NestedSetColumns()
        return dict(zip(columns.structural, self))


class NestedSetRecord:
    """A stored record of a nested-set table.

    Each record has:
    - attr: All column values, structural and domain attributes alike
    - exists: True once the record has been persisted
    - original: Snapshot of the last persisted values, for dirty tracking
    - columns: The column naming in use

    Example:
        >>> record = NestedSetRecord({'id': 1, 'name': 'root'}, exists=True)
        >>> record.key
        1
        >>> record.get_attr('name')
        'root'
    """

    __slots__ = ('attr', 'exists', 'original', 'columns')

    def __init__(
        self,
        attr: dict[str, Any] | None = None,
        exists: bool = False,
        columns: NestedSetColumns | None = None,
    ) -> None:
        """Initialize a NestedSetRecord.

        Args:
            attr: Optional dictionary of column values.
            exists: True if the values were loaded from storage.
            columns: Column naming, defaults to ``NestedSetColumns()``.
        """
        self.attr = dict(attr or {})
        self.exists = exists
        self.columns = columns or NestedSetColumns()
        self.original = dict(self.attr) if exists else {}

    def __repr__(self) -> str:
        state = '' if self.exists else ', new'
        return f"NestedSetRecord({self.key!r}, {self.left}:{self.right}{state})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NestedSetRecord):
            return NotImplemented
        return self.attr == other.attr and self.exists == other.exists

    @property
    def key(self) -> Any:
        return self.attr.get(self.columns.key)

    @property
    def parent_key(self) -> Any:
        return self.attr.get(self.columns.parent)

    @property
    def depth(self) -> int | None:
        return self.attr.get(self.columns.depth)

    @property
    def left(self) -> int | None:
        return self.attr.get(self.columns.left)

    @property
    def right(self) -> int | None:
        return self.attr.get(self.columns.right)

    @property
    def is_leaf(self) -> bool:
        """True if the bounds enclose no descendant."""
        return self.left is not None and self.right == self.left + 1

    def contains(self, other: NestedSetRecord) -> bool:
        """True if ``other`` lies strictly inside this record's bounds."""
        if None in (self.left, self.right, other.left, other.right):
            return False
        return self.left < other.left and other.right < self.right

    def get_attr(self, attr: str | None = None, default: Any = None) -> Any:
        """Get attribute value or all attributes.

        Args:
            attr: Attribute name. If None, returns all attributes.
            default: Default value if attribute not found.
        """
        if attr is None:
            return self.attr
        return self.attr.get(attr, default)

    def set_attr(self, _attr: dict[str, Any] | None = None, **kwargs: Any) -> None:
        """Set attributes directly, bypassing mass-assignment protection."""
        if _attr:
            self.attr.update(_attr)
        self.attr.update(kwargs)

    def fill(
        self, data: dict[str, Any], policy: ProtectionPolicy | None = None
    ) -> NestedSetRecord:
        """Mass-assign ``data``, skipping the attributes ``policy`` guards.

        Raises:
            MassAssignmentError: If every attribute is guarded.
        """
        if policy is None:
            self.attr.update(data)
            return self
        if policy.is_totally_guarded:
            raise MassAssignmentError(
                f"Cannot fill {sorted(data)} on a totally guarded record"
            )
        for name, value in data.items():
            if policy.is_fillable(name):
                self.attr[name] = value
            else:
                logger.debug("Skipping guarded attribute {!r}", name)
        return self

    def get_dirty(self) -> dict[str, Any]:
        """Return the attributes changed since the last persist."""
        return {
            name: value
            for name, value in self.attr.items()
            if name not in self.original or self.original[name] != value
        }

    @property
    def is_dirty(self) -> bool:
        return bool(self.get_dirty())

    def sync_original(self) -> None:
        """Mark the current values as persisted."""
        self.exists = True
        self.original = dict(self.attr)
