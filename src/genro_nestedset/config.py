# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""Column configuration for nested-set storage."""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_CHILDREN_KEY = 'children'


@dataclass(frozen=True)
class NestedSetColumns:
    """Names of the columns that carry the nested-set encoding.

    Attributes:
        key: Identity (primary key) column.
        parent: Parent reference column, nullable.
        depth: Depth column, 0 for roots.
        left: Left bound column.
        right: Right bound column.
        guarded: Columns protected from mass assignment unless the
            protection policy is lifted. Defaults to the structural
            columns under their configured names.

    Example:
        >>> cols = NestedSetColumns(key='uid', left='l', right='r')
        >>> cols.structural
        ('uid', 'parent_id', 'depth', 'l', 'r')
    """

    key: str = 'id'
    parent: str = 'parent_id'
    depth: str = 'depth'
    left: str = 'lft'
    right: str = 'rgt'
    guarded: frozenset[str] | None = None

    def __post_init__(self) -> None:
        guarded = self.structural if self.guarded is None else self.guarded
        object.__setattr__(self, 'guarded', frozenset(guarded))

    @property
    def structural(self) -> tuple[str, str, str, str, str]:
        """Column names in flattened-tuple order."""
        return (self.key, self.parent, self.depth, self.left, self.right)

    @property
    def bounds(self) -> tuple[str, str, str]:
        """Columns written by the rebalancing step."""
        return (self.depth, self.left, self.right)
