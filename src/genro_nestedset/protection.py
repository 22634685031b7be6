# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""Mass-assignment protection policy."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterable, Iterator

from loguru import logger


class ProtectionPolicy:
    """Decides which attributes ``NestedSetRecord.fill`` may write.

    A guarded set of ``{'*'}`` guards everything: filling raises
    ``MassAssignmentError``. Protection is lifted for the duration of
    ``unguarded()`` only, and restored on every exit path.

    Example:
        >>> policy = ProtectionPolicy({'id', 'lft'})
        >>> policy.is_fillable('lft')
        False
        >>> with policy.unguarded():
        ...     policy.is_fillable('lft')
        True
    """

    __slots__ = ('guarded', '_depth')

    def __init__(self, guarded: Iterable[str] = ()) -> None:
        self.guarded = frozenset(guarded)
        self._depth = 0

    def __repr__(self) -> str:
        state = 'unguarded' if self.is_unguarded else 'guarded'
        return f"ProtectionPolicy({sorted(self.guarded)!r}, {state})"

    @property
    def is_unguarded(self) -> bool:
        return self._depth > 0

    @property
    def is_totally_guarded(self) -> bool:
        return not self.is_unguarded and '*' in self.guarded

    def is_fillable(self, name: str) -> bool:
        if self.is_unguarded:
            return True
        return '*' not in self.guarded and name not in self.guarded

    @contextmanager
    def unguarded(self) -> Iterator[ProtectionPolicy]:
        """Lift protection until the block exits. Nesting is allowed."""
        self._depth += 1
        logger.trace("Protection lifted (depth={})", self._depth)
        try:
            yield self
        finally:
            self._depth -= 1
            logger.trace("Protection restored (depth={})", self._depth)
