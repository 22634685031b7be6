# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""NestedSet exceptions."""

from __future__ import annotations

from typing import Any


class NestedSetError(Exception):
    """Base exception for nested-set mapping errors."""

    pass


class NestedSetValidationError(NestedSetError):
    """Raised when the input tree is malformed (e.g. children not a sequence)."""

    pass


class NestedSetPersistenceError(NestedSetError):
    """Raised when the storage backend fails to create or update a record."""

    pass


class RecordNotFoundError(NestedSetError):
    """Raised when no stored record matches an identity key."""

    def __init__(self, key: Any) -> None:
        super().__init__(f"No record found for key {key!r}")
        self.key = key


class NestedSetPruneError(NestedSetError):
    """Raised when deleting unaffected records fails."""

    pass


class MassAssignmentError(NestedSetError):
    """Raised when filling a record while every attribute is guarded."""

    pass
