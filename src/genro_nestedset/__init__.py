# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""Genro-NestedSet - Map nested trees into nested-set (lft/rgt) storage.

A small library that computes nested-set bounds for an input forest and
keeps a storage backend in sync with it, for the Genro ecosystem.

Logging goes through loguru and is disabled by default; enable it with
``logger.enable("genro_nestedset")``.
"""

__version__ = "0.1.0"

from loguru import logger

from .backends import MemoryBackend, Scope, SQLiteBackend, StorageBackend
from .config import NestedSetColumns
from .exceptions import (
    MassAssignmentError,
    NestedSetError,
    NestedSetPersistenceError,
    NestedSetPruneError,
    NestedSetValidationError,
    RecordNotFoundError,
)
from .flatten import BoundCounter, flatten_nestable, rebuild_bounds, to_node_list
from .hierarchy import is_valid_nested_set, to_hierarchy, validation_errors
from .mapper import SetMapper, build_tree, make_tree
from .protection import ProtectionPolicy
from .record import FlatNode, NestedSetRecord

logger.disable(__name__)

__all__ = [
    # Mapping
    "SetMapper",
    "build_tree",
    "make_tree",
    # Bounds
    "BoundCounter",
    "flatten_nestable",
    "rebuild_bounds",
    "to_node_list",
    # Records and configuration
    "FlatNode",
    "NestedSetRecord",
    "NestedSetColumns",
    "ProtectionPolicy",
    # Storage
    "StorageBackend",
    "Scope",
    "MemoryBackend",
    "SQLiteBackend",
    # Reading back
    "to_hierarchy",
    "is_valid_nested_set",
    "validation_errors",
    # Exceptions
    "NestedSetError",
    "NestedSetValidationError",
    "NestedSetPersistenceError",
    "RecordNotFoundError",
    "NestedSetPruneError",
    "MassAssignmentError",
]
