# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""Storage backends for nested-set records.

- base: StorageBackend contract, Scope, rebalancing and transactions
- memory: MemoryBackend, dict-based storage with snapshot transactions
- sqlite: SQLiteBackend, sqlite3 table with savepoint transactions
"""

from .base import Scope, StorageBackend
from .memory import MemoryBackend
from .sqlite import SQLiteBackend

__all__ = ["Scope", "StorageBackend", "MemoryBackend", "SQLiteBackend"]
