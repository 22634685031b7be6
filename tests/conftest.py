# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""Shared fixtures for genro-nestedset tests."""

import sqlite3

import pytest

from genro_nestedset import MemoryBackend, SQLiteBackend


@pytest.fixture
def memory_backend():
    return MemoryBackend()


@pytest.fixture
def sqlite_backend():
    conn = sqlite3.connect(':memory:')
    yield SQLiteBackend(conn, extra_columns=['name', ('weight', 'INTEGER')])
    conn.close()


@pytest.fixture(params=['memory', 'sqlite'])
def backend(request):
    """Every backend, so behaviour is checked on both."""
    return request.getfixturevalue(f'{request.param}_backend')
