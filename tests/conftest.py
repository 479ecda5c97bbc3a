"""
Shared fixtures for the EntityStore test suite.
"""

import sqlite3

import pytest


@pytest.fixture
def sqlite_path(tmp_path):
    return tmp_path / "entitystore.db"


@pytest.fixture
def connection_factory(sqlite_path):
    """Zero-argument factory opening a fresh sqlite3 connection per call"""
    def factory():
        return sqlite3.connect(sqlite_path)
    return factory


@pytest.fixture
def aiosqlite_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'entitystore_async.db'}"
