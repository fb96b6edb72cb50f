"""
Pytest configuration for MySQL ORM tests.

Every test runs against the scripted ``FakeConnection``; no MySQL server
is needed. Model metadata and statement caches are cleared around each
test so models redefined inside tests never see stale entries.
"""

from collections.abc import Generator

import pytest

from mysql_orm import Database
from mysql_orm.reflect import clear_model_cache
from mysql_orm.statements import StatementCache
from mysql_orm.testing import FakeConnection


@pytest.fixture(autouse=True)
def clear_caches() -> Generator[None, None, None]:
    """Reset the process-wide caches before and after each test."""
    clear_model_cache()
    StatementCache.clear()
    yield
    clear_model_cache()
    StatementCache.clear()


@pytest.fixture
def conn() -> FakeConnection:
    """A fresh scripted connection."""
    return FakeConnection()


@pytest.fixture
def db(conn: FakeConnection) -> Database:
    """A database bound to the scripted connection."""
    return Database(conn)
