"""
Testing utilities for MySQL ORM.

Provides ``FakeConnection``, a scripted stand-in for a MySQL driver
connection, for unit testing code built on ``Database``.

Example::

    from mysql_orm import Database
    from mysql_orm.testing import FakeConnection

    conn = FakeConnection()
    conn.on_query("FROM `user`", [(1, "alice")])
    users = await Database(conn).select(User)
"""

from .fake import FakeConnection, FakeDriverError, FakeTransaction, Statement

__all__ = [
    "FakeConnection",
    "FakeDriverError",
    "FakeTransaction",
    "Statement",
]
