"""
Connection protocols consumed by the adapter and the migration engine.

Any async MySQL driver can be used by wrapping it in an object that
satisfies these protocols. Arguments are bound positionally using ``?``
placeholders; drivers using ``%s`` must translate them.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class ExecResult:
    """Result of a statement that returns no rows."""

    rows_affected: int = 0
    last_insert_id: int | None = None


@runtime_checkable
class Connection(Protocol):
    """A direct connection or an open transaction."""

    async def execute(self, sql: str, *args: Any) -> ExecResult: ...

    async def query(self, sql: str, *args: Any) -> Sequence[Sequence[Any]]: ...

    async def query_row(self, sql: str, *args: Any) -> Sequence[Any] | None: ...


@runtime_checkable
class Transaction(Connection, Protocol):
    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...


@runtime_checkable
class BaseConnection(Connection, Protocol):
    """A connection that can open transactions."""

    async def begin(self) -> Transaction: ...


__all__ = ["BaseConnection", "Connection", "ExecResult", "Transaction"]
