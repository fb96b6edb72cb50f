"""
Statement capture for tests and profiling.

``QueryLogger`` collects every statement the adapter runs inside an
``async with`` block, tagged with the adapter operation that issued it
(``insert``, ``select``, ``count`` ...) and the error it raised, if any::

    async with QueryLogger() as ql:
        await db.select(User, Equal("role", "admin"))
        await db.must_update(user)

    print(ql.by_operation())       # {'select': 1, 'update': 1}
    for entry in ql.failed:
        print(entry.operation, entry.error)
"""

from __future__ import annotations

import time
from collections import Counter
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, Self

_active_logger: ContextVar[QueryLogger | None] = ContextVar("_active_query_logger", default=None)


@dataclass
class QueryLog:
    """
    One captured statement.

    Attributes:
        operation: Adapter operation that issued the statement
        sql: Rendered statement with ``?`` placeholders
        args: Positional arguments sent with it
        duration_ms: Wall time spent in the driver
        error: Driver error message when the statement failed
    """

    operation: str
    sql: str
    args: list[Any]
    duration_ms: float
    error: str | None = None
    timestamp: float = field(default_factory=time.time)

    @property
    def ok(self) -> bool:
        return self.error is None

    def __repr__(self) -> str:
        status = "" if self.ok else ", failed"
        return f"QueryLog({self.operation}: {self.sql!r}, {self.duration_ms:.1f}ms{status})"


class QueryLogger:
    """
    Collects ``QueryLog`` entries for the current context.

    Bound through a ``ContextVar``, so statements run by tasks spawned inside
    the block are captured too. An inner logger hides the outer one until
    it exits.
    """

    def __init__(self) -> None:
        self.queries: list[QueryLog] = []
        self._token: Any = None

    async def __aenter__(self) -> Self:
        self._token = _active_logger.set(self)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if self._token is not None:
            _active_logger.reset(self._token)
            self._token = None

    @property
    def total_queries(self) -> int:
        return len(self.queries)

    @property
    def total_ms(self) -> float:
        return sum(q.duration_ms for q in self.queries)

    @property
    def failed(self) -> list[QueryLog]:
        """Entries whose statement raised."""
        return [q for q in self.queries if not q.ok]

    def by_operation(self) -> dict[str, int]:
        """Statement count per adapter operation, in first-seen order."""
        return dict(Counter(q.operation for q in self.queries))

    def for_operation(self, operation: str) -> list[QueryLog]:
        return [q for q in self.queries if q.operation == operation]

    def __repr__(self) -> str:
        return f"QueryLogger({self.total_queries} queries, {self.total_ms:.1f}ms)"


def _log_query(
    operation: str,
    sql: str,
    args: list[Any],
    duration_ms: float,
    error: BaseException | None = None,
) -> None:
    """Record a statement on the active QueryLogger, if any."""
    active = _active_logger.get(None)
    if active is None:
        return
    active.queries.append(
        QueryLog(
            operation=operation,
            sql=sql,
            args=list(args),
            duration_ms=duration_ms,
            error=None if error is None else str(error),
        )
    )


def _start_timer() -> float:
    return time.perf_counter()


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000.0


__all__ = ["QueryLog", "QueryLogger"]
