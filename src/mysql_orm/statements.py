"""
Statement templates for the CRUD adapter.

Rendered statement skeletons (everything except the predicate clause) are
cached by a SHA-256 key of the table, columns and statement kind. The cache
is process-wide and lock-guarded; two threads rendering the same key store
equal text.
"""

from __future__ import annotations

import hashlib
import json
import threading
from collections.abc import Callable, Sequence
from typing import Any

from .reflect import Field, Model
from .utils import quote_identifier


class StatementCache:
    """
    Global cache of rendered statement skeletons.

    This is a class-level singleton; all state is stored as class attributes.
    """

    _cache: dict[str, str] = {}
    _lock = threading.Lock()

    @classmethod
    def make_key(cls, kind: str, *parts: Any) -> str:
        """
        Build a deterministic cache key from the statement kind and its parts.

        Returns:
            A hex SHA-256 digest.
        """
        payload = json.dumps({"k": kind, "p": parts}, sort_keys=True, default=str)
        return hashlib.sha256(payload.encode()).hexdigest()

    @classmethod
    def get_or_render(cls, key: str, render: Callable[[], str]) -> str:
        with cls._lock:
            cached = cls._cache.get(key)
        if cached is not None:
            return cached
        text = render()
        with cls._lock:
            return cls._cache.setdefault(key, text)

    @classmethod
    def clear(cls) -> None:
        """Remove all entries from the cache."""
        with cls._lock:
            cls._cache.clear()

    @classmethod
    def size(cls) -> int:
        with cls._lock:
            return len(cls._cache)


def render_insert(model: Model, row_count: int) -> str:
    """``INSERT INTO `t`(`a`, `b`) VALUES (?, ?), (?, ?)``"""

    def render() -> str:
        columns = ", ".join(f.quoted for f in model.fields)
        group = "(" + ", ".join("?" for _ in model.fields) + ")"
        values = ", ".join(group for _ in range(row_count))
        return f"INSERT INTO {model.quoted_table}({columns}) VALUES {values}"

    key = StatementCache.make_key("insert", model.table_name, [f.column for f in model.fields], row_count)
    return StatementCache.get_or_render(key, render)


def render_select(
    model: Model,
    fields: Sequence[Field],
    joined: Sequence[tuple[Model, Sequence[Field]]] = (),
    join_clauses: Sequence[tuple[str, str]] = (),
) -> str:
    """
    ``SELECT `t`.`a`, `j`.`b` FROM `t` LEFT JOIN `j` ON cond``

    Args:
        model: Root model
        fields: Root columns to fetch
        joined: Joined models contributing columns, with the columns to fetch
        join_clauses: ``(table, condition)`` for every LEFT JOIN, including
            link tables that contribute no columns
    """

    def render() -> str:
        columns = [f.quoted_select for f in fields]
        for _, join_fields in joined:
            columns.extend(f.quoted_joined for f in join_fields)
        sql = f"SELECT {', '.join(columns)} FROM {model.quoted_table}"
        for table, condition in join_clauses:
            sql += f" LEFT JOIN {quote_identifier(table)} ON {condition}"
        return sql

    key = StatementCache.make_key(
        "select",
        model.table_name,
        [f.quoted_select for f in fields],
        [[f.quoted_joined for f in join_fields] for _, join_fields in joined],
        list(join_clauses),
    )
    return StatementCache.get_or_render(key, render)


def render_update(model: Model, fields: Sequence[Field]) -> str:
    """``UPDATE `t` SET `a` = ?, `b` = ?``"""

    def render() -> str:
        assignments = ", ".join(f"{f.quoted} = ?" for f in fields)
        return f"UPDATE {model.quoted_table} SET {assignments}"

    key = StatementCache.make_key("update", model.table_name, [f.column for f in fields])
    return StatementCache.get_or_render(key, render)


def render_delete(model: Model) -> str:
    """``DELETE FROM `t```"""
    key = StatementCache.make_key("delete", model.table_name)
    return StatementCache.get_or_render(key, lambda: f"DELETE FROM {model.quoted_table}")


def with_clause(statement: str, clause: str) -> str:
    """Append a predicate clause (possibly empty) and the terminating semicolon."""
    if clause:
        return f"{statement} {clause};"
    return f"{statement};"


__all__ = [
    "StatementCache",
    "render_insert",
    "render_select",
    "render_update",
    "render_delete",
    "with_clause",
]
