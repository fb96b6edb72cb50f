"""
Query options and the predicate compiler.

Conditions form a tree that compiles into a parameterized WHERE clause.
They can be combined using ``&`` (AND), ``|`` (OR) and ``~`` (NOT).

Usage:
    from mysql_orm.query import All, Equal, Greater, In, Limit, Order

    # OR query
    users = await db.select(User, Equal("role", "admin") | Equal("role", "owner"))

    # AND with OR, ordered and limited
    users = await db.select(
        User,
        Equal("active", True) & (Greater("age", 18) | Equal("verified", True)),
        Order("created", OrderBy.DESC),
        Limit(10),
    )

    # Bulk mutations with no predicate must opt in explicitly
    await db.delete_rows(Session, All())
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel

from .exceptions import QueryValidationError
from .types import Operation, OrderBy
from .utils import quote_column_reference

# MySQL requires LIMIT when OFFSET is given; this is the documented "no limit" value.
_MAX_LIMIT = 18446744073709551615


class Option:
    """Base class for everything accepted by ``build``."""

    __slots__ = ()


class Condition(Option):
    """A node of the predicate tree."""

    __slots__ = ()

    def __and__(self, other: Condition) -> And:
        return And(self, other)

    def __or__(self, other: Condition) -> Or:
        return Or(self, other)

    def __invert__(self) -> Not:
        return Not(self)


@dataclass(frozen=True, eq=False)
class _Comparison(Condition):
    column: str
    value: Any

    operator = "="

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.column!r}, {self.value!r})"


class Equal(_Comparison):
    """``column = value``; ``Equal(column, None)`` renders ``IS NULL``."""

    operator = "="


class NotEqual(_Comparison):
    """``column != value``; ``NotEqual(column, None)`` renders ``IS NOT NULL``."""

    operator = "!="


class Less(_Comparison):
    operator = "<"


class LessOrEqual(_Comparison):
    operator = "<="


class Greater(_Comparison):
    operator = ">"


class GreaterOrEqual(_Comparison):
    operator = ">="


class Like(_Comparison):
    """``column LIKE pattern``."""

    operator = "LIKE"


@dataclass(frozen=True, eq=False)
class In(Condition):
    """``column IN (v1, v2, ...)``. An empty value list is rejected."""

    column: str
    values: Sequence[Any]


class _Connective(Condition):
    connector = "AND"

    __slots__ = ("conditions",)

    def __init__(self, *conditions: Condition) -> None:
        self.conditions: tuple[Condition, ...] = conditions

    def __repr__(self) -> str:
        return f"{type(self).__name__}{self.conditions!r}"


class And(_Connective):
    connector = "AND"


class Or(_Connective):
    connector = "OR"


@dataclass(frozen=True, eq=False)
class Not(Condition):
    condition: Condition


class Raw(Condition):
    """
    A raw SQL fragment with its own positional arguments.

    Example::

        Raw("`age` BETWEEN ? AND ?", 18, 30)
    """

    __slots__ = ("sql", "args")

    def __init__(self, sql: str, *args: Any) -> None:
        if sql.count("?") != len(args):
            raise QueryValidationError(
                f"Raw fragment expects {sql.count('?')} argument(s), got {len(args)}: {sql!r}"
            )
        self.sql = sql
        self.args = args

    def __repr__(self) -> str:
        return f"Raw({self.sql!r}, *{self.args!r})"


class All(Option):
    """Explicit opt-in to let UPDATE/DELETE affect every row."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "All()"


@dataclass(frozen=True, eq=False)
class Columns(Option):
    """Restrict a SELECT to the given columns (the primary key is always fetched)."""

    names: tuple[str, ...]

    def __init__(self, *names: str) -> None:
        object.__setattr__(self, "names", names)


@dataclass(frozen=True, eq=False)
class Order(Option):
    column: str
    direction: OrderBy = OrderBy.ASC


@dataclass(frozen=True, eq=False)
class Limit(Option):
    count: int


@dataclass(frozen=True, eq=False)
class Offset(Option):
    count: int


@dataclass(frozen=True, eq=False)
class Join(Option):
    """
    LEFT JOIN a related model.

    Args:
        model: Related model class (or instance)
        condition: ON clause, e.g. ``"user.id = subscription.user_id"``
        *columns: Columns of the related model to fetch (default: all)
    """

    model: type[BaseModel]
    condition: str
    columns: tuple[str, ...] = ()

    def __init__(self, model: type[BaseModel] | BaseModel, condition: str, *columns: str) -> None:
        object.__setattr__(self, "model", model if isinstance(model, type) else type(model))
        object.__setattr__(self, "condition", condition)
        object.__setattr__(self, "columns", columns)


@dataclass
class Query:
    """
    A compiled set of query options.

    Attributes:
        sql: ``WHERE ... ORDER BY ... LIMIT ... OFFSET ...`` (may be empty)
        args: Positional arguments in binding order
        is_query_all: ``All()`` was supplied
        has_where: A WHERE clause was rendered
        columns: Column allow-list (empty means every column)
        joins: Join directives in the order given
    """

    sql: str = ""
    args: list[Any] = field(default_factory=list)
    is_query_all: bool = False
    has_where: bool = False
    columns: list[str] = field(default_factory=list)
    joins: list[Join] = field(default_factory=list)


def render_condition(condition: Condition, args: list[Any]) -> str:
    """
    Recursively render a condition tree to a parameterized SQL expression.

    Args:
        condition: Root of the tree
        args: Mutable list collecting positional arguments

    Returns:
        The rendered expression, or an empty string for an empty connective.
    """
    if isinstance(condition, _Comparison):
        column = quote_column_reference(condition.column)
        if condition.value is None and isinstance(condition, Equal):
            return f"{column} IS NULL"
        if condition.value is None and isinstance(condition, NotEqual):
            return f"{column} IS NOT NULL"
        args.append(condition.value)
        return f"{column} {condition.operator} ?"

    if isinstance(condition, In):
        values = list(condition.values)
        if not values:
            raise QueryValidationError(f"IN condition on ({condition.column}) requires at least one value")
        args.extend(values)
        placeholders = ", ".join("?" for _ in values)
        return f"{quote_column_reference(condition.column)} IN ({placeholders})"

    if isinstance(condition, _Connective):
        parts = [p for p in (render_condition(c, args) for c in condition.conditions) if p]
        if not parts:
            return ""
        result = f" {condition.connector} ".join(parts)
        if len(parts) > 1:
            result = f"({result})"
        return result

    if isinstance(condition, Not):
        inner = render_condition(condition.condition, args)
        return f"NOT ({inner})" if inner else ""

    if isinstance(condition, Raw):
        args.extend(condition.args)
        return f"({condition.sql})" if condition.sql else ""

    raise QueryValidationError(f"Unsupported condition: {condition!r}")


def _check_count(name: str, value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise QueryValidationError(f"{name} must be a non-negative integer, got {value!r}")
    return value


def build(options: Sequence[Option], operation: Operation = Operation.SELECT) -> Query:
    """
    Compile query options for a statement.

    Top-level conditions are combined with AND. Orders are applied in the
    order given. ``Columns``, ``Join`` and ``Offset`` are only valid for
    SELECT.

    Raises:
        QueryValidationError: On invalid options for the operation
    """
    query = Query()
    conditions: list[str] = []
    orders: list[str] = []
    limit: int | None = None
    offset: int | None = None

    for option in options:
        if isinstance(option, All):
            query.is_query_all = True
        elif isinstance(option, Condition):
            rendered = render_condition(option, query.args)
            if rendered:
                conditions.append(rendered)
        elif isinstance(option, Order):
            direction = OrderBy(option.direction)
            orders.append(f"{quote_column_reference(option.column)} {direction}")
        elif isinstance(option, Limit):
            limit = _check_count("limit", option.count)
        elif isinstance(option, Offset):
            if operation != Operation.SELECT:
                raise QueryValidationError(f"OFFSET is not supported for {operation}")
            offset = _check_count("offset", option.count)
        elif isinstance(option, Columns):
            if operation != Operation.SELECT:
                raise QueryValidationError(f"column selection is not supported for {operation}")
            query.columns.extend(option.names)
        elif isinstance(option, Join):
            if operation != Operation.SELECT:
                raise QueryValidationError(f"JOIN is not supported for {operation}")
            query.joins.append(option)
        else:
            raise QueryValidationError(f"Unsupported query option: {option!r}")

    parts: list[str] = []
    if conditions:
        query.has_where = True
        parts.append("WHERE " + " AND ".join(conditions))
    if orders:
        parts.append("ORDER BY " + ", ".join(orders))
    if limit is not None:
        parts.append(f"LIMIT {limit}")
    if offset is not None:
        if limit is None:
            parts.append(f"LIMIT {_MAX_LIMIT}")
        parts.append(f"OFFSET {offset}")

    query.sql = " ".join(parts)
    return query


__all__ = [
    "Option",
    "Condition",
    "Equal",
    "NotEqual",
    "Less",
    "LessOrEqual",
    "Greater",
    "GreaterOrEqual",
    "Like",
    "In",
    "And",
    "Or",
    "Not",
    "Raw",
    "All",
    "Columns",
    "Order",
    "Limit",
    "Offset",
    "Join",
    "Query",
    "build",
    "render_condition",
]
