"""Unit tests for mysql_orm.query: predicate compilation and option validation."""

import pytest

from mysql_orm import (
    All,
    And,
    Columns,
    Equal,
    Greater,
    GreaterOrEqual,
    In,
    Join,
    Less,
    LessOrEqual,
    Like,
    Limit,
    Not,
    NotEqual,
    Offset,
    Or,
    Order,
    OrderBy,
    QueryValidationError,
    Raw,
)
from mysql_orm.query import build
from mysql_orm.types import Operation


class TestComparisons:
    @pytest.mark.parametrize(
        ("condition", "sql"),
        [
            (Equal("name", "a"), "WHERE `name` = ?"),
            (NotEqual("name", "a"), "WHERE `name` != ?"),
            (Less("age", 1), "WHERE `age` < ?"),
            (LessOrEqual("age", 1), "WHERE `age` <= ?"),
            (Greater("age", 1), "WHERE `age` > ?"),
            (GreaterOrEqual("age", 1), "WHERE `age` >= ?"),
            (Like("name", "a%"), "WHERE `name` LIKE ?"),
        ],
    )
    def test_operator(self, condition, sql: str) -> None:
        query = build([condition])
        assert query.sql == sql
        assert len(query.args) == 1
        assert query.has_where

    def test_null_comparisons(self) -> None:
        assert build([Equal("deleted", None)]).sql == "WHERE `deleted` IS NULL"
        query = build([NotEqual("deleted", None)])
        assert query.sql == "WHERE `deleted` IS NOT NULL"
        assert query.args == []

    def test_qualified_column(self) -> None:
        assert build([Equal("`user`.`id`", 1)]).sql == "WHERE `user`.`id` = ?"

    def test_in(self) -> None:
        query = build([In("id", [1, 2, 3])])
        assert query.sql == "WHERE `id` IN (?, ?, ?)"
        assert query.args == [1, 2, 3]

    def test_empty_in_rejected(self) -> None:
        with pytest.raises(QueryValidationError):
            build([In("id", [])])


class TestConnectives:
    def test_top_level_conditions_and_together(self) -> None:
        query = build([Equal("a", 1), Equal("b", 2)])
        assert query.sql == "WHERE `a` = ? AND `b` = ?"
        assert query.args == [1, 2]

    def test_nested_or(self) -> None:
        query = build([Equal("active", True) & (Greater("age", 18) | Equal("verified", True))])
        assert query.sql == "WHERE (`active` = ? AND (`age` > ? OR `verified` = ?))"
        assert query.args == [True, 18, True]

    def test_single_child_not_parenthesized(self) -> None:
        assert build([Or(Equal("a", 1))]).sql == "WHERE `a` = ?"

    def test_empty_connective_renders_nothing(self) -> None:
        query = build([And()])
        assert query.sql == ""
        assert not query.has_where

    def test_not(self) -> None:
        query = build([~Equal("a", 1)])
        assert query.sql == "WHERE NOT (`a` = ?)"
        assert build([Not(Equal("a", 1) | Equal("b", 2))]).sql == "WHERE NOT ((`a` = ? OR `b` = ?))"

    def test_raw(self) -> None:
        query = build([Raw("`age` BETWEEN ? AND ?", 18, 30), Equal("a", 1)])
        assert query.sql == "WHERE (`age` BETWEEN ? AND ?) AND `a` = ?"
        assert query.args == [18, 30, 1]

    def test_raw_with_or_stays_grouped(self) -> None:
        query = build([Equal("tenant", 1), Raw("`a` = ? OR `b` = ?", 2, 3)])
        assert query.sql == "WHERE `tenant` = ? AND (`a` = ? OR `b` = ?)"
        assert query.args == [1, 2, 3]

    def test_raw_with_or_inside_and(self) -> None:
        query = build([Raw("`a` = ? OR `b` = ?", 2, 3) & Equal("tenant", 1)])
        assert query.sql == "WHERE ((`a` = ? OR `b` = ?) AND `tenant` = ?)"
        assert query.args == [2, 3, 1]

    def test_empty_raw_renders_nothing(self) -> None:
        query = build([Raw("")])
        assert query.sql == ""
        assert not query.has_where

    def test_raw_argument_count_checked(self) -> None:
        with pytest.raises(QueryValidationError):
            Raw("`a` = ? AND `b` = ?", 1)


class TestOptions:
    def test_order_limit_offset(self) -> None:
        query = build([Equal("a", 1), Order("name"), Order("id", OrderBy.DESC), Limit(10), Offset(20)])
        assert query.sql == "WHERE `a` = ? ORDER BY `name` ASC, `id` DESC LIMIT 10 OFFSET 20"

    def test_offset_without_limit(self) -> None:
        assert build([Offset(5)]).sql == "LIMIT 18446744073709551615 OFFSET 5"

    @pytest.mark.parametrize("option", [Limit(-1), Offset(-1), Limit(True)])
    def test_invalid_counts(self, option) -> None:
        with pytest.raises(QueryValidationError):
            build([option])

    def test_all_marker(self) -> None:
        query = build([All()])
        assert query.is_query_all
        assert not query.has_where
        assert query.sql == ""

    def test_columns_and_joins_collected(self) -> None:
        from pydantic import BaseModel

        class Sub(BaseModel):
            id: int = 0

        join = Join(Sub, "user.id = sub.user_id", "id")
        query = build([Columns("name", "email"), join])
        assert query.columns == ["name", "email"]
        assert query.joins == [join]
        assert join.columns == ("id",)

    @pytest.mark.parametrize("operation", [Operation.UPDATE, Operation.DELETE])
    def test_select_only_options(self, operation: Operation) -> None:
        for option in (Offset(1), Columns("a")):
            with pytest.raises(QueryValidationError):
                build([option], operation)

    def test_unsupported_option(self) -> None:
        with pytest.raises(QueryValidationError):
            build(["WHERE 1"])  # type: ignore[list-item]

    def test_empty(self) -> None:
        query = build([])
        assert query.sql == ""
        assert query.args == []
