"""
CRUD adapter and database wrapper.

``Adapter`` renders and executes one statement per call against any
``Connection`` (a direct connection or an open transaction). ``Database``
wraps a ``BaseConnection`` and adds transactions and DDL helpers.

Example::

    db = Database(connection)

    await db.insert(User(id=1, name="alice"), User(id=2, name="bob"))
    users = await db.select(User, Greater("id", 0), Order("name"))

    user = User(id=1)
    if await db.get(user):
        user.name = "alice2"
        await db.update(user)

    async with db.transaction() as tx:
        await tx.update_rows(User, {"active": False}, Less("last_seen", cutoff))

Every operation has a ``must_`` counterpart that logs the failure and exits
the process instead of raising. They are meant for setup and migration
scripts.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Mapping, Sequence
from pathlib import Path
from typing import Any, Self, TypeVar

from pydantic import BaseModel, Field as PydanticField

from .config import ConnectionConfig
from .connection import BaseConnection, Connection, ExecResult, Transaction
from .constants import LIMIT_INSERT
from .debug import _elapsed_ms, _log_query, _start_timer
from .exceptions import (
    ModelDefinitionError,
    ORMError,
    QueryError,
    QueryValidationError,
    TransactionError,
    error_code,
    is_table_exists_error,
)
from .query import Join, Option, Query, build
from .reflect import Field, Model, is_empty_pk, resolve_model
from .scanner import RowAssembler, RowBinding
from .schema import generate_create_table
from .statements import render_delete, render_insert, render_select, render_update, with_clause
from .types import Operation

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)
R = TypeVar("R")


class _RowsCount(BaseModel):
    count: int = PydanticField(0, alias="COUNT(*) as count")


class Adapter:
    """
    Handles basic statements against a connection.

    Args:
        connection: A direct connection or a transaction handle
        debug: Log every statement at INFO instead of DEBUG
    """

    def __init__(self, connection: Connection, *, debug: bool = False):
        self.connection = connection
        self.debug = debug

    # ── Execution ────────────────────────────────────────────────────────

    def _log(self, sql: str, args: Sequence[Any]) -> None:
        level = logging.INFO if self.debug else logging.DEBUG
        if logger.isEnabledFor(level):
            logger.log(level, f"{sql} {list(args)!r}")

    async def _run(self, operation: str, sql: str, args: list[Any], call: Awaitable[R]) -> R:
        self._log(sql, args)
        start = _start_timer()
        try:
            result = await call
        except ORMError as e:
            _log_query(operation, sql, args, _elapsed_ms(start), e)
            raise
        except Exception as e:
            _log_query(operation, sql, args, _elapsed_ms(start), e)
            raise QueryError(f"{operation} error: {e}", query=sql, code=error_code(e)) from e
        _log_query(operation, sql, args, _elapsed_ms(start))
        return result

    async def execute(self, operation: str, sql: str, args: list[Any] | None = None) -> ExecResult:
        args = args or []
        return await self._run(operation, sql, args, self.connection.execute(sql, *args))

    async def _query(self, operation: str, sql: str, args: list[Any]) -> Sequence[Sequence[Any]]:
        return await self._run(operation, sql, args, self.connection.query(sql, *args))

    async def _query_row(self, operation: str, sql: str, args: list[Any]) -> Sequence[Any] | None:
        return await self._run(operation, sql, args, self.connection.query_row(sql, *args))

    async def _must(self, operation: str, call: Awaitable[R]) -> R:
        try:
            return await call
        except Exception as e:
            logger.critical(f"{operation} failed: {e}")
            raise SystemExit(1) from e

    # ── Insert ───────────────────────────────────────────────────────────

    async def insert(self, *records: BaseModel) -> ExecResult:
        """
        Insert one or more records of the same model with a single statement.

        At most 1000 records may be inserted at once.

        Returns:
            The driver's execution result (affected rows, last insert id)
        """
        if not records:
            raise QueryValidationError("nothing to insert")
        if len(records) > LIMIT_INSERT:
            raise QueryValidationError(f"insertion of more than ({LIMIT_INSERT}) items not allowed")

        model = resolve_model(records[0])
        model.require_pk()
        args: list[Any] = []
        for record in records:
            record_model = resolve_model(record)
            if record_model.table_name != model.table_name:
                raise QueryValidationError("cannot insert items from different tables")
            if type(record) is not type(records[0]):
                raise QueryValidationError(
                    f"cannot insert {type(record).__name__} items together with {type(records[0]).__name__} items"
                )
            args.extend(model.get_values(record, model.fields))

        sql = with_clause(render_insert(model, len(records)), "")
        return await self.execute("insert", sql, args)

    async def must_insert(self, *records: BaseModel) -> ExecResult:
        return await self._must("insert", self.insert(*records))

    # ── Update ───────────────────────────────────────────────────────────

    async def update(self, record: BaseModel) -> None:
        """Update every non-key column of a record, by primary key."""
        model = resolve_model(record)
        pk = model.require_pk()
        fields = model.fields_no_pk()
        if not fields:
            raise QueryValidationError(f"table ({model.table_name}) has no columns to update")
        args = [*model.get_values(record, fields), getattr(record, pk.name)]
        sql = with_clause(render_update(model, fields), f"WHERE {pk.quoted} = ?")
        await self.execute("update", sql, args)

    async def must_update(self, record: BaseModel) -> None:
        await self._must("update", self.update(record))

    async def update_rows(
        self,
        model_cls: type[BaseModel] | BaseModel,
        values: Mapping[str, Any],
        *options: Option,
    ) -> int:
        """
        Update columns of every row matching the query options.

        Keys of ``values`` are column or attribute names. Updating all rows
        requires an explicit ``All()`` option.

        Returns:
            Number of affected rows
        """
        if not values:
            raise QueryValidationError("columns for update cannot be empty")
        if not options:
            raise QueryValidationError("query options cannot be empty")

        model = resolve_model(model_cls)
        model.require_pk()
        fields: list[Field] = []
        args: list[Any] = []
        for name, value in values.items():
            f = model.find_field(name)
            if f is None:
                raise QueryValidationError(f"unrecognized column ({name}) for table ({model.table_name})")
            if f.is_primary_key:
                raise QueryValidationError(f"primary key ({f.column}) cannot be updated")
            fields.append(f)
            args.append(f.to_db(value))

        stmt = self._build_mutation(options, Operation.UPDATE)
        sql = with_clause(render_update(model, fields), stmt.sql)
        result = await self.execute("update", sql, [*args, *stmt.args])
        return result.rows_affected

    async def must_update_rows(
        self,
        model_cls: type[BaseModel] | BaseModel,
        values: Mapping[str, Any],
        *options: Option,
    ) -> int:
        return await self._must("update rows", self.update_rows(model_cls, values, *options))

    @staticmethod
    def _build_mutation(options: Sequence[Option], operation: Operation) -> Query:
        stmt = build(options, operation)
        if not stmt.is_query_all and not stmt.has_where:
            raise QueryValidationError("query options cannot be empty, pass All() to affect every row")
        return stmt

    # ── Select ───────────────────────────────────────────────────────────

    def _resolve_joins(self, model: Model, joins: Sequence[Join]) -> tuple[list[tuple[Model, list[Field]]], list[tuple[str, str]]]:
        """Resolve join directives into column-contributing models and LEFT JOIN clauses."""
        joined: list[tuple[Model, list[Field]]] = []
        clauses: list[tuple[str, str]] = []
        for join in joins:
            join_model = resolve_model(join.model)
            if join_model.name not in model.joins and not join_model.many_to_many:
                raise ModelDefinitionError(
                    f"unknown join relation {join_model.name}, "
                    f"the {model.name} field holding it should be marked with Relation"
                )
            clauses.append((join_model.table_name, join.condition))
            if join_model.many_to_many:
                continue
            join_model.require_pk()
            joined.append((join_model, join_model.get_fields(join.columns)))
        return joined, clauses

    async def _select(self, model: Model, stmt: Query) -> list[Any]:
        fields = model.get_fields(stmt.columns)
        joined, clauses = self._resolve_joins(model, stmt.joins)
        assembler: RowAssembler[Any] = RowAssembler(model, fields, joined)
        sql = with_clause(render_select(model, fields, joined, clauses), stmt.sql)
        rows = await self._query("select", sql, stmt.args)
        return assembler.assemble(rows)

    async def select(self, model_cls: type[T], *options: Option) -> list[T]:
        """
        Fetch every row matching the query options (all rows when none are given).

        Joined relations are assembled into the records' ``Relation`` fields.
        Rows of one root record must be contiguous; see ``mysql_orm.scanner``.
        """
        model = resolve_model(model_cls)
        stmt = build(options, Operation.SELECT)
        return await self._select(model, stmt)

    async def must_select(self, model_cls: type[T], *options: Option) -> list[T]:
        return await self._must("select", self.select(model_cls, *options))

    async def get(self, record: BaseModel, *options: Option) -> bool:
        """
        Fill ``record`` from a single row.

        With no options the row is looked up by the record's primary key.
        With options, the first matching row is used and any extra rows are
        ignored. Without joins only the selected columns are assigned; with
        joins the whole record (relations included) is replaced.

        Returns:
            ``True`` when a row was found
        """
        model = resolve_model(record)
        pk = model.require_pk()

        if options:
            stmt = build(options, Operation.SELECT)
        else:
            stmt = Query(sql=f"WHERE {pk.quoted} = ?", args=[getattr(record, pk.name)], has_where=True)

        if stmt.joins:
            found = await self._select(model, stmt)
            if not found:
                return False
            for name in type(record).model_fields:
                setattr(record, name, getattr(found[0], name))
            return True

        fields = model.get_fields(stmt.columns)
        sql = with_clause(render_select(model, fields), stmt.sql)
        row = await self._query_row("get", sql, stmt.args)
        if row is None:
            return False
        fetched = RowBinding(model, fields).build(row)
        for f in fields:
            setattr(record, f.name, getattr(fetched, f.name))
        return True

    async def must_get(self, record: BaseModel, *options: Option) -> bool:
        return await self._must("get", self.get(record, *options))

    # ── Delete ───────────────────────────────────────────────────────────

    async def delete(self, record: BaseModel) -> None:
        """Delete a record by primary key. An unset primary key is rejected."""
        model = resolve_model(record)
        pk = model.require_pk()
        value = getattr(record, pk.name)
        if is_empty_pk(value):
            raise QueryValidationError(f"cannot delete from table ({model.table_name}), primary key not set")
        sql = with_clause(render_delete(model), f"WHERE {pk.quoted} = ?")
        await self.execute("delete", sql, [value])

    async def must_delete(self, record: BaseModel) -> None:
        await self._must("delete", self.delete(record))

    async def delete_rows(self, model_cls: type[BaseModel] | BaseModel, *options: Option) -> int:
        """
        Delete every row matching the query options.

        Deleting all rows requires an explicit ``All()`` option.

        Returns:
            Number of affected rows
        """
        model = resolve_model(model_cls)
        model.require_pk()
        stmt = self._build_mutation(options, Operation.DELETE)
        sql = with_clause(render_delete(model), stmt.sql)
        result = await self.execute("delete", sql, stmt.args)
        return result.rows_affected

    async def must_delete_rows(self, model_cls: type[BaseModel] | BaseModel, *options: Option) -> int:
        return await self._must("delete rows", self.delete_rows(model_cls, *options))

    # ── Count ────────────────────────────────────────────────────────────

    async def count(self, model_cls: type[BaseModel] | BaseModel, *options: Option) -> int:
        """Count rows matching the query options. Column selection is ignored."""
        origin = resolve_model(model_cls)
        origin.require_pk()
        stmt = build(options, Operation.SELECT)
        if stmt.joins:
            raise QueryValidationError("JOIN is not supported for count")

        model = resolve_model(_RowsCount).with_table(origin.table_name)
        fields = list(model.fields)
        sql = with_clause(render_select(model, fields), stmt.sql)
        rows = await self._query("count", sql, stmt.args)
        counted: list[_RowsCount] = RowAssembler(model, fields).assemble(rows)
        if not counted:
            return 0
        return counted[0].count

    async def must_count(self, model_cls: type[BaseModel] | BaseModel, *options: Option) -> int:
        return await self._must("count", self.count(model_cls, *options))


class TransactionScope:
    """
    Async context manager around a transaction.

    Yields an ``Adapter`` bound to the transaction. Commits on success and
    rolls back on error. A failure to commit or roll back raises
    ``TransactionError``, which callers must treat as unrecoverable.
    """

    def __init__(self, database: Database, label: str = "transaction"):
        self._database = database
        self._label = label
        self.tx: Transaction | None = None

    async def __aenter__(self) -> Adapter:
        try:
            self.tx = await self._database.connection.begin()
        except Exception as e:
            raise QueryError(f"{self._label}: fail start transaction: {e}", code=error_code(e)) from e
        return Adapter(self.tx, debug=self._database.debug)

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> bool:
        """Commit on success, rollback on exception."""
        if self.tx is None:
            raise TransactionError(f"{self._label}: transaction was never started")
        if exc_type is not None:
            try:
                await self.tx.rollback()
            except Exception as e:
                logger.critical(f"{self._label}: failed to rollback transaction: {e}")
                raise TransactionError(
                    f"{self._label}: failed to rollback transaction: {e}",
                    code=error_code(e),
                    rollback_succeeded=False,
                ) from exc_val
            logger.debug(f"{self._label}: transaction rolled back")
            return False  # Re-raise exception
        try:
            await self.tx.commit()
        except Exception as e:
            logger.critical(f"{self._label}: failed to commit transaction: {e}")
            raise TransactionError(
                f"{self._label}: failed to commit transaction: {e}",
                code=error_code(e),
            ) from e
        return False


class Database(Adapter):
    """
    A base connection with CRUD operations, transactions and DDL helpers.

    Args:
        connection: Connection able to open transactions
        debug: Log every statement at INFO instead of DEBUG
        migration_path: Directory relative SQL file names are resolved against
    """

    connection: BaseConnection

    def __init__(
        self,
        connection: BaseConnection,
        *,
        debug: bool = False,
        migration_path: str | Path | None = None,
    ):
        super().__init__(connection, debug=debug)
        self.migration_path = Path(migration_path) if migration_path else None

    @classmethod
    def from_config(cls, connection: BaseConnection, config: ConnectionConfig) -> Self:
        """Build a database from a ``ConnectionConfig``."""
        return cls(connection, debug=config.debug, migration_path=config.migration_path or None)

    async def begin(self) -> Transaction:
        """Start a transaction and return its handle. Wrap it with ``wrap`` for CRUD access."""
        return await self.connection.begin()

    def wrap(self, connection: Connection) -> Adapter:
        """Return an adapter over another connection (e.g. a transaction), sharing settings."""
        return Adapter(connection, debug=self.debug)

    def transaction(self, label: str = "transaction") -> TransactionScope:
        return TransactionScope(self, label)

    # ── DDL ──────────────────────────────────────────────────────────────

    async def create_table(self, model_cls: type[BaseModel] | BaseModel) -> None:
        """Create the table for a model."""
        sql = generate_create_table(model_cls)
        await self.execute("create table", sql)

    async def must_create_table(self, model_cls: type[BaseModel] | BaseModel) -> None:
        await self._must("create table", self.create_table(model_cls))

    async def create_table_if_not_exists(self, model_cls: type[BaseModel] | BaseModel) -> bool:
        """
        Create the table for a model unless it exists.

        Returns:
            ``True`` when the table was created, ``False`` when it already existed
        """
        try:
            await self.create_table(model_cls)
        except QueryError as e:
            if is_table_exists_error(e):
                return False
            raise
        return True

    async def exec_file(self, file_name: str | Path) -> None:
        """Execute a SQL file, resolved against ``migration_path`` when relative."""
        path = Path(file_name)
        if not path.is_absolute() and self.migration_path is not None:
            path = self.migration_path / path.name
        try:
            sql = path.read_text()
        except OSError as e:
            raise ORMError(f"cannot read sql file ({file_name}): {e}") from e
        await self.execute("exec file", sql)


__all__ = ["Adapter", "Database", "TransactionScope"]
