"""Unit tests for mysql_orm.migrations: registry, files and the migrator lifecycle."""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any

import pytest

from mysql_orm import Database, ExecResult
from mysql_orm.constants import DEFAULT_VERSION, DOWN_TEMPLATE, UP_TEMPLATE
from mysql_orm.exceptions import (
    DuplicateMigrationError,
    MigrationError,
    MigrationNotFoundError,
    TransactionError,
)
from mysql_orm.migrations import (
    MigrationRegistry,
    Migrator,
    is_valid_version,
    new_migration,
    new_version,
    normalize_version,
)
from mysql_orm.testing import FakeConnection, FakeDriverError

V1 = "2024-01-31:10:00:00"
V2 = "2024-02-01:09:30:00"
CREATED = datetime(2024, 2, 1, 9, 30)

LEDGER = "`_mysql_orm_schema_migration`"
LOG = "`_mysql_orm_migration_log`"


class Ledger:
    """Applied versions kept in memory and served through a FakeConnection."""

    def __init__(self, conn: FakeConnection, versions: list[str] | None = None):
        self.versions = list(versions or [])
        conn.on_query(f"FROM {LEDGER}", self.rows)
        conn.on_execute(f"INSERT INTO {LEDGER}", self.insert)
        conn.on_execute(f"DELETE FROM {LEDGER}", self.delete)

    def rows(self, sql: str, args: tuple[Any, ...]) -> list[tuple[Any, ...]]:
        versions = sorted(self.versions, reverse="DESC" in sql)
        if "WHERE `version` = ?" in sql:
            versions = [v for v in versions if v == args[0]]
        return [(v, CREATED) for v in versions]

    def insert(self, sql: str, args: tuple[Any, ...]) -> ExecResult:
        self.versions.append(args[0])
        return ExecResult(rows_affected=1)

    def delete(self, sql: str, args: tuple[Any, ...]) -> ExecResult:
        if args:
            self.versions.remove(args[0])
            return ExecResult(rows_affected=1)
        removed = len(self.versions)
        self.versions.clear()
        return ExecResult(rows_affected=removed)


def log_entries(conn: FakeConnection) -> list[tuple[Any, ...]]:
    """(action, message, version) of every committed log insert."""
    return [(s.args[1], s.args[3], s.args[5]) for s in conn.committed if s.sql.startswith(f"INSERT INTO {LOG}")]


@pytest.fixture
def registry() -> MigrationRegistry:
    registry = MigrationRegistry()
    registry.register("default", "CREATE TABLE `base`(`id` INT);", "DROP TABLE `base`;")
    registry.register(V1, "CREATE TABLE `a`(`id` INT);", "DROP TABLE `a`;")
    registry.register(V2, "CREATE TABLE `b`(`id` INT);", "DROP TABLE `b`;")
    return registry


@pytest.fixture
def migrator(db: Database, registry: MigrationRegistry) -> Migrator:
    return Migrator(db, registry)


class TestVersions:
    @pytest.mark.parametrize(
        ("version", "valid"),
        [
            (V1, True),
            (DEFAULT_VERSION, True),
            ("2024-1-31:10:00:00", False),
            ("2024-01-31 10:00:00", False),
            ("2024-13-01:00:00:00", False),
            ("init", False),
        ],
    )
    def test_is_valid_version(self, version: str, valid: bool) -> None:
        assert is_valid_version(version) is valid

    def test_normalize_default_alias(self) -> None:
        assert normalize_version("default") == DEFAULT_VERSION
        assert normalize_version(V1) == V1

    def test_new_version(self) -> None:
        assert new_version(datetime(2024, 1, 31, 10, 0, 0)) == V1
        assert new_version(default=True) == DEFAULT_VERSION
        assert is_valid_version(new_version())


class TestRegistry:
    def test_versions_sorted_default_first(self, registry: MigrationRegistry) -> None:
        assert registry.versions() == [DEFAULT_VERSION, V1, V2]

    def test_get_default_alias(self, registry: MigrationRegistry) -> None:
        migration = registry.get("default")
        assert migration.is_default
        assert migration.version == DEFAULT_VERSION
        assert "default" in registry

    def test_get_missing(self, registry: MigrationRegistry) -> None:
        with pytest.raises(MigrationNotFoundError):
            registry.get("2030-01-01:00:00:00")

    def test_duplicate(self, registry: MigrationRegistry) -> None:
        with pytest.raises(DuplicateMigrationError, match="already been registered"):
            registry.register(V1, "SELECT 1;")

    def test_invalid_version(self) -> None:
        with pytest.raises(MigrationError, match="unrecognized version"):
            MigrationRegistry().register("first", "SELECT 1;")

    def test_from_path(self, tmp_path: Path) -> None:
        (tmp_path / f"{V1}.sql").write_text("CREATE TABLE `a`(`id` INT);")
        (tmp_path / f"{V1}_down.sql").write_text("DROP TABLE `a`;")
        (tmp_path / f"{V2}.sql").write_text("CREATE TABLE `b`(`id` INT);")
        (tmp_path / f"{DEFAULT_VERSION}.sql").write_text("CREATE TABLE `base`(`id` INT);")
        (tmp_path / "README.md").write_text("notes")
        (tmp_path / "archive.sql").mkdir()

        registry = MigrationRegistry.from_path(tmp_path)
        assert registry.versions() == [DEFAULT_VERSION, V1, V2]
        assert registry.get(V1).down_sql == "DROP TABLE `a`;"
        assert registry.get(V2).down_sql == ""
        assert not registry.get(V2).is_reversible
        assert registry.path == tmp_path

    def test_from_path_rejects_bad_names(self, tmp_path: Path) -> None:
        (tmp_path / "init.sql").write_text("SELECT 1;")
        with pytest.raises(MigrationError, match="unrecognized version"):
            MigrationRegistry.from_path(tmp_path)

    def test_from_path_missing_directory(self, tmp_path: Path) -> None:
        with pytest.raises(MigrationError, match="invalid migration path"):
            MigrationRegistry.from_path(tmp_path / "missing")


class TestNewMigration:
    def test_creates_pair(self, tmp_path: Path) -> None:
        up_path, down_path = new_migration(tmp_path)
        assert up_path.read_text() == UP_TEMPLATE
        assert down_path.read_text() == DOWN_TEMPLATE
        assert down_path.name == up_path.name.replace(".sql", "_down.sql")
        assert is_valid_version(up_path.name[: -len(".sql")])

    def test_default(self, tmp_path: Path) -> None:
        up_path, _ = new_migration(tmp_path, default=True)
        assert up_path.name == f"{DEFAULT_VERSION}.sql"
        with pytest.raises(MigrationError, match="already exists"):
            new_migration(tmp_path, default=True)

    def test_up_file_removed_when_down_fails(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        original = Path.write_text

        def write_text(self: Path, data: str, *args: Any, **kwargs: Any) -> int:
            if self.name.endswith("_down.sql"):
                raise OSError("disk full")
            return original(self, data, *args, **kwargs)

        monkeypatch.setattr(Path, "write_text", write_text)
        with pytest.raises(MigrationError, match="down migration"):
            new_migration(tmp_path, default=True)
        assert list(tmp_path.iterdir()) == []


class TestInitSchema:
    async def test_creates_tables_and_logs(self, migrator: Migrator, conn: FakeConnection) -> None:
        assert await migrator.init_schema() is True
        created = [sql for sql in conn.executed_sql if sql.startswith("CREATE TABLE")]
        assert created[0].startswith(f"CREATE TABLE {LEDGER}(")
        assert created[1].startswith(f"CREATE TABLE {LOG}(")
        assert log_entries(conn) == [("init", "Creating schema version and log tables", "")]
        assert "CREATE TABLE `base`(`id` INT);" not in conn.executed_sql

    async def test_exec_default(self, migrator: Migrator, conn: FakeConnection) -> None:
        ledger = Ledger(conn)
        await migrator.init_schema(exec_default=True)
        assert "CREATE TABLE `base`(`id` INT);" in conn.committed_sql
        assert ledger.versions == [DEFAULT_VERSION]

    async def test_existing_tables(self, migrator: Migrator, conn: FakeConnection) -> None:
        conn.on_execute("CREATE TABLE", FakeDriverError(1050, "already exists"))
        assert await migrator.init_schema(exec_default=True) is False
        assert "CREATE TABLE `base`(`id` INT);" not in conn.executed_sql
        assert [entry[0] for entry in log_entries(conn)] == ["init"]

    async def test_create_failure(self, migrator: Migrator, conn: FakeConnection) -> None:
        conn.on_execute("CREATE TABLE", FakeDriverError(1142, "command denied"))
        with pytest.raises(MigrationError, match="unable to init"):
            await migrator.init_schema()

    async def test_warns_about_unknown_versions(
        self, migrator: Migrator, conn: FakeConnection, caplog: pytest.LogCaptureFixture
    ) -> None:
        Ledger(conn, ["2020-01-01:00:00:00"])
        with caplog.at_level(logging.WARNING, logger="mysql_orm.migrations.executor"):
            await migrator.init_schema()
        assert "2020-01-01:00:00:00" in caplog.text


class TestUpdateSchema:
    async def test_applies_pending_in_order(self, migrator: Migrator, conn: FakeConnection) -> None:
        ledger = Ledger(conn)
        assert await migrator.update_schema() == [V1, V2]
        assert ledger.versions == [V1, V2]
        ups = [sql for sql in conn.committed_sql if sql.startswith("CREATE TABLE `")]
        assert ups == ["CREATE TABLE `a`(`id` INT);", "CREATE TABLE `b`(`id` INT);"]
        assert len(conn.transactions) == 2
        assert log_entries(conn) == [("update", f"Migration(s) ({V1}, {V2}) have been installed", "")]

    async def test_skips_applied(self, migrator: Migrator, conn: FakeConnection) -> None:
        Ledger(conn, [V1])
        assert await migrator.update_schema() == [V2]
        assert "CREATE TABLE `a`(`id` INT);" not in conn.executed_sql

    async def test_exec_default(self, migrator: Migrator, conn: FakeConnection) -> None:
        Ledger(conn)
        assert await migrator.update_schema(exec_default=True) == [DEFAULT_VERSION, V1, V2]

    async def test_up_to_date(self, migrator: Migrator, conn: FakeConnection) -> None:
        Ledger(conn, [V1, V2])
        assert await migrator.update_schema() == []
        assert conn.transactions == []
        assert log_entries(conn) == []

    async def test_empty_up_sql(self, db: Database, conn: FakeConnection) -> None:
        registry = MigrationRegistry()
        registry.register(V1, "   ")
        with pytest.raises(MigrationError, match="up sql not defined"):
            await Migrator(db, registry).update_schema()

    async def test_failure_rolls_back_and_stops(self, migrator: Migrator, conn: FakeConnection) -> None:
        conn.on_execute("CREATE TABLE `b`", FakeDriverError(1064, "syntax error"))
        with pytest.raises(MigrationError, match=f"fail update to version \\({V2}\\)") as exc_info:
            await migrator.update_schema()
        assert exc_info.value.version == V2
        assert exc_info.value.code == 1064
        assert conn.transactions[0].committed
        assert conn.transactions[1].rolled_back
        assert "CREATE TABLE `b`(`id` INT);" not in conn.committed_sql

    async def test_commit_failure_is_fatal(self, migrator: Migrator, conn: FakeConnection) -> None:
        conn.commit_error = RuntimeError("lost connection")
        with pytest.raises(TransactionError):
            await migrator.update_schema()


class TestExecuteMigration:
    async def test_runs_and_records(self, migrator: Migrator, conn: FakeConnection) -> None:
        ledger = Ledger(conn)
        assert await migrator.execute_migration(V1) is True
        assert "CREATE TABLE `a`(`id` INT);" in conn.committed_sql
        assert ledger.versions == [V1]
        assert log_entries(conn) == [("exec", f'Executed migration "{V1}"', V1)]

    async def test_already_applied_skipped(self, migrator: Migrator, conn: FakeConnection) -> None:
        Ledger(conn, [V1])
        assert await migrator.execute_migration(V1) is False
        assert conn.transactions == []

    async def test_force_reruns_without_duplicate_ledger_row(self, migrator: Migrator, conn: FakeConnection) -> None:
        ledger = Ledger(conn, [V1])
        assert await migrator.execute_migration(V1, force=True) is True
        assert "CREATE TABLE `a`(`id` INT);" in conn.committed_sql
        assert ledger.versions == [V1]

    async def test_default_alias(self, migrator: Migrator, conn: FakeConnection) -> None:
        ledger = Ledger(conn)
        await migrator.execute_migration("default")
        assert ledger.versions == [DEFAULT_VERSION]

    async def test_unknown_version(self, migrator: Migrator) -> None:
        with pytest.raises(MigrationNotFoundError):
            await migrator.execute_migration("2030-01-01:00:00:00")


class TestRollback:
    async def test_rollback_version(self, migrator: Migrator, conn: FakeConnection) -> None:
        ledger = Ledger(conn, [V1, V2])
        await migrator.rollback(V1)
        assert "DROP TABLE `a`;" in conn.committed_sql
        assert ledger.versions == [V2]
        assert log_entries(conn) == [("rollback", f'Rolled back migration "{V1}"', V1)]

    async def test_missing_down_sql(self, db: Database, conn: FakeConnection) -> None:
        registry = MigrationRegistry()
        registry.register(V1, "CREATE TABLE `a`(`id` INT);")
        with pytest.raises(MigrationError, match="down sql not found"):
            await Migrator(db, registry).rollback(V1)
        assert conn.transactions == []

    async def test_rollback_latest(self, migrator: Migrator, conn: FakeConnection) -> None:
        ledger = Ledger(conn, [V1, V2])
        assert await migrator.rollback_latest() == V2
        assert "DROP TABLE `b`;" in conn.committed_sql
        assert ledger.versions == [V1]
        assert log_entries(conn) == [("rollback", f'Rolled back from "{V2}" to "{V1}"', V2)]

    async def test_rollback_latest_to_nothing(self, migrator: Migrator, conn: FakeConnection) -> None:
        Ledger(conn, [V1])
        assert await migrator.rollback_latest() == V1
        assert log_entries(conn) == [("rollback", f'Rolled back from "{V1}" to ""', V1)]

    async def test_nothing_to_rollback(self, migrator: Migrator, conn: FakeConnection) -> None:
        Ledger(conn)
        assert await migrator.rollback_latest() is None
        assert log_entries(conn) == []

    async def test_latest_not_registered(self, migrator: Migrator, conn: FakeConnection) -> None:
        Ledger(conn, ["2030-01-01:00:00:00"])
        with pytest.raises(MigrationNotFoundError):
            await migrator.rollback_latest()

    async def test_rollback_failure_is_fatal(self, migrator: Migrator, conn: FakeConnection) -> None:
        Ledger(conn, [V1])
        conn.on_execute("DROP TABLE", FakeDriverError(1051, "unknown table"))
        conn.rollback_error = RuntimeError("lost connection")
        with pytest.raises(TransactionError) as exc_info:
            await migrator.rollback(V1)
        assert exc_info.value.rollback_succeeded is False


class TestResetAndStatus:
    async def test_reset(self, migrator: Migrator, conn: FakeConnection) -> None:
        ledger = Ledger(conn, [V1, V2])
        assert await migrator.reset() == 2
        assert f"DELETE FROM {LEDGER};" in conn.committed_sql
        assert ledger.versions == []
        assert log_entries(conn) == [("reset", "Reset all data", "")]

    async def test_status(self, migrator: Migrator, conn: FakeConnection) -> None:
        Ledger(conn, [V1, V2])
        conn.on_query(f"FROM {LOG}", [(2, "update", CREATED, "installed", True, ""), (1, "init", CREATED, "init", True, "")])
        status = await migrator.status()
        assert [log.action for log in status.logs] == ["update", "init"]
        assert [m.version for m in status.migrations] == [V2, V1]
        assert status.current_version == V2
        assert any("ORDER BY `created` DESC LIMIT 10" in sql for sql in conn.queried_sql)
        assert any("ORDER BY `version` DESC LIMIT 10" in sql for sql in conn.queried_sql)

    async def test_status_failure(self, migrator: Migrator, conn: FakeConnection) -> None:
        conn.on_query(f"FROM {LOG}", FakeDriverError(1146, "no such table"))
        with pytest.raises(MigrationError, match="can't get latest logs"):
            await migrator.status()
