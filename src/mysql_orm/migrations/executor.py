"""
Migration executor.

Applies, re-runs and rolls back registered migrations against a
``Database``, recording applied versions in ``SchemaMigration`` and every
action in ``MigrationLog``. Each version runs in its own transaction
together with its ledger update; a failed commit or rollback surfaces as
``TransactionError`` and must be treated as fatal.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from ..adapter import Adapter, Database
from ..exceptions import FatalError, MigrationError, ORMError
from ..query import All, Equal, Limit, Order
from ..types import MigrationAction, OrderBy
from .ledger import MigrationLog, SchemaMigration, utc_now
from .migration import Migration, normalize_version
from .registry import MigrationRegistry

logger = logging.getLogger(__name__)

STATUS_LIMIT = 10


@dataclass
class MigrationStatus:
    """
    Snapshot of the migration state.

    Attributes:
        logs: Latest log entries, newest first
        migrations: Latest applied versions, newest first
    """

    logs: list[MigrationLog] = field(default_factory=list)
    migrations: list[SchemaMigration] = field(default_factory=list)

    @property
    def current_version(self) -> str | None:
        return self.migrations[0].version if self.migrations else None


class Migrator:
    """
    Runs migrations from a registry.

    Example:
        registry = MigrationRegistry.from_path("migrations")
        migrator = Migrator(db, registry)
        await migrator.init_schema()
        installed = await migrator.update_schema()
    """

    def __init__(self, database: Database, registry: MigrationRegistry):
        self.database = database
        self.registry = registry

    async def _log(self, action: MigrationAction, message: str, version: str = "") -> None:
        await self.database.must_insert(MigrationLog.new(action, message, version))

    async def _applied_versions(self) -> list[str]:
        rows = await self.database.select(SchemaMigration, Order("version", OrderBy.ASC))
        return [row.version for row in rows]

    async def _run_in_transaction(self, version: str, error_prefix: str, sql: str, ledger: _LedgerStep) -> None:
        """Run ``sql`` and the ledger update in one transaction."""
        try:
            async with self.database.transaction(label=f"migration ({version})") as tx:
                await tx.execute("migration", sql)
                await ledger(tx, version)
        except FatalError:
            raise
        except ORMError as e:
            raise MigrationError(f"{error_prefix} ({version}): {e}", version=version, code=e.code) from e

    # ── Schema setup ─────────────────────────────────────────────────────

    async def init_schema(self, exec_default: bool = False) -> bool:
        """
        Create the bookkeeping tables if they do not exist.

        Args:
            exec_default: Run the default migration when the tables were just created

        Returns:
            ``True`` when the tables were created by this call
        """
        try:
            await self.database.create_table_if_not_exists(SchemaMigration)
            created = await self.database.create_table_if_not_exists(MigrationLog)
        except ORMError as e:
            raise MigrationError(f"unable to init schema versioning tables: {e}", code=e.code) from e

        for version in await self._applied_versions():
            if version not in self.registry:
                logger.warning(f"Couldn't find schema version ({version}) in the registry")

        await self._log(MigrationAction.INIT, "Creating schema version and log tables")

        if created:
            logger.info("Schema versioning is now initialized")
            if exec_default:
                await self.execute_migration("default")
        return created

    async def update_schema(self, exec_default: bool = False) -> list[str]:
        """
        Apply every registered migration not yet recorded, oldest first.

        The default migration is only applied when ``exec_default`` is set.

        Returns:
            Versions installed by this call
        """
        applied = set(await self._applied_versions())
        installed: list[str] = []

        for version in self.registry.versions():
            if version in applied:
                continue
            migration = self.registry.get(version)
            if not migration.up_sql.strip():
                raise MigrationError(f"migration ({version}): up sql not defined", version=version)
            if migration.is_default and not exec_default:
                continue

            await self._run_in_transaction(version, "fail update to version", migration.up_sql, _insert_ledger)
            installed.append(version)
            logger.info(f"Applied migration {version}")

        if not installed:
            logger.info("Schema is up to date")
            return installed

        message = f"Migration(s) ({', '.join(installed)}) have been installed"
        await self._log(MigrationAction.UPDATE, message)
        logger.info(message)
        return installed

    async def execute_migration(self, version: str, force: bool = False) -> bool:
        """
        Run one migration's forward script and record it.

        A version already recorded is skipped unless ``force`` is set; a
        forced run executes the script again without adding a ledger row.

        Returns:
            ``True`` when the script was executed
        """
        migration = self.registry.get(version)
        version = migration.version
        if not migration.up_sql.strip():
            raise MigrationError(f"migration ({version}): up sql not defined", version=version)

        if not force and version in await self._applied_versions():
            logger.info(f"Migration {version} already applied, skipping")
            return False

        await self._run_in_transaction(version, "fail execute migration", migration.up_sql, _ensure_ledger)
        await self._log(MigrationAction.EXEC, f"Executed migration \"{version}\"", version)
        logger.info(f"Executed migration {version}")
        return True

    # ── Rollback ─────────────────────────────────────────────────────────

    async def _rollback(self, migration: Migration) -> None:
        if not migration.is_reversible:
            raise MigrationError(f"migration ({migration.version}): down sql not found", version=migration.version)
        await self._run_in_transaction(migration.version, "fail rollback version", migration.down_sql, _delete_ledger)

    async def rollback(self, version: str) -> None:
        """Run one migration's reverse script and remove it from the ledger."""
        migration = self.registry.get(normalize_version(version))
        await self._rollback(migration)

        message = f"Rolled back migration \"{migration.version}\""
        await self._log(MigrationAction.ROLLBACK, message, migration.version)
        logger.info(message)

    async def rollback_latest(self) -> str | None:
        """
        Roll back the most recently applied version.

        Returns:
            The version rolled back, ``None`` when nothing was applied
        """
        latest = SchemaMigration()
        if not await self.database.get(latest, Order("version", OrderBy.DESC)):
            logger.info("Nothing to rollback")
            return None

        migration = self.registry.get(latest.version)
        await self._rollback(migration)

        previous = SchemaMigration()
        await self.database.must_get(previous, Order("version", OrderBy.DESC))
        message = f"Rolled back from \"{latest.version}\" to \"{previous.version}\""
        await self._log(MigrationAction.ROLLBACK, message, latest.version)
        logger.info(message)
        return latest.version

    async def reset(self) -> int:
        """
        Forget every applied version. Schema objects are left untouched.

        Returns:
            Number of ledger rows removed
        """
        removed = await self.database.delete_rows(SchemaMigration, All())
        await self._log(MigrationAction.RESET, "Reset all data")
        logger.info("Migration data has been reset")
        return removed

    # ── Status ───────────────────────────────────────────────────────────

    async def status(self, limit: int = STATUS_LIMIT) -> MigrationStatus:
        """Latest log entries and applied versions, newest first."""
        try:
            logs = await self.database.select(MigrationLog, Order("created", OrderBy.DESC), Limit(limit))
        except ORMError as e:
            raise MigrationError(f"can't get latest logs: {e}", code=e.code) from e
        try:
            migrations = await self.database.select(SchemaMigration, Order("version", OrderBy.DESC), Limit(limit))
        except ORMError as e:
            raise MigrationError(f"can't get latest migrations: {e}", code=e.code) from e
        return MigrationStatus(logs=logs, migrations=migrations)


async def _insert_ledger(tx: Adapter, version: str) -> None:
    await tx.insert(SchemaMigration(version=version, created=utc_now()))


async def _ensure_ledger(tx: Adapter, version: str) -> None:
    if not await tx.get(SchemaMigration(), Equal("version", version)):
        await _insert_ledger(tx, version)


async def _delete_ledger(tx: Adapter, version: str) -> None:
    await tx.delete_rows(SchemaMigration, Equal("version", version))


_LedgerStep = Callable[[Adapter, str], Awaitable[None]]


__all__ = ["Migrator", "MigrationStatus"]
