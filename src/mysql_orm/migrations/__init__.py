"""
Versioned SQL migrations.

Migrations are ``<version>.sql`` files (with optional ``<version>_down.sql``
rollback scripts) named after the UTC time they were created::

    migrations/
        0000-00-00:00:00:00.sql          # default schema, applied on request
        2024-01-31:10:00:00.sql
        2024-01-31:10:00:00_down.sql

Example:
    registry = MigrationRegistry.from_path("migrations")
    migrator = Migrator(db, registry)
    await migrator.init_schema(exec_default=True)
    await migrator.update_schema()
"""

from .executor import MigrationStatus, Migrator
from .ledger import MigrationLog, SchemaMigration
from .migration import Migration, is_valid_version, new_version, normalize_version
from .registry import MigrationRegistry, new_migration

__all__ = [
    "Migration",
    "MigrationRegistry",
    "MigrationStatus",
    "Migrator",
    "MigrationLog",
    "SchemaMigration",
    "new_migration",
    "new_version",
    "normalize_version",
    "is_valid_version",
]
