"""
Migration registry.

Holds the set of known migrations for one ``Migrator``. Versions are loaded
from a directory of SQL files or registered in code::

    registry = MigrationRegistry.from_path("migrations")
    registry.register("2024-02-01:09:30:00", "ALTER TABLE ...", "ALTER TABLE ...")
"""

from __future__ import annotations

import logging
from pathlib import Path

from ..constants import DOWN_SUFFIX, DOWN_TEMPLATE, UP_SUFFIX, UP_TEMPLATE
from ..exceptions import DuplicateMigrationError, MigrationError, MigrationNotFoundError
from .migration import Migration, is_valid_version, new_version, normalize_version

logger = logging.getLogger(__name__)


class MigrationRegistry:
    """
    Registered migrations keyed by version.

    Args:
        path: Directory migration files are read from and written to
    """

    def __init__(self, path: str | Path | None = None):
        self.path = Path(path) if path else None
        self._migrations: dict[str, Migration] = {}

    def __len__(self) -> int:
        return len(self._migrations)

    def __contains__(self, version: object) -> bool:
        return isinstance(version, str) and normalize_version(version) in self._migrations

    def register(self, version: str, up_sql: str, down_sql: str = "") -> Migration:
        """
        Register a migration.

        Raises:
            DuplicateMigrationError: If the version is already registered
            MigrationError: If the version is not a valid version string
        """
        version = normalize_version(version)
        if not is_valid_version(version):
            raise MigrationError(f"unrecognized version ({version}) format", version=version)
        if version in self._migrations:
            raise DuplicateMigrationError(f"migration ({version}) has already been registered", version=version)
        migration = Migration(version=version, up_sql=up_sql, down_sql=down_sql)
        self._migrations[version] = migration
        logger.debug(f"Registered migration {version}")
        return migration

    def get(self, version: str) -> Migration:
        """
        Return a registered migration; ``default`` resolves to the default version.

        Raises:
            MigrationNotFoundError: If the version is not registered
        """
        version = normalize_version(version)
        try:
            return self._migrations[version]
        except KeyError:
            raise MigrationNotFoundError(f"migration ({version}) not found", version=version) from None

    def versions(self) -> list[str]:
        """Registered versions in ascending order (the default version first)."""
        return sorted(self._migrations)

    @classmethod
    def from_path(cls, path: str | Path) -> MigrationRegistry:
        """
        Load ``<version>.sql`` files and their optional ``<version>_down.sql`` pairs.

        Files without the ``.sql`` suffix, down scripts and directories are
        skipped when discovering versions.

        Raises:
            MigrationError: If the directory cannot be read or a file name is not a valid version
        """
        directory = Path(path)
        if not str(path) or not directory.is_dir():
            raise MigrationError(f"invalid migration path: {path}")

        registry = cls(directory)
        for file_path in sorted(directory.iterdir()):
            name = file_path.name
            if not file_path.is_file() or not name.endswith(UP_SUFFIX) or name.endswith(DOWN_SUFFIX):
                continue
            version = name[: -len(UP_SUFFIX)]
            if not is_valid_version(version):
                raise MigrationError(f"unrecognized version ({version}) format", version=version)
            try:
                up_sql = file_path.read_text()
                down_path = directory / f"{version}{DOWN_SUFFIX}"
                down_sql = down_path.read_text() if down_path.is_file() else ""
            except OSError as e:
                raise MigrationError(f"fail read migration {version} file: {e}", version=version) from e
            registry.register(version, up_sql, down_sql)

        logger.info(f"Loaded {len(registry)} migration(s) from {directory}")
        return registry


def new_migration(path: str | Path, default: bool = False) -> tuple[Path, Path]:
    """
    Write an up/down pair of template files for a new version.

    Returns:
        Paths of the up and down files

    Raises:
        MigrationError: If the files cannot be written
    """
    directory = Path(path)
    version = new_version(default=default)
    up_path = directory / f"{version}{UP_SUFFIX}"
    down_path = directory / f"{version}{DOWN_SUFFIX}"
    if up_path.exists():
        raise MigrationError(f"migration ({version}) already exists", version=version)

    try:
        up_path.write_text(UP_TEMPLATE)
    except OSError as e:
        raise MigrationError(f"fail create migration sql file: {e}", version=version) from e
    try:
        down_path.write_text(DOWN_TEMPLATE)
    except OSError as e:
        up_path.unlink(missing_ok=True)
        raise MigrationError(f"fail create down migration sql file: {e}", version=version) from e

    logger.info(f"Created migration {version} in {directory}")
    return up_path, down_path
