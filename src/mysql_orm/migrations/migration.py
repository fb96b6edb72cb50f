"""
Migration definition and version utilities.

A migration is a versioned pair of SQL scripts: the forward (up) script and
an optional reverse (down) script. Versions are UTC timestamps formatted as
``YYYY-MM-DD:HH:MM:SS``, or the reserved default version, which sorts before
every timestamp and is only applied on request.
"""

from dataclasses import dataclass
from datetime import datetime, timezone

from ..constants import DEFAULT_VERSION, DEFAULT_VERSION_ALIAS, VERSION_TIME_FORMAT


@dataclass(frozen=True)
class Migration:
    """
    A registered migration.

    Attributes:
        version: Version identifier
        up_sql: Forward SQL script
        down_sql: Reverse SQL script (empty when the migration cannot be rolled back)

    Example:
        migration = Migration(
            version="2024-01-31:10:00:00",
            up_sql="CREATE TABLE `tag`(`id` INT NOT NULL PRIMARY KEY AUTO_INCREMENT);",
            down_sql="DROP TABLE `tag`;",
        )
    """

    version: str
    up_sql: str
    down_sql: str = ""

    @property
    def is_default(self) -> bool:
        return self.version == DEFAULT_VERSION

    @property
    def is_reversible(self) -> bool:
        return bool(self.down_sql.strip())


def normalize_version(version: str) -> str:
    """Map the ``default`` alias to the default version sentinel."""
    if version == DEFAULT_VERSION_ALIAS:
        return DEFAULT_VERSION
    return version


def is_valid_version(version: str) -> bool:
    """Check that a version is the default sentinel or a timestamp in the version format."""
    if version == DEFAULT_VERSION:
        return True
    try:
        parsed = datetime.strptime(version, VERSION_TIME_FORMAT)
    except ValueError:
        return False
    # strptime accepts unpadded fields; versions must sort lexically
    return parsed.strftime(VERSION_TIME_FORMAT) == version


def new_version(now: datetime | None = None, default: bool = False) -> str:
    """Return the version for a new migration (the current UTC time, or the default sentinel)."""
    if default:
        return DEFAULT_VERSION
    now = now or datetime.now(timezone.utc)
    return now.strftime(VERSION_TIME_FORMAT)
