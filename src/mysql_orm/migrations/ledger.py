"""
Bookkeeping tables of the migration engine.

``SchemaMigration`` holds one row per applied version. ``MigrationLog`` is
an append-only history of every migration action.
"""

from datetime import datetime, timezone
from typing import Annotated

from ..constants import MIGRATION_LOG_TABLE, SCHEMA_MIGRATION_TABLE
from ..fields import PrimaryKey
from ..model_base import BaseMySQLModel, TableConfigDict
from ..types import MigrationAction


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SchemaMigration(BaseMySQLModel):
    """An applied migration version."""

    model_config = TableConfigDict(table_name=SCHEMA_MIGRATION_TABLE)

    version: Annotated[str, PrimaryKey] = ""
    created: datetime = datetime.min


class MigrationLog(BaseMySQLModel):
    """A migration action recorded in the log table."""

    model_config = TableConfigDict(table_name=MIGRATION_LOG_TABLE)

    id: int = 0
    action: str = ""
    created: datetime = datetime.min
    message: str = ""
    success: bool = True
    version: str = ""

    @classmethod
    def new(cls, action: MigrationAction, message: str, version: str = "") -> "MigrationLog":
        """Create a successful log entry stamped with the current UTC time."""
        return cls(action=action.value, message=message, version=version, created=utc_now())
