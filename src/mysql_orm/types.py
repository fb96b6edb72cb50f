"""
Type definitions for MySQL ORM.

Enums shared by the reflector, the query builder and the migration engine.
"""

from enum import StrEnum


class ColumnType(StrEnum):
    """
    Column type affinity resolved for a model field.

    - TEXT: bounded text (``VARCHAR(255)``)
    - SMALL_INTEGER: ``SMALLINT``
    - INTEGER: ``INT``; unsigned values are stored signed
    - DOUBLE: double precision floating point
    - BOOLEAN: ``tinyint(1)``
    - TIMESTAMP: native timestamp
    - JSON: structured value serialized as a JSON document
    - PK_STRING / PK_INTEGER: primary key columns
    """

    TEXT = "text"
    SMALL_INTEGER = "small_integer"
    INTEGER = "integer"
    DOUBLE = "double"
    BOOLEAN = "boolean"
    TIMESTAMP = "timestamp"
    JSON = "json"
    PK_STRING = "pk_string"
    PK_INTEGER = "pk_integer"

    @property
    def is_primary_key(self) -> bool:
        return self in (ColumnType.PK_STRING, ColumnType.PK_INTEGER)


class OrderBy(StrEnum):
    """Sort direction for ``Order`` query options."""

    ASC = "ASC"
    DESC = "DESC"


class Operation(StrEnum):
    """Statement kind a query is compiled for."""

    SELECT = "select"
    UPDATE = "update"
    DELETE = "delete"


class MigrationAction(StrEnum):
    """Action kinds recorded in the migration log."""

    INIT = "init"
    UPDATE = "update"
    EXEC = "exec"
    ROLLBACK = "rollback"
    RESET = "reset"
