"""
MySQL ORM Exceptions.

Custom exception hierarchy for the ORM, plus helpers that classify errors
raised by the underlying MySQL driver.
"""

from .constants import ER_DUP_ENTRY, ER_NO_SUCH_TABLE, ER_TABLE_EXISTS_ERROR


class ORMError(Exception):
    """Base exception for all MySQL ORM errors."""

    def __init__(self, message: str, code: int | None = None):
        self.message = message
        self.code = code
        super().__init__(message)


class ModelDefinitionError(ORMError):
    """Raised when a model cannot be mapped to a table.

    Covers missing or unsupported primary keys, duplicate primary keys,
    unsupported field types, and undeclared join relations.
    """

    pass


class QueryValidationError(ORMError):
    """Raised when a statement is rejected before reaching the database."""

    pass


class QueryError(ORMError):
    """Raised when the database rejects a statement."""

    def __init__(self, message: str, query: str | None = None, code: int | None = None):
        self.query = query
        super().__init__(message, code)


class FatalError(ORMError):
    """Raised when the database is left in a state that cannot be recovered automatically."""

    pass


class TransactionError(FatalError):
    """Raised when committing or rolling back a transaction fails."""

    def __init__(
        self,
        message: str,
        code: int | None = None,
        rollback_succeeded: bool | None = None,
    ):
        self.rollback_succeeded = rollback_succeeded
        super().__init__(message, code)


class MigrationError(ORMError):
    """Raised when a migration cannot be applied or rolled back."""

    def __init__(self, message: str, version: str | None = None, code: int | None = None):
        self.version = version
        super().__init__(message, code)


class DuplicateMigrationError(MigrationError):
    """Raised when a version is registered twice."""

    pass


class MigrationNotFoundError(MigrationError):
    """Raised when a requested version is not registered."""

    pass


def error_code(error: BaseException | None) -> int | None:
    """
    Extract the MySQL error number from an exception or its cause chain.

    Drivers expose the number either as ``errno`` (mysql-connector) or as
    the first positional argument (PyMySQL, aiomysql, asyncmy).
    """
    seen: set[int] = set()
    while error is not None and id(error) not in seen:
        seen.add(id(error))
        code = getattr(error, "code", None)
        if isinstance(code, int):
            return code
        errno = getattr(error, "errno", None)
        if isinstance(errno, int):
            return errno
        if error.args and isinstance(error.args[0], int):
            return error.args[0]
        error = error.__cause__
    return None


def is_unique_violation_error(error: BaseException | None) -> bool:
    """Check whether an error is a duplicate entry (unique constraint) error."""
    return error_code(error) == ER_DUP_ENTRY


def is_table_exists_error(error: BaseException | None) -> bool:
    """Check whether an error is a "table already exists" error."""
    return error_code(error) == ER_TABLE_EXISTS_ERROR


def is_table_missing_error(error: BaseException | None) -> bool:
    """Check whether an error is a "table doesn't exist" error."""
    return error_code(error) == ER_NO_SUCH_TABLE


__all__ = [
    "ORMError",
    "ModelDefinitionError",
    "QueryValidationError",
    "QueryError",
    "FatalError",
    "TransactionError",
    "MigrationError",
    "DuplicateMigrationError",
    "MigrationNotFoundError",
    "error_code",
    "is_unique_violation_error",
    "is_table_exists_error",
    "is_table_missing_error",
]
