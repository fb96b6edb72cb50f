from .adapter import Adapter, Database, TransactionScope
from .config import ConnectionConfig, read_env_file
from .connection import BaseConnection, Connection, ExecResult, Transaction
from .debug import QueryLogger
from .exceptions import (
    DuplicateMigrationError,
    FatalError,
    MigrationError,
    MigrationNotFoundError,
    ModelDefinitionError,
    ORMError,
    QueryError,
    QueryValidationError,
    TransactionError,
    is_table_exists_error,
    is_table_missing_error,
    is_unique_violation_error,
)
from .fields import PrimaryKey, Relation, SmallInt
from .migrations import MigrationRegistry, Migrator
from .model_base import BaseMySQLModel, TableConfigDict
from .query import (
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
    Raw,
)
from .reflect import column_name, resolve_model
from .schema import generate_create_table
from .types import OrderBy

__all__ = [
    "Adapter",
    "Database",
    "TransactionScope",
    "ConnectionConfig",
    "read_env_file",
    "BaseConnection",
    "Connection",
    "Transaction",
    "ExecResult",
    "QueryLogger",
    "ORMError",
    "ModelDefinitionError",
    "QueryValidationError",
    "QueryError",
    "FatalError",
    "TransactionError",
    "MigrationError",
    "DuplicateMigrationError",
    "MigrationNotFoundError",
    "is_unique_violation_error",
    "is_table_exists_error",
    "is_table_missing_error",
    "PrimaryKey",
    "Relation",
    "SmallInt",
    "MigrationRegistry",
    "Migrator",
    "BaseMySQLModel",
    "TableConfigDict",
    "All",
    "And",
    "Columns",
    "Equal",
    "Greater",
    "GreaterOrEqual",
    "In",
    "Join",
    "Less",
    "LessOrEqual",
    "Like",
    "Limit",
    "Not",
    "NotEqual",
    "Offset",
    "Or",
    "Order",
    "Raw",
    "OrderBy",
    "column_name",
    "resolve_model",
    "generate_create_table",
]
