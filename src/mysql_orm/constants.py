# Maximum number of records a single INSERT statement may carry.
LIMIT_INSERT = 1000

# MySQL server error numbers used for error classification.
ER_DUP_ENTRY = 1062
ER_TABLE_EXISTS_ERROR = 1050
ER_NO_SUCH_TABLE = 1146

# Column DDL fragments, keyed by column type affinity.
PK_STRING_DDL = "VARCHAR(255) NOT NULL PRIMARY KEY"
PK_INTEGER_DDL = "INT NOT NULL PRIMARY KEY AUTO_INCREMENT"

BASE_TYPE_DDL = {
    "text": "VARCHAR(255)",
    "small_integer": "SMALLINT",
    "integer": "INT",
    "double": "DOUBLE",
    "boolean": "tinyint(1)",
    "timestamp": "timestamp",
    "json": "JSON",
}

# Zero-value defaults rendered for NOT NULL columns. Types without an entry
# (timestamp, JSON) carry no implicit default.
ZERO_DEFAULT_DDL = {
    "text": "''",
    "small_integer": "0",
    "integer": "0",
    "double": "0",
    "boolean": "0",
}

# Migration versions
VERSION_TIME_FORMAT = "%Y-%m-%d:%H:%M:%S"
DEFAULT_VERSION = "0000-00-00:00:00:00"
DEFAULT_VERSION_ALIAS = "default"
DOWN_SUFFIX = "_down.sql"
UP_SUFFIX = ".sql"

SCHEMA_MIGRATION_TABLE = "_mysql_orm_schema_migration"
MIGRATION_LOG_TABLE = "_mysql_orm_migration_log"

UP_TEMPLATE = "-- paste here migration sql code\n"
DOWN_TEMPLATE = "-- paste here migration rollback sql code\n"
