"""
Connection configuration.

``ConnectionConfig`` is read from the process environment or from a dotenv
file such as::

    MYSQL_HOST=localhost
    MYSQL_PORT=3306
    MYSQL_DB_NAME=app
    MYSQL_USER_NAME=app
    MYSQL_PASSWORD=secret
    MYSQL_MIGRATION_PATH=./migrations
    MYSQL_USE_TLS=false
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from dotenv import dotenv_values

logger = logging.getLogger(__name__)

ENV_HOST = "MYSQL_HOST"
ENV_PORT = "MYSQL_PORT"
ENV_DB_NAME = "MYSQL_DB_NAME"
ENV_USER_NAME = "MYSQL_USER_NAME"
ENV_PASSWORD = "MYSQL_PASSWORD"
ENV_MIGRATION_PATH = "MYSQL_MIGRATION_PATH"
ENV_USE_TLS = "MYSQL_USE_TLS"
ENV_DEBUG = "MYSQL_ORM_DEBUG"

MAX_PORT = 65535

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3306
DEFAULT_USER = "root"


def parse_port(value: str | None) -> int:
    """Return the port if valid, 0 otherwise."""
    if value is None:
        return 0
    try:
        port = int(value.strip())
    except ValueError:
        return 0
    if port < 0 or port > MAX_PORT:
        return 0
    return port


def parse_use_tls(value: str | None) -> bool:
    """TLS is on unless explicitly set to ``false``."""
    return value is None or value.strip() != "false"


def parse_flag(value: str | None) -> bool:
    return value is not None and value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class ConnectionConfig:
    """
    Immutable MySQL connection settings.

    Attributes:
        host: Server host
        port: Server port, 0 when unset or invalid
        db_name: Database (schema) name
        user: User name
        password: Password
        migration_path: Directory holding ``<version>.sql`` migration files
        use_tls: Whether to require TLS
        debug: Log every statement at INFO level
    """

    host: str = ""
    port: int = 0
    db_name: str = ""
    user: str = ""
    password: str = ""
    migration_path: str = ""
    use_tls: bool = True
    debug: bool = False

    @classmethod
    def from_mapping(cls, values: Mapping[str, str | None]) -> ConnectionConfig:
        """Build a config from ``MYSQL_*`` keys; unknown keys are ignored."""
        return cls(
            host=values.get(ENV_HOST) or "",
            port=parse_port(values.get(ENV_PORT)),
            db_name=values.get(ENV_DB_NAME) or "",
            user=values.get(ENV_USER_NAME) or "",
            password=values.get(ENV_PASSWORD) or "",
            migration_path=values.get(ENV_MIGRATION_PATH) or "",
            use_tls=parse_use_tls(values.get(ENV_USE_TLS)),
            debug=parse_flag(values.get(ENV_DEBUG)),
        )

    @classmethod
    def from_env(cls) -> ConnectionConfig:
        """Build a config from the process environment."""
        return cls.from_mapping(os.environ)

    @property
    def migrations_dir(self) -> Path:
        return Path(self.migration_path or ".")

    def dsn_params(self) -> dict[str, Any]:
        """
        Keyword arguments for a driver ``connect()`` call.

        Empty values fall back to ``127.0.0.1:3306`` and user ``root``.
        """
        params: dict[str, Any] = {
            "host": self.host or DEFAULT_HOST,
            "port": self.port or DEFAULT_PORT,
            "user": self.user or DEFAULT_USER,
            "password": self.password,
            "db": self.db_name,
        }
        if self.use_tls:
            params["ssl"] = True
        return params


def read_env_file(path: str | Path) -> ConnectionConfig:
    """
    Read a dotenv file into a ``ConnectionConfig``.

    Raises:
        FileNotFoundError: If the file does not exist
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"env file not found: {path}")
    values = dotenv_values(path)
    logger.debug(f"Loaded {len(values)} value(s) from {path}")
    return ConnectionConfig.from_mapping(values)


__all__ = ["ConnectionConfig", "read_env_file", "parse_port", "parse_use_tls"]
