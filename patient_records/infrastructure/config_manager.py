"""Configuration Manager for storage and cache settings.

This module loads database and cache configuration from the environment (or a
JSON file) into validated Pydantic models.

Security Impact:
    - The Redis URL may embed a password and is held as SecretStr (never logged)
    - Configuration is validated before use (fail-fast)
    - .env files are loaded through python-dotenv without overriding real env vars

Architecture:
    - Infrastructure layer, isolated from the domain
    - Type-safe configuration using Pydantic models
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, SecretStr, field_validator

logger = logging.getLogger(__name__)

ENV_PREFIX = "PR_"
DEFAULT_ENTITY_TTL_SECONDS = 30 * 60
DEFAULT_AGGREGATE_TTL_SECONDS = 5 * 60


class DatabaseConfig(BaseModel):
    """Database configuration.

    Parameters:
        db_type: Database type (only 'duckdb' is supported)
        db_path: Path to the database file, or ':memory:'
        read_only: Open the database read-only
    """

    db_type: str = Field("duckdb", description="Database type")
    db_path: Optional[str] = Field(None, description="Path to database file (for DuckDB)")
    read_only: bool = Field(False, description="Open the database read-only")

    @field_validator("db_type")
    @classmethod
    def validate_db_type(cls, v: str) -> str:
        supported_types = ["duckdb"]
        if v.lower() not in supported_types:
            raise ValueError(f"Unsupported database type: {v}. Supported: {supported_types}")
        return v.lower()

    @field_validator("db_path")
    @classmethod
    def validate_db_path(cls, v: Optional[str]) -> Optional[str]:
        """Validate the parent directory of a file database exists."""
        if v is None or v == ":memory:":
            return v
        db_path_obj = Path(v)
        if not db_path_obj.parent.exists():
            raise ValueError(f"Database directory does not exist: {db_path_obj.parent}")
        return str(db_path_obj)

    def get_connection_string(self) -> str:
        return self.db_path or ":memory:"


class CacheConfig(BaseModel):
    """Cache configuration.

    Parameters:
        backend: 'memory', 'redis' or 'none'
        redis_url: Redis connection URL (secret, may embed a password)
        key_prefix: Prefix prepended to every Redis key
        entity_ttl_seconds: TTL for single-entity reads and per-patient address lists
        aggregate_ttl_seconds: TTL for list and count queries
        socket_timeout_seconds: Redis socket timeout
    """

    backend: str = Field("memory", description="Cache backend (memory, redis, none)")
    redis_url: SecretStr = Field(SecretStr("redis://localhost:6379/0"), description="Redis URL (secret)")
    key_prefix: str = Field("patient-records:", description="Redis key prefix")
    entity_ttl_seconds: int = Field(DEFAULT_ENTITY_TTL_SECONDS, gt=0)
    aggregate_ttl_seconds: int = Field(DEFAULT_AGGREGATE_TTL_SECONDS, gt=0)
    socket_timeout_seconds: float = Field(1.0, gt=0)

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        supported = ["memory", "redis", "none"]
        if v.lower() not in supported:
            raise ValueError(f"Unsupported cache backend: {v}. Supported: {supported}")
        return v.lower()


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.getenv(f"{ENV_PREFIX}{name}", default)


class ConfigManager:
    """Configuration manager for database and cache settings.

    Example Usage:
        ```python
        config = ConfigManager.from_environment()
        db_config = config.get_database_config()
        cache_config = config.get_cache_config()
        ```
    """

    def __init__(self, config_data: Dict[str, Any]):
        self._config_data = config_data
        self._database_config: Optional[DatabaseConfig] = None
        self._cache_config: Optional[CacheConfig] = None

    @classmethod
    def from_environment(cls, env_file: Optional[Path] = None) -> 'ConfigManager':
        """Load configuration from environment variables.

        Environment Variables:
            - PR_DB_TYPE: Database type (duckdb)
            - PR_DB_PATH: Path to database file (default ':memory:')
            - PR_DB_READ_ONLY: Open read-only ("true"/"false")
            - PR_CACHE_BACKEND: memory, redis or none
            - PR_REDIS_URL: Redis URL (secret)
            - PR_CACHE_PREFIX: Redis key prefix
            - PR_CACHE_ENTITY_TTL: Entity TTL in seconds
            - PR_CACHE_AGGREGATE_TTL: List/count TTL in seconds
            - PR_CACHE_SOCKET_TIMEOUT: Redis socket timeout in seconds

        Parameters:
            env_file: Optional .env path (defaults to the project root .env)

        Returns:
            ConfigManager instance
        """
        env_path = env_file or Path(__file__).parent.parent.parent / ".env"
        if env_path.exists():
            load_dotenv(env_path, override=False)
            logger.debug(f"Loaded environment variables from {env_path}")

        database = {
            "db_type": _env("DB_TYPE", "duckdb"),
            "db_path": _env("DB_PATH"),
            "read_only": (_env("DB_READ_ONLY", "false") or "false").lower() == "true",
        }
        cache: Dict[str, Any] = {"backend": _env("CACHE_BACKEND", "memory")}
        optional_cache = {
            "redis_url": _env("REDIS_URL"),
            "key_prefix": _env("CACHE_PREFIX"),
            "entity_ttl_seconds": _env("CACHE_ENTITY_TTL"),
            "aggregate_ttl_seconds": _env("CACHE_AGGREGATE_TTL"),
            "socket_timeout_seconds": _env("CACHE_SOCKET_TIMEOUT"),
        }
        cache.update({k: v for k, v in optional_cache.items() if v is not None})

        return cls({"database": database, "cache": cache})

    @classmethod
    def from_file(cls, config_path: str) -> 'ConfigManager':
        """Load configuration from a JSON file.

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If the file is not valid JSON
        """
        config_file = Path(config_path)
        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        stat_info = config_file.stat()
        if stat_info.st_mode & 0o077 != 0:
            logger.warning(
                f"Configuration file has overly permissive permissions: {config_path}. "
                "Consider setting to 600 when it holds a Redis password."
            )

        try:
            with open(config_file, 'r') as f:
                config_data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in configuration file: {str(e)}")

        return cls(config_data)

    def get_database_config(self) -> DatabaseConfig:
        if self._database_config is None:
            self._database_config = DatabaseConfig(**self._config_data.get("database", {}))
        return self._database_config

    def get_cache_config(self) -> CacheConfig:
        if self._cache_config is None:
            self._cache_config = CacheConfig(**self._config_data.get("cache", {}))
        return self._cache_config

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value by dotted key (e.g. "cache.backend")."""
        value: Any = self._config_data
        for k in key.split("."):
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default
        return value if value is not None else default
