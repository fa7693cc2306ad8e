"""Application Settings.

Combines the configuration manager's database and cache settings with
application-level options read from the environment.
"""

import os
from typing import Optional

from patient_records.infrastructure.config_manager import CacheConfig, ConfigManager, DatabaseConfig

APP_NAME = "Patient-Records"
APP_VERSION = "1.0.0"

DEFAULT_REQUEST_TIMEOUT_SECONDS = 10.0


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


class Settings:
    """Application settings loaded from the environment.

    Attributes:
        app_name: Display name of the API
        log_level: Root log level
        json_logs: Emit JSON logs via StructuredFormatter
        repository_backend: 'duckdb' or 'memory'
        seed_sample_data: Seed the in-memory repository with sample patients
        request_timeout_seconds: Deadline applied to every API request
    """

    def __init__(self):
        self._config_manager: Optional[ConfigManager] = None
        self._db_config: Optional[DatabaseConfig] = None
        self._cache_config: Optional[CacheConfig] = None

        self.app_name = os.getenv("PR_APP_NAME", APP_NAME)
        self.log_level = os.getenv("PR_LOG_LEVEL", "INFO")
        self.json_logs = _env_bool("PR_JSON_LOGS", "false")
        self.repository_backend = os.getenv("PR_REPOSITORY_BACKEND", "duckdb").lower()
        self.seed_sample_data = _env_bool("PR_SEED_SAMPLE_DATA", "false")
        self.request_timeout_seconds = float(
            os.getenv("PR_REQUEST_TIMEOUT", str(DEFAULT_REQUEST_TIMEOUT_SECONDS))
        )

    @property
    def config_manager(self) -> ConfigManager:
        if self._config_manager is None:
            self._config_manager = ConfigManager.from_environment()
        return self._config_manager

    @property
    def db_config(self) -> DatabaseConfig:
        """Database configuration, loaded lazily on first access."""
        if self._db_config is None:
            self._db_config = self.config_manager.get_database_config()
        return self._db_config

    @property
    def cache_config(self) -> CacheConfig:
        """Cache configuration, loaded lazily on first access."""
        if self._cache_config is None:
            self._cache_config = self.config_manager.get_cache_config()
        return self._cache_config

    def get_db_path(self) -> str:
        return self.db_config.get_connection_string()


# Global settings instance
settings = Settings()
