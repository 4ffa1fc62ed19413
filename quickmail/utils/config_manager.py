"""Configuration manager for persistent settings stored as JSON."""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError

from quickmail.core.models.course import CourseConfig

from .errors import (
    ConfigurationError,
    FileSystemError,
    InvalidConfigError,
    MissingConfigError,
    QuickmailError,
)
from .logging import get_logger, log_call
from .paths import CONFIG_PATH, DATABASE_PATH, FILES_DIR, TEMP_DIR

logger = get_logger(__name__)


class MailConfig(BaseModel):
    """Pydantic model for outgoing mail settings."""

    smtp_server: str = "localhost"
    smtp_port: int = 587
    username: str = ""
    password: str = ""
    use_tls: bool = True
    timeout: float = 30.0  # in seconds
    max_retries: int = 0  # resends after a transient server error


class StorageConfig(BaseModel):
    """Pydantic model for database and file storage locations."""

    database_path: str = str(DATABASE_PATH)
    files_path: str = str(FILES_DIR)
    temp_path: str = str(TEMP_DIR)


class LoggingConfig(BaseModel):
    """Pydantic model for logging settings."""

    log_level: str = "INFO"


class AppConfig(BaseModel):
    """Pydantic model for overall application configuration."""

    version: str = "0.1.0"
    mail: MailConfig = Field(default_factory=MailConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    defaults: CourseConfig = Field(default_factory=CourseConfig)


class ConfigManager:
    """Manages persistent application configuration."""

    def __init__(self, config_path: Optional[Path] = None):
        self.path = config_path or CONFIG_PATH
        self.config = self._load_or_create_config()
        logger.info(f"Configuration loaded from {self.path}")

    def _load_or_create_config(self) -> AppConfig:
        """Load configuration from file or create default if not present."""

        if not self.path.exists():
            logger.info("No config file found, creating default configuration.")
            config = AppConfig()
            self._save_config(config)
            return config

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            config = AppConfig(**data)
            logger.debug("Configuration successfully loaded and validated.")
            return config

        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse config file: {e}")
            raise InvalidConfigError(f"Configuration file is not valid JSON: {str(e)}") from e
        except ValidationError as e:
            logger.error(f"Failed to validate config file: {e}")
            raise InvalidConfigError(f"Configuration data does not match expected schema: {str(e)}") from e
        except OSError as e:
            raise FileSystemError(f"Failed to read configuration file: {self.path}") from e

    def _save_config(self, config: Optional[AppConfig] = None):
        """Save the current configuration to file."""

        config = config or self.config

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(
                    config.model_dump(mode="json"),
                    f,
                    indent=2,
                    ensure_ascii=False
                )
            logger.debug("Configuration successfully saved.")
        except OSError as e:
            raise FileSystemError(f"Failed to write configuration file: {str(e)}") from e

    def get_course_defaults(self) -> CourseConfig:
        """Site-wide course configuration used when a course has none stored."""
        return self.config.defaults.model_copy(deep=True)

    @log_call
    def set_config(self, key_path: str, value: Any, persist: bool = True):
        """Set a configuration value using dot-separated key path."""

        try:
            keys = key_path.split(".")
            obj = self.config

            for key in keys[:-1]:
                if not hasattr(obj, key):
                    raise MissingConfigError(f"Configuration path '{key_path}' is invalid: '{key}' not found")
                obj = getattr(obj, key)

            if not hasattr(obj, keys[-1]):
                raise MissingConfigError(f"Configuration key '{keys[-1]}' does not exist in path '{key_path}'")

            setattr(obj, keys[-1], value)

            # Re-validate the whole tree so bad values fail here, not at use
            self.config = AppConfig(**self.config.model_dump())

            if persist:
                self._save_config()

            logger.info(f"Config key '{key_path}' updated.")

        except QuickmailError:
            raise
        except ValidationError as e:
            raise InvalidConfigError(f"Invalid value for '{key_path}': {str(e)}") from e
        except Exception as e:
            raise ConfigurationError(f"Failed to set configuration key '{key_path}': {str(e)}") from e

    @log_call
    def reset_to_defaults(self):
        """Reset configuration to default values."""

        logger.warning("Resetting configuration to default values.")
        self.config = AppConfig()
        self._save_config()

    @log_call
    def backup_config(self) -> Path:
        """Create a backup of the current configuration file."""

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        backup_path = self.path.with_name(f"config_backup_{timestamp}.json")

        try:
            backup_path.parent.mkdir(parents=True, exist_ok=True)
            with open(backup_path, "w", encoding="utf-8") as f:
                json.dump(self.config.model_dump(mode="json"), f, indent=2)

        except OSError as e:
            raise FileSystemError(f"Failed to write backup file: {str(e)}") from e

        logger.info(f"Configuration backup created at {backup_path}")
        return backup_path


# Singleton instance
_config_manager: Optional[ConfigManager] = None


def get_config_manager(config_path: Optional[Path] = None) -> ConfigManager:
    """Get or create the configuration manager singleton."""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager(config_path)

    return _config_manager


def reset_config_manager() -> None:
    """Reset configuration manager (mainly for testing)."""
    global _config_manager
    _config_manager = None
