"""Configuration management using Pydantic BaseSettings.

This module provides centralized configuration management with validation
and the documented fallbacks for the uniqueifier service.
"""
from pathlib import Path
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from uniqueifier.engine.factory import resolve_uniqueifier_type
from uniqueifier.engine.models import DEFAULT_DATABASE_URL
from uniqueifier.utils.logger import DEFAULT_LOG_FORMAT, log_info

DEFAULT_UPDATE_INTERVAL = 30
DEFAULT_HISTORY_LENGTH = 1000


class Config(BaseSettings):
    """Service configuration, read from the environment and ``.env``."""

    # Directories
    source_directory: str = Field("", description="Directory to read files from")
    destination_directory: str = Field("", description="Directory to write files to")
    error_directory: str = Field("", description="Directory to quarantine files to")

    # Processing
    update_interval: int = Field(DEFAULT_UPDATE_INTERVAL, description="Seconds between processing passes")
    history_length: int = Field(DEFAULT_HISTORY_LENGTH, description="Assignments to remember (<= 0 keeps all)")
    uniqueifier: str = Field("db", description="Uniqueifier engine: db or memory")
    database_url: str = Field(DEFAULT_DATABASE_URL, description="SQLAlchemy URL of the history store")

    # Logging
    log_level: str = Field("INFO", description="Logging level")
    log_format: str = Field(DEFAULT_LOG_FORMAT, description="Log format")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore"
    }

    @field_validator('update_interval', mode='before')
    @classmethod
    def validate_update_interval(cls, v):
        try:
            interval = int(v)
        except (TypeError, ValueError):
            interval = 0
        if interval < 1:
            log_info(f"UPDATE_INTERVAL value not valid. Change to default value of {DEFAULT_UPDATE_INTERVAL}")
            return DEFAULT_UPDATE_INTERVAL
        return interval

    @field_validator('history_length', mode='before')
    @classmethod
    def validate_history_length(cls, v):
        try:
            return int(v)
        except (TypeError, ValueError):
            log_info(f"HISTORY_LENGTH value not valid. Change to default value of {DEFAULT_HISTORY_LENGTH}")
            return DEFAULT_HISTORY_LENGTH

    @field_validator('uniqueifier', mode='before')
    @classmethod
    def validate_uniqueifier(cls, v):
        return resolve_uniqueifier_type(v if isinstance(v, str) else None).value

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'Invalid log level: {v}. Valid options: {valid_levels}')
        return v.upper()

    def validate_configuration(self) -> List[str]:
        """Validate the complete configuration and return any issues."""
        issues = []

        directories = {
            "SOURCE_DIRECTORY": self.source_directory,
            "DESTINATION_DIRECTORY": self.destination_directory,
            "ERROR_DIRECTORY": self.error_directory,
        }

        if not all(directories.values()):
            issues.append("SOURCE_DIRECTORY, DESTINATION_DIRECTORY, and ERROR_DIRECTORY must be defined")

        for name, value in directories.items():
            if value and not Path(value).expanduser().is_dir():
                issues.append(f"{name} must refer to an existing directory: {value}")

        if self.source_directory and self.source_directory == self.destination_directory:
            issues.append("SOURCE_DIRECTORY and DESTINATION_DIRECTORY must differ")

        if self.uniqueifier == "db" and not self.database_url:
            issues.append("DATABASE_URL is required for the db uniqueifier")

        return issues

    def log_configuration(self) -> None:
        """Log the current configuration."""
        log_info("Configuration loaded",
                source_directory=self.source_directory,
                destination_directory=self.destination_directory,
                error_directory=self.error_directory,
                history_length=self.history_length,
                update_interval=self.update_interval,
                uniqueifier=self.uniqueifier,
                log_level=self.log_level)


# Global configuration instance (lazy loading)
_config = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def reload_config() -> Config:
    """Reload configuration from environment variables."""
    global _config
    _config = Config()
    return _config
