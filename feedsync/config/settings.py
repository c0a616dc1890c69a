"""
FeedSync Configuration System
=============================

Configuration management with environment variables and Pydantic models.
Environment variables override Field defaults with clear precedence.
"""

from pathlib import Path
from typing import Optional
from enum import Enum

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings

from ..utils.exceptions import ConfigurationError, ErrorCode


class SchedulerKind(str, Enum):
    """Available polling schedulers."""
    ROUND_ROBIN = "round_robin"
    ENTRY_FREQUENCY = "entry_frequency"


class LogLevel(str, Enum):
    """Available log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class PollingSettings(BaseModel):
    """Feed polling and scheduling configuration."""
    scheduler: SchedulerKind = Field(default=SchedulerKind.ROUND_ROBIN, description="Next-check policy")
    frequency_minutes: int = Field(default=60, ge=1, description="Fixed interval for the round robin scheduler")
    min_interval_minutes: int = Field(default=5, ge=1, description="Lower bound for the entry frequency scheduler")
    max_interval_minutes: int = Field(default=24 * 60, ge=1, description="Upper bound for the entry frequency scheduler")
    batch_size: int = Field(default=100, ge=1, le=10000, description="Feeds picked per batch refresh")
    workers: int = Field(default=4, ge=1, le=64, description="Concurrent feed refreshes")
    persistent_error_threshold: int = Field(
        default=10,
        ge=0,
        description="Consecutive failures after which errors are escalated (0 disables)"
    )

    @model_validator(mode="after")
    def validate_bounds(self):
        """Ensure the interval bounds are ordered."""
        if self.min_interval_minutes > self.max_interval_minutes:
            raise ValueError("min_interval_minutes must not exceed max_interval_minutes")
        return self


class HTTPSettings(BaseModel):
    """Outbound HTTP configuration."""
    request_timeout: int = Field(default=20, ge=1, le=300, description="Request timeout in seconds")
    user_agent: str = Field(default="FeedSync/1.0 (+https://github.com/feedsync/feedsync)", description="Default User-Agent")
    max_body_size_mb: int = Field(default=10, ge=1, le=100, description="Maximum response body size in MB")
    max_retries: int = Field(default=0, ge=0, le=5, description="Transport-level retries for idempotent requests")


class DatabaseSettings(BaseModel):
    """Database configuration."""
    path: str = Field(default="data/feedsync.db", description="SQLite database file path")
    pool_size: int = Field(default=5, ge=1, le=20, description="Connection pool size")


class LoggingSettings(BaseModel):
    """Logging configuration."""
    level: LogLevel = Field(default=LogLevel.INFO, description="Global log level")
    file_path: Optional[str] = Field(default="logs/feedsync.log", description="Log file path")
    max_file_size_mb: int = Field(default=10, ge=1, le=100, description="Max log file size in MB")
    backup_count: int = Field(default=5, ge=1, le=20, description="Number of log backup files")
    structured_logging: bool = Field(default=False, description="Use structured JSON logging")
    console_logging: bool = Field(default=True, description="Enable console logging")


class NotificationSettings(BaseModel):
    """Outbound notification configuration."""
    telegram_timeout: float = Field(default=15.0, gt=0, le=120, description="Telegram request timeout in seconds")
    disable_web_page_preview: bool = Field(default=True, description="Disable link previews in notifications")


class FeedSyncSettings(BaseSettings):
    """Main application settings."""

    polling: PollingSettings = Field(default_factory=PollingSettings)
    http: HTTPSettings = Field(default_factory=HTTPSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)

    app_name: str = Field(default="FeedSync", description="Application name")
    version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Enable debug mode")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "env_nested_delimiter": "__",
        "env_prefix": "FEEDSYNC_",
        "extra": "ignore",
    }

    def validate_configuration(self) -> None:
        """Validate complete configuration."""
        errors = []

        try:
            db_path = Path(self.database.path)
            db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            errors.append(f"Invalid database path: {e}")

        if self.logging.file_path:
            try:
                log_path = Path(self.logging.file_path)
                log_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                errors.append(f"Invalid log file path: {e}")

        if errors:
            raise ConfigurationError(
                f"Configuration validation failed: {'; '.join(errors)}",
                error_code=ErrorCode.CONFIG_INVALID
            )

    def get_effective_log_level(self) -> str:
        """Get effective log level considering debug mode."""
        if self.debug:
            return "DEBUG"
        return self.logging.level.value


def load_settings() -> FeedSyncSettings:
    """Load settings from environment variables and defaults.

    Returns:
        Loaded and validated settings

    Raises:
        ConfigurationError: If configuration is invalid
    """
    from dotenv import load_dotenv
    load_dotenv()

    try:
        # Precedence: environment, then .env, then Field defaults
        settings = FeedSyncSettings()
        settings.validate_configuration()
        return settings

    except ConfigurationError:
        raise
    except Exception as e:
        raise ConfigurationError(
            f"Failed to initialize settings: {e}",
            error_code=ErrorCode.CONFIG_INVALID
        )


_settings: Optional[FeedSyncSettings] = None


def get_settings(reload: bool = False) -> FeedSyncSettings:
    """Get global settings instance (singleton pattern).

    Args:
        reload: Force reload of settings

    Returns:
        Global settings instance
    """
    global _settings

    if _settings is None or reload:
        _settings = load_settings()

    return _settings
