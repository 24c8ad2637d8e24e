"""Logging configuration for the school administration backend.

Defaults depend on where the process runs (developer shell, pytest, CI,
production) and can be overridden through ``LOG_*`` environment variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any


class Environment(Enum):
    """Runtime environment."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    PRODUCTION = "production"
    CI = "ci"


class LogOutput(Enum):
    """Where log records are written."""

    CONSOLE = "console"
    FILE = "file"
    BOTH = "both"
    JSON = "json"


_TRUE_VALUES = ("true", "1", "yes")


def _env_flag(name: str) -> bool | None:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return None
    return raw.lower() in _TRUE_VALUES


def _env_int(name: str) -> int | None:
    raw = os.getenv(name)
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


@dataclass
class LogConfig:
    """Logging configuration container."""

    level: str = "INFO"
    output: LogOutput = LogOutput.CONSOLE
    json_format: bool = False
    use_rich: bool = True
    mask_sensitive: bool = True
    include_correlation_id: bool = True
    log_file: Path | None = None
    max_file_size: int = 10 * 1024 * 1024
    backup_count: int = 5

    # Per-logger overrides, e.g. {"schooladmin.database.connection": "WARNING"}
    module_levels: dict[str, str] = field(default_factory=dict)

    # Static fields added to every JSON record
    extra_fields: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_env(cls) -> LogConfig:
        """Build a configuration for the detected environment.

        Environment variables:
            LOG_LEVEL: DEBUG, INFO, WARNING, ERROR or CRITICAL
            LOG_OUTPUT: console, file, both or json
            LOG_JSON: emit JSON records (true/false)
            LOG_RICH: use the Rich console handler (true/false)
            LOG_MASK_SENSITIVE: mask passwords, emails and phone numbers (true/false)
            LOG_FILE: path of the rotating log file
            LOG_MAX_SIZE: rotation size in bytes
            LOG_BACKUP_COUNT: number of rotated files to keep

        Returns:
            LogConfig for the current process
        """
        config = cls.for_environment(cls.detect_environment())

        if level := os.getenv("LOG_LEVEL"):
            config.level = level.upper()

        if output := os.getenv("LOG_OUTPUT"):
            try:
                config.output = LogOutput(output.lower())
            except ValueError:
                pass

        json_format = _env_flag("LOG_JSON")
        if json_format is not None:
            config.json_format = json_format

        use_rich = _env_flag("LOG_RICH")
        if use_rich is not None:
            config.use_rich = use_rich

        mask_sensitive = _env_flag("LOG_MASK_SENSITIVE")
        if mask_sensitive is not None:
            config.mask_sensitive = mask_sensitive

        if log_file := os.getenv("LOG_FILE"):
            config.log_file = Path(log_file)

        max_size = _env_int("LOG_MAX_SIZE")
        if max_size is not None:
            config.max_file_size = max_size

        backup_count = _env_int("LOG_BACKUP_COUNT")
        if backup_count is not None:
            config.backup_count = backup_count

        return config

    @staticmethod
    def detect_environment() -> Environment:
        """Work out which environment the process is running in."""
        if os.getenv("CI") or os.getenv("GITHUB_ACTIONS"):
            return Environment.CI

        env_name = os.getenv("ENVIRONMENT", os.getenv("ENV", "")).lower()
        if env_name in ("prod", "production"):
            return Environment.PRODUCTION
        if env_name in ("test", "testing") or os.getenv("PYTEST_CURRENT_TEST"):
            return Environment.TESTING

        return Environment.DEVELOPMENT

    @classmethod
    def for_environment(cls, env: Environment) -> LogConfig:
        """Return the default configuration for ``env``."""
        if env == Environment.PRODUCTION:
            return cls(level="INFO", output=LogOutput.BOTH, json_format=True, use_rich=False)
        if env == Environment.CI:
            return cls(level="INFO", use_rich=False)
        if env == Environment.TESTING:
            return cls(level="DEBUG", use_rich=False)
        return cls(level="DEBUG", use_rich=True)


_config: LogConfig | None = None


def get_config() -> LogConfig:
    """Return the active logging configuration, loading it on first use."""
    global _config
    if _config is None:
        _config = LogConfig.from_env()
    return _config


def set_config(config: LogConfig) -> None:
    """Replace the active logging configuration."""
    global _config
    _config = config


def reset_config() -> None:
    """Forget the active configuration so the next call re-reads the environment."""
    global _config
    _config = None
