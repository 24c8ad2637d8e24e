"""Application configuration.

Values come from the environment (a ``.env`` file is loaded if present).
The fallback grade weighting lives here rather than in the report code so
deployments and tests can override it. Connection pool settings are read
by :mod:`schooladmin.database.connection` itself.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path

from dotenv import load_dotenv

from .database.connection import DB_PATH
from .database.models import WeightScheme

load_dotenv()


def _env_decimal(name: str, default: str) -> Decimal:
    raw = os.getenv(name, default)
    try:
        return Decimal(raw)
    except InvalidOperation as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e


@dataclass
class AppConfig:
    """Runtime settings for the store and the report engine."""

    database_path: Path = DB_PATH
    default_daily_weight: Decimal = Decimal("40")
    default_midterm_weight: Decimal = Decimal("30")
    default_final_weight: Decimal = Decimal("30")
    import_default_password: str = "temp123"

    @classmethod
    def from_env(cls) -> AppConfig:
        """Create configuration from environment variables.

        Environment variables:
            DATABASE_PATH: SQLite database file
            DEFAULT_DAILY_WEIGHT / DEFAULT_MIDTERM_WEIGHT / DEFAULT_FINAL_WEIGHT:
                Fallback weights in percent when a subject has no grade config
            IMPORT_DEFAULT_PASSWORD: Initial password for imported accounts

        Returns:
            Validated AppConfig

        Raises:
            ValueError: If a weight is not a number or the weights do not add up to 100
        """
        config = cls(
            database_path=Path(os.getenv("DATABASE_PATH", str(DB_PATH))),
            default_daily_weight=_env_decimal("DEFAULT_DAILY_WEIGHT", "40"),
            default_midterm_weight=_env_decimal("DEFAULT_MIDTERM_WEIGHT", "30"),
            default_final_weight=_env_decimal("DEFAULT_FINAL_WEIGHT", "30"),
            import_default_password=os.getenv("IMPORT_DEFAULT_PASSWORD", "temp123"),
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Fail at startup on a bad fallback weighting, not halfway through a report."""
        total = self.default_daily_weight + self.default_midterm_weight + self.default_final_weight
        if total != 100:
            raise ValueError(f"Default grade weights must add up to 100%. Current total: {total}%")

    @property
    def default_weights(self) -> WeightScheme:
        """The fallback weighting as fractions."""
        return WeightScheme.from_percentages(
            self.default_daily_weight,
            self.default_midterm_weight,
            self.default_final_weight,
        )


_config: AppConfig | None = None


def get_config() -> AppConfig:
    """Return the active configuration, reading the environment on first use."""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def set_config(config: AppConfig) -> None:
    global _config
    _config = config


def reset_config() -> None:
    global _config
    _config = None
