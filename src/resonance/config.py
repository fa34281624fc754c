"""Centralized, typed configuration using pydantic-settings.

Provides a single ``Settings`` class backed by ``.env`` file and environment
variables, a cached ``get_settings()`` accessor, and a ``validate_settings()``
startup gate that enforces settlement credentials in production mode.

IMPORTANT: This module has ZERO imports from the ``resonance`` package to
prevent circular imports.  Only stdlib, pydantic, pydantic_settings, and
structlog are used.
"""

from __future__ import annotations

import sys
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Literal

import structlog
from pydantic import SecretStr, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = structlog.get_logger()


class Settings(BaseSettings):
    """Application settings loaded from environment variables and ``.env`` file.

    ``SecretStr`` fields prevent accidental leaks in logs or error output.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- General ---------------------------------------------------------------
    production: bool = False
    http_port: int = 8000

    # -- Storage ---------------------------------------------------------------
    database_path: Path = Path("data/resonance.db")
    storage_backend: Literal["sqlite", "memory"] = "sqlite"

    # -- Settlement layer ------------------------------------------------------
    settlement_url: str = ""
    settlement_api_key: SecretStr = SecretStr("")
    settlement_timeout_seconds: float = 30.0

    # -- Scheduler -------------------------------------------------------------
    scheduler_enabled: bool = True
    scheduler_interval_seconds: float = 60.0

    # -- Scoring and fraud policy ----------------------------------------------
    resonance_multiplier: float = 1000.0
    default_views: int = 1000
    max_likes_per_comment: Decimal = Decimal("10")

    # -- Observability ---------------------------------------------------------
    sentry_dsn: str = ""

    @property
    def settlement_configured(self) -> bool:
        """True when both the settlement URL and API key are set."""
        return bool(self.settlement_url and self.settlement_api_key.get_secret_value())


@lru_cache
def get_settings() -> Settings:
    """Return a cached ``Settings`` instance.

    Call ``get_settings.cache_clear()`` in tests to reset.
    """
    try:
        return Settings()
    except ValidationError as exc:
        # Log only the structured errors list, never the full exception
        # which may contain raw SecretStr values.
        logger.error("settings_validation_failed", errors=exc.errors())
        sys.exit(1)


def validate_settings(settings: Settings) -> None:
    """Enforce settlement configuration at startup.

    In **production** mode the application exits with a clear error block
    if the settlement URL or API key is missing.  In **development** mode
    each gap is logged as a warning and the settlement client stays disabled.

    Args:
        settings: The loaded application settings.
    """
    errors: list[str] = []

    if not settings.settlement_url:
        errors.append("SETTLEMENT_URL is empty or not set")

    if not settings.settlement_api_key.get_secret_value():
        errors.append("SETTLEMENT_API_KEY is empty or not set")

    if settings.settlement_timeout_seconds <= 0:
        errors.append("SETTLEMENT_TIMEOUT_SECONDS must be positive")

    if not errors:
        logger.info("settings_validation_passed")
        return

    if settings.production:
        for err in errors:
            logger.error("setting_missing", detail=err)
        print("\n=== STARTUP FAILED ===", file=sys.stderr)
        print("Missing required settings for production mode:", file=sys.stderr)
        for err in errors:
            print(f"  - {err}", file=sys.stderr)
        print("======================\n", file=sys.stderr)
        sys.exit(1)
    else:
        for err in errors:
            logger.warning("setting_missing_dev", detail=err)
