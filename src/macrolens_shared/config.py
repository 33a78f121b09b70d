"""
config.py — pydantic-settings Settings class.

All environment variables for macrolens are declared here. Both the
resolver and the analytics import `settings` from this module.

Usage:
    from macrolens_shared.config import settings
    print(settings.fred_base_url)
"""

from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _find_dotenv() -> Path | None:
    """Walk up from CWD to find the nearest .env file."""
    current = Path.cwd()
    for parent in [current, *current.parents]:
        candidate = parent / ".env"
        if candidate.is_file():
            return candidate
    return None


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=_find_dotenv() or ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Providers
    # -------------------------------------------------------------------------
    fred_base_url: str = Field(default="https://api.stlouisfed.org/fred")
    fred_api_key: str = Field(default="")
    oecd_base_url: str = Field(default="https://stats.oecd.org/SDMX-JSON/data")
    te_base_url: str = Field(default="https://api.tradingeconomics.com")
    te_api_key: str = Field(default="")

    # Comma-separated provider names switched off operationally ("fred,oecd")
    disabled_sources: str = Field(default="")

    history_start: date = Field(default=date(2000, 1, 1))

    # -------------------------------------------------------------------------
    # HTTP / retry policy
    # -------------------------------------------------------------------------
    http_timeout: float = Field(default=30.0)
    fetch_max_retries: int = Field(default=3, ge=1)
    fetch_base_delay: float = Field(default=2.0, ge=0)
    fetch_max_delay: float = Field(default=30.0, ge=0)
    # Minimum seconds between two TradingEconomics requests
    te_min_interval: float = Field(default=1.5, ge=0)

    # -------------------------------------------------------------------------
    # Analytics
    # -------------------------------------------------------------------------
    max_forward_fill_days: int = Field(default=3, ge=0)
    correlation_config_path: str = Field(default="")

    # -------------------------------------------------------------------------
    # Batch driver
    # -------------------------------------------------------------------------
    batch_concurrency: int = Field(default=4, ge=1)
    batch_budget_seconds: float = Field(default=240.0, gt=0)

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO"
    )
    log_format: Literal["json", "console"] = Field(default="console")

    # -------------------------------------------------------------------------
    # Derived / computed
    # -------------------------------------------------------------------------
    @property
    def disabled_sources_list(self) -> list[str]:
        return [s.strip().lower() for s in self.disabled_sources.split(",") if s.strip()]

    @field_validator("fred_base_url", "oecd_base_url", "te_base_url", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/") if isinstance(v, str) else v


# ---------------------------------------------------------------------------
# Module-level singleton: import this everywhere
# ---------------------------------------------------------------------------
settings = Settings()
