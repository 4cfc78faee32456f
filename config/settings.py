"""Centralised configuration handling for the ledger analytics engine."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

UNCATEGORIZED_LABEL = "Sin categoría"
UNNAMED_LABEL = "Sin nombre"
DEFAULT_PROJECTION_MONTHS = 6


class Settings(BaseSettings):
    """Engine settings sourced from ``LEDGER_*`` environment variables."""

    uncategorized_label: str = UNCATEGORIZED_LABEL
    unnamed_label: str = UNNAMED_LABEL

    projection_months: int = Field(default=DEFAULT_PROJECTION_MONTHS, ge=1)
    summary_window_months: int = Field(default=6, ge=1)
    trend_window_months: int = Field(default=6, ge=1)
    realistic_window_months: int = Field(default=4, ge=1)
    category_projection_window_months: int = Field(default=3, ge=1)
    scenario_window_months: int = Field(default=6, ge=1)
    restock_window_months: int = Field(default=6, ge=1)

    overbudget_limit: int = Field(default=3, ge=1)
    top_items_limit: int = Field(default=10, ge=1)
    top_variable_limit: int = Field(default=5, ge=1)
    dashboard_lookback_months: int = Field(default=3, ge=1)

    parallel_reads: bool = False
    max_read_workers: int = Field(default=4, ge=1)

    model_config = SettingsConfigDict(env_prefix="LEDGER_", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """Load and cache engine settings."""

    return Settings()
