"""Lightweight configuration for the Bastion tools."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings for the command line; engine tunables live in ``rules_config``."""

    model_config = SettingsConfigDict(
        env_prefix="BASTION_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    log_level: str = Field(default="INFO", description="Root log level for the CLI")
    balance_runs: int = Field(
        default=1000,
        description="Battles per balance simulation when --runs is not given",
        gt=0,
    )
    balance_seed: str = Field(
        default="balance-sim",
        description="First seed component of every balance run",
    )
    json_indent: int = Field(default=2, description="Indentation of JSON output", ge=0)


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""

    return Settings()
