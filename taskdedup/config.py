"""Configuration via pydantic-settings (env prefix ``TASKDEDUP_``)."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="TASKDEDUP_", env_file=".env", extra="ignore")

    backend: Literal["memory", "jsonl", "sql"] = "memory"
    jsonl_path: Path = Path("data/tasks.jsonl")
    database_url: str = "sqlite:///data/tasks.db"
    enforce_unique_pending: bool = True
    echo_sql: bool = False

    tenant_id: str = "default"
    scan_batch_size: int = Field(default=500, ge=1)

    log_level: str = "INFO"
    log_file: Path | None = None


def get_settings(**overrides) -> Settings:
    """Settings from the environment; explicit (non-None) overrides win."""
    return Settings(**{k: v for k, v in overrides.items() if v is not None})
