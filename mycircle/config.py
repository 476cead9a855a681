"""
Runtime configuration helpers for the MYCircle core.

Loads settings from the process environment and from the ``.env`` file
located in the project root.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve the project root
BASE_DIR = Path(__file__).resolve().parents[1]

# Absolute path to .env
ENV_PATH = BASE_DIR / ".env"

# Load .env defaults without overriding environment variables provided by the platform
load_dotenv(dotenv_path=ENV_PATH, override=False)


class Settings(BaseSettings):
    database_url: str = Field(default="sqlite+pysqlite:///./mycircle.db", alias="DATABASE_URL")
    store_backend: Literal["memory", "sql"] = Field(default="sql", alias="STORE_BACKEND")

    app_name: str = Field(default="MYCircle", alias="APP_NAME")
    api_version: str = Field(default="0.1.0", alias="API_VERSION")

    # Identity
    tag_max_attempts: int = Field(default=10, alias="TAG_MAX_ATTEMPTS", ge=1)
    username_change_cooldown_days: int = Field(default=7, alias="USERNAME_CHANGE_COOLDOWN_DAYS", ge=0)

    # Read receipts
    seen_summary_names: int = Field(default=3, alias="SEEN_SUMMARY_NAMES", ge=0)

    # Friend graph reconciliation
    reconcile_interval_seconds: float = Field(default=3600.0, alias="RECONCILE_INTERVAL_SECONDS", gt=0)
    disable_reconcile: bool = Field(default=False, alias="DISABLE_RECONCILE")

    # Session tokens issued by the external identity provider
    session_token_secret: str | None = Field(default=None, alias="SESSION_TOKEN_SECRET")
    session_token_algorithm: str = Field(default="HS256", alias="SESSION_TOKEN_ALGORITHM")

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore"
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()


__all__ = ["Settings", "get_settings"]
