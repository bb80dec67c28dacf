"""Core configuration for the solstatic engine."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="SOLSTATIC_",
        case_sensitive=False,
    )

    # ── App ──────────────────────────────────────────────────────────────
    app_env: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"

    # ── Solidity compiler ────────────────────────────────────────────────
    solc_version: str | None = None  # None → use the pragma, then newest installed
    solc_auto_install: bool = False

    # ── Import resolution ────────────────────────────────────────────────
    base_path: str = "."
    include_paths: list[str] = Field(default_factory=lambda: ["node_modules"])
    remappings: list[str] = Field(default_factory=list)  # "prefix=target"

    # ── CFG construction ─────────────────────────────────────────────────
    cfg_unsupported_policy: Literal["fallback", "fail"] = "fallback"


@lru_cache
def get_settings() -> Settings:
    """Return cached settings singleton."""
    return Settings()
