"""
Application configuration utilities.

This module defines the ``Settings`` class used throughout the service for
environment variables and provides a helper to load the YAML file holding
forecast tuning knobs (horizon, token budget, listing cap).
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict

import yaml
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Configuration loaded from environment variables or a .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        protected_namespaces=("settings_",),
    )

    # API server configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: str = ""

    # Gemini credentials; forecast generation answers 500 without a key
    gemini_api_key: str | None = None
    gemini_model: str = "gemini-2.5-flash"
    model_max_tokens: int | None = None
    model_timeout_seconds: float = 60.0
    forecast_model_version: str = "gemini-v1"

    # Bearer token for non-health routes (unset disables auth) and the
    # per-client request cap per minute (0 disables limiting)
    api_token: str | None = None
    rate_limit_per_min: int = 60

    # Storage and YAML configuration roots
    data_dir: str = "data"
    config_dir: str = "configs"


@lru_cache(maxsize=None)
def get_settings() -> Settings:
    """Return a cached instance of ``Settings``.

    Using a cache ensures that environment variables are only read once.
    """
    return Settings()


def load_yaml(file_path: str | Path) -> Dict[str, Any]:
    """Load a YAML file from the given path and return its contents.

    If the file does not exist, an empty dictionary is returned.
    """
    if not os.path.exists(file_path):
        return {}
    with open(file_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        return {}
    return data
