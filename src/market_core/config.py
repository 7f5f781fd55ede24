"""
Centralized settings for the market core.

Precedence (lowest to highest):
  1. Field defaults
  2. YAML overlay file pointed to by MARKET_CONFIG_PATH
  3. Environment variables (a local .env file is loaded first, without
     overriding variables already present in the environment)

Usage:
    from market_core.config import get_settings

    settings = get_settings()
    settings.database_url
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Literal, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

CONFIG_PATH_ENV = "MARKET_CONFIG_PATH"

# env var -> dotted settings path
_ENV_MAP: Dict[str, str] = {
    "MARKET_DATABASE_URL": "database_url",
    "MARKET_SAVE_INTERVAL": "save_interval",
    "MARKET_DECAY_INTERVAL": "decay_interval",
    "MARKET_DECAY_AMOUNT": "decay_amount",
    "MARKET_POPULATE_CATALOG": "populate_catalog",
    "MARKET_CATALOG_PATH": "catalog_path",
    "MARKET_LOG_LEVEL": "logging.level",
    "MARKET_LOG_JSON": "logging.json",
    "MARKET_LOG_DESTINATION": "logging.destination",
    "MARKET_LOG_FILE": "logging.filename",
}


class LoggingSettings(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    level: str = "INFO"
    json_format: bool = Field(default=False, alias="json")
    destination: Literal["stdout", "stderr", "file"] = "stdout"
    filename: Optional[str] = None
    format: str = "%(asctime)s %(levelname)s %(name)s - %(message)s"

    @field_validator("level")
    @classmethod
    def _upper_level(cls, v: str) -> str:
        return str(v).upper()


class Settings(BaseModel):
    """Runtime configuration consumed by MarketService."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    database_url: str = "sqlite:///./market.db"
    # Seconds between product table saves; the first save runs at startup
    save_interval: float = 300.0
    # Seconds between demand decay sweeps; the first sweep waits one interval
    decay_interval: float = 600.0
    decay_amount: int = 1
    populate_catalog: bool = False
    catalog_path: Optional[Path] = None
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @field_validator("save_interval", "decay_interval")
    @classmethod
    def _positive_interval(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("interval must be positive")
        return v

    @field_validator("decay_amount")
    @classmethod
    def _non_negative_amount(cls, v: int) -> int:
        if v < 0:
            raise ValueError("decay_amount must be non-negative")
        return v


def _set_path(data: Dict[str, Any], dotted: str, value: Any) -> None:
    keys = dotted.split(".")
    node = data
    for key in keys[:-1]:
        node = node.setdefault(key, {})
    node[keys[-1]] = value


def _read_overlay(path: Path) -> Dict[str, Any]:
    with path.open(encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config overlay {path} must contain a mapping")
    return data


def load_settings(overlay_path: Optional[Path] = None, env: Optional[Dict[str, str]] = None) -> Settings:
    """Build Settings from an optional YAML overlay and an environment mapping."""
    data: Dict[str, Any] = {}
    if overlay_path is not None:
        data = _read_overlay(overlay_path)
    env = dict(os.environ) if env is None else env
    for var, dotted in _ENV_MAP.items():
        value = env.get(var)
        if value is not None and value != "":
            _set_path(data, dotted, value)
    return Settings.model_validate(data)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide cached settings; call get_settings.cache_clear() to reload."""
    load_dotenv(override=False)
    overlay = os.environ.get(CONFIG_PATH_ENV)
    return load_settings(Path(overlay) if overlay else None)
