"""Application settings.

Values are resolved in this order (later wins):
1. Field defaults
2. YAML file (``PROGNOS_CONFIG`` or ``config/prognos.yaml`` at the repo root)
3. Environment variables (``PROGNOS_`` prefix, ``__`` between nested keys)
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Literal, Optional

import yaml
from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .db_url import build_sqlite_url, ensure_config_database_url


_last_yaml_path: Optional[str] = None


def _project_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _data_dir(test_mode: bool = False) -> str:
    base = _project_root() / "data"
    return str(base / "test" if test_mode else base)


def last_yaml_path() -> Optional[str]:
    return _last_yaml_path


class DatabaseSettings(BaseModel):
    url: Optional[str] = None
    user: Optional[str] = None
    password: Optional[str] = None
    host: str = "127.0.0.1"
    port: int = 5432
    name: Optional[str] = None
    sqlite_filename: str = "prognos.db"
    connect_timeout_seconds: float = Field(default=10.0, gt=0, le=300)
    pool_timeout_seconds: float = Field(default=30.0, gt=0, le=600)
    echo: bool = False

    def sqlite_path(self, test_mode: bool = False) -> str:
        data_dir = _data_dir(test_mode)
        os.makedirs(data_dir, exist_ok=True)
        return os.path.join(data_dir, self.sqlite_filename)

    def resolved_url(self, test_mode: bool = False) -> str:
        """Explicit URL, else a postgres URL composed from parts, else local sqlite."""
        if self.url:
            return self.url
        ensure_config_database_url(self)
        if self.url:
            return self.url
        return build_sqlite_url(self.sqlite_path(test_mode))


class SchedulerSettings(BaseModel):
    enabled: bool = True
    interval_seconds: float = Field(
        default=60.0,
        ge=1,
        le=86400,
        description="Seconds between resolution sweeps.",
    )


class SettlementSettings(BaseModel):
    default_mode: Literal["linear", "quadratic"] = "linear"


class StakeSettings(BaseModel):
    max_stake_amount: float = Field(
        default=10000.0,
        gt=0,
        description="Largest amount accepted in a single stake submission.",
    )
    max_prediction_stake: float = Field(
        default=1000.0,
        gt=0,
        description="Further stakes are refused once a prediction's stake reaches this amount.",
    )
    require_transaction: bool = True
    max_transaction_age_minutes: int = Field(default=30, ge=0, le=1440)


class LedgerSettings(BaseModel):
    network: Literal["testnet", "mainnet"] = "testnet"
    api_url: Optional[str] = None
    platform_address: Optional[str] = "ST1PQHQKV0RJXZFY1DGX8MNSNYVE3VGZJSRTPGZGM"
    timeout_seconds: float = Field(default=10.0, gt=0, le=120)
    max_retries: int = Field(default=2, ge=0, le=10)
    amount_tolerance: float = Field(default=0.01, ge=0)

    def base_url(self) -> str:
        if self.api_url:
            return self.api_url.rstrip("/")
        if self.network == "mainnet":
            return "https://stacks-node-api.mainnet.stacks.co"
        return "https://stacks-node-api.testnet.stacks.co"


class LoggingSettings(BaseModel):
    json_logs: bool = False
    level: str = "INFO"
    directory: Optional[str] = None
    events_retention_bytes: int = Field(default=10 * 1024 * 1024, ge=1024)

    @model_validator(mode="before")
    @classmethod
    def _alias_json(cls, data: dict[str, object]) -> dict[str, object]:
        if isinstance(data, dict) and "json" in data and "json_logs" not in data:
            data = dict(data)
            data["json_logs"] = data.pop("json")
        return data


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="PROGNOS_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    test_mode: bool = False
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)
    settlement: SettlementSettings = Field(default_factory=SettlementSettings)
    stakes: StakeSettings = Field(default_factory=StakeSettings)
    ledger: LedgerSettings = Field(default_factory=LedgerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @model_validator(mode="before")
    @classmethod
    def _apply_yaml_overrides(cls, data: Any) -> Any:
        overrides = _load_yaml_overrides()
        if not overrides:
            return data
        if isinstance(data, dict):
            return _deep_merge(overrides, data)
        return overrides


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged: Dict[str, Any] = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _load_yaml_overrides() -> Dict[str, Any]:
    candidates: list[Path] = []
    explicit = _last_yaml_path or os.getenv("PROGNOS_CONFIG")
    if explicit:
        candidates.append(Path(explicit).resolve())
    candidates.append(_project_root() / "config" / "prognos.yaml")

    for path in candidates:
        if not path.exists():
            continue
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"config file {path} must contain a mapping")
        return data
    return {}


def load_settings(yaml_path: Optional[str] = None) -> Settings:
    """Build settings, remembering ``yaml_path`` for later loads."""
    global _last_yaml_path
    if yaml_path is not None:
        _last_yaml_path = yaml_path
    return Settings()


def sanitize_dict(data: Dict[str, Any]) -> Dict[str, Any]:
    """Mask secrets before settings are logged."""
    masked: Dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, dict):
            masked[key] = sanitize_dict(value)
        elif key in ("password", "url") and value:
            masked[key] = "***"
        else:
            masked[key] = value
    return masked


__all__ = [
    "DatabaseSettings",
    "SchedulerSettings",
    "SettlementSettings",
    "StakeSettings",
    "LedgerSettings",
    "LoggingSettings",
    "Settings",
    "load_settings",
    "last_yaml_path",
    "sanitize_dict",
    "_project_root",
    "_data_dir",
]
