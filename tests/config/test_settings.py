from __future__ import annotations

import pytest
from pydantic import ValidationError

from prognos.config import core
from prognos.config import DatabaseSettings, Settings, load_settings, sanitize_dict


@pytest.fixture(autouse=True)
def _isolated_yaml(monkeypatch, tmp_path):
    monkeypatch.setattr(core, "_last_yaml_path", None)
    monkeypatch.setattr(core, "_project_root", lambda: tmp_path)
    monkeypatch.delenv("PROGNOS_CONFIG", raising=False)
    for key in ("PROGNOS_SCHEDULER__INTERVAL_SECONDS", "PROGNOS_DATABASE__URL", "PROGNOS_SETTLEMENT__DEFAULT_MODE"):
        monkeypatch.delenv(key, raising=False)


def test_defaults():
    settings = Settings()
    assert settings.scheduler.interval_seconds == 60
    assert settings.scheduler.enabled is True
    assert settings.settlement.default_mode == "linear"
    assert settings.stakes.max_stake_amount == 10000
    assert settings.stakes.max_prediction_stake == 1000
    assert settings.stakes.max_transaction_age_minutes == 30
    assert settings.ledger.amount_tolerance == 0.01


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("PROGNOS_SCHEDULER__INTERVAL_SECONDS", "15")
    monkeypatch.setenv("PROGNOS_SETTLEMENT__DEFAULT_MODE", "quadratic")
    settings = Settings()
    assert settings.scheduler.interval_seconds == 15
    assert settings.settlement.default_mode == "quadratic"


def test_yaml_overrides_and_env_wins(monkeypatch, tmp_path):
    path = tmp_path / "prognos.yaml"
    path.write_text(
        "scheduler:\n  interval_seconds: 120\n  enabled: false\nlogging:\n  json: true\n",
        encoding="utf-8",
    )
    settings = load_settings(str(path))
    assert settings.scheduler.interval_seconds == 120
    assert settings.scheduler.enabled is False
    assert settings.logging.json_logs is True

    monkeypatch.setenv("PROGNOS_SCHEDULER__INTERVAL_SECONDS", "30")
    assert Settings().scheduler.interval_seconds == 30


def test_out_of_range_values_rejected(monkeypatch):
    monkeypatch.setenv("PROGNOS_SCHEDULER__INTERVAL_SECONDS", "0")
    with pytest.raises(ValidationError):
        Settings()


def test_sqlite_fallback_url(tmp_path):
    db = DatabaseSettings(sqlite_filename="t.db")
    url = db.resolved_url(test_mode=True)
    assert url.startswith("sqlite+aiosqlite:///")
    assert url.endswith("data/test/t.db")


def test_composed_postgres_url():
    db = DatabaseSettings(user="u", password="p", name="pools", host="db", port=5433)
    assert db.resolved_url() == "postgresql+asyncpg://u:p@db:5433/pools"


def test_sanitize_dict_masks_secrets():
    masked = sanitize_dict({"database": {"password": "s3cret", "url": "postgresql://x", "host": "h"}})
    assert masked == {"database": {"password": "***", "url": "***", "host": "h"}}
