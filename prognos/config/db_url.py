from __future__ import annotations

import os
from typing import Any


def build_database_url(
    *,
    user: str,
    password: str | None,
    host: str,
    port: str,
    name: str,
) -> str:
    auth = f"{user}:{password}" if password else f"{user}"
    return f"postgresql+asyncpg://{auth}@{host}:{port}/{name}"


def build_sqlite_url(path: str) -> str:
    return f"sqlite+aiosqlite:///{os.path.abspath(path)}"


def ensure_env_database_url() -> dict[str, Any]:
    """Compose PROGNOS_DATABASE__URL from its parts when only the parts are set."""
    def _env2(k1: str, k2: str | None = None) -> str | None:
        v = os.getenv(k1)
        if v is None and k2 is not None:
            v = os.getenv(k2)
        return v

    existing_url = os.getenv("PROGNOS_DATABASE__URL") or os.getenv("DATABASE_URL")
    if existing_url:
        return {"composed": False, "url_already_set": True}

    user = _env2("PROGNOS_DATABASE__USER", "PROGNOS_DATABASE_USER")
    pwd = _env2("PROGNOS_DATABASE__PASSWORD", "PROGNOS_DATABASE_PASSWORD") or ""
    host = _env2("PROGNOS_DATABASE__HOST", "PROGNOS_DATABASE_HOST") or "127.0.0.1"
    port = _env2("PROGNOS_DATABASE__PORT", "PROGNOS_DATABASE_PORT") or "5432"
    name = _env2("PROGNOS_DATABASE__NAME", "PROGNOS_DATABASE_NAME")
    if user and name:
        url = build_database_url(user=user, password=pwd, host=host, port=port, name=name)
        os.environ["PROGNOS_DATABASE__URL"] = url
        return {"composed": True, "reason": "missing_url", "port": port}

    return {"composed": False, "reason": "missing_fields"}


def ensure_config_database_url(core_db: Any) -> dict[str, Any]:
    """Ensure database URL is set on config object."""
    if core_db is None:
        return {"composed": False, "reason": "missing_config"}

    if getattr(core_db, "url", None):
        return {"composed": False, "url_already_set": True}

    host = getattr(core_db, "host", None) or "127.0.0.1"
    port = str(getattr(core_db, "port", None) or 5432)
    user = getattr(core_db, "user", None)
    pwd = getattr(core_db, "password", None) or ""
    name = getattr(core_db, "name", None)
    if user and name:
        url = build_database_url(
            user=user,
            password=pwd,
            host=host,
            port=port,
            name=name,
        )
        setattr(core_db, "url", url)
        return {"composed": True}

    return {"composed": False, "reason": "missing_fields"}


__all__ = [
    "build_database_url",
    "build_sqlite_url",
    "ensure_env_database_url",
    "ensure_config_database_url",
]
