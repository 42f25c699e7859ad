from __future__ import annotations

import logging
import os
from time import monotonic
from typing import Optional

from alembic import command
from alembic.config import Config as AlembicConfig
from alembic.script import ScriptDirectory
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import make_url

from prognos.config import Settings


logger = logging.getLogger(__name__)


def alembic_env_path() -> str:
    """Return path to the Alembic environment shipped with this package."""
    return os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "alembic"))


def alembic_config(db_url: str) -> AlembicConfig:
    cfg = AlembicConfig()
    cfg.set_main_option("script_location", alembic_env_path())
    cfg.set_main_option("sqlalchemy.url", db_url.replace("%", "%%"))
    return cfg


def migration_url(async_url: str) -> str:
    """SQLite migrations run on the stdlib driver; other URLs are used as given."""
    url = make_url(async_url)
    if url.get_backend_name() == "sqlite":
        return url.set(drivername="sqlite").render_as_string(hide_password=False)
    return async_url


def initialize(settings: Optional[Settings] = None) -> str:
    """
    Ensure the database exists and migrations are applied. Returns the async URL.

    Call before an event loop is running: postgres migrations drive their own
    loop.
    """
    settings = settings or Settings()
    url = settings.database.resolved_url(settings.test_mode)
    parsed = make_url(url)
    if parsed.get_backend_name() == "sqlite" and parsed.database and parsed.database != ":memory:":
        db_path = parsed.database
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        if not os.path.exists(db_path):
            logger.info({"prognos_db": {"message": "creating sqlite db", "path": db_path}})
            open(db_path, "a", encoding="utf-8").close()

    upgrade_database(url)
    return url


def upgrade_database(db_url: str) -> None:
    """Run Alembic upgrade head unless the database is already there."""
    sync_url = migration_url(db_url)
    cfg = alembic_config(sync_url)

    head_revision = ScriptDirectory.from_config(cfg).get_current_head()
    current_revision = _get_database_revision(sync_url)
    if head_revision is not None and current_revision == head_revision:
        logger.info({"prognos_db": {"event": "alembic_upgrade_skip", "revision": current_revision}})
        return

    started = monotonic()
    logger.info(
        {
            "prognos_db": {
                "event": "alembic_upgrade_start",
                "from_revision": current_revision,
                "to_revision": head_revision,
            }
        }
    )
    try:
        command.upgrade(cfg, "head")
    except Exception as exc:
        logger.error({"prognos_db": {"event": "alembic_upgrade_error", "error": str(exc)}})
        raise
    logger.info(
        {
            "prognos_db": {
                "event": "alembic_upgrade_complete",
                "elapsed_seconds": round(monotonic() - started, 3),
            }
        }
    )


def _get_database_revision(db_url: str) -> str | None:
    if make_url(db_url).get_backend_name() != "sqlite":
        # async drivers are not probed here; alembic skips applied revisions
        return None
    engine = create_engine(db_url, future=True)
    try:
        with engine.connect() as connection:
            if "alembic_version" not in inspect(connection).get_table_names():
                return None
            result = connection.execute(text("select version_num from alembic_version limit 1"))
            return result.scalar()
    except Exception as exc:
        logger.debug({"prognos_db": {"event": "revision_probe_failed", "error": str(exc)}})
        return None
    finally:
        engine.dispose()


__all__ = ["initialize", "upgrade_database", "alembic_env_path", "migration_url"]
