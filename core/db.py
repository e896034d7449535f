"""
Engine/session holder for the durable message store, plus schema checks.
"""

from __future__ import annotations

import os
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session, sessionmaker

import core.config as config
from core.models import TopicRecord

logger = config.logger


class DB:
    """Database state holder (avoids global scoping issues)."""

    engine = None
    SessionLocal = None


def _alembic_config():
    from alembic.config import Config

    base_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    alembic_cfg = Config(os.path.join(base_dir, "alembic.ini"))
    alembic_cfg.set_main_option("script_location", os.path.join(base_dir, "alembic"))
    alembic_cfg.set_main_option("sqlalchemy.url", config.DATABASE_URL)
    return alembic_cfg


def schema_revisions(engine) -> tuple[Optional[str], Optional[str]]:
    """Return ``(current, head)`` Alembic revisions for ``engine``."""
    from alembic.runtime.migration import MigrationContext
    from alembic.script import ScriptDirectory

    head = ScriptDirectory.from_config(_alembic_config()).get_current_head()
    with engine.connect() as conn:
        current = MigrationContext.configure(conn).get_current_revision()
    return current, head


def migrate_to_head(engine) -> None:
    from alembic import command

    current, head = schema_revisions(engine)
    if current == head:
        return
    if not config.AUTO_MIGRATE_ON_STARTUP:
        raise RuntimeError(
            f"topic_records schema out of date (current={current}, expected={head}). "
            "Run 'alembic upgrade head' or set AUTO_MIGRATE_ON_STARTUP=true."
        )

    logger.info("schema_migrating", extra={"from_revision": current, "to_revision": head})
    command.upgrade(_alembic_config(), "head")
    if schema_revisions(engine)[0] != head:
        raise RuntimeError("Database migration did not reach expected revision")


def init_db() -> None:
    """Connect the durable store database and bring its schema to head."""
    config.validate_and_prepare_config()

    engine_kwargs = {"pool_pre_ping": True}
    if config.DB_BACKEND == "sqlite":
        engine_kwargs["connect_args"] = {"check_same_thread": False}
    DB.engine = create_engine(config.DATABASE_URL, **engine_kwargs)
    DB.SessionLocal = sessionmaker(bind=DB.engine)

    migrate_to_head(DB.engine)
    logger.info("database_ready", extra={"backend": config.DB_BACKEND})


def dispose_db() -> None:
    if DB.engine is not None:
        DB.engine.dispose()
    DB.engine = None
    DB.SessionLocal = None


@contextmanager
def session_scope(factory: Optional[Callable[[], Session]] = None) -> Iterator[Session]:
    """Yield a session that commits on success and rolls back on error.

    ``factory`` defaults to ``DB.SessionLocal`` resolved at call time, so a
    test that swaps the holder's engine is picked up by existing stores.
    """
    factory = factory or DB.SessionLocal
    if factory is None:
        raise RuntimeError("Database not initialized - SessionLocal is None")
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def database_status() -> dict:
    """Connectivity, schema revision and stored record count for /health."""
    if DB.engine is None:
        return {"ok": False, "error": "db_not_initialized"}

    try:
        with session_scope() as session:
            record_count = session.scalar(select(func.count()).select_from(TopicRecord))
        current, head = schema_revisions(DB.engine)
    except Exception as exc:
        return {"ok": False, "backend": config.DB_BACKEND, "error": str(exc)}

    schema_ok = head is None or current == head
    return {
        "ok": schema_ok,
        "backend": config.DB_BACKEND,
        "schema_revision": current,
        "schema_expected": head,
        "topic_records": record_count,
    }
