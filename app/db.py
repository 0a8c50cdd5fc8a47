"""SQL engine for the problem history.

Blocking ORM calls are made from ``asyncio.to_thread`` workers, so every
session comes from :data:`SessionLocal` rather than being shared.
"""
from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from app.config import Settings
from app.models import Base

logger = logging.getLogger(__name__)


engine: Engine | None = None
_session_factory: sessionmaker | None = None


class _SessionWrapper:
    """Callable proxy so modules can import SessionLocal before init_db runs."""

    def __call__(self, *args: Any, **kwargs: Any) -> Session:
        if _session_factory is None:
            raise RuntimeError("Database not initialized")
        return _session_factory(*args, **kwargs)


SessionLocal = _SessionWrapper()


def _engine_options(url: str) -> dict[str, Any]:
    if url.startswith("sqlite"):
        # sessions are opened from worker threads
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_size": 10, "max_overflow": 5, "pool_recycle": 300, "pool_pre_ping": True}


def init_db(cfg: Settings) -> None:
    """(Re)create the engine for ``cfg.database_url``."""
    global engine, _session_factory

    dispose_db()
    engine = create_engine(cfg.database_url, **_engine_options(cfg.database_url))
    _session_factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    if cfg.db_create_all:
        Base.metadata.create_all(engine)
    logger.info("history database ready (%s)", engine.dialect.name)


def dispose_db() -> None:
    global engine, _session_factory
    if engine is not None:
        engine.dispose()
    engine = None
    _session_factory = None
