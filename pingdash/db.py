from __future__ import annotations

import logging
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import URL
from sqlalchemy.orm import Session, sessionmaker

from pingdash.config import AppConfig
from pingdash.models import Base


LOGGER = logging.getLogger(__name__)


def _connect_args(url: URL, timeout_seconds: float) -> dict[str, object]:
    backend = url.get_backend_name()
    if backend == "sqlite":
        return {"check_same_thread": False, "timeout": timeout_seconds}
    if backend == "postgresql":
        timeout_ms = int(timeout_seconds * 1000)
        return {
            "connect_timeout": max(1, int(timeout_seconds)),
            "options": f"-c statement_timeout={timeout_ms}",
        }
    return {}


def create_session_factory(config: AppConfig) -> sessionmaker[Session]:
    url = config.database_url
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    engine_kwargs: dict[str, object] = {
        "pool_pre_ping": True,
        "future": True,
        "connect_args": _connect_args(url, config.query_timeout_seconds),
    }
    if url.get_backend_name() != "sqlite":
        engine_kwargs["pool_size"] = config.pool_size
        engine_kwargs["pool_timeout"] = config.query_timeout_seconds
    engine = create_engine(url, **engine_kwargs)
    LOGGER.info("database engine ready url=%s", url.render_as_string(hide_password=True))
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, future=True)


def init_db(session_factory: sessionmaker[Session]) -> None:
    Base.metadata.create_all(bind=session_factory.kw["bind"])
