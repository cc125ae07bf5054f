from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable

import pytest
from flask import Flask
from sqlalchemy.orm import Session, sessionmaker

from pingdash.config import AppConfig
from pingdash.db import create_session_factory, init_db
from pingdash.models import PingRecord
from pingdash.web import create_app


def make_config(tmp_path: Path, **overrides: object) -> AppConfig:
    data: dict[str, object] = {"database": {"url": f"sqlite:///{tmp_path / 'ping.db'}"}}
    data.update(overrides)
    return AppConfig(data)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("DATABASE_URL", "DB_HOST", "DB_NAME", "DB_USER", "DB_PASSWORD", "LISTING_MAX_PAGE_SIZE"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config(tmp_path: Path) -> AppConfig:
    return make_config(tmp_path)


@pytest.fixture
def session_factory(config: AppConfig) -> sessionmaker[Session]:
    factory = create_session_factory(config)
    init_db(factory)
    return factory


@pytest.fixture
def app(config: AppConfig) -> Flask:
    return create_app(config=config)


@pytest.fixture
def app_factory(tmp_path: Path) -> Callable[..., Flask]:
    def _build(**overrides: object) -> Flask:
        return create_app(config=make_config(tmp_path, **overrides))

    return _build


@pytest.fixture
def now() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


@pytest.fixture
def add_pings(config: AppConfig) -> Callable[..., list[PingRecord]]:
    """Insert ``(ip, minutes_ago, online)`` tuples relative to a fixed ``base`` time."""
    factory = create_session_factory(config)
    init_db(factory)

    def _add(rows: list[tuple[str, float, bool]], base: datetime) -> list[PingRecord]:
        records = [
            PingRecord(
                type="ping",
                ip=ip,
                status=online,
                ping_latency_ms=1.5 if online else None,
                ping_display="1.5 ms" if online else "timeout",
                created_at=base - timedelta(minutes=minutes_ago),
            )
            for ip, minutes_ago, online in rows
        ]
        with factory() as session:
            session.add_all(records)
            session.commit()
        return records

    return _add
