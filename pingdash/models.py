from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Float, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PingRecord(Base):
    """One ping outcome for one printer, written by the external pinger."""

    __tablename__ = "printer_ping_test"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    type: Mapped[str] = mapped_column(String(32), default="ping")
    ip: Mapped[str] = mapped_column(String(64), index=True)
    status: Mapped[bool] = mapped_column(Boolean, index=True)
    ping_latency_ms: Mapped[float | None] = mapped_column(Float, nullable=True)
    ping_display: Mapped[str] = mapped_column(String(64), default="")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, index=True)
