from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable

from pingdash.models import PingRecord
from pingdash.services.records import as_utc, isoformat


@dataclass(slots=True)
class TimelinePoint:
    created_at: datetime
    status: bool
    latency: float | None = None

    @classmethod
    def from_record(cls, record: PingRecord) -> "TimelinePoint":
        return cls(created_at=as_utc(record.created_at), status=bool(record.status), latency=record.ping_latency_ms)

    @classmethod
    def from_payload(cls, item: dict[str, Any]) -> "TimelinePoint":
        return cls(
            created_at=parse_iso(item.get("createdAt")),
            status=bool(item.get("status")),
            latency=item.get("ping_latency_ms"),
        )


@dataclass(slots=True)
class Segment:
    status: bool
    start_time: datetime
    end_time: datetime
    duration_minutes: int
    latency: float | None
    is_current: bool = False

    def to_dict(self, window_minutes: int) -> dict[str, Any]:
        return {
            "status": self.status,
            "startTime": isoformat(self.start_time),
            "endTime": isoformat(self.end_time),
            "durationMinutes": self.duration_minutes,
            "latency": self.latency,
            "percent": (self.duration_minutes / window_minutes) * 100 if window_minutes else 0.0,
            "isCurrent": self.is_current,
        }


@dataclass(slots=True)
class TimelineSummary:
    ip: str
    hours: int
    window_start: datetime
    now: datetime
    segments: list[Segment]
    uptime: float | None
    current_status: bool | None
    last_update: datetime | None

    @property
    def has_data(self) -> bool:
        return bool(self.segments)

    @property
    def window_minutes(self) -> int:
        return whole_minutes(self.window_start, self.now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ip": self.ip,
            "hours": self.hours,
            "hasData": self.has_data,
            "windowStart": isoformat(self.window_start),
            "now": isoformat(self.now),
            "uptime": self.uptime,
            "currentStatus": self.current_status,
            "lastUpdate": isoformat(self.last_update),
            "segments": [seg.to_dict(self.window_minutes) for seg in self.segments],
        }


def parse_iso(value: Any) -> datetime:
    text = str(value or "").strip()
    if not text:
        raise ValueError("Missing timestamp")
    return as_utc(datetime.fromisoformat(text.replace("Z", "+00:00")))


def whole_minutes(start: datetime, end: datetime) -> int:
    seconds = (end - start).total_seconds()
    # Truncate toward zero so a 59s gap is 0 minutes in both directions.
    return int(seconds / 60)


def build_segments(points: Iterable[TimelinePoint], now: datetime) -> list[Segment]:
    """Turn a chronological list of pings into contiguous status segments.

    Each ping's status holds until the next ping; the last one holds until
    ``now`` and is marked as the current segment. An empty input gives an
    empty list.
    """
    ordered = sorted(points, key=lambda p: p.created_at)
    segments: list[Segment] = []
    for index, point in enumerate(ordered):
        is_last = index == len(ordered) - 1
        end_time = now if is_last else ordered[index + 1].created_at
        segments.append(
            Segment(
                status=point.status,
                start_time=point.created_at,
                end_time=end_time,
                duration_minutes=whole_minutes(point.created_at, end_time),
                latency=point.latency,
                is_current=is_last,
            )
        )
    return segments


def uptime_percent(segments: list[Segment], window_minutes: int) -> float | None:
    if not segments or window_minutes <= 0:
        return None
    online = sum(seg.duration_minutes for seg in segments if seg.status)
    return round(online / window_minutes * 100, 1)


def summarize_timeline(ip: str, points: Iterable[TimelinePoint], hours: int, now: datetime | None = None) -> TimelineSummary:
    current = as_utc(now or datetime.now(timezone.utc))
    window_start = current - timedelta(hours=hours)
    segments = build_segments(points, current)
    last = segments[-1] if segments else None
    return TimelineSummary(
        ip=ip,
        hours=hours,
        window_start=window_start,
        now=current,
        segments=segments,
        uptime=uptime_percent(segments, whole_minutes(window_start, current)),
        current_status=last.status if last else None,
        last_update=last.start_time if last else None,
    )


def format_elapsed(start: datetime, end: datetime) -> str:
    total_seconds = int((as_utc(end) - as_utc(start)).total_seconds())
    if total_seconds <= 0:
        return "just now"
    minutes, seconds = divmod(total_seconds, 60)
    hours, minutes = divmod(minutes, 60)
    days, hours = divmod(hours, 24)
    if days:
        return f"{days}d {hours}h"
    if hours:
        return f"{hours}h {minutes}m"
    if minutes:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"


def record_ontime(row: dict[str, Any], now: datetime) -> str:
    """How long a listing row's status held: until now for the newest row, else until the newer ping."""
    started = parse_iso(row.get("createdAt"))
    if row.get("isLatest") or not row.get("previousRecordCreatedAt"):
        return format_elapsed(started, now)
    return format_elapsed(started, parse_iso(row.get("previousRecordCreatedAt")))
