from __future__ import annotations

from datetime import datetime, timedelta, timezone

from pingdash.services.timeline import (
    TimelinePoint,
    build_segments,
    format_elapsed,
    record_ontime,
    summarize_timeline,
    whole_minutes,
)


T0 = datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc)


def _at(minutes: int) -> datetime:
    return T0 + timedelta(minutes=minutes)


def test_three_pings_make_three_segments() -> None:
    points = [
        TimelinePoint(_at(0), True, 2.0),
        TimelinePoint(_at(40), False, None),
        TimelinePoint(_at(55), True, 3.5),
    ]
    now = _at(90)
    segments = build_segments(points, now)

    assert [(s.start_time, s.end_time, s.status) for s in segments] == [
        (_at(0), _at(40), True),
        (_at(40), _at(55), False),
        (_at(55), now, True),
    ]
    assert [s.is_current for s in segments] == [False, False, True]
    assert sum(s.duration_minutes for s in segments) == whole_minutes(_at(0), now)
    assert segments[0].latency == 2.0


def test_segments_sort_unordered_input() -> None:
    points = [TimelinePoint(_at(30), False), TimelinePoint(_at(0), True)]
    segments = build_segments(points, _at(45))
    assert [s.status for s in segments] == [True, False]


def test_durations_truncate_to_whole_minutes() -> None:
    points = [TimelinePoint(T0, True)]
    segments = build_segments(points, T0 + timedelta(seconds=119))
    assert segments[0].duration_minutes == 1


def test_empty_timeline_reports_no_data() -> None:
    assert build_segments([], _at(10)) == []
    summary = summarize_timeline("10.0.0.1", [], hours=24, now=_at(10))
    assert summary.has_data is False
    assert summary.uptime is None
    assert summary.current_status is None
    payload = summary.to_dict()
    assert payload["hasData"] is False
    assert payload["segments"] == []


def test_uptime_over_window() -> None:
    now = T0 + timedelta(hours=24)
    points = [
        TimelinePoint(now - timedelta(hours=12), True),
        TimelinePoint(now - timedelta(hours=6), False),
    ]
    summary = summarize_timeline("10.0.0.1", points, hours=24, now=now)

    assert summary.uptime == 25.0
    assert summary.current_status is False
    assert summary.last_update == now - timedelta(hours=6)
    segments = summary.to_dict()["segments"]
    assert segments[0]["percent"] == 25.0
    assert segments[-1]["isCurrent"] is True


def test_uptime_rounds_to_one_decimal() -> None:
    now = T0 + timedelta(hours=1)
    summary = summarize_timeline("10.0.0.1", [TimelinePoint(now - timedelta(minutes=7), True)], hours=1, now=now)
    assert summary.uptime == 11.7


def test_point_from_payload() -> None:
    point = TimelinePoint.from_payload({"createdAt": "2026-03-01T08:00:00Z", "status": True, "ping_latency_ms": 4.2})
    assert point.created_at == T0
    assert point.status is True
    assert point.latency == 4.2


def test_format_elapsed_units() -> None:
    assert format_elapsed(T0, T0) == "just now"
    assert format_elapsed(T0, T0 - timedelta(seconds=5)) == "just now"
    assert format_elapsed(T0, T0 + timedelta(seconds=42)) == "42s"
    assert format_elapsed(T0, T0 + timedelta(seconds=90)) == "1m 30s"
    assert format_elapsed(T0, T0 + timedelta(hours=2, minutes=5, seconds=9)) == "2h 5m"
    assert format_elapsed(T0, T0 + timedelta(hours=25)) == "1d 1h"


def test_format_elapsed_is_idempotent() -> None:
    end = T0 + timedelta(minutes=3, seconds=1)
    assert format_elapsed(T0, end) == format_elapsed(T0, end)


def test_record_ontime_uses_now_for_latest_row() -> None:
    row = {"createdAt": T0.isoformat(), "isLatest": True, "previousRecordCreatedAt": None}
    assert record_ontime(row, T0 + timedelta(seconds=90)) == "1m 30s"


def test_record_ontime_uses_newer_neighbour() -> None:
    row = {
        "createdAt": T0.isoformat(),
        "isLatest": False,
        "previousRecordCreatedAt": (T0 + timedelta(hours=25)).isoformat(),
    }
    assert record_ontime(row, T0 + timedelta(days=10)) == "1d 1h"
