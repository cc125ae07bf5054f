from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session, sessionmaker

from pingdash.models import PingRecord


STATUS_FILTERS = {"all", "online", "offline"}
SORT_KEYS = {"createdAt", "ip", "status"}
SORT_ORDERS = {"asc", "desc"}


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def isoformat(value: datetime | None) -> str | None:
    if value is None:
        return None
    return as_utc(value).isoformat()


def record_payload(record: PingRecord) -> dict[str, Any]:
    return {
        "id": record.id,
        "type": record.type,
        "ip": record.ip,
        "status": bool(record.status),
        "ping_latency_ms": record.ping_latency_ms,
        "ping_display": record.ping_display or "",
        "createdAt": isoformat(record.created_at),
    }


@dataclass(slots=True)
class ListingParams:
    page: int = 1
    limit: int = 50
    search: str = ""
    status: str = "all"
    sort_by: str = "createdAt"
    sort_order: str = "desc"

    @classmethod
    def from_args(cls, args: Any, default_limit: int, max_limit: int) -> "ListingParams":
        """Build listing parameters from a query-string mapping.

        Values that do not parse or are out of range fall back to the
        defaults; ``limit`` is clamped to ``max_limit``.
        """
        status = str(args.get("status") or "all").strip().lower()
        sort_by = str(args.get("sortBy") or "createdAt").strip()
        sort_order = str(args.get("sortOrder") or "desc").strip().lower()
        return cls(
            page=_to_positive_int(args.get("page"), 1),
            limit=min(_to_positive_int(args.get("limit"), default_limit), max_limit),
            search=str(args.get("search") or "").strip(),
            status=status if status in STATUS_FILTERS else "all",
            sort_by=sort_by if sort_by in SORT_KEYS else "createdAt",
            sort_order=sort_order if sort_order in SORT_ORDERS else "desc",
        )

    def filters(self) -> dict[str, str]:
        return {
            "search": self.search,
            "status": self.status,
            "sortBy": self.sort_by,
            "sortOrder": self.sort_order,
        }


@dataclass(slots=True)
class ListingRow:
    record: PingRecord
    is_latest: bool
    previous_created_at: datetime | None

    def to_dict(self) -> dict[str, Any]:
        payload = record_payload(self.record)
        payload["isLatest"] = self.is_latest
        payload["previousRecordCreatedAt"] = isoformat(self.previous_created_at)
        return payload


@dataclass(slots=True)
class RecordPage:
    params: ListingParams
    rows: list[ListingRow] = field(default_factory=list)
    total: int = 0

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.params.limit)

    def pagination(self) -> dict[str, Any]:
        return {
            "currentPage": self.params.page,
            "totalPages": self.total_pages,
            "totalRecords": self.total,
            "recordsPerPage": self.params.limit,
            "hasNextPage": self.params.page < self.total_pages,
            "hasPrevPage": self.params.page > 1,
        }


def _to_positive_int(value: Any, default: int) -> int:
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        return default
    return parsed if parsed >= 1 else default


def enrich_by_device(records: list[PingRecord]) -> list[ListingRow]:
    """Flag each device's newest record and link every other record to its newer neighbour."""
    grouped: dict[str, list[PingRecord]] = {}
    for item in records:
        grouped.setdefault(item.ip, []).append(item)
    rows: list[ListingRow] = []
    for ip in sorted(grouped):
        group = sorted(grouped[ip], key=lambda r: (as_utc(r.created_at), r.id), reverse=True)
        for index, item in enumerate(group):
            rows.append(
                ListingRow(
                    record=item,
                    is_latest=index == 0,
                    previous_created_at=group[index - 1].created_at if index > 0 else None,
                )
            )
    return rows


def _sort_value(row: ListingRow, sort_by: str) -> Any:
    if sort_by == "ip":
        return row.record.ip
    if sort_by == "status":
        return 1 if row.record.status else 0
    return as_utc(row.record.created_at).timestamp()


def sort_rows(rows: list[ListingRow], sort_by: str, sort_order: str) -> list[ListingRow]:
    return sorted(
        rows,
        key=lambda row: (_sort_value(row, sort_by), row.record.id),
        reverse=sort_order == "desc",
    )


class RecordQueries:
    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self.session_factory = session_factory

    def latest_status(self) -> list[PingRecord]:
        ranked = select(
            PingRecord.id.label("id"),
            func.row_number()
            .over(
                partition_by=PingRecord.ip,
                order_by=(PingRecord.created_at.desc(), PingRecord.id.desc()),
            )
            .label("rank"),
        ).subquery()
        stmt = (
            select(PingRecord)
            .join(ranked, ranked.c.id == PingRecord.id)
            .where(ranked.c.rank == 1)
            .order_by(PingRecord.ip.asc())
        )
        with self.session_factory() as session:
            return list(session.execute(stmt).scalars().all())

    def list_records(self, params: ListingParams) -> RecordPage:
        stmt = select(PingRecord)
        if params.search:
            stmt = stmt.where(func.lower(PingRecord.ip).contains(params.search.lower(), autoescape=True))
        if params.status == "online":
            stmt = stmt.where(PingRecord.status.is_(True))
        elif params.status == "offline":
            stmt = stmt.where(PingRecord.status.is_(False))
        stmt = stmt.order_by(PingRecord.ip.asc(), PingRecord.created_at.desc(), PingRecord.id.desc())
        with self.session_factory() as session:
            matches = list(session.execute(stmt).scalars().all())

        rows = sort_rows(enrich_by_device(matches), params.sort_by, params.sort_order)
        start = (params.page - 1) * params.limit
        return RecordPage(params=params, rows=rows[start : start + params.limit], total=len(matches))

    def timeline(self, ip: str, hours: int, now: datetime | None = None) -> list[PingRecord]:
        cutoff = as_utc(now or datetime.now(timezone.utc)) - timedelta(hours=hours)
        stmt = (
            select(PingRecord)
            .where(PingRecord.ip == ip, PingRecord.created_at >= cutoff)
            .order_by(PingRecord.created_at.asc(), PingRecord.id.asc())
        )
        with self.session_factory() as session:
            return list(session.execute(stmt).scalars().all())
