from __future__ import annotations

import csv
import io
import logging
from datetime import datetime, timezone
from typing import Any

from flask import Flask, Response, jsonify, render_template, request

from pingdash.config import AppConfig
from pingdash.db import create_session_factory, init_db
from pingdash.services.records import ListingParams, ListingRow, RecordQueries, as_utc, record_payload
from pingdash.services.timeline import TimelinePoint, format_elapsed, record_ontime, summarize_timeline


LOGGER = logging.getLogger(__name__)
CSV_HEADERS = ["IP Address", "Status", "Latency", "Last Update", "Ontime"]


def _error_response(message: str, status_code: int) -> tuple[Response, int]:
    return jsonify({"status": "error", "message": message, "data": []}), status_code


def _to_text(value: Any) -> str:
    return str(value or "").strip()


def csv_row(row: ListingRow, now: datetime) -> list[str]:
    payload = row.to_dict()
    return [
        payload["ip"],
        "Online" if payload["status"] else "Offline",
        payload["ping_display"],
        as_utc(row.record.created_at).strftime("%Y-%m-%d %H:%M:%S"),
        record_ontime(payload, now),
    ]


def _resolve_hours(value: Any, default: int, maximum: int) -> int:
    try:
        hours = int(_to_text(value))
    except ValueError:
        return default
    if hours < 1:
        return default
    return min(hours, maximum)


def create_app(config_path: str = "config.yaml", config: AppConfig | None = None) -> Flask:
    app = Flask(__name__, template_folder="templates")
    cfg = config or AppConfig.load(config_path)
    session_factory = create_session_factory(cfg)
    init_db(session_factory)
    queries = RecordQueries(session_factory)
    app.extensions["pingdash.queries"] = queries

    def _listing_params() -> ListingParams:
        return ListingParams.from_args(request.args, cfg.default_page_size, cfg.max_page_size)

    def _timeline_args() -> tuple[str, int]:
        ip = _to_text(request.args.get("ip"))
        hours = _resolve_hours(request.args.get("hours"), cfg.default_hours, cfg.max_hours)
        return ip, hours

    @app.get("/")
    def dashboard() -> Any:
        return render_template(
            "dashboard.html",
            active_tab="dashboard",
            page_title="Printer Status",
            poll_ms=int(cfg.poll_interval("status") * 1000),
            timeline_poll_ms=int(cfg.poll_interval("timeline") * 1000),
        )

    @app.get("/table")
    def table_page() -> Any:
        return render_template(
            "table.html",
            active_tab="table",
            page_title="Printer Status Table",
            poll_ms=int(cfg.poll_interval("records") * 1000),
            page_size=cfg.default_page_size,
        )

    @app.get("/health")
    def health() -> Any:
        return jsonify({"ok": True, "service": "pingdash"})

    @app.get("/api/printer-status")
    def printer_status() -> Any:
        try:
            records = queries.latest_status()
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception("printer-status: query failed")
            return _error_response(str(exc), 500)
        return jsonify({"status": "success", "data": [record_payload(r) for r in records], "count": len(records)})

    @app.get("/api/printer-records")
    def printer_records() -> Any:
        params = _listing_params()
        try:
            result = queries.list_records(params)
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception("printer-records: query failed filters=%s", params.filters())
            return _error_response(str(exc), 500)
        return jsonify(
            {
                "status": "success",
                "data": [row.to_dict() for row in result.rows],
                "pagination": result.pagination(),
                "filters": params.filters(),
                "serverTime": datetime.now(timezone.utc).isoformat(),
            }
        )

    @app.get("/api/printer-records/export")
    def printer_records_export() -> Any:
        params = _listing_params()
        try:
            result = queries.list_records(params)
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception("printer-records export: query failed filters=%s", params.filters())
            return _error_response(str(exc), 500)
        now = datetime.now(timezone.utc)
        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(CSV_HEADERS)
        for row in result.rows:
            writer.writerow(csv_row(row, now))
        filename = f"printer-status-{now.strftime('%Y%m%d-%H%M%S')}.csv"
        return Response(
            buffer.getvalue(),
            mimetype="text/csv",
            headers={"Content-Disposition": f"attachment; filename={filename}"},
        )

    @app.get("/api/printer-timeline")
    def printer_timeline() -> Any:
        ip, hours = _timeline_args()
        if not ip:
            LOGGER.warning("printer-timeline: missing ip from %s", request.remote_addr)
            return _error_response("IP parameter is required", 400)
        try:
            records = queries.timeline(ip, hours)
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception("printer-timeline: query failed ip=%s hours=%s", ip, hours)
            return _error_response(str(exc), 500)
        return jsonify({"status": "success", "data": [record_payload(r) for r in records], "count": len(records)})

    @app.get("/api/printer-timeline/summary")
    def printer_timeline_summary() -> Any:
        ip, hours = _timeline_args()
        if not ip:
            LOGGER.warning("printer-timeline summary: missing ip from %s", request.remote_addr)
            return _error_response("IP parameter is required", 400)
        now = datetime.now(timezone.utc)
        try:
            records = queries.timeline(ip, hours, now=now)
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception("printer-timeline summary: query failed ip=%s hours=%s", ip, hours)
            return _error_response(str(exc), 500)
        summary = summarize_timeline(ip, [TimelinePoint.from_record(r) for r in records], hours, now=now)
        payload = summary.to_dict()
        if summary.last_update is not None:
            payload["currentFor"] = format_elapsed(summary.last_update, now)
        return jsonify({"status": "success", "data": payload})

    return app
