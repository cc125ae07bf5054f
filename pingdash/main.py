from __future__ import annotations

import argparse
import logging
import os
import signal
import sys
import time
from datetime import datetime, timezone
from typing import Any

from dotenv import load_dotenv

from pingdash.config import AppConfig
from pingdash.db import create_session_factory, init_db
from pingdash.services.api_client import DashboardClient
from pingdash.services.poller import ViewPoller
from pingdash.services.timeline import format_elapsed, parse_iso, record_ontime
from pingdash.web import create_app


LOGGER = logging.getLogger(__name__)


def setup_logging() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")


def render_status(printers: list[dict[str, Any]], now: datetime) -> list[str]:
    lines = [f"=== {len(printers)} printer(s) @ {now.strftime('%H:%M:%S')} ==="]
    for item in printers:
        state = "ONLINE " if item.get("status") else "OFFLINE"
        seen = format_elapsed(parse_iso(item.get("createdAt")), now)
        ago = seen if seen == "just now" else f"{seen} ago"
        lines.append(f"{item.get('ip', ''):<18} {state} {item.get('ping_display', ''):<12} last ping {ago}")
    return lines


def render_records(payload: dict[str, Any], now: datetime) -> list[str]:
    pagination = payload.get("pagination") or {}
    lines = [
        f"--- records page {pagination.get('currentPage', 1)}/{pagination.get('totalPages', 0)}"
        f" ({pagination.get('totalRecords', 0)} total) ---"
    ]
    for row in payload.get("data") or []:
        state = "Online " if row.get("status") else "Offline"
        marker = "*" if row.get("isLatest") else " "
        lines.append(f"{marker} {row.get('ip', ''):<18} {state} {row.get('createdAt', '')}  ontime {record_ontime(row, now)}")
    return lines


def render_timeline(summary: dict[str, Any]) -> list[str]:
    ip = summary.get("ip", "")
    hours = summary.get("hours", 24)
    if not summary.get("hasData"):
        return [f"--- {hours}h timeline {ip}: no data ---"]
    current = "Online" if summary.get("currentStatus") else "Offline"
    lines = [f"--- {hours}h timeline {ip}: current {current}, uptime {summary.get('uptime')}% ---"]
    for seg in summary.get("segments") or []:
        state = "on " if seg.get("status") else "off"
        suffix = " (current)" if seg.get("isCurrent") else ""
        lines.append(f"  {state} {seg.get('startTime')} -> {seg.get('endTime')} {seg.get('durationMinutes')}m{suffix}")
    return lines


def _printer(render: Any) -> Any:
    def show(result: Any) -> None:
        print("\n".join(render(result)))

    return show


def build_watch_pollers(config: AppConfig, client: DashboardClient, ip: str = "", hours: int = 24, records: bool = False) -> list[ViewPoller]:
    pollers = [
        ViewPoller(
            "status",
            client.latest_status,
            _printer(lambda data: render_status(data, datetime.now(timezone.utc))),
            config.poll_interval("status"),
        )
    ]
    if records:
        pollers.append(
            ViewPoller(
                "records",
                lambda: client.list_records(limit=20),
                _printer(lambda data: render_records(data, datetime.now(timezone.utc))),
                config.poll_interval("records"),
            )
        )
    if ip:
        pollers.append(
            ViewPoller(
                f"timeline-{ip}",
                lambda: client.timeline_summary(ip, hours),
                _printer(render_timeline),
                config.poll_interval("timeline"),
            )
        )
    return pollers


def run_watch_mode(config: AppConfig, ip: str, hours: int, records: bool) -> None:
    stop = False

    def handle_signal(_sig: int, _frame: object) -> None:
        nonlocal stop
        stop = True

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)
    client = DashboardClient(config)
    pollers = build_watch_pollers(config, client, ip=ip, hours=hours, records=records)
    LOGGER.info("watching %s views=%s", config.api_url, ",".join(p.name for p in pollers))
    for poller in pollers:
        poller.start()
    try:
        while not stop:
            time.sleep(0.2)
    finally:
        for poller in pollers:
            poller.stop(timeout=2)


def main() -> int:
    load_dotenv()
    setup_logging()
    parser = argparse.ArgumentParser(prog="pingdash")
    parser.add_argument(
        "--mode",
        choices=["web", "watch", "init-db"],
        default="web",
        help="Run mode: web (Flask dashboard), watch (terminal view of a running dashboard), init-db (create tables)",
    )
    parser.add_argument(
        "--host",
        default=os.getenv("FLASK_HOST", "127.0.0.1"),
        help="Flask host in web mode (env: FLASK_HOST)",
    )
    parser.add_argument(
        "--port",
        default=int(os.getenv("FLASK_PORT", "5000")),
        type=int,
        help="Flask port in web mode (env: FLASK_PORT)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=os.getenv("FLASK_DEBUG", "false").strip().lower() in {"1", "true", "yes", "on"},
        help="Enable Flask debug mode (env: FLASK_DEBUG=true/false)",
    )
    parser.add_argument("--config", default="config.yaml", help="Path to config.yaml")
    parser.add_argument("--ip", default="", help="Printer IP to follow in watch mode")
    parser.add_argument("--hours", default=24, type=int, help="Timeline window in watch mode")
    parser.add_argument("--records", action="store_true", help="Also follow the record table in watch mode")
    args = parser.parse_args()

    config = AppConfig.load(args.config)
    if args.mode == "web":
        app = create_app(config=config)
        LOGGER.info("server start host=%s port=%s debug=%s", args.host, args.port, args.debug)
        app.run(host=args.host, port=args.port, debug=args.debug)
        return 0
    if args.mode == "init-db":
        init_db(create_session_factory(config))
        LOGGER.info("database initialized: %s", config.database_url.render_as_string(hide_password=True))
        return 0

    run_watch_mode(config, ip=args.ip.strip(), hours=max(1, args.hours), records=args.records)
    return 0


if __name__ == "__main__":
    sys.exit(main())
