from __future__ import annotations

import threading

from pingdash.services.poller import ViewPoller


def test_poll_once_delivers_result() -> None:
    seen: list[int] = []
    poller = ViewPoller("status", lambda: 7, seen.append, interval_seconds=5)
    assert poller.poll_once() is True
    assert seen == [7]
    assert poller.last_result == 7
    assert poller.last_error == ""


def test_failed_poll_keeps_previous_result() -> None:
    values = iter([["printer-a"], RuntimeError("server down")])

    def fetch() -> list[str]:
        value = next(values)
        if isinstance(value, Exception):
            raise value
        return value

    seen: list[list[str]] = []
    poller = ViewPoller("status", fetch, seen.append, interval_seconds=5)
    assert poller.poll_once() is True
    assert poller.poll_once() is False
    assert poller.last_result == ["printer-a"]
    assert poller.last_error == "server down"
    assert seen == [["printer-a"]]


def test_refresh_during_fetch_drops_stale_response() -> None:
    seen: list[str] = []
    poller: ViewPoller

    def fetch() -> str:
        poller.refresh()
        return "stale"

    poller = ViewPoller("records", fetch, seen.append, interval_seconds=5)
    assert poller.poll_once() is False
    assert seen == []
    assert poller.dropped == 1
    assert poller.last_result is None


def test_stop_during_fetch_drops_response() -> None:
    seen: list[str] = []
    poller: ViewPoller

    def fetch() -> str:
        poller.stop()
        return "late"

    poller = ViewPoller("timeline", fetch, seen.append, interval_seconds=5)
    assert poller.poll_once() is False
    assert seen == []


def test_worker_polls_until_stopped() -> None:
    delivered = threading.Event()
    seen: list[int] = []

    def on_result(value: int) -> None:
        seen.append(value)
        delivered.set()

    poller = ViewPoller("status", lambda: 1, on_result, interval_seconds=60)
    poller.start()
    assert delivered.wait(5)
    poller.stop(timeout=5)
    assert poller.running is False
    assert seen == [1]
