from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Callable


LOGGER = logging.getLogger(__name__)


class ViewPoller:
    """Periodically fetch data for one view and hand fresh results to a callback.

    Polls for a view run one after another on the poller's own thread. Every
    poll gets a generation number; ``refresh()`` and ``stop()`` bump the
    generation, so a response that arrives after either is dropped instead of
    overwriting newer state. Failed fetches are logged and the last good
    result is kept.
    """

    def __init__(
        self,
        name: str,
        fetch: Callable[[], Any],
        on_result: Callable[[Any], None],
        interval_seconds: float,
    ) -> None:
        self.name = name
        self._fetch = fetch
        self._on_result = on_result
        self._interval = interval_seconds
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()
        self._wake_event = threading.Event()
        self._lock = threading.Lock()
        self._generation = 0
        self.last_result: Any = None
        self.last_success_at = ""
        self.last_error = ""
        self.dropped = 0

    @staticmethod
    def _now_iso() -> str:
        return datetime.now(timezone.utc).isoformat()

    @property
    def running(self) -> bool:
        return bool(self._thread and self._thread.is_alive())

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._worker, daemon=True, name=f"poll-{self.name}")
        self._thread.start()
        LOGGER.info("poller started view=%s interval=%ss", self.name, self._interval)

    def stop(self, timeout: float | None = None) -> None:
        with self._lock:
            self._generation += 1
        self._stop_event.set()
        self._wake_event.set()
        if self._thread and timeout is not None:
            self._thread.join(timeout)
        LOGGER.info("poller stopped view=%s", self.name)

    def refresh(self) -> None:
        """Invalidate any poll in flight and poll again right away."""
        with self._lock:
            self._generation += 1
        self._wake_event.set()

    def poll_once(self) -> bool:
        with self._lock:
            self._generation += 1
            generation = self._generation
        try:
            result = self._fetch()
        except Exception as exc:  # noqa: BLE001
            self.last_error = str(exc)
            LOGGER.warning("poll failed view=%s error=%s", self.name, exc)
            return False
        with self._lock:
            current = generation == self._generation and not self._stop_event.is_set()
            if current:
                self.last_result = result
                self.last_success_at = self._now_iso()
                self.last_error = ""
            else:
                self.dropped += 1
        if not current:
            LOGGER.debug("poll result dropped view=%s generation=%s", self.name, generation)
            return False
        self._on_result(result)
        return True

    def _worker(self) -> None:
        while not self._stop_event.is_set():
            self._wake_event.clear()
            self.poll_once()
            self._wake_event.wait(self._interval)
