from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from sqlalchemy.engine import URL, make_url
import yaml


DEFAULT_DRIVER = "postgresql+psycopg2"


class AppConfig:
    def __init__(self, data: dict[str, Any]) -> None:
        self._data = data

    @classmethod
    def load(cls, path: str | Path = "config.yaml") -> "AppConfig":
        load_dotenv()
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
        if not isinstance(raw, dict):
            raise ValueError("Config root must be a mapping")
        cls._apply_env_overrides(raw)
        return cls(raw)

    @staticmethod
    def _set_nested(data: dict[str, Any], key: str, value: Any) -> None:
        parts = key.split(".")
        current: dict[str, Any] = data
        for part in parts[:-1]:
            if part not in current or not isinstance(current[part], dict):
                current[part] = {}
            current = current[part]
        current[parts[-1]] = value

    @classmethod
    def _apply_env_overrides(cls, raw: dict[str, Any]) -> None:
        env_map: list[tuple[str, str]] = [
            ("API_URL", "api_url"),
            ("DATABASE_URL", "database.url"),
            ("DB_DRIVER", "database.driver"),
            ("DB_HOST", "database.host"),
            ("DB_PORT", "database.port"),
            ("DB_NAME", "database.name"),
            ("DB_USER", "database.user"),
            ("DB_PASSWORD", "database.password"),
            ("DB_POOL_SIZE", "database.pool_size"),
            ("DB_QUERY_TIMEOUT_SECONDS", "database.query_timeout_seconds"),
            ("LISTING_DEFAULT_PAGE_SIZE", "listing.default_page_size"),
            ("LISTING_MAX_PAGE_SIZE", "listing.max_page_size"),
            ("TIMELINE_MAX_HOURS", "timeline.max_hours"),
            ("POLL_STATUS_SECONDS", "poll.status_seconds"),
            ("POLL_RECORDS_SECONDS", "poll.records_seconds"),
            ("POLL_TIMELINE_SECONDS", "poll.timeline_seconds"),
        ]
        for env_name, key in env_map:
            env_value = os.getenv(env_name)
            if env_value is None:
                continue
            cls._set_nested(raw, key, env_value)

    def _get(self, key: str, default: Any = None) -> Any:
        current: Any = self._data
        for part in key.split("."):
            if not isinstance(current, dict) or part not in current:
                return default
            current = current[part]
        return current

    def get_string(self, key: str, default: str = "") -> str:
        value = self._get(key, default)
        if value is None:
            return default
        return str(value)

    def get_int(self, key: str, default: int, minimum: int = 0) -> int:
        raw = self.get_string(key, str(default)).strip()
        try:
            value = int(raw)
        except ValueError:
            return default
        return max(minimum, value)

    def get_float(self, key: str, default: float) -> float:
        raw = self.get_string(key, str(default)).strip()
        try:
            return float(raw)
        except ValueError:
            return default

    @property
    def api_url(self) -> str:
        return self.get_string("api_url", "http://127.0.0.1:5000").rstrip("/")

    @property
    def database_url(self) -> URL:
        explicit = self.get_string("database.url").strip()
        if explicit:
            return make_url(explicit)
        host = self.get_string("database.host").strip()
        name = self.get_string("database.name").strip()
        if not host or not name:
            raise ValueError("Missing database.host or database.name in config (or DATABASE_URL)")
        port_raw = self.get_string("database.port").strip()
        query = self._get("database.query", {}) or {}
        if not isinstance(query, dict):
            raise ValueError("database.query must be a mapping")
        return URL.create(
            self.get_string("database.driver", DEFAULT_DRIVER).strip() or DEFAULT_DRIVER,
            username=self.get_string("database.user").strip() or None,
            password=self.get_string("database.password") or None,
            host=host,
            port=int(port_raw) if port_raw else None,
            database=name,
            query={str(k): str(v) for k, v in query.items()},
        )

    @property
    def pool_size(self) -> int:
        return self.get_int("database.pool_size", 5, minimum=1)

    @property
    def query_timeout_seconds(self) -> float:
        return max(0.1, self.get_float("database.query_timeout_seconds", 10.0))

    @property
    def default_page_size(self) -> int:
        return min(self.get_int("listing.default_page_size", 50, minimum=1), self.max_page_size)

    @property
    def max_page_size(self) -> int:
        return self.get_int("listing.max_page_size", 500, minimum=1)

    @property
    def default_hours(self) -> int:
        return self.get_int("timeline.default_hours", 24, minimum=1)

    @property
    def max_hours(self) -> int:
        return self.get_int("timeline.max_hours", 168, minimum=1)

    def poll_interval(self, view: str) -> float:
        defaults = {"status": 5.0, "records": 10.0, "timeline": 5.0}
        return max(1.0, self.get_float(f"poll.{view}_seconds", defaults.get(view, 5.0)))
