from __future__ import annotations

from typing import Any

import requests

from pingdash.config import AppConfig


class DashboardError(RuntimeError):
    """The dashboard answered with ``status: error``."""


class DashboardClient:
    def __init__(self, config: AppConfig, timeout: float = 10.0) -> None:
        self.config = config
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({"Accept": "application/json"})

    def _get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        if not self.config.api_url:
            raise ValueError("api_url is not configured")
        response = self.session.get(f"{self.config.api_url}{path}", params=params, timeout=self.timeout)
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, dict):
            raise DashboardError(f"Unexpected payload from {path}")
        if payload.get("status") != "success":
            raise DashboardError(str(payload.get("message") or f"Request to {path} failed"))
        return payload

    def latest_status(self) -> list[dict[str, Any]]:
        return list(self._get("/api/printer-status").get("data") or [])

    def list_records(
        self,
        page: int = 1,
        limit: int = 50,
        search: str = "",
        status: str = "all",
        sort_by: str = "createdAt",
        sort_order: str = "desc",
    ) -> dict[str, Any]:
        return self._get(
            "/api/printer-records",
            params={
                "page": page,
                "limit": limit,
                "search": search,
                "status": status,
                "sortBy": sort_by,
                "sortOrder": sort_order,
            },
        )

    def timeline(self, ip: str, hours: int = 24) -> list[dict[str, Any]]:
        return list(self._get("/api/printer-timeline", params={"ip": ip, "hours": hours}).get("data") or [])

    def timeline_summary(self, ip: str, hours: int = 24) -> dict[str, Any]:
        return dict(self._get("/api/printer-timeline/summary", params={"ip": ip, "hours": hours}).get("data") or {})
