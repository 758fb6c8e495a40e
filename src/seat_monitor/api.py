"""REST client for the monitoring backend.

All endpoints answer ``{"status": "success" | "error", "message"?, ...}``.
Anything other than a success envelope raises BackendError.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from seat_monitor.config import BackendConfig
from seat_monitor.models import AvailabilityUpdate, ConnectionStatus, SeatOffer, parse_update_kind

log = structlog.get_logger()


class BackendError(Exception):
    """Raised when a REST call fails or the backend reports an error."""

    pass


class BackendClient:
    """Async client for the backend's REST endpoints."""

    def __init__(
        self,
        config: BackendConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=config.http_url,
            timeout=config.request_timeout,
            transport=transport,
        )

    async def __aenter__(self) -> BackendClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            log.warning("backend_request_failed", method=method, path=path, error=str(e))
            raise BackendError(f"{method} {path} failed: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise BackendError(
                f"{method} {path} returned non-JSON body (HTTP {response.status_code})"
            ) from e

        if not isinstance(data, dict):
            raise BackendError(f"{method} {path} returned unexpected payload")
        if data.get("status") != "success":
            message = data.get("message") or f"HTTP {response.status_code}"
            log.warning("backend_error", method=method, path=path, message=message)
            raise BackendError(str(message))
        return data

    async def get_connection_statuses(self) -> dict[str, ConnectionStatus]:
        """Fetch the backend connection status of every monitored event."""
        data = await self._request("GET", "/api/connection-status")
        raw = data.get("connection_statuses") or {}
        if not isinstance(raw, dict):
            raise BackendError("GET /api/connection-status returned unexpected payload")
        return {
            str(event_id): ConnectionStatus.from_dict(str(event_id), entry)
            for event_id, entry in raw.items()
            if isinstance(entry, dict)
        }

    async def get_notifications(self, event_id: str) -> list[AvailabilityUpdate]:
        """Fetch the durably stored notification history of an event.

        Entries with an unknown update kind or no timestamp are skipped.
        """
        data = await self._request("GET", f"/notifications/{event_id}")
        updates: list[AvailabilityUpdate] = []
        for item in data.get("notifications") or []:
            try:
                updates.append(
                    AvailabilityUpdate(
                        event_id=event_id,
                        kind=parse_update_kind(item.get("type") or item.get("update_type")),
                        seats=tuple(SeatOffer.from_dict(s) for s in item.get("seats") or []),
                        timestamp=float(item["timestamp"]),
                    )
                )
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                log.warning("notification_skipped", event_id=event_id, error=str(e))
        return updates

    async def delete_notifications(self, event_id: str) -> str:
        """Delete the stored notification history of an event."""
        data = await self._request("DELETE", f"/notifications/{event_id}")
        return str(data.get("message") or "Notifications cleared")

    async def get_proxies(self) -> list[str]:
        """Fetch the backend's proxy pool."""
        data = await self._request("GET", "/api/proxies")
        return [str(p) for p in data.get("proxies") or []]

    async def save_proxies(self, proxies: list[str]) -> str:
        """Replace the backend's proxy pool. Blank lines are dropped."""
        cleaned = [p.strip() for p in proxies if p.strip()]
        data = await self._request("POST", "/api/proxies", json={"proxies": cleaned})
        return str(data.get("message") or f"Saved {len(cleaned)} proxies")

    async def clear_proxies(self) -> str:
        """Empty the backend's proxy pool."""
        data = await self._request("DELETE", "/api/proxies")
        return str(data.get("message") or "Proxies cleared")
