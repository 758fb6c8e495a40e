"""Tests for the REST client."""

import json

import httpx
import pytest

from seat_monitor.api import BackendClient, BackendError
from seat_monitor.config import BackendConfig
from seat_monitor.models import LinkStatus, UpdateKind


def _client(handler) -> BackendClient:
    return BackendClient(BackendConfig(), transport=httpx.MockTransport(handler))


def _ok(**payload) -> httpx.Response:
    return httpx.Response(200, json={"status": "success", **payload})


class TestConnectionStatuses:
    """GET /api/connection-status."""

    @pytest.mark.asyncio
    async def test_parses_statuses(self) -> None:
        """Each entry becomes a ConnectionStatus keyed by event id."""

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "GET"
            assert request.url.path == "/api/connection-status"
            return _ok(
                connection_statuses={
                    "e1": {"status": "connected", "message": "Monitoring", "timestamp": 5},
                    "e2": {"status": "error", "message": "Blocked"},
                    "bad": "not-a-dict",
                }
            )

        async with _client(handler) as api:
            statuses = await api.get_connection_statuses()

        assert set(statuses) == {"e1", "e2"}
        assert statuses["e1"].status is LinkStatus.CONNECTED
        assert statuses["e2"].message == "Blocked"

    @pytest.mark.asyncio
    async def test_error_envelope_raises(self) -> None:
        """A status:error body raises BackendError with its message."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"status": "error", "message": "not ready"})

        async with _client(handler) as api:
            with pytest.raises(BackendError, match="not ready"):
                await api.get_connection_statuses()

    @pytest.mark.asyncio
    async def test_non_json_raises(self) -> None:
        """An HTML error page raises BackendError."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, text="<html>Bad Gateway</html>")

        async with _client(handler) as api:
            with pytest.raises(BackendError, match="non-JSON"):
                await api.get_connection_statuses()

    @pytest.mark.asyncio
    async def test_non_mapping_statuses_raise(self) -> None:
        """A list where the status mapping should be raises BackendError."""

        def handler(request: httpx.Request) -> httpx.Response:
            return _ok(connection_statuses=["e1", "e2"])

        async with _client(handler) as api:
            with pytest.raises(BackendError, match="unexpected payload"):
                await api.get_connection_statuses()

    @pytest.mark.asyncio
    async def test_transport_error_raises(self) -> None:
        """Connection failures raise BackendError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        async with _client(handler) as api:
            with pytest.raises(BackendError, match="refused"):
                await api.get_connection_statuses()


class TestNotifications:
    """GET and DELETE /notifications/{id}."""

    @pytest.mark.asyncio
    async def test_get_notifications(self) -> None:
        """Stored items become updates; bad items are skipped."""

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/notifications/e1"
            return _ok(
                notifications=[
                    {"type": "added", "seats": [{"section_name": "101"}], "timestamp": 100},
                    {"update_type": "dropped", "seats": [], "timestamp": 90},
                    {"type": "moved", "seats": [], "timestamp": 80},
                    {"type": "added", "seats": []},
                ]
            )

        async with _client(handler) as api:
            updates = await api.get_notifications("e1")

        assert [(u.kind, u.timestamp) for u in updates] == [
            (UpdateKind.ADDED, 100.0),
            (UpdateKind.REMOVED, 90.0),
        ]
        assert updates[0].event_id == "e1"
        assert updates[0].seats[0].section_name == "101"

    @pytest.mark.asyncio
    async def test_delete_notifications(self) -> None:
        """DELETE returns the backend's message."""

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "DELETE"
            return _ok(message="Cleared 3 notifications")

        async with _client(handler) as api:
            assert await api.delete_notifications("e1") == "Cleared 3 notifications"

    @pytest.mark.asyncio
    async def test_delete_failure_raises(self) -> None:
        """A 500 with an error envelope raises."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, json={"status": "error", "message": "db locked"})

        async with _client(handler) as api:
            with pytest.raises(BackendError, match="db locked"):
                await api.delete_notifications("e1")


class TestProxies:
    """Proxy pool endpoints."""

    @pytest.mark.asyncio
    async def test_get_proxies(self) -> None:
        """GET returns the proxy list."""

        def handler(request: httpx.Request) -> httpx.Response:
            return _ok(proxies=["1.2.3.4:8080", "5.6.7.8:3128"])

        async with _client(handler) as api:
            assert await api.get_proxies() == ["1.2.3.4:8080", "5.6.7.8:3128"]

    @pytest.mark.asyncio
    async def test_save_proxies_drops_blank_lines(self) -> None:
        """POST sends stripped, non-empty entries."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            return _ok()

        async with _client(handler) as api:
            message = await api.save_proxies([" 1.2.3.4:8080 ", "", "   "])

        assert seen["body"] == {"proxies": ["1.2.3.4:8080"]}
        assert message == "Saved 1 proxies"

    @pytest.mark.asyncio
    async def test_clear_proxies(self) -> None:
        """DELETE empties the pool."""

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "DELETE"
            assert request.url.path == "/api/proxies"
            return _ok()

        async with _client(handler) as api:
            assert await api.clear_proxies() == "Proxies cleared"
