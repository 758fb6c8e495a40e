"""One monitoring session: wires transport, supervisor, router and state.

The session owns every component and exposes the user intents (add,
delete, view, clear, refresh) that the TUI binds to keys.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
import structlog

from seat_monitor.aggregator import NotificationAggregator
from seat_monitor.api import BackendClient, BackendError
from seat_monitor.config import Config
from seat_monitor.dispatcher import CommandDispatcher
from seat_monitor.heartbeat import LivenessMonitor
from seat_monitor.models import NotificationGroup
from seat_monitor.protocol import MonitorUpdate
from seat_monitor.registry import EventRegistry, RegistrationError
from seat_monitor.render import RenderScheduler
from seat_monitor.router import MessageRouter
from seat_monitor.state import Level, SessionState
from seat_monitor.supervisor import ReconnectSupervisor
from seat_monitor.transport import StreamConnection

log = structlog.get_logger()

RECONNECTING_MESSAGE = "Connection to backend lost. Attempting to reconnect..."

# Second status fetch after startup, once the backend has seen our reconnects
STATUS_RETRY_DELAY = 1.0


class MonitorSession:
    """Owns the components of one client session."""

    def __init__(
        self,
        config: Config | None = None,
        *,
        db_path: Path | None = None,
        connect: Callable[..., Any] | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
        render: Callable[[], None] | None = None,
        on_seats: Callable[[MonitorUpdate], None] | None = None,
        loop: Any = None,
    ) -> None:
        self.config = config or Config.load()
        cfg = self.config

        self.api = BackendClient(cfg.backend, transport=http_transport)
        self.registry = EventRegistry(db_path if db_path is not None else cfg.db_path)
        self.aggregator = NotificationAggregator(
            api=self.api,
            capacity=cfg.notifications.log_capacity,
            window=cfg.notifications.group_window,
        )
        self.state = SessionState(registry=self.registry, aggregator=self.aggregator)

        self.transport = StreamConnection(cfg.backend.ws_url, connect=connect)
        self.dispatcher = CommandDispatcher(self.transport)
        self.heartbeat = LivenessMonitor(
            send_probe=self.dispatcher.ping, config=cfg.heartbeat, loop=loop
        )
        self.supervisor = ReconnectSupervisor(
            self.transport,
            config=cfg.reconnect,
            loop=loop,
            on_reconnecting=self._on_reconnecting,
            on_lost=self._on_lost,
        )
        self.renderer = RenderScheduler(
            render or (lambda: None), delay=cfg.tui.render_debounce, loop=loop
        )
        self.router = MessageRouter(
            self.state,
            self.dispatcher,
            self.supervisor,
            self.heartbeat,
            on_change=self.renderer.request,
            on_seats=on_seats,
        )

        self._router_task: asyncio.Task | None = None
        self._refresh_task: asyncio.Task | None = None
        self._started = False

    # Supervisor callbacks are forwarded so the router can be built last.
    def _on_reconnecting(self, attempt: int, max_attempts: int, delay: float) -> None:
        self.router.reconnecting(attempt, max_attempts, delay)

    def _on_lost(self) -> None:
        self.router.connection_lost()

    # ─────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────

    async def start(self) -> None:
        """Restore stored events, connect, and fetch connection statuses."""
        if self._started:
            return
        self._started = True
        self.registry.load()
        self._router_task = asyncio.create_task(self.router.run(self.transport.events))
        self.supervisor.start()
        log.info("session_started", url=self.transport.url, events=len(self.registry))
        self.renderer.request()

        await self.refresh_statuses()
        self._refresh_task = asyncio.create_task(self._delayed_refresh())

    async def _delayed_refresh(self) -> None:
        await asyncio.sleep(STATUS_RETRY_DELAY)
        await self.refresh_statuses()

    async def stop(self) -> None:
        """Cancel timers, close the connection and release the HTTP client."""
        if not self._started:
            await self.api.aclose()
            return
        self._started = False
        self.supervisor.stop()
        self.heartbeat.disarm()
        self.renderer.cancel()
        await self.transport.close()

        for task in (self._refresh_task, self._router_task):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._refresh_task = None
        self._router_task = None

        await self.api.aclose()
        log.info("session_stopped")

    # ─────────────────────────────────────────────────────────────────────
    # User intents
    # ─────────────────────────────────────────────────────────────────────

    def add_event(self, url: str) -> bool:
        """Validate url and ask the backend to monitor it.

        Returns True when the request was sent; the event appears once the
        backend confirms it.
        """
        try:
            pending = self.registry.add(url)
        except RegistrationError as e:
            self.state.show(str(e), Level.ERROR)
            self.renderer.request()
            return False

        if not self.dispatcher.add_event(pending):
            self.registry.discard_pending(pending.id)
            self.state.show(RECONNECTING_MESSAGE, Level.ERROR)
            self.renderer.request()
            return False

        self.state.show("Adding event to monitoring...", Level.INFO)
        self.renderer.request()
        return True

    def delete_event(self, event_id: str) -> bool:
        """Remove an event locally and tell the backend (best-effort).

        Returns True if the backend was notified.
        """
        event = self.registry.remove(event_id)
        if event is None:
            return False

        self.aggregator.forget(event_id)
        if self.state.open_event_id == event_id:
            self.state.open_event_id = None

        sent = self.dispatcher.delete_event(event.id, event.name)
        if sent:
            self.state.show(f"Deleted event: {event.name}", Level.SUCCESS)
        else:
            self.state.show("Deleted locally, but backend connection lost", Level.INFO)
        self.renderer.request()
        return sent

    async def view_notifications(self, event_id: str) -> list[NotificationGroup]:
        """Open an event's notification feed."""
        self.state.open_event_id = event_id
        groups = await self.aggregator.view(event_id)
        self.renderer.request()
        return groups

    def close_notifications(self) -> None:
        """Close the notification feed."""
        self.state.open_event_id = None
        self.renderer.request()

    async def clear_notifications(self, event_id: str) -> bool:
        """Delete an event's notification history, backend first."""
        try:
            await self.aggregator.clear(event_id)
        except BackendError as e:
            self.state.show(f"Failed to clear notifications: {e}", Level.ERROR)
            self.renderer.request()
            return False
        self.state.show("Notifications cleared", Level.SUCCESS)
        self.renderer.request()
        return True

    async def refresh_statuses(self) -> bool:
        """Bulk-refresh per-event connection statuses over REST."""
        try:
            statuses = await self.api.get_connection_statuses()
        except BackendError as e:
            log.warning("connection_status_refresh_failed", error=str(e))
            return False
        self.registry.replace_connection_statuses(statuses)
        self.renderer.request()
        return True
