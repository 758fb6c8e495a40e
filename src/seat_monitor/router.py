"""Single consumer of the transport's event channel.

Lifecycle events drive the supervisor and liveness monitor; inbound
messages are decoded and applied to session state synchronously, in
arrival order. Only the re-render is deferred.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

import structlog

from seat_monitor import logging as console
from seat_monitor.dispatcher import CommandDispatcher
from seat_monitor.heartbeat import LivenessMonitor
from seat_monitor.models import UpdateKind
from seat_monitor.protocol import (
    ConnectionStatusUpdate,
    ErrorMessage,
    EventAdded,
    EventDeleted,
    EventReconnected,
    EventUpdate,
    InboundMessage,
    MonitorUpdate,
    Ping,
    Pong,
    UnknownMessage,
    decode_message,
)
from seat_monitor.state import Level, LinkState, SessionState
from seat_monitor.supervisor import ReconnectSupervisor
from seat_monitor.transport import Closed, Errored, MessageReceived, Opened, TransportEvent

log = structlog.get_logger()


class MessageRouter:
    """Applies transport events and backend messages to session state."""

    def __init__(
        self,
        state: SessionState,
        dispatcher: CommandDispatcher,
        supervisor: ReconnectSupervisor,
        heartbeat: LivenessMonitor,
        on_change: Callable[[], None] | None = None,
        on_seats: Callable[[MonitorUpdate], None] | None = None,
    ) -> None:
        self.state = state
        self._dispatcher = dispatcher
        self._supervisor = supervisor
        self._heartbeat = heartbeat
        self._on_change = on_change
        self._on_seats = on_seats

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()

    async def run(self, events: asyncio.Queue[TransportEvent]) -> None:
        """Consume transport events until cancelled."""
        while True:
            event = await events.get()
            try:
                self.handle_transport_event(event)
            finally:
                events.task_done()

    # ─────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────

    def handle_transport_event(self, event: TransportEvent) -> None:
        """Dispatch one lifecycle event."""
        if isinstance(event, Opened):
            self._handle_opened()
        elif isinstance(event, MessageReceived):
            self._heartbeat.touch()
            self.handle_message(decode_message(event.payload))
        elif isinstance(event, Closed):
            self._handle_disconnected(f"closed ({event.code}) {event.reason}".strip())
        elif isinstance(event, Errored):
            self._handle_disconnected(f"error: {event.error}")

    def _handle_opened(self) -> None:
        self._supervisor.on_opened()
        self._heartbeat.arm()
        self.state.link = LinkState.CONNECTED
        self.state.show("Connected to backend", Level.SUCCESS)
        console.connected()

        self._dispatcher.ping()
        self._dispatcher.reconnect_all(self.state.registry.events)
        self._changed()

    def _handle_disconnected(self, reason: str) -> None:
        self._heartbeat.disarm()
        # An add sent on the lost connection will never be confirmed.
        dropped = self.state.registry.cancel_pending()
        if dropped:
            log.warning("pending_add_abandoned", event_ids=[p.id for p in dropped], reason=reason)
        was_connected = self.state.link is LinkState.CONNECTED
        if self.state.link in (LinkState.CONNECTED, LinkState.CONNECTING):
            self.state.link = LinkState.DISCONNECTED
        if was_connected:
            console.disconnected(reason)
        self._supervisor.on_disconnected(reason)
        self._changed()

    def reconnecting(self, attempt: int, max_attempts: int, delay: float) -> None:
        """Supervisor callback: a retry was scheduled."""
        self.state.link = LinkState.RECONNECTING
        self.state.show(f"Reconnecting... ({attempt}/{max_attempts})", Level.INFO)
        console.reconnect_scheduled(attempt, max_attempts, delay)
        self._changed()

    def connection_lost(self) -> None:
        """Supervisor callback: retries exhausted."""
        self.state.link = LinkState.LOST
        self.state.show("Connection lost. Please restart the session.", Level.ERROR)
        console.connection_lost()
        self._changed()

    # ─────────────────────────────────────────────────────────────────────
    # Backend messages
    # ─────────────────────────────────────────────────────────────────────

    def handle_message(self, msg: InboundMessage) -> None:
        """Apply one decoded backend message."""
        state = self.state
        registry = state.registry

        if isinstance(msg, (Ping, Pong)):
            # Liveness only; backend pings are not answered.
            log.debug("backend_ping", type=type(msg).__name__.lower(), message=msg.message)
            return

        if isinstance(msg, EventAdded):
            event = registry.confirm(msg.event_id, msg.event_name)
            if event is not None:
                console.event_confirmed(event.name)
            state.show(msg.message or f"Added event: {msg.event_name}", Level.SUCCESS)
        elif isinstance(msg, EventReconnected):
            log.debug("event_reconnected", event_id=msg.event_id)
            return
        elif isinstance(msg, EventUpdate):
            if registry.update_status(msg.event_id, msg.status, msg.data) is None:
                log.debug("event_update_unknown", event_id=msg.event_id)
                return
        elif isinstance(msg, EventDeleted):
            log.info("event_deleted", event_name=msg.event_name)
            state.show(msg.message or f"Deleted event: {msg.event_name}", Level.SUCCESS)
        elif isinstance(msg, MonitorUpdate):
            self._handle_monitor_update(msg)
        elif isinstance(msg, ConnectionStatusUpdate):
            registry.set_connection_status(msg.status)
        elif isinstance(msg, ErrorMessage):
            log.warning("backend_error", message=msg.message)
            registry.cancel_pending()
            state.show(msg.message, Level.ERROR)
        elif isinstance(msg, UnknownMessage):
            log.warning("unknown_message", type=msg.type, reason=msg.reason)
            return

        self._changed()

    def _handle_monitor_update(self, msg: MonitorUpdate) -> None:
        update = msg.update
        self.state.aggregator.record(update)

        seat_count = len(update.seats)
        if seat_count == 0:
            return
        if update.kind is UpdateKind.ADDED:
            self.state.show(f"{seat_count} new ticket(s) available!", Level.SUCCESS)
        else:
            self.state.show(f"{seat_count} ticket(s) no longer available", Level.INFO)
        event = self.state.registry.get(update.event_id)
        console.seats_update(event.name if event else update.event_id, update.kind.value, seat_count)
        if self._on_seats is not None:
            self._on_seats(msg)
