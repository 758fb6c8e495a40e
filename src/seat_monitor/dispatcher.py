"""Translate user intents into outbound protocol messages.

Every command is gated on the transport being open: when it is not, no
send is attempted and the caller gets False so it can tell the user the
client is reconnecting.
"""

from __future__ import annotations

from typing import Any, Protocol

import structlog

from seat_monitor import protocol
from seat_monitor.models import MonitoredEvent
from seat_monitor.registry import PendingEvent

log = structlog.get_logger()


class Sender(Protocol):
    """What the dispatcher needs from the transport."""

    @property
    def is_open(self) -> bool: ...

    def send(self, message: dict[str, Any]) -> bool: ...


class CommandDispatcher:
    """Outbound command gateway."""

    def __init__(self, transport: Sender) -> None:
        self._transport = transport

    def _send(self, message: dict[str, Any]) -> bool:
        if not self._transport.is_open:
            log.warning("command_rejected", type=message["type"], reason="not connected")
            return False
        return self._transport.send(message)

    def add_event(self, pending: PendingEvent) -> bool:
        """Ask the backend to start monitoring a validated URL."""
        return self._send(protocol.add_event(pending.url, pending.id, pending.name))

    def delete_event(self, event_id: str, event_name: str) -> bool:
        """Tell the backend to stop monitoring an event (best-effort)."""
        return self._send(protocol.delete_event(event_id, event_name))

    def reconnect_event(self, event: MonitoredEvent) -> bool:
        """Re-announce a confirmed event after (re)connecting."""
        return self._send(protocol.reconnect_event(event))

    def reconnect_all(self, events: list[MonitoredEvent]) -> int:
        """Re-announce every event; returns how many sends succeeded."""
        sent = sum(1 for event in events if self.reconnect_event(event))
        if events:
            log.info("events_reannounced", sent=sent, total=len(events))
        return sent

    def ping(self, message: str | None = None) -> bool:
        """Send a liveness probe."""
        return self._send(protocol.ping(message))
