"""Stream protocol: JSON messages exchanged with the monitoring backend.

Every message is a JSON object with a ``type`` field. Inbound messages are
decoded into a closed set of dataclasses; anything else becomes
``UnknownMessage`` so that a new or malformed kind never raises in the router.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Union

from seat_monitor.models import (
    AvailabilityUpdate,
    ConnectionStatus,
    MonitoredEvent,
    SeatOffer,
    parse_update_kind,
)


# ─────────────────────────────────────────────────────────────────────────────
# Inbound
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Ping:
    """Backend liveness probe (never answered, to avoid a ping-pong loop)."""

    message: str | None = None


@dataclass(frozen=True)
class Pong:
    """Backend answer to a client probe."""

    message: str | None = None


@dataclass(frozen=True)
class EventAdded:
    """Backend accepted an add_event request."""

    event_id: str
    event_name: str
    message: str = ""


@dataclass(frozen=True)
class EventReconnected:
    """Backend resumed monitoring after a reconnect_event."""

    event_id: str


@dataclass(frozen=True)
class EventUpdate:
    """Lifecycle status change of a monitored event."""

    event_id: str
    status: str
    data: dict[str, Any] | None = None


@dataclass(frozen=True)
class EventDeleted:
    """Backend stopped monitoring an event."""

    event_name: str
    message: str = ""


@dataclass(frozen=True)
class MonitorUpdate:
    """Seats appeared or disappeared for an event."""

    update: AvailabilityUpdate


@dataclass(frozen=True)
class ConnectionStatusUpdate:
    """Backend connection status for one event changed."""

    status: ConnectionStatus


@dataclass(frozen=True)
class ErrorMessage:
    """Backend reported an error for the last request."""

    message: str


@dataclass(frozen=True)
class UnknownMessage:
    """Unrecognised or malformed message, kept for logging."""

    type: str | None
    raw: Any = field(default=None, compare=False)
    reason: str = "unknown type"


InboundMessage = Union[
    Ping,
    Pong,
    EventAdded,
    EventReconnected,
    EventUpdate,
    EventDeleted,
    MonitorUpdate,
    ConnectionStatusUpdate,
    ErrorMessage,
    UnknownMessage,
]


def _decode_monitor_update(msg: dict[str, Any]) -> MonitorUpdate:
    seats = tuple(SeatOffer.from_dict(s) for s in msg.get("seats") or [] if isinstance(s, dict))
    return MonitorUpdate(
        update=AvailabilityUpdate(
            event_id=str(msg["event_id"]),
            kind=parse_update_kind(msg["update_type"]),
            seats=seats,
            timestamp=float(msg["timestamp"]),
        )
    )


def decode_message(payload: str | bytes) -> InboundMessage:
    """Decode one raw stream payload.

    Never raises: malformed JSON, missing fields and unknown kinds all
    produce an UnknownMessage.
    """
    try:
        msg = json.loads(payload)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        return UnknownMessage(type=None, raw=payload, reason=f"invalid JSON: {e}")

    if not isinstance(msg, dict):
        return UnknownMessage(type=None, raw=msg, reason="not an object")

    msg_type = msg.get("type")
    try:
        if msg_type == "ping":
            return Ping(message=msg.get("message"))
        if msg_type == "pong":
            return Pong(message=msg.get("message"))
        if msg_type == "event_added":
            return EventAdded(
                event_id=str(msg["event_id"]),
                event_name=str(msg["event_name"]),
                message=str(msg.get("message") or ""),
            )
        if msg_type == "event_reconnected":
            return EventReconnected(event_id=str(msg["event_id"]))
        if msg_type == "event_update":
            return EventUpdate(
                event_id=str(msg["event_id"]),
                status=str(msg["status"]),
                data=msg.get("data"),
            )
        if msg_type == "event_deleted":
            return EventDeleted(
                event_name=str(msg.get("event_name") or ""),
                message=str(msg.get("message") or ""),
            )
        if msg_type == "monitor_update":
            return _decode_monitor_update(msg)
        if msg_type == "connection_status_update":
            event_id = str(msg["event_id"])
            return ConnectionStatusUpdate(status=ConnectionStatus.from_dict(event_id, msg))
        if msg_type == "error":
            return ErrorMessage(message=str(msg.get("message") or "Unknown error"))
    except (KeyError, TypeError, ValueError) as e:
        return UnknownMessage(type=msg_type, raw=msg, reason=f"malformed: {e}")

    return UnknownMessage(type=msg_type, raw=msg)


# ─────────────────────────────────────────────────────────────────────────────
# Outbound
# ─────────────────────────────────────────────────────────────────────────────


def add_event(event_url: str, event_id: str, event_name: str) -> dict[str, Any]:
    """Ask the backend to start monitoring an event."""
    return {
        "type": "add_event",
        "event_url": event_url,
        "event_id": event_id,
        "event_name": event_name,
    }


def delete_event(event_id: str, event_name: str) -> dict[str, Any]:
    """Ask the backend to stop monitoring an event."""
    return {"type": "delete_event", "event_id": event_id, "event_name": event_name}


def reconnect_event(event: MonitoredEvent) -> dict[str, Any]:
    """Re-announce an already confirmed event after (re)connecting."""
    return {
        "type": "reconnect_event",
        "event_url": event.url,
        "event_id": event.id,
        "event_name": event.name,
    }


def ping(message: str | None = None) -> dict[str, Any]:
    """Liveness probe."""
    msg: dict[str, Any] = {"type": "ping"}
    if message is not None:
        msg["message"] = message
    return msg


def encode(msg: dict[str, Any]) -> str:
    """Serialize an outbound message."""
    return json.dumps(msg)
