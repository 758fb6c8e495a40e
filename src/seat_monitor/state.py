"""Session state shared by the router, dispatcher and renderer.

One object owns everything that changes during a session. Components
receive it explicitly; nothing lives in module globals.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum

from seat_monitor.aggregator import NotificationAggregator
from seat_monitor.registry import EventRegistry


class LinkState(Enum):
    """Client-side view of the stream connection, for display."""

    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    DISCONNECTED = "disconnected"
    LOST = "lost"


class Level(Enum):
    """Severity of a user-facing status message."""

    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class StatusMessage:
    """Most recent message shown to the user."""

    text: str
    level: Level = Level.INFO
    created: float = field(default_factory=time.time)


@dataclass
class SessionState:
    """Everything the user sees, owned by one session."""

    registry: EventRegistry
    aggregator: NotificationAggregator
    link: LinkState = LinkState.CONNECTING
    status: StatusMessage | None = None
    open_event_id: str | None = None  # Event whose notifications are on screen

    @property
    def adding(self) -> bool:
        """Whether an add request awaits backend confirmation."""
        return self.registry.is_adding

    def show(self, text: str, level: Level = Level.INFO) -> None:
        """Replace the user-facing status message."""
        self.status = StatusMessage(text=text, level=level)

    def hide_status(self) -> None:
        """Clear the user-facing status message."""
        self.status = None
