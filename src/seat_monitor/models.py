"""Data models for monitored events, connection statuses and seat updates."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class EventStatus(str, Enum):
    """Lifecycle status of a monitored event."""

    MONITORING = "monitoring"
    ERROR = "error"

    @classmethod
    def parse(cls, value: str) -> EventStatus:
        """Parse a wire value, treating anything unrecognised as an error."""
        try:
            return cls(value)
        except ValueError:
            return cls.ERROR


class LinkStatus(str, Enum):
    """Backend-side connection status for one monitored event."""

    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: str | None) -> LinkStatus:
        """Parse a wire value; unknown values map to UNKNOWN."""
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


class UpdateKind(str, Enum):
    """Classification of an availability change."""

    ADDED = "added"
    REMOVED = "removed"


# The backend has sent all of these spellings for seats going away.
_KIND_ALIASES = {
    "added": UpdateKind.ADDED,
    "removed": UpdateKind.REMOVED,
    "dropped": UpdateKind.REMOVED,
    "droped": UpdateKind.REMOVED,
}


def parse_update_kind(value: str) -> UpdateKind:
    """Map a wire update kind to UpdateKind.

    Raises:
        ValueError: If the value is not a known spelling
    """
    try:
        return _KIND_ALIASES[value.lower()]
    except (KeyError, AttributeError):
        raise ValueError(f"Unknown update kind: {value!r}") from None


def _now_iso() -> str:
    return datetime.now().isoformat(timespec="seconds")


@dataclass
class MonitoredEvent:
    """A ticketed event being monitored for seat availability."""

    id: str
    url: str
    name: str
    status: EventStatus = EventStatus.MONITORING
    added_at: str = field(default_factory=_now_iso)
    last_update: str | None = None
    data: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize for durable storage."""
        return {
            "id": self.id,
            "url": self.url,
            "name": self.name,
            "status": self.status.value,
            "addedAt": self.added_at,
            "lastUpdate": self.last_update,
            "data": self.data,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MonitoredEvent:
        """Deserialize a stored record.

        Raises:
            KeyError: If id, url or name is missing
        """
        return cls(
            id=str(data["id"]),
            url=str(data["url"]),
            name=str(data["name"]),
            status=EventStatus.parse(data.get("status", "monitoring")),
            added_at=data.get("addedAt") or _now_iso(),
            last_update=data.get("lastUpdate"),
            data=data.get("data"),
        )


@dataclass
class ConnectionStatus:
    """Backend connection status of one monitored event."""

    event_id: str
    status: LinkStatus = LinkStatus.CONNECTING
    message: str = "Initializing connection..."
    timestamp: float = field(default_factory=time.time)

    @classmethod
    def from_dict(cls, event_id: str, data: dict[str, Any]) -> ConnectionStatus:
        """Build from a REST or stream payload."""
        timestamp = data.get("timestamp")
        return cls(
            event_id=event_id,
            status=LinkStatus.parse(data.get("status")),
            message=str(data.get("message") or ""),
            timestamp=float(timestamp) if timestamp is not None else time.time(),
        )


def _parse_price(value: Any) -> int | None:
    """Return price in minor units, or None when the backend has no price."""
    if value is None or value == "" or value == "N/A":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class SeatOffer:
    """One inventory line at the moment of an update.

    Price is in hundredths of the currency unit.
    """

    section_name: str | None = None
    section_row: str | None = None
    place_number: str | None = None
    price: int | None = None
    offer_description: str | None = None

    @property
    def display_price(self) -> str:
        """Price in currency units, or N/A."""
        if self.price is None:
            return "N/A"
        return f"${self.price / 100:.2f}"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SeatOffer:
        """Build from a wire seat record."""

        def text(key: str) -> str | None:
            value = data.get(key)
            return None if value is None else str(value)

        return cls(
            section_name=text("section_name"),
            section_row=text("section_row"),
            place_number=text("place_number"),
            price=_parse_price(data.get("price")),
            offer_description=text("offer_description"),
        )


@dataclass(frozen=True)
class AvailabilityUpdate:
    """A batch of seats that appeared or disappeared at one moment."""

    event_id: str
    kind: UpdateKind
    seats: tuple[SeatOffer, ...]
    timestamp: float


@dataclass
class NotificationGroup:
    """Updates of one kind clustered within the grouping window.

    Derived for display on every render; never stored.
    """

    kind: UpdateKind
    timestamp: float
    seats: list[SeatOffer] = field(default_factory=list)

    @property
    def seat_count(self) -> int:
        """Number of seats in the group."""
        return len(self.seats)
