"""Shared test fixtures for seat-monitor."""

import heapq
import itertools
from pathlib import Path
from typing import Any

import pytest

from seat_monitor.models import AvailabilityUpdate, MonitoredEvent, SeatOffer, UpdateKind
from seat_monitor.storage import init_database

EVENT_URL = "https://www.ticketmaster.com/event/ab12cd34/the-show"


class FakeHandle:
    """Cancellable timer handle returned by FakeLoop.call_later."""

    def __init__(self, when: float, callback, args: tuple) -> None:
        self.when = when
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeLoop:
    """Manual clock with call_later, for deterministic timer tests."""

    def __init__(self) -> None:
        self.now = 0.0
        self._timers: list[tuple[float, int, FakeHandle]] = []
        self._seq = itertools.count()

    def time(self) -> float:
        return self.now

    def call_later(self, delay: float, callback, *args: Any) -> FakeHandle:
        handle = FakeHandle(self.now + delay, callback, args)
        heapq.heappush(self._timers, (handle.when, next(self._seq), handle))
        return handle

    @property
    def pending(self) -> list[FakeHandle]:
        """Live (uncancelled) timers, soonest first."""
        return [h for _, _, h in sorted(self._timers) if not h.cancelled]

    def advance(self, seconds: float) -> None:
        """Move the clock forward, running every timer that comes due."""
        target = self.now + seconds
        while self._timers and self._timers[0][0] <= target:
            when, _, handle = heapq.heappop(self._timers)
            self.now = when
            if not handle.cancelled:
                handle.callback(*handle.args)
        self.now = target


class FakeTransport:
    """Records sends and connect calls instead of touching the network."""

    def __init__(self, open_: bool = True) -> None:
        self.open = open_
        self.sent: list[dict[str, Any]] = []
        self.connects = 0

    @property
    def is_open(self) -> bool:
        return self.open

    def send(self, message: dict[str, Any]) -> bool:
        if not self.open:
            return False
        self.sent.append(message)
        return True

    def connect(self) -> bool:
        self.connects += 1
        return True

    def sent_types(self) -> list[str]:
        return [m["type"] for m in self.sent]


def make_event(event_id: str = "ab12cd34", name: str = "The Show", **kwargs: Any) -> MonitoredEvent:
    """Create a MonitoredEvent for testing."""
    url = kwargs.pop("url", f"https://www.ticketmaster.com/event/{event_id}/the-show")
    return MonitoredEvent(id=event_id, url=url, name=name, **kwargs)


def make_seat(section: str = "101", row: str = "A", place: str = "1", price: int | None = 5000) -> SeatOffer:
    """Create a SeatOffer for testing."""
    return SeatOffer(
        section_name=section,
        section_row=row,
        place_number=place,
        price=price,
        offer_description="Standard Admission",
    )


def make_update(
    timestamp: float,
    kind: UpdateKind = UpdateKind.ADDED,
    event_id: str = "ab12cd34",
    seats: int = 1,
) -> AvailabilityUpdate:
    """Create an AvailabilityUpdate with `seats` distinct seats."""
    return AvailabilityUpdate(
        event_id=event_id,
        kind=kind,
        seats=tuple(make_seat(place=f"{int(timestamp)}-{i}") for i in range(seats)),
        timestamp=timestamp,
    )


@pytest.fixture
def fake_loop() -> FakeLoop:
    """A loop whose clock only moves when the test says so."""
    return FakeLoop()


@pytest.fixture
def fake_transport() -> FakeTransport:
    """An open transport that records outbound messages."""
    return FakeTransport()


@pytest.fixture
def tmp_db(tmp_path: Path) -> Path:
    """Create a temporary database path."""
    return tmp_path / "test.db"


@pytest.fixture
def initialized_db(tmp_db: Path) -> Path:
    """Create an initialized database with schema."""
    init_database(tmp_db)
    return tmp_db
