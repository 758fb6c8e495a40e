# src/seat_monitor/ringbuffer.py
"""Bounded per-event log of availability updates.

Holds the last 50 updates for one event. Eviction is strictly oldest-first
(by insertion), never by timestamp.
"""

from collections import deque
from collections.abc import Iterable

from seat_monitor.models import AvailabilityUpdate


class UpdateLog:
    """Ring buffer of availability updates for one event."""

    def __init__(self, max_updates: int = 50) -> None:
        self._updates: deque[AvailabilityUpdate] = deque(maxlen=max_updates)

    def __len__(self) -> int:
        """Return number of updates in the log."""
        return len(self._updates)

    @property
    def capacity(self) -> int:
        """Return maximum number of updates the log can hold."""
        return self._updates.maxlen or 0

    @property
    def updates(self) -> list[AvailabilityUpdate]:
        """Read-only access to updates (returns a copy)."""
        return list(self._updates)

    def push(self, update: AvailabilityUpdate) -> None:
        """Append an update, evicting the oldest when full."""
        self._updates.append(update)

    def replace(self, updates: Iterable[AvailabilityUpdate]) -> None:
        """Swap the contents for updates, keeping only the last `capacity` of them."""
        self._updates = deque(updates, maxlen=self.capacity)

    def clear(self) -> None:
        """Empty the log."""
        self._updates.clear()
