"""Per-event notification feed: bounded update logs and time grouping.

Live updates arrive over the stream and are recorded synchronously. The
backend also keeps a durable history, merged in once per event the first
time its notifications are viewed in a session.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

import structlog

from seat_monitor.api import BackendError
from seat_monitor.models import AvailabilityUpdate, NotificationGroup
from seat_monitor.ringbuffer import UpdateLog

if TYPE_CHECKING:
    from seat_monitor.api import BackendClient

log = structlog.get_logger()


def group_updates(
    updates: Iterable[AvailabilityUpdate], window: float = 30.0
) -> list[NotificationGroup]:
    """Cluster same-kind updates whose timestamps lie within window seconds.

    Updates are visited newest first. Each joins the first existing group of
    the same kind whose current timestamp is within window of it (first
    match, not best match), extending its seats and advancing its timestamp
    to the max of the two. Groups are returned newest first.
    """
    groups: list[NotificationGroup] = []
    for update in sorted(updates, key=lambda u: u.timestamp, reverse=True):
        for group in groups:
            if group.kind == update.kind and abs(group.timestamp - update.timestamp) <= window:
                group.seats.extend(update.seats)
                group.timestamp = max(group.timestamp, update.timestamp)
                break
        else:
            groups.append(
                NotificationGroup(
                    kind=update.kind,
                    timestamp=update.timestamp,
                    seats=list(update.seats),
                )
            )
    return sorted(groups, key=lambda g: g.timestamp, reverse=True)


class NotificationAggregator:
    """Stores availability updates per event and produces grouped views."""

    def __init__(
        self,
        api: BackendClient | None = None,
        capacity: int = 50,
        window: float = 30.0,
    ) -> None:
        self._api = api
        self._capacity = capacity
        self._window = window
        self._logs: dict[str, UpdateLog] = {}
        self._unseen: dict[str, bool] = {}
        self._viewed: dict[str, bool] = {}
        self._history_loaded: set[str] = set()

    def _log(self, event_id: str) -> UpdateLog:
        if event_id not in self._logs:
            self._logs[event_id] = UpdateLog(max_updates=self._capacity)
        return self._logs[event_id]

    def updates(self, event_id: str) -> list[AvailabilityUpdate]:
        """Buffered updates for an event, newest first."""
        log_ = self._logs.get(event_id)
        if log_ is None:
            return []
        return sorted(log_.updates, key=lambda u: u.timestamp, reverse=True)

    def count(self, event_id: str) -> int:
        """Number of buffered updates for an event."""
        log_ = self._logs.get(event_id)
        return len(log_) if log_ else 0

    def has_unseen(self, event_id: str) -> bool:
        """Whether updates arrived since the event was last viewed."""
        return self._unseen.get(event_id, False)

    def was_viewed(self, event_id: str) -> bool:
        """Whether the event's notifications were viewed since the last update."""
        return self._viewed.get(event_id, False)

    def groups(self, event_id: str) -> list[NotificationGroup]:
        """Grouped view of the buffered updates, without touching flags."""
        return group_updates(self.updates(event_id), self._window)

    def record(self, update: AvailabilityUpdate) -> None:
        """Append a live update and flag the event as having unseen updates."""
        self._log(update.event_id).push(update)
        self._unseen[update.event_id] = True
        self._viewed[update.event_id] = False
        log.debug(
            "update_recorded",
            event_id=update.event_id,
            kind=update.kind.value,
            seats=len(update.seats),
        )

    async def view(self, event_id: str) -> list[NotificationGroup]:
        """Open an event's notifications.

        The first view per session merges in the backend's stored history.
        A failed fetch is logged and not retried this session. Marks the
        event viewed; never clears the log.
        """
        if event_id not in self._history_loaded:
            self._history_loaded.add(event_id)
            await self._merge_history(event_id)

        self._unseen[event_id] = False
        self._viewed[event_id] = True
        return self.groups(event_id)

    async def _merge_history(self, event_id: str) -> None:
        if self._api is None:
            return
        try:
            saved = await self._api.get_notifications(event_id)
        except BackendError as e:
            log.warning("history_load_failed", event_id=event_id, error=str(e))
            return

        # Log keeps oldest-first order so eviction continues to drop the oldest.
        merged = sorted(
            [*self._log(event_id).updates, *saved],
            key=lambda u: u.timestamp,
        )
        self._log(event_id).replace(merged)
        log.info("history_merged", event_id=event_id, saved=len(saved), total=self.count(event_id))

    async def clear(self, event_id: str) -> None:
        """Delete an event's history on the backend, then locally.

        Local state changes only after the backend confirms.

        Raises:
            BackendError: If the backend call fails (local state untouched)
        """
        if self._api is None:
            raise BackendError("No backend client configured")
        await self._api.delete_notifications(event_id)

        self._log(event_id).clear()
        self._unseen[event_id] = False
        self._viewed[event_id] = True
        log.info("notifications_cleared", event_id=event_id)

    def forget(self, event_id: str) -> None:
        """Drop all session state for a deleted event."""
        self._logs.pop(event_id, None)
        self._unseen.pop(event_id, None)
        self._viewed.pop(event_id, None)
        self._history_loaded.discard(event_id)
