"""Authoritative local set of monitored events and their connection statuses."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import structlog

from seat_monitor.models import ConnectionStatus, EventStatus, LinkStatus, MonitoredEvent
from seat_monitor.storage import StorageError, load_events, save_events

log = structlog.get_logger()

SOURCE_DOMAIN = "ticketmaster.com"

_EVENT_ID_PATTERN = re.compile(r"/event/([^/?#]+)")


class RegistrationError(Exception):
    """Raised when an event URL cannot be added."""

    pass


class InvalidEventUrl(RegistrationError):
    """URL is not a Ticketmaster event page."""

    pass


class DuplicateEvent(RegistrationError):
    """URL is already monitored or waiting for confirmation."""

    pass


@dataclass(frozen=True)
class PendingEvent:
    """An add request sent to the backend but not yet confirmed."""

    id: str
    url: str
    name: str


def is_valid_event_url(url: str) -> bool:
    """Check that url is an http(s) Ticketmaster event page."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        return False
    return SOURCE_DOMAIN in parsed.hostname and _EVENT_ID_PATTERN.search(parsed.path) is not None


def extract_event_id(url: str) -> str:
    """Return the path segment following /event/."""
    match = _EVENT_ID_PATTERN.search(urlparse(url).path)
    return match.group(1) if match else "unknown"


def _humanize(slug: str) -> str:
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), slug.replace("-", " "))


def extract_event_name(url: str) -> str:
    """Derive a display name from the URL's slug segment.

    Ticketmaster URLs carry the slug either before the event segment
    (``/the-show-tickets/event/ab12``) or after the id (``/event/ab12/the-show``).
    """
    segments = [s for s in urlparse(url).path.split("/") if s]
    if "event" in segments:
        idx = segments.index("event")
        candidates = segments[:idx] + segments[idx + 2 :]
    else:
        candidates = segments
    if not candidates:
        return "Unknown Event"
    return _humanize(candidates[0])


class EventRegistry:
    """Ordered collection of monitored events plus per-event connection status.

    Insertion order is display order. The collection is persisted after
    every mutation; a failed write is logged and the in-memory state stays
    authoritative for the session.
    """

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path
        self._events: list[MonitoredEvent] = []
        self._statuses: dict[str, ConnectionStatus] = {}
        self._pending: dict[str, PendingEvent] = {}

    def __len__(self) -> int:
        return len(self._events)

    def __contains__(self, event_id: object) -> bool:
        return any(event.id == event_id for event in self._events)

    @property
    def events(self) -> list[MonitoredEvent]:
        """Events in display order (returns a copy)."""
        return list(self._events)

    @property
    def pending(self) -> list[PendingEvent]:
        """Add requests awaiting backend confirmation."""
        return list(self._pending.values())

    @property
    def is_adding(self) -> bool:
        """Whether an add request is in flight."""
        return bool(self._pending)

    def get(self, event_id: str) -> MonitoredEvent | None:
        """Look up an event by id."""
        for event in self._events:
            if event.id == event_id:
                return event
        return None

    def connection_status(self, event_id: str) -> ConnectionStatus:
        """Connection status for an event, defaulting to connecting."""
        status = self._statuses.get(event_id)
        if status is None:
            return ConnectionStatus(event_id=event_id, message="Initializing...")
        return status

    # ─────────────────────────────────────────────────────────────────────
    # Mutations
    # ─────────────────────────────────────────────────────────────────────

    def add(self, url: str) -> PendingEvent:
        """Validate url and hold it until the backend confirms it.

        Raises:
            InvalidEventUrl: If url is not a Ticketmaster event page
            DuplicateEvent: If url is already monitored or pending
        """
        url = url.strip()
        if not url:
            raise InvalidEventUrl("Please enter an event URL")
        if not is_valid_event_url(url):
            raise InvalidEventUrl("Please enter a valid Ticketmaster URL")
        if any(event.url == url for event in self._events) or any(
            p.url == url for p in self._pending.values()
        ):
            raise DuplicateEvent("This event is already being monitored")

        pending = PendingEvent(id=extract_event_id(url), url=url, name=extract_event_name(url))
        if pending.id in self:
            raise DuplicateEvent("This event is already being monitored")
        self._pending[pending.id] = pending
        log.info("event_add_pending", event_id=pending.id, url=url)
        return pending

    def confirm(self, event_id: str, event_name: str) -> MonitoredEvent | None:
        """Insert a pending event after the backend accepted it.

        Returns the new event, or None when there is nothing to confirm
        (unknown id, or the id is already monitored).
        """
        pending = self._pending.pop(event_id, None)
        if pending is None:
            log.warning("event_confirm_unmatched", event_id=event_id)
            return None
        if event_id in self:
            log.warning("event_confirm_duplicate", event_id=event_id)
            return None

        event = MonitoredEvent(id=event_id, url=pending.url, name=event_name or pending.name)
        self._events.append(event)
        self._statuses[event_id] = ConnectionStatus(event_id=event_id)
        log.info("event_confirmed", event_id=event_id, name=event.name)
        self._persist()
        return event

    def cancel_pending(self) -> list[PendingEvent]:
        """Abandon every in-flight add and return what was dropped."""
        dropped = list(self._pending.values())
        self._pending.clear()
        if dropped:
            log.info("event_add_cancelled", event_ids=[p.id for p in dropped])
        return dropped

    def discard_pending(self, event_id: str) -> None:
        """Forget one in-flight add (the request never left the client)."""
        self._pending.pop(event_id, None)

    def remove(self, event_id: str) -> MonitoredEvent | None:
        """Remove an event and its connection status immediately."""
        event = self.get(event_id)
        if event is None:
            return None
        self._events = [e for e in self._events if e.id != event_id]
        self._statuses.pop(event_id, None)
        log.info("event_removed", event_id=event_id)
        self._persist()
        return event

    def update_status(
        self, event_id: str, status: str, data: dict[str, Any] | None = None
    ) -> MonitoredEvent | None:
        """Overwrite an event's lifecycle status and last-update marker."""
        event = self.get(event_id)
        if event is None:
            return None
        event.status = EventStatus.parse(status)
        event.last_update = datetime.now().isoformat(timespec="seconds")
        if data:
            event.data = data
        self._persist()
        return event

    def set_connection_status(self, status: ConnectionStatus) -> None:
        """Store a backend-pushed connection status for a held event."""
        if status.event_id not in self:
            log.debug("connection_status_ignored", event_id=status.event_id)
            return
        self._statuses[status.event_id] = status

    def replace_connection_statuses(self, statuses: dict[str, ConnectionStatus]) -> None:
        """Bulk refresh from the REST endpoint."""
        self._statuses = dict(statuses)
        self._fill_missing_statuses("Loading connection status...")

    # ─────────────────────────────────────────────────────────────────────
    # Persistence
    # ─────────────────────────────────────────────────────────────────────

    def load(self) -> None:
        """Restore the stored collection (startup only)."""
        if self._db_path is None:
            return
        try:
            events = load_events(self._db_path)
        except StorageError as e:
            log.error("events_load_failed", error=str(e))
            events = []

        seen: set[str] = set()
        self._events = []
        for event in events:
            if event.id in seen:
                continue
            seen.add(event.id)
            self._events.append(event)
        self._fill_missing_statuses("Loading connection status...")
        log.info("events_loaded", count=len(self._events))

    def _fill_missing_statuses(self, message: str) -> None:
        for event in self._events:
            if event.id not in self._statuses:
                self._statuses[event.id] = ConnectionStatus(
                    event_id=event.id, status=LinkStatus.CONNECTING, message=message
                )

    def _persist(self) -> None:
        if self._db_path is None:
            return
        try:
            save_events(self._db_path, self._events)
        except StorageError as e:
            log.error("events_save_failed", error=str(e))
