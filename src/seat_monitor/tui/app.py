"""Interactive dashboard for seat-monitor.

Philosophy: the TUI only renders session state and forwards key presses
as intents. All protocol, timer and persistence work lives in the session.
"""

import asyncio
import webbrowser

from rich.table import Table
from rich.text import Text
from textual.app import App, ComposeResult
from textual.css.query import NoMatches
from textual.widgets import DataTable, Footer, Input, Label, RichLog, Static
from textual.widgets.data_table import CellDoesNotExist

from seat_monitor import logging as console
from seat_monitor.config import Config
from seat_monitor.formatting import (
    format_badge,
    format_link_status,
    format_time,
    group_title,
    seat_row,
    seats_by_section,
)
from seat_monitor.models import EventStatus, LinkStatus, NotificationGroup, UpdateKind
from seat_monitor.protocol import MonitorUpdate
from seat_monitor.session import MonitorSession
from seat_monitor.state import Level, LinkState, StatusMessage

_SUBTITLES = {
    LinkState.CONNECTING: "connecting...",
    LinkState.CONNECTED: "live",
    LinkState.RECONNECTING: "reconnecting...",
    LinkState.DISCONNECTED: "disconnected",
    LinkState.LOST: "connection lost, restart to reconnect",
}


class EventsPanel(Static):
    """Monitored events with backend connection status and unseen badge."""

    DEFAULT_CSS = """
    EventsPanel {
        height: 1fr;
        border: solid $primary;
        border-title-align: left;
    }

    EventsPanel.disconnected {
        border: solid $error;
    }

    EventsPanel DataTable {
        width: 100%;
        height: 100%;
    }
    """

    def compose(self) -> ComposeResult:
        """Create the events table."""
        yield DataTable(id="events-table", zebra_stripes=True, cursor_type="row")

    def on_mount(self) -> None:
        """Set up table columns."""
        self.border_title = "MONITORED EVENTS"
        table = self.query_one("#events-table", DataTable)
        table.add_columns("", "Event", "Connection", "Message", "Updated", "🔔")

    def _link_style(self, status: LinkStatus) -> str:
        colors = self.app.config.tui
        if status is LinkStatus.CONNECTED:
            return colors.connected_color
        if status is LinkStatus.CONNECTING:
            return colors.connecting_color
        return colors.disconnected_color

    @property
    def selected_id(self) -> str | None:
        """Event id under the cursor, if any."""
        try:
            table = self.query_one("#events-table", DataTable)
            return table.coordinate_to_cell_key(table.cursor_coordinate).row_key.value
        except (NoMatches, CellDoesNotExist):
            return None

    def update_events(self, session: MonitorSession) -> None:
        """Rebuild rows from the registry, keeping the cursor on the same event."""
        try:
            table = self.query_one("#events-table", DataTable)
        except NoMatches:
            return

        selected = self.selected_id
        registry = session.registry
        aggregator = session.aggregator

        table.clear()
        for event in registry.events:
            conn = registry.connection_status(event.id)
            style = self._link_style(conn.status)
            unseen = aggregator.has_unseen(event.id)
            name = Text(event.name, style="bold" if unseen else "")
            if unseen:
                name.append(" 🔔")
            badge = format_badge(aggregator.count(event.id), aggregator.was_viewed(event.id))
            table.add_row(
                Text("●" if event.status is EventStatus.MONITORING else "✗", style=style),
                name,
                Text(format_link_status(conn.status), style=style),
                Text(conn.message, style="dim"),
                event.last_update[11:19] if event.last_update else "",
                Text(badge, style="bold reverse") if badge else "",
                key=event.id,
            )

        self.border_subtitle = f"{len(registry)} event{'s' if len(registry) != 1 else ''}"
        if selected is not None:
            for index, event in enumerate(registry.events):
                if event.id == selected:
                    table.move_cursor(row=index)
                    break

    def set_disconnected(self, disconnected: bool) -> None:
        """Toggle the error border."""
        self.set_class(disconnected, "disconnected")


class NotificationPanel(Static):
    """Grouped availability updates for the open event."""

    DEFAULT_CSS = """
    NotificationPanel {
        height: 1fr;
        border: solid $primary;
        border-title-align: left;
    }

    NotificationPanel RichLog {
        width: 100%;
        height: 100%;
    }
    """

    def compose(self) -> ComposeResult:
        """Create the scrolling notification log."""
        yield RichLog(id="notification-log", markup=True, wrap=True)

    def on_mount(self) -> None:
        """Set border title and initial hint."""
        self.border_title = "NOTIFICATIONS"
        self.show_hint()

    def show_hint(self) -> None:
        """Placeholder shown when no event is open."""
        try:
            log = self.query_one("#notification-log", RichLog)
        except NoMatches:
            return
        self.border_title = "NOTIFICATIONS"
        log.clear()
        log.write("[dim]Select an event and press n to view its notifications.[/dim]")

    def update_groups(self, event_name: str, groups: list[NotificationGroup]) -> None:
        """Render every group as a header line and a seat table."""
        try:
            log = self.query_one("#notification-log", RichLog)
        except NoMatches:
            return

        colors = self.app.config.tui
        self.border_title = f"NOTIFICATIONS - {event_name}"
        log.clear()
        if not groups:
            log.write("[dim]No notifications yet.[/dim]")
            return

        for group in groups:
            added = group.kind is UpdateKind.ADDED
            color = colors.added_color if added else colors.removed_color
            icon = "🎫" if added else "❌"
            log.write(
                f"[{color}]{icon} {group_title(group)}[/{color}]  "
                f"[dim]{format_time(group.timestamp)}[/dim]"
            )
            seats = Table(box=None, pad_edge=False, show_edge=False)
            for column in ("Section", "Row", "Seat", "Price", "Description"):
                seats.add_column(column, style="dim" if column == "Description" else "")
            for bucket in seats_by_section(group.seats).values():
                for seat in bucket:
                    seats.add_row(*seat_row(seat))
                seats.add_section()
            log.write(seats)
            log.write("")


class SeatMonitorApp(App):
    """Dashboard for monitored events and their seat availability."""

    CSS = """
    Screen {
        layout: vertical;
    }

    #url-input {
        margin: 0 1;
    }

    #status {
        height: 1;
        margin: 0 2;
    }

    #status.info {
        color: $text;
    }

    #status.success {
        color: $success;
    }

    #status.error {
        color: $error;
    }
    """

    BINDINGS = [
        ("a", "focus_input", "Add"),
        ("d", "delete_event", "Delete"),
        ("n", "toggle_notifications", "Notifications"),
        ("c", "clear_notifications", "Clear"),
        ("o", "open_url", "Open"),
        ("r", "refresh", "Refresh"),
        ("escape", "focus_table", "Events"),
        ("q", "quit", "Quit"),
    ]

    def __init__(self, config: Config | None = None, session: MonitorSession | None = None):
        super().__init__()
        self.config = config or Config.load()
        # Create config file with defaults if it doesn't exist
        if session is None and not self.config.config_path.exists():
            self.config.save()
        self.session = session or MonitorSession(
            self.config, render=self.render_state, on_seats=self._on_seats
        )
        self._start_task: asyncio.Task | None = None
        self._shown_status: StatusMessage | None = None

    def compose(self) -> ComposeResult:
        """Create the TUI layout."""
        yield Input(placeholder="Paste a Ticketmaster event URL and press Enter", id="url-input")
        yield Label("", id="status")
        yield EventsPanel(id="events")
        yield NotificationPanel(id="notifications")
        yield Footer()

    def on_mount(self) -> None:
        """Initialize on startup."""
        self.title = "seat-monitor"
        self.sub_title = _SUBTITLES[LinkState.CONNECTING]
        self._start_task = asyncio.create_task(self.session.start())

    async def on_unmount(self) -> None:
        """Cleanup on shutdown."""
        if self._start_task is not None and not self._start_task.done():
            self._start_task.cancel()
        await self.session.stop()

    # ─────────────────────────────────────────────────────────────────────
    # Rendering
    # ─────────────────────────────────────────────────────────────────────

    def render_state(self) -> None:
        """Draw the whole screen from session state."""
        state = self.session.state
        self.sub_title = _SUBTITLES[state.link]

        try:
            events = self.query_one("#events", EventsPanel)
            events.set_disconnected(state.link is not LinkState.CONNECTED)
            events.update_events(self.session)
        except NoMatches:
            pass

        try:
            self.query_one("#url-input", Input).disabled = state.adding
        except NoMatches:
            pass

        self._render_status(state.status)
        self._render_notifications()

    def _render_status(self, status: StatusMessage | None) -> None:
        try:
            label = self.query_one("#status", Label)
        except NoMatches:
            return
        if status is None:
            label.update("")
            return
        label.update(status.text)
        label.set_classes(status.level.value)
        if status is not self._shown_status and status.level is Level.SUCCESS:
            self.set_timer(self.config.tui.status_clear_seconds, lambda: self._expire_status(status))
        self._shown_status = status

    def _expire_status(self, status: StatusMessage) -> None:
        # Only hide if nothing newer replaced it.
        if self.session.state.status is status:
            self.session.state.hide_status()
            self._render_status(None)

    def _render_notifications(self) -> None:
        try:
            panel = self.query_one("#notifications", NotificationPanel)
        except NoMatches:
            return
        event_id = self.session.state.open_event_id
        event = self.session.registry.get(event_id) if event_id else None
        if event is None:
            panel.show_hint()
            return
        panel.update_groups(event.name, self.session.aggregator.groups(event.id))

    def _on_seats(self, msg: MonitorUpdate) -> None:
        if msg.update.kind is UpdateKind.ADDED:
            self.bell()

    # ─────────────────────────────────────────────────────────────────────
    # Intents
    # ─────────────────────────────────────────────────────────────────────

    def _selected_event_id(self) -> str | None:
        try:
            return self.query_one("#events", EventsPanel).selected_id
        except NoMatches:
            return None

    def on_input_submitted(self, event: Input.Submitted) -> None:
        """Add the submitted URL."""
        if self.session.add_event(event.value):
            event.input.value = ""

    def action_focus_input(self) -> None:
        """Move focus to the URL input."""
        self.query_one("#url-input", Input).focus()

    def action_focus_table(self) -> None:
        """Move focus back to the events table."""
        self.query_one("#events-table", DataTable).focus()

    def action_delete_event(self) -> None:
        """Stop monitoring the selected event."""
        event_id = self._selected_event_id()
        if event_id is not None:
            self.session.delete_event(event_id)

    async def action_toggle_notifications(self) -> None:
        """Open (or close) the selected event's notifications."""
        event_id = self._selected_event_id()
        if event_id is None:
            return
        if self.session.state.open_event_id == event_id:
            self.session.close_notifications()
            return
        await self.session.view_notifications(event_id)

    async def action_clear_notifications(self) -> None:
        """Clear the open event's notification history."""
        event_id = self.session.state.open_event_id
        if event_id is None:
            self.notify("Open an event's notifications first", severity="warning")
            return
        await self.session.clear_notifications(event_id)

    def action_open_url(self) -> None:
        """Open the selected event page in the default browser."""
        event_id = self._selected_event_id()
        event = self.session.registry.get(event_id) if event_id else None
        if event is not None:
            webbrowser.open(event.url)

    async def action_refresh(self) -> None:
        """Re-fetch connection statuses from the backend."""
        if not await self.session.refresh_statuses():
            self.notify("Could not reach backend", severity="error")


def run_tui(config: Config | None = None) -> None:
    """Run the TUI application."""
    config = config or Config.load()
    console.configure(config, console=False, source="tui")
    app = SeatMonitorApp(config)
    app.run()
