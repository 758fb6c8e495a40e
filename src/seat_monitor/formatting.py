"""Formatting utilities for consistent output across CLI and TUI."""

from datetime import datetime

from seat_monitor.models import LinkStatus, NotificationGroup, SeatOffer, UpdateKind

LINK_ICONS = {
    LinkStatus.CONNECTED: "●",
    LinkStatus.CONNECTING: "◐",
    LinkStatus.DISCONNECTED: "○",
    LinkStatus.ERROR: "✗",
    LinkStatus.UNKNOWN: "?",
}


def format_time(timestamp: float) -> str:
    """Format a unix timestamp as local HH:MM:SS."""
    return datetime.fromtimestamp(timestamp).strftime("%H:%M:%S")


def format_link_status(status: LinkStatus) -> str:
    """Icon plus status name, e.g. "● connected"."""
    return f"{LINK_ICONS.get(status, '?')} {status.value}"


def format_badge(count: int, viewed: bool) -> str:
    """Unseen-notification badge for the events list.

    Returns:
        "" when there is nothing to show (no updates, or already viewed),
        otherwise the count, capped at "99+".
    """
    if count <= 0 or viewed:
        return ""
    return "99+" if count > 99 else str(count)


def group_title(group: NotificationGroup) -> str:
    """Headline for a notification group.

    Returns:
        e.g. "Available, 3 seats" or "No Longer Available, 1 seat"
    """
    text = "Available" if group.kind is UpdateKind.ADDED else "No Longer Available"
    count = group.seat_count
    return f"{text}, {count} seat{'s' if count != 1 else ''}"


def seat_row(seat: SeatOffer) -> tuple[str, str, str, str, str]:
    """Section, row, seat, price and description cells for one seat."""
    return (
        seat.section_name or "Unknown",
        seat.section_row or "N/A",
        seat.place_number or "N/A",
        seat.display_price,
        seat.offer_description or "N/A",
    )


def seats_by_section(seats: list[SeatOffer]) -> dict[str, list[SeatOffer]]:
    """Bucket seats by "section-row", preserving first-seen order."""
    grouped: dict[str, list[SeatOffer]] = {}
    for seat in seats:
        key = f"{seat.section_name or 'Unknown'}-{seat.section_row or 'N/A'}"
        grouped.setdefault(key, []).append(seat)
    return grouped
