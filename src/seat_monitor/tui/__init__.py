"""Textual dashboard for seat-monitor."""

from seat_monitor.tui.app import SeatMonitorApp, run_tui

__all__ = ["SeatMonitorApp", "run_tui"]
