"""Client-side monitor for ticket-availability events."""

__version__ = "0.1.0"
