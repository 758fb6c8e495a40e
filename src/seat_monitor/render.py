"""Coalescing render scheduler.

State mutations happen immediately; only the visual refresh is deferred.
Each request cancels the pending timer and schedules a new one, so a burst
of updates collapses into a single render.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

import structlog

log = structlog.get_logger()


class RenderScheduler:
    """Debounces render requests onto one pending timer."""

    def __init__(
        self,
        render: Callable[[], None],
        delay: float = 0.1,
        loop: Any = None,
    ) -> None:
        self._render = render
        self._delay = delay
        self._loop = loop
        self._handle: asyncio.TimerHandle | None = None
        self.renders = 0

    @property
    def pending(self) -> bool:
        """Whether a render is waiting to run."""
        return self._handle is not None

    def _get_loop(self) -> Any:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def request(self) -> None:
        """Ask for a render, replacing any pending one."""
        if self._handle is not None:
            self._handle.cancel()
        self._handle = self._get_loop().call_later(self._delay, self._fire)

    def flush(self) -> None:
        """Render now and drop any pending request."""
        self.cancel()
        self._fire()

    def cancel(self) -> None:
        """Drop a pending render without running it."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        self.renders += 1
        try:
            self._render()
        except Exception:
            log.exception("render_failed")
