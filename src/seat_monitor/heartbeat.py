"""Liveness monitor for the stream connection.

Armed only while the connection is open. Every ``interval`` seconds it
checks how long the connection has been silent; after ``timeout`` seconds
without any inbound message it sends a lightweight probe.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from typing import Any

import structlog

from seat_monitor import logging as console
from seat_monitor.config import HeartbeatConfig

log = structlog.get_logger()

PROBE_MESSAGE = "Client heartbeat"


class LivenessMonitor:
    """Periodic silence check with a cancellable timer."""

    def __init__(
        self,
        send_probe: Callable[[str], bool],
        config: HeartbeatConfig | None = None,
        loop: Any = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._send_probe = send_probe
        self._config = config or HeartbeatConfig()
        self._loop = loop
        self._clock = clock
        self._timer: asyncio.TimerHandle | None = None
        self.last_seen: float | None = None
        self.probes_sent = 0

    @property
    def armed(self) -> bool:
        """Whether the periodic check is scheduled."""
        return self._timer is not None

    def _get_loop(self) -> Any:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def arm(self) -> None:
        """Start checking (call on every successful open)."""
        self.disarm()
        self.last_seen = self._clock()
        self._schedule()

    def disarm(self) -> None:
        """Stop checking immediately (call on close or error)."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def touch(self) -> None:
        """Record inbound traffic of any kind."""
        self.last_seen = self._clock()

    def _schedule(self) -> None:
        self._timer = self._get_loop().call_later(self._config.interval, self._check)

    def _check(self) -> None:
        self._timer = None
        silence = self._clock() - (self.last_seen or 0.0)
        if silence > self._config.timeout:
            log.warning("liveness_probe", silence=round(silence, 1))
            console.heartbeat_probe(silence)
            if self._send_probe(PROBE_MESSAGE):
                self.probes_sent += 1
        self._schedule()
