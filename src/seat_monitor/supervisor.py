"""Reconnection supervisor: exponential backoff with a bounded attempt count.

State machine::

    IDLE → CONNECTING → CONNECTED → (close/error) → RECONNECTING → CONNECTING → ...
                                                  ↘ LOST (after max_attempts failures)

Retry timers are ``loop.call_later`` handles so they can be cancelled; a
timer that fires after the session is connected or stopped does nothing.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from enum import Enum
from typing import Any, Protocol

import structlog

from seat_monitor.config import ReconnectConfig

log = structlog.get_logger()


class SupervisorState(Enum):
    """Supervisor lifecycle states."""

    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    LOST = "lost"


class Connector(Protocol):
    """What the supervisor needs from the transport."""

    def connect(self) -> bool: ...


class ReconnectSupervisor:
    """Drives connection attempts and retries for one transport."""

    def __init__(
        self,
        transport: Connector,
        config: ReconnectConfig | None = None,
        loop: Any = None,
        on_reconnecting: Callable[[int, int, float], None] | None = None,
        on_lost: Callable[[], None] | None = None,
    ) -> None:
        self._transport = transport
        self._config = config or ReconnectConfig()
        self._loop = loop
        self._on_reconnecting = on_reconnecting
        self._on_lost = on_lost
        self.state = SupervisorState.IDLE
        self.attempts = 0
        self.delay = self._config.initial_delay
        self._timer: asyncio.TimerHandle | None = None

    @property
    def max_attempts(self) -> int:
        """Consecutive failures tolerated before giving up."""
        return self._config.max_attempts

    @property
    def pending(self) -> bool:
        """Whether a retry timer is scheduled."""
        return self._timer is not None

    def _get_loop(self) -> Any:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def start(self) -> None:
        """Begin the first connection attempt."""
        if self.state in (SupervisorState.CONNECTING, SupervisorState.CONNECTED):
            return
        self.state = SupervisorState.CONNECTING
        self._transport.connect()

    def stop(self) -> None:
        """Cancel any pending retry and go idle."""
        self._cancel_timer()
        self.state = SupervisorState.IDLE

    def on_opened(self) -> None:
        """Connection established: reset the backoff immediately."""
        self._cancel_timer()
        self.state = SupervisorState.CONNECTED
        self.attempts = 0
        self.delay = self._config.initial_delay
        log.info("supervisor_connected")

    def on_disconnected(self, reason: str = "") -> None:
        """Connection closed or errored: schedule a retry or give up."""
        if self.state in (SupervisorState.RECONNECTING, SupervisorState.LOST, SupervisorState.IDLE):
            return

        if self.attempts >= self._config.max_attempts:
            self.state = SupervisorState.LOST
            log.error("connection_lost", attempts=self.attempts, reason=reason)
            if self._on_lost is not None:
                self._on_lost()
            return

        self.state = SupervisorState.RECONNECTING
        self.attempts += 1
        delay = self.delay
        log.info(
            "reconnect_scheduled",
            attempt=self.attempts,
            max_attempts=self._config.max_attempts,
            delay=delay,
            reason=reason,
        )
        self._timer = self._get_loop().call_later(delay, self._fire)
        self.delay = min(self.delay * self._config.multiplier, self._config.max_delay)
        if self._on_reconnecting is not None:
            self._on_reconnecting(self.attempts, self._config.max_attempts, delay)

    def _fire(self) -> None:
        self._timer = None
        if self.state is not SupervisorState.RECONNECTING:
            # Superseded by a successful open or a stop().
            return
        self.state = SupervisorState.CONNECTING
        log.info("reconnect_attempt", attempt=self.attempts)
        self._transport.connect()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
