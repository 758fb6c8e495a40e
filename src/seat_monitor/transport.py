# src/seat_monitor/transport.py

"""WebSocket transport to the monitoring backend.

Owns at most one connection. Lifecycle is reported on an asyncio.Queue
(``events``) instead of callbacks, so a single consumer sees opens,
messages and closes in arrival order. Reconnection is the supervisor's job.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

import structlog
import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from seat_monitor.protocol import encode

log = structlog.get_logger()

# Close code used when no close frame was received (RFC 6455 §7.1.5).
ABNORMAL_CLOSURE = 1006


class TransportState(Enum):
    """Lifecycle of the single stream connection."""

    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


@dataclass(frozen=True)
class Opened:
    """Connection established."""


@dataclass(frozen=True)
class MessageReceived:
    """One inbound text payload."""

    payload: str


@dataclass(frozen=True)
class Closed:
    """Connection closed or never opened."""

    code: int = ABNORMAL_CLOSURE
    reason: str = ""


@dataclass(frozen=True)
class Errored:
    """Connection attempt or established connection failed."""

    error: str


TransportEvent = Union[Opened, MessageReceived, Closed, Errored]


class StreamConnection:
    """Single persistent WebSocket connection.

    ``send()`` is best-effort: it only succeeds while the connection is
    open and never buffers for later delivery.
    """

    def __init__(self, url: str, connect: Callable[..., Any] | None = None) -> None:
        self.url = url
        self.events: asyncio.Queue[TransportEvent] = asyncio.Queue()
        self._connect = connect or websockets.connect
        self._state = TransportState.IDLE
        self._ws: Any = None
        self._task: asyncio.Task | None = None
        self._send_tasks: set[asyncio.Task] = set()

    @property
    def state(self) -> TransportState:
        """Current connection state."""
        return self._state

    @property
    def is_open(self) -> bool:
        """Whether messages can be sent right now."""
        return self._state is TransportState.OPEN and self._ws is not None

    def connect(self) -> bool:
        """Start a connection attempt in the background.

        Returns False (no-op) when a connection is already connecting or open.
        """
        if self._state in (TransportState.CONNECTING, TransportState.OPEN):
            log.debug("connect_skipped", state=self._state.value)
            return False
        self._state = TransportState.CONNECTING
        self._task = asyncio.create_task(self._run())
        return True

    async def _run(self) -> None:
        """Open the connection and pump inbound frames onto the event queue."""
        try:
            ws = await self._connect(self.url, ping_interval=None)
        except asyncio.CancelledError:
            self._state = TransportState.CLOSED
            raise
        except (OSError, WebSocketException, asyncio.TimeoutError) as e:
            self._state = TransportState.CLOSED
            log.warning("connect_failed", url=self.url, error=f"{type(e).__name__}: {e}")
            self.events.put_nowait(Errored(error=f"{type(e).__name__}: {e}"))
            self.events.put_nowait(Closed(code=ABNORMAL_CLOSURE, reason="connect failed"))
            return

        self._ws = ws
        self._state = TransportState.OPEN
        log.info("stream_opened", url=self.url)
        self.events.put_nowait(Opened())

        code, reason = ABNORMAL_CLOSURE, ""
        try:
            async for message in ws:
                if isinstance(message, bytes):
                    message = message.decode("utf-8", errors="replace")
                self.events.put_nowait(MessageReceived(payload=message))
            code = ws.close_code if ws.close_code is not None else ABNORMAL_CLOSURE
            reason = ws.close_reason or ""
        except ConnectionClosed as e:
            if e.rcvd is not None:
                code, reason = e.rcvd.code, e.rcvd.reason
            if self._state is not TransportState.CLOSED:
                self.events.put_nowait(Errored(error=str(e)))
        except asyncio.CancelledError:
            self._state = TransportState.CLOSED
            self._ws = None
            raise
        except (OSError, WebSocketException) as e:
            if self._state is not TransportState.CLOSED:
                self.events.put_nowait(Errored(error=f"{type(e).__name__}: {e}"))
        finally:
            if self._state is not TransportState.CLOSED:
                self._state = TransportState.CLOSED
                self._ws = None
                log.info("stream_closed", code=code, reason=reason)
                self.events.put_nowait(Closed(code=code, reason=reason))

    def send(self, message: dict[str, Any]) -> bool:
        """Send a JSON message without waiting for the write.

        Returns:
            True if the send was issued on an open connection, False otherwise.
        """
        if not self.is_open:
            log.debug("send_rejected", type=message.get("type"), state=self._state.value)
            return False
        try:
            data = encode(message)
        except (TypeError, ValueError) as e:
            log.error("send_encode_failed", type=message.get("type"), error=str(e))
            return False
        task = asyncio.create_task(self._write(data))
        self._send_tasks.add(task)
        task.add_done_callback(self._send_tasks.discard)
        return True

    async def _write(self, data: str) -> None:
        ws = self._ws
        if ws is None:
            return
        try:
            await ws.send(data)
        except (ConnectionClosed, OSError) as e:
            # Dropped; the close is reported through the reader.
            log.warning("send_failed", error=str(e))

    async def close(self) -> None:
        """Close the connection and stop the reader."""
        ws = self._ws
        task = self._task
        self._state = TransportState.CLOSED
        self._ws = None
        if ws is not None:
            try:
                await ws.close()
            except (ConnectionClosed, OSError) as e:
                log.debug("close_failed", error=str(e))
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._task = None
