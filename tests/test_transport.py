# tests/test_transport.py
"""Tests for the WebSocket transport against a local server."""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
import websockets

from seat_monitor.transport import (
    ABNORMAL_CLOSURE,
    Closed,
    Errored,
    MessageReceived,
    Opened,
    StreamConnection,
    TransportState,
)


async def _next(conn: StreamConnection):
    return await asyncio.wait_for(conn.events.get(), timeout=2.0)


def _url(server) -> str:
    port = server.sockets[0].getsockname()[1]
    return f"ws://127.0.0.1:{port}/ws"


@pytest.mark.asyncio
async def test_open_message_close():
    """A server message arrives between Opened and Closed."""

    async def handler(ws):
        await ws.send(json.dumps({"type": "pong"}))
        await ws.close()

    async with websockets.serve(handler, "127.0.0.1", 0) as server:
        conn = StreamConnection(_url(server))
        assert conn.connect()

        assert isinstance(await _next(conn), Opened)
        msg = await _next(conn)
        assert isinstance(msg, MessageReceived)
        assert json.loads(msg.payload) == {"type": "pong"}
        closed = await _next(conn)
        assert isinstance(closed, Closed)
        assert closed.code == 1000
        assert conn.state is TransportState.CLOSED
        assert not conn.is_open


@pytest.mark.asyncio
async def test_send_while_open():
    """send() delivers JSON to the server."""
    received: asyncio.Queue = asyncio.Queue()

    async def handler(ws):
        async for message in ws:
            await received.put(json.loads(message))

    async with websockets.serve(handler, "127.0.0.1", 0) as server:
        conn = StreamConnection(_url(server))
        conn.connect()
        assert isinstance(await _next(conn), Opened)
        assert conn.is_open

        assert conn.send({"type": "ping"})
        assert await asyncio.wait_for(received.get(), timeout=2.0) == {"type": "ping"}
        # Payloads that cannot be encoded are refused, not sent
        assert not conn.send({"type": "ping", "message": object()})

        await conn.close()


@pytest.mark.asyncio
async def test_deliberate_close_emits_no_closed():
    """close() does not report a disconnect."""

    async def handler(ws):
        await ws.wait_closed()

    async with websockets.serve(handler, "127.0.0.1", 0) as server:
        conn = StreamConnection(_url(server))
        conn.connect()
        assert isinstance(await _next(conn), Opened)

        await conn.close()

        assert conn.events.empty()
        assert conn.state is TransportState.CLOSED


@pytest.mark.asyncio
async def test_connect_failure_reports_error_then_close():
    """A failed attempt emits Errored followed by Closed(1006)."""
    conn = StreamConnection("ws://127.0.0.1:1/ws", connect=AsyncMock(side_effect=OSError("refused")))
    conn.connect()

    errored = await _next(conn)
    assert isinstance(errored, Errored)
    assert "refused" in errored.error
    closed = await _next(conn)
    assert closed == Closed(code=ABNORMAL_CLOSURE, reason="connect failed")
    assert conn.state is TransportState.CLOSED


@pytest.mark.asyncio
async def test_connect_is_noop_while_connecting():
    """Only one connection attempt runs at a time."""
    gate = asyncio.Event()

    async def slow_connect(url, **kwargs):
        await gate.wait()
        raise OSError("late")

    conn = StreamConnection("ws://example.invalid/ws", connect=slow_connect)
    assert conn.connect()
    assert not conn.connect()
    assert conn.state is TransportState.CONNECTING

    gate.set()
    assert isinstance(await _next(conn), Errored)
    assert isinstance(await _next(conn), Closed)
    # A new attempt is allowed once closed
    assert conn.connect()
    await conn.close()


@pytest.mark.asyncio
async def test_send_when_not_open_returns_false():
    """send() refuses instead of buffering."""
    conn = StreamConnection("ws://127.0.0.1:1/ws")
    assert not conn.send({"type": "ping"})
    assert conn.state is TransportState.IDLE
