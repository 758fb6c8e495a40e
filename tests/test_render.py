"""Tests for the coalescing render scheduler."""

from unittest.mock import MagicMock

from seat_monitor.render import RenderScheduler


def test_burst_collapses_to_one_render(fake_loop):
    """Many requests inside the delay produce a single render."""
    render = MagicMock()
    scheduler = RenderScheduler(render, delay=0.1, loop=fake_loop)

    for _ in range(20):
        scheduler.request()
        fake_loop.advance(0.01)

    render.assert_not_called()
    fake_loop.advance(0.1)
    render.assert_called_once()
    assert scheduler.renders == 1


def test_request_reschedules(fake_loop):
    """Each request pushes the render back by the full delay."""
    render = MagicMock()
    scheduler = RenderScheduler(render, delay=0.1, loop=fake_loop)
    scheduler.request()
    fake_loop.advance(0.09)
    scheduler.request()
    fake_loop.advance(0.09)
    render.assert_not_called()
    fake_loop.advance(0.02)
    render.assert_called_once()


def test_only_one_pending_handle(fake_loop):
    """Replaced timers are cancelled."""
    scheduler = RenderScheduler(MagicMock(), loop=fake_loop)
    scheduler.request()
    scheduler.request()
    assert len(fake_loop.pending) == 1
    assert scheduler.pending


def test_flush_renders_now(fake_loop):
    """flush() renders immediately and drops the pending timer."""
    render = MagicMock()
    scheduler = RenderScheduler(render, loop=fake_loop)
    scheduler.request()
    scheduler.flush()
    render.assert_called_once()
    fake_loop.advance(1)
    render.assert_called_once()
    assert not scheduler.pending


def test_cancel(fake_loop):
    """cancel() drops the pending render."""
    render = MagicMock()
    scheduler = RenderScheduler(render, loop=fake_loop)
    scheduler.request()
    scheduler.cancel()
    fake_loop.advance(1)
    render.assert_not_called()


def test_render_error_is_contained(fake_loop):
    """A failing render is logged and the scheduler keeps working."""
    render = MagicMock(side_effect=[RuntimeError("boom"), None])
    scheduler = RenderScheduler(render, loop=fake_loop)
    scheduler.request()
    fake_loop.advance(1)
    scheduler.request()
    fake_loop.advance(1)
    assert render.call_count == 2
