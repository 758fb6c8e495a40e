"""Tests for notification grouping and the per-event aggregator."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from seat_monitor.aggregator import NotificationAggregator, group_updates
from seat_monitor.api import BackendError
from seat_monitor.models import AvailabilityUpdate, UpdateKind

from tests.conftest import make_update


def _flatten(groups) -> list[AvailabilityUpdate]:
    """Turn groups back into one update per group."""
    return [
        AvailabilityUpdate(event_id="e", kind=g.kind, seats=tuple(g.seats), timestamp=g.timestamp)
        for g in groups
    ]


class TestGroupUpdates:
    """Time-window grouping of same-kind updates."""

    def test_scenario_100_110_200(self) -> None:
        """Updates at 100 and 110 merge; 200 stands alone."""
        updates = [make_update(100.0), make_update(110.0), make_update(200.0)]
        groups = group_updates(updates, window=30.0)

        assert [(g.timestamp, g.seat_count) for g in groups] == [(200.0, 1), (110.0, 2)]
        merged_places = {s.place_number for s in groups[1].seats}
        assert merged_places == {"100-0", "110-0"}

    def test_kinds_never_merge(self) -> None:
        """Added and removed updates at the same time stay separate."""
        updates = [
            make_update(100.0, UpdateKind.ADDED),
            make_update(105.0, UpdateKind.REMOVED),
        ]
        groups = group_updates(updates)
        assert [g.kind for g in groups] == [UpdateKind.REMOVED, UpdateKind.ADDED]

    def test_window_boundary_is_inclusive(self) -> None:
        """Updates exactly window seconds apart share a group."""
        groups = group_updates([make_update(0.0), make_update(30.0)], window=30.0)
        assert len(groups) == 1
        assert groups[0].timestamp == 30.0

    def test_first_match_not_best_match(self) -> None:
        """An update joins the first matching group in newest-first order."""
        # Visiting newest first: 60 opens a group, 35 joins it (|60-35|<=30),
        # 10 is 50s from that group so it opens its own.
        groups = group_updates([make_update(10.0), make_update(35.0), make_update(60.0)])
        assert [(g.timestamp, g.seat_count) for g in groups] == [(60.0, 2), (10.0, 1)]

    def test_groups_sorted_newest_first(self) -> None:
        """Output is ordered by descending group timestamp."""
        groups = group_updates([make_update(t) for t in (500.0, 100.0, 300.0)])
        assert [g.timestamp for g in groups] == [500.0, 300.0, 100.0]

    def test_empty(self) -> None:
        """No updates, no groups."""
        assert group_updates([]) == []

    @pytest.mark.parametrize(
        "timestamps",
        [
            (100.0, 110.0, 200.0),
            (0.0, 29.0, 58.0, 87.0, 400.0),
            (10.0, 35.0, 60.0, 61.0, 95.0),
        ],
    )
    def test_regrouping_is_idempotent(self, timestamps) -> None:
        """Grouping the flattened output again changes nothing."""
        first = group_updates([make_update(t) for t in timestamps])
        second = group_updates(_flatten(first))
        assert [(g.kind, g.timestamp, g.seat_count) for g in second] == [
            (g.kind, g.timestamp, g.seat_count) for g in first
        ]


class TestRecord:
    """Live updates land in the bounded log."""

    def test_record_marks_unseen(self) -> None:
        """A new update flags the event as unseen and not viewed."""
        agg = NotificationAggregator()
        agg.record(make_update(1.0, event_id="e1"))
        assert agg.count("e1") == 1
        assert agg.has_unseen("e1")
        assert not agg.was_viewed("e1")

    def test_log_never_exceeds_capacity(self) -> None:
        """The 51st update evicts the oldest."""
        agg = NotificationAggregator(capacity=50)
        for i in range(51):
            agg.record(make_update(float(i), event_id="e1"))
        assert agg.count("e1") == 50
        assert min(u.timestamp for u in agg.updates("e1")) == 1.0

    def test_updates_newest_first(self) -> None:
        """updates() is ordered by descending timestamp."""
        agg = NotificationAggregator()
        for ts in (5.0, 50.0, 20.0):
            agg.record(make_update(ts, event_id="e1"))
        assert [u.timestamp for u in agg.updates("e1")] == [50.0, 20.0, 5.0]

    def test_unknown_event_is_empty(self) -> None:
        """Events with no updates report zero and no flags."""
        agg = NotificationAggregator()
        assert agg.updates("nope") == []
        assert agg.count("nope") == 0
        assert not agg.has_unseen("nope")


@pytest.fixture
def api() -> MagicMock:
    api = MagicMock()
    api.get_notifications = AsyncMock(return_value=[])
    api.delete_notifications = AsyncMock(return_value="Notifications cleared")
    return api


class TestView:
    """Opening an event's notifications."""

    @pytest.mark.asyncio
    async def test_view_marks_seen(self, api: MagicMock) -> None:
        """Viewing clears the unseen flag but keeps the log."""
        agg = NotificationAggregator(api=api)
        agg.record(make_update(1.0, event_id="e1"))

        groups = await agg.view("e1")

        assert len(groups) == 1
        assert agg.count("e1") == 1
        assert not agg.has_unseen("e1")
        assert agg.was_viewed("e1")

    @pytest.mark.asyncio
    async def test_history_merged_once_per_session(self, api: MagicMock) -> None:
        """Backend history is fetched on the first view only."""
        api.get_notifications.return_value = [make_update(10.0, event_id="e1")]
        agg = NotificationAggregator(api=api)
        agg.record(make_update(100.0, event_id="e1"))

        await agg.view("e1")
        await agg.view("e1")

        api.get_notifications.assert_awaited_once_with("e1")
        assert [u.timestamp for u in agg.updates("e1")] == [100.0, 10.0]

    @pytest.mark.asyncio
    async def test_merged_history_respects_capacity(self, api: MagicMock) -> None:
        """Merging keeps the newest updates up to capacity."""
        api.get_notifications.return_value = [make_update(float(i), event_id="e1") for i in range(5)]
        agg = NotificationAggregator(api=api, capacity=3)
        agg.record(make_update(100.0, event_id="e1"))

        await agg.view("e1")

        assert [u.timestamp for u in agg.updates("e1")] == [100.0, 4.0, 3.0]

    @pytest.mark.asyncio
    async def test_failed_history_fetch_not_retried(self, api: MagicMock) -> None:
        """A failed fetch still counts as the session's one attempt."""
        api.get_notifications.side_effect = BackendError("down")
        agg = NotificationAggregator(api=api)
        agg.record(make_update(1.0, event_id="e1"))

        await agg.view("e1")
        await agg.view("e1")

        assert api.get_notifications.await_count == 1
        assert agg.count("e1") == 1
        assert agg.was_viewed("e1")

    @pytest.mark.asyncio
    async def test_new_update_after_view_is_unseen(self, api: MagicMock) -> None:
        """An update after viewing flags the event again."""
        agg = NotificationAggregator(api=api)
        await agg.view("e1")
        agg.record(make_update(1.0, event_id="e1"))
        assert agg.has_unseen("e1")
        assert not agg.was_viewed("e1")


class TestClear:
    """Clearing is backend-first, all or nothing."""

    @pytest.mark.asyncio
    async def test_clear_success(self, api: MagicMock) -> None:
        """A confirmed delete empties the local log."""
        agg = NotificationAggregator(api=api)
        agg.record(make_update(1.0, event_id="e1"))

        await agg.clear("e1")

        api.delete_notifications.assert_awaited_once_with("e1")
        assert agg.count("e1") == 0
        assert not agg.has_unseen("e1")

    @pytest.mark.asyncio
    async def test_failed_delete_leaves_log_unchanged(self, api: MagicMock) -> None:
        """A failed DELETE raises and keeps every local update."""
        api.delete_notifications.side_effect = BackendError("HTTP 500")
        agg = NotificationAggregator(api=api)
        for ts in (1.0, 2.0, 3.0):
            agg.record(make_update(ts, event_id="e1"))

        with pytest.raises(BackendError):
            await agg.clear("e1")

        assert agg.count("e1") == 3
        assert agg.has_unseen("e1")

    @pytest.mark.asyncio
    async def test_clear_without_backend_raises(self) -> None:
        """Without a backend client nothing is cleared."""
        agg = NotificationAggregator()
        agg.record(make_update(1.0, event_id="e1"))
        with pytest.raises(BackendError):
            await agg.clear("e1")
        assert agg.count("e1") == 1


def test_forget_drops_state():
    """forget() removes the log and flags of a deleted event."""
    agg = NotificationAggregator()
    agg.record(make_update(1.0, event_id="e1"))
    agg.forget("e1")
    assert agg.count("e1") == 0
    assert not agg.has_unseen("e1")
