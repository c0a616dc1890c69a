"""
Refresh Worker Pool Tests
=========================

Batch selection, per-feed mutual exclusion and failure isolation.
"""

import threading
import pytest
from datetime import datetime, timezone
from unittest.mock import Mock

from feedsync.database.models import Feed
from feedsync.sync.outcome import RefreshOutcome, RefreshStatus
from feedsync.sync.worker import FeedLockRegistry, RefreshWorkerPool
from feedsync.utils.exceptions import FeedFetchError, StorageError


def due_feeds(*ids):
    return [Feed(id=feed_id, user_id=1, feed_url=f"https://example.com/{feed_id}") for feed_id in ids]


@pytest.fixture
def handler():
    handler = Mock()
    handler.refresh_feed.side_effect = lambda user_id, feed_id: RefreshOutcome(
        feed_id=feed_id, status=RefreshStatus.SUCCESS
    )
    return handler


@pytest.fixture
def storage():
    return Mock()


class TestFeedLockRegistry:
    def test_hold_and_release(self):
        locks = FeedLockRegistry()

        with locks.hold(1) as acquired:
            assert acquired
            assert locks.is_locked(1)
            with locks.hold(1) as again:
                assert not again
            with locks.hold(2) as other:
                assert other

        assert not locks.is_locked(1)

    def test_released_on_error(self):
        locks = FeedLockRegistry()

        with pytest.raises(RuntimeError):
            with locks.hold(1):
                raise RuntimeError("boom")

        assert not locks.is_locked(1)

    def test_released_feeds_are_forgotten(self):
        locks = FeedLockRegistry()

        for feed_id in range(1000):
            with locks.hold(feed_id):
                assert len(locks) == 1

        assert len(locks) == 0

    def test_skipped_claim_does_not_release_holder(self):
        locks = FeedLockRegistry()

        with locks.hold(1):
            with locks.hold(1) as again:
                assert not again
            assert locks.is_locked(1)


class TestRefreshOne:
    def test_success(self, handler, storage):
        pool = RefreshWorkerPool(handler, storage)

        outcome = pool.refresh_one(1, 5)

        assert outcome.status == RefreshStatus.SUCCESS
        handler.refresh_feed.assert_called_once_with(1, 5)

    def test_feed_error_becomes_failure(self, handler, storage):
        error = FeedFetchError("timeout")
        handler.refresh_feed.side_effect = error
        pool = RefreshWorkerPool(handler, storage)

        outcome = pool.refresh_one(1, 5)

        assert outcome.status == RefreshStatus.FAILURE
        assert outcome.error is error
        assert not outcome.succeeded

    def test_unexpected_error_becomes_failure(self, handler, storage):
        handler.refresh_feed.side_effect = ValueError("bug")
        pool = RefreshWorkerPool(handler, storage)

        outcome = pool.refresh_one(1, 5)

        assert outcome.status == RefreshStatus.FAILURE
        assert "bug" in outcome.error_message

    def test_in_flight_feed_skipped(self, handler, storage):
        locks = FeedLockRegistry()
        pool = RefreshWorkerPool(handler, storage, locks=locks)

        with locks.hold(5):
            outcome = pool.refresh_one(1, 5)

        assert outcome.status == RefreshStatus.SKIPPED
        handler.refresh_feed.assert_not_called()


class TestRefreshDue:
    def test_refreshes_batch_in_order(self, handler, storage):
        storage.feeds_due.return_value = due_feeds(3, 1, 2)
        pool = RefreshWorkerPool(handler, storage, workers=3, batch_size=50)
        now = datetime(2025, 1, 6, tzinfo=timezone.utc)

        outcomes = pool.refresh_due(now)

        storage.feeds_due.assert_called_once_with(50, now)
        assert [outcome.feed_id for outcome in outcomes] == [3, 1, 2]
        assert handler.refresh_feed.call_count == 3

    def test_failure_isolated(self, handler, storage):
        def refresh(user_id, feed_id):
            if feed_id == 2:
                raise StorageError("locked")
            return RefreshOutcome(feed_id=feed_id, status=RefreshStatus.NOT_MODIFIED)

        handler.refresh_feed.side_effect = refresh
        storage.feeds_due.return_value = due_feeds(1, 2, 3)
        pool = RefreshWorkerPool(handler, storage, workers=2)

        outcomes = pool.refresh_due()

        assert [outcome.status for outcome in outcomes] == [
            RefreshStatus.NOT_MODIFIED,
            RefreshStatus.FAILURE,
            RefreshStatus.NOT_MODIFIED,
        ]

    def test_nothing_due(self, handler, storage):
        storage.feeds_due.return_value = []

        assert RefreshWorkerPool(handler, storage).refresh_due() == []
        handler.refresh_feed.assert_not_called()

    def test_same_feed_never_refreshed_concurrently(self, storage):
        active = set()
        overlaps = []
        guard = threading.Lock()
        started = threading.Barrier(2, timeout=1)

        def refresh(user_id, feed_id):
            with guard:
                if feed_id in active:
                    overlaps.append(feed_id)
                active.add(feed_id)
            try:
                started.wait()
            except threading.BrokenBarrierError:
                pass
            with guard:
                active.discard(feed_id)
            return RefreshOutcome(feed_id=feed_id, status=RefreshStatus.SUCCESS)

        handler = Mock()
        handler.refresh_feed.side_effect = refresh
        storage.feeds_due.return_value = due_feeds(1, 1)
        pool = RefreshWorkerPool(handler, storage, workers=2)

        outcomes = pool.refresh_due()

        assert overlaps == []
        assert sorted(outcome.status.value for outcome in outcomes) == ["skipped", "success"]


class TestRunForever:
    def test_stops_after_max_cycles(self, handler, storage):
        storage.feeds_due.return_value = []
        pool = RefreshWorkerPool(handler, storage)

        assert pool.run_forever(0, max_cycles=3) == 3
        assert storage.feeds_due.call_count == 3

    def test_stop_event(self, handler, storage):
        stop = threading.Event()
        stop.set()

        assert RefreshWorkerPool(handler, storage).run_forever(0, stop_event=stop) == 0

    def test_batch_error_does_not_stop_loop(self, handler, storage):
        storage.feeds_due.side_effect = StorageError("locked")
        pool = RefreshWorkerPool(handler, storage)

        assert pool.run_forever(0, max_cycles=2) == 2
