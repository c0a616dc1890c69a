"""
Refresh Worker Pool
===================

Refreshes due feeds concurrently. Distinct feeds run in parallel on a thread
pool; a per-feed lock guarantees at most one in-flight refresh per feed ID,
and a feed whose lock is taken is skipped rather than queued.
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from datetime import datetime
from typing import Generator, List, Optional, Set

from ..utils.logging import get_logger_for_component
from ..utils.exceptions import FeedSyncError, handle_exception
from .outcome import RefreshOutcome, RefreshStatus


class FeedLockRegistry:
    """Tracks the feed IDs with a refresh in flight."""

    def __init__(self):
        self._in_flight: Set[int] = set()
        self._guard = threading.Lock()

    @contextmanager
    def hold(self, feed_id: int) -> Generator[bool, None, None]:
        """Try to claim the feed; yields whether it was acquired.

        The ID is forgotten on release, so the registry only ever holds
        feeds that are being refreshed.
        """
        with self._guard:
            acquired = feed_id not in self._in_flight
            if acquired:
                self._in_flight.add(feed_id)
        try:
            yield acquired
        finally:
            if acquired:
                with self._guard:
                    self._in_flight.discard(feed_id)

    def is_locked(self, feed_id: int) -> bool:
        with self._guard:
            return feed_id in self._in_flight

    def __len__(self) -> int:
        with self._guard:
            return len(self._in_flight)


class RefreshWorkerPool:
    """Picks feeds whose next check has passed and refreshes them."""

    def __init__(
        self,
        handler,
        storage,
        workers: int = 4,
        batch_size: int = 100,
        locks: Optional[FeedLockRegistry] = None,
    ):
        self.handler = handler
        self.storage = storage
        self.workers = workers
        self.batch_size = batch_size
        self.locks = locks or FeedLockRegistry()
        self.logger = get_logger_for_component("refresh_worker")

    def refresh_one(self, user_id: int, feed_id: int) -> RefreshOutcome:
        """Refresh a feed unless another refresh of it is in flight.

        Never raises; failures are returned as failure outcomes.
        """
        with self.locks.hold(feed_id) as acquired:
            if not acquired:
                self.logger.info(f"Feed #{feed_id} is already being refreshed, skipping")
                return RefreshOutcome(feed_id=feed_id, status=RefreshStatus.SKIPPED)

            try:
                return self.handler.refresh_feed(user_id, feed_id)
            except FeedSyncError as e:
                self.logger.warning(f"Refresh of feed #{feed_id} failed: {e}", extra={"feed_id": feed_id})
                return RefreshOutcome.failure(feed_id, e)
            except Exception as e:
                error = handle_exception(e, self.logger, "refresh_feed", {"feed_id": feed_id})
                return RefreshOutcome.failure(feed_id, error)

    def refresh_due(self, now: Optional[datetime] = None) -> List[RefreshOutcome]:
        """Refresh one batch of due feeds.

        Returns:
            Outcomes in the order the feeds were selected
        """
        feeds = self.storage.feeds_due(self.batch_size, now)
        if not feeds:
            self.logger.debug("No feeds due for refresh")
            return []

        self.logger.info(f"Refreshing {len(feeds)} due feeds with {self.workers} workers")

        with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="feedsync-refresh") as executor:
            futures = [
                executor.submit(self.refresh_one, feed.user_id, feed.id)
                for feed in feeds
            ]
            outcomes = [future.result() for future in futures]

        failed = sum(1 for outcome in outcomes if outcome.status == RefreshStatus.FAILURE)
        self.logger.info(
            f"Batch refresh complete: {len(outcomes) - failed}/{len(outcomes)} feeds without errors"
        )
        return outcomes

    def run_forever(
        self,
        interval_seconds: float,
        stop_event: Optional[threading.Event] = None,
        max_cycles: Optional[int] = None,
    ) -> int:
        """Refresh due feeds every ``interval_seconds`` until stopped.

        Returns:
            Number of completed cycles
        """
        stop_event = stop_event or threading.Event()
        cycles = 0

        while not stop_event.is_set():
            try:
                self.refresh_due()
            except FeedSyncError as e:
                self.logger.error(f"Batch refresh failed: {e}")
            cycles += 1

            if max_cycles is not None and cycles >= max_cycles:
                break
            stop_event.wait(interval_seconds)

        return cycles
