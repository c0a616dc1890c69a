"""
Entry Reconciler
================

Merges freshly parsed entries into storage for one feed.

Per entry: existing hashes are updated (or left alone when updates are
disabled), unknown hashes are inserted. A conflicting insert is collected and
reported; any other storage failure aborts the pass before notification and
cleanup. Every processed hash ends up in the retained set handed to cleanup.
"""

from typing import Iterable, Optional

from ..database.models import Entry
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import EntryConflictError, StorageError
from .outcome import FailedEntry, ReconcileResult


class EntryReconciler:
    """Applies one batch of draft entries to a feed."""

    def __init__(self, storage, notifier=None):
        """Initialize reconciler.

        Args:
            storage: Storage facade
            notifier: Optional notifier told about entries that failed to insert
        """
        self.storage = storage
        self.notifier = notifier
        self.logger = get_logger_for_component("entry_reconciler")

    def update_entries(
        self,
        user_id: int,
        feed_id: int,
        entries: Iterable[Entry],
        update_existing: bool,
    ) -> ReconcileResult:
        """Persist draft entries and retire the ones no longer published.

        Args:
            user_id: Feed owner
            feed_id: Feed being reconciled
            entries: Draft entries in document order
            update_existing: Whether already stored entries get rewritten

        Returns:
            ReconcileResult with the retained hashes and counts

        Raises:
            StorageError: On a non-recoverable storage failure; nothing after
                the failing entry is processed and no cleanup happens
        """
        result = ReconcileResult()

        for entry in entries:
            entry.user_id = user_id
            entry.feed_id = feed_id

            if self.storage.entry_exists(feed_id, entry.hash):
                if update_existing:
                    self.storage.update_entry(entry)
                    result.updated += 1
            else:
                try:
                    self.storage.create_entry(entry)
                    result.created += 1
                except EntryConflictError as e:
                    self.logger.warning(
                        f"Unable to save entry {entry.url!r}: {e}",
                        extra={"feed_id": feed_id, "entry_hash": entry.hash},
                    )
                    result.failed.append(FailedEntry(title=entry.title, url=entry.url))

            result.hashes.append(entry.hash)

        if result.failed:
            self._notify(user_id, feed_id, result)

        try:
            removed = self.storage.cleanup_entries(feed_id, result.hashes)
        except StorageError as e:
            self.logger.error(f"Cleanup of feed {feed_id} failed: {e}", extra={"feed_id": feed_id})
        else:
            if removed:
                self.logger.debug(f"Cleanup removed {removed} entries", extra={"feed_id": feed_id})

        self.logger.debug(
            f"Reconciled feed {feed_id}: {result.created} created, "
            f"{result.updated} updated, {len(result.failed)} failed",
            extra={"feed_id": feed_id},
        )
        return result

    def _notify(self, user_id: int, feed_id: int, result: ReconcileResult) -> Optional[bool]:
        if self.notifier is None:
            self.logger.debug(f"No notifier configured, {len(result.failed)} failed entries not reported")
            return None
        try:
            return self.notifier.notify_failed_entries(user_id, feed_id, result.failed)
        except Exception as e:
            self.logger.error(f"Failed entry notification raised: {e}", extra={"feed_id": feed_id})
            return False
