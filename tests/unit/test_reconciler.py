"""
Entry Reconciler Tests
======================

Per-entry insert/update/skip decisions, failure handling and cleanup, with
storage and notifier mocked.
"""

import pytest
from unittest.mock import Mock

from feedsync.database.models import Entry
from feedsync.sync.outcome import FailedEntry
from feedsync.sync.reconciler import EntryReconciler
from feedsync.utils.exceptions import EntryConflictError, StorageError


def make_entries(*slugs):
    return [
        Entry(guid=f"guid-{slug}", title=f"Title {slug}", url=f"https://example.com/{slug}", content=slug)
        for slug in slugs
    ]


@pytest.fixture
def storage():
    storage = Mock()
    storage.entry_exists.return_value = False
    storage.cleanup_entries.return_value = 0
    return storage


@pytest.fixture
def notifier():
    return Mock()


@pytest.fixture
def reconciler(storage, notifier):
    return EntryReconciler(storage, notifier)


class TestUpdateEntries:
    def test_new_entries_are_created(self, reconciler, storage, notifier):
        entries = make_entries("a", "b")

        result = reconciler.update_entries(1, 10, entries, update_existing=True)

        assert result.created == 2
        assert result.updated == 0
        assert storage.create_entry.call_count == 2
        assert all(entry.user_id == 1 and entry.feed_id == 10 for entry in entries)
        notifier.notify_failed_entries.assert_not_called()

    def test_three_new_two_seen(self, reconciler, storage):
        entries = make_entries("n1", "n2", "n3", "s1", "s2")
        seen = {entries[3].hash, entries[4].hash}
        storage.entry_exists.side_effect = lambda feed_id, entry_hash: entry_hash in seen

        result = reconciler.update_entries(1, 10, entries, update_existing=True)

        assert storage.create_entry.call_count == 3
        assert storage.update_entry.call_count == 2
        storage.cleanup_entries.assert_called_once_with(10, [entry.hash for entry in entries])
        assert result.hashes == [entry.hash for entry in entries]

    def test_existing_entries_untouched_when_updates_disabled(self, reconciler, storage):
        storage.entry_exists.return_value = True
        entries = make_entries("a", "b")

        result = reconciler.update_entries(1, 10, entries, update_existing=False)

        storage.update_entry.assert_not_called()
        storage.create_entry.assert_not_called()
        assert result.updated == 0
        assert result.hashes == [entry.hash for entry in entries]

    def test_conflicting_insert_is_collected(self, reconciler, storage, notifier):
        entries = make_entries("ok1", "bad", "ok2")

        def create(entry):
            if entry.title == "Title bad":
                raise EntryConflictError("UNIQUE constraint failed", entry_hash=entry.hash)
            return 1

        storage.create_entry.side_effect = create

        result = reconciler.update_entries(1, 10, entries, update_existing=True)

        assert result.created == 2
        assert result.failed == [FailedEntry(title="Title bad", url="https://example.com/bad")]
        assert storage.create_entry.call_count == 3
        notifier.notify_failed_entries.assert_called_once_with(1, 10, result.failed)
        # Failed hash still counts as current
        storage.cleanup_entries.assert_called_once_with(10, [entry.hash for entry in entries])

    def test_non_recoverable_error_aborts(self, reconciler, storage, notifier):
        entries = make_entries("a", "b", "c")
        storage.create_entry.side_effect = [1, StorageError("disk I/O error"), 3]

        with pytest.raises(StorageError, match="disk I/O error"):
            reconciler.update_entries(1, 10, entries, update_existing=True)

        assert storage.create_entry.call_count == 2
        notifier.notify_failed_entries.assert_not_called()
        storage.cleanup_entries.assert_not_called()

    def test_update_failure_aborts(self, reconciler, storage):
        storage.entry_exists.return_value = True
        storage.update_entry.side_effect = StorageError("database is locked")

        with pytest.raises(StorageError):
            reconciler.update_entries(1, 10, make_entries("a"), update_existing=True)

        storage.cleanup_entries.assert_not_called()

    def test_cleanup_failure_is_logged_not_raised(self, reconciler, storage):
        storage.cleanup_entries.side_effect = StorageError("cleanup failed")

        result = reconciler.update_entries(1, 10, make_entries("a"), update_existing=True)

        assert result.created == 1

    def test_notifier_failure_does_not_escalate(self, reconciler, storage, notifier):
        storage.create_entry.side_effect = EntryConflictError("conflict")
        notifier.notify_failed_entries.side_effect = RuntimeError("boom")

        result = reconciler.update_entries(1, 10, make_entries("a"), update_existing=True)

        assert len(result.failed) == 1
        storage.cleanup_entries.assert_called_once()

    def test_without_notifier(self, storage):
        storage.create_entry.side_effect = EntryConflictError("conflict")
        reconciler = EntryReconciler(storage)

        result = reconciler.update_entries(1, 10, make_entries("a"), update_existing=True)

        assert len(result.failed) == 1

    def test_empty_batch_cleans_everything(self, reconciler, storage):
        result = reconciler.update_entries(1, 10, [], update_existing=True)

        assert result.hashes == []
        storage.cleanup_entries.assert_called_once_with(10, [])

    def test_order_of_storage_calls(self, reconciler, storage, notifier):
        manager = Mock()
        manager.attach_mock(storage, "storage")
        manager.attach_mock(notifier, "notifier")
        storage.create_entry.side_effect = EntryConflictError("conflict")
        entries = make_entries("a")

        reconciler.update_entries(1, 10, entries, update_existing=True)

        names = [c[0] for c in manager.mock_calls]
        assert names.index("notifier.notify_failed_entries") < names.index("storage.cleanup_entries")
