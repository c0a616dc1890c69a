"""
Entry Repository
================

Repository for feed entries. Entries are keyed by (feed_id, hash); inserts
that violate that key surface as EntryConflictError so the reconciler can
tell a single-row conflict apart from a broken database.
"""

import sqlite3
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.models import Entry
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import StorageError, EntryConflictError, ErrorCode


WEEK = timedelta(days=7)


def to_db_timestamp(value: Optional[datetime]) -> Optional[str]:
    """Serialize a datetime as a sortable UTC ISO-8601 string."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


INSERT_ENTRY_SQL = """
    INSERT INTO entries (user_id, feed_id, hash, title, url, comments_url,
                         author, content, published_at, created_at, status, starred)
    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
"""


def entry_insert_params(entry: Entry) -> tuple:
    return (
        entry.user_id,
        entry.feed_id,
        entry.hash,
        entry.title,
        entry.url,
        entry.comments_url,
        entry.author,
        entry.content,
        to_db_timestamp(entry.published_at),
        to_db_timestamp(entry.created_at),
        entry.status.value,
        entry.starred,
    )


class EntryRepository:
    """Repository for Entry CRUD operations."""

    def __init__(self, db_connection: DatabaseConnection):
        """Initialize entry repository.

        Args:
            db_connection: Database connection manager
        """
        self.db = db_connection
        self.logger = get_logger_for_component("entry_repository")

    def entry_exists(self, feed_id: int, entry_hash: str) -> bool:
        """Check whether an entry with this hash is stored for the feed.

        Raises:
            StorageError: If the lookup fails
        """
        try:
            row = self.db.execute_one(
                "SELECT 1 FROM entries WHERE feed_id = ? AND hash = ?",
                (feed_id, entry_hash),
            )
            return row is not None
        except sqlite3.Error as e:
            raise StorageError(
                f"Unable to check entry {entry_hash} of feed {feed_id}: {e}",
                error_code=ErrorCode.DATABASE_ERROR,
            ) from e

    def create_entry(self, entry: Entry) -> int:
        """Insert a new entry.

        Returns:
            ID of the created entry

        Raises:
            EntryConflictError: If the row violates a constraint
            StorageError: For any other database failure
        """
        try:
            with self.db.get_connection() as conn:
                cursor = conn.execute(INSERT_ENTRY_SQL, entry_insert_params(entry))
                conn.commit()
                entry.id = cursor.lastrowid
        except sqlite3.IntegrityError as e:
            raise EntryConflictError(
                f"Unable to create entry {entry.url!r} (feed #{entry.feed_id}): {e}",
                entry_hash=entry.hash,
            ) from e
        except sqlite3.Error as e:
            raise StorageError(
                f"Unable to create entry {entry.url!r} (feed #{entry.feed_id}): {e}",
                error_code=ErrorCode.DATABASE_ERROR,
            ) from e

        self.logger.debug(f"Created entry {entry.id} for feed {entry.feed_id}")
        return entry.id

    def update_entry(self, entry: Entry) -> None:
        """Update title, URL, author and content of an existing entry.

        Reading status and starred flag belong to the user and are kept.

        Raises:
            StorageError: If the update fails
        """
        try:
            with self.db.get_connection() as conn:
                conn.execute(
                    """
                    UPDATE entries
                    SET title = ?, url = ?, comments_url = ?, author = ?, content = ?
                    WHERE user_id = ? AND feed_id = ? AND hash = ?
                    """,
                    (
                        entry.title,
                        entry.url,
                        entry.comments_url,
                        entry.author,
                        entry.content,
                        entry.user_id,
                        entry.feed_id,
                        entry.hash,
                    ),
                )
                conn.commit()
        except sqlite3.Error as e:
            raise StorageError(
                f"Unable to update entry {entry.url!r}: {e}",
                error_code=ErrorCode.DATABASE_ERROR,
            ) from e

    def cleanup_entries(self, feed_id: int, hashes: Sequence[str]) -> int:
        """Delete this feed's entries whose hash is not in ``hashes``.

        Starred entries are kept.

        Returns:
            Number of deleted entries

        Raises:
            StorageError: If the delete fails
        """
        keep = list(dict.fromkeys(hashes))
        try:
            with self.db.transaction() as conn:
                conn.execute("CREATE TEMP TABLE IF NOT EXISTS current_hashes (hash TEXT PRIMARY KEY)")
                conn.execute("DELETE FROM current_hashes")
                conn.executemany(
                    "INSERT OR IGNORE INTO current_hashes (hash) VALUES (?)",
                    [(h,) for h in keep],
                )
                cursor = conn.execute(
                    """
                    DELETE FROM entries
                    WHERE feed_id = ?
                    AND starred = FALSE
                    AND hash NOT IN (SELECT hash FROM current_hashes)
                    """,
                    (feed_id,),
                )
                deleted = cursor.rowcount
                conn.execute("DELETE FROM current_hashes")
        except sqlite3.Error as e:
            raise StorageError(
                f"Unable to cleanup entries of feed #{feed_id}: {e}",
                error_code=ErrorCode.DATABASE_TRANSACTION,
            ) from e

        if deleted:
            self.logger.info(f"Removed {deleted} stale entries from feed {feed_id}")
        return deleted

    def get_entries_by_feed(self, feed_id: int) -> List[Entry]:
        """Get all entries of a feed, oldest first."""
        try:
            rows = self.db.execute_query(
                "SELECT * FROM entries WHERE feed_id = ? ORDER BY id",
                (feed_id,),
            )
        except sqlite3.Error as e:
            raise StorageError(f"Unable to fetch entries of feed #{feed_id}: {e}") from e

        return [self._row_to_entry(row) for row in rows]

    def get_entry_by_hash(self, feed_id: int, entry_hash: str) -> Optional[Entry]:
        row = self.db.execute_one(
            "SELECT * FROM entries WHERE feed_id = ? AND hash = ?",
            (feed_id, entry_hash),
        )
        return self._row_to_entry(row) if row else None

    def set_starred(self, entry_id: int, starred: bool) -> None:
        self.db.execute_update(
            "UPDATE entries SET starred = ? WHERE id = ?", (starred, entry_id)
        )

    def weekly_entry_count(self, user_id: int, feed_id: int, now: Optional[datetime] = None) -> int:
        """Count entries created for the feed during the trailing seven days.

        Raises:
            StorageError: If the count fails
        """
        now = now or datetime.now(timezone.utc)
        since = to_db_timestamp(now - WEEK)
        try:
            row = self.db.execute_one(
                """
                SELECT COUNT(*) AS total FROM entries
                WHERE user_id = ? AND feed_id = ? AND created_at >= ?
                """,
                (user_id, feed_id, since),
            )
        except sqlite3.Error as e:
            raise StorageError(
                f"Unable to count weekly entries of feed #{feed_id}: {e}"
            ) from e

        return row["total"] if row else 0

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> Entry:
        data = dict(row)
        data["starred"] = bool(data.get("starred"))
        return Entry(**data)
