"""
Feed Repository
===============

Repository for feed subscriptions, their health state and their icons.
"""

import sqlite3
from datetime import datetime, timezone
from typing import List, Optional

from ..database.connection import DatabaseConnection
from ..database.models import Feed, Icon
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import StorageError, ErrorCode
from .entry_repository import INSERT_ENTRY_SQL, entry_insert_params, to_db_timestamp


class FeedRepository:
    """Repository for managing feeds in the database."""

    def __init__(self, db_connection: DatabaseConnection):
        """Initialize feed repository.

        Args:
            db_connection: Database connection manager
        """
        self.db = db_connection
        self.logger = get_logger_for_component("feed_repository")

    def create_feed(self, feed: Feed) -> int:
        """Insert a feed and its entries in one transaction.

        Drafts sharing a hash inside the same document collapse to one row.

        Returns:
            ID of the new feed

        Raises:
            StorageError: If anything fails; nothing is persisted in that case
        """
        try:
            with self.db.transaction() as conn:
                cursor = conn.execute(
                    """
                    INSERT INTO feeds (
                        user_id, category_id, feed_url, site_url, title,
                        username, password, user_agent, crawler, ignore_http_cache,
                        scraper_rules, rewrite_rules, etag_header, last_modified_header,
                        parsing_error_count, parsing_error_msg, checked_at, next_check_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        feed.user_id,
                        feed.category_id,
                        feed.feed_url,
                        feed.site_url,
                        feed.title,
                        feed.username,
                        feed.password,
                        feed.user_agent,
                        feed.crawler,
                        feed.ignore_http_cache,
                        feed.scraper_rules,
                        feed.rewrite_rules,
                        feed.etag_header,
                        feed.last_modified_header,
                        feed.parsing_error_count,
                        feed.parsing_error_msg,
                        to_db_timestamp(feed.checked_at),
                        to_db_timestamp(feed.next_check_at),
                    ),
                )
                feed_id = cursor.lastrowid

                for entry in feed.entries:
                    entry.feed_id = feed_id
                    entry.user_id = feed.user_id
                    conn.execute(
                        INSERT_ENTRY_SQL.replace("INSERT INTO", "INSERT OR IGNORE INTO", 1),
                        entry_insert_params(entry),
                    )

        except sqlite3.Error as e:
            raise StorageError(
                f"Unable to create feed {feed.feed_url!r}: {e}",
                error_code=ErrorCode.DATABASE_TRANSACTION,
            ) from e

        feed.id = feed_id
        self.logger.info(
            f"Created feed {feed_id} for user {feed.user_id}: {feed.feed_url}",
            extra={"entry_count": len(feed.entries)},
        )
        return feed_id

    def update_feed(self, feed: Feed) -> None:
        """Persist the full feed record (metadata, validators, health).

        Raises:
            StorageError: If the update fails
        """
        try:
            self.db.execute_update(
                """
                UPDATE feeds SET
                    feed_url = ?, site_url = ?, title = ?, category_id = ?,
                    username = ?, password = ?, user_agent = ?, crawler = ?,
                    ignore_http_cache = ?, scraper_rules = ?, rewrite_rules = ?,
                    etag_header = ?, last_modified_header = ?,
                    parsing_error_count = ?, parsing_error_msg = ?,
                    checked_at = ?, next_check_at = ?
                WHERE id = ? AND user_id = ?
                """,
                (
                    feed.feed_url,
                    feed.site_url,
                    feed.title,
                    feed.category_id,
                    feed.username,
                    feed.password,
                    feed.user_agent,
                    feed.crawler,
                    feed.ignore_http_cache,
                    feed.scraper_rules,
                    feed.rewrite_rules,
                    feed.etag_header,
                    feed.last_modified_header,
                    feed.parsing_error_count,
                    feed.parsing_error_msg,
                    to_db_timestamp(feed.checked_at),
                    to_db_timestamp(feed.next_check_at),
                    feed.id,
                    feed.user_id,
                ),
            )
        except sqlite3.Error as e:
            raise StorageError(
                f"Unable to update feed #{feed.id} ({feed.feed_url}): {e}",
                error_code=ErrorCode.DATABASE_ERROR,
            ) from e

    def update_feed_error(self, feed: Feed) -> None:
        """Persist only the health state and schedule of a feed.

        Raises:
            StorageError: If the update fails
        """
        try:
            self.db.execute_update(
                """
                UPDATE feeds SET
                    parsing_error_count = ?, parsing_error_msg = ?,
                    checked_at = ?, next_check_at = ?
                WHERE id = ? AND user_id = ?
                """,
                (
                    feed.parsing_error_count,
                    feed.parsing_error_msg,
                    to_db_timestamp(feed.checked_at),
                    to_db_timestamp(feed.next_check_at),
                    feed.id,
                    feed.user_id,
                ),
            )
        except sqlite3.Error as e:
            raise StorageError(
                f"Unable to update error state of feed #{feed.id}: {e}",
                error_code=ErrorCode.DATABASE_ERROR,
            ) from e

    def get_feed_by_id(self, user_id: int, feed_id: int) -> Optional[Feed]:
        """Get a feed owned by the user.

        Returns:
            Feed or None when absent or owned by someone else

        Raises:
            StorageError: If the query fails
        """
        try:
            row = self.db.execute_one(
                "SELECT * FROM feeds WHERE id = ? AND user_id = ?",
                (feed_id, user_id),
            )
        except sqlite3.Error as e:
            raise StorageError(f"Unable to fetch feed #{feed_id}: {e}") from e

        return self._row_to_feed(row) if row else None

    def feed_url_exists(self, user_id: int, feed_url: str) -> bool:
        try:
            row = self.db.execute_one(
                "SELECT 1 FROM feeds WHERE user_id = ? AND feed_url = ?",
                (user_id, feed_url),
            )
        except sqlite3.Error as e:
            raise StorageError(f"Unable to check feed URL {feed_url!r}: {e}") from e

        return row is not None

    def get_feeds_due(self, limit: int, now: Optional[datetime] = None) -> List[Feed]:
        """Get feeds whose next check time has passed, most overdue first.

        Feeds that were never scheduled come first.
        """
        now = now or datetime.now(timezone.utc)
        try:
            rows = self.db.execute_query(
                """
                SELECT * FROM feeds
                WHERE next_check_at IS NULL OR next_check_at <= ?
                ORDER BY next_check_at IS NOT NULL, next_check_at, id
                LIMIT ?
                """,
                (to_db_timestamp(now), limit),
            )
        except sqlite3.Error as e:
            raise StorageError(f"Unable to fetch due feeds: {e}") from e

        return [self._row_to_feed(row) for row in rows]

    def get_feeds_by_user(self, user_id: int) -> List[Feed]:
        rows = self.db.execute_query(
            "SELECT * FROM feeds WHERE user_id = ? ORDER BY title, id", (user_id,)
        )
        return [self._row_to_feed(row) for row in rows]

    def has_icon(self, feed_id: int) -> bool:
        try:
            row = self.db.execute_one(
                "SELECT 1 FROM feed_icons WHERE feed_id = ?", (feed_id,)
            )
        except sqlite3.Error as e:
            raise StorageError(f"Unable to check icon of feed #{feed_id}: {e}") from e

        return row is not None

    def create_feed_icon(self, feed_id: int, icon: Icon) -> None:
        """Store an icon (deduplicated by hash) and link it to the feed.

        Raises:
            StorageError: If the insert fails
        """
        try:
            with self.db.transaction() as conn:
                conn.execute(
                    "INSERT OR IGNORE INTO icons (hash, mime_type, content) VALUES (?, ?, ?)",
                    (icon.hash, icon.mime_type, icon.content),
                )
                icon.id = conn.execute(
                    "SELECT id FROM icons WHERE hash = ?", (icon.hash,)
                ).fetchone()["id"]
                conn.execute(
                    "INSERT OR REPLACE INTO feed_icons (feed_id, icon_id) VALUES (?, ?)",
                    (feed_id, icon.id),
                )
        except sqlite3.Error as e:
            raise StorageError(
                f"Unable to create icon for feed #{feed_id}: {e}",
                error_code=ErrorCode.DATABASE_TRANSACTION,
            ) from e

    def get_feed_icon(self, feed_id: int) -> Optional[Icon]:
        row = self.db.execute_one(
            """
            SELECT icons.* FROM icons
            JOIN feed_icons ON feed_icons.icon_id = icons.id
            WHERE feed_icons.feed_id = ?
            """,
            (feed_id,),
        )
        return Icon(**dict(row)) if row else None

    @staticmethod
    def _row_to_feed(row: sqlite3.Row) -> Feed:
        data = dict(row)
        data.pop("created_at", None)
        data["crawler"] = bool(data.get("crawler"))
        data["ignore_http_cache"] = bool(data.get("ignore_http_cache"))
        return Feed(**data)
