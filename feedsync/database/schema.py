"""
FeedSync Database Schema
========================

SQLite schema with foreign key constraints and indexes:
- users: feed owners and their locale
- categories: per-user feed grouping
- feeds: subscriptions with cache validators and health state
- entries: feed items, unique per (feed_id, hash)
- icons / feed_icons: site icons shared between feeds
- integrations: per-user Telegram notification settings
"""

import sqlite3
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


EXPECTED_TABLES = {
    "categories",
    "entries",
    "feed_icons",
    "feeds",
    "icons",
    "integrations",
    "users",
}


class DatabaseSchema:
    """Database schema manager for the FeedSync SQLite database."""

    def __init__(self, db_path: str = "data/feedsync.db"):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def create_tables(self) -> None:
        """Create all database tables and indexes."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("PRAGMA foreign_keys = ON")

            # Dependency order
            self._create_users_table(conn)
            self._create_categories_table(conn)
            self._create_feeds_table(conn)
            self._create_entries_table(conn)
            self._create_icons_tables(conn)
            self._create_integrations_table(conn)

            self._create_indexes(conn)

            conn.commit()
            logger.info("Database schema created successfully")

    def _create_users_table(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS users (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                username TEXT NOT NULL UNIQUE,
                language TEXT NOT NULL DEFAULT 'en_US',
                timezone TEXT NOT NULL DEFAULT 'UTC',
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """
        )

    def _create_categories_table(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS categories (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL,
                title TEXT NOT NULL,
                FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE,
                UNIQUE(user_id, title)
            )
        """
        )

    def _create_feeds_table(self, conn: sqlite3.Connection) -> None:
        """Create feeds table; feed_url is unique per user."""
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS feeds (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL,
                category_id INTEGER NOT NULL,
                feed_url TEXT NOT NULL,
                site_url TEXT NOT NULL DEFAULT '',
                title TEXT NOT NULL DEFAULT '',
                username TEXT NOT NULL DEFAULT '',
                password TEXT NOT NULL DEFAULT '',
                user_agent TEXT NOT NULL DEFAULT '',
                crawler BOOLEAN NOT NULL DEFAULT FALSE,
                ignore_http_cache BOOLEAN NOT NULL DEFAULT FALSE,
                scraper_rules TEXT NOT NULL DEFAULT '',
                rewrite_rules TEXT NOT NULL DEFAULT '',
                etag_header TEXT NOT NULL DEFAULT '',
                last_modified_header TEXT NOT NULL DEFAULT '',
                parsing_error_count INTEGER NOT NULL DEFAULT 0,
                parsing_error_msg TEXT NOT NULL DEFAULT '',
                checked_at TIMESTAMP,
                next_check_at TIMESTAMP,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE,
                FOREIGN KEY (category_id) REFERENCES categories(id) ON DELETE CASCADE,
                UNIQUE(user_id, feed_url)
            )
        """
        )

    def _create_entries_table(self, conn: sqlite3.Connection) -> None:
        """Create entries table; hash is unique within a feed."""
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS entries (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL,
                feed_id INTEGER NOT NULL,
                hash TEXT NOT NULL,
                title TEXT NOT NULL DEFAULT '',
                url TEXT NOT NULL DEFAULT '',
                comments_url TEXT NOT NULL DEFAULT '',
                author TEXT NOT NULL DEFAULT '',
                content TEXT NOT NULL DEFAULT '',
                published_at TIMESTAMP,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                status TEXT NOT NULL DEFAULT 'unread' CHECK (status IN ('unread', 'read', 'removed')),
                starred BOOLEAN NOT NULL DEFAULT FALSE,
                FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE,
                FOREIGN KEY (feed_id) REFERENCES feeds(id) ON DELETE CASCADE,
                UNIQUE(feed_id, hash)
            )
        """
        )

    def _create_icons_tables(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS icons (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                hash TEXT NOT NULL UNIQUE,
                mime_type TEXT NOT NULL,
                content BLOB NOT NULL
            )
        """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS feed_icons (
                feed_id INTEGER PRIMARY KEY,
                icon_id INTEGER NOT NULL,
                FOREIGN KEY (feed_id) REFERENCES feeds(id) ON DELETE CASCADE,
                FOREIGN KEY (icon_id) REFERENCES icons(id) ON DELETE CASCADE
            )
        """
        )

    def _create_integrations_table(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS integrations (
                user_id INTEGER PRIMARY KEY,
                telegram_enabled BOOLEAN NOT NULL DEFAULT FALSE,
                telegram_token TEXT NOT NULL DEFAULT '',
                telegram_chat_id TEXT NOT NULL DEFAULT '',
                FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
            )
        """
        )

    def _create_indexes(self, conn: sqlite3.Connection) -> None:
        indexes = [
            "CREATE INDEX IF NOT EXISTS idx_feeds_next_check ON feeds(next_check_at)",
            "CREATE INDEX IF NOT EXISTS idx_feeds_user ON feeds(user_id)",
            "CREATE INDEX IF NOT EXISTS idx_feeds_error_count ON feeds(parsing_error_count)",
            "CREATE INDEX IF NOT EXISTS idx_entries_feed_created ON entries(feed_id, created_at)",
            "CREATE INDEX IF NOT EXISTS idx_entries_user_status ON entries(user_id, status)",
        ]

        for index_sql in indexes:
            conn.execute(index_sql)

    def drop_tables(self) -> None:
        """Drop all tables (for testing/reset purposes)."""
        with sqlite3.connect(self.db_path) as conn:
            tables = [
                "integrations",
                "feed_icons",
                "icons",
                "entries",
                "feeds",
                "categories",
                "users",
            ]
            for table in tables:
                conn.execute(f"DROP TABLE IF EXISTS {table}")

            conn.commit()
            logger.info("All database tables dropped")

    def verify_schema(self) -> bool:
        """Verify all expected tables exist."""
        with sqlite3.connect(self.db_path) as conn:
            rows = conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%'"
            ).fetchall()

        tables = {row[0] for row in rows}
        missing = EXPECTED_TABLES - tables
        if missing:
            logger.error(f"Missing tables: {sorted(missing)}")
            return False

        logger.info("Database schema verification passed")
        return True


def create_tables(db_path: str = "data/feedsync.db") -> None:
    """Convenience function to create database tables."""
    DatabaseSchema(db_path).create_tables()
