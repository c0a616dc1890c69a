"""
Foundation Tests for FeedSync
=============================

Test suite for core foundation components including database,
configuration, logging, models and validation.
"""

import pytest
import sqlite3
import logging
from unittest.mock import MagicMock

from feedsync.database.schema import DatabaseSchema
from feedsync.database.connection import DatabaseConnection
from feedsync.database.models import Entry, Feed, Icon, Integration, hash_value
from feedsync.config.settings import FeedSyncSettings, PollingSettings, SchedulerKind
from feedsync.ingestion.fetcher import FetchResponse
from feedsync.utils.logging import get_logger_for_component, PerformanceLogger, setup_logger
from feedsync.utils.exceptions import (
    FeedSyncError,
    ConfigurationError,
    EntryConflictError,
    ErrorCode,
    FeedFetchError,
    FeedParseError,
    StorageError,
    ValidationError,
    handle_exception,
    get_user_friendly_message,
)
from feedsync.utils.validators import URLValidator, TelegramValidator


class TestDatabaseSchema:
    """Test database schema creation and validation."""

    def test_create_tables(self, tmp_path):
        """Test database table creation."""
        db_path = tmp_path / "test.db"
        schema = DatabaseSchema(str(db_path))

        schema.create_tables()

        with sqlite3.connect(db_path) as conn:
            cursor = conn.execute("""
                SELECT name FROM sqlite_master
                WHERE type='table' AND name NOT LIKE 'sqlite_%'
            """)
            tables = {row[0] for row in cursor.fetchall()}

        assert tables == {"users", "categories", "feeds", "entries", "icons", "feed_icons", "integrations"}

    def test_verify_schema(self, tmp_path):
        """Test schema verification."""
        schema = DatabaseSchema(str(tmp_path / "test.db"))

        assert not schema.verify_schema()

        schema.create_tables()
        assert schema.verify_schema()

    def test_entry_hash_unique_per_feed(self, tmp_path):
        db_path = tmp_path / "test.db"
        DatabaseSchema(str(db_path)).create_tables()

        with sqlite3.connect(db_path) as conn:
            conn.execute("INSERT INTO users (username) VALUES ('alice')")
            conn.execute("INSERT INTO categories (user_id, title) VALUES (1, 'Tech')")
            conn.execute(
                "INSERT INTO feeds (user_id, category_id, feed_url) VALUES (1, 1, 'https://example.com/feed')"
            )
            conn.execute("INSERT INTO entries (user_id, feed_id, hash) VALUES (1, 1, 'abc')")

            with pytest.raises(sqlite3.IntegrityError):
                conn.execute("INSERT INTO entries (user_id, feed_id, hash) VALUES (1, 1, 'abc')")


class TestDatabaseConnection:
    """Test database connection management and pooling."""

    def test_connection_creation(self, tmp_path):
        db_manager = DatabaseConnection(str(tmp_path / "test.db"), pool_size=2)

        with db_manager.get_connection() as conn:
            assert conn.execute("SELECT 1").fetchone()[0] == 1

        db_manager.close_all_connections()

    def test_transaction_rollback(self, tmp_path):
        """Test transaction rollback on errors."""
        db_path = tmp_path / "test.db"
        DatabaseSchema(str(db_path)).create_tables()
        db_manager = DatabaseConnection(str(db_path), pool_size=1)

        with pytest.raises(sqlite3.IntegrityError):
            with db_manager.transaction() as conn:
                conn.execute("INSERT INTO users (username) VALUES ('alice')")
                conn.execute("INSERT INTO users (username) VALUES ('alice')")

        assert db_manager.execute_one("SELECT COUNT(*) AS total FROM users")["total"] == 0
        db_manager.close_all_connections()


class TestConfiguration:
    """Test configuration loading and validation."""

    def test_defaults(self):
        settings = FeedSyncSettings()

        assert settings.polling.scheduler == SchedulerKind.ROUND_ROBIN
        assert settings.polling.frequency_minutes == 60
        assert settings.http.request_timeout == 20

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("FEEDSYNC_POLLING__SCHEDULER", "entry_frequency")
        monkeypatch.setenv("FEEDSYNC_POLLING__MAX_INTERVAL_MINUTES", "120")
        monkeypatch.setenv("FEEDSYNC_HTTP__USER_AGENT", "Tester/2.0")

        settings = FeedSyncSettings()

        assert settings.polling.scheduler == SchedulerKind.ENTRY_FREQUENCY
        assert settings.polling.max_interval_minutes == 120
        assert settings.http.user_agent == "Tester/2.0"

    def test_interval_bounds_validated(self):
        with pytest.raises(ValueError):
            PollingSettings(min_interval_minutes=500, max_interval_minutes=100)

    def test_debug_log_level(self):
        assert FeedSyncSettings(debug=True).get_effective_log_level() == "DEBUG"


class TestLogging:
    """Test logging helpers."""

    def test_component_logger_context(self):
        logger = get_logger_for_component("feed_handler", feed_id=3)

        assert logger.logger.name == "feedsync.feed_handler"
        assert logger.extra == {"component": "feed_handler", "feed_id": 3}

    def test_setup_logger_without_file(self):
        logger = setup_logger("feedsync.test_setup", level="WARNING", console=False)

        assert logger.level == logging.WARNING

    def test_performance_logger_reports_failure(self):
        logger = MagicMock()

        with pytest.raises(ValueError):
            with PerformanceLogger(logger, "refresh_feed", feed_id=1):
                raise ValueError("boom")

        logger.warning.assert_called_once()
        assert logger.warning.call_args.kwargs["extra"]["success"] is False


class TestExceptions:
    """Test exception hierarchy and helpers."""

    def test_error_code_in_str(self):
        error = StorageError("database is locked")

        assert str(error) == "[D006] database is locked"
        assert error.to_dict()["error_type"] == "StorageError"

    def test_entry_conflict_is_recoverable_storage_error(self):
        error = EntryConflictError("UNIQUE constraint failed", entry_hash="abc")

        assert isinstance(error, StorageError)
        assert error.recoverable
        assert error.error_code == ErrorCode.DATABASE_CONSTRAINT
        assert error.context["entry_hash"] == "abc"

    def test_fetch_error_status_code(self):
        error = FeedFetchError("boom", feed_url="https://example.com", status_code=503)

        assert error.status_code == 503
        assert error.context == {"status_code": 503, "feed_url": "https://example.com"}

    def test_parse_error_not_recoverable(self):
        error = FeedParseError("bad xml")

        assert error.error_code == ErrorCode.FEED_PARSE_ERROR
        assert not error.recoverable

    def test_handle_exception_wraps_generic_errors(self):
        logger = MagicMock()

        error = handle_exception(TimeoutError("slow"), logger, "refresh_feed")

        assert isinstance(error, FeedSyncError)
        assert error.error_code == ErrorCode.FEED_NETWORK_ERROR
        logger.error.assert_called_once()

    def test_handle_exception_passes_feedsync_errors(self):
        original = ConfigurationError("bad")

        assert handle_exception(original, MagicMock(), "load") is original

    def test_user_friendly_message(self):
        assert get_user_friendly_message(ValidationError("nope", field_name="url")) == "Invalid url: nope"
        assert "unexpected" in get_user_friendly_message(KeyError("x"))


class TestModels:
    """Test data model behaviour."""

    def test_entry_hash_prefers_guid(self):
        entry = Entry(guid="tag:example.com,2025:1", url="https://example.com/1", title="One")

        assert entry.hash == hash_value("tag:example.com,2025:1")

    def test_entry_hash_falls_back_to_url(self):
        assert Entry(url="https://example.com/1").hash == hash_value("https://example.com/1")

    def test_entry_hash_falls_back_to_title_and_content(self):
        assert Entry(title="T", content="C").hash == hash_value("TC")

    def test_explicit_hash_kept(self):
        assert Entry(hash="abc", guid="ignored").hash == "abc"

    def test_icon_hash_from_content(self):
        assert Icon(content=b"a").hash == Icon(content=b"a").hash
        assert Icon(content=b"a").hash != Icon(content=b"b").hash

    def test_feed_health_transitions(self):
        feed = Feed(feed_url="https://example.com/feed")

        feed.with_error("first")
        feed.with_error("second")
        assert feed.parsing_error_count == 2
        assert feed.parsing_error_msg == "second"
        assert not feed.is_healthy()

        feed.reset_error_counter()
        assert feed.is_healthy()
        assert feed.parsing_error_msg == ""

    def test_feed_client_response(self):
        feed = Feed(feed_url="http://example.com/feed")
        response = FetchResponse(
            effective_url="https://example.com/feed",
            body=b"",
            status_code=200,
            etag='"x"',
            last_modified="Mon, 06 Jan 2025 10:00:00 GMT",
        )

        feed.with_client_response(response)

        assert feed.feed_url == "https://example.com/feed"
        assert feed.etag_header == '"x"'

    def test_feed_entries_not_serialized(self):
        feed = Feed(entries=[Entry(url="https://example.com/1")])

        assert "entries" not in feed.model_dump()

    def test_integration_ready(self):
        assert Integration(user_id=1, telegram_enabled=True, telegram_token="t").telegram_ready()
        assert not Integration(user_id=1, telegram_enabled=True).telegram_ready()
        assert not Integration(user_id=1, telegram_token="t").telegram_ready()


class TestValidators:
    """Test input validators."""

    def test_feed_url_normalized(self):
        assert URLValidator.validate_feed_url("  HTTPS://Example.COM  ") == "https://example.com/"
        assert URLValidator.validate_feed_url("http://example.com/feed#top") == "http://example.com/feed"

    @pytest.mark.parametrize("url", ["", "javascript:alert(1)", "ftp://example.com/feed", "https://"])
    def test_invalid_feed_urls(self, url):
        with pytest.raises(ValidationError):
            URLValidator.validate_feed_url(url)

    def test_message_truncated(self):
        content = TelegramValidator.validate_message_content("x" * 5000)

        assert len(content) <= TelegramValidator.MAX_MESSAGE_LENGTH

    def test_empty_message_rejected(self):
        with pytest.raises(ValidationError):
            TelegramValidator.validate_message_content("   ")

    def test_chat_id(self):
        assert TelegramValidator.parse_chat_id(" -100123 ") == -100123

        with pytest.raises(ValidationError):
            TelegramValidator.parse_chat_id("@channel")
