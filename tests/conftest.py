"""
PyTest Configuration and Fixtures
=================================

Shared fixtures and configuration for FeedSync tests.

Performance Optimizations:
- Session-scoped database schema, created once
- Per-test cleanup of all rows instead of recreating the file
- Named test database for easier debugging
"""

import pytest
import tempfile
import os
from pathlib import Path
from unittest.mock import Mock

# Set test environment variables before any imports
_TEST_DIR = Path(tempfile.gettempdir()) / "feedsync_tests"
os.environ["FEEDSYNC_DATABASE__PATH"] = str(_TEST_DIR / "feedsync_settings.db")
os.environ["FEEDSYNC_LOGGING__FILE_PATH"] = ""
os.environ["FEEDSYNC_LOGGING__CONSOLE_LOGGING"] = "false"
os.environ["FEEDSYNC_DEBUG"] = "true"


RSS_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>{title}</title>
    <link>https://example.com/</link>
    <description>Sample feed</description>
    {items}
  </channel>
</rss>
"""

ITEM_TEMPLATE = """
    <item>
      <title>{title}</title>
      <link>https://example.com/posts/{slug}</link>
      <guid>https://example.com/posts/{slug}</guid>
      <description>{content}</description>
      <pubDate>Mon, 06 Jan 2025 10:00:00 GMT</pubDate>
    </item>
"""


def build_rss(items, title="Example Feed") -> bytes:
    """Build an RSS 2.0 document from (slug, title, content) tuples."""
    body = "".join(
        ITEM_TEMPLATE.format(slug=slug, title=item_title, content=content)
        for slug, item_title, content in items
    )
    return RSS_TEMPLATE.format(title=title, items=body).encode("utf-8")


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture(scope="session")
def session_test_db():
    """Session-scoped test database (created once for all tests).

    Database name: feedsync_test.db (easier to inspect/debug)
    """
    from feedsync.database.schema import DatabaseSchema

    _TEST_DIR.mkdir(exist_ok=True)
    db_path = _TEST_DIR / "feedsync_test.db"

    if db_path.exists():
        db_path.unlink()

    schema = DatabaseSchema(str(db_path))
    schema.create_tables()

    yield str(db_path)

    try:
        db_path.unlink()
    except FileNotFoundError:
        pass


@pytest.fixture
def clean_db(session_test_db):
    """Clean database fixture (clears data between tests).

    Returns:
        str: Path to clean database ready for testing
    """
    from feedsync.database.connection import DatabaseConnection

    conn = DatabaseConnection(session_test_db, pool_size=1)

    with conn.get_connection() as db:
        # Order matters for foreign keys
        db.execute("DELETE FROM integrations")
        db.execute("DELETE FROM feed_icons")
        db.execute("DELETE FROM icons")
        db.execute("DELETE FROM entries")
        db.execute("DELETE FROM feeds")
        db.execute("DELETE FROM categories")
        db.execute("DELETE FROM users")
        db.commit()

    conn.close_all_connections()

    yield session_test_db


@pytest.fixture
def db_connection(clean_db):
    """Create a database connection manager for testing."""
    from feedsync.database.connection import DatabaseConnection

    connection = DatabaseConnection(clean_db, pool_size=2)
    yield connection

    connection.close_all_connections()


@pytest.fixture
def storage(db_connection):
    """Storage facade over the clean test database."""
    from feedsync.storage import Storage

    return Storage(db_connection)


# ============================================================================
# Sample Data Fixtures
# ============================================================================


@pytest.fixture
def sample_user(storage):
    """A persisted user."""
    from feedsync.database.models import User

    user = User(username="alice", language="en_US")
    storage.create_user(user)
    return user


@pytest.fixture
def sample_category(storage, sample_user):
    """A persisted category owned by sample_user."""
    from feedsync.database.models import Category

    category = Category(user_id=sample_user.id, title="Tech")
    storage.create_category(category)
    return category


@pytest.fixture
def sample_feed(storage, sample_user, sample_category):
    """A persisted feed without entries."""
    from feedsync.database.models import Feed

    feed = Feed(
        user_id=sample_user.id,
        category_id=sample_category.id,
        feed_url="https://example.com/feed.xml",
        site_url="https://example.com/",
        title="Example Feed",
        etag_header='"v1"',
        last_modified_header="Mon, 06 Jan 2025 10:00:00 GMT",
    )
    storage.create_feed(feed)
    return feed


@pytest.fixture
def sample_rss():
    """RSS document with three items."""
    return build_rss(
        [
            ("one", "First post", "Hello one"),
            ("two", "Second post", "Hello two"),
            ("three", "Third post", "Hello three"),
        ]
    )


@pytest.fixture
def polling_policy():
    """Round robin policy with hourly checks."""
    from feedsync.sync.scheduler import SchedulingPolicy
    from feedsync.config.settings import SchedulerKind

    return SchedulingPolicy(kind=SchedulerKind.ROUND_ROBIN, frequency_minutes=60)


@pytest.fixture
def mock_fetcher():
    """Fetch gateway mock; set ``fetch.return_value`` or ``side_effect``."""
    from feedsync.ingestion.fetcher import FeedFetcher

    return Mock(spec=FeedFetcher)
