"""
Storage Facade
==============

Single object handed to the sync engine. It groups the repositories behind
the operations the handler, reconciler and notifier need, so those components
never touch connections or SQL directly.
"""

from datetime import datetime
from typing import List, Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.models import Category, Entry, Feed, Icon, Integration, User
from .entry_repository import EntryRepository
from .feed_repository import FeedRepository
from .user_repository import UserRepository


class Storage:
    """Persistence operations used by the feed synchronization engine."""

    def __init__(self, db_connection: DatabaseConnection):
        self.db = db_connection
        self.entries = EntryRepository(db_connection)
        self.feeds = FeedRepository(db_connection)
        self.users = UserRepository(db_connection)

    # Users, categories and integrations

    def create_user(self, user: User) -> int:
        return self.users.create_user(user)

    def user_language(self, user_id: int) -> str:
        return self.users.get_user_language(user_id)

    def create_category(self, category: Category) -> int:
        return self.users.create_category(category)

    def category_exists(self, user_id: int, category_id: int) -> bool:
        return self.users.category_exists(user_id, category_id)

    def integration(self, user_id: int) -> Optional[Integration]:
        return self.users.get_integration(user_id)

    def save_integration(self, integration: Integration) -> None:
        self.users.save_integration(integration)

    # Feeds

    def feed_url_exists(self, user_id: int, feed_url: str) -> bool:
        return self.feeds.feed_url_exists(user_id, feed_url)

    def feed_by_id(self, user_id: int, feed_id: int) -> Optional[Feed]:
        return self.feeds.get_feed_by_id(user_id, feed_id)

    def create_feed(self, feed: Feed) -> int:
        return self.feeds.create_feed(feed)

    def update_feed(self, feed: Feed) -> None:
        self.feeds.update_feed(feed)

    def update_feed_error(self, feed: Feed) -> None:
        self.feeds.update_feed_error(feed)

    def feeds_due(self, limit: int, now: Optional[datetime] = None) -> List[Feed]:
        return self.feeds.get_feeds_due(limit, now)

    def has_icon(self, feed_id: int) -> bool:
        return self.feeds.has_icon(feed_id)

    def create_feed_icon(self, feed_id: int, icon: Icon) -> None:
        self.feeds.create_feed_icon(feed_id, icon)

    # Entries

    def entry_exists(self, feed_id: int, entry_hash: str) -> bool:
        return self.entries.entry_exists(feed_id, entry_hash)

    def create_entry(self, entry: Entry) -> int:
        return self.entries.create_entry(entry)

    def update_entry(self, entry: Entry) -> None:
        self.entries.update_entry(entry)

    def cleanup_entries(self, feed_id: int, hashes: Sequence[str]) -> int:
        return self.entries.cleanup_entries(feed_id, hashes)

    def weekly_entry_count(self, user_id: int, feed_id: int) -> int:
        return self.entries.weekly_entry_count(user_id, feed_id)

    def entries_by_feed(self, feed_id: int) -> List[Entry]:
        return self.entries.get_entries_by_feed(feed_id)
