"""
FeedSync Storage Layer
======================

Repository pattern implementations for data access abstraction.

This module provides:
- Entry repository with hash-keyed deduplication and cleanup
- Feed repository for subscriptions, health state and icons
- User repository for users, categories and integrations
- Storage facade injected into the sync engine
"""

from .entry_repository import EntryRepository
from .feed_repository import FeedRepository
from .user_repository import UserRepository
from .store import Storage

__all__ = [
    "EntryRepository",
    "FeedRepository",
    "UserRepository",
    "Storage",
]
