"""
FeedSync Ingestion Module
=========================

Collaborators that bring remote content into the sync engine.

This module handles:
- Conditional HTTP fetching of feeds and pages
- Feed document parsing
- Entry crawling, rewriting and sanitization
- Website icon discovery
"""

from .fetcher import FeedFetcher, FetchResponse
from .parser import FeedParser, DraftFeed
from .processor import EntryProcessor
from .icon_finder import IconFinder

__all__ = [
    "FeedFetcher",
    "FetchResponse",
    "FeedParser",
    "DraftFeed",
    "EntryProcessor",
    "IconFinder",
]
