"""
FeedSync Data Models
====================

Pydantic data models for users, categories, feeds, entries, icons and
notification integrations. These models correspond to the database schema.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field
import hashlib


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def hash_value(value: str) -> str:
    """SHA-256 hex digest used for entry and icon deduplication."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


class EntryStatus(str, Enum):
    """Reading status of an entry."""
    UNREAD = "unread"
    READ = "read"
    REMOVED = "removed"


class User(BaseModel):
    """Owner of categories and feeds."""
    id: Optional[int] = Field(default=None, description="Database primary key")
    username: str = Field(..., min_length=1, max_length=255)
    language: str = Field(default="en_US", description="Locale used for error messages")
    timezone: str = Field(default="UTC")

    def __str__(self) -> str:
        return f"User({self.username})"


class Category(BaseModel):
    """User-owned feed category."""
    id: Optional[int] = Field(default=None, description="Database primary key")
    user_id: int = Field(..., description="Owning user")
    title: str = Field(..., min_length=1, max_length=255)

    def __str__(self) -> str:
        return f"Category({self.title})"


class Entry(BaseModel):
    """Feed item, deduplicated by hash within its feed."""
    id: Optional[int] = Field(default=None, description="Database primary key")
    user_id: Optional[int] = Field(default=None)
    feed_id: Optional[int] = Field(default=None)
    hash: str = Field(default="", description="Deduplication key")
    title: str = Field(default="")
    url: str = Field(default="")
    comments_url: str = Field(default="")
    author: str = Field(default="")
    content: str = Field(default="")
    published_at: Optional[datetime] = Field(default=None)
    created_at: Optional[datetime] = Field(default_factory=utcnow)
    status: EntryStatus = Field(default=EntryStatus.UNREAD)
    starred: bool = Field(default=False)

    def __init__(self, **data):
        """Initialize entry, deriving the hash when the source gave none."""
        if not data.get("hash"):
            data["hash"] = self.compute_hash(
                guid=data.pop("guid", None),
                url=data.get("url", ""),
                title=data.get("title", ""),
                content=data.get("content", ""),
            )
        else:
            data.pop("guid", None)
        super().__init__(**data)

    @staticmethod
    def compute_hash(guid: Optional[str], url: str = "", title: str = "", content: str = "") -> str:
        """Hash the most stable identity available: GUID, then URL, then title and content."""
        if guid:
            return hash_value(guid)
        if url:
            return hash_value(url)
        return hash_value(f"{title}{content}")

    def __str__(self) -> str:
        return f"Entry({self.title[:50]})"


class Icon(BaseModel):
    """Site icon."""
    id: Optional[int] = Field(default=None)
    hash: str = Field(default="")
    mime_type: str = Field(default="image/x-icon")
    content: bytes = Field(default=b"")

    def __init__(self, **data):
        if not data.get("hash") and data.get("content"):
            data["hash"] = hashlib.sha256(data["content"]).hexdigest()
        super().__init__(**data)


class Integration(BaseModel):
    """Per-user notification integration settings."""
    user_id: int
    telegram_enabled: bool = Field(default=False)
    telegram_token: str = Field(default="")
    telegram_chat_id: str = Field(default="")

    def telegram_ready(self) -> bool:
        """Check that the Telegram integration can be used."""
        return self.telegram_enabled and bool(self.telegram_token)


class Feed(BaseModel):
    """Subscribed feed with cache validators and health state."""
    id: Optional[int] = Field(default=None, description="Database primary key")
    user_id: Optional[int] = Field(default=None)
    category_id: Optional[int] = Field(default=None)
    feed_url: str = Field(default="", description="Effective feed URL")
    site_url: str = Field(default="")
    title: str = Field(default="")
    username: str = Field(default="")
    password: str = Field(default="")
    user_agent: str = Field(default="")
    crawler: bool = Field(default=False, description="Crawl full content of new entries")
    ignore_http_cache: bool = Field(default=False)
    scraper_rules: str = Field(default="")
    rewrite_rules: str = Field(default="")
    etag_header: str = Field(default="")
    last_modified_header: str = Field(default="")
    parsing_error_count: int = Field(default=0, ge=0, description="Consecutive error count")
    parsing_error_msg: str = Field(default="")
    checked_at: Optional[datetime] = Field(default=None)
    next_check_at: Optional[datetime] = Field(default=None)
    entries: List[Entry] = Field(default_factory=list, exclude=True)

    def checked_now(self) -> None:
        """Stamp the last-checked time."""
        self.checked_at = utcnow()

    def with_error(self, message: str) -> None:
        """Record a failure on the health state."""
        self.parsing_error_count += 1
        self.parsing_error_msg = message

    def reset_error_counter(self) -> None:
        self.parsing_error_count = 0
        self.parsing_error_msg = ""

    def with_category_id(self, category_id: int) -> None:
        self.category_id = category_id

    def with_browsing_parameters(
        self,
        crawler: bool,
        user_agent: str,
        username: str,
        password: str,
        scraper_rules: str,
        rewrite_rules: str,
    ) -> None:
        self.crawler = crawler
        self.user_agent = user_agent
        self.username = username
        self.password = password
        self.scraper_rules = scraper_rules
        self.rewrite_rules = rewrite_rules

    def with_client_response(self, response) -> None:
        """Copy the effective URL and cache validators from a fetch response."""
        self.feed_url = response.effective_url
        self.etag_header = response.etag
        self.last_modified_header = response.last_modified

    def is_healthy(self) -> bool:
        return self.parsing_error_count == 0

    def __str__(self) -> str:
        return f"Feed({self.title or self.feed_url})"
