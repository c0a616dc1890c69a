"""
Feed Parser
===========

Turns a raw feed document into a DraftFeed using feedparser.

RSS 0.9x/1.0/2.0 and Atom are handled by feedparser and normalized into
FeedSync entries. JSON Feed (1.0 and 1.1), which feedparser does not read,
is decoded with the json module and mapped onto the same DraftFeed.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin

import feedparser

from ..database.models import Entry
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import FeedParseError


@dataclass
class DraftFeed:
    """Parsed feed metadata and its entries in document order."""

    title: str = ""
    site_url: str = ""
    feed_url: str = ""
    entries: List[Entry] = field(default_factory=list)


class FeedParser:
    """feedparser wrapper producing DraftFeed objects."""

    def __init__(self):
        self.logger = get_logger_for_component("feed_parser")

    def parse(self, body: bytes, base_url: str = "", content_type: str = "") -> DraftFeed:
        """Parse a feed document.

        Args:
            body: Raw document bytes (or text)
            base_url: URL the document was fetched from, for relative links
            content_type: Response Content-Type

        Returns:
            DraftFeed with entries in document order

        Raises:
            FeedParseError: If the document is not a recognizable feed
        """
        if not body or not body.strip():
            raise FeedParseError("Empty feed document", feed_url=base_url or None)

        if self._is_json(body, content_type):
            return self._parse_json_feed(body, base_url)

        headers = {}
        if base_url:
            headers["content-location"] = base_url
        if content_type:
            headers["content-type"] = content_type
        parsed = feedparser.parse(body, response_headers=headers or None)

        if not parsed.get("version") and not parsed.entries:
            reason = parsed.get("bozo_exception") or "unsupported feed format"
            raise FeedParseError(
                f"Unable to parse feed: {reason}",
                feed_url=base_url or None,
            )

        if parsed.bozo:
            # Many feeds have minor formatting issues
            self.logger.debug(f"Feed parsing warning for {base_url}: {parsed.bozo_exception}")

        feed_data = parsed.feed
        site_url = self._resolve(base_url, feed_data.get("link", ""))
        draft = DraftFeed(
            title=(feed_data.get("title") or "").strip(),
            site_url=site_url,
            feed_url=self._self_link(feed_data, base_url),
        )

        for entry_data in parsed.entries:
            draft.entries.append(self._extract_entry(entry_data, site_url or base_url))

        if not draft.title:
            draft.title = draft.site_url or base_url

        self.logger.debug(f"Parsed {len(draft.entries)} entries from {base_url or 'document'}")
        return draft

    @staticmethod
    def _is_json(body, content_type: str) -> bool:
        if "json" in (content_type or "").lower():
            return True
        return body.lstrip()[:1] in (b"{", "{")

    def _parse_json_feed(self, body, base_url: str) -> DraftFeed:
        try:
            document = json.loads(body)
        except (ValueError, UnicodeDecodeError) as e:
            raise FeedParseError(f"Unable to parse JSON feed: {e}", feed_url=base_url or None) from e

        if not isinstance(document, dict) or not isinstance(document.get("items"), list):
            raise FeedParseError("Unable to parse JSON feed: missing items", feed_url=base_url or None)

        site_url = self._resolve(base_url, self._json_str(document, "home_page_url"))
        draft = DraftFeed(
            title=self._json_str(document, "title").strip(),
            site_url=site_url,
            feed_url=self._json_str(document, "feed_url") or base_url,
        )

        feed_author = self._json_author(document)
        for item in document["items"]:
            if isinstance(item, dict):
                draft.entries.append(self._extract_json_item(item, site_url or base_url, feed_author))

        if not draft.title:
            draft.title = draft.site_url or base_url

        self.logger.debug(f"Parsed {len(draft.entries)} JSON feed items from {base_url or 'document'}")
        return draft

    def _extract_json_item(self, item: Dict[str, Any], base_url: str, feed_author: str) -> Entry:
        url = self._resolve(base_url, self._json_str(item, "url") or self._json_str(item, "external_url"))
        content = (
            self._json_str(item, "content_html")
            or self._json_str(item, "content_text")
            or self._json_str(item, "summary")
        )
        title = self._json_str(item, "title").strip() or url

        item_id = item.get("id")
        return Entry(
            guid=str(item_id) if item_id not in (None, "") else None,
            title=title,
            url=url,
            author=self._json_author(item) or feed_author,
            content=content,
            published_at=self._json_date(item.get("date_published") or item.get("date_modified")),
        )

    @staticmethod
    def _json_str(data: Dict[str, Any], key: str) -> str:
        value = data.get(key)
        return value if isinstance(value, str) else ""

    @staticmethod
    def _json_author(data: Dict[str, Any]) -> str:
        # 1.1 uses an "authors" list, 1.0 a single "author" object
        authors = data.get("authors")
        candidates = authors if isinstance(authors, list) else [data.get("author")]
        for author in candidates:
            if isinstance(author, dict) and isinstance(author.get("name"), str):
                return author["name"]
        return ""

    @staticmethod
    def _json_date(value: Any) -> Optional[datetime]:
        if not isinstance(value, str) or not value:
            return None
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)

    def _extract_entry(self, entry_data: Any, base_url: str) -> Entry:
        url = self._resolve(base_url, entry_data.get("link", ""))

        content = ""
        if entry_data.get("content"):
            content = entry_data.content[0].get("value", "")
        if not content:
            content = entry_data.get("summary", "") or entry_data.get("description", "")

        author = entry_data.get("author", "")
        if not author and isinstance(entry_data.get("author_detail"), dict):
            author = entry_data.author_detail.get("name", "") or entry_data.author_detail.get("email", "")

        title = (entry_data.get("title") or "").strip() or url

        return Entry(
            guid=entry_data.get("id") or entry_data.get("guid"),
            title=title,
            url=url,
            comments_url=entry_data.get("comments", ""),
            author=author,
            content=content,
            published_at=self._entry_date(entry_data),
        )

    @staticmethod
    def _entry_date(entry_data: Any) -> Optional[datetime]:
        for key in ("published_parsed", "updated_parsed", "created_parsed"):
            value = entry_data.get(key)
            if value:
                try:
                    return datetime(*value[:6], tzinfo=timezone.utc)
                except (TypeError, ValueError):
                    continue
        return None

    @staticmethod
    def _self_link(feed_data: Any, base_url: str) -> str:
        for link in feed_data.get("links", []):
            if link.get("rel") == "self" and link.get("href"):
                return link["href"]
        return base_url

    @staticmethod
    def _resolve(base_url: str, link: str) -> str:
        if not link:
            return ""
        return urljoin(base_url, link) if base_url else link
