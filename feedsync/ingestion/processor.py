"""
Entry Processor
===============

Post-processing applied to draft entries before they are reconciled.

This module provides:
- Full-content crawling with CSS scraper rules (crawler feeds, new entries only)
- Rewrite rules: add_image_title, remove_images, nl2br
- HTML sanitization of entry content
"""

from typing import Callable, List, Optional

from bs4 import BeautifulSoup, Comment

from ..database.models import Entry, Feed
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import FeedSyncError
from .fetcher import FeedFetcher


HTML_ACCEPT_HEADER = "text/html,application/xhtml+xml;q=0.9,*/*;q=0.8"


class EntryProcessor:
    """Crawls, rewrites and sanitizes entry content."""

    # Removed together with their content
    DANGEROUS_ELEMENTS = {
        "script",
        "style",
        "iframe",
        "embed",
        "object",
        "applet",
        "form",
        "input",
        "button",
        "meta",
        "link",
        "base",
        "noscript",
    }

    FALLBACK_SELECTORS = ["article", "main"]

    def __init__(self, fetcher: Optional[FeedFetcher] = None):
        """Initialize entry processor.

        Args:
            fetcher: HTTP client used to crawl entry pages
        """
        self.fetcher = fetcher
        self.logger = get_logger_for_component("entry_processor")
        self.parser = "html.parser"

    def process_feed_entries(
        self, feed: Feed, is_new: Optional[Callable[[Entry], bool]] = None
    ) -> None:
        """Process ``feed.entries`` in place.

        Args:
            feed: Feed carrying entries and its rules
            is_new: Predicate telling whether an entry is not stored yet;
                every entry is treated as new when omitted
        """
        rules = self.parse_rewrite_rules(feed.rewrite_rules)

        for entry in feed.entries:
            if feed.crawler and self.fetcher is not None and (is_new is None or is_new(entry)):
                self._crawl(feed, entry)

            entry.content = self.rewrite(entry.content, rules)
            entry.content = self.sanitize(entry.content)

    def _crawl(self, feed: Feed, entry: Entry) -> None:
        if not entry.url:
            return

        try:
            response = self.fetcher.fetch(
                entry.url,
                user_agent=feed.user_agent,
                accept=HTML_ACCEPT_HEADER,
            )
        except FeedSyncError as e:
            self.logger.warning(f"Unable to crawl {entry.url}: {e}", extra={"feed_id": feed.id})
            return

        try:
            content = self.scrape(response.text, feed.scraper_rules)
        except Exception as e:
            self.logger.warning(f"Unable to scrape {entry.url}: {e}", extra={"feed_id": feed.id})
            return

        if content:
            entry.content = content
        else:
            self.logger.debug(f"No content extracted from {entry.url}", extra={"feed_id": feed.id})

    def scrape(self, page_html: str, scraper_rules: str = "") -> str:
        """Extract the relevant part of a web page.

        Args:
            page_html: Full page HTML
            scraper_rules: CSS selector(s); article and main are tried when empty
                or when nothing matches

        Returns:
            Extracted HTML, empty when nothing matched
        """
        soup = BeautifulSoup(page_html, self.parser)

        selectors = [scraper_rules] if scraper_rules else []
        selectors.extend(self.FALLBACK_SELECTORS)

        for selector in selectors:
            nodes = soup.select(selector)
            if nodes:
                return "".join(str(node) for node in nodes)

        return ""

    @staticmethod
    def parse_rewrite_rules(rewrite_rules: str) -> List[str]:
        return [rule.strip() for rule in (rewrite_rules or "").split(",") if rule.strip()]

    def rewrite(self, content: str, rules: List[str]) -> str:
        """Apply rewrite rules in order; unknown rules are ignored."""
        if not content or not rules:
            return content

        for rule in rules:
            if rule == "nl2br":
                content = content.replace("\r\n", "\n").replace("\n", "<br>")
            elif rule == "add_image_title":
                content = self._add_image_title(content)
            elif rule == "remove_images":
                content = self._remove_images(content)
            else:
                self.logger.debug(f"Unknown rewrite rule: {rule}")

        return content

    def _add_image_title(self, content: str) -> str:
        soup = BeautifulSoup(content, self.parser)
        images = [img for img in soup.find_all("img") if img.get("title")]
        if not images:
            return content

        for img in images:
            figure = soup.new_tag("figure")
            caption = soup.new_tag("figcaption")
            caption.string = img["title"]
            img.wrap(figure)
            figure.append(caption)

        return str(soup)

    def _remove_images(self, content: str) -> str:
        soup = BeautifulSoup(content, self.parser)
        for img in soup.find_all("img"):
            img.decompose()
        return str(soup)

    def sanitize(self, content: str) -> str:
        """Strip scripts, embedded frames, comments and event handlers."""
        if not content or not content.strip():
            return content

        soup = BeautifulSoup(content, self.parser)

        for element in soup.find_all(sorted(self.DANGEROUS_ELEMENTS)):
            if not element.decomposed:
                element.decompose()

        for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
            comment.extract()

        for tag in soup.find_all(True):
            for attr in list(tag.attrs):
                value = tag.attrs[attr]
                if attr.lower().startswith("on"):
                    del tag.attrs[attr]
                elif attr in ("href", "src") and isinstance(value, str) and value.strip().lower().startswith(
                    ("javascript:", "vbscript:")
                ):
                    del tag.attrs[attr]

        return str(soup)
