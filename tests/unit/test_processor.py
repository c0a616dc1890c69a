"""
Entry Processor Tests
=====================

Crawling, rewrite rules and sanitization of entry content.
"""

import pytest
from unittest.mock import Mock

from feedsync.database.models import Entry, Feed
from feedsync.ingestion.fetcher import FeedFetcher, FetchResponse
from feedsync.ingestion.processor import EntryProcessor
from feedsync.utils.exceptions import FeedFetchError


PAGE = """<html><head><title>Page</title></head><body>
<nav>Menu</nav>
<article><h1>Story</h1><p>Full story text</p></article>
<div class="content"><p>Custom region</p></div>
</body></html>"""


def page_response(html=PAGE, url="https://example.com/posts/a"):
    return FetchResponse(effective_url=url, body=html.encode("utf-8"), status_code=200, content_type="text/html")


@pytest.fixture
def fetcher():
    return Mock(spec=FeedFetcher)


@pytest.fixture
def processor(fetcher):
    return EntryProcessor(fetcher)


def make_feed(**overrides):
    entries = overrides.pop("entries", None) or [
        Entry(guid="a", title="A", url="https://example.com/posts/a", content="<p>Summary A</p>"),
        Entry(guid="b", title="B", url="https://example.com/posts/b", content="<p>Summary B</p>"),
    ]
    return Feed(id=1, feed_url="https://example.com/feed.xml", entries=entries, **overrides)


class TestCrawler:
    def test_non_crawler_feed_is_not_fetched(self, processor, fetcher):
        feed = make_feed()

        processor.process_feed_entries(feed)

        fetcher.fetch.assert_not_called()
        assert feed.entries[0].content == "<p>Summary A</p>"

    def test_crawls_new_entries_only(self, processor, fetcher):
        fetcher.fetch.return_value = page_response()
        feed = make_feed(crawler=True, user_agent="Agent/1.0")

        processor.process_feed_entries(feed, is_new=lambda entry: entry.title == "A")

        fetcher.fetch.assert_called_once()
        args, kwargs = fetcher.fetch.call_args
        assert args[0] == "https://example.com/posts/a"
        assert kwargs["user_agent"] == "Agent/1.0"
        assert feed.entries[0].content == "<article><h1>Story</h1><p>Full story text</p></article>"
        assert feed.entries[1].content == "<p>Summary B</p>"

    def test_scraper_rules_selector(self, processor, fetcher):
        fetcher.fetch.return_value = page_response()
        feed = make_feed(crawler=True, scraper_rules="div.content")

        processor.process_feed_entries(feed)

        assert feed.entries[0].content == '<div class="content"><p>Custom region</p></div>'

    def test_crawl_failure_keeps_summary(self, processor, fetcher):
        fetcher.fetch.side_effect = FeedFetchError("timeout")
        feed = make_feed(crawler=True)

        processor.process_feed_entries(feed)

        assert [entry.content for entry in feed.entries] == ["<p>Summary A</p>", "<p>Summary B</p>"]

    def test_nothing_scraped_keeps_summary(self, processor, fetcher):
        fetcher.fetch.return_value = page_response("<html><body><p>No article</p></body></html>")
        feed = make_feed(crawler=True)

        processor.process_feed_entries(feed)

        assert feed.entries[0].content == "<p>Summary A</p>"

    def test_entry_without_url_skipped(self, processor, fetcher):
        feed = make_feed(crawler=True, entries=[Entry(title="No link", content="text")])

        processor.process_feed_entries(feed)

        fetcher.fetch.assert_not_called()


class TestRewriteRules:
    def test_parse_rules(self):
        assert EntryProcessor.parse_rewrite_rules(" nl2br , remove_images,,") == ["nl2br", "remove_images"]
        assert EntryProcessor.parse_rewrite_rules("") == []

    def test_nl2br(self, processor):
        assert processor.rewrite("line one\nline two", ["nl2br"]) == "line one<br>line two"

    def test_remove_images(self, processor):
        content = processor.rewrite('<p>Text<img src="a.png"/></p>', ["remove_images"])

        assert "img" not in content
        assert "Text" in content

    def test_add_image_title(self, processor):
        content = processor.rewrite('<img src="a.png" title="A caption"/>', ["add_image_title"])

        assert "<figure>" in content
        assert "<figcaption>A caption</figcaption>" in content

    def test_unknown_rule_ignored(self, processor):
        assert processor.rewrite("<p>x</p>", ["does_not_exist"]) == "<p>x</p>"

    def test_rules_applied_during_processing(self, processor):
        feed = make_feed(rewrite_rules="nl2br", entries=[Entry(guid="a", content="a\nb")])

        processor.process_feed_entries(feed)

        assert feed.entries[0].content == "a<br/>b"


class TestSanitize:
    def test_removes_scripts_and_handlers(self, processor):
        content = processor.sanitize(
            '<p onclick="steal()">Hi<script>alert(1)</script></p><iframe src="https://x"></iframe>'
        )

        assert content == "<p>Hi</p>"

    def test_removes_javascript_links(self, processor):
        content = processor.sanitize('<a href="javascript:alert(1)">x</a><a href="https://ok">y</a>')

        assert content == '<a>x</a><a href="https://ok">y</a>'

    def test_removes_comments(self, processor):
        assert processor.sanitize("<p>a<!-- hidden --></p>") == "<p>a</p>"

    def test_nested_dangerous_elements(self, processor):
        assert processor.sanitize("<form><input/><button>b</button></form><p>ok</p>") == "<p>ok</p>"

    def test_plain_text_untouched(self, processor):
        assert processor.sanitize("Hello one") == "Hello one"
        assert processor.sanitize("") == ""
