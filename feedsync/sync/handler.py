"""
Feed Handler
============

Subscription and refresh cycles for a single feed.

Refresh cycle, in order: load, schedule next check, conditional fetch,
freshness check, parse, process and reconcile entries, refresh validators and
icon, reset health, persist. Every failure after scheduling is recorded on the
feed and persisted before it is raised, so the feed's state always reflects
the last cycle.
"""

from typing import NoReturn, Optional

from ..config.settings import get_settings
from ..database.models import Feed
from ..ingestion.fetcher import FeedFetcher
from ..ingestion.parser import FeedParser
from ..ingestion.processor import EntryProcessor
from ..locale.printer import Printer
from ..utils.logging import get_logger_for_component, PerformanceLogger
from ..utils.exceptions import (
    CategoryNotFoundError,
    DuplicateFeedError,
    FeedFetchError,
    FeedNotFoundError,
    FeedParseError,
    PersistentFeedError,
    StorageError,
)
from ..utils.validators import URLValidator
from .icons import check_feed_icon
from .outcome import RefreshOutcome, RefreshStatus
from .reconciler import EntryReconciler
from .scheduler import SchedulingPolicy, compute_next_check


class FeedHandler:
    """Creates and refreshes feeds on behalf of users.

    Holds no per-call state; one instance may serve many threads as long as
    callers never refresh the same feed concurrently.
    """

    def __init__(
        self,
        storage,
        fetcher: Optional[FeedFetcher] = None,
        parser: Optional[FeedParser] = None,
        processor: Optional[EntryProcessor] = None,
        icon_finder=None,
        notifier=None,
        policy: Optional[SchedulingPolicy] = None,
        persistent_error_threshold: Optional[int] = None,
    ):
        """Initialize feed handler.

        Args:
            storage: Storage facade
            fetcher: Fetch gateway (defaults to a FeedFetcher from settings)
            parser: Feed parser
            processor: Entry processor (defaults to one sharing the fetcher)
            icon_finder: Icon discovery, skipped when None
            notifier: Receives entries that failed to insert, skipped when None
            policy: Scheduling policy (defaults to the configured one)
            persistent_error_threshold: Error count from which failures are
                raised as PersistentFeedError (0 disables)
        """
        if policy is None or persistent_error_threshold is None:
            polling = get_settings().polling
            policy = policy or SchedulingPolicy.from_settings(polling)
            if persistent_error_threshold is None:
                persistent_error_threshold = polling.persistent_error_threshold

        self.storage = storage
        self.fetcher = fetcher or FeedFetcher()
        self.parser = parser or FeedParser()
        self.processor = processor or EntryProcessor(self.fetcher)
        self.icon_finder = icon_finder
        self.policy = policy
        self.persistent_error_threshold = persistent_error_threshold
        self.reconciler = EntryReconciler(storage, notifier)
        self.logger = get_logger_for_component("feed_handler")

    def create_feed(
        self,
        user_id: int,
        category_id: int,
        url: str,
        crawler: bool = False,
        user_agent: str = "",
        username: str = "",
        password: str = "",
        scraper_rules: str = "",
        rewrite_rules: str = "",
    ) -> Feed:
        """Fetch, parse and store a new feed with its entries.

        Returns:
            The persisted feed

        Raises:
            ValidationError: If the URL is not an http(s) URL
            CategoryNotFoundError: If the category is not the user's
            FeedFetchError: If the feed cannot be downloaded
            DuplicateFeedError: If the effective URL is already subscribed
            FeedParseError: If the document is not a feed
            StorageError: If the feed cannot be saved; nothing is kept
        """
        url = URLValidator.validate_feed_url(url)

        with PerformanceLogger(self.logger, "create_feed", feed_url=url, user_id=user_id):
            if not self.storage.category_exists(user_id, category_id):
                raise CategoryNotFoundError(category_id, user_id)

            response = self.fetcher.fetch(
                url, username=username, password=password, user_agent=user_agent
            )

            if self.storage.feed_url_exists(user_id, response.effective_url):
                raise DuplicateFeedError(response.effective_url)

            draft = self.parser.parse(
                response.body, base_url=response.effective_url, content_type=response.content_type
            )

            feed = Feed(
                user_id=user_id,
                title=draft.title,
                site_url=draft.site_url or response.effective_url,
                feed_url=draft.feed_url,
                entries=draft.entries,
            )
            feed.with_category_id(category_id)
            feed.with_browsing_parameters(
                crawler, user_agent, username, password, scraper_rules, rewrite_rules
            )
            feed.with_client_response(response)
            feed.checked_now()

            self.processor.process_feed_entries(feed)
            self.storage.create_feed(feed)

        self.logger.info(
            f"Subscribed user {user_id} to {feed.feed_url}",
            extra={"feed_id": feed.id, "entry_count": len(feed.entries)},
        )

        check_feed_icon(self.storage, self.icon_finder, feed.id, feed.site_url)
        return feed

    def refresh_feed(self, user_id: int, feed_id: int) -> RefreshOutcome:
        """Fetch a feed and bring its stored entries up to date.

        Returns:
            RefreshOutcome with status success or not_modified

        Raises:
            FeedNotFoundError: If the feed is missing or not the user's
            FeedFetchError, FeedParseError, StorageError: After the error has
                been recorded on the feed
            PersistentFeedError: Instead of the above once the feed's error
                count reaches the configured threshold
        """
        with PerformanceLogger(self.logger, "refresh_feed", feed_id=feed_id, user_id=user_id):
            return self._refresh(user_id, feed_id)

    def _refresh(self, user_id: int, feed_id: int) -> RefreshOutcome:
        printer = Printer(self.storage.user_language(user_id))

        feed = self.storage.feed_by_id(user_id, feed_id)
        if feed is None:
            raise FeedNotFoundError(feed_id, user_id)

        weekly_entry_count = 0
        if self.policy.uses_entry_frequency:
            weekly_entry_count = self.storage.weekly_entry_count(user_id, feed_id)

        feed.checked_now()
        feed.next_check_at = compute_next_check(
            self.policy, feed.parsing_error_count, weekly_entry_count, now=feed.checked_at
        )

        use_cache = not feed.ignore_http_cache
        try:
            response = self.fetcher.fetch(
                feed.feed_url,
                username=feed.username,
                password=feed.password,
                user_agent=feed.user_agent,
                etag=feed.etag_header if use_cache else "",
                last_modified=feed.last_modified_header if use_cache else "",
            )
        except FeedFetchError as e:
            self._record_failure(feed, printer.localize(e), e)

        if use_cache and not response.is_modified(feed.etag_header, feed.last_modified_header):
            self.logger.debug(f"Feed #{feed_id} not modified", extra={"feed_id": feed_id})
            outcome = RefreshOutcome(feed_id=feed_id, status=RefreshStatus.NOT_MODIFIED)
        else:
            self.logger.debug(f"Feed #{feed_id} has been modified", extra={"feed_id": feed_id})

            try:
                draft = self.parser.parse(
                    response.body, base_url=response.effective_url, content_type=response.content_type
                )
            except FeedParseError as e:
                self._record_failure(feed, printer.localize(e), e)

            feed.entries = draft.entries
            try:
                # Crawler feeds only crawl entries not stored yet
                self.processor.process_feed_entries(
                    feed, is_new=lambda entry: not self.storage.entry_exists(feed.id, entry.hash)
                )
                result = self.reconciler.update_entries(
                    user_id, feed.id, feed.entries, update_existing=not feed.crawler
                )
            except StorageError as e:
                self._record_failure(feed, str(e), e)

            # Validators are only refreshed on a modified response; some servers
            # send different headers with a 304.
            feed.with_client_response(response)
            check_feed_icon(self.storage, self.icon_finder, feed.id, feed.site_url)

            outcome = RefreshOutcome(
                feed_id=feed_id,
                status=RefreshStatus.SUCCESS,
                new_entries=result.created,
                updated_entries=result.updated,
            )

        feed.reset_error_counter()

        try:
            self.storage.update_feed(feed)
        except StorageError as e:
            self._record_failure(feed, str(e), e)

        self.logger.info(
            f"Refreshed feed #{feed_id}: {outcome.status.value}, "
            f"{outcome.new_entries} new, {outcome.updated_entries} updated",
            extra={"feed_id": feed_id, "user_id": user_id},
        )
        return outcome

    def _record_failure(self, feed: Feed, message: str, error: Exception) -> NoReturn:
        """Store the error on the feed, persist its health state and raise.

        Raises:
            StorageError: If the error state itself cannot be saved
            PersistentFeedError: If the error count reached the threshold
            Exception: ``error`` otherwise
        """
        feed.with_error(message)
        self.logger.warning(
            f"Refresh of feed #{feed.id} failed ({feed.parsing_error_count} in a row): {message}",
            extra={"feed_id": feed.id, "user_id": feed.user_id},
        )

        try:
            self.storage.update_feed_error(feed)
        except StorageError as store_error:
            self.logger.error(
                f"Unable to save error state of feed #{feed.id}: {store_error}",
                extra={"feed_id": feed.id},
            )
            raise store_error from error

        threshold = self.persistent_error_threshold
        if threshold and feed.parsing_error_count >= threshold:
            raise PersistentFeedError(feed.id, feed.parsing_error_count, message) from error

        raise error
