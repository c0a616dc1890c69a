"""
Feed Fetcher
============

Conditional HTTP GET for feed documents using requests.

This module provides:
- Cache validator handling (ETag / Last-Modified)
- HTTP basic credentials and per-feed User-Agent
- Mapping of transport and HTTP failures to FeedFetchError
- Response body size limits
"""

import time
from dataclasses import dataclass
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..config.settings import HTTPSettings, get_settings
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import FeedFetchError, ErrorCode


ACCEPT_HEADER = (
    "application/rss+xml, application/atom+xml, application/feed+json, "
    "application/xml;q=0.9, text/xml;q=0.9, */*;q=0.8"
)


@dataclass
class FetchResponse:
    """Result of a successful fetch."""

    effective_url: str
    body: bytes
    status_code: int
    etag: str = ""
    last_modified: str = ""
    content_type: str = ""

    def is_modified(self, etag: str, last_modified: str) -> bool:
        """Check whether the document changed since the given validators.

        A 304 means unchanged. Otherwise the ETag decides when the response
        carries one; Last-Modified is only compared when it does not.
        """
        if self.status_code == 304:
            return False
        if self.etag:
            return self.etag != etag
        if self.last_modified:
            return self.last_modified != last_modified
        return True

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


class FeedFetcher:
    """HTTP client used by the sync engine to download feeds and pages."""

    def __init__(self, http_settings: Optional[HTTPSettings] = None, session: Optional[requests.Session] = None):
        """Initialize feed fetcher.

        Args:
            http_settings: HTTP configuration (defaults to global settings)
            session: Preconfigured requests session (mainly for tests)
        """
        self.settings = http_settings or get_settings().http
        self.logger = get_logger_for_component("feed_fetcher")
        self.max_body_size = self.settings.max_body_size_mb * 1024 * 1024

        if session is None:
            session = requests.Session()
            retry_strategy = Retry(
                total=self.settings.max_retries,
                backoff_factor=1,
                status_forcelist=[429, 502, 503, 504],
                allowed_methods=["HEAD", "GET", "OPTIONS"],
                raise_on_status=False,
            )
            adapter = HTTPAdapter(max_retries=retry_strategy)
            session.mount("http://", adapter)
            session.mount("https://", adapter)
        self.session = session

    def fetch(
        self,
        url: str,
        username: str = "",
        password: str = "",
        user_agent: str = "",
        etag: str = "",
        last_modified: str = "",
        accept: str = ACCEPT_HEADER,
    ) -> FetchResponse:
        """Fetch a URL, sending cache validators when given.

        Args:
            url: URL to fetch
            username: HTTP basic auth username (optional)
            password: HTTP basic auth password
            user_agent: User-Agent override; defaults to the configured one
            etag: Stored ETag, sent as If-None-Match
            last_modified: Stored Last-Modified, sent as If-Modified-Since
            accept: Accept header

        Returns:
            FetchResponse with the post-redirect URL and new validators

        Raises:
            FeedFetchError: On network, timeout, HTTP status or size failure
        """
        headers = {
            "User-Agent": user_agent or self.settings.user_agent,
            "Accept": accept,
        }
        if etag:
            headers["If-None-Match"] = etag
        if last_modified:
            headers["If-Modified-Since"] = last_modified

        auth = (username, password) if username else None

        self.logger.debug(f"Fetching {url}", extra={"conditional": bool(etag or last_modified)})
        start_time = time.time()

        try:
            response = self.session.get(
                url,
                headers=headers,
                auth=auth,
                timeout=self.settings.request_timeout,
                allow_redirects=True,
                stream=True,
            )
        except requests.Timeout as e:
            raise FeedFetchError(
                f"Timeout while fetching {url}: {e}",
                feed_url=url,
                error_code=ErrorCode.FEED_FETCH_TIMEOUT,
            ) from e
        except requests.RequestException as e:
            raise FeedFetchError(
                f"Unable to fetch {url}: {e}",
                feed_url=url,
                error_code=ErrorCode.FEED_NETWORK_ERROR,
            ) from e

        try:
            if response.status_code == 304:
                self.logger.debug(f"Not modified: {url}")
                return FetchResponse(
                    effective_url=response.url or url,
                    body=b"",
                    status_code=304,
                    etag=response.headers.get("ETag", etag),
                    last_modified=response.headers.get("Last-Modified", last_modified),
                )

            self._raise_for_status(url, response.status_code)
            body = self._read_body(url, response)
        finally:
            response.close()

        self.logger.debug(
            f"Fetched {url} in {time.time() - start_time:.2f}s, size: {len(body)} bytes"
        )

        return FetchResponse(
            effective_url=response.url or url,
            body=body,
            status_code=response.status_code,
            etag=response.headers.get("ETag", ""),
            last_modified=response.headers.get("Last-Modified", ""),
            content_type=response.headers.get("Content-Type", ""),
        )

    def _raise_for_status(self, url: str, status_code: int) -> None:
        if status_code < 400:
            return

        if status_code in (401, 403):
            error_code = ErrorCode.FEED_ACCESS_DENIED
            message = f"Access denied to {url} (HTTP {status_code})"
        elif status_code in (404, 410):
            error_code = ErrorCode.FEED_NOT_FOUND
            message = f"Resource not found at {url} (HTTP {status_code})"
        else:
            error_code = ErrorCode.FEED_HTTP_ERROR
            message = f"Unexpected HTTP status {status_code} from {url}"

        raise FeedFetchError(message, feed_url=url, status_code=status_code, error_code=error_code)

    def _read_body(self, url: str, response: requests.Response) -> bytes:
        declared = response.headers.get("Content-Length")
        if declared and declared.isdigit() and int(declared) > self.max_body_size:
            raise FeedFetchError(
                f"Response from {url} is too large ({declared} bytes)",
                feed_url=url,
                error_code=ErrorCode.FEED_TOO_LARGE,
            )

        chunks = []
        size = 0
        try:
            for chunk in response.iter_content(chunk_size=64 * 1024):
                size += len(chunk)
                if size > self.max_body_size:
                    raise FeedFetchError(
                        f"Response from {url} exceeds {self.settings.max_body_size_mb} MB",
                        feed_url=url,
                        error_code=ErrorCode.FEED_TOO_LARGE,
                    )
                chunks.append(chunk)
        except requests.RequestException as e:
            raise FeedFetchError(
                f"Unable to read response from {url}: {e}",
                feed_url=url,
                error_code=ErrorCode.FEED_NETWORK_ERROR,
            ) from e

        return b"".join(chunks)
