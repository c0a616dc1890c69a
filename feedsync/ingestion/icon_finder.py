"""
Icon Finder
===========

Discovers a website's icon from its HTML head or the /favicon.ico fallback.
"""

from typing import List, Optional
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

from ..database.models import Icon
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import FeedFetchError
from .fetcher import FeedFetcher


ICON_RELS = ["icon", "shortcut icon", "apple-touch-icon"]


class IconFinder:
    """Looks up a site icon through the feed fetcher."""

    def __init__(self, fetcher: FeedFetcher):
        self.fetcher = fetcher
        self.logger = get_logger_for_component("icon_finder")

    def find_icon(self, site_url: str) -> Optional[Icon]:
        """Find the icon of a website.

        Returns:
            Icon, or None when the site declares none and has no favicon.ico

        Raises:
            FeedFetchError: If the site URL is empty
        """
        if not site_url:
            raise FeedFetchError("No website URL to look up an icon for")

        for icon_url in self._candidate_urls(site_url):
            icon = self._download(icon_url)
            if icon is not None:
                self.logger.debug(f"Found icon {icon_url} for {site_url}")
                return icon

        return None

    def _candidate_urls(self, site_url: str) -> List[str]:
        candidates = []

        try:
            response = self.fetcher.fetch(site_url, accept="text/html,*/*;q=0.8")
        except FeedFetchError as e:
            self.logger.debug(f"Unable to load {site_url} for icon discovery: {e}")
        else:
            soup = BeautifulSoup(response.text, "html.parser")
            for rel in ICON_RELS:
                for link in soup.find_all("link", href=True):
                    link_rel = link.get("rel") or []
                    if " ".join(link_rel).lower() == rel:
                        candidates.append(urljoin(response.effective_url, link["href"]))

        parsed = urlparse(site_url)
        candidates.append(f"{parsed.scheme}://{parsed.netloc}/favicon.ico")

        # Keep order, drop duplicates and inline data
        return [url for url in dict.fromkeys(candidates) if not url.startswith("data:")]

    def _download(self, icon_url: str) -> Optional[Icon]:
        try:
            response = self.fetcher.fetch(icon_url, accept="image/*,*/*;q=0.8")
        except FeedFetchError as e:
            self.logger.debug(f"Unable to download icon {icon_url}: {e}")
            return None

        if not response.body:
            return None

        mime_type = response.content_type.split(";")[0].strip() or "image/x-icon"
        if not mime_type.startswith("image/"):
            self.logger.debug(f"Ignoring {icon_url} with content type {mime_type}")
            return None

        return Icon(mime_type=mime_type, content=response.body)
