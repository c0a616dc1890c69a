"""
Best-effort feed icon lookup.
"""

from ..utils.logging import get_logger_for_component

logger = get_logger_for_component("feed_icons")


def check_feed_icon(storage, icon_finder, feed_id: int, site_url: str) -> bool:
    """Attach a site icon to the feed if it has none yet.

    Failures are logged at debug level and never raised.

    Returns:
        True if a new icon was stored
    """
    if icon_finder is None:
        return False

    try:
        if storage.has_icon(feed_id):
            return False

        icon = icon_finder.find_icon(site_url)
        if icon is None:
            logger.debug(f"No icon found (feed_id={feed_id} site_url={site_url})")
            return False

        storage.create_feed_icon(feed_id, icon)
    except Exception as e:
        logger.debug(f"Icon check failed: {e} (feed_id={feed_id} site_url={site_url})")
        return False

    logger.debug(f"Stored icon for feed {feed_id}")
    return True
