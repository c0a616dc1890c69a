"""
Telegram Notifier
=================

Best-effort notification about entries that could not be saved during a
refresh. Uses the per-user Telegram integration stored in the database.

Nothing raised here reaches the refresh cycle: every failure is logged and
reported as a False return value.
"""

import asyncio
from typing import Callable, Optional, Sequence

from telegram import Bot, LinkPreviewOptions
from telegram.constants import ParseMode
from telegram.error import TelegramError

from ..config.settings import NotificationSettings, get_settings
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import NotificationError, ValidationError, ErrorCode
from ..utils.validators import TelegramValidator


# Characters that would end the surrounding Markdown entity early
BOLD_BREAKERS = str.maketrans("", "", "*")
LINK_TEXT_BREAKERS = str.maketrans({"[": "(", "]": ")"})
LINK_URL_BREAKERS = str.maketrans({")": "%29", " ": "%20"})

MAX_TITLE_LENGTH = 200
# Room kept for the "... and N more" line
OVERFLOW_RESERVE = 32


def truncate_text(text: str, max_length: int) -> str:
    """Truncate text to max_length characters with an ellipsis."""
    if len(text) <= max_length:
        return text
    return text[: max_length - 3].rstrip() + "..."


def bold(text: str) -> str:
    """Legacy Markdown bold; escapes are not honoured inside entities."""
    return f"*{truncate_text(text, MAX_TITLE_LENGTH).translate(BOLD_BREAKERS)}*"


def link(title: str, url: str) -> str:
    text = truncate_text(title, MAX_TITLE_LENGTH).translate(LINK_TEXT_BREAKERS)
    return f"[{text}]({url.translate(LINK_URL_BREAKERS)})"


class TelegramNotifier:
    """Sends failed-entry reports through a user's Telegram integration."""

    def __init__(
        self,
        storage,
        settings: Optional[NotificationSettings] = None,
        bot_factory: Callable[[str], Bot] = Bot,
    ):
        """Initialize notifier.

        Args:
            storage: Storage facade (integration and feed lookups)
            settings: Notification settings (defaults to global settings)
            bot_factory: Builds a Bot for a token
        """
        self.storage = storage
        self.settings = settings or get_settings().notifications
        self.bot_factory = bot_factory
        self.logger = get_logger_for_component("telegram_notifier")

    def notify_failed_entries(self, user_id: int, feed_id: int, failed: Sequence) -> bool:
        """Report entries that failed to insert.

        Args:
            user_id: Feed owner
            feed_id: Feed being refreshed
            failed: Items with ``title`` and ``url`` attributes

        Returns:
            True if a message was sent
        """
        if not failed:
            return False

        try:
            integration = self.storage.integration(user_id)
            if integration is None or not integration.telegram_ready():
                self.logger.debug(f"Telegram integration not enabled for user {user_id}")
                return False

            chat_id = TelegramValidator.parse_chat_id(integration.telegram_chat_id)

            feed = self.storage.feed_by_id(user_id, feed_id)
            if feed is None:
                self.logger.debug(f"Feed {feed_id} disappeared before notification")
                return False

            text = self.format_message(feed.title, failed)
            self.send(integration.telegram_token, chat_id, text)

        except ValidationError as e:
            self.logger.debug(f"Skipping Telegram notification for user {user_id}: {e}")
            return False
        except Exception as e:
            self.logger.error(
                f"Telegram notification failed for feed {feed_id}: {e}",
                extra={"feed_id": feed_id, "user_id": user_id},
            )
            return False

        self.logger.info(
            f"Reported {len(failed)} unsaved entries of feed {feed_id} to Telegram",
            extra={"feed_id": feed_id, "user_id": user_id},
        )
        return True

    @staticmethod
    def format_message(feed_title: str, failed: Sequence) -> str:
        """Compose the report: bold feed title, then one link per entry.

        Links are only ever dropped whole: when the next one would not fit
        in a Telegram message, the rest is summarized as "... and N more".
        """
        lines = [bold(feed_title)]
        length = len(lines[0])

        for index, item in enumerate(failed):
            line = link(item.title, item.url)
            reserve = OVERFLOW_RESERVE if index < len(failed) - 1 else 0
            if length + 1 + len(line) + reserve > TelegramValidator.MAX_MESSAGE_LENGTH:
                lines.append(f"... and {len(failed) - index} more")
                break
            lines.append(line)
            length += 1 + len(line)

        return TelegramValidator.validate_message_content("\n".join(lines))

    def send(self, token: str, chat_id: int, text: str) -> None:
        """Send one Markdown message with link previews disabled.

        Raises:
            NotificationError: If Telegram rejects the message or is unreachable
        """
        try:
            asyncio.run(self._send_async(token, chat_id, text))
        except TelegramError as e:
            raise NotificationError(
                f"Telegram error sending to {chat_id}: {e}",
                chat_id=str(chat_id),
                error_code=ErrorCode.TELEGRAM_API_ERROR,
            ) from e

    async def _send_async(self, token: str, chat_id: int, text: str) -> None:
        timeout = self.settings.telegram_timeout
        bot = self.bot_factory(token)
        async with bot:
            await bot.send_message(
                chat_id=chat_id,
                text=text,
                parse_mode=ParseMode.MARKDOWN,
                link_preview_options=LinkPreviewOptions(
                    is_disabled=self.settings.disable_web_page_preview
                ),
                read_timeout=timeout,
                write_timeout=timeout,
                connect_timeout=timeout,
            )
