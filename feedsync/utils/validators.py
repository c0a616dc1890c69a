"""
FeedSync Input Validators
=========================

Validation utilities for feed URLs and notification content.
"""

import re
from urllib.parse import urlparse, urlunparse

from .exceptions import ValidationError, ErrorCode


class URLValidator:
    """URL validation and normalization utilities."""

    ALLOWED_SCHEMES = {"http", "https"}

    SUSPICIOUS_PATTERNS = [
        r"^javascript:",
        r"^data:",
        r"^file:",
        r"^ftp:",
    ]

    @classmethod
    def validate_feed_url(cls, url: str) -> str:
        """Validate and normalize a feed URL.

        Args:
            url: URL to validate

        Returns:
            Normalized URL

        Raises:
            ValidationError: If URL is invalid
        """
        if not url or not isinstance(url, str):
            raise ValidationError(
                "URL is required and must be a string",
                error_code=ErrorCode.VALIDATION_REQUIRED_FIELD,
                field_name="url",
            )

        url = url.strip()

        if cls._has_suspicious_patterns(url):
            raise ValidationError(
                "URL contains suspicious patterns",
                error_code=ErrorCode.VALIDATION_INVALID_FORMAT,
                field_name="url",
            )

        try:
            parsed = urlparse(url)
        except ValueError as e:
            raise ValidationError(
                f"Invalid URL format: {str(e)}",
                error_code=ErrorCode.VALIDATION_INVALID_FORMAT,
                field_name="url",
            )

        if parsed.scheme.lower() not in cls.ALLOWED_SCHEMES:
            raise ValidationError(
                f"URL scheme must be {' or '.join(sorted(cls.ALLOWED_SCHEMES))}",
                error_code=ErrorCode.VALIDATION_INVALID_FORMAT,
                field_name="url",
            )

        if not parsed.netloc:
            raise ValidationError(
                "URL must include a hostname",
                error_code=ErrorCode.VALIDATION_INVALID_FORMAT,
                field_name="url",
            )

        return urlunparse(
            parsed._replace(
                scheme=parsed.scheme.lower(),
                netloc=parsed.netloc.lower(),
                path=parsed.path or "/",
                fragment="",
            )
        )

    @classmethod
    def _has_suspicious_patterns(cls, url: str) -> bool:
        url_lower = url.lower()
        return any(re.search(pattern, url_lower) for pattern in cls.SUSPICIOUS_PATTERNS)


class TelegramValidator:
    """Telegram-specific validation utilities."""

    MAX_MESSAGE_LENGTH = 4096

    @classmethod
    def validate_message_content(cls, content: str) -> str:
        """Validate and truncate Telegram message content.

        Raises:
            ValidationError: If content is empty
        """
        if not content or not isinstance(content, str) or not content.strip():
            raise ValidationError(
                "Message content is required",
                error_code=ErrorCode.VALIDATION_REQUIRED_FIELD,
                field_name="message_content",
            )

        content = content.strip()

        if len(content) > cls.MAX_MESSAGE_LENGTH:
            content = content[: cls.MAX_MESSAGE_LENGTH - 20] + "\n\n... [truncated]"

        return content

    @classmethod
    def parse_chat_id(cls, chat_id: str) -> int:
        """Parse a Telegram chat ID, which must be an integer.

        Raises:
            ValidationError: If the chat ID is not an integer
        """
        try:
            return int(str(chat_id).strip())
        except (TypeError, ValueError):
            raise ValidationError(
                f"Chat ID must be an integer, got {chat_id!r}",
                error_code=ErrorCode.VALIDATION_INVALID_FORMAT,
                field_name="telegram_chat_id",
            )
