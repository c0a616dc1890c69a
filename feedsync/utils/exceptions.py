"""
FeedSync Custom Exceptions
==========================

Exception hierarchy for the feed synchronization engine with error codes,
context information, and user-friendly error messages.
"""

from typing import Optional, Dict, Any
from enum import Enum


class ErrorCode(str, Enum):
    """Error codes for categorizing exceptions."""

    # Configuration errors (C001-C099)
    CONFIG_INVALID = "C001"
    CONFIG_MISSING = "C002"

    # Storage errors (D001-D099)
    DATABASE_CONNECTION = "D001"
    DATABASE_SCHEMA = "D002"
    DATABASE_CONSTRAINT = "D003"
    DATABASE_TRANSACTION = "D004"
    DATABASE_ERROR = "D006"

    # Feed errors (F001-F099)
    FEED_INVALID_URL = "F001"
    FEED_FETCH_TIMEOUT = "F002"
    FEED_PARSE_ERROR = "F003"
    FEED_NETWORK_ERROR = "F004"
    FEED_ACCESS_DENIED = "F005"
    FEED_NOT_FOUND = "F006"
    FEED_HTTP_ERROR = "F007"
    FEED_TOO_LARGE = "F008"
    FEED_PERSISTENT_FAILURE = "F009"

    # Validation errors (V001-V099)
    VALIDATION_REQUIRED_FIELD = "V001"
    VALIDATION_INVALID_FORMAT = "V002"
    VALIDATION_OUT_OF_RANGE = "V003"

    # Resource errors (R001-R099)
    DUPLICATE_RESOURCE = "R001"
    RESOURCE_NOT_FOUND = "R002"

    # Notification errors (T001-T099)
    TELEGRAM_API_ERROR = "T001"
    TELEGRAM_INVALID_CHAT = "T002"
    NOTIFICATION_DISABLED = "T003"

    # System errors (S001-S099)
    SYSTEM_PERMISSION_DENIED = "S002"
    SYSTEM_MEMORY_ERROR = "S004"


def _forward(kwargs: Dict[str, Any], *consumed: str) -> Dict[str, Any]:
    return {k: v for k, v in kwargs.items() if k not in consumed}


class FeedSyncError(Exception):
    """Base exception for all FeedSync errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[ErrorCode] = None,
        context: Optional[Dict[str, Any]] = None,
        user_message: Optional[str] = None,
        recoverable: bool = False,
    ):
        """Initialize FeedSync error.

        Args:
            message: Technical error message for logging
            error_code: Categorized error code
            context: Additional context information
            user_message: User-friendly error message
            recoverable: Whether the error is recoverable
        """
        super().__init__(message)
        self.error_code = error_code
        self.context = context or {}
        self.user_message = user_message or message
        self.recoverable = recoverable

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code.value if self.error_code else None,
            "error_message": str(self),
            "user_message": self.user_message,
            "context": self.context,
            "recoverable": self.recoverable,
        }

    def __str__(self) -> str:
        """String representation with error code."""
        if self.error_code:
            return f"[{self.error_code.value}] {super().__str__()}"
        return super().__str__()


class ConfigurationError(FeedSyncError):
    """Configuration-related errors."""

    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs):
        context = kwargs.get("context", {})
        if config_key:
            context["config_key"] = config_key

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.CONFIG_INVALID),
            context=context,
            user_message=kwargs.get("user_message", f"Configuration error: {message}"),
            **_forward(kwargs, "context", "error_code", "user_message"),
        )


class ValidationError(FeedSyncError):
    """Data validation errors."""

    def __init__(self, message: str, field_name: Optional[str] = None, **kwargs):
        """Initialize validation error.

        Args:
            message: Error message
            field_name: Field name that failed validation
            **kwargs: Additional arguments for FeedSyncError
        """
        context = kwargs.get("context", {})
        if field_name:
            context["field_name"] = field_name

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.VALIDATION_INVALID_FORMAT),
            context=context,
            user_message=kwargs.get(
                "user_message", f"Invalid {field_name or 'input'}: {message}"
            ),
            recoverable=kwargs.get("recoverable", False),
            **_forward(kwargs, "context", "error_code", "user_message", "recoverable"),
        )


class StorageError(FeedSyncError):
    """Persistence failures.

    A plain StorageError is treated as non-recoverable by the reconciler:
    it aborts the current batch.
    """

    def __init__(self, message: str, query: Optional[str] = None, **kwargs):
        """Initialize storage error.

        Args:
            message: Error message
            query: SQL statement that caused the error
            **kwargs: Additional arguments for FeedSyncError
        """
        context = kwargs.get("context", {})
        if query:
            context["query"] = query

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.DATABASE_ERROR),
            context=context,
            user_message=kwargs.get("user_message", "Database operation failed"),
            recoverable=kwargs.get("recoverable", False),
            **_forward(kwargs, "context", "error_code", "user_message", "recoverable"),
        )


class EntryConflictError(StorageError):
    """A single entry row could not be inserted (constraint violation).

    The reconciler collects these and keeps going with the rest of the batch.
    """

    def __init__(self, message: str, entry_hash: Optional[str] = None, **kwargs):
        context = kwargs.get("context", {})
        if entry_hash:
            context["entry_hash"] = entry_hash

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.DATABASE_CONSTRAINT),
            context=context,
            user_message=kwargs.get("user_message", "Entry could not be saved"),
            recoverable=True,
            **_forward(kwargs, "context", "error_code", "user_message", "recoverable"),
        )


class CategoryNotFoundError(FeedSyncError):
    """The category does not exist or belongs to another user."""

    def __init__(self, category_id: int, user_id: Optional[int] = None, **kwargs):
        super().__init__(
            message=f"Category {category_id} not found for user {user_id}",
            error_code=ErrorCode.RESOURCE_NOT_FOUND,
            context={"category_id": category_id, "user_id": user_id},
            user_message="Category not found for this user",
            **kwargs,
        )
        self.category_id = category_id


class FeedNotFoundError(FeedSyncError):
    """The feed does not exist or belongs to another user."""

    def __init__(self, feed_id: int, user_id: Optional[int] = None, **kwargs):
        super().__init__(
            message=f"Feed {feed_id} not found",
            error_code=ErrorCode.FEED_NOT_FOUND,
            context={"feed_id": feed_id, "user_id": user_id},
            user_message=f"Feed {feed_id} not found",
            **kwargs,
        )
        self.feed_id = feed_id


class DuplicateFeedError(FeedSyncError):
    """The user is already subscribed to this (effective) feed URL."""

    def __init__(self, feed_url: str, **kwargs):
        super().__init__(
            message=f"This feed already exists ({feed_url})",
            error_code=ErrorCode.DUPLICATE_RESOURCE,
            context={"feed_url": feed_url},
            user_message=f"This feed already exists ({feed_url})",
            **kwargs,
        )
        self.feed_url = feed_url


class FeedError(FeedSyncError):
    """Feed fetching and parsing errors."""

    def __init__(self, message: str, feed_url: Optional[str] = None, **kwargs):
        """Initialize feed error.

        Args:
            message: Error message
            feed_url: Feed URL that caused the error
            **kwargs: Additional arguments for FeedSyncError
        """
        context = kwargs.get("context", {})
        if feed_url:
            context["feed_url"] = feed_url

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.FEED_NETWORK_ERROR),
            context=context,
            user_message=kwargs.get(
                "user_message", f"Feed processing failed: {message}"
            ),
            recoverable=kwargs.get("recoverable", True),
            **_forward(kwargs, "context", "error_code", "user_message", "recoverable"),
        )
        self.feed_url = feed_url


class FeedFetchError(FeedError):
    """Transport or HTTP-level failure while fetching a feed."""

    def __init__(
        self,
        message: str,
        feed_url: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs,
    ):
        if status_code is not None:
            context = kwargs.setdefault("context", {})
            context["status_code"] = status_code
        super().__init__(message, feed_url=feed_url, **kwargs)
        self.status_code = status_code


class FeedParseError(FeedError):
    """The body could not be parsed as a feed."""

    def __init__(self, message: str, feed_url: Optional[str] = None, **kwargs):
        kwargs.setdefault("error_code", ErrorCode.FEED_PARSE_ERROR)
        kwargs.setdefault("recoverable", False)
        super().__init__(message, feed_url=feed_url, **kwargs)


class PersistentFeedError(FeedSyncError):
    """A feed keeps failing; raised from the underlying cycle error."""

    def __init__(self, feed_id: int, error_count: int, last_error: str, **kwargs):
        super().__init__(
            message=f"Feed {feed_id} failed {error_count} consecutive times: {last_error}",
            error_code=ErrorCode.FEED_PERSISTENT_FAILURE,
            context={"feed_id": feed_id, "error_count": error_count},
            user_message=last_error,
            recoverable=True,
            **kwargs,
        )
        self.feed_id = feed_id
        self.error_count = error_count


class NotificationError(FeedSyncError):
    """Outbound notification errors."""

    def __init__(self, message: str, chat_id: Optional[str] = None, **kwargs):
        context = kwargs.get("context", {})
        if chat_id:
            context["chat_id"] = chat_id

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.TELEGRAM_API_ERROR),
            context=context,
            user_message=kwargs.get("user_message", "Notification failed"),
            recoverable=kwargs.get("recoverable", True),
            **_forward(kwargs, "context", "error_code", "user_message", "recoverable"),
        )


# Exception handling utilities


def handle_exception(
    exception: Exception,
    logger,
    operation: str,
    context: Optional[Dict[str, Any]] = None,
) -> FeedSyncError:
    """Convert generic exceptions to FeedSync exceptions with proper logging.

    Args:
        exception: Original exception
        logger: Logger instance for error logging
        operation: Operation that was being performed
        context: Additional context information

    Returns:
        FeedSync exception with proper categorization
    """
    context = context or {}
    context["operation"] = operation
    context["original_exception_type"] = type(exception).__name__

    if isinstance(exception, FeedSyncError):
        logger.error(f"Operation '{operation}' failed", extra=exception.to_dict())
        return exception

    elif isinstance(exception, (ConnectionError, TimeoutError)):
        error = FeedSyncError(
            message=f"Network error during {operation}: {str(exception)}",
            error_code=ErrorCode.FEED_NETWORK_ERROR,
            context=context,
            user_message="Network connection failed",
            recoverable=True,
        )

    elif isinstance(exception, PermissionError):
        error = FeedSyncError(
            message=f"Permission denied during {operation}: {str(exception)}",
            error_code=ErrorCode.SYSTEM_PERMISSION_DENIED,
            context=context,
            user_message="Access denied",
        )

    elif isinstance(exception, MemoryError):
        error = FeedSyncError(
            message=f"Memory exhausted during {operation}: {str(exception)}",
            error_code=ErrorCode.SYSTEM_MEMORY_ERROR,
            context=context,
            user_message="System resources exhausted",
            recoverable=True,
        )

    else:
        error = FeedSyncError(
            message=f"Unexpected error during {operation}: {str(exception)}",
            context=context,
            user_message="An unexpected error occurred",
            recoverable=True,
        )

    logger.error(f"Operation '{operation}' failed", extra=error.to_dict())
    return error


def get_user_friendly_message(exception: Exception) -> str:
    """Get user-friendly error message for any exception."""
    if isinstance(exception, FeedSyncError):
        return exception.user_message

    return "An unexpected error occurred. Please try again later."
