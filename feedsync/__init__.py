"""
FeedSync - Feed Synchronization Engine
======================================

Keeps a local SQLite store in sync with remote RSS/Atom feeds.

Main Components:
- Database: SQLite with connection pooling and schema management
- Configuration: environment variables and .env with Pydantic validation
- Ingestion: conditional fetching, parsing, entry post-processing, icons
- Sync: subscription, refresh cycles, entry reconciliation, scheduling
- Delivery: Telegram reports for entries that could not be saved
"""

__version__ = "1.0.0"
__author__ = "FeedSync Development Team"
__description__ = "Feed synchronization engine"

# Core imports for easy access
from .config.settings import get_settings
from .database.connection import get_db_manager
from .database.schema import DatabaseSchema
from .utils.logging import configure_application_logging, get_logger_for_component
from .utils.exceptions import FeedSyncError

__all__ = [
    "get_settings",
    "get_db_manager",
    "DatabaseSchema",
    "configure_application_logging",
    "get_logger_for_component",
    "FeedSyncError",
]
