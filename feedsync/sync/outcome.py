"""
Refresh and reconciliation results.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class RefreshStatus(str, Enum):
    SUCCESS = "success"
    NOT_MODIFIED = "not_modified"
    FAILURE = "failure"
    SKIPPED = "skipped"


@dataclass
class FailedEntry:
    """An entry the storage layer could not insert."""

    title: str
    url: str


@dataclass
class ReconcileResult:
    """What one reconciliation pass did to a feed's entries."""

    hashes: List[str] = field(default_factory=list)
    created: int = 0
    updated: int = 0
    failed: List[FailedEntry] = field(default_factory=list)


@dataclass
class RefreshOutcome:
    """Result of one refresh cycle of a feed."""

    feed_id: int
    status: RefreshStatus
    new_entries: int = 0
    updated_entries: int = 0
    error: Optional[Exception] = None
    error_message: str = ""

    @property
    def succeeded(self) -> bool:
        return self.status in (RefreshStatus.SUCCESS, RefreshStatus.NOT_MODIFIED)

    @classmethod
    def failure(cls, feed_id: int, error: Exception, error_message: str = "") -> "RefreshOutcome":
        return cls(
            feed_id=feed_id,
            status=RefreshStatus.FAILURE,
            error=error,
            error_message=error_message or str(error),
        )
