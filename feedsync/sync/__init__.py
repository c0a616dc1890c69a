"""
FeedSync Synchronization Engine
===============================

Subscription and refresh of feeds against the local store.

This module provides:
- Feed handler for subscription and refresh cycles
- Entry reconciliation with hash-based deduplication
- Next-check scheduling policies
- Worker pool refreshing due feeds with per-feed locking
"""

from .handler import FeedHandler
from .reconciler import EntryReconciler
from .outcome import RefreshOutcome, RefreshStatus, ReconcileResult, FailedEntry
from .scheduler import SchedulingPolicy, compute_next_check
from .worker import RefreshWorkerPool, FeedLockRegistry

__all__ = [
    "FeedHandler",
    "EntryReconciler",
    "RefreshOutcome",
    "RefreshStatus",
    "ReconcileResult",
    "FailedEntry",
    "SchedulingPolicy",
    "compute_next_check",
    "RefreshWorkerPool",
    "FeedLockRegistry",
]
