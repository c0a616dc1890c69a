"""
Next-check scheduling.

Two policies, selected by configuration:

- round_robin: fixed interval, error count ignored
- entry_frequency: interval derived from the trailing week's entry volume,
  lengthened linearly by the error count and clamped to [min, max]
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from ..config.settings import PollingSettings, SchedulerKind


MINUTES_PER_WEEK = 7 * 24 * 60


@dataclass(frozen=True)
class SchedulingPolicy:
    kind: SchedulerKind = SchedulerKind.ROUND_ROBIN
    frequency_minutes: int = 60
    min_interval_minutes: int = 5
    max_interval_minutes: int = 24 * 60

    def __post_init__(self):
        if self.min_interval_minutes > self.max_interval_minutes:
            raise ValueError("min_interval_minutes must not exceed max_interval_minutes")

    @classmethod
    def from_settings(cls, polling: PollingSettings) -> "SchedulingPolicy":
        return cls(
            kind=polling.scheduler,
            frequency_minutes=polling.frequency_minutes,
            min_interval_minutes=polling.min_interval_minutes,
            max_interval_minutes=polling.max_interval_minutes,
        )

    @property
    def uses_entry_frequency(self) -> bool:
        return self.kind == SchedulerKind.ENTRY_FREQUENCY


def compute_interval_minutes(policy: SchedulingPolicy, error_count: int, weekly_entry_count: int) -> int:
    """Polling interval in whole minutes for the given feed activity and health."""
    if not policy.uses_entry_frequency:
        return policy.frequency_minutes

    if weekly_entry_count <= 0:
        interval = policy.max_interval_minutes
    else:
        interval = MINUTES_PER_WEEK // weekly_entry_count

    interval *= 1 + max(error_count, 0)
    return max(policy.min_interval_minutes, min(interval, policy.max_interval_minutes))


def compute_next_check(
    policy: SchedulingPolicy,
    error_count: int,
    weekly_entry_count: int,
    now: Optional[datetime] = None,
) -> datetime:
    """Compute when a feed should be polled next."""
    now = now or datetime.now(timezone.utc)
    return now + timedelta(minutes=compute_interval_minutes(policy, error_count, weekly_entry_count))
