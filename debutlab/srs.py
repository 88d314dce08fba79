"""Spaced repetition scheduling for opening lines.

A three-band policy keyed on the error count of the last test pass:
lines with many errors come back within the hour, lines with a couple
of slips come back in ten minutes, and clean passes walk a fixed ladder
of day intervals.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from debutlab.models import MAX_STAGE, STATUS_MASTERED, STATUS_RELEARN, STATUS_REVIEW

# Progressive intervals for clean passes, indexed by stage
_MASTERED_INTERVALS_DAYS = [3, 7, 14, 30]

_REVIEW_INTERVAL = timedelta(minutes=10)
_RELEARN_INTERVAL = timedelta(hours=1)

# Errors at or above this go to the relearn band
_RELEARN_THRESHOLD = 3


@dataclass(frozen=True)
class ReviewSchedule:
    """Result of scheduling a finished pass."""

    due_at: datetime
    next_stage: int
    band: str


def _clamp_stage(stage: int) -> int:
    return max(0, min(MAX_STAGE, int(stage)))


def compute_next_review(
    errors: int,
    stage: int,
    now: datetime | None = None,
) -> ReviewSchedule:
    """Compute when a line is due again and its next stage.

    Args:
        errors: Errors made during the last test pass.
        stage: Current SRS stage (0-3); out-of-range values are clamped.
        now: Reference instant. Defaults to the current UTC time.

    Returns:
        ReviewSchedule with due_at, next_stage and the band name.

    Raises:
        ValueError: If errors is negative.
    """
    if errors < 0:
        raise ValueError(f"Error count must be non-negative, got {errors}")

    now = now or datetime.now(timezone.utc)
    stage = _clamp_stage(stage)

    if errors >= _RELEARN_THRESHOLD:
        return ReviewSchedule(now + _RELEARN_INTERVAL, stage, STATUS_RELEARN)
    if errors > 0:
        return ReviewSchedule(now + _REVIEW_INTERVAL, stage, STATUS_REVIEW)

    interval = timedelta(days=_MASTERED_INTERVALS_DAYS[stage])
    return ReviewSchedule(now + interval, min(stage + 1, MAX_STAGE), STATUS_MASTERED)


def is_review_due(due_at: datetime | None, now: datetime | None = None) -> bool:
    """A line without a due time is never due."""
    if due_at is None:
        return False
    return (now or datetime.now(timezone.utc)) >= due_at


def time_until_review(due_at: datetime, now: datetime | None = None) -> timedelta:
    remaining = due_at - (now or datetime.now(timezone.utc))
    return max(timedelta(0), remaining)


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}" if count == 1 else f"{count} {unit}s"


def describe_interval(interval: timedelta) -> str:
    """Human-readable interval using its largest whole unit.

    Examples: "3 days", "1 hour", "10 minutes".
    """
    seconds = int(interval.total_seconds())
    days = seconds // 86400
    hours = seconds // 3600
    minutes = seconds // 60
    if days > 0:
        return _plural(days, "day")
    if hours > 0:
        return _plural(hours, "hour")
    return _plural(minutes, "minute")


def format_time_until_review(due_at: datetime, now: datetime | None = None) -> str:
    remaining = time_until_review(due_at, now)
    if remaining == timedelta(0):
        return "Review now"
    return f"In {describe_interval(remaining)}"
