"""
Temporal analytics for a single schedule item: duration, elapsed and remaining
days, planned vs actual progress, efficiency and risk level.

All day counts are whole days rounded up; percentages round half up.
"""

from datetime import datetime

from site_schedule.services.schedule_models import (
    RiskLevel,
    ScheduleItem,
    ScheduleItemStatus,
    ceil_days,
    round_half_up,
    to_utc,
)
from site_schedule.services.status_classifier import (
    classify_status,
    days_until_deadline,
)

HIGH_RISK_EFFICIENCY = 50
MEDIUM_RISK_EFFICIENCY = 80
MEDIUM_RISK_DAYS = 3


def duration(item: ScheduleItem) -> int:
    """Planned duration in days (0 for milestones)."""
    return ceil_days(item.end - item.start)


def elapsed(item: ScheduleItem, now: datetime) -> int:
    return max(0, ceil_days(to_utc(now) - item.start))


def remaining(item: ScheduleItem, now: datetime) -> int:
    return max(0, ceil_days(item.end - to_utc(now)))


def planned_progress_pct(item: ScheduleItem, now: datetime) -> int:
    """Share of the planned window that has passed, capped at 100."""
    total = duration(item)
    if total == 0:
        return 0
    return min(100, round_half_up(elapsed(item, now) / total * 100))


def completion_rate(item: ScheduleItem) -> int:
    return min(100, max(0, item.progress))


def efficiency(item: ScheduleItem, now: datetime) -> int:
    """
    Actual progress relative to planned progress, in percent.
    With no planned progress yet the item counts as 100% efficient.
    """
    planned = planned_progress_pct(item, now)
    if planned == 0:
        return 100
    return round_half_up(item.progress / planned * 100)


def risk_level(item: ScheduleItem, now: datetime) -> RiskLevel:
    eff = efficiency(item, now)
    if classify_status(item, now) == ScheduleItemStatus.OVERDUE or eff < HIGH_RISK_EFFICIENCY:
        return RiskLevel.HIGH
    if days_until_deadline(item, now) <= MEDIUM_RISK_DAYS or eff < MEDIUM_RISK_EFFICIENCY:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def format_duration(days: int) -> str:
    if days == 1:
        return "1 day"
    return f"{days} days"


def format_remaining(days: int) -> str:
    """Human label for a signed day count until the deadline."""
    if days < 0:
        overdue_by = abs(days)
        return f"overdue by {overdue_by} day{'s' if overdue_by != 1 else ''}"
    if days == 0:
        return "due today"
    if days == 1:
        return "due tomorrow"
    return f"{days} days left"
