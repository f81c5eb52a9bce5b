"""
Status & priority classifier for schedule items.

Pure functions of (item, now). `now` is always passed in; nothing here reads the clock.
"""

from datetime import datetime

from site_schedule.services.schedule_models import (
    ScheduleItem,
    ScheduleItemPriority,
    ScheduleItemStatus,
    ceil_days,
    to_utc,
)

HIGH_PRIORITY_DAYS = 3
MEDIUM_PRIORITY_DAYS = 7

_STATUS_COLORS: dict[ScheduleItemStatus, str] = {
    ScheduleItemStatus.COMPLETED: "green",
    ScheduleItemStatus.IN_PROGRESS: "blue",
    ScheduleItemStatus.OVERDUE: "red",
    ScheduleItemStatus.NOT_STARTED: "gray",
}

_PRIORITY_COLORS: dict[ScheduleItemPriority, str] = {
    ScheduleItemPriority.CRITICAL: "red",
    ScheduleItemPriority.HIGH: "orange",
    ScheduleItemPriority.MEDIUM: "yellow",
    ScheduleItemPriority.LOW: "green",
}


def days_until_deadline(item: ScheduleItem, now: datetime) -> int:
    """ceil((end - now) / 1 day); negative once the deadline has passed."""
    return ceil_days(item.end - to_utc(now))


def classify_status(item: ScheduleItem, now: datetime) -> ScheduleItemStatus:
    """
    Completion wins over lateness: an item at 100% is completed even if it
    finished after its deadline.
    """
    if item.progress >= 100:
        return ScheduleItemStatus.COMPLETED
    if item.end < to_utc(now):
        return ScheduleItemStatus.OVERDUE
    if item.progress > 0:
        return ScheduleItemStatus.IN_PROGRESS
    return ScheduleItemStatus.NOT_STARTED


def classify_priority(item: ScheduleItem, now: datetime) -> ScheduleItemPriority:
    """Critical when overdue, otherwise bucketed by days until the deadline."""
    # Status is re-derived from the same `now` so it cannot disagree with the day count.
    if classify_status(item, now) == ScheduleItemStatus.OVERDUE:
        return ScheduleItemPriority.CRITICAL
    days = days_until_deadline(item, now)
    if days <= HIGH_PRIORITY_DAYS:
        return ScheduleItemPriority.HIGH
    if days <= MEDIUM_PRIORITY_DAYS:
        return ScheduleItemPriority.MEDIUM
    return ScheduleItemPriority.LOW


def status_color(status: ScheduleItemStatus) -> str:
    return _STATUS_COLORS.get(status, "gray")


def priority_color(priority: ScheduleItemPriority) -> str:
    return _PRIORITY_COLORS.get(priority, "gray")
