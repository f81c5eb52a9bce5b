"""
Schedule aggregator: dashboard statistics, per-item annotations and list views
over one ScheduleSnapshot.

Everything here is derived from the snapshot and `now` alone, so repeated
calls on the same snapshot return equal results.
"""

import logging
from datetime import datetime, timedelta
from typing import Iterable, Optional

from pydantic import Field

from site_schedule.services.critical_path import (
    DEFAULT_CRITICAL_PATH_SIZE,
    select_heuristic_critical_path,
)
from site_schedule.services.dependency_graph import CyclicDependencyError, DependencyGraph
from site_schedule.services.schedule_models import (
    CamelModel,
    CriticalPathMethod,
    IssueCode,
    RiskLevel,
    ScheduleItem,
    ScheduleItemPriority,
    ScheduleItemStatus,
    ScheduleItemType,
    ScheduleSnapshot,
    ScheduleStats,
    ValidationIssue,
    to_utc,
)
from site_schedule.services.status_classifier import (
    classify_priority,
    classify_status,
    days_until_deadline,
    priority_color,
    status_color,
)
from site_schedule.services.temporal_analytics import (
    duration,
    efficiency,
    format_duration,
    format_remaining,
    planned_progress_pct,
    remaining,
    risk_level,
)

logger = logging.getLogger(__name__)

DEFAULT_UPCOMING_DAYS = 7


class ItemAnnotation(CamelModel):
    """Derived, per-item values for list views, Gantt bars and the dependency graph."""

    item_id: str
    title: str
    type: ScheduleItemType
    status: ScheduleItemStatus
    priority: ScheduleItemPriority
    risk_level: RiskLevel
    duration: int
    remaining: int
    days_until_deadline: int
    planned_progress: int
    efficiency: int
    status_color: str
    priority_color: str
    duration_label: str
    remaining_label: str
    can_start: bool
    total_float: Optional[int] = Field(default=None, alias="float")
    earliest_start: Optional[datetime] = None
    latest_start: Optional[datetime] = None
    on_critical_path: Optional[bool] = None
    float_error: Optional[str] = None


def _cycle_issues(graph: DependencyGraph) -> list[ValidationIssue]:
    return [
        ValidationIssue(
            code=IssueCode.CYCLIC_DEPENDENCY,
            message=f"item {item_id} is part of a dependency cycle; float not computed",
            item_id=item_id,
        )
        for item_id in sorted(graph.cyclic_item_ids())
    ]


def aggregate(
    snapshot: ScheduleSnapshot,
    now: datetime,
    method: CriticalPathMethod = CriticalPathMethod.HEURISTIC,
    critical_path_size: int = DEFAULT_CRITICAL_PATH_SIZE,
) -> ScheduleStats:
    """
    Summary statistics for a snapshot. The critical path is the heuristic
    top-N longest items unless `method` asks for the float-based path.
    """
    items = snapshot.items
    now = to_utc(now)
    warnings = list(snapshot.issues)

    completed = sum(1 for item in items if item.progress >= 100)
    in_progress = sum(1 for item in items if 0 < item.progress < 100)
    overdue = sum(1 for item in items if item.end < now and item.progress < 100)
    total_duration = sum((item.span for item in items), timedelta(0))
    average_progress = sum(item.progress for item in items) / len(items) if items else 0.0

    if method == CriticalPathMethod.FLOAT:
        graph = DependencyGraph(snapshot)
        critical_path = graph.critical_path()
        warnings.extend(_cycle_issues(graph))
    else:
        critical_path = select_heuristic_critical_path(items, critical_path_size)

    logger.debug(
        "schedule_aggregator: %s items, %s warning(s), critical path via %s",
        len(items),
        len(warnings),
        method.value,
    )

    return ScheduleStats(
        total_items=len(items),
        completed_items=completed,
        in_progress_items=in_progress,
        overdue_items=overdue,
        total_duration=total_duration,
        average_progress=average_progress,
        critical_path=critical_path,
        critical_path_method=method,
        warnings=warnings,
    )


def annotate_item(item: ScheduleItem, graph: DependencyGraph, now: datetime) -> ItemAnnotation:
    status = classify_status(item, now)
    priority = classify_priority(item, now)
    days_left = days_until_deadline(item, now)
    item_duration = duration(item)
    values = {
        "item_id": item.id,
        "title": item.title,
        "type": item.type,
        "status": status,
        "priority": priority,
        "risk_level": risk_level(item, now),
        "duration": item_duration,
        "remaining": remaining(item, now),
        "days_until_deadline": days_left,
        "planned_progress": planned_progress_pct(item, now),
        "efficiency": efficiency(item, now),
        "status_color": status_color(status),
        "priority_color": priority_color(priority),
        "duration_label": format_duration(item_duration),
        "remaining_label": format_remaining(days_left),
        "can_start": graph.can_start(item),
    }
    try:
        item_float = graph.total_float(item)
        values.update(
            total_float=item_float,
            earliest_start=graph.earliest_start(item),
            latest_start=graph.latest_start(item),
            on_critical_path=item_float == 0,
        )
    except CyclicDependencyError as e:
        values["float_error"] = str(e)
    return ItemAnnotation(**values)


def annotate(snapshot: ScheduleSnapshot, now: datetime) -> list[ItemAnnotation]:
    """Annotate every item; a cyclic item gets float_error instead of failing the batch."""
    graph = DependencyGraph(snapshot)
    return [annotate_item(item, graph, now) for item in snapshot.items]


def upcoming_deadlines(
    items: Iterable[ScheduleItem],
    now: datetime,
    days: int = DEFAULT_UPCOMING_DAYS,
) -> list[ScheduleItem]:
    """Unfinished items due between now and now + days (inclusive)."""
    now = to_utc(now)
    horizon = now + timedelta(days=days)
    return [item for item in items if now <= item.end <= horizon and item.progress < 100]


def overdue_items(items: Iterable[ScheduleItem], now: datetime) -> list[ScheduleItem]:
    now = to_utc(now)
    return [item for item in items if item.end < now and item.progress < 100]


def _matches_status(item: ScheduleItem, statuses: set[ScheduleItemStatus], now: datetime) -> bool:
    # Progress buckets and overdue overlap, so an item may match on either
    if ScheduleItemStatus.COMPLETED in statuses and item.progress >= 100:
        return True
    if ScheduleItemStatus.IN_PROGRESS in statuses and 0 < item.progress < 100:
        return True
    if ScheduleItemStatus.NOT_STARTED in statuses and item.progress == 0:
        return True
    if ScheduleItemStatus.OVERDUE in statuses and item.end < now and item.progress < 100:
        return True
    return False


def filter_items(
    items: Iterable[ScheduleItem],
    now: datetime,
    types: Optional[Iterable[ScheduleItemType]] = None,
    statuses: Optional[Iterable[ScheduleItemStatus]] = None,
) -> list[ScheduleItem]:
    """Filter by item type, then by status; an empty or missing filter keeps everything."""
    now = to_utc(now)
    result = list(items)
    type_set = set(types or ())
    if type_set:
        result = [item for item in result if item.type in type_set]
    status_set = set(statuses or ())
    if status_set:
        result = [item for item in result if _matches_status(item, status_set, now)]
    return result


def critical_path_items(items: Iterable[ScheduleItem], stats: ScheduleStats) -> list[ScheduleItem]:
    path_ids = set(stats.critical_path)
    return [item for item in items if item.id in path_ids]
