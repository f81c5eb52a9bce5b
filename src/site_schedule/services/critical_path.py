"""
Heuristic critical path: the longest non-milestone items.

This is an approximation for quick dashboard estimates, not a CPM critical
path. Use DependencyGraph.critical_path() for the float-based path; stats
carry a CriticalPathMethod so consumers can tell which one they received.
"""

from typing import Iterable

from site_schedule.services.schedule_models import ScheduleItem

DEFAULT_CRITICAL_PATH_SIZE = 5


def select_heuristic_critical_path(
    items: Iterable[ScheduleItem],
    size: int = DEFAULT_CRITICAL_PATH_SIZE,
) -> list[str]:
    """Ids of the `size` longest non-milestone items; ties keep input order."""
    candidates = [item for item in items if not item.is_milestone]
    # sorted() is stable, so equal spans stay in input order
    ranked = sorted(candidates, key=lambda item: item.span, reverse=True)
    return [item.id for item in ranked[:max(0, size)]]
