"""
Schedule service: project documents → schedule snapshot → stats, annotations,
dependency views and what-if comparisons.

Reads the simulated project store; the engine modules never touch storage or the clock.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, Optional, Union

from site_schedule.config import get_settings
from site_schedule.services.dependency_graph import CyclicDependencyError, DependencyGraph
from site_schedule.services.schedule_aggregator import (
    aggregate,
    annotate,
    filter_items,
    overdue_items,
    upcoming_deadlines,
)
from site_schedule.services.schedule_models import (
    CriticalPathMethod,
    ScheduleItem,
    ScheduleItemStatus,
    ScheduleItemType,
    ScheduleSnapshot,
    parse_timestamp,
    to_utc,
)
from site_schedule.services.schedule_simulated_data import (
    get_simulated_dependencies,
    get_simulated_project,
    get_simulated_work_packages,
    list_simulated_projects,
)
from site_schedule.services.status_classifier import classify_status

logger = logging.getLogger(__name__)


class ProjectNotFoundError(LookupError):
    def __init__(self, project_id: str) -> None:
        super().__init__(f"project {project_id} not found")
        self.project_id = project_id


def _utc_now() -> datetime:
    """Return current time in UTC (timezone-aware)."""
    return datetime.now(timezone.utc)


def _resolve_now(now: Optional[datetime]) -> datetime:
    return to_utc(now) if now is not None else _utc_now()


def _resolve_method(method: Union[str, CriticalPathMethod, None]) -> CriticalPathMethod:
    if method is None:
        return CriticalPathMethod(get_settings().default_critical_path_method)
    return CriticalPathMethod(method)


def _dump(model: Any) -> dict[str, Any]:
    return model.model_dump(by_alias=True, mode="json")


def _milestone_done(milestone: dict[str, Any]) -> bool:
    return bool(milestone.get("completed")) or milestone.get("status") == "completed"


def _item_id(prefix: str, document: dict[str, Any]) -> Optional[str]:
    """Schedule item id for a document; None when the document has no id (rejected on normalisation)."""
    doc_id = document.get("id")
    if doc_id is None or str(doc_id).strip() == "":
        logger.warning("schedule_service: %s document without id: %r", prefix, document.get("name"))
        return None
    return f"{prefix}-{doc_id}"


def flatten_project_document(
    project: dict[str, Any],
    work_packages: Iterable[dict[str, Any]],
) -> list[dict[str, Any]]:
    """
    Flatten a project document into raw schedule item records.
    Milestones, work packages and sub-packages without both dates are skipped.
    Documents without an id are passed on with id None, so normalisation
    rejects them with an item_rejected issue. Sorted by start date (stable).
    """
    records: list[dict[str, Any]] = []

    for milestone in project.get("milestones") or []:
        target = parse_timestamp(milestone.get("targetDate"))
        if target is None:
            logger.debug("schedule_service: milestone %s has no target date", milestone.get("id"))
            continue
        records.append({
            "id": _item_id("milestone", milestone),
            "title": milestone.get("name", ""),
            "start": target,
            "end": target,
            "progress": 100 if _milestone_done(milestone) else 0,
            "type": ScheduleItemType.MILESTONE.value,
        })

    for wp in work_packages:
        wp_item_id = _item_id("workPackage", wp)
        start = parse_timestamp(wp.get("estimatedStartDate"))
        end = parse_timestamp(wp.get("estimatedEndDate"))
        if start and end:
            records.append({
                "id": wp_item_id,
                "title": wp.get("name", ""),
                "start": start,
                "end": end,
                "progress": wp.get("progress") or 0,
                "type": ScheduleItemType.WORK_PACKAGE.value,
            })
        else:
            logger.debug("schedule_service: work package %s has no estimated dates", wp.get("id"))

        for sub in wp.get("subPackages") or []:
            sub_start = parse_timestamp(sub.get("estimatedStartDate"))
            sub_end = parse_timestamp(sub.get("estimatedEndDate"))
            if not (sub_start and sub_end):
                continue
            records.append({
                "id": _item_id("subWorkPackage", sub),
                "title": sub.get("name", ""),
                "start": sub_start,
                "end": sub_end,
                "progress": sub.get("progress") or 0,
                "type": ScheduleItemType.SUB_WORK_PACKAGE.value,
                # Prefixed schedule item id of the parent, not the raw work package document id
                "parentId": wp_item_id,
            })

    records.sort(key=lambda r: r["start"])
    return records


def list_projects() -> list[dict[str, Any]]:
    return list_simulated_projects()


def get_project_snapshot(project_id: str) -> ScheduleSnapshot:
    """Fetch and normalise a project's schedule. Raises ProjectNotFoundError."""
    project = get_simulated_project(project_id)
    if project is None:
        raise ProjectNotFoundError(project_id)
    records = flatten_project_document(project, get_simulated_work_packages(project_id))
    snapshot = ScheduleSnapshot.from_records(records, get_simulated_dependencies(project_id))
    logger.info(
        "schedule_service: loaded %s items, %s dependencies for %s (%s warning(s))",
        len(snapshot.items),
        len(snapshot.dependencies),
        project_id,
        len(snapshot.issues),
    )
    return snapshot


def _summarize(item: ScheduleItem, now: datetime) -> dict[str, Any]:
    return {
        "id": item.id,
        "title": item.title,
        "type": item.type.value,
        "status": classify_status(item, now).value,
        "progress": item.progress,
        "start": item.start.isoformat(),
        "end": item.end.isoformat(),
    }


def get_schedule_items(
    project_id: str,
    now: Optional[datetime] = None,
    types: Optional[Iterable[ScheduleItemType]] = None,
    statuses: Optional[Iterable[ScheduleItemStatus]] = None,
) -> dict[str, Any]:
    """Normalised items, optionally filtered by type and status."""
    now = _resolve_now(now)
    snapshot = get_project_snapshot(project_id)
    items = filter_items(snapshot.items, now, types=types, statuses=statuses)
    return {
        "project_id": project_id,
        "items": [_dump(item) for item in items],
        "count": len(items),
        "warnings": [_dump(issue) for issue in snapshot.issues],
    }


def get_schedule_stats(
    project_id: str,
    now: Optional[datetime] = None,
    method: Union[str, CriticalPathMethod, None] = None,
) -> dict[str, Any]:
    stats = aggregate(
        get_project_snapshot(project_id),
        _resolve_now(now),
        method=_resolve_method(method),
        critical_path_size=get_settings().critical_path_size,
    )
    return {"project_id": project_id, **_dump(stats)}


def get_schedule_annotations(project_id: str, now: Optional[datetime] = None) -> dict[str, Any]:
    """Per-item status, priority, risk, duration, remaining days and float."""
    now = _resolve_now(now)
    snapshot = get_project_snapshot(project_id)
    annotations = annotate(snapshot, now)
    return {
        "project_id": project_id,
        "now": now.isoformat(),
        "annotations": [_dump(a) for a in annotations],
        "warnings": [_dump(issue) for issue in snapshot.issues],
    }


def get_critical_path(
    project_id: str,
    now: Optional[datetime] = None,
    method: Union[str, CriticalPathMethod, None] = None,
) -> dict[str, Any]:
    """
    Critical path items for highlighting. `method` says whether it is the
    heuristic longest-items estimate or the zero-float path.
    """
    now = _resolve_now(now)
    resolved = _resolve_method(method)
    snapshot = get_project_snapshot(project_id)
    stats = aggregate(snapshot, now, method=resolved, critical_path_size=get_settings().critical_path_size)
    by_id = snapshot.item_by_id()
    return {
        "project_id": project_id,
        "method": resolved.value,
        "approximate": resolved == CriticalPathMethod.HEURISTIC,
        "item_ids": stats.critical_path,
        "critical_path": [_summarize(by_id[tid], now) for tid in stats.critical_path],
    }


def get_item_dependencies(
    project_id: str,
    item_id: str,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """
    Upstream = constrains this item; downstream = impacted if this slips.
    Raises KeyError for an unknown item.
    """
    now = _resolve_now(now)
    snapshot = get_project_snapshot(project_id)
    item = snapshot.get_item(item_id)
    graph = DependencyGraph(snapshot)
    by_id = snapshot.item_by_id()

    upstream = [
        {**_summarize(by_id[dep.from_id], now), "dependencyId": dep.id, "dependencyType": dep.type.value}
        for dep in graph.predecessors_of(item)
    ]
    downstream = [
        {**_summarize(by_id[dep.to_id], now), "dependencyId": dep.id, "dependencyType": dep.type.value}
        for dep in graph.successors_of(item)
    ]

    timing: dict[str, Any] = {"earliestStart": None, "latestStart": None, "float": None, "onCriticalPath": None, "floatError": None}
    try:
        item_float = graph.total_float(item)
        timing.update(
            earliestStart=graph.earliest_start(item).isoformat(),
            latestStart=graph.latest_start(item).isoformat(),
            float=item_float,
            onCriticalPath=item_float == 0,
        )
    except CyclicDependencyError as e:
        timing["floatError"] = str(e)

    # Impact statement: "If X slips, these N items may move."
    affected = sorted(graph.downstream_ids(item), key=lambda tid: by_id[tid].start)
    titles = [by_id[tid].title for tid in affected]
    if affected:
        impact = f"If this item slips, {len(affected)} downstream item(s) may move: {', '.join(titles[:5])}{'…' if len(titles) > 5 else ''}."
    else:
        impact = "No downstream dependencies."

    return {
        "project_id": project_id,
        "item_id": item_id,
        "upstream": upstream,
        "downstream": downstream,
        "can_start": graph.can_start(item),
        "blocked_by": [p.id for p in graph.blocking_predecessors(item)],
        **timing,
        "impact_statement": impact,
    }


def get_upcoming_deadlines(
    project_id: str,
    now: Optional[datetime] = None,
    days: Optional[int] = None,
) -> dict[str, Any]:
    now = _resolve_now(now)
    window = get_settings().upcoming_window_days if days is None else days
    items = upcoming_deadlines(get_project_snapshot(project_id).items, now, days=window)
    return {
        "project_id": project_id,
        "days": window,
        "items": [_summarize(item, now) for item in items],
        "count": len(items),
    }


def get_overdue_items(project_id: str, now: Optional[datetime] = None) -> dict[str, Any]:
    now = _resolve_now(now)
    items = overdue_items(get_project_snapshot(project_id).items, now)
    return {
        "project_id": project_id,
        "items": [_summarize(item, now) for item in items],
        "count": len(items),
    }


def analyze_records(
    items: Iterable[Any],
    dependencies: Iterable[Any] = (),
    now: Optional[datetime] = None,
    method: Union[str, CriticalPathMethod, None] = None,
) -> dict[str, Any]:
    """Stateless analysis of caller-supplied item/dependency records."""
    now = _resolve_now(now)
    snapshot = ScheduleSnapshot.from_records(items, dependencies)
    stats = aggregate(
        snapshot,
        now,
        method=_resolve_method(method),
        critical_path_size=get_settings().critical_path_size,
    )
    return {
        "now": now.isoformat(),
        "stats": _dump(stats),
        "annotations": [_dump(a) for a in annotate(snapshot, now)],
    }


def apply_changes(snapshot: ScheduleSnapshot, changes: Iterable[dict[str, Any]]) -> ScheduleSnapshot:
    """
    Build a proposed snapshot from {itemId, progress?, start?, end?} changes.
    The input snapshot is untouched. Raises KeyError for unknown items.
    """
    proposed = snapshot
    for change in changes:
        item_id = change.get("itemId") or change.get("item_id")
        if change.get("progress") is not None:
            proposed = proposed.with_progress(item_id, change["progress"])
        if change.get("start") is not None or change.get("end") is not None:
            proposed = proposed.with_dates(item_id, start=change.get("start"), end=change.get("end"))
    return proposed


def run_what_if(
    project_id: str,
    changes: Iterable[dict[str, Any]],
    now: Optional[datetime] = None,
    method: Union[str, CriticalPathMethod, None] = None,
) -> dict[str, Any]:
    """
    Compare the current schedule with a proposed one. Nothing is persisted.
    """
    now = _resolve_now(now)
    resolved = _resolve_method(method)
    size = get_settings().critical_path_size
    current = get_project_snapshot(project_id)
    proposed = apply_changes(current, changes)

    current_by_id = {a.item_id: a for a in annotate(current, now)}
    item_changes: list[dict[str, Any]] = []
    for annotation in annotate(proposed, now):
        before = _dump(current_by_id[annotation.item_id])
        after = _dump(annotation)
        diff = {
            key: {"from": before[key], "to": after[key]}
            for key in ("status", "priority", "riskLevel", "float")
            if before[key] != after[key]
        }
        if diff:
            item_changes.append({"id": annotation.item_id, "title": annotation.title, **diff})

    return {
        "project_id": project_id,
        "now": now.isoformat(),
        "current": _dump(aggregate(current, now, method=resolved, critical_path_size=size)),
        "proposed": _dump(aggregate(proposed, now, method=resolved, critical_path_size=size)),
        "changes": item_changes,
    }
