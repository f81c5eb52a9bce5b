"""
Schedule API v1: items, stats, annotations, dependencies, critical path, what-if.

Resource-centric URIs; version in path. Every read accepts `now` so dashboards
and tests can pin the clock.
"""

from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field

from site_schedule.config import get_settings
from site_schedule.services.schedule_models import (
    CriticalPathMethod,
    ScheduleItemStatus,
    ScheduleItemType,
)
from site_schedule.services.schedule_service import (
    ProjectNotFoundError,
    analyze_records,
    get_critical_path,
    get_item_dependencies,
    get_overdue_items,
    get_schedule_annotations,
    get_schedule_items,
    get_schedule_stats,
    get_upcoming_deadlines,
    list_projects,
    run_what_if,
)

router = APIRouter()


class AnalyzeBody(BaseModel):
    items: list[dict[str, Any]] = Field(default_factory=list, description="Raw schedule item records")
    dependencies: list[dict[str, Any]] = Field(default_factory=list, description="Raw dependency records")
    now: Optional[datetime] = None
    method: Optional[CriticalPathMethod] = None


class ProposedChange(BaseModel):
    item_id: str = Field(alias="itemId")
    progress: Optional[float] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None


class WhatIfBody(BaseModel):
    changes: list[ProposedChange] = Field(default_factory=list)
    now: Optional[datetime] = None
    method: Optional[CriticalPathMethod] = None


def _not_found(exc: LookupError) -> HTTPException:
    if isinstance(exc, ProjectNotFoundError):
        return HTTPException(status_code=404, detail="Project not found")
    return HTTPException(status_code=404, detail="Item not found")


@router.get("/projects")
async def get_projects() -> dict:
    projects = list_projects()
    return {"projects": projects, "count": len(projects), "default": get_settings().default_project_id}


@router.get("/items/{project_id}")
async def get_items(
    project_id: str,
    now: Optional[datetime] = Query(default=None),
    type: Optional[list[ScheduleItemType]] = Query(default=None),
    status: Optional[list[ScheduleItemStatus]] = Query(default=None),
) -> dict:
    """Normalised schedule items (+ validation warnings), filterable by type and status."""
    try:
        return get_schedule_items(project_id, now=now, types=type, statuses=status)
    except ProjectNotFoundError as e:
        raise _not_found(e)


@router.get("/stats/{project_id}")
async def get_stats(
    project_id: str,
    now: Optional[datetime] = Query(default=None),
    method: Optional[CriticalPathMethod] = Query(default=None),
) -> dict:
    """Dashboard summary: counts by state, total duration, average progress, critical path."""
    try:
        return get_schedule_stats(project_id, now=now, method=method)
    except ProjectNotFoundError as e:
        raise _not_found(e)


@router.get("/annotations/{project_id}")
async def get_annotations(project_id: str, now: Optional[datetime] = Query(default=None)) -> dict:
    """Per-item status, priority, risk level, duration, remaining days and float."""
    try:
        return get_schedule_annotations(project_id, now=now)
    except ProjectNotFoundError as e:
        raise _not_found(e)


@router.get("/items/{project_id}/{item_id}/dependencies")
async def get_dependencies(
    project_id: str,
    item_id: str,
    now: Optional[datetime] = Query(default=None),
) -> dict:
    """Upstream/downstream items, start eligibility, earliest/latest start and float."""
    try:
        return get_item_dependencies(project_id, item_id, now=now)
    except LookupError as e:
        raise _not_found(e)


@router.get("/critical-path/{project_id}")
async def get_critical_path_endpoint(
    project_id: str,
    now: Optional[datetime] = Query(default=None),
    method: Optional[CriticalPathMethod] = Query(default=None),
) -> dict:
    """Critical path for highlighting; `approximate` is true for the heuristic method."""
    try:
        return get_critical_path(project_id, now=now, method=method)
    except ProjectNotFoundError as e:
        raise _not_found(e)


@router.get("/upcoming/{project_id}")
async def get_upcoming(
    project_id: str,
    now: Optional[datetime] = Query(default=None),
    days: Optional[int] = Query(default=None, ge=0),
) -> dict:
    try:
        return get_upcoming_deadlines(project_id, now=now, days=days)
    except ProjectNotFoundError as e:
        raise _not_found(e)


@router.get("/overdue/{project_id}")
async def get_overdue(project_id: str, now: Optional[datetime] = Query(default=None)) -> dict:
    try:
        return get_overdue_items(project_id, now=now)
    except ProjectNotFoundError as e:
        raise _not_found(e)


@router.post("/analyze")
async def analyze(body: AnalyzeBody) -> dict:
    """Analyze caller-supplied items and dependencies without touching the project store."""
    return analyze_records(body.items, body.dependencies, now=body.now, method=body.method)


@router.post("/what-if/{project_id}")
async def what_if(project_id: str, body: WhatIfBody) -> dict:
    """Compare current and proposed schedules. Nothing is saved."""
    changes = [c.model_dump(by_alias=True) for c in body.changes]
    try:
        return run_what_if(project_id, changes, now=body.now, method=body.method)
    except LookupError as e:
        raise _not_found(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
