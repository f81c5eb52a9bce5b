"""
Schedule item and dependency model.

Raw records from the document store (camelCase dicts) are normalised one at a
time into frozen pydantic models. A problem with one record becomes a
ValidationIssue returned next to the results; it never aborts the batch.
"""

import logging
import math
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any, Iterable, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    computed_field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

DAY = timedelta(days=1)


class ScheduleItemType(str, Enum):
    MILESTONE = "milestone"
    WORK_PACKAGE = "workPackage"
    SUB_WORK_PACKAGE = "subWorkPackage"


class DependencyType(str, Enum):
    FINISH_TO_START = "finish-to-start"
    START_TO_START = "start-to-start"
    FINISH_TO_FINISH = "finish-to-finish"
    START_TO_FINISH = "start-to-finish"


# Short codes used by scheduling tools and some stored dependency records
_DEPENDENCY_TYPE_CODES: dict[str, DependencyType] = {
    "FS": DependencyType.FINISH_TO_START,
    "SS": DependencyType.START_TO_START,
    "FF": DependencyType.FINISH_TO_FINISH,
    "SF": DependencyType.START_TO_FINISH,
}


class ScheduleItemStatus(str, Enum):
    NOT_STARTED = "not-started"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    OVERDUE = "overdue"


class ScheduleItemPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class CriticalPathMethod(str, Enum):
    """Which algorithm produced a reported critical path."""

    HEURISTIC = "heuristic"  # top-N longest non-milestone items
    FLOAT = "float"  # zero total float in the dependency graph


class IssueCode(str, Enum):
    PROGRESS_CLAMPED = "progress_clamped"
    PROGRESS_INVALID = "progress_invalid"
    INVERTED_DATES = "inverted_dates"
    ITEM_REJECTED = "item_rejected"
    DUPLICATE_ITEM = "duplicate_item"
    SELF_DEPENDENCY = "self_dependency"
    DEPENDENCY_REJECTED = "dependency_rejected"
    DUPLICATE_DEPENDENCY = "duplicate_dependency"
    DANGLING_DEPENDENCY = "dangling_dependency"
    CYCLIC_DEPENDENCY = "cyclic_dependency"


def to_utc(dt: datetime) -> datetime:
    """Normalize datetime to UTC. Naive datetimes are assumed UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def ceil_days(delta: timedelta) -> int:
    """Whole days in a time delta, rounded up (negative deltas round toward zero)."""
    return math.ceil(delta / DAY)


def round_half_up(value: float) -> int:
    """Round .5 upwards, as dashboards expect (Python's round() is banker's rounding)."""
    return math.floor(value + 0.5)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a stored timestamp: datetime, date, ISO string or a serialized
    document-store timestamp ({"seconds": ..., "nanoseconds": ...}).
    Returns None when the value is missing or unparseable.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return to_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, str):
        try:
            return to_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
        except ValueError:
            return None
    if isinstance(value, dict) and "seconds" in value:
        try:
            seconds = float(value["seconds"]) + float(value.get("nanoseconds") or 0) / 1e9
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (TypeError, ValueError, OverflowError):
            return None
    return None


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class ScheduleItem(CamelModel):
    """A milestone, work package or sub-work-package with a time window and progress."""

    id: str = Field(min_length=1)
    title: str = ""
    start: datetime
    end: datetime
    progress: int = Field(default=0, ge=0, le=100)
    type: ScheduleItemType
    parent_id: Optional[str] = None

    @field_validator("start", "end")
    @classmethod
    def _as_utc(cls, v: datetime) -> datetime:
        return to_utc(v)

    @model_validator(mode="after")
    def _check_window(self) -> "ScheduleItem":
        if self.start > self.end:
            raise ValueError("start must not be after end")
        return self

    @property
    def is_milestone(self) -> bool:
        return self.type == ScheduleItemType.MILESTONE

    @property
    def span(self) -> timedelta:
        return self.end - self.start


class ScheduleDependency(CamelModel):
    """Precedence constraint: a boundary of `from` constrains a boundary of `to`."""

    id: str = Field(min_length=1)
    from_id: str = Field(alias="from", min_length=1)
    to_id: str = Field(alias="to", min_length=1)
    type: DependencyType = DependencyType.FINISH_TO_START

    @model_validator(mode="after")
    def _no_self_dependency(self) -> "ScheduleDependency":
        if self.from_id == self.to_id:
            raise ValueError("an item cannot depend on itself")
        return self


class ValidationIssue(CamelModel):
    code: IssueCode
    message: str
    item_id: Optional[str] = None
    dependency_id: Optional[str] = None


class ScheduleStats(CamelModel):
    """Dashboard summary of one schedule snapshot."""

    total_items: int = 0
    completed_items: int = 0
    in_progress_items: int = 0
    overdue_items: int = 0
    # Raw sum of (end - start). JSON carries it as an ISO-8601 duration ("P59D");
    # totalDurationSeconds and totalDurationDays give the same sum as numbers.
    total_duration: timedelta = timedelta(0)
    average_progress: float = 0.0
    critical_path: list[str] = Field(default_factory=list)
    critical_path_method: CriticalPathMethod = CriticalPathMethod.HEURISTIC
    warnings: list[ValidationIssue] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_duration_seconds(self) -> float:
        return self.total_duration.total_seconds()

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_duration_days(self) -> float:
        return self.total_duration / DAY


def _issue(
    code: IssueCode,
    message: str,
    item_id: Optional[str] = None,
    dependency_id: Optional[str] = None,
) -> ValidationIssue:
    return ValidationIssue(code=code, message=message, item_id=item_id, dependency_id=dependency_id)


def _first_error(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    err = errors[0]
    loc = ".".join(str(part) for part in err.get("loc", ()))
    return f"{loc}: {err.get('msg')}" if loc else str(err.get("msg"))


def _normalize_progress(value: Any, item_id: str) -> tuple[int, Optional[ValidationIssue]]:
    if value is None:
        return 0, None
    try:
        pct = float(value)
    except (TypeError, ValueError):
        return 0, _issue(IssueCode.PROGRESS_INVALID, f"item {item_id} has non-numeric progress {value!r}", item_id=item_id)
    if math.isnan(pct):
        return 0, _issue(IssueCode.PROGRESS_INVALID, f"item {item_id} has non-numeric progress", item_id=item_id)
    if pct < 0 or pct > 100:
        clamped = int(min(100.0, max(0.0, pct)))
        return clamped, _issue(
            IssueCode.PROGRESS_CLAMPED,
            f"item {item_id} progress {value} clamped to {clamped}",
            item_id=item_id,
        )
    # Truncate: only an item that actually reached 100 counts as complete
    return int(math.floor(pct)), None


def normalize_item(record: dict[str, Any]) -> tuple[Optional[ScheduleItem], list[ValidationIssue]]:
    """
    Normalise one raw item record. Returns (item or None, issues).
    Progress is clamped to [0, 100]; an inverted window collapses to zero duration at `start`.
    """
    raw_id = record.get("id")
    if raw_id is None or str(raw_id).strip() == "":
        return None, [_issue(IssueCode.ITEM_REJECTED, f"schedule item without id: {record.get('title')!r}")]
    item_id = str(raw_id)

    start = parse_timestamp(record.get("start"))
    end = parse_timestamp(record.get("end"))
    if start is None or end is None:
        return None, [_issue(IssueCode.ITEM_REJECTED, f"item {item_id} is missing a valid start or end date", item_id=item_id)]

    issues: list[ValidationIssue] = []
    if start > end:
        issues.append(_issue(
            IssueCode.INVERTED_DATES,
            f"item {item_id} ends before it starts; treated as zero duration",
            item_id=item_id,
        ))
        end = start

    progress, progress_issue = _normalize_progress(record.get("progress"), item_id)
    if progress_issue is not None:
        issues.append(progress_issue)

    parent_id = record.get("parentId", record.get("parent_id"))
    try:
        item = ScheduleItem(
            id=item_id,
            title=str(record.get("title") or item_id),
            start=start,
            end=end,
            progress=progress,
            type=record.get("type"),
            parent_id=str(parent_id) if parent_id else None,
        )
    except ValidationError as e:
        issues.append(_issue(IssueCode.ITEM_REJECTED, f"item {item_id} rejected ({_first_error(e)})", item_id=item_id))
        return None, issues
    return item, issues


def _parse_dependency_type(value: Any) -> Optional[DependencyType]:
    if value is None or value == "":
        return DependencyType.FINISH_TO_START
    if isinstance(value, DependencyType):
        return value
    text = str(value).strip()
    if text.upper() in _DEPENDENCY_TYPE_CODES:
        return _DEPENDENCY_TYPE_CODES[text.upper()]
    try:
        return DependencyType(text.lower())
    except ValueError:
        return None


def normalize_dependency(record: dict[str, Any]) -> tuple[Optional[ScheduleDependency], list[ValidationIssue]]:
    """Normalise one raw dependency record. Returns (dependency or None, issues)."""
    from_id = record.get("from", record.get("from_id"))
    to_id = record.get("to", record.get("to_id"))
    dep_id = str(record.get("id") or f"{from_id}->{to_id}")
    if not from_id or not to_id:
        return None, [_issue(IssueCode.DEPENDENCY_REJECTED, f"dependency {dep_id} is missing an endpoint", dependency_id=dep_id)]
    if str(from_id) == str(to_id):
        return None, [_issue(IssueCode.SELF_DEPENDENCY, f"dependency {dep_id} points item {from_id} at itself", dependency_id=dep_id, item_id=str(from_id))]

    dep_type = _parse_dependency_type(record.get("type"))
    if dep_type is None:
        return None, [_issue(IssueCode.DEPENDENCY_REJECTED, f"dependency {dep_id} has unknown type {record.get('type')!r}", dependency_id=dep_id)]
    return ScheduleDependency(id=dep_id, from_id=str(from_id), to_id=str(to_id), type=dep_type), []


Record = Union[dict[str, Any], ScheduleItem, ScheduleDependency]


def _as_record(value: Record) -> dict[str, Any]:
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True)
    return value


class ScheduleSnapshot(BaseModel):
    """
    Immutable view of one project's schedule: the unit every analytics function reads.

    Proposed changes ("what-if") produce a new snapshot via with_progress / with_dates,
    so current and proposed schedules can be analysed side by side.
    """

    model_config = ConfigDict(frozen=True)

    items: tuple[ScheduleItem, ...] = ()
    dependencies: tuple[ScheduleDependency, ...] = ()
    issues: tuple[ValidationIssue, ...] = ()

    @classmethod
    def from_records(
        cls,
        items: Iterable[Record],
        dependencies: Iterable[Record] = (),
    ) -> "ScheduleSnapshot":
        """Normalise raw records, collecting issues. Dangling dependencies are kept but flagged."""
        issues: list[ValidationIssue] = []
        normalized_items: list[ScheduleItem] = []
        seen_items: set[str] = set()
        for record in items:
            item, item_issues = normalize_item(_as_record(record))
            issues.extend(item_issues)
            if item is None:
                continue
            if item.id in seen_items:
                issues.append(_issue(IssueCode.DUPLICATE_ITEM, f"duplicate item id {item.id}; later record ignored", item_id=item.id))
                continue
            seen_items.add(item.id)
            normalized_items.append(item)

        normalized_deps: list[ScheduleDependency] = []
        seen_deps: set[str] = set()
        for record in dependencies:
            dep, dep_issues = normalize_dependency(_as_record(record))
            issues.extend(dep_issues)
            if dep is None:
                continue
            if dep.id in seen_deps:
                issues.append(_issue(IssueCode.DUPLICATE_DEPENDENCY, f"duplicate dependency id {dep.id}; later record ignored", dependency_id=dep.id))
                continue
            seen_deps.add(dep.id)
            missing = [end for end in (dep.from_id, dep.to_id) if end not in seen_items]
            if missing:
                issues.append(_issue(
                    IssueCode.DANGLING_DEPENDENCY,
                    f"dependency {dep.id} references unknown item(s) {', '.join(missing)}",
                    dependency_id=dep.id,
                ))
            normalized_deps.append(dep)

        for issue in issues:
            logger.warning("schedule_models: %s: %s", issue.code.value, issue.message)
        return cls(items=tuple(normalized_items), dependencies=tuple(normalized_deps), issues=tuple(issues))

    def item_by_id(self) -> dict[str, ScheduleItem]:
        return {item.id: item for item in self.items}

    def get_item(self, item_id: str) -> ScheduleItem:
        for item in self.items:
            if item.id == item_id:
                return item
        raise KeyError(item_id)

    def _replace_item(self, item_id: str, changes: dict[str, Any]) -> "ScheduleSnapshot":
        current = self.get_item(item_id)
        record = current.model_dump(by_alias=True)
        record.update(changes)
        item, item_issues = normalize_item(record)
        if item is None:
            raise ValueError("; ".join(issue.message for issue in item_issues) or f"invalid change for {item_id}")
        for issue in item_issues:
            logger.warning("schedule_models: %s: %s", issue.code.value, issue.message)
        items = tuple(item if i.id == item_id else i for i in self.items)
        return self.model_copy(update={"items": items, "issues": self.issues + tuple(item_issues)})

    def with_progress(self, item_id: str, progress: Any) -> "ScheduleSnapshot":
        """New snapshot with one item's progress replaced (clamped like any stored value)."""
        return self._replace_item(item_id, {"progress": progress})

    def with_dates(
        self,
        item_id: str,
        start: Optional[Any] = None,
        end: Optional[Any] = None,
    ) -> "ScheduleSnapshot":
        """New snapshot with one item rescheduled; omitted bounds keep their current value."""
        changes: dict[str, Any] = {}
        if start is not None:
            changes["start"] = start
        if end is not None:
            changes["end"] = end
        return self._replace_item(item_id, changes)
