"""
Tests for the schedule service (project documents -> analytics views).
"""

from datetime import datetime, timezone

import pytest

from site_schedule.services.schedule_models import (
    CriticalPathMethod,
    IssueCode,
    ScheduleItemStatus,
    ScheduleItemType,
    ScheduleSnapshot,
)
from site_schedule.services.schedule_service import (
    ProjectNotFoundError,
    analyze_records,
    apply_changes,
    flatten_project_document,
    get_critical_path,
    get_item_dependencies,
    get_overdue_items,
    get_project_snapshot,
    get_schedule_annotations,
    get_schedule_items,
    get_schedule_stats,
    get_upcoming_deadlines,
    list_projects,
    run_what_if,
)

FLOAT_CRITICAL = {
    "milestone-ms-groundbreaking",
    "workPackage-wp-site",
    "workPackage-wp-foundation",
    "workPackage-wp-structure",
    "milestone-ms-topping-out",
    "workPackage-wp-mep",
    "workPackage-wp-commissioning",
    "milestone-ms-handover",
}


class TestFlattenProjectDocument:
    def test_ids_and_types(self) -> None:
        project = {"milestones": [{"id": "m1", "name": "Kickoff", "targetDate": "2024-01-05", "completed": True}]}
        wps = [
            {
                "id": "wp1",
                "name": "Earthworks",
                "progress": 30,
                "estimatedStartDate": "2024-01-01",
                "estimatedEndDate": "2024-01-20",
                "subPackages": [
                    {"id": "s1", "name": "Dig", "estimatedStartDate": "2024-01-02", "estimatedEndDate": "2024-01-06"},
                ],
            }
        ]
        records = flatten_project_document(project, wps)
        assert [r["id"] for r in records] == ["workPackage-wp1", "subWorkPackage-s1", "milestone-m1"]
        milestone = records[2]
        assert milestone["start"] == milestone["end"]
        assert milestone["progress"] == 100
        assert records[1]["parentId"] == "workPackage-wp1"
        assert records[1]["progress"] == 0

    def test_undated_records_skipped(self) -> None:
        project = {"milestones": [{"id": "m1", "name": "TBD"}]}
        wps = [
            {
                "id": "wp1",
                "name": "Undated",
                "subPackages": [
                    {"id": "s1", "name": "Dated", "estimatedStartDate": "2024-01-02", "estimatedEndDate": "2024-01-06"},
                    {"id": "s2", "name": "Half dated", "estimatedStartDate": "2024-01-02"},
                ],
            }
        ]
        assert [r["id"] for r in flatten_project_document(project, wps)] == ["subWorkPackage-s1"]

    def test_documents_without_id_do_not_abort_load(self) -> None:
        project = {"milestones": [{"name": "Unnamed milestone", "targetDate": "2024-02-01"}]}
        wps = [
            {"id": "wp1", "name": "Earthworks", "estimatedStartDate": "2024-01-01", "estimatedEndDate": "2024-01-20"},
            {
                "name": "Orphan package",
                "estimatedStartDate": "2024-01-05",
                "estimatedEndDate": "2024-01-25",
                "subPackages": [
                    {"id": "s1", "name": "Dig", "estimatedStartDate": "2024-01-06", "estimatedEndDate": "2024-01-08"},
                ],
            },
        ]
        records = flatten_project_document(project, wps)
        assert len(records) == 4
        snapshot = ScheduleSnapshot.from_records(records)
        assert [i.id for i in snapshot.items] == ["workPackage-wp1", "subWorkPackage-s1"]
        assert snapshot.get_item("subWorkPackage-s1").parent_id is None
        assert [i.code for i in snapshot.issues] == [IssueCode.ITEM_REJECTED, IssueCode.ITEM_REJECTED]

    def test_sub_package_parent_is_prefixed_item_id(self) -> None:
        wps = [
            {
                "id": "wp7",
                "name": "Frame",
                "estimatedStartDate": "2024-01-01",
                "estimatedEndDate": "2024-01-20",
                "subPackages": [
                    {"id": "s7", "name": "Columns", "estimatedStartDate": "2024-01-02", "estimatedEndDate": "2024-01-06"},
                ],
            }
        ]
        snapshot = ScheduleSnapshot.from_records(flatten_project_document({}, wps))
        sub = snapshot.get_item("subWorkPackage-s7")
        assert sub.parent_id == "workPackage-wp7"
        assert snapshot.get_item(sub.parent_id).title == "Frame"

    def test_document_store_timestamps(self) -> None:
        project = {"milestones": [{"id": "m1", "targetDate": {"seconds": 1704067200, "nanoseconds": 0}}]}
        records = flatten_project_document(project, [])
        assert records[0]["start"] == datetime(2024, 1, 1, tzinfo=timezone.utc)


class TestProjectSnapshot:
    def test_tower_a_loads_cleanly(self, default_project_id: str) -> None:
        snapshot = get_project_snapshot(default_project_id)
        assert len(snapshot.items) == 16
        assert len(snapshot.dependencies) == 9
        assert snapshot.issues == ()

    def test_items_sorted_by_start(self, default_project_id: str) -> None:
        starts = [item.start for item in get_project_snapshot(default_project_id).items]
        assert starts == sorted(starts)

    def test_depot_b_normalised_with_warnings(self) -> None:
        snapshot = get_project_snapshot("depot-b")
        assert [i.id for i in snapshot.items] == ["workPackage-wp-slab", "workPackage-wp-racking", "milestone-ms-opening"]
        assert [i.code for i in snapshot.issues] == [
            IssueCode.PROGRESS_CLAMPED,
            IssueCode.INVERTED_DATES,
            IssueCode.DANGLING_DEPENDENCY,
        ]
        assert snapshot.get_item("workPackage-wp-slab").progress == 100
        racking = snapshot.get_item("workPackage-wp-racking")
        assert racking.start == racking.end

    def test_unknown_project(self) -> None:
        with pytest.raises(ProjectNotFoundError):
            get_project_snapshot("unknown-project")

    def test_list_projects(self) -> None:
        assert {p["id"] for p in list_projects()} == {"tower-a", "depot-b"}


class TestScheduleViews:
    def test_stats(self, default_project_id: str, project_now: datetime) -> None:
        stats = get_schedule_stats(default_project_id, now=project_now)
        assert stats["project_id"] == default_project_id
        assert stats["totalItems"] == 16
        assert stats["completedItems"] == 8
        assert stats["inProgressItems"] == 4
        assert stats["overdueItems"] == 0
        assert stats["criticalPathMethod"] == "heuristic"
        assert stats["criticalPath"] == [
            "workPackage-wp-mep",
            "workPackage-wp-envelope",
            "workPackage-wp-structure",
            "workPackage-wp-fitout",
            "subWorkPackage-sub-frame-upper",
        ]

    def test_stats_float_method(self, default_project_id: str, project_now: datetime) -> None:
        stats = get_schedule_stats(default_project_id, now=project_now, method="float")
        assert set(stats["criticalPath"]) == FLOAT_CRITICAL

    def test_items_filtered(self, default_project_id: str, project_now: datetime) -> None:
        result = get_schedule_items(default_project_id, now=project_now, types=[ScheduleItemType.MILESTONE])
        assert result["count"] == 3
        in_progress = get_schedule_items(default_project_id, now=project_now, statuses=[ScheduleItemStatus.IN_PROGRESS])
        assert {i["id"] for i in in_progress["items"]} == {
            "workPackage-wp-structure",
            "subWorkPackage-sub-frame-upper",
            "workPackage-wp-envelope",
            "workPackage-wp-mep",
        }

    def test_items_carry_warnings(self, project_now: datetime) -> None:
        result = get_schedule_items("depot-b", now=project_now)
        assert [w["code"] for w in result["warnings"]] == ["progress_clamped", "inverted_dates", "dangling_dependency"]

    def test_annotations(self, default_project_id: str, project_now: datetime) -> None:
        result = get_schedule_annotations(default_project_id, now=project_now)
        by_id = {a["itemId"]: a for a in result["annotations"]}
        assert by_id["workPackage-wp-fitout"]["float"] == 10
        assert by_id["workPackage-wp-fitout"]["canStart"] is False
        assert by_id["workPackage-wp-envelope"]["float"] == 137
        assert by_id["subWorkPackage-sub-survey"]["float"] == by_id["subWorkPackage-sub-survey"]["duration"]
        assert by_id["workPackage-wp-mep"]["onCriticalPath"] is True

    def test_critical_path_heuristic_is_marked_approximate(self, default_project_id: str, project_now: datetime) -> None:
        result = get_critical_path(default_project_id, now=project_now)
        assert result["method"] == "heuristic"
        assert result["approximate"] is True
        assert [c["id"] for c in result["critical_path"]] == result["item_ids"]

    def test_critical_path_float(self, default_project_id: str, project_now: datetime) -> None:
        result = get_critical_path(default_project_id, now=project_now, method=CriticalPathMethod.FLOAT)
        assert result["approximate"] is False
        assert set(result["item_ids"]) == FLOAT_CRITICAL

    def test_upcoming_deadlines(self, default_project_id: str, project_now: datetime) -> None:
        assert get_upcoming_deadlines(default_project_id, now=project_now)["count"] == 0
        result = get_upcoming_deadlines(default_project_id, now=project_now, days=45)
        assert result["days"] == 45
        assert [i["id"] for i in result["items"]] == [
            "workPackage-wp-structure",
            "subWorkPackage-sub-frame-upper",
            "milestone-ms-topping-out",
        ]

    def test_overdue_items(self, default_project_id: str) -> None:
        result = get_overdue_items(default_project_id, now=datetime(2026, 8, 10, tzinfo=timezone.utc))
        assert result["count"] == 3
        assert all(i["status"] == "overdue" for i in result["items"])


class TestItemDependencies:
    def test_structure(self, default_project_id: str, project_now: datetime) -> None:
        result = get_item_dependencies(default_project_id, "workPackage-wp-structure", now=project_now)
        assert [u["id"] for u in result["upstream"]] == ["workPackage-wp-foundation"]
        assert [d["id"] for d in result["downstream"]] == [
            "workPackage-wp-envelope",
            "milestone-ms-topping-out",
            "workPackage-wp-fitout",
        ]
        assert result["downstream"][0]["dependencyType"] == "start-to-start"
        assert result["can_start"] is True
        assert result["float"] == 0
        assert result["onCriticalPath"] is True
        assert result["impact_statement"].startswith("If this item slips, 5 downstream item(s) may move")

    def test_blocked_item(self, default_project_id: str, project_now: datetime) -> None:
        result = get_item_dependencies(default_project_id, "workPackage-wp-fitout", now=project_now)
        assert result["can_start"] is False
        assert result["blocked_by"] == ["workPackage-wp-structure"]
        assert result["float"] == 10
        assert result["earliestStart"].startswith("2026-07-31")

    def test_leaf_item(self, default_project_id: str, project_now: datetime) -> None:
        result = get_item_dependencies(default_project_id, "milestone-ms-handover", now=project_now)
        assert result["downstream"] == []
        assert result["impact_statement"] == "No downstream dependencies."

    def test_unknown_item(self, default_project_id: str) -> None:
        with pytest.raises(KeyError):
            get_item_dependencies(default_project_id, "workPackage-nope")


class TestAnalyzeRecords:
    def test_caller_supplied_records(self) -> None:
        result = analyze_records(
            [
                {"id": "A", "title": "A", "start": "2024-01-01", "end": "2024-01-10", "progress": 100, "type": "workPackage"},
                {"id": "D", "title": "D", "start": "2024-01-05", "end": "2024-01-20", "progress": 0, "type": "workPackage"},
            ],
            [{"id": "d1", "from": "A", "to": "D", "type": "finish-to-start"}],
            now=datetime(2024, 1, 15, tzinfo=timezone.utc),
            method="float",
        )
        by_id = {a["itemId"]: a for a in result["annotations"]}
        assert by_id["D"]["canStart"] is True
        assert by_id["D"]["earliestStart"].startswith("2024-01-10")
        assert result["stats"]["criticalPath"] == ["A"]

    def test_empty_input(self) -> None:
        result = analyze_records([], now=datetime(2024, 1, 15, tzinfo=timezone.utc))
        assert result["stats"]["totalItems"] == 0
        assert result["stats"]["averageProgress"] == 0
        assert result["annotations"] == []


class TestWhatIf:
    def test_apply_changes_leaves_current_untouched(self, default_project_id: str) -> None:
        current = get_project_snapshot(default_project_id)
        proposed = apply_changes(current, [{"itemId": "workPackage-wp-structure", "progress": 100}])
        assert proposed.get_item("workPackage-wp-structure").progress == 100
        assert current.get_item("workPackage-wp-structure").progress == 65

    def test_apply_changes_moves_dates(self, default_project_id: str) -> None:
        current = get_project_snapshot(default_project_id)
        proposed = apply_changes(current, [{"itemId": "workPackage-wp-fitout", "end": "2026-11-06T00:00:00+00:00"}])
        fitout = proposed.get_item("workPackage-wp-fitout")
        assert fitout.start == current.get_item("workPackage-wp-fitout").start
        assert fitout.end == datetime(2026, 11, 6, tzinfo=timezone.utc)

    def test_completing_an_item(self, default_project_id: str, project_now: datetime) -> None:
        result = run_what_if(
            default_project_id,
            [{"itemId": "workPackage-wp-structure", "progress": 100}],
            now=project_now,
        )
        assert result["current"]["completedItems"] == 8
        assert result["proposed"]["completedItems"] == 9
        assert result["changes"] == [
            {
                "id": "workPackage-wp-structure",
                "title": "Superstructure",
                "status": {"from": "in-progress", "to": "completed"},
            }
        ]

    def test_unknown_item(self, default_project_id: str) -> None:
        with pytest.raises(KeyError):
            run_what_if(default_project_id, [{"itemId": "workPackage-nope", "progress": 50}])

    def test_unusable_dates(self, default_project_id: str) -> None:
        with pytest.raises(ValueError):
            run_what_if(default_project_id, [{"itemId": "workPackage-wp-fitout", "start": "soon"}])
