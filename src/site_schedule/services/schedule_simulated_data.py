"""
Simulated project documents for Site Schedule (no document store).

Same shapes the project store returns: a project document with milestones,
work packages with nested sub-packages, and a flat dependency collection.
"""

from typing import Any, Optional

DEFAULT_PROJECT_ID = "tower-a"

_PROJECTS: dict[str, dict[str, Any]] = {
    "tower-a": {
        "id": "tower-a",
        "name": "Tower A residential block",
        "milestones": [
            {"id": "ms-groundbreaking", "name": "Groundbreaking", "targetDate": "2026-03-02T00:00:00+00:00", "completed": True},
            {"id": "ms-topping-out", "name": "Topping out", "targetDate": "2026-07-31T00:00:00+00:00", "completed": False},
            {"id": "ms-handover", "name": "Handover to owner", "targetDate": "2026-10-30T00:00:00+00:00", "completed": False},
        ],
    },
    "depot-b": {
        "id": "depot-b",
        "name": "Depot B logistics shed",
        "milestones": [
            {"id": "ms-opening", "name": "Depot opening", "targetDate": "2026-05-01T00:00:00+00:00"},
        ],
    },
}

_WORK_PACKAGES: dict[str, list[dict[str, Any]]] = {
    "tower-a": [
        {
            "id": "wp-site", "name": "Site preparation", "progress": 100,
            "estimatedStartDate": "2026-03-02T00:00:00+00:00", "estimatedEndDate": "2026-03-20T00:00:00+00:00",
            "subPackages": [
                {"id": "sub-survey", "name": "Survey and setting out", "progress": 100, "estimatedStartDate": "2026-03-02T00:00:00+00:00", "estimatedEndDate": "2026-03-06T00:00:00+00:00"},
                {"id": "sub-excavation", "name": "Bulk excavation", "progress": 100, "estimatedStartDate": "2026-03-06T00:00:00+00:00", "estimatedEndDate": "2026-03-20T00:00:00+00:00"},
            ],
        },
        {
            "id": "wp-foundation", "name": "Foundations", "progress": 100,
            "estimatedStartDate": "2026-03-20T00:00:00+00:00", "estimatedEndDate": "2026-05-01T00:00:00+00:00",
            "subPackages": [
                {"id": "sub-piling", "name": "Piling", "progress": 100, "estimatedStartDate": "2026-03-20T00:00:00+00:00", "estimatedEndDate": "2026-04-10T00:00:00+00:00"},
                {"id": "sub-pile-caps", "name": "Pile caps and ground beams", "progress": 100, "estimatedStartDate": "2026-04-10T00:00:00+00:00", "estimatedEndDate": "2026-05-01T00:00:00+00:00"},
            ],
        },
        {
            "id": "wp-structure", "name": "Superstructure", "progress": 65,
            "estimatedStartDate": "2026-05-01T00:00:00+00:00", "estimatedEndDate": "2026-07-31T00:00:00+00:00",
            "subPackages": [
                {"id": "sub-frame-lower", "name": "Frame levels 1-5", "progress": 100, "estimatedStartDate": "2026-05-01T00:00:00+00:00", "estimatedEndDate": "2026-06-15T00:00:00+00:00"},
                {"id": "sub-frame-upper", "name": "Frame levels 6-10", "progress": 30, "estimatedStartDate": "2026-06-15T00:00:00+00:00", "estimatedEndDate": "2026-07-31T00:00:00+00:00"},
            ],
        },
        {
            "id": "wp-envelope", "name": "Building envelope", "progress": 20,
            "estimatedStartDate": "2026-06-15T00:00:00+00:00", "estimatedEndDate": "2026-09-15T00:00:00+00:00",
        },
        {
            "id": "wp-mep", "name": "MEP services", "progress": 15,
            "estimatedStartDate": "2026-06-01T00:00:00+00:00", "estimatedEndDate": "2026-10-09T00:00:00+00:00",
        },
        {
            "id": "wp-fitout", "name": "Interior fit-out", "progress": 0,
            "estimatedStartDate": "2026-08-03T00:00:00+00:00", "estimatedEndDate": "2026-10-23T00:00:00+00:00",
        },
        {
            "id": "wp-commissioning", "name": "Testing and commissioning", "progress": 0,
            "estimatedStartDate": "2026-10-09T00:00:00+00:00", "estimatedEndDate": "2026-10-30T00:00:00+00:00",
        },
    ],
    "depot-b": [
        # Progress over 100 and an inverted window: normalised with warnings
        {"id": "wp-slab", "name": "Slab pour", "progress": 140, "estimatedStartDate": "2026-04-01T00:00:00+00:00", "estimatedEndDate": "2026-04-10T00:00:00+00:00"},
        {"id": "wp-racking", "name": "Racking install", "progress": 10, "estimatedStartDate": "2026-04-20T00:00:00+00:00", "estimatedEndDate": "2026-04-12T00:00:00+00:00"},
        # No dates yet: not schedulable
        {"id": "wp-signage", "name": "Signage", "progress": 0},
    ],
}

_DEPENDENCIES: dict[str, list[dict[str, Any]]] = {
    "tower-a": [
        {"id": "dep-001", "from": "milestone-ms-groundbreaking", "to": "workPackage-wp-site", "type": "finish-to-start"},
        {"id": "dep-002", "from": "workPackage-wp-site", "to": "workPackage-wp-foundation", "type": "finish-to-start"},
        {"id": "dep-003", "from": "workPackage-wp-foundation", "to": "workPackage-wp-structure", "type": "finish-to-start"},
        {"id": "dep-004", "from": "workPackage-wp-structure", "to": "workPackage-wp-envelope", "type": "start-to-start"},
        {"id": "dep-005", "from": "workPackage-wp-structure", "to": "milestone-ms-topping-out", "type": "finish-to-start"},
        {"id": "dep-006", "from": "workPackage-wp-structure", "to": "workPackage-wp-fitout", "type": "finish-to-start"},
        {"id": "dep-007", "from": "workPackage-wp-mep", "to": "workPackage-wp-commissioning", "type": "finish-to-start"},
        {"id": "dep-008", "from": "workPackage-wp-fitout", "to": "workPackage-wp-commissioning", "type": "finish-to-finish"},
        {"id": "dep-009", "from": "workPackage-wp-commissioning", "to": "milestone-ms-handover", "type": "finish-to-start"},
    ],
    "depot-b": [
        {"id": "dep-101", "from": "workPackage-wp-slab", "to": "workPackage-wp-racking", "type": "FS"},
        # Points at a deleted work package
        {"id": "dep-102", "from": "workPackage-wp-racking", "to": "workPackage-wp-removed", "type": "FS"},
    ],
}


def list_simulated_projects() -> list[dict[str, Any]]:
    """Project headers (id, name) for the simulated store."""
    return [{"id": p["id"], "name": p["name"]} for p in _PROJECTS.values()]


def get_simulated_project(project_id: str = DEFAULT_PROJECT_ID) -> Optional[dict[str, Any]]:
    return _PROJECTS.get(project_id)


def get_simulated_work_packages(project_id: str = DEFAULT_PROJECT_ID) -> list[dict[str, Any]]:
    return list(_WORK_PACKAGES.get(project_id, []))


def get_simulated_dependencies(project_id: str = DEFAULT_PROJECT_ID) -> list[dict[str, Any]]:
    """Dependency records keyed by schedule item ids (`<type>-<document id>`)."""
    return list(_DEPENDENCIES.get(project_id, []))
