"""
Pytest fixtures for Site Schedule.

Tests mirror src/site_schedule structure. Every test pins `now`.
"""

from datetime import datetime, timezone
from typing import Any, Callable

import pytest
from fastapi.testclient import TestClient

from site_schedule.main import app
from site_schedule.services.schedule_models import ScheduleItem, parse_timestamp


@pytest.fixture(scope="session")
def default_project_id() -> str:
    return "tower-a"


@pytest.fixture
def project_now() -> datetime:
    """Mid-superstructure on the simulated Tower A schedule."""
    return datetime(2026, 6, 20, tzinfo=timezone.utc)


@pytest.fixture
def make_item() -> Callable[..., ScheduleItem]:
    def _make(
        item_id: str = "A",
        start: str = "2024-01-01",
        end: str = "2024-01-10",
        progress: int = 0,
        type: str = "workPackage",
        **extra: Any,
    ) -> ScheduleItem:
        return ScheduleItem(
            id=item_id,
            title=extra.pop("title", f"Item {item_id}"),
            start=parse_timestamp(start),
            end=parse_timestamp(end),
            progress=progress,
            type=type,
            **extra,
        )

    return _make


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)
