"""Shared fixtures and builders for advisor pipeline tests.

All tests use a fixed reference time so triage results are reproducible.
"""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from advisor_pipeline.models.application import Application, ApplicationStage

# Fixed "now" shared by every test (a Monday, midday UTC)
NOW = datetime(2026, 3, 16, 12, 0, tzinfo=UTC)


def build_application(**overrides: Any) -> Application:
    """Build an application that needs no action at NOW unless overridden.

    Defaults: Interview stage, updated yesterday, next step due in a week.

    Args:
        **overrides: Any Application field.

    Returns:
        Application with defaults merged with overrides.
    """
    fields: dict[str, Any] = {
        "id": "app-1",
        "stage": ApplicationStage.INTERVIEW,
        "created_at": NOW - timedelta(days=30),
        "updated_at": NOW - timedelta(days=1),
        "applied_date": NOW - timedelta(days=20),
        "next_step": "Send thank-you note",
        "next_step_date": NOW + timedelta(days=7),
        "notes": "",
        "student_id": "student-1",
        "student_name": "Priya Raman",
        "company_name": "Northwind Labs",
        "position_title": "Data Analyst Intern",
        "cohort": "2027",
        "assigned_advisor_id": "advisor-1",
    }
    fields.update(overrides)
    return Application(**fields)


@pytest.fixture
def now() -> datetime:
    """Reference time for triage and transitions."""
    return NOW


@pytest.fixture
def make_application() -> Callable[..., Application]:
    """Factory for applications with healthy defaults."""
    return build_application
