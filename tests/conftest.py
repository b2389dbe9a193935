"""Pytest configuration and fixtures."""

from datetime import date, datetime, timedelta, timezone

import pytest

from practice_ops.config.settings import get_settings
from practice_ops.models import (
    ComplexityTier,
    MonthlyDeadline,
    Priority,
    Procedure,
    Task,
)


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Make every test read settings from its own environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def reference_date():
    """Fixed 'today' used across deadline and reporting tests."""
    return date(2025, 3, 20)


@pytest.fixture
def now():
    return datetime(2025, 3, 20, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def flat_rate_profile():
    """Small sole proprietor on the flat-rate regime."""
    return {
        "client_id": "client-flat",
        "name": "Mario Rossi",
        "entity_type": "sole_proprietor",
        "regime": "flat_rate",
        "sector": "Servizi di consulenza",
        "annual_revenue": 50_000,
        "employee_count": 0,
        "founding_date": "2018-06-01",
        "vat_number": "IT01234567890",
    }


@pytest.fixture
def corporation_profile():
    """Large corporation on ordinary accounting."""
    return {
        "client_id": "client-corp",
        "name": "Costruzioni Bianchi SpA",
        "entity_type": "corporation",
        "regime": "ordinary",
        "sector": "Edilizia",
        "annual_revenue": 2_000_000,
        "employee_count": 25,
        "founding_date": "2001-01-15",
        "vat_number": "IT09876543210",
    }


def make_task(
    task_id: str,
    due_date: date | None = None,
    priority: Priority = Priority.MEDIUM,
    depends_on: list[str] | None = None,
    **kwargs,
) -> Task:
    return Task(
        id=task_id,
        title=kwargs.pop("title", f"Task {task_id}"),
        priority=priority,
        deadline=MonthlyDeadline(30),
        due_date=due_date,
        depends_on=depends_on or [],
        **kwargs,
    )


def make_procedure(
    tasks: list[Task],
    client_id: str = "client-1",
    created_at: datetime | None = None,
    **kwargs,
) -> Procedure:
    created_at = created_at or datetime(2025, 3, 1, tzinfo=timezone.utc)
    return Procedure(
        client_id=client_id,
        name=kwargs.pop("name", f"Procedure for {client_id}"),
        procedure_type="individual",
        complexity=ComplexityTier.MEDIUM,
        tasks=tasks,
        task_sequence=len(tasks),
        created_at=created_at,
        updated_at=created_at,
        **kwargs,
    )


@pytest.fixture
def chained_procedure(reference_date):
    """Three tasks: task-002 needs task-001, task-003 needs both."""
    return make_procedure(
        [
            make_task("task-001", reference_date + timedelta(days=5), Priority.HIGH),
            make_task("task-002", reference_date + timedelta(days=10), depends_on=["task-001"]),
            make_task(
                "task-003",
                reference_date + timedelta(days=15),
                Priority.LOW,
                depends_on=["task-001", "task-002"],
            ),
        ]
    )
