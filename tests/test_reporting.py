"""Tests for progress and overdue reporting."""

from datetime import datetime, timedelta, timezone

import pytest

from conftest import make_procedure, make_task
from practice_ops.models import Priority, ProcedureStatus, TaskStatus
from practice_ops.reporting import (
    OverdueTaskFilter,
    ProgressReporter,
    generate_progress_report,
    get_overdue_tasks,
)


@pytest.fixture
def reporter():
    return ProgressReporter()


@pytest.fixture
def overdue_procedures(reference_date):
    """Two active procedures and one archived, each with overdue work."""
    day = timedelta(days=1)
    first = make_procedure(
        [
            make_task("task-001", reference_date - 10 * day, Priority.HIGH, title="Invoices"),
            make_task("task-002", reference_date - 30 * day, Priority.LOW, title="Register"),
            make_task(
                "task-003",
                reference_date - 60 * day,
                Priority.HIGH,
                title="Done",
                status=TaskStatus.COMPLETED,
                progress=100,
            ),
        ],
        client_id="client-a",
    )
    second = make_procedure(
        [
            make_task("task-001", reference_date - 19 * day, Priority.HIGH, title="VAT"),
            make_task("task-002", reference_date + 5 * day, Priority.HIGH, title="Future"),
            make_task("task-003", reference_date, Priority.MEDIUM, title="Due today"),
        ],
        client_id="client-b",
    )
    archived = make_procedure(
        [make_task("task-001", reference_date - 90 * day, Priority.MEDIUM, title="Old")],
        client_id="client-a",
        status=ProcedureStatus.ARCHIVED,
    )
    return [first, second, archived]


class TestProgressReport:
    """Tests for generate_progress_report."""

    def test_completion_rate_scenario(self, reporter, now):
        """Test 100%, 50% and 0% procedures give a 33.33 completion rate."""
        procedures = []
        for pct in (100, 50, 0):
            procedure = make_procedure([], client_id=f"client-{pct}")
            procedure.completion_percentage = pct
            procedures.append(procedure)

        report = reporter.generate_progress_report(procedures, now)

        assert report.summary.total_procedures == 3
        assert report.summary.completion_rate == 33.33
        assert report.summary.completed_procedures == 1
        assert report.summary.in_progress_procedures == 1
        assert report.summary.not_started_procedures == 1

    def test_empty_input(self, reporter, now):
        report = reporter.generate_progress_report([], now)

        assert report.summary.total_procedures == 0
        assert report.summary.completion_rate == 0.0
        assert report.overdue_tasks == []

    def test_counts_by_status(self, reporter, overdue_procedures, now):
        report = reporter.generate_progress_report(overdue_procedures, now)

        assert report.summary.by_status == {"active": 2, "completed": 0, "archived": 1}

    def test_overdue_sorted_by_priority_then_days(self, reporter, overdue_procedures, now):
        report = reporter.generate_progress_report(overdue_procedures, now)

        assert [(t.task_title, t.days_overdue) for t in report.overdue_tasks] == [
            ("VAT", 19),
            ("Invoices", 10),
            ("Old", 90),
            ("Register", 30),
        ]
        assert report.summary.overdue_tasks == 4

    def test_limit_truncates_list_not_count(self, reporter, overdue_procedures, now):
        report = reporter.generate_progress_report(overdue_procedures, now, limit=2)

        assert len(report.overdue_tasks) == 2
        assert report.summary.overdue_tasks == 4

    def test_reporting_does_not_mutate(self, reporter, overdue_procedures, now):
        before = [p.to_dict() for p in overdue_procedures]

        reporter.generate_progress_report(overdue_procedures, now)
        reporter.get_overdue_tasks(overdue_procedures, now=now)

        assert [p.to_dict() for p in overdue_procedures] == before

    def test_module_level_limit(self, overdue_procedures, now):
        report = generate_progress_report(overdue_procedures, now, limit=1)

        assert [t.task_title for t in report.overdue_tasks] == ["VAT"]
        assert report.summary.overdue_tasks == 4

    def test_text_rendering(self, overdue_procedures, now):
        text = generate_progress_report(overdue_procedures, now).to_text()

        assert "Procedure Progress Report - 2025-03-20" in text
        assert "Completion rate: 0.00%" in text
        assert "[high] VAT (client-b, 19 days overdue)" in text


class TestOverdueTasks:
    """Tests for get_overdue_tasks."""

    def test_active_only_most_overdue_first(self, reporter, overdue_procedures, now):
        tasks = reporter.get_overdue_tasks(overdue_procedures, now=now)

        assert [t.task_title for t in tasks] == ["Register", "VAT", "Invoices"]

    def test_due_today_is_not_overdue(self, reporter, overdue_procedures, now):
        titles = [t.task_title for t in reporter.get_overdue_tasks(overdue_procedures, now=now)]

        assert "Due today" not in titles
        assert "Done" not in titles

    def test_filter_by_client(self, reporter, overdue_procedures, now):
        tasks = reporter.get_overdue_tasks(
            overdue_procedures, OverdueTaskFilter(client_id="client-b"), now
        )

        assert [t.client_id for t in tasks] == ["client-b"]

    def test_filter_by_priority(self, overdue_procedures, now):
        tasks = get_overdue_tasks(overdue_procedures, OverdueTaskFilter(priority="high"), now)

        assert [t.task_title for t in tasks] == ["VAT", "Invoices"]

    def test_limit(self, reporter, overdue_procedures, now):
        tasks = reporter.get_overdue_tasks(overdue_procedures, OverdueTaskFilter(limit=1), now)

        assert len(tasks) == 1

    def test_days_overdue_uses_whole_days(self, reporter, overdue_procedures):
        late_evening = datetime(2025, 3, 20, 23, 59, tzinfo=timezone.utc)

        tasks = reporter.get_overdue_tasks(overdue_procedures, now=late_evening)

        assert tasks[0].days_overdue == 30

    def test_entry_fields(self, reporter, overdue_procedures, now):
        entry = reporter.get_overdue_tasks(overdue_procedures, now=now)[0].to_dict()

        assert entry["procedure_id"] == overdue_procedures[0].procedure_id
        assert entry["task_id"] == "task-002"
        assert entry["due_date"] == "2025-02-18"
        assert entry["priority"] == "low"


class TestDashboardReport:
    """Tests for generate_dashboard_report."""

    def test_summary(self, reporter, overdue_procedures, now):
        overdue_procedures[1].status = ProcedureStatus.COMPLETED
        overdue_procedures[1].completion_percentage = 100
        overdue_procedures[1].updated_at = now

        report = reporter.generate_dashboard_report(overdue_procedures, now=now)

        assert report.summary["total_procedures"] == 3
        assert report.summary["completed_procedures"] == 1
        assert report.summary["completion_rate"] == 33.33
        assert report.monthly_completion == [{"year": 2025, "month": 3, "count": 1}]
        assert [t.task_title for t in report.overdue_tasks] == ["Register", "Invoices"]

    def test_client_stats(self, reporter, overdue_procedures, now):
        report = reporter.generate_dashboard_report(overdue_procedures, now=now)

        assert report.client_stats[0]["client_id"] == "client-a"
        assert report.client_stats[0]["total_procedures"] == 2

    def test_client_filter_skips_stats(self, reporter, overdue_procedures, now):
        report = reporter.generate_dashboard_report(
            overdue_procedures, client_id="client-b", now=now
        )

        assert report.summary["total_procedures"] == 1
        assert report.client_stats == []

    def test_recent_procedures_limited(self, reporter, now):
        base = datetime(2025, 1, 1, tzinfo=timezone.utc)
        procedures = [
            make_procedure([], client_id=f"client-{i}", created_at=base + timedelta(days=i))
            for i in range(8)
        ]

        report = reporter.generate_dashboard_report(procedures, now=now)

        assert [p["client_id"] for p in report.recent_procedures] == [
            "client-7",
            "client-6",
            "client-5",
            "client-4",
            "client-3",
        ]

    def test_date_range(self, reporter, now):
        base = datetime(2025, 1, 1, tzinfo=timezone.utc)
        procedures = [
            make_procedure([], client_id=f"client-{i}", created_at=base + timedelta(days=i))
            for i in range(8)
        ]

        report = reporter.generate_dashboard_report(
            procedures,
            start_date=(base + timedelta(days=2)).date(),
            end_date=(base + timedelta(days=4)).date(),
            now=now,
        )

        assert report.summary["total_procedures"] == 3
