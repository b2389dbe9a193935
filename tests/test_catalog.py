"""Tests for task catalog generation."""

from datetime import date

from practice_ops.catalog import (
    FISCAL_TAG,
    TaskCatalogGenerator,
    TaskIdSequence,
    escalate_fiscal_priorities,
    generate_task_checklist,
)
from practice_ops.classifier import classify
from practice_ops.config.settings import get_settings
from practice_ops.models import ClientProfile, Priority, Task


def _checklist(profile_data, reference_date):
    profile = ClientProfile.from_dict(profile_data)
    requirements = classify(profile, reference_date)
    return generate_task_checklist(profile, requirements, reference_date)


def _by_title(tasks):
    return {task.title: task for task in tasks}


class TestTaskIdSequence:
    """Tests for per-procedure task ids."""

    def test_ids_are_sequential(self):
        ids = TaskIdSequence()

        assert [ids.next_id() for _ in range(3)] == ["task-001", "task-002", "task-003"]
        assert ids.current == 3

    def test_sequence_resumes(self):
        assert TaskIdSequence(start=5).next_id() == "task-006"


class TestFlatRateCatalog:
    """Tests for a small flat-rate sole proprietor."""

    def test_expected_tasks(self, flat_rate_profile, reference_date):
        titles = set(_by_title(_checklist(flat_rate_profile, reference_date)))

        assert {
            "Accounting Document Collection",
            "Bank Reconciliation",
            "Revenue Register Update",
            "Flat-Rate Eligibility Check",
            "Tax Advance Payments",
            "Annual VAT Return",
            "Personal Income Tax Return",
            "Service Performance Monitoring",
        } == titles

    def test_no_vat_liquidation_task(self, flat_rate_profile, reference_date):
        tasks = _checklist(flat_rate_profile, reference_date)

        assert all("vat_liquidation" not in task.tags for task in tasks)
        assert "VAT Settlement" not in _by_title(tasks)

    def test_ids_are_unique(self, flat_rate_profile, reference_date):
        tasks = _checklist(flat_rate_profile, reference_date)

        assert len({task.id for task in tasks}) == len(tasks)


class TestPartnershipCatalog:
    """Tests for a partnership on ordinary accounting."""

    def test_partnership_return_due_with_company_returns(self, reference_date):
        profile = {
            "client_id": "client-snc",
            "name": "Verdi & Neri snc",
            "entity_type": "Partnership",
            "regime": "Ordinario",
            "annual_revenue": 400_000,
            "employee_count": 6,
        }

        tasks = _by_title(_checklist(profile, reference_date))

        assert tasks["Partnership Income Tax Return"].due_date == date(2025, 9, 30)
        assert tasks["Profit and Loss Allocation"].due_date == date(2025, 12, 31)


class TestCorporationCatalog:
    """Tests for a large corporation."""

    def test_entity_and_planning_tasks(self, corporation_profile, reference_date):
        tasks = _by_title(_checklist(corporation_profile, reference_date))

        assert "Statutory Audit Support" in tasks
        assert "Budget vs Actual Analysis" in tasks
        assert "Financial Forecast" in tasks
        assert "VAT Settlement" in tasks
        assert "Adjusting Entries" in tasks
        assert "Job Progress Tracking" in tasks

    def test_due_dates(self, corporation_profile, reference_date):
        tasks = _by_title(_checklist(corporation_profile, reference_date))

        assert tasks["Corporate Income Tax Return"].due_date == date(2025, 9, 30)
        assert tasks["Statutory Audit Support"].due_date == date(2025, 12, 31)
        assert tasks["Balance Sheet Preparation"].due_date == date(2025, 4, 30)
        assert tasks["VAT Settlement"].due_date == date(2025, 4, 16)
        assert tasks["Accounting Document Collection"].due_date == date(2025, 4, 10)

    def test_dependencies_resolved(self, corporation_profile, reference_date):
        tasks = _by_title(_checklist(corporation_profile, reference_date))

        filing = tasks["Balance Sheet Filing"]
        assert [dep.title for dep in filing.resolved_dependencies] == [
            "Balance Sheet Preparation",
            "Statutory Audit Support",
        ]

    def test_sorted_by_due_date_then_priority(self, corporation_profile, reference_date):
        tasks = _checklist(corporation_profile, reference_date)

        keys = [(task.due_date, task.priority.rank) for task in tasks]
        assert keys == sorted(keys)

    def test_fiscal_returns_are_tagged(self, corporation_profile, reference_date):
        tasks = _by_title(_checklist(corporation_profile, reference_date))

        assert FISCAL_TAG in tasks["Corporate Income Tax Return"].tags
        assert FISCAL_TAG not in tasks["Year-End Closing"].tags


class TestFiscalEscalation:
    """Tests for raising fiscal priorities near VAT payment dates."""

    def _tasks(self):
        return [
            Task(id="task-001", title="VAT", priority=Priority.LOW, tags=[FISCAL_TAG]),
            Task(id="task-002", title="Bank", priority=Priority.LOW, tags=["bookkeeping"]),
            Task(id="task-003", title="Return", priority=Priority.HIGH, tags=[FISCAL_TAG]),
        ]

    def test_escalates_within_window(self):
        tasks = self._tasks()

        changed = escalate_fiscal_priorities(tasks, date(2025, 4, 20))

        assert changed == 1
        assert [task.priority for task in tasks] == [Priority.HIGH, Priority.LOW, Priority.HIGH]

    def test_no_change_outside_window(self):
        tasks = self._tasks()

        assert escalate_fiscal_priorities(tasks, date(2025, 3, 1)) == 0
        assert tasks[0].priority == Priority.LOW

    def test_february_date_of_next_year(self):
        assert escalate_fiscal_priorities(self._tasks(), date(2025, 12, 20)) == 0
        assert escalate_fiscal_priorities(self._tasks(), date(2026, 1, 20)) == 1

    def test_enabled_through_settings(self, monkeypatch, corporation_profile):
        monkeypatch.setenv("ESCALATE_FISCAL_PRIORITIES", "true")
        get_settings.cache_clear()
        reference = date(2025, 4, 20)
        profile = ClientProfile.from_dict(corporation_profile)

        tasks = TaskCatalogGenerator(get_settings()).generate(
            profile, classify(profile, reference), reference
        )

        assert all(task.priority == Priority.HIGH for task in tasks if FISCAL_TAG in task.tags)
