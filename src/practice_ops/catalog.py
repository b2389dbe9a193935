"""Task catalog generation.

Four independent emitters each produce task templates for one concern:

- bookkeeping tasks driven by the accounting regime
- entity tasks driven by legal form and complexity
- fiscal tasks, one per fiscal obligation
- sector tasks seeded by classification

Their output is concatenated, given concrete due dates, checked for
dependency cycles, annotated with resolved dependencies and sorted.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import date

import structlog

from practice_ops.classifier import (
    CORPORATE_TAX,
    FINANCIAL_STATEMENTS,
    PARTNERSHIP_TAX,
    PERSONAL_INCOME_TAX,
    VAT_DECLARATION,
)
from practice_ops.config.calendar_loader import FiscalCalendar, load_fiscal_calendar
from practice_ops.config.settings import Settings, get_settings
from practice_ops.deadlines import resolve_task_deadlines
from practice_ops.dependencies import resolve_dependencies, validate_acyclic
from practice_ops.models import (
    AccountingRegime,
    AnnualDeadline,
    ClientProfile,
    ComplexityTier,
    DeadlineRule,
    EntityType,
    MonthlyDeadline,
    Priority,
    ProcedureRequirements,
    QuarterlyDeadline,
    SectorTaskSeed,
    Task,
)

logger = structlog.get_logger(__name__)

FISCAL_TAG = "fiscal"
SECTOR_TAG = "sector_specific"
DEFAULT_MONTHLY_DAY = 30


def format_task_id(number: int) -> str:
    return f"task-{number:03d}"


class TaskIdSequence:
    """Monotonic task id source scoped to one procedure."""

    def __init__(self, start: int = 0):
        self._value = start

    @property
    def current(self) -> int:
        return self._value

    def next_id(self) -> str:
        self._value += 1
        return format_task_id(self._value)


def _task(
    ids: TaskIdSequence,
    title: str,
    description: str,
    priority: Priority,
    deadline: DeadlineRule,
    tags: Iterable[str],
    depends_on: Iterable[str] = (),
) -> Task:
    return Task(
        id=ids.next_id(),
        title=title,
        description=description,
        priority=priority,
        deadline=deadline,
        tags=list(tags),
        depends_on=list(depends_on),
    )


# =============================================================================
# EMITTERS
# =============================================================================


def bookkeeping_tasks(regime: AccountingRegime, ids: TaskIdSequence) -> list[Task]:
    """Bookkeeping tasks common to every client plus regime-specific ones."""
    collection = _task(
        ids,
        "Accounting Document Collection",
        "Collect and organise every accounting document for the period",
        Priority.HIGH,
        MonthlyDeadline(10, "By the 10th of the following month"),
        ["bookkeeping", "documents"],
    )
    reconciliation = _task(
        ids,
        "Bank Reconciliation",
        "Reconcile bank movements with the accounting records",
        Priority.MEDIUM,
        MonthlyDeadline(20, "By the 20th of the following month"),
        ["bookkeeping", "bank"],
        [collection.id],
    )
    tasks = [collection, reconciliation]

    if regime in (AccountingRegime.ORDINARY, AccountingRegime.SIMPLIFIED):
        invoices = _task(
            ids,
            "Invoice Recording",
            "Record every purchase and sales invoice in the VAT registers",
            Priority.HIGH,
            MonthlyDeadline(15, "By the 15th of the following month"),
            ["bookkeeping", "vat"],
            [collection.id],
        )
        settlement = _task(
            ids,
            "VAT Settlement",
            "Compute VAT payable or receivable and prepare the payment form",
            Priority.HIGH,
            MonthlyDeadline(16, "By the 16th of the following month"),
            [FISCAL_TAG, "vat", "vat_liquidation"],
            [invoices.id],
        )
        tasks.extend([invoices, settlement])

        if regime == AccountingRegime.ORDINARY:
            tasks.append(
                _task(
                    ids,
                    "Adjusting Entries",
                    "Record period-end adjusting and correcting entries",
                    Priority.MEDIUM,
                    QuarterlyDeadline("Within 30 days of quarter end"),
                    ["bookkeeping", "financial_statements"],
                    [reconciliation.id, invoices.id],
                )
            )

    elif regime == AccountingRegime.FLAT_RATE:
        register = _task(
            ids,
            "Revenue Register Update",
            "Update the chronological register of revenue and expenses",
            Priority.MEDIUM,
            MonthlyDeadline(15, "By the 15th of the following month"),
            ["bookkeeping", "flat_rate"],
            [collection.id],
        )
        eligibility = _task(
            ids,
            "Flat-Rate Eligibility Check",
            "Verify the client still meets the flat-rate regime requirements",
            Priority.MEDIUM,
            QuarterlyDeadline("At the end of every quarter"),
            [FISCAL_TAG, "flat_rate"],
            [register.id],
        )
        tasks.extend([register, eligibility])

    return tasks


def _balance_sheet_preparation(ids: TaskIdSequence) -> Task:
    return _task(
        ids,
        "Balance Sheet Preparation",
        "Prepare the annual financial statements",
        Priority.HIGH,
        AnnualDeadline("balance_sheet_closing", "Within 4 months of year end"),
        ["financial_statements", "company"],
    )


def _balance_sheet_filing(ids: TaskIdSequence, depends_on: Sequence[str]) -> Task:
    return _task(
        ids,
        "Balance Sheet Filing",
        "Prepare and file the approved financial statements with the business registry",
        Priority.HIGH,
        AnnualDeadline("balance_sheet_closing", "Within 30 days of approval"),
        ["financial_statements", "filing"],
        depends_on,
    )


def entity_tasks(
    entity_type: EntityType, complexity: ComplexityTier, ids: TaskIdSequence
) -> list[Task]:
    """Tasks scaled by legal form, plus planning tasks for high complexity."""
    tasks: list[Task] = []

    if entity_type == EntityType.SOLE_PROPRIETOR:
        tasks.append(
            _task(
                ids,
                "Tax Advance Payments",
                "Compute and prepare the income tax advance payments",
                Priority.HIGH,
                AnnualDeadline("advance_payments", "By 30 November"),
                [FISCAL_TAG, "taxes"],
            )
        )

    elif entity_type == EntityType.PARTNERSHIP:
        allocation = _task(
            ids,
            "Profit and Loss Allocation",
            "Allocate the year's profit or loss between partners",
            Priority.MEDIUM,
            AnnualDeadline("profit_allocation", "Within 4 months of year end"),
            ["company", "profit"],
        )
        advances = _task(
            ids,
            "Partner Tax Advance Payments",
            "Compute and communicate the partners' tax advance payments",
            Priority.HIGH,
            AnnualDeadline("advance_payments", "By 30 November"),
            [FISCAL_TAG, "taxes"],
            [allocation.id],
        )
        tasks.extend([allocation, advances])

    elif entity_type == EntityType.LLC:
        preparation = _balance_sheet_preparation(ids)
        tasks.extend([preparation, _balance_sheet_filing(ids, [preparation.id])])

    elif entity_type == EntityType.CORPORATION:
        preparation = _balance_sheet_preparation(ids)
        audit = _task(
            ids,
            "Statutory Audit Support",
            "Support the statutory auditors throughout the audit of the accounts",
            Priority.HIGH,
            AnnualDeadline("statutory_audit", "Before the financial statements are approved"),
            ["financial_statements", "audit"],
            [preparation.id],
        )
        tasks.extend(
            [preparation, audit, _balance_sheet_filing(ids, [preparation.id, audit.id])]
        )

    if complexity == ComplexityTier.HIGH:
        budget = _task(
            ids,
            "Budget vs Actual Analysis",
            "Compare budgeted figures with actual results",
            Priority.MEDIUM,
            QuarterlyDeadline("Within 20 days of quarter end"),
            ["analysis", "budget"],
        )
        forecast = _task(
            ids,
            "Financial Forecast",
            "Update the financial forecast",
            Priority.MEDIUM,
            QuarterlyDeadline("Within 30 days of quarter end"),
            ["analysis", "forecast"],
            [budget.id],
        )
        tasks.extend([budget, forecast])

    return tasks


# Fiscal obligation -> (title, description, annual category, extra tags)
FISCAL_TASKS: dict[str, tuple[str, str, str, tuple[str, ...]]] = {
    VAT_DECLARATION: (
        "Annual VAT Return",
        "Prepare and submit the annual VAT return",
        "vat_annual",
        (FISCAL_TAG, "vat", "returns"),
    ),
    PERSONAL_INCOME_TAX: (
        "Personal Income Tax Return",
        "Prepare and submit the personal income tax return",
        "income_tax_individuals",
        (FISCAL_TAG, "income_tax", "returns"),
    ),
    CORPORATE_TAX: (
        "Corporate Income Tax Return",
        "Prepare and submit the corporate income tax return",
        "income_tax_companies",
        (FISCAL_TAG, "income_tax", "company", "returns"),
    ),
    FINANCIAL_STATEMENTS: (
        "Year-End Closing",
        "Closing and adjusting operations for the annual financial statements",
        "balance_sheet_closing",
        ("financial_statements", "closing"),
    ),
    PARTNERSHIP_TAX: (
        "Partnership Income Tax Return",
        "Prepare and submit the partnership income tax return",
        "income_tax_partnerships",
        (FISCAL_TAG, "income_tax", "company", "returns"),
    ),
}


def fiscal_tasks(fiscal_requirements: Iterable[str], ids: TaskIdSequence) -> list[Task]:
    """One filing task per fiscal obligation that has a filing."""
    tasks = []
    for requirement in fiscal_requirements:
        template = FISCAL_TASKS.get(requirement)
        if template is None:
            continue
        title, description, category, tags = template
        tasks.append(
            _task(
                ids,
                title,
                description,
                Priority.HIGH,
                AnnualDeadline(category),
                tags,
            )
        )
    return tasks


def sector_tasks(seeds: Iterable[SectorTaskSeed], ids: TaskIdSequence) -> list[Task]:
    return [
        _task(
            ids,
            seed.title,
            seed.description,
            seed.priority,
            MonthlyDeadline(DEFAULT_MONTHLY_DAY, "By the end of the month"),
            [SECTOR_TAG, seed.category],
        )
        for seed in seeds
    ]


# =============================================================================
# ORDERING & ESCALATION
# =============================================================================


def task_sort_key(task: Task) -> tuple[bool, date, int]:
    """Due date ascending with undated tasks last, then priority."""
    return (task.due_date is None, task.due_date or date.max, task.priority.rank)


def escalate_fiscal_priorities(
    tasks: Iterable[Task],
    reference_date: date,
    window_days: int = 30,
    fiscal_calendar: FiscalCalendar | None = None,
) -> int:
    """Raise fiscal tasks to high priority when a VAT payment date is close.

    Returns:
        Number of tasks whose priority changed.
    """
    fiscal_calendar = fiscal_calendar or load_fiscal_calendar()
    upcoming = sorted(
        payment.in_year(year)
        for payment in fiscal_calendar.vat_payment_dates
        for year in (reference_date.year, reference_date.year + 1)
        if payment.in_year(year) > reference_date
    )
    if not upcoming or (upcoming[0] - reference_date).days >= window_days:
        return 0

    changed = 0
    for task in tasks:
        if FISCAL_TAG in task.tags and task.priority != Priority.HIGH:
            task.priority = Priority.HIGH
            changed += 1
    return changed


# =============================================================================
# GENERATOR
# =============================================================================


class TaskCatalogGenerator:
    """Build the full, ordered task list for a classified client."""

    def __init__(
        self,
        settings: Settings | None = None,
        fiscal_calendar: FiscalCalendar | None = None,
    ):
        self._settings = settings or get_settings()
        self._calendar = fiscal_calendar or load_fiscal_calendar()
        self._logger = logger.bind(component="task_catalog")

    def generate(
        self,
        profile: ClientProfile,
        requirements: ProcedureRequirements,
        reference_date: date,
        ids: TaskIdSequence | None = None,
    ) -> list[Task]:
        """Generate, date, link and order the tasks for one procedure.

        Raises:
            DependencyCycleError: If the generated predecessor graph is cyclic.
        """
        ids = ids or TaskIdSequence()

        tasks = [
            *bookkeeping_tasks(profile.regime, ids),
            *entity_tasks(profile.entity_type, requirements.complexity, ids),
            *fiscal_tasks(requirements.fiscal_requirements, ids),
            *sector_tasks(requirements.sector_tasks, ids),
        ]

        tasks = resolve_task_deadlines(tasks, reference_date, self._calendar)
        validate_acyclic(tasks)
        tasks = resolve_dependencies(tasks)

        if self._settings.escalate_fiscal_priorities:
            escalated = escalate_fiscal_priorities(
                tasks,
                reference_date,
                self._settings.fiscal_escalation_window_days,
                self._calendar,
            )
            if escalated:
                self._logger.info("fiscal_priorities_escalated", tasks=escalated)

        tasks.sort(key=task_sort_key)

        self._logger.debug(
            "task_catalog_generated",
            client_id=profile.client_id,
            tasks=len(tasks),
        )
        return tasks


def generate_task_checklist(
    profile: ClientProfile,
    requirements: ProcedureRequirements,
    reference_date: date,
) -> list[Task]:
    """Generate the ordered task list with the default settings and calendar."""
    return TaskCatalogGenerator().generate(profile, requirements, reference_date)
