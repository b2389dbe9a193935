"""Resolve abstract deadline rules into concrete calendar dates."""

from __future__ import annotations

import calendar
from collections.abc import Iterable
from datetime import date

import structlog

from practice_ops.config.calendar_loader import FiscalCalendar, load_fiscal_calendar
from practice_ops.models import (
    AnnualDeadline,
    DeadlineRule,
    MonthlyDeadline,
    QuarterlyDeadline,
    Task,
)

logger = structlog.get_logger(__name__)

QUARTERLY_DUE_DAY = 15


def _clamped(year: int, month: int, day: int) -> date:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(max(1, day), last_day))


def resolve_monthly(rule: MonthlyDeadline, reference_date: date) -> date:
    """Due this month unless the day has already passed, then next month.

    Days past the end of the target month fall on its last day.
    """
    year, month = reference_date.year, reference_date.month
    if reference_date.day > rule.day_of_month:
        month += 1
        if month > 12:
            month = 1
            year += 1
    return _clamped(year, month, rule.day_of_month)


def resolve_quarterly(reference_date: date) -> date:
    """The 15th of the second month of the next calendar quarter."""
    quarter = (reference_date.month - 1) // 3
    year = reference_date.year + 1 if quarter == 3 else reference_date.year
    next_quarter = (quarter + 1) % 4
    return date(year, next_quarter * 3 + 2, QUARTERLY_DUE_DAY)


def resolve_annual(
    rule: AnnualDeadline,
    reference_date: date,
    fiscal_calendar: FiscalCalendar | None = None,
) -> date:
    """Fixed fiscal date of the reference year for the rule's category."""
    fiscal_calendar = fiscal_calendar or load_fiscal_calendar()
    return fiscal_calendar.annual_date(rule.category).in_year(reference_date.year)


def resolve_due_date(
    rule: DeadlineRule,
    reference_date: date,
    fiscal_calendar: FiscalCalendar | None = None,
) -> date:
    """Resolve a deadline rule relative to ``reference_date``.

    Args:
        rule: Monthly, quarterly or annual deadline rule.
        reference_date: The date treated as "today".
        fiscal_calendar: Annual deadline table. Defaults to the bundled calendar.

    Returns:
        The concrete due date.
    """
    if isinstance(rule, MonthlyDeadline):
        return resolve_monthly(rule, reference_date)
    if isinstance(rule, QuarterlyDeadline):
        return resolve_quarterly(reference_date)
    if isinstance(rule, AnnualDeadline):
        return resolve_annual(rule, reference_date, fiscal_calendar)
    raise TypeError(f"Unsupported deadline rule: {rule!r}")


def resolve_task_deadlines(
    tasks: Iterable[Task],
    reference_date: date,
    fiscal_calendar: FiscalCalendar | None = None,
) -> list[Task]:
    """Set ``due_date`` on every task from its deadline rule."""
    fiscal_calendar = fiscal_calendar or load_fiscal_calendar()
    resolved = []
    for task in tasks:
        task.due_date = resolve_due_date(task.deadline, reference_date, fiscal_calendar)
        resolved.append(task)

    logger.debug(
        "task_deadlines_resolved",
        tasks=len(resolved),
        reference_date=reference_date.isoformat(),
    )
    return resolved
