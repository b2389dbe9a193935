"""Read-only progress and overdue reporting across procedures."""

from __future__ import annotations

from collections import Counter, defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import structlog

from practice_ops.config.settings import get_settings
from practice_ops.models import (
    Priority,
    Procedure,
    ProcedureStatus,
    Task,
    TaskStatus,
    parse_priority,
    utc_now,
)

logger = structlog.get_logger(__name__)

RECENT_PROCEDURES = 5
DASHBOARD_OVERDUE_LIMIT = 10
CLIENT_STATS_LIMIT = 10
MONTHLY_WINDOW = 6


def _percent(part: int | float | Decimal, whole: int) -> float:
    """``part / whole`` as a percentage with two decimals, 0 when empty."""
    if whole <= 0:
        return 0.0
    value = Decimal(str(part)) * Decimal("100") / Decimal(whole)
    return float(value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def _average(values: list[int]) -> float:
    if not values:
        return 0.0
    mean = Decimal(sum(values)) / Decimal(len(values))
    return float(mean.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class OverdueTask:
    """An open task whose due date has passed."""

    procedure_id: str
    procedure_name: str
    client_id: str
    task_id: str
    task_title: str
    task_description: str
    priority: Priority
    status: TaskStatus
    progress: int
    assignee: str | None
    due_date: date
    days_overdue: int

    @classmethod
    def from_task(cls, procedure: Procedure, task: Task, today: date) -> OverdueTask:
        assert task.due_date is not None
        return cls(
            procedure_id=procedure.procedure_id,
            procedure_name=procedure.name,
            client_id=procedure.client_id,
            task_id=task.id,
            task_title=task.title,
            task_description=task.description,
            priority=task.priority,
            status=task.status,
            progress=task.progress,
            assignee=task.assignee,
            due_date=task.due_date,
            days_overdue=(today - task.due_date).days,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "procedure_id": self.procedure_id,
            "procedure_name": self.procedure_name,
            "client_id": self.client_id,
            "task_id": self.task_id,
            "task_title": self.task_title,
            "task_description": self.task_description,
            "priority": self.priority.value,
            "status": self.status.value,
            "progress": self.progress,
            "assignee": self.assignee,
            "due_date": self.due_date.isoformat(),
            "days_overdue": self.days_overdue,
        }


@dataclass
class OverdueTaskFilter:
    """Filters for :meth:`ProgressReporter.get_overdue_tasks`."""

    client_id: str | None = None
    priority: Priority | str | None = None
    limit: int | None = None


@dataclass
class ReportSummary:
    total_procedures: int
    completed_procedures: int
    in_progress_procedures: int
    not_started_procedures: int
    completion_rate: float
    overdue_tasks: int
    by_status: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_procedures": self.total_procedures,
            "completed_procedures": self.completed_procedures,
            "in_progress_procedures": self.in_progress_procedures,
            "not_started_procedures": self.not_started_procedures,
            "completion_rate": self.completion_rate,
            "overdue_tasks": self.overdue_tasks,
            "by_status": dict(self.by_status),
        }


@dataclass
class ProgressReport:
    """Completion summary plus the most urgent overdue tasks."""

    summary: ReportSummary
    overdue_tasks: list[OverdueTask]
    generated_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary.to_dict(),
            "overdue_tasks": [task.to_dict() for task in self.overdue_tasks],
            "generated_at": self.generated_at.isoformat(),
        }

    def to_text(self) -> str:
        """Plain-text rendering for e-mails and terminals."""
        s = self.summary
        overdue_text = ""
        if self.overdue_tasks:
            overdue_text = "\n\nMost urgent overdue tasks:\n" + "\n".join(
                f"  - [{task.priority.value}] {task.task_title} "
                f"({task.client_id}, {task.days_overdue} days overdue)"
                for task in self.overdue_tasks
            )

        return f"""
Procedure Progress Report - {self.generated_at.date()}
{'=' * 50}

Procedures: {s.total_procedures}
  Completed: {s.completed_procedures}
  In progress: {s.in_progress_procedures}
  Not started: {s.not_started_procedures}
Completion rate: {s.completion_rate:.2f}%
Overdue tasks: {s.overdue_tasks}
{overdue_text}
""".strip()


@dataclass
class DashboardReport:
    """Practice-wide dashboard figures."""

    summary: dict[str, Any]
    recent_procedures: list[dict[str, Any]]
    overdue_tasks: list[OverdueTask]
    monthly_completion: list[dict[str, int]]
    client_stats: list[dict[str, Any]]
    generated_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": dict(self.summary),
            "recent_procedures": list(self.recent_procedures),
            "overdue_tasks": [task.to_dict() for task in self.overdue_tasks],
            "monthly_completion": list(self.monthly_completion),
            "client_stats": list(self.client_stats),
            "generated_at": self.generated_at.isoformat(),
        }


def collect_overdue(procedures: Iterable[Procedure], today: date) -> list[OverdueTask]:
    """Flatten every overdue task across ``procedures``."""
    return [
        OverdueTask.from_task(procedure, task, today)
        for procedure in procedures
        for task in procedure.tasks
        if task.is_overdue(today)
    ]


def _months_back(today: date, months: int) -> date:
    """First day of the month ``months`` before ``today``'s month."""
    index = today.year * 12 + (today.month - 1) - months
    return date(index // 12, index % 12 + 1, 1)


class ProgressReporter:
    """Aggregates persisted procedures without mutating them."""

    def __init__(self) -> None:
        self._settings = get_settings()
        self._logger = logger.bind(component="progress_reporter")

    def generate_progress_report(
        self,
        procedures: Iterable[Procedure],
        now: datetime | None = None,
        limit: int | None = None,
    ) -> ProgressReport:
        """Completion buckets, status totals and the top overdue tasks.

        Overdue tasks are ordered by priority, then by days overdue (most
        overdue first), and truncated to ``limit``.
        """
        now = now or utc_now()
        today = now.date()
        procedures = list(procedures)
        limit = self._settings.report_overdue_limit if limit is None else limit

        percentages = [p.completion_percentage for p in procedures]
        completed = sum(1 for pct in percentages if pct == 100)
        in_progress = sum(1 for pct in percentages if 0 < pct < 100)
        not_started = sum(1 for pct in percentages if pct == 0)
        by_status = Counter(p.status.value for p in procedures)

        overdue = collect_overdue(procedures, today)
        overdue.sort(key=lambda item: (item.priority.rank, -item.days_overdue))

        summary = ReportSummary(
            total_procedures=len(procedures),
            completed_procedures=completed,
            in_progress_procedures=in_progress,
            not_started_procedures=not_started,
            completion_rate=_percent(completed, len(procedures)),
            overdue_tasks=len(overdue),
            by_status={status.value: by_status.get(status.value, 0) for status in ProcedureStatus},
        )

        self._logger.debug(
            "progress_report_generated",
            procedures=summary.total_procedures,
            overdue=summary.overdue_tasks,
        )
        return ProgressReport(
            summary=summary,
            overdue_tasks=overdue[: max(0, limit)],
            generated_at=now,
        )

    def get_overdue_tasks(
        self,
        procedures: Iterable[Procedure],
        filters: OverdueTaskFilter | None = None,
        now: datetime | None = None,
    ) -> list[OverdueTask]:
        """Overdue tasks of active procedures, most overdue first.

        Ties on days overdue are broken by priority.
        """
        filters = filters or OverdueTaskFilter()
        now = now or utc_now()
        limit = self._settings.overdue_filter_limit if filters.limit is None else filters.limit
        priority = parse_priority(filters.priority) if filters.priority else None

        candidates = [
            p
            for p in procedures
            if p.status == ProcedureStatus.ACTIVE
            and (filters.client_id is None or p.client_id == filters.client_id)
        ]
        overdue = [
            item
            for item in collect_overdue(candidates, now.date())
            if priority is None or item.priority == priority
        ]
        overdue.sort(key=lambda item: (-item.days_overdue, item.priority.rank))
        return overdue[: max(0, limit)]

    def generate_dashboard_report(
        self,
        procedures: Iterable[Procedure],
        client_id: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        now: datetime | None = None,
    ) -> DashboardReport:
        """Dashboard figures for procedures created within an optional range."""
        now = now or utc_now()
        today = now.date()
        selected = [
            p
            for p in procedures
            if (client_id is None or p.client_id == client_id)
            and (start_date is None or p.created_at.date() >= start_date)
            and (end_date is None or p.created_at.date() <= end_date)
        ]

        by_status = Counter(p.status for p in selected)
        summary = {
            "total_procedures": len(selected),
            "completed_procedures": by_status.get(ProcedureStatus.COMPLETED, 0),
            "active_procedures": by_status.get(ProcedureStatus.ACTIVE, 0),
            "archived_procedures": by_status.get(ProcedureStatus.ARCHIVED, 0),
            "completion_rate": _percent(
                by_status.get(ProcedureStatus.COMPLETED, 0), len(selected)
            ),
            "average_completion_percentage": _average(
                [p.completion_percentage for p in selected]
            ),
        }

        recent = sorted(selected, key=lambda p: p.created_at, reverse=True)
        recent_procedures = [
            {
                "procedure_id": p.procedure_id,
                "name": p.name,
                "client_id": p.client_id,
                "status": p.status.value,
                "completion_percentage": p.completion_percentage,
                "created_at": p.created_at.isoformat(),
            }
            for p in recent[:RECENT_PROCEDURES]
        ]

        overdue = collect_overdue(
            [p for p in selected if p.status == ProcedureStatus.ACTIVE], today
        )
        overdue.sort(key=lambda item: -item.days_overdue)

        window_start = _months_back(today, MONTHLY_WINDOW)
        monthly: Counter[tuple[int, int]] = Counter(
            (p.updated_at.year, p.updated_at.month)
            for p in selected
            if p.status == ProcedureStatus.COMPLETED and p.updated_at.date() >= window_start
        )
        monthly_completion = [
            {"year": year, "month": month, "count": count}
            for (year, month), count in sorted(monthly.items())
        ]

        client_stats: list[dict[str, Any]] = []
        if client_id is None:
            grouped: dict[str, list[Procedure]] = defaultdict(list)
            for p in selected:
                grouped[p.client_id].append(p)
            client_stats = [
                {
                    "client_id": cid,
                    "total_procedures": len(items),
                    "completed_procedures": sum(
                        1 for p in items if p.status == ProcedureStatus.COMPLETED
                    ),
                    "average_completion_percentage": _average(
                        [p.completion_percentage for p in items]
                    ),
                }
                for cid, items in grouped.items()
            ]
            client_stats.sort(key=lambda row: -row["total_procedures"])
            client_stats = client_stats[:CLIENT_STATS_LIMIT]

        return DashboardReport(
            summary=summary,
            recent_procedures=recent_procedures,
            overdue_tasks=overdue[:DASHBOARD_OVERDUE_LIMIT],
            monthly_completion=monthly_completion,
            client_stats=client_stats,
            generated_at=now,
        )


def generate_progress_report(
    procedures: Iterable[Procedure],
    now: datetime | None = None,
    limit: int | None = None,
) -> ProgressReport:
    return ProgressReporter().generate_progress_report(procedures, now, limit)


def get_overdue_tasks(
    procedures: Iterable[Procedure],
    filters: OverdueTaskFilter | None = None,
    now: datetime | None = None,
) -> list[OverdueTask]:
    return ProgressReporter().get_overdue_tasks(procedures, filters, now)
