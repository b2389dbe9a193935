"""Task status transitions and procedure-level aggregation."""

from __future__ import annotations

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal

import structlog

from practice_ops.catalog import DEFAULT_MONTHLY_DAY, format_task_id
from practice_ops.config.settings import get_settings
from practice_ops.deadlines import resolve_due_date
from practice_ops.dependencies import open_predecessors, resolve_dependencies
from practice_ops.errors import DependencyBlockedError, NotFoundError, ValidationError
from practice_ops.models import (
    SYSTEM_ACTOR,
    MonthlyDeadline,
    Priority,
    Procedure,
    ProcedureStatus,
    ProcedureSummary,
    Task,
    TaskSpec,
    TaskStatus,
    TaskStatusPatch,
    parse_priority,
    parse_procedure_status,
    parse_task_status,
    utc_now,
)

logger = structlog.get_logger(__name__)

CREATED_NOTE = "Task created"
AUTO_COMPLETED_NOTE = "Completed automatically (progress 100%)"
PROCEDURE_COMPLETED_NOTE = "Completed automatically (procedure completed)"
UNLOCKED_NOTE = "Unlocked: all dependencies completed"


def clamp_progress(progress: int) -> int:
    return max(0, min(100, int(progress)))


def completion_percentage(tasks: list[Task]) -> int:
    """Half-up rounded mean of task progress; 0 for an empty list."""
    if not tasks:
        return 0
    mean = Decimal(sum(task.progress for task in tasks)) / Decimal(len(tasks))
    return int(mean.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def summarize(tasks: list[Task], today: date) -> ProcedureSummary:
    """Counters for a task list as of ``today``."""
    open_tasks = [task for task in tasks if not task.is_completed]
    upcoming = sorted(
        task.due_date for task in open_tasks if task.due_date and task.due_date >= today
    )
    completed = len(tasks) - len(open_tasks)
    return ProcedureSummary(
        total_tasks=len(tasks),
        completed_tasks=completed,
        pending_tasks=len(open_tasks),
        in_progress_tasks=sum(1 for task in open_tasks if task.status == TaskStatus.IN_PROGRESS),
        high_priority_tasks=sum(1 for task in open_tasks if task.priority == Priority.HIGH),
        next_due_date=upcoming[0] if upcoming else None,
        overdue_tasks=sum(1 for task in open_tasks if task.is_overdue(today)),
    )


class TaskLifecycle:
    """Applies status updates to a procedure aggregate.

    The caller loads and persists the procedure; every method mutates the
    aggregate in place and refreshes its summary. Dependencies are advisory
    unless ``enforce_dependencies`` is enabled, in which case a task cannot
    be started or completed while a predecessor is still open.
    """

    def __init__(self, enforce_dependencies: bool | None = None):
        if enforce_dependencies is None:
            enforce_dependencies = get_settings().enforce_dependencies
        self._enforce_dependencies = enforce_dependencies
        self._logger = logger.bind(component="task_lifecycle")

    @property
    def enforce_dependencies(self) -> bool:
        return self._enforce_dependencies

    @staticmethod
    def require_task(procedure: Procedure, task_id: str) -> Task:
        task = procedure.get_task(task_id)
        if task is None:
            raise NotFoundError(
                f"Task {task_id} not found in procedure {procedure.procedure_id}",
                details={"procedure_id": procedure.procedure_id, "task_id": task_id},
            )
        return task

    def _check_not_blocked(
        self,
        procedure: Procedure,
        task: Task,
        status: TaskStatus | None,
        progress: int | None,
    ) -> None:
        starting = status in (TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED) or bool(progress)
        if not starting:
            return
        blocking = open_predecessors(task, procedure.tasks)
        if blocking:
            raise DependencyBlockedError(task.id, blocking)

    def update_task_status(
        self,
        procedure: Procedure,
        task_id: str,
        patch: TaskStatusPatch,
        now: datetime | None = None,
    ) -> Procedure:
        """Apply a status patch to one task.

        One history entry records the resulting status. If progress reaches
        100 the task is completed and a second, system entry notes it. When
        the task becomes completed its dependents are checked for unlock.

        Raises:
            NotFoundError: If ``task_id`` is not part of the procedure.
            ValidationError: If the patch carries an unknown status.
            DependencyBlockedError: If enforcement is on and a predecessor is open.
        """
        now = now or utc_now()
        task = self.require_task(procedure, task_id)
        status = parse_task_status(patch.status) if patch.status is not None else None
        progress = clamp_progress(patch.progress) if patch.progress is not None else None

        if self._enforce_dependencies:
            self._check_not_blocked(procedure, task, status, progress)

        was_completed = task.is_completed
        actor = patch.actor or SYSTEM_ACTOR

        if status is not None:
            task.status = status
        if progress is not None:
            task.progress = progress
        if patch.assignee is not None:
            task.assignee = patch.assignee
        task.updated_at = now
        task.record(patch.note or f"Status update: {task.progress}%", actor, now)

        if task.progress == 100 and not task.is_completed:
            task.status = TaskStatus.COMPLETED
            task.record(AUTO_COMPLETED_NOTE, SYSTEM_ACTOR, now)

        unlocked: list[str] = []
        if task.is_completed and not was_completed:
            unlocked = self.check_unlocks(procedure, task.id, now)

        self.recompute(procedure, now)

        self._logger.info(
            "task_status_updated",
            procedure_id=procedure.procedure_id,
            task_id=task.id,
            status=task.status.value,
            progress=task.progress,
            unlocked=len(unlocked),
            completion=procedure.completion_percentage,
        )
        return procedure

    def check_unlocks(
        self,
        procedure: Procedure,
        task_id: str,
        now: datetime | None = None,
    ) -> list[str]:
        """Note on pending dependents that all their predecessors are completed.

        Each completed predecessor produces at most one unlock entry per
        dependent, so repeated calls do not grow the history.

        Returns:
            Ids of the tasks that received an unlock entry.
        """
        now = now or utc_now()
        task = self.require_task(procedure, task_id)
        if not task.is_completed:
            return []

        note = f"{UNLOCKED_NOTE} ({task.id})"
        unlocked = []
        for dependent in procedure.dependents_of(task.id):
            if dependent.status != TaskStatus.PENDING:
                continue
            if open_predecessors(dependent, procedure.tasks):
                continue
            if any(entry.note == note for entry in dependent.status_history):
                continue
            dependent.record(note, SYSTEM_ACTOR, now)
            unlocked.append(dependent.id)
            self._logger.debug(
                "task_unlocked",
                procedure_id=procedure.procedure_id,
                task_id=dependent.id,
                completed_predecessor=task.id,
            )
        return unlocked

    def add_task(
        self,
        procedure: Procedure,
        spec: TaskSpec,
        now: datetime | None = None,
    ) -> Task:
        """Append a manually specified task to the procedure.

        Raises:
            ValidationError: If the title is missing, the priority is unknown
                or a predecessor id is not part of the procedure.
        """
        now = now or utc_now()
        title = (spec.title or "").strip()
        if not title:
            raise ValidationError("Task title is required")

        priority = parse_priority(spec.priority)
        existing = {task.id for task in procedure.tasks}
        unknown = [dep for dep in spec.depends_on if dep not in existing]
        if unknown:
            raise ValidationError(
                f"Unknown predecessor tasks: {', '.join(unknown)}",
                details={"depends_on": unknown},
            )

        task_id = format_task_id(procedure.task_sequence + 1)
        while task_id in existing:
            procedure.task_sequence += 1
            task_id = format_task_id(procedure.task_sequence + 1)
        procedure.task_sequence += 1

        deadline = spec.deadline or MonthlyDeadline(
            DEFAULT_MONTHLY_DAY, "By the end of the month"
        )
        task = Task(
            id=task_id,
            title=title,
            description=spec.description,
            priority=priority,
            deadline=deadline,
            due_date=resolve_due_date(deadline, now.date()),
            depends_on=list(spec.depends_on),
            tags=list(spec.tags),
            updated_at=now,
        )
        task.record(CREATED_NOTE, spec.actor or SYSTEM_ACTOR, now)
        procedure.tasks.append(task)
        resolve_dependencies(procedure.tasks)
        self.recompute(procedure, now)

        self._logger.info(
            "task_added",
            procedure_id=procedure.procedure_id,
            task_id=task.id,
            due_date=task.due_date.isoformat() if task.due_date else None,
        )
        return task

    def update_procedure_status(
        self,
        procedure: Procedure,
        status: ProcedureStatus | str,
        notes: str | None = None,
        actor: str | None = None,
        now: datetime | None = None,
    ) -> Procedure:
        """Explicitly move a procedure to ``status``.

        Completing a procedure completes every open task.

        Raises:
            ValidationError: If ``status`` is not active, completed or archived.
        """
        now = now or utc_now()
        target = parse_procedure_status(status)

        if target == ProcedureStatus.COMPLETED:
            for task in procedure.tasks:
                if task.is_completed:
                    continue
                task.status = TaskStatus.COMPLETED
                task.progress = 100
                task.updated_at = now
                task.record(PROCEDURE_COMPLETED_NOTE, actor or SYSTEM_ACTOR, now)

        if notes:
            procedure.notes = notes

        self.recompute(procedure, now, update_status=False)
        procedure.status = target

        self._logger.info(
            "procedure_status_updated",
            procedure_id=procedure.procedure_id,
            status=target.value,
        )
        return procedure

    def recompute(
        self,
        procedure: Procedure,
        now: datetime | None = None,
        update_status: bool = True,
    ) -> Procedure:
        """Refresh summary, completion percentage and derived status."""
        now = now or utc_now()
        procedure.summary = summarize(procedure.tasks, now.date())
        procedure.completion_percentage = completion_percentage(procedure.tasks)
        procedure.updated_at = now

        if update_status and procedure.status != ProcedureStatus.ARCHIVED:
            summary = procedure.summary
            all_done = summary.completed_tasks == summary.total_tasks
            procedure.status = ProcedureStatus.COMPLETED if all_done else ProcedureStatus.ACTIVE
        return procedure


def update_task_status(
    procedure: Procedure,
    task_id: str,
    patch: TaskStatusPatch,
    now: datetime | None = None,
) -> Procedure:
    """Apply a status patch with the configured lifecycle."""
    return TaskLifecycle().update_task_status(procedure, task_id, patch, now)


def add_task(procedure: Procedure, spec: TaskSpec, now: datetime | None = None) -> Task:
    """Append a task with the configured lifecycle."""
    return TaskLifecycle().add_task(procedure, spec, now)
