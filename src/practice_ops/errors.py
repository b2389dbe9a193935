"""Typed errors raised by the procedure engine."""

from typing import Any


class PracticeOpsError(Exception):
    """Base exception for procedure engine errors."""

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.details = details


class NotFoundError(PracticeOpsError):
    """A referenced procedure or task does not exist."""

    pass


class ValidationError(PracticeOpsError):
    """Input rejected before any mutation was applied."""

    pass


class DependencyCycleError(ValidationError):
    """The predecessor graph of a procedure contains a cycle."""

    def __init__(self, task_ids: list[str]):
        super().__init__(
            f"Dependency cycle between tasks: {', '.join(task_ids)}",
            details={"task_ids": task_ids},
        )
        self.task_ids = task_ids


class DependencyBlockedError(ValidationError):
    """A task was started while some of its predecessors are still open."""

    def __init__(self, task_id: str, open_predecessors: list[str]):
        super().__init__(
            f"Task {task_id} is blocked by: {', '.join(open_predecessors)}",
            details={"task_id": task_id, "open_predecessors": open_predecessors},
        )
        self.task_id = task_id
        self.open_predecessors = open_predecessors


class ClassificationError(PracticeOpsError):
    """The client profile is missing data required by the classification rules."""

    pass


class ConcurrentUpdateError(PracticeOpsError):
    """A procedure was saved from a stale version."""

    def __init__(self, procedure_id: str, expected: int, actual: int):
        super().__init__(
            f"Procedure {procedure_id} changed concurrently "
            f"(expected version {expected}, found {actual})",
            details={"procedure_id": procedure_id, "expected": expected, "actual": actual},
        )
        self.procedure_id = procedure_id
