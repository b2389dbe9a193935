"""Predecessor links between the tasks of one procedure."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from graphlib import CycleError, TopologicalSorter

from practice_ops.errors import DependencyCycleError
from practice_ops.models import DependencyRef, Task


def resolve_dependencies(tasks: Sequence[Task]) -> list[Task]:
    """Annotate every task with the predecessors that exist in ``tasks``.

    Unknown predecessor ids are dropped from the annotation without error;
    ``depends_on`` itself is left untouched.
    """
    by_id = {task.id: task for task in tasks}
    for task in tasks:
        task.resolved_dependencies = [
            DependencyRef(id=dep_id, title=by_id[dep_id].title)
            for dep_id in task.depends_on
            if dep_id in by_id
        ]
    return list(tasks)


def dependency_order(tasks: Iterable[Task]) -> list[str]:
    """Task ids ordered so every task follows its predecessors.

    Raises:
        DependencyCycleError: If the predecessor graph contains a cycle.
    """
    tasks = list(tasks)
    known = {task.id for task in tasks}
    sorter: TopologicalSorter[str] = TopologicalSorter()
    for task in tasks:
        sorter.add(task.id, *(dep for dep in task.depends_on if dep in known))

    try:
        return list(sorter.static_order())
    except CycleError as exc:
        cycle = list(dict.fromkeys(exc.args[1])) if len(exc.args) > 1 else sorted(known)
        raise DependencyCycleError(cycle) from exc


def validate_acyclic(tasks: Iterable[Task]) -> None:
    """Reject predecessor graphs where some task can never be unlocked."""
    dependency_order(tasks)


def open_predecessors(task: Task, tasks: Iterable[Task]) -> list[str]:
    """Ids of existing predecessors of ``task`` that are not completed."""
    status_by_id = {other.id: other.is_completed for other in tasks}
    return [
        dep_id
        for dep_id in task.depends_on
        if dep_id in status_by_id and not status_by_id[dep_id]
    ]
