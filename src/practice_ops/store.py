"""In-process procedure store and the service that wires the engine to it."""

from __future__ import annotations

import copy
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from datetime import date, datetime
from typing import Any

import structlog

from practice_ops.config.calendar_loader import FiscalCalendar
from practice_ops.config.settings import Settings, get_settings
from practice_ops.errors import ConcurrentUpdateError, NotFoundError
from practice_ops.generator import GenerationResult, ProcedureGenerator
from practice_ops.lifecycle import TaskLifecycle
from practice_ops.models import (
    ClientProfile,
    Procedure,
    ProcedureStatus,
    Task,
    TaskSpec,
    TaskStatusPatch,
)
from practice_ops.reporting import (
    OverdueTask,
    OverdueTaskFilter,
    ProgressReport,
    ProgressReporter,
)

logger = structlog.get_logger(__name__)


class InMemoryProcedureStore:
    """Thread-safe procedure storage with optimistic versioning.

    Procedures are copied on the way in and out, so callers never share
    state with the store. ``save`` accepts a procedure only if its
    ``version`` matches the stored one and bumps it on success.
    """

    def __init__(self) -> None:
        self._procedures: dict[str, Procedure] = {}
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}
        self._logger = logger.bind(component="procedure_store")

    def _lock_for(self, procedure_id: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(procedure_id, threading.Lock())

    @contextmanager
    def locked(self, procedure_id: str) -> Iterator[None]:
        """Hold the per-procedure lock for a read-modify-write cycle."""
        lock = self._lock_for(procedure_id)
        with lock:
            yield

    def get(self, procedure_id: str) -> Procedure:
        with self._guard:
            stored = self._procedures.get(procedure_id)
            if stored is None:
                raise NotFoundError(
                    f"Procedure {procedure_id} not found",
                    details={"procedure_id": procedure_id},
                )
            return copy.deepcopy(stored)

    def save(self, procedure: Procedure) -> Procedure:
        """Persist ``procedure``.

        Raises:
            ConcurrentUpdateError: If the stored version moved on since
                ``procedure`` was read.
        """
        with self._guard:
            stored = self._procedures.get(procedure.procedure_id)
            current = stored.version if stored is not None else 0
            if procedure.version != current:
                self._logger.warning(
                    "stale_procedure_write",
                    procedure_id=procedure.procedure_id,
                    expected=procedure.version,
                    actual=current,
                )
                raise ConcurrentUpdateError(procedure.procedure_id, procedure.version, current)
            procedure.version = current + 1
            self._procedures[procedure.procedure_id] = copy.deepcopy(procedure)

        self._logger.debug(
            "procedure_saved",
            procedure_id=procedure.procedure_id,
            version=procedure.version,
        )
        return procedure

    def list(
        self,
        client_id: str | None = None,
        status: ProcedureStatus | None = None,
    ) -> list[Procedure]:
        with self._guard:
            procedures = [
                copy.deepcopy(p)
                for p in self._procedures.values()
                if (client_id is None or p.client_id == client_id)
                and (status is None or p.status == status)
            ]
        return sorted(procedures, key=lambda p: p.created_at, reverse=True)

    def __len__(self) -> int:
        with self._guard:
            return len(self._procedures)


class ProcedureService:
    """Generation, lifecycle updates and reporting on top of a store.

    Every mutation runs as a locked read-modify-write cycle on one
    procedure, so concurrent updates are serialized instead of lost.
    """

    def __init__(
        self,
        store: InMemoryProcedureStore | None = None,
        settings: Settings | None = None,
        fiscal_calendar: FiscalCalendar | None = None,
    ):
        settings = settings or get_settings()
        self.store = store or InMemoryProcedureStore()
        self._generator = ProcedureGenerator(settings, fiscal_calendar)
        self._lifecycle = TaskLifecycle(settings.enforce_dependencies)
        self._reporter = ProgressReporter()

    def generate_and_save(
        self,
        profile: ClientProfile | Mapping[str, Any],
        reference_date: date | None = None,
        now: datetime | None = None,
    ) -> GenerationResult:
        result = self._generator.generate(profile, reference_date, now=now)
        self.store.save(result.procedure)
        return result

    def update_task_status(
        self,
        procedure_id: str,
        task_id: str,
        patch: TaskStatusPatch,
        now: datetime | None = None,
    ) -> Procedure:
        with self.store.locked(procedure_id):
            procedure = self.store.get(procedure_id)
            self._lifecycle.update_task_status(procedure, task_id, patch, now)
            return self.store.save(procedure)

    def add_task(
        self,
        procedure_id: str,
        spec: TaskSpec,
        now: datetime | None = None,
    ) -> Task:
        with self.store.locked(procedure_id):
            procedure = self.store.get(procedure_id)
            task = self._lifecycle.add_task(procedure, spec, now)
            self.store.save(procedure)
            return task

    def update_procedure_status(
        self,
        procedure_id: str,
        status: ProcedureStatus | str,
        notes: str | None = None,
        actor: str | None = None,
        now: datetime | None = None,
    ) -> Procedure:
        with self.store.locked(procedure_id):
            procedure = self.store.get(procedure_id)
            self._lifecycle.update_procedure_status(procedure, status, notes, actor, now)
            return self.store.save(procedure)

    def progress_report(
        self,
        client_id: str | None = None,
        now: datetime | None = None,
    ) -> ProgressReport:
        return self._reporter.generate_progress_report(self.store.list(client_id=client_id), now)

    def overdue_tasks(
        self,
        filters: OverdueTaskFilter | None = None,
        now: datetime | None = None,
    ) -> list[OverdueTask]:
        return self._reporter.get_overdue_tasks(self.store.list(), filters, now)
