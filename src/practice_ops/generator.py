"""End-to-end generation of an operational procedure for one client."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

import structlog

from practice_ops.catalog import TaskCatalogGenerator, TaskIdSequence
from practice_ops.classifier import RequirementClassifier
from practice_ops.config.calendar_loader import FiscalCalendar, load_fiscal_calendar
from practice_ops.config.settings import Settings, get_settings
from practice_ops.errors import ClassificationError
from practice_ops.lifecycle import completion_percentage, summarize
from practice_ops.models import (
    SYSTEM_ACTOR,
    ClientProfile,
    Procedure,
    ProcedureRequirements,
    utc_now,
)

logger = structlog.get_logger(__name__)

GENERATED_NOTE = "Task created automatically"


@dataclass
class GenerationResult:
    """Classification output together with the assembled procedure."""

    requirements: ProcedureRequirements
    procedure: Procedure

    def to_dict(self) -> dict[str, Any]:
        return {
            "requirements": self.requirements.to_dict(),
            "procedure": self.procedure.to_dict(),
        }


class ProcedureGenerator:
    """Profile -> classification -> task catalog -> procedure aggregate.

    Generation performs no I/O; persisting the returned procedure is up to
    the caller.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        fiscal_calendar: FiscalCalendar | None = None,
    ):
        settings = settings or get_settings()
        fiscal_calendar = fiscal_calendar or load_fiscal_calendar()
        self._classifier = RequirementClassifier(settings, fiscal_calendar)
        self._catalog = TaskCatalogGenerator(settings, fiscal_calendar)
        self._logger = logger.bind(component="procedure_generator")

    def generate(
        self,
        profile: ClientProfile | Mapping[str, Any] | None,
        reference_date: date | None = None,
        name: str | None = None,
        now: datetime | None = None,
    ) -> GenerationResult:
        """Generate the operational procedure for a client.

        Args:
            profile: Client profile, or a raw client record.
            reference_date: Date deadlines are resolved against. Defaults to
                the date part of ``now``.
            name: Display name. Defaults to one derived from the client name.
            now: Creation timestamp. Defaults to the current UTC time.

        Raises:
            ClassificationError: If the profile cannot be classified.
            DependencyCycleError: If the generated task graph is cyclic.
        """
        if profile is None:
            raise ClassificationError("Client profile is missing")
        if not isinstance(profile, ClientProfile):
            profile = ClientProfile.from_dict(profile)

        now = now or utc_now()
        reference_date = reference_date or now.date()

        requirements = self._classifier.classify(profile, reference_date)
        ids = TaskIdSequence()
        tasks = self._catalog.generate(profile, requirements, reference_date, ids)

        for task in tasks:
            task.record(GENERATED_NOTE, SYSTEM_ACTOR, now)

        procedure = Procedure(
            client_id=profile.client_id,
            name=name or f"Operational procedure: {profile.name or profile.client_id}",
            procedure_type=requirements.procedure_type,
            complexity=requirements.complexity,
            tasks=tasks,
            summary=summarize(tasks, reference_date),
            completion_percentage=completion_percentage(tasks),
            created_at=now,
            updated_at=now,
            task_sequence=ids.current,
        )

        self._logger.info(
            "procedure_generated",
            procedure_id=procedure.procedure_id,
            client_id=procedure.client_id,
            procedure_type=procedure.procedure_type,
            complexity=procedure.complexity.value,
            tasks=len(tasks),
        )
        return GenerationResult(requirements=requirements, procedure=procedure)


def generate_operational_procedure(
    profile: ClientProfile | Mapping[str, Any] | None,
    reference_date: date | None = None,
) -> GenerationResult:
    """Generate a procedure with the default settings and fiscal calendar."""
    return ProcedureGenerator().generate(profile, reference_date)
