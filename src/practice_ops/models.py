"""Domain model for client procedures and their compliance tasks.

Everything here is a plain dataclass or ``str`` enum so aggregates can be
handed to, and rebuilt from, whatever persistence collaborator owns them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, ClassVar, Mapping
from uuid import uuid4

from practice_ops.errors import ClassificationError, ValidationError

SYSTEM_ACTOR = "system"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS
# =============================================================================


class EntityType(str, Enum):
    """Legal form of a client business."""

    SOLE_PROPRIETOR = "sole_proprietor"
    PARTNERSHIP = "partnership"
    CORPORATION = "corporation"
    LLC = "llc"


class AccountingRegime(str, Enum):
    """Bookkeeping regime the client is registered under."""

    FLAT_RATE = "flat_rate"
    SIMPLIFIED = "simplified"
    ORDINARY = "ordinary"
    UNSPECIFIED = "unspecified"


# Labels used by client records created before the enums were introduced
ENTITY_TYPE_ALIASES: dict[str, EntityType] = {
    "individual": EntityType.SOLE_PROPRIETOR,
    "sole proprietor": EntityType.SOLE_PROPRIETOR,
    "partnership": EntityType.PARTNERSHIP,
    "corporation": EntityType.CORPORATION,
    "llc": EntityType.LLC,
}

REGIME_ALIASES: dict[str, AccountingRegime] = {
    "forfettario": AccountingRegime.FLAT_RATE,
    "flat rate": AccountingRegime.FLAT_RATE,
    "semplificato": AccountingRegime.SIMPLIFIED,
    "ordinario": AccountingRegime.ORDINARY,
    "non specificato": AccountingRegime.UNSPECIFIED,
}


class Priority(str, Enum):
    """Task priority. ``rank`` is the single ordering used for every sort."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return PRIORITY_RANK[self]


PRIORITY_RANK: dict[Priority, int] = {
    Priority.HIGH: 0,
    Priority.MEDIUM: 1,
    Priority.LOW: 2,
}


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class ProcedureStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class ComplexityTier(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


def parse_priority(value: Priority | str | None) -> Priority:
    """Parse a priority, defaulting to medium when absent."""
    if isinstance(value, Priority):
        return value
    if value is None or value == "":
        return Priority.MEDIUM
    try:
        return Priority(str(value).strip().lower())
    except ValueError as exc:
        raise ValidationError(
            f"Invalid priority {value!r}; expected one of: high, medium, low"
        ) from exc


def parse_task_status(value: TaskStatus | str) -> TaskStatus:
    if isinstance(value, TaskStatus):
        return value
    try:
        return TaskStatus(str(value).strip().lower())
    except ValueError as exc:
        raise ValidationError(
            f"Invalid task status {value!r}; expected one of: "
            "pending, in_progress, completed"
        ) from exc


def parse_procedure_status(value: ProcedureStatus | str | None) -> ProcedureStatus:
    if isinstance(value, ProcedureStatus):
        return value
    if value is None or value == "":
        raise ValidationError("Procedure status is required")
    try:
        return ProcedureStatus(str(value).strip().lower())
    except ValueError as exc:
        raise ValidationError(
            f"Invalid procedure status {value!r}; expected one of: "
            "active, completed, archived"
        ) from exc


def parse_complexity(value: ComplexityTier | str | None) -> ComplexityTier:
    """Parse a complexity tier, defaulting to medium when absent."""
    if isinstance(value, ComplexityTier):
        return value
    if value is None or value == "":
        return ComplexityTier.MEDIUM
    try:
        return ComplexityTier(str(value).strip().lower())
    except ValueError as exc:
        raise ValidationError(
            f"Invalid complexity {value!r}; expected one of: low, medium, high"
        ) from exc


def _parse_date(value: Any) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    return datetime.fromisoformat(str(value))


# =============================================================================
# CLIENT PROFILE
# =============================================================================


@dataclass(frozen=True)
class ClientProfile:
    """Fiscal profile of a client, read-only to the engine."""

    client_id: str
    name: str
    entity_type: EntityType
    regime: AccountingRegime
    sector: str = ""
    annual_revenue: Decimal = Decimal("0")
    employee_count: int = 0
    founding_date: date | None = None
    has_tax_id: bool = False

    @staticmethod
    def parse_entity_type(value: Any) -> EntityType:
        if value is None or value == "":
            raise ClassificationError("Client profile is missing the entity type")
        if isinstance(value, EntityType):
            return value
        normalized = str(value).strip().lower()
        try:
            return EntityType(normalized)
        except ValueError:
            alias = ENTITY_TYPE_ALIASES.get(normalized)
            if alias is None:
                raise ClassificationError(
                    f"Unknown entity type {value!r}", details={"entity_type": value}
                ) from None
            return alias

    @staticmethod
    def parse_regime(value: Any) -> AccountingRegime:
        if value is None or value == "":
            raise ClassificationError("Client profile is missing the accounting regime")
        if isinstance(value, AccountingRegime):
            return value
        normalized = str(value).strip().lower()
        try:
            return AccountingRegime(normalized)
        except ValueError:
            alias = REGIME_ALIASES.get(normalized)
            if alias is None:
                raise ClassificationError(
                    f"Unknown accounting regime {value!r}", details={"regime": value}
                ) from None
            return alias

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> ClientProfile:
        """Build a profile from a persisted client record.

        ``has_tax_id`` is taken from an explicit flag, or inferred from the
        presence of a ``vat_number``.
        """
        if not data:
            raise ClassificationError("Client profile is missing")

        try:
            revenue = Decimal(str(data.get("annual_revenue") or "0"))
            employees = int(data.get("employee_count") or data.get("employees") or 0)
            founded = _parse_date(data.get("founding_date"))
        except (InvalidOperation, TypeError, ValueError) as exc:
            raise ClassificationError(f"Malformed client profile: {exc}") from exc

        if revenue < 0 or employees < 0:
            raise ClassificationError(
                "Revenue and employee count must be non-negative",
                details={"annual_revenue": str(revenue), "employee_count": employees},
            )

        if "has_tax_id" in data:
            has_tax_id = bool(data["has_tax_id"])
        else:
            has_tax_id = bool(data.get("vat_number"))

        return cls(
            client_id=str(data.get("client_id") or data.get("id") or ""),
            name=str(data.get("name") or ""),
            entity_type=cls.parse_entity_type(data.get("entity_type")),
            regime=cls.parse_regime(data.get("regime")),
            sector=str(data.get("sector") or ""),
            annual_revenue=revenue,
            employee_count=employees,
            founding_date=founded,
            has_tax_id=has_tax_id,
        )


# =============================================================================
# DEADLINE RULES
# =============================================================================


@dataclass(frozen=True)
class MonthlyDeadline:
    """Due on a given day of the current or next month."""

    day_of_month: int = 30
    description: str = ""

    type: ClassVar[str] = "monthly"

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "day_of_month": self.day_of_month,
            "description": self.description,
        }


@dataclass(frozen=True)
class QuarterlyDeadline:
    """Due mid-way through the next calendar quarter."""

    description: str = ""

    type: ClassVar[str] = "quarterly"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "description": self.description}


@dataclass(frozen=True)
class AnnualDeadline:
    """Due on a fixed fiscal date looked up by category."""

    category: str | None = None
    description: str = ""

    type: ClassVar[str] = "annual"

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "category": self.category,
            "description": self.description,
        }


DeadlineRule = MonthlyDeadline | QuarterlyDeadline | AnnualDeadline


def deadline_from_dict(data: Mapping[str, Any]) -> DeadlineRule:
    """Rebuild a deadline rule from its tagged dictionary form."""
    rule_type = str(data.get("type") or "").strip().lower()
    description = str(data.get("description") or "")

    if rule_type == MonthlyDeadline.type:
        try:
            day = int(data.get("day_of_month") or 30)
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"Invalid day_of_month: {data!r}") from exc
        if not 1 <= day <= 31:
            raise ValidationError(f"day_of_month out of range: {day}")
        return MonthlyDeadline(day_of_month=day, description=description)
    if rule_type == QuarterlyDeadline.type:
        return QuarterlyDeadline(description=description)
    if rule_type == AnnualDeadline.type:
        category = data.get("category")
        return AnnualDeadline(
            category=str(category) if category else None, description=description
        )

    raise ValidationError(f"Unknown deadline type {data.get('type')!r}")


# =============================================================================
# TASKS
# =============================================================================


@dataclass(frozen=True)
class StatusHistoryEntry:
    """One immutable line of a task's status log."""

    status: TaskStatus
    timestamp: datetime
    note: str
    actor: str = SYSTEM_ACTOR

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "timestamp": self.timestamp.isoformat(),
            "note": self.note,
            "actor": self.actor,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> StatusHistoryEntry:
        return cls(
            status=parse_task_status(data["status"]),
            timestamp=_parse_datetime(data["timestamp"]),
            note=str(data.get("note") or ""),
            actor=str(data.get("actor") or SYSTEM_ACTOR),
        )


@dataclass(frozen=True)
class DependencyRef:
    """Resolved predecessor reference."""

    id: str
    title: str

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "title": self.title}


@dataclass
class Task:
    """A single compliance or bookkeeping obligation."""

    id: str
    title: str
    description: str = ""
    priority: Priority = Priority.MEDIUM
    status: TaskStatus = TaskStatus.PENDING
    progress: int = 0
    deadline: DeadlineRule = field(default_factory=MonthlyDeadline)
    due_date: date | None = None
    depends_on: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    status_history: list[StatusHistoryEntry] = field(default_factory=list)
    resolved_dependencies: list[DependencyRef] = field(default_factory=list)
    assignee: str | None = None
    updated_at: datetime | None = None

    @property
    def is_completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED

    def is_overdue(self, today: date) -> bool:
        """Open and due strictly before ``today``."""
        return not self.is_completed and self.due_date is not None and self.due_date < today

    def record(
        self,
        note: str,
        actor: str = SYSTEM_ACTOR,
        timestamp: datetime | None = None,
    ) -> StatusHistoryEntry:
        """Append a history entry carrying the current status."""
        entry = StatusHistoryEntry(
            status=self.status,
            timestamp=timestamp or utc_now(),
            note=note,
            actor=actor,
        )
        self.status_history.append(entry)
        return entry

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "priority": self.priority.value,
            "status": self.status.value,
            "progress": self.progress,
            "deadline": self.deadline.to_dict(),
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "depends_on": list(self.depends_on),
            "tags": list(self.tags),
            "status_history": [entry.to_dict() for entry in self.status_history],
            "resolved_dependencies": [dep.to_dict() for dep in self.resolved_dependencies],
            "assignee": self.assignee,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Task:
        deadline = data.get("deadline")
        try:
            progress = max(0, min(100, int(data.get("progress") or 0)))
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"Invalid progress {data.get('progress')!r}") from exc
        status = parse_task_status(data.get("status") or TaskStatus.PENDING)
        # Progress 100 always means completed
        if progress == 100:
            status = TaskStatus.COMPLETED

        return cls(
            id=str(data["id"]),
            title=str(data["title"]),
            description=str(data.get("description") or ""),
            priority=parse_priority(data.get("priority")),
            status=status,
            progress=progress,
            deadline=deadline_from_dict(deadline) if deadline else MonthlyDeadline(),
            due_date=_parse_date(data.get("due_date")),
            depends_on=[str(dep) for dep in data.get("depends_on") or []],
            tags=[str(tag) for tag in data.get("tags") or []],
            status_history=[
                StatusHistoryEntry.from_dict(entry)
                for entry in data.get("status_history") or []
            ],
            resolved_dependencies=[
                DependencyRef(id=str(dep["id"]), title=str(dep["title"]))
                for dep in data.get("resolved_dependencies") or []
            ],
            assignee=data.get("assignee"),
            updated_at=(
                _parse_datetime(data["updated_at"]) if data.get("updated_at") else None
            ),
        )


@dataclass
class TaskStatusPatch:
    """Fields a caller may change on a task. ``None`` leaves a field as is."""

    status: TaskStatus | str | None = None
    progress: int | None = None
    note: str | None = None
    assignee: str | None = None
    actor: str | None = None


@dataclass
class TaskSpec:
    """Manually specified task to append to an existing procedure."""

    title: str
    description: str = ""
    priority: Priority | str | None = None
    deadline: DeadlineRule | None = None
    tags: list[str] = field(default_factory=list)
    depends_on: list[str] = field(default_factory=list)
    actor: str | None = None


# =============================================================================
# CLASSIFICATION OUTPUT
# =============================================================================


@dataclass(frozen=True)
class SectorTaskSeed:
    """Sector-specific task template produced by classification."""

    title: str
    description: str
    priority: Priority
    category: str

    def to_dict(self) -> dict[str, str]:
        return {
            "title": self.title,
            "description": self.description,
            "priority": self.priority.value,
            "category": self.category,
        }


@dataclass(frozen=True)
class ProcedureRequirements:
    """Compliance workload derived from a client profile."""

    procedure_type: str
    complexity: ComplexityTier
    sector_tasks: tuple[SectorTaskSeed, ...] = ()
    fiscal_requirements: tuple[str, ...] = ()
    accounting_requirements: tuple[str, ...] = ()
    needs_quarterly_review: bool = False
    needs_audit: bool = False
    is_new_business: bool = False
    needs_annual_planning: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "procedure_type": self.procedure_type,
            "complexity": self.complexity.value,
            "sector_tasks": [seed.to_dict() for seed in self.sector_tasks],
            "fiscal_requirements": list(self.fiscal_requirements),
            "accounting_requirements": list(self.accounting_requirements),
            "needs_quarterly_review": self.needs_quarterly_review,
            "needs_audit": self.needs_audit,
            "is_new_business": self.is_new_business,
            "needs_annual_planning": self.needs_annual_planning,
        }


# =============================================================================
# PROCEDURE AGGREGATE
# =============================================================================


@dataclass
class ProcedureSummary:
    """Derived counters for a procedure, refreshed after every mutation."""

    total_tasks: int = 0
    completed_tasks: int = 0
    pending_tasks: int = 0
    in_progress_tasks: int = 0
    high_priority_tasks: int = 0
    next_due_date: date | None = None
    overdue_tasks: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_tasks": self.total_tasks,
            "completed_tasks": self.completed_tasks,
            "pending_tasks": self.pending_tasks,
            "in_progress_tasks": self.in_progress_tasks,
            "high_priority_tasks": self.high_priority_tasks,
            "next_due_date": self.next_due_date.isoformat() if self.next_due_date else None,
            "overdue_tasks": self.overdue_tasks,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ProcedureSummary:
        return cls(
            total_tasks=int(data.get("total_tasks") or 0),
            completed_tasks=int(data.get("completed_tasks") or 0),
            pending_tasks=int(data.get("pending_tasks") or 0),
            in_progress_tasks=int(data.get("in_progress_tasks") or 0),
            high_priority_tasks=int(data.get("high_priority_tasks") or 0),
            next_due_date=_parse_date(data.get("next_due_date")),
            overdue_tasks=int(data.get("overdue_tasks") or 0),
        )


@dataclass
class Procedure:
    """All compliance tasks generated for one client engagement."""

    client_id: str
    name: str
    procedure_type: str
    complexity: ComplexityTier
    procedure_id: str = field(default_factory=lambda: str(uuid4()))
    status: ProcedureStatus = ProcedureStatus.ACTIVE
    tasks: list[Task] = field(default_factory=list)
    summary: ProcedureSummary = field(default_factory=ProcedureSummary)
    completion_percentage: int = 0
    notes: str | None = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    task_sequence: int = 0
    version: int = 0

    def get_task(self, task_id: str) -> Task | None:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    def dependents_of(self, task_id: str) -> list[Task]:
        """Tasks listing ``task_id`` among their predecessors."""
        return [task for task in self.tasks if task_id in task.depends_on]

    def to_dict(self) -> dict[str, Any]:
        return {
            "procedure_id": self.procedure_id,
            "client_id": self.client_id,
            "name": self.name,
            "status": self.status.value,
            "procedure_type": self.procedure_type,
            "complexity": self.complexity.value,
            "tasks": [task.to_dict() for task in self.tasks],
            "summary": self.summary.to_dict(),
            "completion_percentage": self.completion_percentage,
            "notes": self.notes,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "task_sequence": self.task_sequence,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Procedure:
        return cls(
            procedure_id=str(data["procedure_id"]),
            client_id=str(data["client_id"]),
            name=str(data.get("name") or ""),
            status=parse_procedure_status(data.get("status") or ProcedureStatus.ACTIVE),
            procedure_type=str(data.get("procedure_type") or ""),
            complexity=parse_complexity(data.get("complexity")),
            tasks=[Task.from_dict(task) for task in data.get("tasks") or []],
            summary=ProcedureSummary.from_dict(data.get("summary") or {}),
            completion_percentage=int(data.get("completion_percentage") or 0),
            notes=data.get("notes"),
            created_at=_parse_datetime(data.get("created_at") or utc_now()),
            updated_at=_parse_datetime(data.get("updated_at") or utc_now()),
            task_sequence=int(data.get("task_sequence") or 0),
            version=int(data.get("version") or 0),
        )
