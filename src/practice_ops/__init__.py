"""Practice Ops - operational procedure engine for accounting practices."""

__version__ = "0.1.0"

from practice_ops.catalog import TaskCatalogGenerator, TaskIdSequence, generate_task_checklist
from practice_ops.classifier import RequirementClassifier, classify
from practice_ops.config import configure_logging, get_settings, load_fiscal_calendar
from practice_ops.deadlines import resolve_due_date
from practice_ops.dependencies import resolve_dependencies, validate_acyclic
from practice_ops.errors import (
    ClassificationError,
    ConcurrentUpdateError,
    DependencyBlockedError,
    DependencyCycleError,
    NotFoundError,
    PracticeOpsError,
    ValidationError,
)
from practice_ops.generator import (
    GenerationResult,
    ProcedureGenerator,
    generate_operational_procedure,
)
from practice_ops.lifecycle import TaskLifecycle, add_task, update_task_status
from practice_ops.models import (
    AccountingRegime,
    AnnualDeadline,
    ClientProfile,
    ComplexityTier,
    EntityType,
    MonthlyDeadline,
    Priority,
    Procedure,
    ProcedureRequirements,
    ProcedureStatus,
    QuarterlyDeadline,
    Task,
    TaskSpec,
    TaskStatus,
    TaskStatusPatch,
)
from practice_ops.reporting import (
    OverdueTask,
    OverdueTaskFilter,
    ProgressReport,
    ProgressReporter,
    generate_progress_report,
    get_overdue_tasks,
)
from practice_ops.store import InMemoryProcedureStore, ProcedureService

__all__ = [
    # Version
    "__version__",
    # Models
    "AccountingRegime",
    "AnnualDeadline",
    "ClientProfile",
    "ComplexityTier",
    "EntityType",
    "MonthlyDeadline",
    "Priority",
    "Procedure",
    "ProcedureRequirements",
    "ProcedureStatus",
    "QuarterlyDeadline",
    "Task",
    "TaskSpec",
    "TaskStatus",
    "TaskStatusPatch",
    # Classification & catalog
    "RequirementClassifier",
    "classify",
    "TaskCatalogGenerator",
    "TaskIdSequence",
    "generate_task_checklist",
    "resolve_due_date",
    "resolve_dependencies",
    "validate_acyclic",
    # Generation & lifecycle
    "GenerationResult",
    "ProcedureGenerator",
    "generate_operational_procedure",
    "TaskLifecycle",
    "add_task",
    "update_task_status",
    # Reporting
    "OverdueTask",
    "OverdueTaskFilter",
    "ProgressReport",
    "ProgressReporter",
    "generate_progress_report",
    "get_overdue_tasks",
    # Persistence
    "InMemoryProcedureStore",
    "ProcedureService",
    # Errors
    "PracticeOpsError",
    "NotFoundError",
    "ValidationError",
    "DependencyCycleError",
    "DependencyBlockedError",
    "ClassificationError",
    "ConcurrentUpdateError",
    # Config
    "configure_logging",
    "get_settings",
    "load_fiscal_calendar",
]
