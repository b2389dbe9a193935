"""Rule-based classification of a client's compliance workload."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date, timedelta
from decimal import Decimal
from typing import Any

import structlog

from practice_ops.config.calendar_loader import FiscalCalendar, load_fiscal_calendar
from practice_ops.config.settings import Settings, get_settings
from practice_ops.errors import ClassificationError
from practice_ops.models import (
    AccountingRegime,
    ClientProfile,
    ComplexityTier,
    EntityType,
    Priority,
    ProcedureRequirements,
    SectorTaskSeed,
)

logger = structlog.get_logger(__name__)

# Fiscal obligation tags
VAT_DECLARATION = "vat_declaration"
VAT_LIQUIDATION = "vat_liquidation"
CORPORATE_TAX = "corporate_tax"
FINANCIAL_STATEMENTS = "financial_statements"
PARTNERSHIP_TAX = "partnership_tax"
PERSONAL_INCOME_TAX = "personal_income_tax"

# Accounting obligation tags
FULL_ACCOUNTING = "full_accounting"
SIMPLIFIED_ACCOUNTING = "simplified_accounting"
VAT_REGISTERS = "vat_registers"
INCOME_REGISTER = "income_register"

PROCEDURE_TYPES: dict[EntityType, str] = {
    EntityType.SOLE_PROPRIETOR: "individual",
    EntityType.PARTNERSHIP: "partnership",
    EntityType.CORPORATION: "corporation",
    EntityType.LLC: "llc",
}

ENTITY_FISCAL_REQUIREMENTS: dict[EntityType, tuple[str, ...]] = {
    EntityType.SOLE_PROPRIETOR: (PERSONAL_INCOME_TAX,),
    EntityType.PARTNERSHIP: (PARTNERSHIP_TAX,),
    EntityType.CORPORATION: (CORPORATE_TAX, FINANCIAL_STATEMENTS),
    EntityType.LLC: (CORPORATE_TAX, FINANCIAL_STATEMENTS),
}

ACCOUNTING_REQUIREMENTS: dict[AccountingRegime, tuple[str, ...]] = {
    AccountingRegime.ORDINARY: (FULL_ACCOUNTING, VAT_REGISTERS),
    AccountingRegime.SIMPLIFIED: (SIMPLIFIED_ACCOUNTING, VAT_REGISTERS),
    AccountingRegime.FLAT_RATE: (INCOME_REGISTER,),
    AccountingRegime.UNSPECIFIED: (),
}


def baseline_complexity(entity_type: EntityType, regime: AccountingRegime) -> ComplexityTier:
    """Complexity implied by the legal form alone."""
    if entity_type == EntityType.SOLE_PROPRIETOR:
        return ComplexityTier.LOW if regime == AccountingRegime.FLAT_RATE else ComplexityTier.MEDIUM
    if entity_type == EntityType.PARTNERSHIP:
        return ComplexityTier.MEDIUM
    return ComplexityTier.HIGH


def fiscal_requirements_for(
    entity_type: EntityType, regime: AccountingRegime, has_tax_id: bool
) -> tuple[str, ...]:
    requirements: list[str] = []
    if has_tax_id:
        requirements.append(VAT_DECLARATION)
        if regime != AccountingRegime.FLAT_RATE:
            requirements.append(VAT_LIQUIDATION)
    requirements.extend(ENTITY_FISCAL_REQUIREMENTS[entity_type])
    return tuple(requirements)


class RequirementClassifier:
    """Derive :class:`ProcedureRequirements` from a :class:`ClientProfile`.

    Classification is pure: the same profile, reference date and settings
    always produce the same requirements.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        fiscal_calendar: FiscalCalendar | None = None,
    ):
        self._settings = settings or get_settings()
        self._calendar = fiscal_calendar or load_fiscal_calendar()
        self._logger = logger.bind(component="requirement_classifier")

    def complexity_for(self, profile: ClientProfile) -> ComplexityTier:
        """Baseline complexity adjusted by revenue and headcount.

        Size overrides take precedence over the entity-type default.
        """
        s = self._settings
        revenue = profile.annual_revenue
        employees = profile.employee_count

        if (
            revenue > Decimal(str(s.large_revenue_threshold))
            or employees > s.large_headcount_threshold
        ):
            return ComplexityTier.HIGH
        if (
            revenue < Decimal(str(s.small_revenue_threshold))
            and employees < s.small_headcount_threshold
        ):
            return ComplexityTier.LOW
        return baseline_complexity(profile.entity_type, profile.regime)

    def sector_seeds(self, sector: str) -> tuple[SectorTaskSeed, ...]:
        if not sector:
            return ()
        return tuple(
            SectorTaskSeed(
                title=rule.title,
                description=rule.description,
                priority=Priority(rule.priority),
                category=rule.category,
            )
            for rule in self._calendar.sectors
            if rule.matches(sector)
        )

    def is_new_business(self, profile: ClientProfile, reference_date: date) -> bool:
        if profile.founding_date is None:
            return False
        window_start = reference_date - timedelta(days=self._settings.new_business_window_days)
        return profile.founding_date > window_start

    def classify(
        self,
        profile: ClientProfile | Mapping[str, Any] | None,
        reference_date: date | None = None,
    ) -> ProcedureRequirements:
        """Classify a client profile.

        Args:
            profile: Client profile, or a raw client record.
            reference_date: The date treated as "today". Defaults to today.

        Returns:
            The derived procedure requirements.

        Raises:
            ClassificationError: If the profile, entity type or regime is absent.
        """
        if profile is None:
            raise ClassificationError("Client profile is missing")
        if not isinstance(profile, ClientProfile):
            profile = ClientProfile.from_dict(profile)
        if profile.entity_type is None:
            raise ClassificationError("Client profile is missing the entity type")
        if profile.regime is None:
            raise ClassificationError("Client profile is missing the accounting regime")

        reference_date = reference_date or date.today()
        s = self._settings
        revenue = profile.annual_revenue

        requirements = ProcedureRequirements(
            procedure_type=PROCEDURE_TYPES[profile.entity_type],
            complexity=self.complexity_for(profile),
            sector_tasks=self.sector_seeds(profile.sector),
            fiscal_requirements=fiscal_requirements_for(
                profile.entity_type, profile.regime, profile.has_tax_id
            ),
            accounting_requirements=ACCOUNTING_REQUIREMENTS[profile.regime],
            needs_quarterly_review=revenue > Decimal(str(s.quarterly_review_revenue)),
            needs_audit=(
                profile.entity_type == EntityType.CORPORATION
                or revenue > Decimal(str(s.audit_revenue))
            ),
            is_new_business=self.is_new_business(profile, reference_date),
            needs_annual_planning=(
                revenue > Decimal(str(s.annual_planning_revenue))
                or profile.employee_count > s.annual_planning_headcount
            ),
        )

        self._logger.debug(
            "profile_classified",
            client_id=profile.client_id,
            procedure_type=requirements.procedure_type,
            complexity=requirements.complexity.value,
            sector_tasks=len(requirements.sector_tasks),
        )
        return requirements


def classify(
    profile: ClientProfile | Mapping[str, Any] | None,
    reference_date: date | None = None,
) -> ProcedureRequirements:
    """Classify a profile with the default settings and fiscal calendar."""
    return RequirementClassifier().classify(profile, reference_date)
