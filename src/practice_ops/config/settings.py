"""Configuration settings for the procedure engine."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Flat settings read from environment variables or a .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Complexity thresholds
    large_revenue_threshold: float = Field(
        default=1_000_000.0, validation_alias="LARGE_REVENUE_THRESHOLD"
    )
    large_headcount_threshold: int = Field(
        default=15, validation_alias="LARGE_HEADCOUNT_THRESHOLD"
    )
    small_revenue_threshold: float = Field(
        default=100_000.0, validation_alias="SMALL_REVENUE_THRESHOLD"
    )
    small_headcount_threshold: int = Field(
        default=5, validation_alias="SMALL_HEADCOUNT_THRESHOLD"
    )

    # Requirement flags
    quarterly_review_revenue: float = Field(
        default=300_000.0, validation_alias="QUARTERLY_REVIEW_REVENUE"
    )
    audit_revenue: float = Field(default=1_000_000.0, validation_alias="AUDIT_REVENUE")
    annual_planning_revenue: float = Field(
        default=500_000.0, validation_alias="ANNUAL_PLANNING_REVENUE"
    )
    annual_planning_headcount: int = Field(
        default=10, validation_alias="ANNUAL_PLANNING_HEADCOUNT"
    )
    new_business_window_days: int = Field(
        default=365, validation_alias="NEW_BUSINESS_WINDOW_DAYS"
    )

    # Lifecycle
    enforce_dependencies: bool = Field(
        default=False,
        validation_alias="ENFORCE_DEPENDENCIES",
        description="Reject starting a task before its predecessors are completed",
    )
    escalate_fiscal_priorities: bool = Field(
        default=False,
        validation_alias="ESCALATE_FISCAL_PRIORITIES",
        description="Raise fiscal tasks to high priority near VAT payment dates",
    )
    fiscal_escalation_window_days: int = Field(
        default=30, validation_alias="FISCAL_ESCALATION_WINDOW_DAYS"
    )

    # Reporting
    report_overdue_limit: int = Field(default=10, validation_alias="REPORT_OVERDUE_LIMIT")
    overdue_filter_limit: int = Field(default=20, validation_alias="OVERDUE_FILTER_LIMIT")

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", validation_alias="LOG_LEVEL"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", validation_alias="LOG_FORMAT"
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
