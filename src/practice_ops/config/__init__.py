"""Configuration module for the procedure engine."""

from practice_ops.config.calendar_loader import FiscalCalendar, load_fiscal_calendar
from practice_ops.config.logging import configure_logging, get_logger
from practice_ops.config.settings import Settings, get_settings

__all__ = [
    "FiscalCalendar",
    "Settings",
    "configure_logging",
    "get_logger",
    "get_settings",
    "load_fiscal_calendar",
]
