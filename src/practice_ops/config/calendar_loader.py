"""Fiscal calendar and sector keyword loader."""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]

MONTH_NAME_TO_INDEX = {
    "january": 1,
    "february": 2,
    "march": 3,
    "april": 4,
    "may": 5,
    "june": 6,
    "july": 7,
    "august": 8,
    "september": 9,
    "october": 10,
    "november": 11,
    "december": 12,
}

VALID_PRIORITIES = ("high", "medium", "low")


@dataclass(frozen=True)
class FiscalDate:
    """A month/day pair that recurs every fiscal year."""

    month: int
    day: int

    def in_year(self, year: int) -> date:
        """Return the concrete date in the given year, clamped to month length."""
        last_day = calendar.monthrange(year, self.month)[1]
        return date(year, self.month, min(self.day, last_day))


@dataclass(frozen=True)
class SectorRule:
    """Keyword rule seeding one sector-specific task."""

    name: str
    keywords: tuple[str, ...]
    title: str
    description: str
    priority: str
    category: str

    def matches(self, sector: str) -> bool:
        lowered = sector.lower()
        return any(keyword in lowered for keyword in self.keywords)


@dataclass(frozen=True)
class FiscalCalendar:
    """Static tables driving deadline resolution and sector seeding."""

    annual_deadlines: dict[str, FiscalDate]
    default_deadline: FiscalDate
    vat_payment_dates: tuple[FiscalDate, ...]
    sectors: tuple[SectorRule, ...]

    def annual_date(self, category: str | None) -> FiscalDate:
        if category is None:
            return self.default_deadline
        return self.annual_deadlines.get(category, self.default_deadline)


def _parse_month(value: Any) -> int | None:
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        stripped = value.strip().lower()
        if stripped.isdigit():
            return int(stripped)
        return MONTH_NAME_TO_INDEX.get(stripped)
    return None


def _parse_fiscal_date(item: Any, where: str) -> FiscalDate:
    if not isinstance(item, dict):
        raise ValueError(f"{where} must be a mapping with month/day")
    month = _parse_month(item.get("month"))
    day = item.get("day")
    if month is None or not isinstance(day, int):
        raise ValueError(f"{where} requires month (1-12) and day (1-31)")
    if not (1 <= month <= 12) or not (1 <= day <= 31):
        raise ValueError(f"{where} month/day out of range")
    return FiscalDate(month=month, day=day)


def _parse_sector(name: str, item: Any) -> SectorRule:
    if not isinstance(item, dict):
        raise ValueError(f"sectors.{name} must be a mapping")
    keywords = item.get("keywords") or []
    if not isinstance(keywords, list) or not keywords:
        raise ValueError(f"sectors.{name} requires a non-empty keywords list")
    task = item.get("task")
    if not isinstance(task, dict) or not task.get("title"):
        raise ValueError(f"sectors.{name} requires a task with a title")

    priority = str(task.get("priority") or "medium").strip().lower()
    if priority not in VALID_PRIORITIES:
        raise ValueError(f"sectors.{name} invalid priority {priority!r}")

    return SectorRule(
        name=name,
        keywords=tuple(str(keyword).strip().lower() for keyword in keywords),
        title=str(task["title"]),
        description=str(task.get("description") or ""),
        priority=priority,
        category=str(task.get("category") or name),
    )


def parse_fiscal_calendar(data: Any) -> FiscalCalendar:
    """Build a :class:`FiscalCalendar` from decoded YAML data."""
    if not isinstance(data, dict):
        raise ValueError("fiscal calendar must be a mapping")

    raw_annual = data.get("annual_deadlines") or {}
    if not isinstance(raw_annual, dict):
        raise ValueError("annual_deadlines must be a mapping")
    annual = {
        str(category): _parse_fiscal_date(item, f"annual_deadlines.{category}")
        for category, item in raw_annual.items()
    }

    default = _parse_fiscal_date(
        data.get("default") or {"month": 12, "day": 31}, "default"
    )

    raw_payments = data.get("vat_payment_dates") or []
    if not isinstance(raw_payments, list):
        raise ValueError("vat_payment_dates must be a list")
    payments = tuple(
        _parse_fiscal_date(item, f"vat_payment_dates[{idx}]")
        for idx, item in enumerate(raw_payments)
    )

    raw_sectors = data.get("sectors") or {}
    if not isinstance(raw_sectors, dict):
        raise ValueError("sectors must be a mapping")
    sectors = tuple(_parse_sector(str(name), item) for name, item in raw_sectors.items())

    return FiscalCalendar(
        annual_deadlines=annual,
        default_deadline=default,
        vat_payment_dates=payments,
        sectors=sectors,
    )


@lru_cache
def load_fiscal_calendar() -> FiscalCalendar:
    """Load the fiscal calendar shipped alongside this module."""
    calendar_path = Path(__file__).resolve().parent / "fiscal_calendar.yaml"
    raw = calendar_path.read_text(encoding="utf-8")
    return parse_fiscal_calendar(yaml.safe_load(raw) or {})
