"""Tests for deadline rule resolution."""

from datetime import date

import pytest

from practice_ops.config.calendar_loader import (
    FiscalDate,
    load_fiscal_calendar,
    parse_fiscal_calendar,
)
from practice_ops.deadlines import resolve_due_date
from practice_ops.models import AnnualDeadline, MonthlyDeadline, QuarterlyDeadline


class TestMonthlyDeadline:
    """Tests for monthly rules."""

    def test_day_passed_moves_to_next_month(self):
        """Test that a passed day of month resolves into the next month."""
        due = resolve_due_date(MonthlyDeadline(15), date(2025, 3, 20))

        assert due == date(2025, 4, 15)

    def test_day_not_reached_stays_in_month(self):
        due = resolve_due_date(MonthlyDeadline(15), date(2025, 3, 10))

        assert due == date(2025, 3, 15)

    def test_same_day_is_due_today(self):
        due = resolve_due_date(MonthlyDeadline(15), date(2025, 3, 15))

        assert due == date(2025, 3, 15)

    def test_december_rolls_into_next_year(self):
        """Test that rolling past December lands in January of the next year."""
        due = resolve_due_date(MonthlyDeadline(15), date(2025, 12, 20))

        assert due == date(2026, 1, 15)

    def test_november_does_not_change_year(self):
        due = resolve_due_date(MonthlyDeadline(15), date(2025, 11, 20))

        assert due == date(2025, 12, 15)

    def test_day_clamped_to_month_length(self):
        """Test that day 30 falls on the last day of February."""
        due = resolve_due_date(MonthlyDeadline(30), date(2025, 1, 31))

        assert due == date(2025, 2, 28)

    def test_leap_year_february(self):
        due = resolve_due_date(MonthlyDeadline(30), date(2024, 1, 31))

        assert due == date(2024, 2, 29)


class TestQuarterlyDeadline:
    """Tests for quarterly rules."""

    @pytest.mark.parametrize(
        "reference, expected",
        [
            (date(2025, 2, 10), date(2025, 5, 15)),
            (date(2025, 4, 1), date(2025, 8, 15)),
            (date(2025, 9, 30), date(2025, 11, 15)),
            (date(2025, 11, 3), date(2026, 2, 15)),
        ],
    )
    def test_second_month_of_next_quarter(self, reference, expected):
        assert resolve_due_date(QuarterlyDeadline(), reference) == expected


class TestAnnualDeadline:
    """Tests for annual rules backed by the fiscal calendar."""

    def test_known_category(self):
        due = resolve_due_date(AnnualDeadline("vat_annual"), date(2025, 1, 10))

        assert due == date(2025, 4, 30)

    def test_uses_reference_year_even_when_past(self):
        """Test that annual dates are not pushed into the following year."""
        due = resolve_due_date(AnnualDeadline("vat_annual"), date(2025, 6, 1))

        assert due == date(2025, 4, 30)

    def test_partnership_category(self):
        due = resolve_due_date(AnnualDeadline("income_tax_partnerships"), date(2025, 3, 20))

        assert due == date(2025, 9, 30)

    def test_unknown_category_falls_back_to_year_end(self):
        due = resolve_due_date(AnnualDeadline("statutory_audit"), date(2025, 3, 20))

        assert due == date(2025, 12, 31)

    def test_missing_category_falls_back_to_year_end(self):
        due = resolve_due_date(AnnualDeadline(), date(2025, 3, 20))

        assert due == date(2025, 12, 31)


class TestResolver:
    """General resolver behaviour."""

    def test_resolution_is_deterministic(self):
        rule = MonthlyDeadline(16)
        reference = date(2025, 7, 31)

        assert resolve_due_date(rule, reference) == resolve_due_date(rule, reference)

    def test_unsupported_rule(self):
        with pytest.raises(TypeError):
            resolve_due_date("monthly", date(2025, 3, 20))


class TestFiscalCalendar:
    """Tests for the bundled fiscal calendar."""

    def test_bundled_calendar_loads(self):
        calendar = load_fiscal_calendar()

        assert calendar.annual_date("income_tax_companies") == FiscalDate(9, 30)
        assert len(calendar.vat_payment_dates) == 4
        assert [rule.name for rule in calendar.sectors] == [
            "retail",
            "construction",
            "healthcare",
            "services",
        ]

    def test_month_names_are_accepted(self):
        calendar = parse_fiscal_calendar(
            {"annual_deadlines": {"vat_annual": {"month": "April", "day": 30}}}
        )

        assert calendar.annual_date("vat_annual") == FiscalDate(4, 30)
        assert calendar.annual_date("other") == FiscalDate(12, 31)

    def test_invalid_calendar_rejected(self):
        with pytest.raises(ValueError):
            parse_fiscal_calendar(["not", "a", "mapping"])

    def test_sector_without_keywords_rejected(self):
        with pytest.raises(ValueError):
            parse_fiscal_calendar({"sectors": {"retail": {"task": {"title": "Stock"}}}})

    def test_fiscal_date_clamped(self):
        assert FiscalDate(2, 30).in_year(2025) == date(2025, 2, 28)
