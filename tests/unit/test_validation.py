"""Unit tests for the budget input validators."""

from __future__ import annotations

from datetime import date

import pytest

from kapitalen.backend.app.models import Income
from kapitalen.backend.app.services.validation import (
    validate_adjustment,
    validate_amount,
    validate_date,
    validate_date_range,
    validate_expense,
    validate_income,
    validate_month,
    validate_non_empty_string,
    validate_percentage,
)


def _income_form(**overrides):
    form = {
        "name": "Jobb",
        "yearly_amount": 600_000,
        "employee_percentage": 100,
        "tax_method": "tabelltrekk",
        "period_type": "fullYear",
    }
    form.update(overrides)
    return form


def _expense_form(**overrides):
    form = {"name": "Husleie", "monthly_amounts": [12_000] * 12, "category": "faste-utgifter"}
    form.update(overrides)
    return form


def test_validate_date_parses_calendar_dates() -> None:
    assert validate_date("2026-02-28") == date(2026, 2, 28)
    assert validate_date(date(2026, 1, 1)) == date(2026, 1, 1)


@pytest.mark.parametrize("value", ["2026-02-30", "2026-2-1", "01.02.2026", "", None, 20260101])
def test_validate_date_rejects_invalid_values(value) -> None:
    assert validate_date(value) is None


def test_date_range_allows_single_day() -> None:
    assert validate_date_range("2026-05-01", "2026-05-01")


def test_date_range_rejects_reversed_range() -> None:
    result = validate_date_range("2026-05-02", "2026-05-01")

    assert not result
    assert result.error == "End date must be on or after start date."


def test_date_range_rejects_bad_format() -> None:
    result = validate_date_range("2026-05-02", "mai")

    assert result.error == "Invalid date format. Expected YYYY-MM-DD."


@pytest.mark.parametrize(
    ("value", "error"),
    [
        (-1, "Amount cannot be negative."),
        (float("nan"), "Amount must be a valid number."),
        (float("inf"), "Amount must be a valid number."),
        ("100", "Amount must be a valid number."),
        (True, "Amount must be a valid number."),
    ],
)
def test_validate_amount_rejects(value, error: str) -> None:
    assert validate_amount(value).error == error


def test_validate_amount_accepts_zero() -> None:
    assert validate_amount(0)


@pytest.mark.parametrize("value", [0, 50, 100, 12.5])
def test_validate_percentage_accepts_bounds(value) -> None:
    assert validate_percentage(value)


@pytest.mark.parametrize("value", [-0.1, 100.1])
def test_validate_percentage_rejects_out_of_range(value) -> None:
    assert validate_percentage(value).error == "Percentage must be between 0 and 100."


@pytest.mark.parametrize("value", [1, 12, 6.0])
def test_validate_month_accepts_calendar_months(value) -> None:
    assert validate_month(value)


@pytest.mark.parametrize("value", [0, 13, 1.5, "3", None])
def test_validate_month_rejects(value) -> None:
    assert validate_month(value).error == "Month must be an integer between 1 and 12."


def test_validate_non_empty_string() -> None:
    assert validate_non_empty_string("Kunde AS", "Client")
    assert validate_non_empty_string("   ", "Client").error == "Client cannot be empty."


def test_validate_income_accepts_valid_form() -> None:
    assert validate_income(_income_form())


def test_validate_income_accepts_camel_case_keys() -> None:
    form = {"name": "Jobb", "yearlyAmount": 500_000, "employeePercentage": 80}

    assert validate_income(form)


def test_validate_income_accepts_model_instances(salary: Income) -> None:
    assert validate_income(salary)


@pytest.mark.parametrize(
    ("overrides", "error"),
    [
        ({"name": " "}, "Income name is required."),
        ({"yearly_amount": -5}, "Yearly amount: Amount cannot be negative."),
        ({"yearly_amount": None}, "Yearly amount: Amount cannot be negative."),
        (
            {"employee_percentage": 120},
            "Employee percentage: Percentage must be between 0 and 100.",
        ),
        (
            {"period_type": "custom", "start_date": "2026-06-01", "end_date": "2026-01-01"},
            "End date must be on or after start date.",
        ),
        (
            {"tax_method": "prosenttrekk", "custom_tax_percentage": 101},
            "Tax percentage: Percentage must be between 0 and 100.",
        ),
    ],
)
def test_validate_income_reports_first_failure(overrides, error: str) -> None:
    result = validate_income(_income_form(**overrides))

    assert not result
    assert result.error == error


def test_validate_income_skips_dates_for_full_year() -> None:
    form = _income_form(start_date="not-a-date", end_date="2026-01-01")

    assert validate_income(form)


def test_validate_income_allows_prosenttrekk_without_percentage() -> None:
    assert validate_income(_income_form(tax_method="prosenttrekk"))


def test_validate_adjustment() -> None:
    assert validate_adjustment({"type": "bonus", "amount": 10_000, "month": 6})
    assert validate_adjustment({"type": "bonus", "amount": -1, "month": 6}).error == (
        "Adjustment amount: Amount cannot be negative."
    )
    assert validate_adjustment({"type": "bonus", "amount": 1, "month": 13}).error == (
        "Month must be an integer between 1 and 12."
    )
    assert validate_adjustment({"type": "gave", "amount": 1, "month": 1}).error == (
        "Invalid adjustment type."
    )


def test_validate_expense_accepts_twelve_amounts() -> None:
    assert validate_expense(_expense_form())
    assert validate_expense(
        {"name": "Strøm", "monthlyAmounts": [800] * 12, "category": "faste-utgifter"}
    )


@pytest.mark.parametrize(
    ("overrides", "error"),
    [
        ({"name": ""}, "Expense name is required."),
        ({"monthly_amounts": [100] * 11}, "Expense amount: Exactly 12 monthly amounts are required."),
        ({"monthly_amounts": None}, "Expense amount: Exactly 12 monthly amounts are required."),
        (
            {"monthly_amounts": [100] * 5 + [-1] + [100] * 6},
            "Expense amount (month 6): Amount cannot be negative.",
        ),
        ({"category": "bolig"}, "Invalid expense category."),
    ],
)
def test_validate_expense_rejects(overrides, error: str) -> None:
    assert validate_expense(_expense_form(**overrides)).error == error


def test_validation_result_serialises() -> None:
    assert validate_amount(1).as_dict() == {"valid": True}
    assert validate_amount(-1).as_dict() == {
        "valid": False,
        "error": "Amount cannot be negative.",
    }
