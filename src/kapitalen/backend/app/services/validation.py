"""Input validation for budget entities.

Validators are pure gates between user input and the budget collections. They
accept raw mappings (snake_case or camelCase keys) and never raise: every
failure comes back as a :class:`ValidationResult` with a readable reason.
"""

from __future__ import annotations

import math
import re
from collections.abc import Mapping, Sequence
from datetime import date
from typing import Any

from pydantic import BaseModel

from kapitalen.backend.app.models import (
    ADJUSTMENT_TYPES,
    EXPENSE_CATEGORIES,
    EXPENSE_FREQUENCIES,
    MONTHS_PER_YEAR,
    VALID,
    Income,
    ValidationResult,
    invalid,
)

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _field(data: Mapping[str, Any], snake: str, camel: str | None = None) -> Any:
    if snake in data:
        return data[snake]
    if camel is not None:
        return data.get(camel)
    return None


def _as_mapping(value: Any) -> Mapping[str, Any]:
    if isinstance(value, Income):
        return value.as_form()
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, Mapping):
        return value
    return {}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_date(value: Any) -> date | None:
    """Parse a ``YYYY-MM-DD`` string, returning ``None`` when it is not a real date."""

    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not _ISO_DATE.match(value):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def validate_date_range(start_date: Any, end_date: Any) -> ValidationResult:
    start = validate_date(start_date)
    end = validate_date(end_date)

    if start is None or end is None:
        return invalid("Invalid date format. Expected YYYY-MM-DD.")
    if end < start:
        return invalid("End date must be on or after start date.")
    return VALID


def validate_amount(amount: Any) -> ValidationResult:
    """Amounts must be finite and non-negative."""

    if not _is_number(amount) or not math.isfinite(amount):
        return invalid("Amount must be a valid number.")
    if amount < 0:
        return invalid("Amount cannot be negative.")
    return VALID


def validate_percentage(percentage: Any) -> ValidationResult:
    if not _is_number(percentage) or not math.isfinite(percentage):
        return invalid("Percentage must be a valid number.")
    if percentage < 0 or percentage > 100:
        return invalid("Percentage must be between 0 and 100.")
    return VALID


def validate_month(month: Any) -> ValidationResult:
    is_integral = _is_number(month) and math.isfinite(month) and float(month).is_integer()
    if not is_integral or not 1 <= month <= MONTHS_PER_YEAR:
        return invalid("Month must be an integer between 1 and 12.")
    return VALID


def validate_non_empty_string(value: Any, field_name: str) -> ValidationResult:
    if not isinstance(value, str) or not value.strip():
        return invalid(f"{field_name} cannot be empty.")
    return VALID


def validate_income(income: Mapping[str, Any] | Income) -> ValidationResult:
    """Check an income in its flat form shape.

    The date range is only checked for custom periods, and the tax
    percentage only for prosenttrekk when one is supplied.
    """

    data = _as_mapping(income)

    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        return invalid("Income name is required.")

    amount = _field(data, "yearly_amount", "yearlyAmount")
    result = validate_amount(-1 if amount is None else amount)
    if not result:
        return invalid(f"Yearly amount: {result.error}")

    percentage = _field(data, "employee_percentage", "employeePercentage")
    result = validate_percentage(-1 if percentage is None else percentage)
    if not result:
        return invalid(f"Employee percentage: {result.error}")

    if _field(data, "period_type", "periodType") == "custom":
        result = validate_date_range(
            _field(data, "start_date", "startDate"),
            _field(data, "end_date", "endDate"),
        )
        if not result:
            return result

    custom_percentage = _field(data, "custom_tax_percentage", "customTaxPercentage")
    if _field(data, "tax_method", "taxMethod") == "prosenttrekk" and custom_percentage is not None:
        result = validate_percentage(custom_percentage)
        if not result:
            return invalid(f"Tax percentage: {result.error}")

    return VALID


def validate_adjustment(adjustment: Mapping[str, Any]) -> ValidationResult:
    data = _as_mapping(adjustment)

    amount = data.get("amount")
    result = validate_amount(-1 if amount is None else amount)
    if not result:
        return invalid(f"Adjustment amount: {result.error}")

    month = data.get("month")
    result = validate_month(0 if month is None else month)
    if not result:
        return result

    if data.get("type") not in ADJUSTMENT_TYPES:
        return invalid("Invalid adjustment type.")

    return VALID


def validate_expense(expense: Mapping[str, Any]) -> ValidationResult:
    """Check an expense with its twelve monthly amounts."""

    data = _as_mapping(expense)

    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        return invalid("Expense name is required.")

    amounts = _field(data, "monthly_amounts", "monthlyAmounts")
    if (
        not isinstance(amounts, Sequence)
        or isinstance(amounts, str)
        or len(amounts) != MONTHS_PER_YEAR
    ):
        return invalid("Expense amount: Exactly 12 monthly amounts are required.")
    for month, amount in enumerate(amounts, start=1):
        result = validate_amount(amount)
        if not result:
            return invalid(f"Expense amount (month {month}): {result.error}")

    if data.get("category") not in EXPENSE_CATEGORIES:
        return invalid("Invalid expense category.")

    frequency = data.get("frequency")
    if frequency is not None and frequency not in EXPENSE_FREQUENCIES:
        return invalid("Invalid expense frequency.")

    return VALID


__all__ = [
    "validate_adjustment",
    "validate_amount",
    "validate_date",
    "validate_date_range",
    "validate_expense",
    "validate_income",
    "validate_month",
    "validate_non_empty_string",
    "validate_percentage",
]
