"""Typed models shared across the calculation and budget services.

Budget entities are Pydantic models so that request parsing, storage and
validation agree on one schema; calculation results are lightweight frozen
dataclasses that are rebuilt wholesale whenever an input changes.
"""

from __future__ import annotations

from .api import (
    BudgetSettingsInput,
    CombinedTaxRequest,
    FreelanceInvoiceInput,
    IncomePreviewRequest,
    format_validation_error,
)
from .budget import (
    ADJUSTMENT_TYPES,
    EXPENSE_CATEGORIES,
    EXPENSE_FREQUENCIES,
    MONTHS_PER_YEAR,
    TAX_METHODS,
    AdjustmentType,
    CustomPeriod,
    Expense,
    ExpenseCategory,
    FerieUker,
    FreelanceIncome,
    FullYearPeriod,
    Income,
    IncomeAdjustment,
    Prosenttrekk,
    Tabelltrekk,
    TaxMethod,
    generate_id,
)
from .results import (
    VALID,
    CombinedTaxBreakdown,
    TaxBreakdown,
    TrinnskattResult,
    TrinnskattShare,
    ValidationResult,
    WithholdingResult,
    invalid,
)

__all__ = [
    "ADJUSTMENT_TYPES",
    "AdjustmentType",
    "BudgetSettingsInput",
    "CombinedTaxBreakdown",
    "CombinedTaxRequest",
    "CustomPeriod",
    "EXPENSE_CATEGORIES",
    "EXPENSE_FREQUENCIES",
    "Expense",
    "ExpenseCategory",
    "FerieUker",
    "FreelanceIncome",
    "FreelanceInvoiceInput",
    "FullYearPeriod",
    "Income",
    "IncomeAdjustment",
    "IncomePreviewRequest",
    "MONTHS_PER_YEAR",
    "Prosenttrekk",
    "TAX_METHODS",
    "Tabelltrekk",
    "TaxBreakdown",
    "TaxMethod",
    "TrinnskattResult",
    "TrinnskattShare",
    "VALID",
    "ValidationResult",
    "WithholdingResult",
    "format_validation_error",
    "generate_id",
    "invalid",
]
