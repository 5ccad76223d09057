"""Pydantic models describing the public API surface."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic.alias_generators import to_camel

from .budget import Income

__all__ = [
    "BudgetSettingsInput",
    "CombinedTaxRequest",
    "FreelanceInvoiceInput",
    "IncomePreviewRequest",
    "format_validation_error",
]


class RequestModel(BaseModel):
    """Request payloads accept snake_case or camelCase keys."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True, alias_generator=to_camel)


class FreelanceInvoiceInput(RequestModel):
    """Invoice amount submitted for a one-off calculation."""

    client: str = ""
    description: str = ""
    amount: float = Field(default=0.0, ge=0)


class CombinedTaxRequest(RequestModel):
    """Snapshot of a budget submitted for the combined tax calculation."""

    year: int | None = None
    locale: str | None = None
    incomes: list[Income] = Field(default_factory=list)
    freelance: list[FreelanceInvoiceInput] = Field(default_factory=list)
    freelance_gross: float | None = Field(default=None, ge=0)
    enk_expenses: float = Field(default=0.0, ge=0)
    tax_method: Literal["tabelltrekk", "prosenttrekk"] = "tabelltrekk"
    tax_percentage: float | None = Field(default=None, ge=0, le=100)

    @model_validator(mode="before")
    @classmethod
    def _reject_ambiguous_freelance(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        has_gross = any(
            data.get(key) is not None for key in ("freelance_gross", "freelanceGross")
        )
        if has_gross and data.get("freelance"):
            raise ValueError("Provide either freelance invoices or freelance_gross, not both")
        return data

    @property
    def total_freelance_gross(self) -> float:
        if self.freelance_gross is not None:
            return self.freelance_gross
        return sum(invoice.amount for invoice in self.freelance)


class IncomePreviewRequest(RequestModel):
    """Single income submitted for an isolated tax preview."""

    year: int | None = None
    locale: str | None = None
    income: Income


class BudgetSettingsInput(RequestModel):
    """Global budget settings; omitted fields are left unchanged."""

    enk_expenses: float | None = None
    tax_method: Literal["tabelltrekk", "prosenttrekk"] | None = None
    tax_percentage: float | None = None


def format_validation_error(
    error: ValidationError, *, prefix: str = "Invalid calculation payload"
) -> str:
    """Return a concise human-readable description of validation issues."""

    messages: list[str] = []
    for issue in error.errors():
        location = ".".join(str(part) for part in issue.get("loc", ()))
        message = issue.get("msg", "Invalid value")
        if "greater than or equal to 0" in message.lower():
            message = "value cannot be negative"
        if location:
            messages.append(f"{location}: {message}")
        else:
            messages.append(message)

    details = "; ".join(messages) if messages else str(error)
    return f"{prefix}: {details}"
