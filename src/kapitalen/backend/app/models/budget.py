"""Budget entities: salaried incomes, freelance invoices and expenses.

Entities are frozen Pydantic models. Field names are snake_case in Python and
camelCase on the wire, which keeps stored records readable by older clients.
Mutation happens by building a replacement (``model_copy``) in the budget
service, so a calculation always sees a consistent snapshot.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date
from typing import Annotated, Any, Literal, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

TaxMethod = Literal["tabelltrekk", "prosenttrekk"]
PeriodType = Literal["fullYear", "custom"]
FerieUker = Literal["4+1", "5"]
AdjustmentType = Literal["bonus", "overtid", "annet"]
ExpenseCategory = Literal["faste-utgifter", "abonnement", "mat-inne", "mat-ute", "diverse"]
ExpenseFrequency = Literal["monthly", "yearly"]

TAX_METHODS: tuple[str, ...] = ("tabelltrekk", "prosenttrekk")
ADJUSTMENT_TYPES: tuple[str, ...] = ("bonus", "overtid", "annet")
EXPENSE_CATEGORIES: tuple[str, ...] = (
    "faste-utgifter",
    "abonnement",
    "mat-inne",
    "mat-ute",
    "diverse",
)
EXPENSE_FREQUENCIES: tuple[str, ...] = ("monthly", "yearly")
MONTHS_PER_YEAR = 12

_FLAT_FORM_KEYS = frozenset(
    {
        "taxMethod",
        "tax_method",
        "customTaxPercentage",
        "custom_tax_percentage",
        "trekkprosent",
        "periodType",
        "period_type",
        "startDate",
        "start_date",
        "endDate",
        "end_date",
    }
)


def generate_id() -> str:
    """Return a new opaque identifier for budget entities."""

    return str(uuid4())


def _pick(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


class BudgetModel(BaseModel):
    """Base model for persisted budget entities."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    def to_record(self) -> dict[str, Any]:
        """Serialise into the camelCase JSON shape used for storage."""

        return self.model_dump(mode="json", by_alias=True)


class FullYearPeriod(BudgetModel):
    """Employment covering the whole tax year."""

    kind: Literal["fullYear"] = "fullYear"


class CustomPeriod(BudgetModel):
    """Employment limited to an inclusive calendar date range."""

    kind: Literal["custom"] = "custom"
    start_date: date
    end_date: date


EmploymentPeriod = Annotated[Union[FullYearPeriod, CustomPeriod], Field(discriminator="kind")]


class Tabelltrekk(BudgetModel):
    """Withholding by the official tables, optionally with the reported rate."""

    method: Literal["tabelltrekk"] = "tabelltrekk"
    trekkprosent: float | None = None


class Prosenttrekk(BudgetModel):
    """Withholding by a flat percentage chosen by the taxpayer."""

    method: Literal["prosenttrekk"] = "prosenttrekk"
    percentage: float | None = None


Withholding = Annotated[Union[Tabelltrekk, Prosenttrekk], Field(discriminator="method")]


class IncomeAdjustment(BudgetModel):
    """One-off addition to an income such as a bonus or overtime."""

    id: str = Field(default_factory=generate_id)
    type: AdjustmentType
    amount: float
    month: int
    description: str | None = None
    affects_feriepenger: bool

    @model_validator(mode="before")
    @classmethod
    def _default_affects_feriepenger(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        if _pick(data, "affects_feriepenger", "affectsFeriepenger") is not None:
            return data
        prepared = dict(data)
        prepared.pop("affectsFeriepenger", None)
        prepared["affects_feriepenger"] = prepared.get("type") != "annet"
        return prepared


class Income(BudgetModel):
    """Salaried employment record."""

    id: str = Field(default_factory=generate_id)
    name: str
    yearly_amount: float
    employee_percentage: float = 100.0
    withholding: Withholding = Field(default_factory=Tabelltrekk)
    period: EmploymentPeriod = Field(default_factory=FullYearPeriod)
    ferie_uker: FerieUker = "5"
    is_over_60: bool = Field(default=False, alias="isOver60")
    adjustments: tuple[IncomeAdjustment, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def _accept_flat_form(cls, data: Any) -> Any:
        """Fold the flat form shape (``taxMethod``, ``startDate`` ...) into unions."""

        if not isinstance(data, Mapping) or not _FLAT_FORM_KEYS.intersection(data):
            return data

        prepared = {key: value for key, value in data.items() if key not in _FLAT_FORM_KEYS}

        if "withholding" not in prepared:
            method = _pick(data, "tax_method", "taxMethod") or "tabelltrekk"
            if method == "prosenttrekk":
                prepared["withholding"] = {
                    "method": "prosenttrekk",
                    "percentage": _pick(data, "custom_tax_percentage", "customTaxPercentage"),
                }
            else:
                prepared["withholding"] = {
                    "method": method,
                    "trekkprosent": data.get("trekkprosent"),
                }

        if "period" not in prepared:
            period_type = _pick(data, "period_type", "periodType") or "fullYear"
            start = _pick(data, "start_date", "startDate")
            end = _pick(data, "end_date", "endDate")
            if period_type == "custom" and start and end:
                prepared["period"] = {"kind": "custom", "start_date": start, "end_date": end}
            elif period_type == "custom":
                prepared["period"] = {"kind": "fullYear"}
            else:
                prepared["period"] = {"kind": period_type}

        return prepared

    @field_validator("adjustments", mode="before")
    @classmethod
    def _coerce_adjustments(cls, value: Any) -> Any:
        if value is None:
            return ()
        return value

    @property
    def tax_method(self) -> str:
        return self.withholding.method

    @property
    def custom_tax_percentage(self) -> float | None:
        if isinstance(self.withholding, Prosenttrekk):
            return self.withholding.percentage
        return None

    @property
    def trekkprosent(self) -> float | None:
        if isinstance(self.withholding, Tabelltrekk):
            return self.withholding.trekkprosent
        return None

    @property
    def period_type(self) -> str:
        return self.period.kind

    @property
    def start_date(self) -> date | None:
        return self.period.start_date if isinstance(self.period, CustomPeriod) else None

    @property
    def end_date(self) -> date | None:
        return self.period.end_date if isinstance(self.period, CustomPeriod) else None

    @classmethod
    def from_form(
        cls,
        name: str,
        yearly_amount: float,
        employee_percentage: float,
        tax_method: str = "tabelltrekk",
        custom_tax_percentage: float | None = None,
        trekkprosent: float | None = None,
        period_type: str = "fullYear",
        start_date: str | date | None = None,
        end_date: str | date | None = None,
        ferie_uker: str = "5",
        is_over_60: bool = False,
        *,
        id: str | None = None,
        adjustments: tuple[IncomeAdjustment, ...] = (),
        default_tax_percentage: float = 35.0,
    ) -> Income:
        """Build an income from the flat field set captured by entry forms.

        Prosenttrekk without an explicit percentage falls back to
        ``default_tax_percentage``; ``trekkprosent`` is only kept for
        tabelltrekk and the dates only for custom periods.
        """

        withholding: Tabelltrekk | Prosenttrekk
        if tax_method == "prosenttrekk":
            percentage = (
                custom_tax_percentage
                if custom_tax_percentage is not None
                else default_tax_percentage
            )
            withholding = Prosenttrekk(percentage=percentage)
        else:
            withholding = Tabelltrekk(trekkprosent=trekkprosent)

        period: FullYearPeriod | CustomPeriod
        if period_type == "custom" and start_date and end_date:
            period = CustomPeriod.model_validate(
                {"start_date": start_date, "end_date": end_date}
            )
        else:
            period = FullYearPeriod()

        payload: dict[str, Any] = {
            "name": name,
            "yearly_amount": yearly_amount,
            "employee_percentage": employee_percentage,
            "withholding": withholding,
            "period": period,
            "ferie_uker": ferie_uker,
            "is_over_60": is_over_60,
            "adjustments": tuple(adjustments),
        }
        if id is not None:
            payload["id"] = id
        return cls.model_validate(payload)

    def as_form(self) -> dict[str, Any]:
        """Return the flat field set understood by the validators."""

        return {
            "name": self.name,
            "yearly_amount": self.yearly_amount,
            "employee_percentage": self.employee_percentage,
            "tax_method": self.tax_method,
            "custom_tax_percentage": self.custom_tax_percentage,
            "trekkprosent": self.trekkprosent,
            "period_type": self.period_type,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "ferie_uker": self.ferie_uker,
            "is_over_60": self.is_over_60,
        }


class FreelanceIncome(BudgetModel):
    """Invoice issued by the sole proprietorship (ENK), amounts ex. MVA."""

    id: str = Field(default_factory=generate_id)
    client: str
    description: str = ""
    amount: float
    mva: float

    @classmethod
    def create(
        cls,
        client: str,
        description: str,
        amount: float,
        mva_rate: float,
        *,
        id: str | None = None,
    ) -> FreelanceIncome:
        """Build an invoice, caching the MVA for ``amount`` at ``mva_rate``."""

        payload: dict[str, Any] = {
            "client": client,
            "description": description,
            "amount": amount,
            "mva": amount * mva_rate,
        }
        if id is not None:
            payload["id"] = id
        return cls.model_validate(payload)


class Expense(BudgetModel):
    """Recurring expense with one explicit amount per calendar month."""

    id: str = Field(default_factory=generate_id)
    name: str
    category: ExpenseCategory
    monthly_amounts: tuple[float, ...]
    frequency: ExpenseFrequency = "monthly"

    @field_validator("monthly_amounts")
    @classmethod
    def _require_twelve_months(cls, value: tuple[float, ...]) -> tuple[float, ...]:
        if len(value) != MONTHS_PER_YEAR:
            raise ValueError("monthly_amounts must contain exactly 12 entries")
        return value

    @property
    def yearly_amount(self) -> float:
        return sum(self.monthly_amounts)

    @property
    def monthly_amount(self) -> float:
        return self.yearly_amount / MONTHS_PER_YEAR

    @property
    def varies(self) -> bool:
        first = self.monthly_amounts[0]
        return any(amount != first for amount in self.monthly_amounts)


__all__ = [
    "ADJUSTMENT_TYPES",
    "AdjustmentType",
    "BudgetModel",
    "CustomPeriod",
    "EXPENSE_CATEGORIES",
    "EXPENSE_FREQUENCIES",
    "EmploymentPeriod",
    "Expense",
    "ExpenseCategory",
    "ExpenseFrequency",
    "FerieUker",
    "FreelanceIncome",
    "FullYearPeriod",
    "Income",
    "IncomeAdjustment",
    "MONTHS_PER_YEAR",
    "PeriodType",
    "Prosenttrekk",
    "TAX_METHODS",
    "Tabelltrekk",
    "TaxMethod",
    "Withholding",
    "generate_id",
]
