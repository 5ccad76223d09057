"""Withholding (skattetrekk) estimates.

The official tabelltrekk tables are not implemented yet. Until they are,
:class:`BracketWithholdingEstimator` approximates them with a handful of flat
brackets from the year configuration. Callers depend on the
:class:`WithholdingEstimator` protocol so an exact table lookup can replace it
without touching the calculators.
"""

from __future__ import annotations

from typing import Protocol, Sequence

from kapitalen.backend.app.models import Income, Prosenttrekk, WithholdingResult
from kapitalen.backend.config.year_config import WithholdingBracket, YearConfiguration

from .income import get_full_year_amount
from .utils import resolve_configuration


class WithholdingEstimator(Protocol):
    """Estimate the yearly tabelltrekk withheld from ``gross_income``."""

    def __call__(self, gross_income: float) -> float:
        ...


class BracketWithholdingEstimator:
    """Flat-rate estimate where the highest exceeded threshold wins."""

    def __init__(self, brackets: Sequence[WithholdingBracket]) -> None:
        if not brackets:
            raise ValueError("At least one withholding bracket is required")
        self._brackets = tuple(sorted(brackets, key=lambda bracket: bracket.threshold))

    @classmethod
    def from_configuration(
        cls, config: YearConfiguration | None = None
    ) -> BracketWithholdingEstimator:
        return cls(resolve_configuration(config).withholding.brackets)

    def rate_for(self, gross_income: float) -> float:
        for bracket in reversed(self._brackets):
            if gross_income > bracket.threshold:
                return bracket.rate
        return self._brackets[0].rate

    def __call__(self, gross_income: float) -> float:
        return gross_income * self.rate_for(gross_income)


def calculate_estimated_withholding(
    gross_income: float, config: YearConfiguration | None = None
) -> float:
    """Approximate tabelltrekk for ``gross_income`` (display heuristic only)."""

    return BracketWithholdingEstimator.from_configuration(config)(gross_income)


def calculate_withholding(
    income: Income, config: YearConfiguration | None = None
) -> WithholdingResult:
    """Yearly withholding for one income using its own withholding method."""

    configuration = resolve_configuration(config)
    gross_income = get_full_year_amount(income)

    if isinstance(income.withholding, Prosenttrekk):
        percentage = income.withholding.percentage
        tax_percent = (
            percentage if percentage is not None else configuration.defaults.tax_percentage
        )
        return WithholdingResult(
            gross_income=gross_income,
            withheld=gross_income * tax_percent / 100,
            tax_percent=tax_percent,
        )

    withheld = calculate_estimated_withholding(gross_income, configuration)
    return WithholdingResult(
        gross_income=gross_income,
        withheld=withheld,
        tax_percent=withheld / gross_income * 100 if gross_income > 0 else 0.0,
    )


__all__ = [
    "BracketWithholdingEstimator",
    "WithholdingEstimator",
    "calculate_estimated_withholding",
    "calculate_withholding",
]
