"""Per-income helpers: employment period proration, adjustments and holiday pay."""

from __future__ import annotations

from kapitalen.backend.app.models import MONTHS_PER_YEAR, CustomPeriod, Income
from kapitalen.backend.config.year_config import YearConfiguration

from .utils import resolve_configuration


def get_months_worked(income: Income) -> int:
    """Return the number of calendar months touched by the employment period.

    Any part of a calendar month counts as a whole month. Full-year incomes
    always count twelve months and the result is clamped into ``[1, 12]``.
    """

    period = income.period
    if not isinstance(period, CustomPeriod):
        return MONTHS_PER_YEAR

    start, end = period.start_date, period.end_date
    months = (end.year - start.year) * MONTHS_PER_YEAR + (end.month - start.month) + 1
    return min(MONTHS_PER_YEAR, max(1, months))


def get_full_year_amount(income: Income) -> float:
    """Full-time-equivalent pay scaled by the position percentage."""

    return income.yearly_amount * income.employee_percentage / 100


def get_prorated_yearly_amount(income: Income) -> float:
    """Base salary earned during the months worked; adjustments excluded."""

    return get_full_year_amount(income) * get_months_worked(income) / MONTHS_PER_YEAR


def get_monthly_income(income: Income) -> float:
    return get_prorated_yearly_amount(income) / MONTHS_PER_YEAR


def get_total_adjustments(income: Income) -> float:
    return sum(adjustment.amount for adjustment in income.adjustments)


def get_adjustments_for_feriepenger(income: Income) -> float:
    """Sum of the adjustments that accrue holiday pay."""

    return sum(
        adjustment.amount
        for adjustment in income.adjustments
        if adjustment.affects_feriepenger
    )


def get_feriepenger_rate(
    ferie_uker: str, is_over_60: bool, config: YearConfiguration | None = None
) -> float:
    """Look up the holiday pay rate for a vacation entitlement and age group."""

    return resolve_configuration(config).feriepenger.rate_for(ferie_uker, is_over_60)


def calculate_feriepenger(income: Income, config: YearConfiguration | None = None) -> float:
    """Holiday pay earned on the prorated base and eligible adjustments."""

    base = get_prorated_yearly_amount(income) + get_adjustments_for_feriepenger(income)
    return base * get_feriepenger_rate(income.ferie_uker, income.is_over_60, config)


__all__ = [
    "calculate_feriepenger",
    "get_adjustments_for_feriepenger",
    "get_feriepenger_rate",
    "get_full_year_amount",
    "get_monthly_income",
    "get_months_worked",
    "get_prorated_yearly_amount",
    "get_total_adjustments",
]
