"""Tax components of the Norwegian personal income tax.

Each component has its own base:

* trygdeavgift is levied on gross wages and on net ENK profit;
* trinnskatt is levied on personinntekt (gross wages plus net ENK profit);
* fellesskatt is levied on alminnelig inntekt, the only base reduced by
  minstefradrag and personfradrag.
"""

from __future__ import annotations

import math

from kapitalen.backend.app.models import TrinnskattResult, TrinnskattShare
from kapitalen.backend.config.year_config import YearConfiguration

from .utils import resolve_configuration, round_half_up


def calculate_trinnskatt_with_breakdown(
    income: float, config: YearConfiguration | None = None
) -> TrinnskattResult:
    """Apply the marginal bracket schedule to ``income``.

    Only the slice of income inside each bracket is taxed at that bracket's
    rate. Each bracket's tax is rounded to whole kroner before summing, and
    brackets contributing nothing are left out of the breakdown.
    """

    brackets = resolve_configuration(config).trinnskatt.brackets
    total = 0.0
    breakdown: list[TrinnskattShare] = []

    # Bracket 0 is the untaxed baseline.
    for index in range(1, len(brackets)):
        lower = brackets[index].threshold
        upper = brackets[index + 1].threshold if index + 1 < len(brackets) else math.inf
        if income <= lower:
            continue

        taxable_in_bracket = min(income, upper) - lower
        amount = round_half_up(taxable_in_bracket * brackets[index].rate)
        total += amount
        if amount:
            breakdown.append(
                TrinnskattShare(bracket=index, taxable_amount=taxable_in_bracket, amount=amount)
            )

    return TrinnskattResult(total=total, breakdown=tuple(breakdown))


def calculate_trinnskatt(income: float, config: YearConfiguration | None = None) -> float:
    return calculate_trinnskatt_with_breakdown(income, config).total


def calculate_trygdeavgift_lonn(gross_lonn: float, config: YearConfiguration | None = None) -> float:
    """Social security contribution on gross wages."""

    return gross_lonn * resolve_configuration(config).trygdeavgift.employment_rate


def calculate_trygdeavgift_enk(net_enk: float, config: YearConfiguration | None = None) -> float:
    """Social security contribution on net self-employment profit."""

    return net_enk * resolve_configuration(config).trygdeavgift.self_employment_rate


def calculate_minstefradrag(gross_lonn: float, config: YearConfiguration | None = None) -> float:
    """Standard employment deduction, capped at the yearly maximum.

    Only reduces the fellesskatt base; never trinnskatt or trygdeavgift.
    """

    deductions = resolve_configuration(config).deductions
    return min(gross_lonn * deductions.minstefradrag_rate, deductions.minstefradrag_max)


def calculate_alminnelig_inntekt(
    total_personinntekt: float,
    minstefradrag: float,
    config: YearConfiguration | None = None,
) -> float:
    personfradrag = resolve_configuration(config).deductions.personfradrag
    return max(0.0, total_personinntekt - minstefradrag - personfradrag)


def calculate_fellesskatt(alminnelig_inntekt: float, config: YearConfiguration | None = None) -> float:
    return alminnelig_inntekt * resolve_configuration(config).fellesskatt.rate


__all__ = [
    "calculate_alminnelig_inntekt",
    "calculate_fellesskatt",
    "calculate_minstefradrag",
    "calculate_trinnskatt",
    "calculate_trinnskatt_with_breakdown",
    "calculate_trygdeavgift_enk",
    "calculate_trygdeavgift_lonn",
]
