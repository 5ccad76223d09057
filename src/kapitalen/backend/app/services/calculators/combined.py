"""Single-income preview and the authoritative combined tax calculation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from kapitalen.backend.app.models import (
    CombinedTaxBreakdown,
    Income,
    Prosenttrekk,
    TaxBreakdown,
    Tabelltrekk,
)
from kapitalen.backend.config.year_config import YearConfiguration

from .income import (
    calculate_feriepenger,
    get_full_year_amount,
    get_prorated_yearly_amount,
    get_total_adjustments,
)
from .taxes import (
    calculate_alminnelig_inntekt,
    calculate_fellesskatt,
    calculate_minstefradrag,
    calculate_trinnskatt_with_breakdown,
    calculate_trygdeavgift_enk,
    calculate_trygdeavgift_lonn,
)
from .utils import resolve_configuration
from .withholding import BracketWithholdingEstimator, WithholdingEstimator


@dataclass(frozen=True)
class CombinedTaxInput:
    """Snapshot of everything the combined calculation reads."""

    incomes: Sequence[Income] = ()
    freelance_gross: float = 0.0
    enk_expenses: float = 0.0
    global_tax_method: str = "tabelltrekk"
    global_tax_percentage: float = 35.0


def calculate_tax(income: Income, config: YearConfiguration | None = None) -> TaxBreakdown:
    """Preview the apparent tax of one income in isolation.

    This is a simplified display path: the whole amount is reported as
    fellesskatt with trygdeavgift and trinnskatt left at zero. Use
    :func:`calculate_combined_tax` for the actual liability.
    """

    configuration = resolve_configuration(config)
    gross_income = get_full_year_amount(income)

    if isinstance(income.withholding, Prosenttrekk):
        percentage = income.withholding.percentage
        tax_percent = (
            percentage if percentage is not None else configuration.defaults.tax_percentage
        )
        total_tax = gross_income * tax_percent / 100
        effective_rate = tax_percent
    else:
        estimator = BracketWithholdingEstimator.from_configuration(configuration)
        total_tax = estimator(gross_income)
        effective_rate = total_tax / gross_income * 100 if gross_income > 0 else 0.0

    return TaxBreakdown(
        gross_income=gross_income,
        trygdeavgift=0.0,
        trinnskatt=0.0,
        fellesskatt=total_tax,
        total_tax=total_tax,
        net_income=gross_income - total_tax,
        effective_rate=effective_rate,
    )


def _income_skattetrekk(
    income: Income,
    tax_input: CombinedTaxInput,
    estimator: WithholdingEstimator,
) -> float:
    # The global method overrides each income's own withholding method.
    prorated = get_prorated_yearly_amount(income)
    if tax_input.global_tax_method == "prosenttrekk":
        return prorated * tax_input.global_tax_percentage / 100

    withholding = income.withholding
    if (
        isinstance(withholding, Tabelltrekk)
        and withholding.trekkprosent is not None
        and withholding.trekkprosent > 0
    ):
        return prorated * withholding.trekkprosent / 100

    return estimator(prorated)


def calculate_combined_tax(
    tax_input: CombinedTaxInput,
    config: YearConfiguration | None = None,
    estimator: WithholdingEstimator | None = None,
) -> CombinedTaxBreakdown:
    """Compute the tax liability across every income source.

    The steps depend on one another and must run in this order:

    1. gross wages (prorated base salary plus adjustments);
    2. net ENK profit, floored at zero;
    3. trygdeavgift on gross wages and on net ENK profit;
    4. trinnskatt on personinntekt (gross wages plus net ENK profit);
    5. minstefradrag from gross wages, then alminnelig inntekt and fellesskatt.

    Withholding is estimated per income and compared to the liability;
    a positive ``difference`` means a refund.
    """

    configuration = resolve_configuration(config)
    estimate = estimator or BracketWithholdingEstimator.from_configuration(configuration)
    incomes = tuple(tax_input.incomes)

    lonn_gross = sum(
        get_prorated_yearly_amount(income) + get_total_adjustments(income)
        for income in incomes
    )

    enk_gross = tax_input.freelance_gross
    enk_expenses = tax_input.enk_expenses
    enk_net = max(0.0, enk_gross - enk_expenses)

    trygdeavgift_lonn = calculate_trygdeavgift_lonn(lonn_gross, configuration)
    trygdeavgift_enk = calculate_trygdeavgift_enk(enk_net, configuration)

    total_personinntekt = lonn_gross + enk_net
    trinnskatt = calculate_trinnskatt_with_breakdown(total_personinntekt, configuration)

    minstefradrag = calculate_minstefradrag(lonn_gross, configuration)
    alminnelig_inntekt = calculate_alminnelig_inntekt(
        total_personinntekt, minstefradrag, configuration
    )
    fellesskatt = calculate_fellesskatt(alminnelig_inntekt, configuration)

    total_tax = trygdeavgift_lonn + trygdeavgift_enk + trinnskatt.total + fellesskatt

    skattetrekk = sum(_income_skattetrekk(income, tax_input, estimate) for income in incomes)

    total_gross = lonn_gross + enk_gross - enk_expenses
    total_feriepenger = sum(calculate_feriepenger(income, configuration) for income in incomes)

    return CombinedTaxBreakdown(
        lonn_gross=lonn_gross,
        minstefradrag=minstefradrag,
        enk_gross=enk_gross,
        enk_expenses=enk_expenses,
        enk_net=enk_net,
        total_personinntekt=total_personinntekt,
        trygdeavgift_lonn=trygdeavgift_lonn,
        trygdeavgift_enk=trygdeavgift_enk,
        trinnskatt=trinnskatt.total,
        trinnskatt_breakdown=trinnskatt.breakdown,
        personfradrag=configuration.deductions.personfradrag,
        alminnelig_inntekt=alminnelig_inntekt,
        fellesskatt=fellesskatt,
        total_tax=total_tax,
        skatt_fra_lonn=trygdeavgift_lonn,
        skatt_fra_oppdrag=trygdeavgift_enk,
        skatt_fra_kombinert=trinnskatt.total + fellesskatt,
        skattetrekk=skattetrekk,
        difference=skattetrekk - total_tax,
        total_feriepenger=total_feriepenger,
        net_income=total_gross - total_tax,
        effective_rate=total_tax / total_gross * 100 if total_gross > 0 else 0.0,
    )


__all__ = ["CombinedTaxInput", "calculate_combined_tax", "calculate_tax"]
