"""Domain-specific calculation helpers."""

from .combined import CombinedTaxInput, calculate_combined_tax, calculate_tax
from .income import (
    calculate_feriepenger,
    get_adjustments_for_feriepenger,
    get_feriepenger_rate,
    get_full_year_amount,
    get_monthly_income,
    get_months_worked,
    get_prorated_yearly_amount,
    get_total_adjustments,
)
from .taxes import (
    calculate_alminnelig_inntekt,
    calculate_fellesskatt,
    calculate_minstefradrag,
    calculate_trinnskatt,
    calculate_trinnskatt_with_breakdown,
    calculate_trygdeavgift_enk,
    calculate_trygdeavgift_lonn,
)
from .utils import round_currency, round_half_up, round_rate
from .withholding import (
    BracketWithholdingEstimator,
    WithholdingEstimator,
    calculate_estimated_withholding,
    calculate_withholding,
)

__all__ = [
    "BracketWithholdingEstimator",
    "CombinedTaxInput",
    "WithholdingEstimator",
    "calculate_alminnelig_inntekt",
    "calculate_combined_tax",
    "calculate_estimated_withholding",
    "calculate_feriepenger",
    "calculate_fellesskatt",
    "calculate_minstefradrag",
    "calculate_tax",
    "calculate_trinnskatt",
    "calculate_trinnskatt_with_breakdown",
    "calculate_trygdeavgift_enk",
    "calculate_trygdeavgift_lonn",
    "calculate_withholding",
    "get_adjustments_for_feriepenger",
    "get_feriepenger_rate",
    "get_full_year_amount",
    "get_monthly_income",
    "get_months_worked",
    "get_prorated_yearly_amount",
    "get_total_adjustments",
    "round_currency",
    "round_half_up",
    "round_rate",
]
