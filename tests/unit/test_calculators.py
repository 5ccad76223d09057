"""Unit tests for the tax calculators."""

from __future__ import annotations

import pytest

from kapitalen.backend.app.models import Income, IncomeAdjustment
from kapitalen.backend.app.services.calculators import (
    BracketWithholdingEstimator,
    CombinedTaxInput,
    calculate_alminnelig_inntekt,
    calculate_combined_tax,
    calculate_estimated_withholding,
    calculate_feriepenger,
    calculate_fellesskatt,
    calculate_minstefradrag,
    calculate_tax,
    calculate_trinnskatt,
    calculate_trinnskatt_with_breakdown,
    calculate_trygdeavgift_enk,
    calculate_trygdeavgift_lonn,
    calculate_withholding,
    get_adjustments_for_feriepenger,
    get_feriepenger_rate,
    get_full_year_amount,
    get_monthly_income,
    get_months_worked,
    get_prorated_yearly_amount,
    get_total_adjustments,
    round_half_up,
)


def _income(**overrides) -> Income:
    form = {"name": "Jobb", "yearly_amount": 600_000, "employee_percentage": 100}
    form.update(overrides)
    return Income.from_form(**form)


def _adjustment(type_: str, amount: float, **extra) -> IncomeAdjustment:
    return IncomeAdjustment.model_validate({"type": type_, "amount": amount, "month": 6, **extra})


# Months worked and proration -------------------------------------------------


def test_full_year_income_counts_twelve_months(salary: Income) -> None:
    assert get_months_worked(salary) == 12


def test_custom_period_counts_touched_months() -> None:
    income = _income(period_type="custom", start_date="2026-03-01", end_date="2026-08-31")

    assert get_months_worked(income) == 6
    assert get_monthly_income(income) == pytest.approx(600_000 * 6 / 12 / 12)


def test_custom_period_covering_the_year_counts_twelve_months() -> None:
    income = _income(period_type="custom", start_date="2026-01-01", end_date="2026-12-31")

    assert get_months_worked(income) == 12


def test_partial_months_count_as_whole_months() -> None:
    income = _income(period_type="custom", start_date="2026-03-31", end_date="2026-04-01")

    assert get_months_worked(income) == 2


def test_months_worked_is_clamped() -> None:
    long_period = _income(period_type="custom", start_date="2025-01-01", end_date="2026-12-31")
    same_day = _income(period_type="custom", start_date="2026-05-10", end_date="2026-05-10")

    assert get_months_worked(long_period) == 12
    assert get_months_worked(same_day) == 1


def test_custom_period_without_dates_falls_back_to_full_year() -> None:
    income = _income(period_type="custom", start_date=None, end_date=None)

    assert income.period_type == "fullYear"
    assert get_months_worked(income) == 12


def test_position_percentage_scales_amounts() -> None:
    income = _income(employee_percentage=50)

    assert get_full_year_amount(income) == pytest.approx(300_000)
    assert get_prorated_yearly_amount(income) == pytest.approx(300_000)
    assert get_monthly_income(income) == pytest.approx(25_000)


# Adjustments and holiday pay -------------------------------------------------


def test_adjustment_feriepenger_flag_defaults_by_type() -> None:
    assert _adjustment("bonus", 1).affects_feriepenger is True
    assert _adjustment("overtid", 1).affects_feriepenger is True
    assert _adjustment("annet", 1).affects_feriepenger is False
    assert _adjustment("annet", 1, affectsFeriepenger=True).affects_feriepenger is True


def test_adjustment_totals_respect_feriepenger_flag(salary: Income) -> None:
    income = salary.model_copy(
        update={"adjustments": (_adjustment("bonus", 50_000), _adjustment("annet", 10_000))}
    )

    assert get_total_adjustments(income) == pytest.approx(60_000)
    assert get_adjustments_for_feriepenger(income) == pytest.approx(50_000)
    assert calculate_feriepenger(income) == pytest.approx((600_000 + 50_000) * 0.12)


@pytest.mark.parametrize(
    ("ferie_uker", "is_over_60", "expected"),
    [("4+1", False, 0.102), ("4+1", True, 0.125), ("5", False, 0.12), ("5", True, 0.143)],
)
def test_feriepenger_rates(ferie_uker: str, is_over_60: bool, expected: float) -> None:
    assert get_feriepenger_rate(ferie_uker, is_over_60) == pytest.approx(expected)


def test_feriepenger_uses_prorated_base() -> None:
    income = _income(
        period_type="custom",
        start_date="2026-03-01",
        end_date="2026-08-31",
        ferie_uker="4+1",
    )

    assert calculate_feriepenger(income) == pytest.approx(300_000 * 0.102)


# Tax components --------------------------------------------------------------


def test_round_half_up_rounds_halves_upwards() -> None:
    assert round_half_up(0.5) == 1
    assert round_half_up(2.5) == 3
    assert round_half_up(1567.4) == 1567


def test_trinnskatt_is_zero_below_first_threshold() -> None:
    assert calculate_trinnskatt(0) == 0
    assert calculate_trinnskatt(226_100) == 0


def test_trinnskatt_rounds_each_bracket() -> None:
    result = calculate_trinnskatt_with_breakdown(600_000)

    assert result.total == 12_835
    assert [(share.bracket, share.amount) for share in result.breakdown] == [
        (1, 1_567),
        (2, 11_268),
    ]
    assert result.breakdown[0].taxable_amount == pytest.approx(92_200)
    assert result.breakdown[1].taxable_amount == pytest.approx(281_700)


def test_trinnskatt_reaches_top_bracket() -> None:
    result = calculate_trinnskatt_with_breakdown(2_000_000)

    assert [share.bracket for share in result.breakdown] == [1, 2, 3, 4, 5]
    assert result.breakdown[-1].taxable_amount == pytest.approx(2_000_000 - 1_467_200)


def test_trinnskatt_is_monotonic() -> None:
    incomes = range(0, 2_000_001, 25_000)
    totals = [calculate_trinnskatt(income) for income in incomes]

    assert totals == sorted(totals)


def test_trygdeavgift_rates() -> None:
    assert calculate_trygdeavgift_lonn(600_000) == pytest.approx(45_600)
    assert calculate_trygdeavgift_enk(150_000) == pytest.approx(16_200)


def test_minstefradrag_is_capped() -> None:
    assert calculate_minstefradrag(100_000) == pytest.approx(46_000)
    assert calculate_minstefradrag(600_000) == pytest.approx(95_700)
    assert calculate_minstefradrag(50_000_000) == pytest.approx(95_700)


def test_alminnelig_inntekt_is_never_negative() -> None:
    assert calculate_alminnelig_inntekt(100_000, 46_000) == 0
    assert calculate_alminnelig_inntekt(600_000, 95_700) == pytest.approx(389_760)


def test_fellesskatt_rate() -> None:
    assert calculate_fellesskatt(389_760) == pytest.approx(85_747.2)


# Withholding -----------------------------------------------------------------


@pytest.mark.parametrize(
    ("gross", "rate"),
    [
        (0, 0.25),
        (200_000, 0.25),
        (200_001, 0.30),
        (400_001, 0.35),
        (600_000, 0.35),
        (600_001, 0.40),
        (1_000_000, 0.45),
    ],
)
def test_estimated_withholding_brackets(gross: float, rate: float) -> None:
    assert calculate_estimated_withholding(gross) == pytest.approx(gross * rate)


def test_estimator_can_be_built_from_custom_brackets(config) -> None:
    estimator = BracketWithholdingEstimator(config.withholding.brackets[:2])

    assert estimator.rate_for(1_000_000) == pytest.approx(0.30)


def test_withholding_for_prosenttrekk_income() -> None:
    income = _income(tax_method="prosenttrekk", custom_tax_percentage=40)

    result = calculate_withholding(income)

    assert result.withheld == pytest.approx(240_000)
    assert result.tax_percent == 40


def test_withholding_for_zero_income_has_zero_rate() -> None:
    result = calculate_withholding(_income(yearly_amount=0))

    assert result.withheld == 0
    assert result.tax_percent == 0


# Single-income preview -------------------------------------------------------


def test_calculate_tax_prosenttrekk_reports_flat_percentage() -> None:
    income = _income(yearly_amount=500_000, tax_method="prosenttrekk", custom_tax_percentage=40)

    result = calculate_tax(income)

    assert result.total_tax == pytest.approx(200_000)
    assert result.fellesskatt == pytest.approx(200_000)
    assert result.trygdeavgift == 0
    assert result.trinnskatt == 0
    assert result.net_income == pytest.approx(300_000)
    assert result.effective_rate == 40


def test_calculate_tax_prosenttrekk_defaults_to_configured_percentage() -> None:
    income = _income(tax_method="prosenttrekk")

    assert income.custom_tax_percentage == 35
    assert calculate_tax(income).total_tax == pytest.approx(210_000)


def test_calculate_tax_tabelltrekk_uses_estimate() -> None:
    result = calculate_tax(_income(yearly_amount=500_000))

    assert result.total_tax == pytest.approx(175_000)
    assert result.effective_rate == pytest.approx(35)


def test_calculate_tax_ignores_employment_period() -> None:
    income = _income(period_type="custom", start_date="2026-01-01", end_date="2026-02-28")

    assert calculate_tax(income).gross_income == pytest.approx(600_000)


def test_calculate_tax_zero_income() -> None:
    result = calculate_tax(_income(yearly_amount=0))

    assert result.total_tax == 0
    assert result.effective_rate == 0


# Combined calculation --------------------------------------------------------


def test_combined_tax_single_salary(salary: Income) -> None:
    result = calculate_combined_tax(CombinedTaxInput(incomes=(salary,)))

    assert result.lonn_gross == pytest.approx(600_000)
    assert result.trygdeavgift_lonn == pytest.approx(45_600)
    assert result.trygdeavgift_enk == 0
    assert result.trinnskatt == 12_835
    assert result.minstefradrag == pytest.approx(95_700)
    assert result.personfradrag == pytest.approx(114_540)
    assert result.alminnelig_inntekt == pytest.approx(389_760)
    assert result.fellesskatt == pytest.approx(85_747.2)
    assert result.total_tax == pytest.approx(144_182.2)
    assert result.skattetrekk == pytest.approx(210_000)
    assert result.difference == pytest.approx(65_817.8)
    assert result.is_refund
    assert result.net_income == pytest.approx(455_817.8)
    assert result.effective_rate == pytest.approx(144_182.2 / 600_000 * 100)
    assert result.total_feriepenger == pytest.approx(72_000)


def test_combined_tax_with_enk(salary: Income) -> None:
    result = calculate_combined_tax(
        CombinedTaxInput(incomes=(salary,), freelance_gross=200_000, enk_expenses=50_000)
    )

    assert result.enk_net == pytest.approx(150_000)
    assert result.trygdeavgift_enk == pytest.approx(16_200)
    assert result.total_personinntekt == pytest.approx(750_000)
    assert result.trinnskatt == 21_255
    assert result.alminnelig_inntekt == pytest.approx(539_760)
    assert result.fellesskatt == pytest.approx(118_747.2)
    assert result.total_tax == pytest.approx(201_802.2)
    assert result.net_income == pytest.approx(548_197.8)
    assert result.effective_rate == pytest.approx(201_802.2 / 750_000 * 100)
    assert result.skatt_fra_lonn == pytest.approx(45_600)
    assert result.skatt_fra_oppdrag == pytest.approx(16_200)
    assert result.skatt_fra_kombinert == pytest.approx(21_255 + 118_747.2)


def test_minstefradrag_only_reduces_fellesskatt_base(salary: Income) -> None:
    result = calculate_combined_tax(CombinedTaxInput(incomes=(salary,), freelance_gross=100_000))

    assert result.total_personinntekt == pytest.approx(700_000)
    assert result.trinnskatt == calculate_trinnskatt(700_000)
    assert result.minstefradrag == pytest.approx(95_700)


def test_enk_loss_is_floored_at_zero(salary: Income) -> None:
    result = calculate_combined_tax(
        CombinedTaxInput(incomes=(salary,), freelance_gross=10_000, enk_expenses=40_000)
    )

    assert result.enk_net == 0
    assert result.trygdeavgift_enk == 0
    assert result.net_income == pytest.approx(600_000 + 10_000 - 40_000 - result.total_tax)


def test_combined_tax_empty_input() -> None:
    result = calculate_combined_tax(CombinedTaxInput())

    assert result.total_tax == 0
    assert result.net_income == 0
    assert result.effective_rate == 0
    assert result.trinnskatt_breakdown == ()


def test_combined_lonn_gross_round_trips_through_trygdeavgift(salary: Income) -> None:
    income = salary.model_copy(update={"adjustments": (_adjustment("bonus", 12_345),)})
    result = calculate_combined_tax(CombinedTaxInput(incomes=(income,)))

    assert result.lonn_gross == pytest.approx(612_345)
    assert calculate_trygdeavgift_lonn(result.lonn_gross) == pytest.approx(result.trygdeavgift_lonn)


def test_global_prosenttrekk_overrides_income_method(salary: Income) -> None:
    result = calculate_combined_tax(
        CombinedTaxInput(
            incomes=(salary,),
            global_tax_method="prosenttrekk",
            global_tax_percentage=40,
        )
    )

    assert result.skattetrekk == pytest.approx(240_000)


def test_reported_trekkprosent_takes_precedence_over_estimate() -> None:
    income = _income(trekkprosent=30)

    result = calculate_combined_tax(CombinedTaxInput(incomes=(income,)))

    assert result.skattetrekk == pytest.approx(180_000)


def test_withholding_is_based_on_prorated_salary() -> None:
    income = _income(period_type="custom", start_date="2026-03-01", end_date="2026-08-31")

    result = calculate_combined_tax(CombinedTaxInput(incomes=(income,)))

    assert result.skattetrekk == pytest.approx(300_000 * 0.30)


def test_custom_estimator_is_used(salary: Income) -> None:
    result = calculate_combined_tax(
        CombinedTaxInput(incomes=(salary,)), estimator=lambda gross: gross * 0.5
    )

    assert result.skattetrekk == pytest.approx(300_000)


def test_breakdown_serialises_to_plain_dict(salary: Income) -> None:
    payload = calculate_combined_tax(CombinedTaxInput(incomes=(salary,))).as_dict()

    assert payload["trinnskatt_breakdown"][0] == {
        "bracket": 1,
        "taxable_amount": pytest.approx(92_200),
        "amount": 1_567,
    }
