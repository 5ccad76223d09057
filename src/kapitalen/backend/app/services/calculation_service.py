"""Validate API payloads and run the tax calculators on them.

The service turns JSON payloads into typed requests, binds them to the
requested tax year and shapes the calculator results into response payloads
with localised labels. Timing of each step can be captured by setting
``KAPITALEN_PROFILE_CALCULATIONS``.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping, Sequence
from contextlib import contextmanager
from dataclasses import fields
from time import perf_counter
from typing import Any

from pydantic import BaseModel, ValidationError

from kapitalen.backend.app.localization import Translator, get_translator
from kapitalen.backend.app.models import (
    CombinedTaxBreakdown,
    CombinedTaxRequest,
    Income,
    IncomePreviewRequest,
    format_validation_error,
)
from kapitalen.backend.config.year_config import (
    DEFAULT_TAX_YEAR,
    YearConfiguration,
    load_year_configuration,
)

from .calculators import (
    CombinedTaxInput,
    calculate_combined_tax,
    calculate_feriepenger,
    calculate_tax,
    calculate_withholding,
    get_monthly_income,
    get_months_worked,
    round_currency,
    round_rate,
)
from .validation import validate_adjustment, validate_income

_LOGGER = logging.getLogger(__name__)

_BREAKDOWN_FIELDS: tuple[str, ...] = tuple(
    field.name
    for field in fields(CombinedTaxBreakdown)
    if field.name not in {"trinnskatt_breakdown", "effective_rate", "total_feriepenger"}
)


def _profiling_enabled() -> bool:
    flag = os.getenv("KAPITALEN_PROFILE_CALCULATIONS", "")
    return flag.strip().lower() in {"1", "true", "yes", "on"}


@contextmanager
def _profile_section(name: str, store: dict[str, float] | None):
    """Capture the duration of a named section when profiling is enabled."""

    if store is None:
        yield
        return

    start = perf_counter()
    try:
        yield
    finally:
        store[name] = perf_counter() - start


def _parse(model: type[BaseModel], payload: Mapping[str, Any] | BaseModel) -> Any:
    if isinstance(payload, model):
        return payload
    if not isinstance(payload, Mapping):
        raise ValueError("Payload must be a mapping")
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise ValueError(format_validation_error(exc)) from exc


def _check_incomes(incomes: Sequence[Income]) -> None:
    """Reject incomes the budget itself would refuse to store."""

    for position, income in enumerate(incomes, start=1):
        result = validate_income(income)
        if not result:
            raise ValueError(f"Income {position}: {result.error}")
        for adjustment in income.adjustments:
            result = validate_adjustment(adjustment)
            if not result:
                raise ValueError(f"Income {position}: {result.error}")


def _resolve_year(year: int | None) -> YearConfiguration:
    resolved = year if year is not None else DEFAULT_TAX_YEAR
    try:
        return load_year_configuration(resolved)
    except FileNotFoundError as exc:
        raise ValueError(f"Unsupported tax year: {resolved}") from exc


def _warnings(
    config: YearConfiguration, translator: Translator, scope: str
) -> list[dict[str, Any]]:
    return [
        {
            "id": warning.id,
            "severity": warning.severity,
            "message": translator(warning.message_key),
        }
        for warning in config.warnings
        if scope in warning.applies_to
    ]


def _uses_withholding_estimate(request: CombinedTaxRequest) -> bool:
    if request.tax_method == "prosenttrekk":
        return False
    return any(
        not income.trekkprosent or income.trekkprosent <= 0 for income in request.incomes
    )


def build_breakdown_payload(
    result: CombinedTaxBreakdown, translator: Translator
) -> dict[str, Any]:
    """Serialise a combined breakdown with rounded amounts and labels."""

    breakdown: dict[str, Any] = {
        name: round_currency(getattr(result, name)) for name in _BREAKDOWN_FIELDS
    }
    breakdown["labels"] = {name: translator(f"breakdown.{name}") for name in _BREAKDOWN_FIELDS}
    breakdown["trinnskatt_breakdown"] = [
        {
            "bracket": share.bracket,
            "label": translator("breakdown.trinnskatt_bracket", bracket=share.bracket),
            "taxable_amount": round_currency(share.taxable_amount),
            "amount": round_currency(share.amount),
        }
        for share in result.trinnskatt_breakdown
    ]
    return breakdown


def calculate_tax_summary(payload: Mapping[str, Any] | CombinedTaxRequest) -> dict[str, Any]:
    """Compute the combined tax for a budget snapshot payload."""

    timings: dict[str, float] | None = {} if _profiling_enabled() else None
    overall_start = perf_counter() if timings is not None else None

    with _profile_section("parse_request", timings):
        request_model: CombinedTaxRequest = _parse(CombinedTaxRequest, payload)
        _check_incomes(request_model.incomes)
        config = _resolve_year(request_model.year)

    tax_percentage = (
        request_model.tax_percentage
        if request_model.tax_percentage is not None
        else config.defaults.tax_percentage
    )
    tax_input = CombinedTaxInput(
        incomes=tuple(request_model.incomes),
        freelance_gross=request_model.total_freelance_gross,
        enk_expenses=request_model.enk_expenses,
        global_tax_method=request_model.tax_method,
        global_tax_percentage=tax_percentage,
    )

    with _profile_section("combined_tax", timings):
        result = calculate_combined_tax(tax_input, config)

    translator = get_translator(request_model.locale)

    with _profile_section("serialise", timings):
        gross_income = result.lonn_gross + result.enk_gross - result.enk_expenses
        balance_label = "summary.refund_due" if result.is_refund else "summary.balance_due"
        summary = {
            "gross_income": round_currency(gross_income),
            "total_tax": round_currency(result.total_tax),
            "net_income": round_currency(result.net_income),
            "net_monthly_income": round_currency(result.net_income / 12),
            "effective_rate": round_rate(result.effective_rate),
            "skattetrekk": round_currency(result.skattetrekk),
            "difference": round_currency(result.difference),
            "is_refund": result.is_refund,
            "total_feriepenger": round_currency(result.total_feriepenger),
            "labels": {
                "gross_income": translator("summary.gross_income"),
                "total_tax": translator("summary.total_tax"),
                "net_income": translator("summary.net_income"),
                "net_monthly_income": translator("summary.net_monthly_income"),
                "effective_rate": translator("summary.effective_rate"),
                "skattetrekk": translator("summary.skattetrekk"),
                "difference": translator(balance_label),
                "total_feriepenger": translator("summary.total_feriepenger"),
            },
        }
        response: dict[str, Any] = {
            "summary": summary,
            "breakdown": build_breakdown_payload(result, translator),
            "meta": {"year": config.year, "locale": translator.locale},
        }
        warnings = (
            _warnings(config, translator, "withholding")
            if _uses_withholding_estimate(request_model)
            else []
        )
        if warnings:
            response["warnings"] = warnings

    if timings is not None and overall_start is not None:
        timings["total"] = perf_counter() - overall_start
        _LOGGER.debug(
            "calculate_tax_summary timings (ms): %s",
            {name: round(duration * 1000, 3) for name, duration in timings.items()},
        )

    return response


def preview_income(payload: Mapping[str, Any] | IncomePreviewRequest) -> dict[str, Any]:
    """Preview one income in isolation.

    The tax figures come from the simplified single-income path and are not
    the household liability; use :func:`calculate_tax_summary` for that.
    """

    request_model: IncomePreviewRequest = _parse(IncomePreviewRequest, payload)
    _check_incomes([request_model.income])
    config = _resolve_year(request_model.year)
    translator = get_translator(request_model.locale)
    income = request_model.income

    tax = calculate_tax(income, config)
    withholding = calculate_withholding(income, config)

    response: dict[str, Any] = {
        "income": income.to_record(),
        "tax": {
            "gross_income": round_currency(tax.gross_income),
            "total_tax": round_currency(tax.total_tax),
            "net_income": round_currency(tax.net_income),
            "effective_rate": round_rate(tax.effective_rate),
        },
        "withholding": {
            "withheld": round_currency(withholding.withheld),
            "tax_percent": round_rate(withholding.tax_percent),
        },
        "months_worked": get_months_worked(income),
        "monthly_income": round_currency(get_monthly_income(income)),
        "feriepenger": round_currency(calculate_feriepenger(income, config)),
        "labels": {
            "gross_income": translator("preview.gross_income"),
            "total_tax": translator("preview.total_tax"),
            "net_income": translator("preview.net_income"),
            "effective_rate": translator("preview.effective_rate"),
            "withholding": translator("preview.withholding"),
            "months_worked": translator("preview.months_worked"),
            "monthly_income": translator("preview.monthly_income"),
            "feriepenger": translator("preview.feriepenger"),
        },
        "meta": {"year": config.year, "locale": translator.locale},
    }

    if income.tax_method == "tabelltrekk":
        warnings = _warnings(config, translator, "withholding")
        if warnings:
            response["warnings"] = warnings

    return response


__all__ = ["build_breakdown_payload", "calculate_tax_summary", "preview_income"]
