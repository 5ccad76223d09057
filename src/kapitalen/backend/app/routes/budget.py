"""CRUD endpoints for the persisted budget.

The :class:`~kapitalen.backend.app.services.budget_service.BudgetService`
lives in ``app.extensions`` and is created by the application factory. Domain
errors surface through the application's error handlers: ``ValueError`` as
400 and :class:`NotFoundError` as 404.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Mapping

from flask import Blueprint, current_app, request
from pydantic import ValidationError

from kapitalen.backend.app.localization import get_translator
from kapitalen.backend.app.models import BudgetSettingsInput, format_validation_error
from kapitalen.backend.app.services.budget_service import BudgetService
from kapitalen.backend.app.services.calculation_service import build_breakdown_payload
from kapitalen.backend.app.services.calculators import round_currency, round_rate
from kapitalen.backend.app.services.storage import (
    InMemoryKeyValueStore,
    KeyValueStore,
    SQLiteKeyValueStore,
)
from kapitalen.backend.services import build_json_response, parse_json_object, resolve_locale

blueprint = Blueprint("budget", __name__, url_prefix="/api/v1/budget")

logger = logging.getLogger(__name__)

EXTENSION_KEY = "kapitalen.budget"

_INCOME_FIELDS: dict[str, str] = {
    "name": "name",
    "yearly_amount": "yearlyAmount",
    "employee_percentage": "employeePercentage",
    "tax_method": "taxMethod",
    "custom_tax_percentage": "customTaxPercentage",
    "trekkprosent": "trekkprosent",
    "period_type": "periodType",
    "start_date": "startDate",
    "end_date": "endDate",
    "ferie_uker": "ferieUker",
    "is_over_60": "isOver60",
}

_ADJUSTMENT_FIELDS: dict[str, str] = {
    "adjustment_type": "type",
    "amount": "amount",
    "month": "month",
    "description": "description",
    "affects_feriepenger": "affectsFeriepenger",
}


def build_store() -> KeyValueStore:
    """Select the budget store from ``KAPITALEN_STORAGE_DB``."""

    db_path = os.getenv("KAPITALEN_STORAGE_DB")
    if db_path:
        logger.info("Persisting budget to %s", db_path)
        return SQLiteKeyValueStore(Path(db_path).expanduser())
    return InMemoryKeyValueStore()


def _budget() -> BudgetService:
    return current_app.extensions[EXTENSION_KEY]


def _pick(payload: Mapping[str, Any], snake: str, camel: str, default: Any = None) -> Any:
    if snake in payload:
        return payload[snake]
    return payload.get(camel, default)


def _income_arguments(payload: Mapping[str, Any], service: BudgetService) -> dict[str, Any]:
    arguments = {
        name: _pick(payload, name, alias)
        for name, alias in _INCOME_FIELDS.items()
        if name in payload or alias in payload
    }
    arguments.setdefault("name", None)
    arguments.setdefault("yearly_amount", None)
    arguments.setdefault("employee_percentage", service.config.defaults.employee_percentage)
    return arguments


def _adjustment_arguments(payload: Mapping[str, Any]) -> dict[str, Any]:
    arguments = {
        name: _pick(payload, alias, name)
        for name, alias in _ADJUSTMENT_FIELDS.items()
        if name in payload or alias in payload
    }
    arguments.setdefault("adjustment_type", None)
    arguments.setdefault("amount", None)
    arguments.setdefault("month", None)
    return arguments


def _budget_summary(service: BudgetService) -> dict[str, Any]:
    return {
        "total_gross_income": round_currency(service.total_gross_income()),
        "total_net_income": round_currency(service.total_net_income()),
        "total_expenses": round_currency(service.total_expenses()),
        "monthly_savings": round_currency(service.monthly_savings()),
        "savings_rate": round_rate(service.savings_rate()),
        "monthly_totals": [round_currency(total) for total in service.monthly_totals()],
        "category_totals": {
            category: round_currency(total)
            for category, total in service.category_totals().items()
        },
        "total_freelance_income": round_currency(service.total_freelance_income()),
        "total_freelance_mva": round_currency(service.total_freelance_mva()),
    }


def _settings(service: BudgetService) -> dict[str, Any]:
    return {
        "enk_expenses": service.enk_expenses,
        "tax_method": service.tax_method,
        "tax_percentage": service.tax_percentage,
    }


@blueprint.get("")
def get_budget() -> tuple[Any, int]:
    """Return the budget entities, monthly summary and combined tax."""

    service = _budget()
    translator = get_translator(resolve_locale(request))
    result = service.calculate_combined_tax()
    tax = build_breakdown_payload(result, translator)
    tax["effective_rate"] = round_rate(result.effective_rate)
    tax["total_feriepenger"] = round_currency(result.total_feriepenger)
    tax["net_income"] = round_currency(result.net_income)
    tax["is_refund"] = result.is_refund

    payload = {
        "incomes": [income.to_record() for income in service.incomes],
        "freelance": [invoice.to_record() for invoice in service.freelance_incomes],
        "expenses": [expense.to_record() for expense in service.expenses],
        "settings": _settings(service),
        "summary": _budget_summary(service),
        "tax": tax,
        "meta": {"year": service.config.year, "locale": translator.locale},
    }
    return build_json_response(payload)


@blueprint.delete("")
def clear_budget() -> tuple[Any, int]:
    _budget().clear()
    return "", 204


@blueprint.put("/settings")
def update_settings() -> tuple[Any, int]:
    try:
        settings = BudgetSettingsInput.model_validate(parse_json_object(request))
    except ValidationError as exc:
        raise ValueError(format_validation_error(exc, prefix="Invalid settings")) from exc

    service = _budget()
    if settings.enk_expenses is not None:
        service.set_enk_expenses(settings.enk_expenses)
    if settings.tax_method is not None:
        service.set_tax_method(settings.tax_method)
    if settings.tax_percentage is not None:
        service.set_tax_percentage(settings.tax_percentage)
    return build_json_response(_settings(service))


@blueprint.post("/incomes")
def create_income() -> tuple[Any, int]:
    service = _budget()
    income = service.add_income(**_income_arguments(parse_json_object(request), service))
    return build_json_response(income.to_record(), 201)


@blueprint.put("/incomes/<income_id>")
def update_income(income_id: str) -> tuple[Any, int]:
    service = _budget()
    income = service.update_income(
        income_id, **_income_arguments(parse_json_object(request), service)
    )
    return build_json_response(income.to_record())


@blueprint.delete("/incomes/<income_id>")
def delete_income(income_id: str) -> tuple[Any, int]:
    _budget().remove_income(income_id)
    return "", 204


@blueprint.post("/incomes/<income_id>/adjustments")
def create_adjustment(income_id: str) -> tuple[Any, int]:
    adjustment = _budget().add_adjustment(
        income_id, **_adjustment_arguments(parse_json_object(request))
    )
    return build_json_response(adjustment.to_record(), 201)


@blueprint.put("/incomes/<income_id>/adjustments/<adjustment_id>")
def update_adjustment(income_id: str, adjustment_id: str) -> tuple[Any, int]:
    adjustment = _budget().update_adjustment(
        income_id, adjustment_id, **_adjustment_arguments(parse_json_object(request))
    )
    return build_json_response(adjustment.to_record())


@blueprint.delete("/incomes/<income_id>/adjustments/<adjustment_id>")
def delete_adjustment(income_id: str, adjustment_id: str) -> tuple[Any, int]:
    _budget().remove_adjustment(income_id, adjustment_id)
    return "", 204


@blueprint.post("/freelance")
def create_freelance_income() -> tuple[Any, int]:
    payload = parse_json_object(request)
    invoice = _budget().add_freelance_income(
        payload.get("client"), payload.get("description") or "", payload.get("amount")
    )
    return build_json_response(invoice.to_record(), 201)


@blueprint.put("/freelance/<freelance_id>")
def update_freelance_income(freelance_id: str) -> tuple[Any, int]:
    payload = parse_json_object(request)
    invoice = _budget().update_freelance_income(
        freelance_id,
        payload.get("client"),
        payload.get("description") or "",
        payload.get("amount"),
    )
    return build_json_response(invoice.to_record())


@blueprint.delete("/freelance/<freelance_id>")
def delete_freelance_income(freelance_id: str) -> tuple[Any, int]:
    _budget().remove_freelance_income(freelance_id)
    return "", 204


@blueprint.post("/expenses")
def create_expense() -> tuple[Any, int]:
    payload = parse_json_object(request)
    expense = _budget().add_expense(
        payload.get("name"),
        _pick(payload, "monthly_amounts", "monthlyAmounts"),
        payload.get("category"),
        payload.get("frequency"),
    )
    return build_json_response(expense.to_record(), 201)


@blueprint.put("/expenses/<expense_id>")
def update_expense(expense_id: str) -> tuple[Any, int]:
    payload = parse_json_object(request)
    expense = _budget().update_expense(
        expense_id,
        payload.get("name"),
        _pick(payload, "monthly_amounts", "monthlyAmounts"),
        payload.get("category"),
        payload.get("frequency"),
    )
    return build_json_response(expense.to_record())


@blueprint.delete("/expenses/<expense_id>")
def delete_expense(expense_id: str) -> tuple[Any, int]:
    _budget().remove_expense(expense_id)
    return "", 204
