"""Expose the input validators so clients can check forms before saving."""

from __future__ import annotations

from typing import Any, Callable, Mapping

from flask import Blueprint, request

from kapitalen.backend.app.http import not_found
from kapitalen.backend.app.models import ValidationResult
from kapitalen.backend.app.services.validation import (
    validate_adjustment,
    validate_expense,
    validate_income,
)
from kapitalen.backend.services import build_json_response, parse_json_object

blueprint = Blueprint("validations", __name__, url_prefix="/api/v1/validations")

_VALIDATORS: dict[str, Callable[[Mapping[str, Any]], ValidationResult]] = {
    "income": validate_income,
    "adjustment": validate_adjustment,
    "expense": validate_expense,
}


@blueprint.post("/<kind>")
def run_validation(kind: str) -> tuple[Any, int]:
    validator = _VALIDATORS.get(kind)
    if validator is None:
        return not_found(f"Unknown validation target: {kind}").to_response()

    payload = parse_json_object(request)
    return build_json_response(validator(payload).as_dict())
