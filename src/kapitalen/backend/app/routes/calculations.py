"""REST endpoints for tax calculations."""

from __future__ import annotations

from typing import Any

from flask import Blueprint, request

from kapitalen.backend.services import (
    build_calculation_response,
    calculate_tax_summary,
    parse_calculation_payload,
    preview_income,
)

blueprint = Blueprint("calculations", __name__, url_prefix="/api/v1")


@blueprint.post("/calculations")
def create_calculation() -> tuple[Any, int]:
    """Compute the combined tax for the submitted budget snapshot."""

    payload = parse_calculation_payload(request)
    return build_calculation_response(calculate_tax_summary(payload))


@blueprint.post("/calculations/income")
def create_income_preview() -> tuple[Any, int]:
    """Preview a single income in isolation."""

    payload = parse_calculation_payload(request)
    return build_calculation_response(preview_income(payload))
