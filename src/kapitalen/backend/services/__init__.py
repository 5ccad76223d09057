"""Service-layer helpers for the Kapitalen backend."""

from kapitalen.backend.app.services.calculation_service import (
    calculate_tax_summary,
    preview_income,
)

from .request_parser import parse_calculation_payload, parse_json_object, resolve_locale
from .response_builder import build_calculation_response, build_json_response

__all__ = [
    "build_calculation_response",
    "build_json_response",
    "calculate_tax_summary",
    "parse_calculation_payload",
    "parse_json_object",
    "preview_income",
    "resolve_locale",
]
