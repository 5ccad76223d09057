"""Expose year configuration so clients can show the rates in use.

Clients read thresholds, rates and defaults from here instead of duplicating
them, which keeps a new tax year a configuration-only change.
"""

from __future__ import annotations

from typing import Any

from flask import Blueprint, request

from kapitalen.backend.app.http import not_found
from kapitalen.backend.app.localization import get_translator
from kapitalen.backend.config.year_config import (
    DEFAULT_TAX_YEAR,
    YearConfiguration,
    available_years,
    load_manifest,
    load_year_configuration,
)
from kapitalen.backend.services import build_json_response, resolve_locale
from kapitalen.backend.version import get_project_version

blueprint = Blueprint("config", __name__, url_prefix="/api/v1/config")


def get_configuration_metadata() -> dict[str, Any]:
    """Version and supported years derived from the manifest."""

    supported_years = list(load_manifest().supported_years)
    default_year = DEFAULT_TAX_YEAR if DEFAULT_TAX_YEAR in supported_years else None
    if default_year is None and supported_years:
        default_year = supported_years[-1]
    return {
        "version": get_project_version(),
        "supported_years": supported_years,
        "default_year": default_year,
    }


def _serialise_year(config: YearConfiguration, locale: str | None = None) -> dict[str, Any]:
    translator = get_translator(locale)
    payload = config.model_dump(mode="json", exclude={"warnings"})
    payload["warnings"] = [
        {
            "id": warning.id,
            "severity": warning.severity,
            "applies_to": list(warning.applies_to),
            "message": translator(warning.message_key),
            "documentation_url": warning.documentation_url,
        }
        for warning in config.warnings
    ]
    payload["locale"] = translator.locale
    return payload


@blueprint.get("/meta")
def get_application_metadata() -> tuple[Any, int]:
    return build_json_response(get_configuration_metadata())


@blueprint.get("/years")
def list_years() -> tuple[Any, int]:
    """Return every configured year."""

    locale = resolve_locale(request)
    metadata = get_configuration_metadata()
    payload = {
        "years": [
            _serialise_year(load_year_configuration(year), locale) for year in available_years()
        ],
        "default_year": metadata["default_year"],
        "supported_years": metadata["supported_years"],
    }
    return build_json_response(payload)


@blueprint.get("/<int:year>")
def get_year(year: int) -> tuple[Any, int]:
    try:
        configuration = load_year_configuration(year)
    except FileNotFoundError as exc:
        return not_found(str(exc)).to_response()

    return build_json_response(_serialise_year(configuration, resolve_locale(request)))
