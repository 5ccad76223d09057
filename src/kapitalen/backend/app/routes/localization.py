"""Expose translation catalogues to API clients."""

from __future__ import annotations

from typing import Any

from flask import Blueprint, request

from kapitalen.backend.app.localization import load_translations
from kapitalen.backend.services import build_json_response, resolve_locale

blueprint = Blueprint("translations", __name__, url_prefix="/api/v1/translations")


@blueprint.get("")
def get_default_translations() -> tuple[Any, int]:
    """Return the catalogue for the locale hinted by the request."""

    return build_json_response(load_translations(resolve_locale(request)))


@blueprint.get("/<locale>")
def get_locale_translations(locale: str) -> tuple[Any, int]:
    return build_json_response(load_translations(locale))
