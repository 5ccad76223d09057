"""Helpers for reading JSON request bodies."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from flask import Request
from werkzeug.exceptions import BadRequest

from kapitalen.backend.app.localization import normalise_locale


def resolve_locale(req: Request, payload: Mapping[str, Any] | None = None) -> str:
    """Pick the locale from the payload, ``?locale=`` or ``Accept-Language``."""

    locale = payload.get("locale") if payload is not None else None
    if isinstance(locale, str) and locale.strip():
        return normalise_locale(locale)

    locale_param = req.args.get("locale")
    if locale_param:
        return normalise_locale(locale_param)

    accept_language = req.headers.get("Accept-Language")
    if accept_language:
        primary = accept_language.split(",")[0].split(";")[0].strip()
        if primary:
            return normalise_locale(primary)

    return normalise_locale(None)


def parse_json_object(req: Request) -> dict[str, Any]:
    """Return the request body as a dictionary or raise :class:`BadRequest`."""

    data = req.get_json(silent=True)
    if data is None:
        raise BadRequest("Request body must be valid JSON")
    if not isinstance(data, Mapping):
        raise BadRequest("Request JSON must be an object")
    return dict(data)


def parse_calculation_payload(req: Request) -> dict[str, Any]:
    """Return the JSON body with its ``locale`` resolved from request hints."""

    payload = parse_json_object(req)
    payload["locale"] = resolve_locale(req, payload)
    return payload
