"""Utilities for serialising service results into Flask responses."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Tuple

from flask import jsonify

ResponseTuple = Tuple[Any, int]


def build_json_response(
    payload: Mapping[str, Any] | list[Any], status: int = 200
) -> ResponseTuple:
    return jsonify(payload), status


def build_calculation_response(payload: Mapping[str, Any]) -> ResponseTuple:
    """Return a Flask JSON response for a calculation ``payload``."""

    return build_json_response(payload)
