"""Application factory for the Kapitalen backend."""

from __future__ import annotations

import logging
import os
from warnings import warn

from flask import Flask, jsonify
from flask_cors import CORS
from werkzeug.exceptions import BadRequest

from kapitalen.backend.app.services.budget_service import (
    BudgetService,
    NotFoundError,
    open_budget,
)

from .http import problem_response
from .routes import register_routes
from .routes.budget import EXTENSION_KEY, build_store
from .routes.config import get_configuration_metadata

_LOGGER = logging.getLogger(__name__)


def _parse_allowed_origins(raw: str | None) -> set[str]:
    """Convert a comma-separated environment variable into a set of origins."""

    if not raw:
        return set()

    return {origin.strip() for origin in raw.split(",") if origin.strip()}


def create_app(budget: BudgetService | None = None) -> Flask:
    """Create and configure the Flask application instance.

    ``budget`` overrides the service otherwise loaded from the store chosen
    by ``KAPITALEN_STORAGE_DB``.
    """

    app = Flask(__name__)

    allowed_origins = _parse_allowed_origins(os.getenv("KAPITALEN_ALLOWED_ORIGINS"))
    if not allowed_origins:
        warn(
            "No allowed origins configured; cross-origin requests will be rejected.",
            stacklevel=1,
        )

    CORS(
        app,
        resources={r"/api/*": {"origins": sorted(allowed_origins)}},
        supports_credentials=False,
        methods=["GET", "OPTIONS", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type"],
    )

    app.extensions[EXTENSION_KEY] = budget if budget is not None else open_budget(build_store())

    register_routes(app)

    @app.route("/health", methods=["GET"])
    def health_check():
        """Simple health check endpoint for infrastructure monitoring."""

        payload = {"status": "ok", **get_configuration_metadata()}
        return jsonify(payload)

    @app.errorhandler(BadRequest)
    def handle_bad_request(error: BadRequest):
        message = error.description or "Invalid request"
        return problem_response("bad_request", status=400, message=message).to_response()

    @app.errorhandler(ValueError)
    def handle_value_error(error: ValueError):
        """Surface rejected domain input to clients."""

        return problem_response(
            "validation_error", status=400, message=str(error)
        ).to_response()

    @app.errorhandler(NotFoundError)
    def handle_not_found(error: NotFoundError):
        message = str(error)
        _LOGGER.debug("Lookup failed: %s", message)
        return problem_response("not_found", status=404, message=message).to_response()

    return app
