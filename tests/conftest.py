"""Test configuration utilities and shared fixtures."""

import sys
from pathlib import Path

# Ensure the ``src`` directory is importable when tests are executed without an
# editable install.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

import pytest  # noqa: E402
from flask import Flask  # noqa: E402
from flask.testing import FlaskClient  # noqa: E402

from kapitalen.backend.app import create_app  # noqa: E402
from kapitalen.backend.app.models import Income  # noqa: E402
from kapitalen.backend.app.services.budget_service import BudgetService  # noqa: E402
from kapitalen.backend.config.year_config import (  # noqa: E402
    YearConfiguration,
    load_year_configuration,
)


@pytest.fixture()
def config() -> YearConfiguration:
    return load_year_configuration(2026)


@pytest.fixture()
def budget(config: YearConfiguration) -> BudgetService:
    """Empty budget not backed by any store."""

    return BudgetService(config=config)


@pytest.fixture()
def salary() -> Income:
    """Full-year, full-time salary of 600 000 NOK withheld by tabelltrekk."""

    return Income.from_form(name="Arbeidsgiver AS", yearly_amount=600_000, employee_percentage=100)


@pytest.fixture()
def app(budget: BudgetService) -> Flask:
    """Return a configured Flask application for integration tests."""

    application = create_app(budget=budget)
    application.config.update(TESTING=True)
    return application


@pytest.fixture()
def client(app: Flask) -> FlaskClient:
    """Provide a test client bound to the configured Flask app."""

    return app.test_client()
