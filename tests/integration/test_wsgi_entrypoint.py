"""Integration test for the Passenger WSGI entrypoint."""

from http import HTTPStatus
import importlib

import pytest


def test_passenger_application_serves_health(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("KAPITALEN_ALLOWED_ORIGINS", "https://allowed.test")
    monkeypatch.delenv("KAPITALEN_STORAGE_DB", raising=False)

    module = importlib.import_module("kapitalen.backend.passenger_wsgi")
    response = module.application.test_client().get("/health")

    assert response.status_code == HTTPStatus.OK
    assert response.get_json()["status"] == "ok"
