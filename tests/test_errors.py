"""
Tests for error responses and how they are logged
"""
import logging

import pytest
from fastapi.testclient import TestClient

from errors import InternalError
from main import create_app


@pytest.fixture
def failing_client(settings, engine):
    app = create_app(settings, engine=engine)

    @app.get("/boom")
    def boom():
        raise RuntimeError("disk on fire")

    with TestClient(app, raise_server_exceptions=False) as c:
        yield c


def test_unexpected_error_uses_internal_error_body(failing_client):
    response = failing_client.get("/boom")

    assert response.status_code == InternalError.status_code
    assert response.json() == InternalError().to_dict()
    assert "disk on fire" not in response.text


def test_unexpected_error_is_logged_with_traceback(failing_client, caplog):
    with caplog.at_level(logging.ERROR, logger="main"):
        failing_client.get("/boom")

    [record] = [r for r in caplog.records if r.name == "main"]
    assert record.levelno == logging.ERROR
    assert record.exc_info is not None


def test_rejected_operation_logs_warning(client, caplog):
    with caplog.at_level(logging.WARNING, logger="main"):
        response = client.get("/requests/999")

    assert response.status_code == 404
    assert any(
        r.name == "main" and r.levelno == logging.WARNING and "NOT_FOUND" in r.getMessage()
        for r in caplog.records
    )


def test_validation_failure_logs_warning(client, caplog):
    with caplog.at_level(logging.WARNING, logger="main"):
        response = client.post("/auth/login", json={})

    assert response.status_code == 400
    assert any(
        r.name == "main" and r.levelno == logging.WARNING and "VALIDATION_ERROR" in r.getMessage()
        for r in caplog.records
    )
