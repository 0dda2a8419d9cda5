from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.shared.exceptions import CircuitOpenError, register_exception_handlers
from src.templates.domain.exceptions import (
    RetriesExhaustedError,
    TemplateStatusError,
    TemplateValidationError,
    TransientProviderError,
)
from src.templates.domain.services.placeholder_grammar import validate_placeholders


def _client():
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/invalid")
    async def invalid():
        raise TemplateValidationError(validate_placeholders("Hi {{name}} there"))

    @app.get("/status")
    async def wrong_status():
        raise TemplateStatusError(None, "pending", "edit")

    @app.get("/exhausted")
    async def exhausted():
        last = TransientProviderError("slow down", code="rate_limited", retry_after=30)
        raise RetriesExhaustedError("template.submit", 3, last)

    @app.get("/circuit")
    async def circuit():
        raise CircuitOpenError("provider-submit", retry_in_seconds=12.5)

    @app.get("/boom")
    async def boom():
        raise RuntimeError("db-password-leak")

    return TestClient(app, raise_server_exceptions=False)


def test_validation_error_carries_field_errors():
    r = _client().get("/invalid")
    assert r.status_code == 422
    data = r.json()
    assert data["code"] == "template_validation_error"
    assert data["details"]["errors"][0]["code"] == "NAMED_PLACEHOLDER"
    assert data["details"]["errors"][0]["field"] == "body_text"


def test_status_error_is_conflict():
    r = _client().get("/status")
    assert r.status_code == 409
    assert r.json()["code"] == "invalid_template_status"


def test_exhausted_retries_advertise_retry_after():
    r = _client().get("/exhausted")
    assert r.status_code == 503
    assert r.headers["Retry-After"] == "30"
    data = r.json()
    assert data["code"] == "retries_exhausted"
    assert data["details"]["last_error_code"] == "rate_limited"


def test_open_circuit_is_service_unavailable():
    r = _client().get("/circuit")
    assert r.status_code == 503
    assert r.json()["code"] == "circuit_open"
    assert r.json()["details"]["circuit"] == "provider-submit"


def test_unhandled_errors_become_internal_error():
    r = _client().get("/boom", headers={"X-Request-ID": "req-123"})
    assert r.status_code == 500
    data = r.json()
    assert data["code"] == "internal_error"
    assert data["correlation_id"] == "req-123"
    assert "db-password-leak" not in r.text
