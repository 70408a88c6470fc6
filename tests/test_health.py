import pytest
from fastapi.testclient import TestClient

from app.core import health as health_module
from app.main import app

client = TestClient(app)


@pytest.fixture(autouse=True)
def _mock_env(monkeypatch):
    # Readiness payloads echo the environment name
    monkeypatch.setattr(health_module.settings, "environment", "test")
    yield


def _patch_checks(monkeypatch, database: dict, redis: dict) -> None:
    async def db_check():
        return database

    async def redis_check():
        return redis

    monkeypatch.setattr(health_module, "check_database", db_check)
    monkeypatch.setattr(health_module, "check_redis", redis_check)


def test_health_live_returns_ok() -> None:
    response = client.get("/api/health/live")
    assert response.status_code == 200
    payload = response.json()["data"]
    assert payload.get("status") == "ok"
    assert "timestamp" in payload


def test_health_ready_ok(monkeypatch) -> None:
    _patch_checks(monkeypatch, {"status": "ok"}, {"status": "ok"})

    response = client.get("/api/health/ready")
    assert response.status_code == 200
    payload = response.json()["data"]
    assert payload.get("status") == "ok"
    assert payload.get("ready") is True
    assert payload["environment"] == "test"
    assert payload["checks"]["database"]["status"] == "ok"
    assert payload["checks"]["redis"]["status"] == "ok"
    assert "version" not in payload


def test_health_ready_degraded(monkeypatch) -> None:
    _patch_checks(monkeypatch, {"status": "error", "error": "unreachable"}, {"status": "ok"})

    response = client.get("/api/health")
    assert response.status_code == 200
    payload = response.json()["data"]
    assert payload.get("status") == "degraded"
    assert payload.get("ready") is False
    assert payload["checks"]["database"]["status"] == "error"


def test_status_summary(monkeypatch) -> None:
    _patch_checks(monkeypatch, {"status": "ok"}, {"status": "ok"})
    monkeypatch.setattr(health_module.settings, "esign_api_key", "esign-key")
    monkeypatch.setattr(health_module.settings, "sms_api_key", None)

    response = client.get("/api/status/summary")
    assert response.status_code == 200
    payload = response.json()["data"]
    assert payload.get("status") == "ok"
    assert payload.get("ready") is True
    assert payload.get("version") == health_module.APP_VERSION
    assert payload["sequences"]["loan_no_prefix"] == health_module.settings.loan_no_prefix
    assert payload["providers"]["esign"] is True
    assert payload["providers"]["sms"] is False


def test_responses_carry_security_headers_and_request_id() -> None:
    response = client.get("/api/health/live", headers={"X-Request-ID": "req-123"})
    assert response.headers["x-content-type-options"] == "nosniff"
    assert response.headers["cache-control"] == "no-store"
    assert response.headers["x-request-id"] == "req-123"
    assert response.json()["details"]["request_id"] == "req-123"


def test_api_responses_forbid_framing_and_resource_loads() -> None:
    response = client.get("/api/health/live")
    assert response.headers["content-security-policy"] == "default-src 'none'; frame-ancestors 'none'"
    assert "strict-transport-security" not in response.headers
