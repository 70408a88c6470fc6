import json
import logging
from uuid import uuid4

from fastapi import FastAPI
from fastapi.testclient import TestClient
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.requests import Request

from app.core import context, security
from app.core.limiter import rate_limit_key
from app.core.logging import JsonFormatter, RequestContextFilter
from app.core.settings import settings
from app.models import types


def _request(host: str = "203.0.113.7", headers: dict | None = None) -> Request:
    raw_headers = [(name.lower().encode(), value.encode()) for name, value in (headers or {}).items()]
    return Request({"type": "http", "method": "POST", "path": "/api/leads", "headers": raw_headers, "client": (host, 5123)})


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("app.services.leads", logging.INFO, __file__, 1, "Lead created", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_anonymous_callers_are_limited_by_address():
    context.clear_context()
    assert rate_limit_key(_request()) == "ip:203.0.113.7"


def test_employees_are_limited_by_account():
    context.bind_employee("emp-1", "screener")
    try:
        assert rate_limit_key(_request()) == "employee:emp-1"
    finally:
        context.clear_context()


def test_bearer_token_names_the_account_before_dependencies_run():
    context.clear_context()
    employee_id = uuid4()
    token = security.create_access_token(str(employee_id))

    assert rate_limit_key(_request(headers={"Authorization": f"Bearer {token}"})) == f"employee:{employee_id}"
    assert rate_limit_key(_request(headers={"Authorization": "Bearer not-a-token"})) == "ip:203.0.113.7"


def _limited_app() -> FastAPI:
    limited = FastAPI()
    limited.state.limiter = Limiter(key_func=rate_limit_key, default_limits=["1/minute"], storage_uri="memory://")
    limited.add_middleware(SlowAPIMiddleware)
    limited.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    @limited.get("/api/leads/allocated")
    async def allocated():
        return {"ok": True}

    return limited


def test_office_colleagues_get_separate_buckets():
    context.clear_context()
    client = TestClient(_limited_app())
    first, second = (security.create_access_token(str(uuid4())) for _ in range(2))

    def call(token: str) -> int:
        return client.get("/api/leads/allocated", headers={"Authorization": f"Bearer {token}"}).status_code

    assert call(first) == 200
    assert call(second) == 200
    assert call(first) == 429


def test_log_records_carry_request_employee_and_role():
    context.set_request_id("req-9")
    context.bind_employee("emp-1", "creditManager")
    record = _record()
    try:
        assert RequestContextFilter().filter(record) is True
    finally:
        context.clear_context()

    assert record.request_id == "req-9"
    assert record.employee_id == "emp-1"
    assert record.active_role == "creditManager"


def test_json_lines_include_workflow_identifiers():
    context.clear_context()
    record = _record(lead_no="LD0000000042", loan_no=None, workflow_status="NEW LEAD")
    RequestContextFilter().filter(record)

    payload = json.loads(JsonFormatter(stream_label="audit").format(record))

    assert payload["stream"] == "audit"
    assert payload["message"] == "Lead created"
    assert payload["lead_no"] == "LD0000000042"
    assert payload["workflow_status"] == "NEW LEAD"
    assert "loan_no" not in payload
    assert payload["active_role"] == "-"


def test_encrypted_column_round_trips_with_stretched_key(monkeypatch):
    monkeypatch.setattr(settings, "fernet_kdf_salt", "branch-salt")
    column = types.EncryptedString(secret="column-secret")

    stored = column.process_bind_param("123456789012", None)

    assert b"123456789012" not in stored
    assert column.process_result_value(stored, None) == "123456789012"


def test_key_depends_on_configured_salt(monkeypatch):
    monkeypatch.setattr(settings, "fernet_kdf_salt", "salt-one")
    first = types.derive_key("column-secret")
    monkeypatch.setattr(settings, "fernet_kdf_salt", "salt-two")

    assert types.derive_key("column-secret") != first
