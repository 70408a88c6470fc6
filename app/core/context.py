"""Per-request values bound for log correlation and rate limiting."""

import contextvars

_UNSET = "-"

_request_id: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default=_UNSET)
_employee_id: contextvars.ContextVar[str] = contextvars.ContextVar("employee_id", default=_UNSET)
_active_role: contextvars.ContextVar[str] = contextvars.ContextVar("active_role", default=_UNSET)


def set_request_id(request_id: str) -> None:
    _request_id.set(request_id)


def get_request_id() -> str:
    return _request_id.get()


def bind_employee(employee_id: str, active_role: str) -> None:
    """Bind the acting employee once the bearer token and X-Active-Role are resolved."""
    _employee_id.set(employee_id)
    _active_role.set(active_role)


def get_employee_id() -> str:
    return _employee_id.get()


def get_active_role() -> str:
    return _active_role.get()


def clear_context() -> None:
    for var in (_request_id, _employee_id, _active_role):
        var.set(_UNSET)
