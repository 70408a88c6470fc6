from __future__ import annotations

from typing import Any

from fastapi import status


class WorkflowError(Exception):
    """Business-rule failure raised by services and rendered as an error envelope."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


def not_found(message: str, **details: Any) -> WorkflowError:
    return WorkflowError(status.HTTP_404_NOT_FOUND, "not_found", message, details)


def not_authorized(message: str = "You are not authorized!!", **details: Any) -> WorkflowError:
    return WorkflowError(status.HTTP_401_UNAUTHORIZED, "role_not_permitted", message, details)


def forbidden(message: str, **details: Any) -> WorkflowError:
    return WorkflowError(status.HTTP_403_FORBIDDEN, "not_owner", message, details)


def conflict(code: str, message: str, **details: Any) -> WorkflowError:
    return WorkflowError(status.HTTP_400_BAD_REQUEST, code, message, details)


def provider_failure(provider: str, message: str) -> WorkflowError:
    return WorkflowError(
        status.HTTP_502_BAD_GATEWAY,
        "provider_error",
        message,
        {"provider": provider},
    )
