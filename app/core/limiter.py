from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from app.core.context import get_employee_id
from app.core.security import JWTKeyError, employee_id_from_token
from app.core.settings import settings


def _employee_from_bearer(request: Request) -> str | None:
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    try:
        return str(employee_id_from_token(token))
    except (ValueError, JWTKeyError):
        return None


def rate_limit_key(request: Request) -> str:
    """Employees are limited per account, public lead and OTP callers per address.

    The middleware checks default limits before the route's dependencies bind
    the employee, so the account comes from the bearer token itself.
    """
    employee_id = get_employee_id()
    if employee_id == "-":
        employee_id = _employee_from_bearer(request)
    if employee_id:
        return f"employee:{employee_id}"
    return f"ip:{get_remote_address(request)}"


def public_limit() -> str:
    return f"{settings.public_rate_limit_per_minute}/minute"


def otp_limit() -> str:
    return f"{settings.otp_rate_limit_per_minute}/minute"


limiter = Limiter(
    key_func=rate_limit_key,
    default_limits=[f"{settings.rate_limit_per_minute}/minute"],
    storage_uri=settings.redis_url,
)

__all__ = ["limiter", "otp_limit", "public_limit", "rate_limit_key"]
