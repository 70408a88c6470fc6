"""Bearer tokens for employees.

Employees sign in through the shared auth service; this API only verifies its
access tokens. ``create_access_token`` mirrors the issuer for tooling and tests.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any
from uuid import UUID

from jose import JWTError, jwt

from app.core.settings import settings


class JWTKeyError(RuntimeError):
    pass


@lru_cache(maxsize=2)
def _load_key(kind: str) -> str:
    """``kind`` is "private" for signing or "public" for verification."""
    if not settings.jwt_algorithm.upper().startswith(("RS", "ES")):
        return settings.secret_key
    inline = getattr(settings, f"jwt_{kind}_key")
    if inline:
        return inline
    path = getattr(settings, f"jwt_{kind}_key_path")
    if not path:
        raise JWTKeyError(f"JWT {kind} key not configured")
    with open(path, "r", encoding="utf-8") as key_file:
        return key_file.read()


def create_access_token(employee_id: str, expires_delta: timedelta | None = None) -> str:
    now = datetime.now(timezone.utc)
    claims: dict[str, Any] = {
        "sub": employee_id,
        "type": "access",
        "iat": now,
        "exp": now + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes)),
    }
    if settings.jwt_audience:
        claims["aud"] = settings.jwt_audience
    return jwt.encode(claims, _load_key("private"), algorithm=settings.jwt_algorithm)


def decode_token(token: str, expected_type: str | None = None) -> dict[str, Any]:
    try:
        payload = jwt.decode(
            token,
            _load_key("public"),
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
        )
    except JWTError as exc:
        raise ValueError("Invalid token") from exc
    if expected_type and payload.get("type") != expected_type:
        raise ValueError(f"Unexpected token type: {payload.get('type')}")
    return payload


def employee_id_from_token(token: str) -> UUID:
    """Employee id carried in an access token's subject. Raises ValueError otherwise."""
    subject = decode_token(token, expected_type="access").get("sub")
    if not subject:
        raise ValueError("Invalid token")
    return UUID(str(subject))
