from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import text

from app.core.settings import settings
from app.db.session import engine
from app.services.providers import configured_providers
from app.utils.redis_client import get_redis_client

logger = logging.getLogger(__name__)

APP_VERSION = "0.1.0"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


async def check_database() -> dict[str, str]:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as exc:
        logger.warning("Database health check failed: %s", exc)
        return {"status": "error", "error": str(exc)}
    return {"status": "ok"}


async def check_redis() -> dict[str, str]:
    try:
        await get_redis_client().ping()
    except Exception as exc:
        logger.warning("Redis health check failed: %s", exc)
        return {"status": "error", "error": str(exc)}
    return {"status": "ok"}


async def run_checks() -> dict[str, dict[str, Any]]:
    return {
        "api": {"status": "ok", "version": APP_VERSION},
        "database": await check_database(),
        "redis": await check_redis(),
    }


async def live_payload() -> dict[str, str]:
    return {"status": "ok", "timestamp": _now()}


async def ready_payload() -> dict[str, Any]:
    checks = await run_checks()
    ready = all(check.get("status") == "ok" for check in checks.values())
    return {
        "status": "ok" if ready else "degraded",
        "ready": ready,
        "environment": settings.environment,
        "timestamp": _now(),
        "checks": checks,
    }


async def status_payload() -> dict[str, Any]:
    payload = await ready_payload()
    payload["version"] = APP_VERSION
    payload["sequences"] = {"lead_no_prefix": settings.lead_no_prefix, "loan_no_prefix": settings.loan_no_prefix}
    payload["providers"] = configured_providers()
    return payload
