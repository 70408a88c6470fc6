from fastapi import APIRouter

from app.core.health import live_payload, ready_payload, status_payload
from app.core.limiter import limiter

router = APIRouter(tags=["health"])


@router.get("/health/live", summary="Liveness check")
@limiter.exempt
async def health_live() -> dict:
    return await live_payload()


@router.get("/health/ready", summary="Readiness check: database and Redis")
@limiter.exempt
async def health_ready() -> dict:
    return await ready_payload()


@router.get("/health", include_in_schema=False)
@limiter.exempt
async def read_health() -> dict:
    return await ready_payload()


@router.get(
    "/status/summary",
    tags=["status"],
    summary="Readiness plus version, sequence prefixes and provider credentials",
)
@limiter.exempt
async def status_summary() -> dict:
    return await status_payload()
