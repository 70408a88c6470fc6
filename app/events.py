import logging

from fastapi import FastAPI

from app.core.settings import settings
from app.db.init_db import init_db
from app.db.session import engine
from app.services.providers import configured_providers
from app.utils.redis_client import get_redis_client

logger = logging.getLogger(__name__)


def _check_configuration() -> None:
    if settings.environment == "production" and settings.secret_key == "change-me":
        raise RuntimeError("SECRET_KEY must be set in production")
    if settings.environment == "production" and not settings.fernet_kdf_salt:
        raise RuntimeError("FERNET_KDF_SALT must be set in production")
    if not settings.esign_callback_token:
        logger.warning("ESIGN_CALLBACK_TOKEN is not set; e-sign callbacks will be refused")
    missing = [name for name, configured in configured_providers().items() if not configured]
    if missing:
        logger.warning("Providers without API keys: %s", ", ".join(missing))


def register_event_handlers(app: FastAPI) -> None:
    @app.on_event("startup")
    async def on_startup() -> None:
        logger.info("Origination API starting in %s", settings.environment)
        _check_configuration()
        await init_db()

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        logger.info("Origination API stopping")
        await get_redis_client().aclose()
        await engine.dispose()
