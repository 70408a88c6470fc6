from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.middleware import SlowAPIMiddleware

from app.api.v1 import api_router
from app.core.errors import register_exception_handlers
from app.core.health import APP_VERSION
from app.core.limiter import limiter
from app.core.logging import configure_logging
from app.core.response_envelope import register_response_envelope
from app.core.settings import settings
from app.events import register_event_handlers
from app.middlewares.request_context import RequestContextMiddleware
from app.middlewares.security_headers import SecurityHeadersMiddleware
from app.middlewares.trust_proxies import TrustedProxiesMiddleware

DESCRIPTION = (
    "Back office for short-term personal loans. A lead is screened, worked up by credit, "
    "sanctioned, e-signed by the borrower and disbursed, then tracked by accounts and "
    "collections until it is closed."
)

OPENAPI_TAGS = [
    {"name": "leads", "description": "Lead capture and screening by screeners."},
    {"name": "verification", "description": "Mobile OTP, email, Aadhaar, PAN, bureau and bank checks."},
    {"name": "mobile", "description": "Borrower app onboarding: Aadhaar and PAN self-checks and applying."},
    {"name": "applications", "description": "Credit work-up and the credit assessment memo."},
    {"name": "applicant", "description": "Borrower profile and bank accounts."},
    {"name": "sanction", "description": "Sanction approval, loan numbers and e-sign."},
    {"name": "disbursals", "description": "Disbursal allocation, recommendation and payout."},
    {"name": "accounts", "description": "Active loans, repayment requests and verification."},
    {"name": "employees", "description": "The authenticated employee and their roles."},
    {"name": "health", "description": "Liveness and readiness checks."},
    {"name": "status", "description": "Service status for operators."},
]


def create_app() -> FastAPI:
    configure_logging()
    show_docs = settings.environment != "production"
    app = FastAPI(
        title="Loan Origination API",
        description=DESCRIPTION,
        version=APP_VERSION,
        openapi_tags=OPENAPI_TAGS,
        docs_url="/api/docs" if show_docs else None,
        redoc_url=None,
        openapi_url="/api/openapi.json" if show_docs else None,
    )
    register_exception_handlers(app)
    register_response_envelope(app)

    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(TrustedProxiesMiddleware, proxies_count=settings.proxies_count)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(SecurityHeadersMiddleware, enable_hsts=settings.enable_hsts)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH"],
        allow_headers=["Authorization", "Content-Type", "X-Active-Role", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
    )

    app.include_router(api_router, prefix="/api")
    register_event_handlers(app)
    return app


app = create_app()
