from fastapi import APIRouter

from app.api.v1.routers import (
    accounts,
    applicant,
    applications,
    disbursals,
    employees,
    health,
    leads,
    mobile,
    sanction,
    verify,
)

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(employees.router)
api_router.include_router(leads.router)
api_router.include_router(verify.router)
api_router.include_router(mobile.router)
api_router.include_router(applications.router)
api_router.include_router(applicant.router)
api_router.include_router(sanction.router)
api_router.include_router(disbursals.router)
api_router.include_router(accounts.router)

__all__ = ["api_router"]
