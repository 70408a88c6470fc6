from __future__ import annotations

from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.permissions import EmployeeRole
from app.models import Employee, LeadStatus
from app.schemas.common import PageParams
from app.services.errors import not_authorized, not_found

ModelT = TypeVar("ModelT")


async def get_or_404(db: AsyncSession, model: type[ModelT], record_id: UUID | str, message: str) -> ModelT:
    record = await db.get(model, record_id)
    if record is None:
        raise not_found(message, id=str(record_id))
    return record


async def get_lead_status(db: AsyncSession, status_id: UUID | None) -> LeadStatus:
    status = await db.get(LeadStatus, status_id) if status_id else None
    if status is None:
        raise not_found("Status not found")
    return status


async def lead_status_by_lead_no(db: AsyncSession, lead_no: str) -> LeadStatus:
    result = await db.execute(select(LeadStatus).where(LeadStatus.lead_no == lead_no))
    status = result.scalar_one_or_none()
    if status is None:
        raise not_found("Status not found", lead_no=lead_no)
    return status


async def employee_name(db: AsyncSession, employee_id: UUID | None) -> str | None:
    if not employee_id:
        return None
    employee = await db.get(Employee, employee_id)
    return employee.full_name if employee else None


def require_role(actor: deps.EmployeeContext, *roles: EmployeeRole, message: str | None = None) -> None:
    if not actor.has_role(*roles):
        raise not_authorized(message) if message else not_authorized()


def full_name(*parts: str | None) -> str:
    return " ".join(part.strip() for part in parts if part and part.strip())


async def paginate(
    db: AsyncSession,
    stmt: Select,
    params: PageParams,
    *,
    scalars: bool = True,
) -> tuple[list[Any], int]:
    count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
    count_result = await db.execute(count_stmt)
    total = int(count_result.scalar_one() or 0)

    result = await db.execute(stmt.limit(params.limit).offset(params.offset))
    rows = result.scalars().all() if scalars else result.all()
    return list(rows), total
