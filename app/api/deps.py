from dataclasses import dataclass
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Query, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.context import bind_employee
from app.core.permissions import EmployeeRole
from app.core.security import employee_id_from_token
from app.db.session import get_db
from app.models import Employee
from app.schemas.common import PageParams
from app.services.errors import not_authorized


@dataclass(slots=True)
class EmployeeContext:
    employee: Employee
    active_role: str

    @property
    def employee_id(self) -> UUID:
        return self.employee.id

    def has_role(self, *roles: EmployeeRole | str) -> bool:
        wanted = {role.value if isinstance(role, EmployeeRole) else role for role in roles}
        return self.active_role in wanted


bearer_scheme = HTTPBearer(auto_error=False)


async def get_db_session(db: AsyncSession = Depends(get_db)) -> AsyncSession:
    return db


async def get_current_employee(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db_session),
) -> Employee:
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    try:
        employee_id = employee_id_from_token(credentials.credentials)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc

    employee = await db.get(Employee, employee_id)
    if not employee:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Employee not found")
    if not employee.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Inactive employee")
    return employee


async def get_employee_context(
    employee: Employee = Depends(get_current_employee),
    active_role: str | None = Header(default=None, alias="X-Active-Role"),
) -> EmployeeContext:
    roles = EmployeeRole.normalize(employee.roles or [])
    if not roles:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Employee has no roles")
    if active_role is None:
        active_role = roles[0]
    elif active_role not in roles:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Role {active_role} is not assigned to this employee",
        )
    bind_employee(str(employee.id), active_role)
    return EmployeeContext(employee=employee, active_role=active_role)


def require_roles(*roles: EmployeeRole):
    """Guard a route to the given active roles; other roles get 401."""

    async def dependency(actor: EmployeeContext = Depends(get_employee_context)) -> EmployeeContext:
        if not actor.has_role(*roles):
            raise not_authorized()
        return actor

    return dependency


def page_params(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=200),
) -> PageParams:
    return PageParams(page=page, limit=limit)
