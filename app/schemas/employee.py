from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr


class EmployeeDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: EmailStr
    f_name: str
    m_name: str | None = None
    l_name: str | None = None
    roles: list[str]
    is_active: bool = True


class EmployeeMeResponse(BaseModel):
    employee: EmployeeDTO
    active_role: str
