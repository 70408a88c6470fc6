from fastapi import APIRouter, Depends

from app.api import deps
from app.schemas.employee import EmployeeDTO, EmployeeMeResponse

router = APIRouter(prefix="/employees", tags=["employees"])


@router.get("/me", response_model=EmployeeMeResponse, summary="Current employee and active role")
async def read_me(actor: deps.EmployeeContext = Depends(deps.get_employee_context)) -> EmployeeMeResponse:
    return EmployeeMeResponse(employee=EmployeeDTO.model_validate(actor.employee), active_role=actor.active_role)
