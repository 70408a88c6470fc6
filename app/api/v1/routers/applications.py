from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.api.v1.routers.stage_actions import build_stage_actions
from app.core.permissions import WorkflowStage
from app.schemas.application import (
    ApplicationActionResponse,
    ApplicationAllocateRequest,
    ApplicationDetailDTO,
    ApplicationDTO,
    ApplicationListResponse,
    CamDetailsDTO,
    CamUpdateRequest,
)
from app.schemas.common import PageParams, page_meta
from app.schemas.lead import LeadDTO
from app.schemas.sanction import SanctionActionResponse, SanctionDTO
from app.services import applications

router = APIRouter(prefix="/applications", tags=["applications"])


def _detail(application, lead) -> ApplicationDetailDTO:
    dto = ApplicationDetailDTO.model_validate(application)
    dto.lead = LeadDTO.model_validate(lead) if lead is not None else None
    return dto


@router.get("", response_model=ApplicationListResponse, summary="Unallocated applications")
async def list_new_applications(
    params: PageParams = Depends(deps.page_params),
    actor: deps.EmployeeContext = Depends(deps.get_employee_context),
    db: AsyncSession = Depends(deps.get_db_session),
) -> ApplicationListResponse:
    rows, total = await applications.list_new_applications(db, actor, params)
    return ApplicationListResponse(
        items=[_detail(application, lead) for application, lead in rows],
        **page_meta(total, params),
    )


@router.get("/allocated", response_model=ApplicationListResponse, summary="Applications under appraisal")
async def list_allocated_applications(
    params: PageParams = Depends(deps.page_params),
    actor: deps.EmployeeContext = Depends(deps.get_employee_context),
    db: AsyncSession = Depends(deps.get_db_session),
) -> ApplicationListResponse:
    rows, total = await applications.list_allocated_applications(db, actor, params)
    return ApplicationListResponse(
        items=[_detail(application, lead) for application, lead in rows],
        **page_meta(total, params),
    )


@router.get("/cam/{application_id}", response_model=CamDetailsDTO, summary="Credit appraisal memo")
async def get_cam(
    application_id: UUID,
    _: deps.EmployeeContext = Depends(deps.get_employee_context),
    db: AsyncSession = Depends(deps.get_db_session),
) -> CamDetailsDTO:
    return CamDetailsDTO.model_validate(await applications.get_cam(db, application_id))


@router.patch("/cam/{application_id}", response_model=CamDetailsDTO, summary="Update the credit appraisal memo")
async def update_cam(
    application_id: UUID,
    payload: CamUpdateRequest,
    actor: deps.EmployeeContext = Depends(deps.get_employee_context),
    db: AsyncSession = Depends(deps.get_db_session),
) -> CamDetailsDTO:
    cam_details, _log = await applications.update_cam(db, actor, application_id, payload.details)
    return CamDetailsDTO.model_validate(cam_details)


@router.patch("/recommended/{application_id}", response_model=SanctionActionResponse, summary="Forward to sanction")
async def recommend_application(
    application_id: UUID,
    actor: deps.EmployeeContext = Depends(deps.get_employee_context),
    db: AsyncSession = Depends(deps.get_db_session),
) -> SanctionActionResponse:
    sanction, log = await applications.recommend_application(db, actor, application_id)
    return SanctionActionResponse(sanction=SanctionDTO.model_validate(sanction), message=log.status)


router.include_router(build_stage_actions(WorkflowStage.APPLICATION))


@router.get("/{application_id}", response_model=ApplicationDetailDTO, summary="Application detail")
async def get_application(
    application_id: UUID,
    _: deps.EmployeeContext = Depends(deps.get_employee_context),
    db: AsyncSession = Depends(deps.get_db_session),
) -> ApplicationDetailDTO:
    application, lead = await applications.get_application(db, application_id)
    return _detail(application, lead)


@router.patch("/{application_id}", response_model=ApplicationActionResponse, summary="Allocate an application")
async def allocate_application(
    application_id: UUID,
    payload: ApplicationAllocateRequest | None = None,
    actor: deps.EmployeeContext = Depends(deps.get_employee_context),
    db: AsyncSession = Depends(deps.get_db_session),
) -> ApplicationActionResponse:
    application, log = await applications.allocate_application(
        db, actor, application_id, payload.credit_manager_id if payload else None
    )
    return ApplicationActionResponse(application=ApplicationDTO.model_validate(application), message=log.lead_remark)
