from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.api.v1.routers.stage_actions import build_stage_actions, serialize_record
from app.core.limiter import limiter, public_limit
from app.core.permissions import WorkflowStage
from app.schemas.application import ApplicationActionResponse, ApplicationDTO
from app.schemas.common import PageParams, page_meta
from app.schemas.lead import (
    LeadActionResponse,
    LeadCreateRequest,
    LeadDTO,
    LeadListResponse,
    LeadLogDTO,
    LeadLogListResponse,
    LeadUpdateRequest,
    RejectedListResponse,
)
from app.services import lead_logs, leads, rejections

router = APIRouter(prefix="/leads", tags=["leads"])


@router.post("", response_model=LeadActionResponse, status_code=status.HTTP_201_CREATED, summary="Capture a lead")
@limiter.limit(public_limit)
async def create_lead(
    payload: LeadCreateRequest,
    request: Request,
    db: AsyncSession = Depends(deps.get_db_session),
) -> LeadActionResponse:
    lead, log = await leads.create_lead(db, payload)
    return LeadActionResponse(lead=LeadDTO.model_validate(lead), log=LeadLogDTO.model_validate(log))


@router.get("", response_model=LeadListResponse, summary="Unallocated leads")
async def list_new_leads(
    params: PageParams = Depends(deps.page_params),
    _: deps.EmployeeContext = Depends(deps.get_employee_context),
    db: AsyncSession = Depends(deps.get_db_session),
) -> LeadListResponse:
    items, total = await leads.list_new_leads(db, params)
    return LeadListResponse(items=[LeadDTO.model_validate(lead) for lead in items], **page_meta(total, params))


@router.get("/allocated", response_model=LeadListResponse, summary="Leads in screening")
async def list_allocated_leads(
    params: PageParams = Depends(deps.page_params),
    actor: deps.EmployeeContext = Depends(deps.get_employee_context),
    db: AsyncSession = Depends(deps.get_db_session),
) -> LeadListResponse:
    items, total = await leads.list_allocated_leads(db, actor, params)
    return LeadListResponse(items=[LeadDTO.model_validate(lead) for lead in items], **page_meta(total, params))


@router.get("/rejected", response_model=RejectedListResponse, summary="Rejected records for the active role's stage")
async def list_rejected(
    stage: WorkflowStage | None = Query(None),
    params: PageParams = Depends(deps.page_params),
    actor: deps.EmployeeContext = Depends(deps.get_employee_context),
    db: AsyncSession = Depends(deps.get_db_session),
) -> RejectedListResponse:
    resolved, items, total = await rejections.list_rejected(db, actor, params, stage)
    return RejectedListResponse(
        stage=resolved.value,
        items=[serialize_record(resolved, record) for record in items],
        **page_meta(total, params),
    )


@router.patch("/update/{lead_id}", response_model=LeadActionResponse, summary="Edit lead details")
async def update_lead(
    lead_id: UUID,
    payload: LeadUpdateRequest,
    actor: deps.EmployeeContext = Depends(deps.get_employee_context),
    db: AsyncSession = Depends(deps.get_db_session),
) -> LeadActionResponse:
    lead, log = await leads.update_lead(db, actor, lead_id, payload)
    return LeadActionResponse(lead=LeadDTO.model_validate(lead), log=LeadLogDTO.model_validate(log))


@router.patch("/recommend/{lead_id}", response_model=ApplicationActionResponse, summary="Forward a lead to credit")
async def recommend_lead(
    lead_id: UUID,
    actor: deps.EmployeeContext = Depends(deps.get_employee_context),
    db: AsyncSession = Depends(deps.get_db_session),
) -> ApplicationActionResponse:
    application, log = await leads.recommend_lead(db, actor, lead_id)
    return ApplicationActionResponse(application=ApplicationDTO.model_validate(application), message=log.status)


router.include_router(build_stage_actions(WorkflowStage.LEAD))


@router.get("/{lead_id}", response_model=LeadDTO, summary="Lead detail")
async def get_lead(
    lead_id: UUID,
    _: deps.EmployeeContext = Depends(deps.get_employee_context),
    db: AsyncSession = Depends(deps.get_db_session),
) -> LeadDTO:
    return LeadDTO.model_validate(await leads.get_lead(db, lead_id))


@router.get("/{lead_id}/logs", response_model=LeadLogListResponse, summary="Lead audit trail")
async def list_lead_logs(
    lead_id: UUID,
    _: deps.EmployeeContext = Depends(deps.get_employee_context),
    db: AsyncSession = Depends(deps.get_db_session),
) -> LeadLogListResponse:
    await leads.get_lead(db, lead_id)
    logs = await lead_logs.list_lead_logs(db, lead_id)
    return LeadLogListResponse(items=[LeadLogDTO.model_validate(log) for log in logs], total=len(logs))


@router.patch("/{lead_id}", response_model=LeadActionResponse, summary="Take a lead for screening")
async def allocate_lead(
    lead_id: UUID,
    actor: deps.EmployeeContext = Depends(deps.get_employee_context),
    db: AsyncSession = Depends(deps.get_db_session),
) -> LeadActionResponse:
    lead, log = await leads.allocate_lead(db, actor, lead_id)
    return LeadActionResponse(lead=LeadDTO.model_validate(lead), log=LeadLogDTO.model_validate(log))
