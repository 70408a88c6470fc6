from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.api.v1.routers.stage_actions import build_stage_actions
from app.core.permissions import WorkflowStage
from app.schemas.common import PageParams, RemarksRequest, page_meta
from app.schemas.disbursal import (
    DisbursalActionResponse,
    DisbursalApproveRequest,
    DisbursalDetailDTO,
    DisbursalDTO,
    DisbursalListResponse,
)
from app.schemas.lead import LeadDTO
from app.schemas.sanction import SanctionDTO
from app.services import disbursals

router = APIRouter(prefix="/disbursals", tags=["disbursals"])


def _detail(disbursal, sanction, lead, cam_details) -> DisbursalDetailDTO:
    dto = DisbursalDetailDTO.model_validate(disbursal)
    dto.sanction = SanctionDTO.model_validate(sanction)
    dto.lead = LeadDTO.model_validate(lead)
    dto.cam = (cam_details.details if cam_details is not None else None) or {}
    return dto


def _page(rows, total: int, params: PageParams) -> DisbursalListResponse:
    return DisbursalListResponse(items=[_detail(*row[:4]) for row in rows], **page_meta(total, params))


@router.get("", response_model=DisbursalListResponse, summary="E-signed loans awaiting a disbursal manager")
async def list_new_disbursals(
    params: PageParams = Depends(deps.page_params),
    actor: deps.EmployeeContext = Depends(deps.get_employee_context),
    db: AsyncSession = Depends(deps.get_db_session),
) -> DisbursalListResponse:
    rows, total = await disbursals.list_new_disbursals(db, actor, params)
    return _page(rows, total, params)


@router.get("/allocated", response_model=DisbursalListResponse, summary="Disbursals in process")
async def list_allocated_disbursals(
    params: PageParams = Depends(deps.page_params),
    actor: deps.EmployeeContext = Depends(deps.get_employee_context),
    db: AsyncSession = Depends(deps.get_db_session),
) -> DisbursalListResponse:
    rows, total = await disbursals.list_allocated_disbursals(db, actor, params)
    return _page(rows, total, params)


@router.get("/pending", response_model=DisbursalListResponse, summary="Recommended disbursals awaiting payout")
async def list_pending_disbursals(
    params: PageParams = Depends(deps.page_params),
    actor: deps.EmployeeContext = Depends(deps.get_employee_context),
    db: AsyncSession = Depends(deps.get_db_session),
) -> DisbursalListResponse:
    rows, total = await disbursals.list_pending_disbursals(db, actor, params)
    return _page(rows, total, params)


@router.get("/disbursed", response_model=DisbursalListResponse, summary="Paid out loans")
async def list_disbursed(
    params: PageParams = Depends(deps.page_params),
    actor: deps.EmployeeContext = Depends(deps.get_employee_context),
    db: AsyncSession = Depends(deps.get_db_session),
) -> DisbursalListResponse:
    rows, total = await disbursals.list_disbursed(db, actor, params)
    return _page(rows, total, params)


@router.patch("/recommend/{disbursal_id}", response_model=DisbursalActionResponse, summary="Recommend a payout")
async def recommend_disbursal(
    disbursal_id: UUID,
    payload: RemarksRequest | None = None,
    actor: deps.EmployeeContext = Depends(deps.get_employee_context),
    db: AsyncSession = Depends(deps.get_db_session),
) -> DisbursalActionResponse:
    disbursal, log = await disbursals.recommend_disbursal(
        db, actor, disbursal_id, payload.remarks if payload else None
    )
    return DisbursalActionResponse(disbursal=DisbursalDTO.model_validate(disbursal), message=log.status)


@router.patch("/approve/{disbursal_id}", response_model=DisbursalActionResponse, summary="Record the payout")
async def approve_disbursal(
    disbursal_id: UUID,
    payload: DisbursalApproveRequest,
    actor: deps.EmployeeContext = Depends(deps.get_employee_context),
    db: AsyncSession = Depends(deps.get_db_session),
) -> DisbursalActionResponse:
    disbursal, log = await disbursals.approve_disbursal(db, actor, disbursal_id, payload)
    return DisbursalActionResponse(disbursal=DisbursalDTO.model_validate(disbursal), message=log.status)


router.include_router(build_stage_actions(WorkflowStage.DISBURSAL))


@router.get("/{disbursal_id}", response_model=DisbursalDetailDTO, summary="Disbursal detail")
async def get_disbursal(
    disbursal_id: UUID,
    _: deps.EmployeeContext = Depends(deps.get_employee_context),
    db: AsyncSession = Depends(deps.get_db_session),
) -> DisbursalDetailDTO:
    return _detail(*await disbursals.get_disbursal(db, disbursal_id))


@router.patch("/{disbursal_id}", response_model=DisbursalActionResponse, summary="Take a disbursal")
async def allocate_disbursal(
    disbursal_id: UUID,
    actor: deps.EmployeeContext = Depends(deps.get_employee_context),
    db: AsyncSession = Depends(deps.get_db_session),
) -> DisbursalActionResponse:
    disbursal, log = await disbursals.allocate_disbursal(db, actor, disbursal_id)
    return DisbursalActionResponse(disbursal=DisbursalDTO.model_validate(disbursal), message=log.status)
