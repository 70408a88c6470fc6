import secrets
from uuid import UUID

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.api.v1.routers.stage_actions import build_stage_actions
from app.core.limiter import limiter, public_limit
from app.core.permissions import WorkflowStage
from app.core.settings import settings
from app.schemas.application import ApplicationDTO
from app.schemas.common import PageParams, page_meta
from app.schemas.lead import LeadDTO
from app.schemas.sanction import (
    ESignCompleteRequest,
    SanctionActionResponse,
    SanctionDetailDTO,
    SanctionDTO,
    SanctionedItemDTO,
    SanctionedListResponse,
    SanctionLetterDTO,
    SanctionListResponse,
)
from app.services import sanctions

router = APIRouter(prefix="/sanction", tags=["sanction"])


def _detail(row) -> SanctionDetailDTO:
    sanction, application, lead, recommender = row
    dto = SanctionDetailDTO.model_validate(sanction)
    dto.application = ApplicationDTO.model_validate(application)
    dto.lead = LeadDTO.model_validate(lead)
    dto.recommended_by_name = recommender.full_name if recommender is not None else None
    return dto


def _page(rows, total: int, params: PageParams) -> SanctionListResponse:
    return SanctionListResponse(items=[_detail(row) for row in rows], **page_meta(total, params))


async def _verify_callback_token(token: str | None = Header(default=None, alias="X-Esign-Token")) -> None:
    expected = settings.esign_callback_token
    if not expected or not token or not secrets.compare_digest(token, expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid e-sign callback token")


@router.get("/pending", response_model=SanctionListResponse, summary="Sanctions awaiting approval")
async def list_pending_sanctions(
    params: PageParams = Depends(deps.page_params),
    actor: deps.EmployeeContext = Depends(deps.get_employee_context),
    db: AsyncSession = Depends(deps.get_db_session),
) -> SanctionListResponse:
    rows, total = await sanctions.list_pending_sanctions(db, actor, params)
    return _page(rows, total, params)


@router.get("/eSignPending", response_model=SanctionListResponse, summary="Approved sanctions not yet e-signed")
async def list_esign_pending(
    params: PageParams = Depends(deps.page_params),
    actor: deps.EmployeeContext = Depends(deps.get_employee_context),
    db: AsyncSession = Depends(deps.get_db_session),
) -> SanctionListResponse:
    rows, total = await sanctions.list_esign_pending(db, actor, params)
    return _page(rows, total, params)


@router.get("/recommended", response_model=SanctionListResponse, summary="Recommended sanctions")
async def list_recommended(
    params: PageParams = Depends(deps.page_params),
    actor: deps.EmployeeContext = Depends(deps.get_employee_context),
    db: AsyncSession = Depends(deps.get_db_session),
) -> SanctionListResponse:
    rows, total = await sanctions.list_recommended(db, actor, params)
    return _page(rows, total, params)


@router.get("/approved", response_model=SanctionedListResponse, summary="Sanctioned loans")
async def list_sanctioned(
    params: PageParams = Depends(deps.page_params),
    actor: deps.EmployeeContext = Depends(deps.get_employee_context),
    db: AsyncSession = Depends(deps.get_db_session),
) -> SanctionedListResponse:
    rows, total = await sanctions.list_sanctioned(db, actor, params)
    items = [
        SanctionedItemDTO(
            sanction=SanctionDTO.model_validate(sanction),
            lead=LeadDTO.model_validate(lead),
            cam=(cam_details.details if cam_details is not None else None) or {},
            recommended_by_name=recommender.full_name if recommender is not None else None,
        )
        for sanction, lead, cam_details, recommender in rows
    ]
    return SanctionedListResponse(items=items, **page_meta(total, params))


@router.get("/preview/{sanction_id}", response_model=SanctionLetterDTO, summary="Sanction letter data")
async def sanction_preview(
    sanction_id: UUID,
    actor: deps.EmployeeContext = Depends(deps.get_employee_context),
    db: AsyncSession = Depends(deps.get_db_session),
) -> SanctionLetterDTO:
    return SanctionLetterDTO(**await sanctions.sanction_preview(db, actor, sanction_id))


@router.patch("/approve/{sanction_id}", response_model=SanctionActionResponse, summary="Approve and allot a loan number")
async def approve_sanction(
    sanction_id: UUID,
    actor: deps.EmployeeContext = Depends(deps.get_employee_context),
    db: AsyncSession = Depends(deps.get_db_session),
) -> SanctionActionResponse:
    sanction, log = await sanctions.approve_sanction(db, actor, sanction_id)
    return SanctionActionResponse(sanction=SanctionDTO.model_validate(sanction), message=log.status)


@router.patch("/sendESign/{sanction_id}", response_model=SanctionActionResponse, summary="Send the sanction letter for e-sign")
async def send_esign(
    sanction_id: UUID,
    actor: deps.EmployeeContext = Depends(deps.get_employee_context),
    db: AsyncSession = Depends(deps.get_db_session),
) -> SanctionActionResponse:
    sanction, _disbursal, log = await sanctions.send_esign(db, actor, sanction_id)
    return SanctionActionResponse(sanction=SanctionDTO.model_validate(sanction), message=log.status)


@router.post(
    "/esign/{loan_no}/complete",
    response_model=SanctionActionResponse,
    dependencies=[Depends(_verify_callback_token)],
    summary="E-sign provider callback",
)
@limiter.limit(public_limit)
async def complete_esign(
    loan_no: str,
    request: Request,
    payload: ESignCompleteRequest | None = None,
    db: AsyncSession = Depends(deps.get_db_session),
) -> SanctionActionResponse:
    sanction = await sanctions.complete_esign(db, loan_no, payload.reference if payload else None)
    return SanctionActionResponse(sanction=SanctionDTO.model_validate(sanction), message="Sanction letter e-signed.")


router.include_router(build_stage_actions(WorkflowStage.SANCTION))


@router.get("/{sanction_id}", response_model=SanctionDetailDTO, summary="Sanction detail")
async def get_sanction(
    sanction_id: UUID,
    _: deps.EmployeeContext = Depends(deps.get_employee_context),
    db: AsyncSession = Depends(deps.get_db_session),
) -> SanctionDetailDTO:
    return _detail(await sanctions.get_sanction(db, sanction_id))
