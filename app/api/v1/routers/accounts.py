from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.schemas.account import (
    AccountActionResponse,
    ActiveLeadDTO,
    ActiveLeadListResponse,
    ClosedEntryDTO,
    PaymentRejectRequest,
    PaymentVerifyRequest,
    StatusChangeRequest,
)
from app.schemas.common import PageParams, page_meta
from app.schemas.lead import LeadDTO
from app.services import collections

router = APIRouter(prefix="/accounts", tags=["accounts"])


def _active(row) -> ActiveLeadDTO:
    entry, lead, cam_details, _disbursal, disburser = row
    return ActiveLeadDTO(
        entry=ClosedEntryDTO.model_validate(entry),
        lead=LeadDTO.model_validate(lead) if lead is not None else None,
        cam=(cam_details.details if cam_details is not None else None) or {},
        disbursed_by_name=disburser.full_name if disburser is not None else None,
    )


@router.get("/active", response_model=ActiveLeadListResponse, summary="Running loans")
async def list_active_leads(
    params: PageParams = Depends(deps.page_params),
    actor: deps.EmployeeContext = Depends(deps.get_employee_context),
    db: AsyncSession = Depends(deps.get_db_session),
) -> ActiveLeadListResponse:
    rows, total = await collections.list_active_leads(db, actor, params)
    return ActiveLeadListResponse(items=[_active(row) for row in rows], **page_meta(total, params))


@router.get("/active/verify", response_model=ActiveLeadListResponse, summary="Payments awaiting verification")
async def list_to_verify(
    params: PageParams = Depends(deps.page_params),
    actor: deps.EmployeeContext = Depends(deps.get_employee_context),
    db: AsyncSession = Depends(deps.get_db_session),
) -> ActiveLeadListResponse:
    rows, total = await collections.list_to_verify(db, actor, params)
    return ActiveLeadListResponse(items=[_active(row) for row in rows], **page_meta(total, params))


@router.patch(
    "/active/verify/reject/{loan_no}",
    response_model=AccountActionResponse,
    summary="Reject a payment verification request",
)
async def reject_payment_verification(
    loan_no: str,
    payload: PaymentRejectRequest,
    actor: deps.EmployeeContext = Depends(deps.get_employee_context),
    db: AsyncSession = Depends(deps.get_db_session),
) -> AccountActionResponse:
    entry = await collections.reject_payment_verification(db, actor, loan_no, payload.utr)
    return AccountActionResponse(entry=ClosedEntryDTO.model_validate(entry), message="Payment verification rejected.")


@router.patch("/active/verify/{loan_no}", response_model=AccountActionResponse, summary="Verify a payment")
async def verify_active_lead(
    loan_no: str,
    payload: PaymentVerifyRequest,
    actor: deps.EmployeeContext = Depends(deps.get_employee_context),
    db: AsyncSession = Depends(deps.get_db_session),
) -> AccountActionResponse:
    entry, message = await collections.verify_active_lead(db, actor, loan_no, payload.status, payload.utr)
    return AccountActionResponse(entry=ClosedEntryDTO.model_validate(entry), message=message)


@router.get("/active/{loan_no}", response_model=ActiveLeadDTO, summary="Running loan detail")
async def get_active_lead(
    loan_no: str,
    _: deps.EmployeeContext = Depends(deps.get_employee_context),
    db: AsyncSession = Depends(deps.get_db_session),
) -> ActiveLeadDTO:
    return _active(await collections.get_active_lead(db, loan_no))


@router.patch("/active/{loan_no}", response_model=AccountActionResponse, summary="Request a payment status change")
async def request_status(
    loan_no: str,
    payload: StatusChangeRequest,
    actor: deps.EmployeeContext = Depends(deps.get_employee_context),
    db: AsyncSession = Depends(deps.get_db_session),
) -> AccountActionResponse:
    entry = await collections.request_status(db, actor, loan_no, payload)
    return AccountActionResponse(entry=ClosedEntryDTO.model_validate(entry), message="Status change requested.")
