from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.schemas.application import (
    ApplicantBankDTO,
    ApplicantBankListResponse,
    ApplicantDTO,
    ApplicantUpdateRequest,
    BankVerifyRequest,
)
from app.services import applicants

router = APIRouter(prefix="/applicant", tags=["applicant"])


@router.get("/{applicant_id}/banks", response_model=ApplicantBankListResponse, summary="Verified bank accounts")
async def get_banks(
    applicant_id: UUID,
    _: deps.EmployeeContext = Depends(deps.get_employee_context),
    db: AsyncSession = Depends(deps.get_db_session),
) -> ApplicantBankListResponse:
    banks = await applicants.get_banks(db, applicant_id)
    return ApplicantBankListResponse(items=[ApplicantBankDTO.model_validate(bank) for bank in banks], total=len(banks))


@router.get("/{applicant_id}", response_model=ApplicantDTO, summary="Applicant profile")
async def get_applicant(
    applicant_id: UUID,
    _: deps.EmployeeContext = Depends(deps.get_employee_context),
    db: AsyncSession = Depends(deps.get_db_session),
) -> ApplicantDTO:
    applicant = await applicants.get_applicant(db, applicant_id)
    return ApplicantDTO.model_validate(applicant)


@router.patch("/bankDetails/{applicant_id}", response_model=ApplicantBankDTO, summary="Re-verify and replace the bank account")
async def update_bank(
    applicant_id: UUID,
    payload: BankVerifyRequest,
    _: deps.EmployeeContext = Depends(deps.get_employee_context),
    db: AsyncSession = Depends(deps.get_db_session),
) -> ApplicantBankDTO:
    bank = await applicants.update_bank(db, applicant_id, payload)
    return ApplicantBankDTO.model_validate(bank)


@router.patch("/{application_id}", response_model=ApplicantDTO, summary="Update applicant details")
async def update_applicant(
    application_id: UUID,
    payload: ApplicantUpdateRequest,
    actor: deps.EmployeeContext = Depends(deps.get_employee_context),
    db: AsyncSession = Depends(deps.get_db_session),
) -> ApplicantDTO:
    applicant = await applicants.update_applicant(db, actor, application_id, payload)
    return ApplicantDTO.model_validate(applicant)
