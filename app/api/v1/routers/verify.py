from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.limiter import limiter, otp_limit
from app.schemas.application import ApplicantBankDTO, BankVerifyRequest
from app.schemas.verification import (
    AadhaarDetailsResponse,
    AadhaarOtpRequest,
    AadhaarOtpResponse,
    AadhaarOtpVerifyRequest,
    CibilResponse,
    MobileOtpRequest,
    MobileOtpVerifyRequest,
    PanVerifyRequest,
    PanVerifyResponse,
    VerificationResponse,
)
from app.services import applicants, verification

router = APIRouter(prefix="/verify", tags=["verification"])


@router.patch("/email/{lead_id}", response_model=VerificationResponse)
async def verify_email(
    lead_id: UUID,
    actor: deps.EmployeeContext = Depends(deps.get_employee_context),
    db: AsyncSession = Depends(deps.get_db_session),
) -> VerificationResponse:
    await verification.verify_email(db, actor, lead_id)
    return VerificationResponse(success=True, message="Email is now verified.")


@router.post("/mobile/get-otp", response_model=VerificationResponse)
@limiter.limit(otp_limit)
async def send_mobile_otp(
    payload: MobileOtpRequest,
    request: Request,
    db: AsyncSession = Depends(deps.get_db_session),
) -> VerificationResponse:
    await verification.send_mobile_otp(db, payload)
    return VerificationResponse(success=True, message="OTP sent successfully!!")


@router.post("/mobile/verify-otp", response_model=VerificationResponse)
@limiter.limit(otp_limit)
async def verify_mobile_otp(
    payload: MobileOtpVerifyRequest,
    request: Request,
    db: AsyncSession = Depends(deps.get_db_session),
) -> VerificationResponse:
    await verification.verify_mobile_otp(db, payload.mobile, payload.otp)
    return VerificationResponse(success=True, message="OTP verified successfully!")


@router.get("/equifax/{lead_id}", response_model=CibilResponse)
async def fetch_cibil(
    lead_id: UUID,
    actor: deps.EmployeeContext = Depends(deps.get_employee_context),
    db: AsyncSession = Depends(deps.get_db_session),
) -> CibilResponse:
    value = await verification.fetch_cibil(db, actor, lead_id)
    return CibilResponse(value=value)


@router.post("/aadhaar/{lead_id}", response_model=AadhaarOtpResponse)
async def generate_aadhaar_otp(
    lead_id: UUID,
    payload: AadhaarOtpRequest | None = None,
    actor: deps.EmployeeContext = Depends(deps.get_employee_context),
    db: AsyncSession = Depends(deps.get_db_session),
) -> AadhaarOtpResponse:
    handles = await verification.generate_aadhaar_otp(
        db, actor, lead_id, payload.aadhaar if payload else None
    )
    return AadhaarOtpResponse(**handles)


@router.patch("/aadhaar-otp/{lead_id}", response_model=AadhaarDetailsResponse)
async def verify_aadhaar_otp(
    lead_id: UUID,
    payload: AadhaarOtpVerifyRequest,
    actor: deps.EmployeeContext = Depends(deps.get_employee_context),
    db: AsyncSession = Depends(deps.get_db_session),
) -> AadhaarDetailsResponse:
    details = await verification.verify_aadhaar_otp(db, actor, lead_id, payload)
    return AadhaarDetailsResponse(details=details)


@router.post("/pan/{lead_id}", response_model=PanVerifyResponse)
async def verify_pan(
    lead_id: UUID,
    payload: PanVerifyRequest,
    actor: deps.EmployeeContext = Depends(deps.get_employee_context),
    db: AsyncSession = Depends(deps.get_db_session),
) -> PanVerifyResponse:
    data = await verification.verify_pan(db, actor, lead_id, payload)
    return PanVerifyResponse(data=data)


@router.post("/bank/{applicant_id}", response_model=ApplicantBankDTO, status_code=status.HTTP_201_CREATED)
async def verify_bank(
    applicant_id: UUID,
    payload: BankVerifyRequest,
    _: deps.EmployeeContext = Depends(deps.get_employee_context),
    db: AsyncSession = Depends(deps.get_db_session),
) -> ApplicantBankDTO:
    bank = await applicants.verify_bank(db, applicant_id, payload)
    return ApplicantBankDTO.model_validate(bank)
