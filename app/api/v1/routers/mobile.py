from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.limiter import limiter, otp_limit, public_limit
from app.schemas.lead import AppLeadCreateRequest, LeadActionResponse, LeadDTO, LeadLogDTO
from app.schemas.verification import (
    AadhaarDetailsResponse,
    AadhaarOtpRequest,
    AadhaarOtpResponse,
    AadhaarOtpVerifyRequest,
    BorrowerPanRequest,
    PanSaveRequest,
    PanVerifyResponse,
    VerificationResponse,
)
from app.services import mobile

router = APIRouter(prefix="/mobile", tags=["mobile"])


@router.post("/verify/aadhaar", response_model=AadhaarOtpResponse, summary="Send an Aadhaar OTP to the borrower")
@limiter.limit(otp_limit)
async def request_aadhaar_otp(payload: AadhaarOtpRequest, request: Request) -> AadhaarOtpResponse:
    handles = await mobile.request_aadhaar_otp(payload.aadhaar)
    return AadhaarOtpResponse(**handles)


@router.patch("/verify/aadhaar-otp", response_model=AadhaarDetailsResponse, summary="Confirm the Aadhaar OTP")
@limiter.limit(otp_limit)
async def save_aadhaar_details(
    payload: AadhaarOtpVerifyRequest,
    request: Request,
    db: AsyncSession = Depends(deps.get_db_session),
) -> AadhaarDetailsResponse:
    details = await mobile.save_aadhaar_details(db, payload)
    return AadhaarDetailsResponse(details=details)


@router.post("/verify/pan", response_model=PanVerifyResponse, summary="Match the borrower against their PAN")
@limiter.limit(public_limit)
async def verify_pan(
    payload: BorrowerPanRequest,
    request: Request,
    db: AsyncSession = Depends(deps.get_db_session),
) -> PanVerifyResponse:
    data = await mobile.verify_pan(db, payload)
    return PanVerifyResponse(data=data)


@router.post("/verify/pan/save", response_model=VerificationResponse, summary="Keep confirmed PAN details")
@limiter.limit(public_limit)
async def save_pan_details(
    payload: PanSaveRequest,
    request: Request,
    db: AsyncSession = Depends(deps.get_db_session),
) -> VerificationResponse:
    await mobile.save_pan_details(db, payload.data)
    return VerificationResponse(success=True, message="PAN details saved.")


@router.post("/leads", response_model=LeadActionResponse, status_code=status.HTTP_201_CREATED, summary="Apply from the app")
@limiter.limit(public_limit)
async def create_lead(
    payload: AppLeadCreateRequest,
    request: Request,
    db: AsyncSession = Depends(deps.get_db_session),
) -> LeadActionResponse:
    lead, log = await mobile.create_app_lead(db, payload)
    return LeadActionResponse(lead=LeadDTO.model_validate(lead), log=LeadLogDTO.model_validate(log))
