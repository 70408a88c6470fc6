from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from app.schemas.lead import PAN_PATTERN


class VerificationResponse(BaseModel):
    success: bool
    message: str


class MobileOtpRequest(BaseModel):
    f_name: str = Field(min_length=1, max_length=100)
    l_name: str | None = Field(default=None, max_length=100)
    mobile: str = Field(min_length=10, max_length=15)


class MobileOtpVerifyRequest(BaseModel):
    mobile: str | None = None
    otp: str | None = None


class CibilResponse(BaseModel):
    success: bool = True
    value: str


class AadhaarOtpRequest(BaseModel):
    aadhaar: str | None = None


class AadhaarOtpResponse(BaseModel):
    success: bool = True
    transaction_id: str
    fwdp: str
    code_verifier: str


class AadhaarOtpVerifyRequest(BaseModel):
    otp: str | None = None
    transaction_id: str | None = None
    fwdp: str | None = None
    code_verifier: str | None = None


class AadhaarDetailsResponse(BaseModel):
    success: bool = True
    details: dict[str, Any]


class PanVerifyRequest(BaseModel):
    pan: str = Field(min_length=1, max_length=10)
    first_name: str | None = None
    last_name: str | None = None
    gender: str | None = None
    dob: str | None = Field(default=None, description="DD/MM/YYYY as returned by the PAN provider")


class PanVerifyResponse(BaseModel):
    verified: bool = True
    data: dict[str, Any]


class BorrowerPanRequest(BaseModel):
    pan: str = Field(min_length=1, max_length=10)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(default="", max_length=100)
    gender: str = Field(min_length=1, max_length=10)
    dob: str = Field(description="DD/MM/YYYY as returned by the PAN provider")


class PanSaveRequest(BaseModel):
    data: dict[str, Any]


__all__ = [
    "AadhaarDetailsResponse",
    "AadhaarOtpRequest",
    "AadhaarOtpResponse",
    "AadhaarOtpVerifyRequest",
    "BorrowerPanRequest",
    "CibilResponse",
    "MobileOtpRequest",
    "MobileOtpVerifyRequest",
    "PAN_PATTERN",
    "PanSaveRequest",
    "PanVerifyRequest",
    "PanVerifyResponse",
    "VerificationResponse",
]
