from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.common import Flag, PageMeta
from app.schemas.lead import LeadDTO


class ApplicationDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    lead_id: UUID
    lead_no: str
    pan: str
    applicant_id: UUID | None = None
    credit_manager_id: UUID | None = None
    on_hold: Flag = False
    held_by: UUID | None = None
    is_rejected: Flag = False
    rejected_by: UUID | None = None
    is_recommended: Flag = False
    recommended_by: UUID | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ApplicationDetailDTO(ApplicationDTO):
    lead: LeadDTO | None = None


class ApplicationListResponse(PageMeta):
    items: list[ApplicationDetailDTO]


class ApplicationAllocateRequest(BaseModel):
    credit_manager_id: UUID | None = None


class CamDetailsDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID | None = None
    lead_id: UUID
    lead_no: str
    details: dict[str, Any] = Field(default_factory=dict)
    updated_at: datetime | None = None


class CamUpdateRequest(BaseModel):
    details: dict[str, Any] = Field(min_length=1)


class ApplicantDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    pan: str
    personal_details: dict[str, Any] = Field(default_factory=dict)
    residence: dict[str, Any] = Field(default_factory=dict)
    employment: dict[str, Any] = Field(default_factory=dict)


class ApplicantUpdateRequest(BaseModel):
    personal_details: dict[str, Any] | None = None
    residence: dict[str, Any] | None = None
    employment: dict[str, Any] | None = None


class BankVerifyRequest(BaseModel):
    beneficiary_name: str = Field(min_length=1, max_length=200)
    bank_acc_no: str = Field(min_length=6, max_length=30, pattern=r"^\d+$")
    confirm_bank_acc_no: str | None = None
    ifsc_code: str = Field(pattern=r"^[A-Z]{4}0[A-Z0-9]{6}$")
    account_type: str = Field(min_length=1, max_length=20)
    bank_name: str = Field(min_length=1, max_length=200)
    branch_name: str | None = Field(default=None, max_length=200)


class ApplicantBankDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    applicant_id: UUID
    beneficiary_name: str
    bank_acc_no: str
    ifsc_code: str
    account_type: str
    bank_name: str
    branch_name: str | None = None
    is_verified: Flag = False


class ApplicantBankListResponse(BaseModel):
    items: list[ApplicantBankDTO]
    total: int


class ApplicationActionResponse(BaseModel):
    application: ApplicationDTO
    message: str | None = None
