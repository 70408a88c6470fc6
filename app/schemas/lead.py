from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.schemas.common import Flag, PageMeta


PAN_PATTERN = r"^[A-Z]{5}[0-9]{4}[A-Z]$"


class Gender(str, Enum):
    MALE = "M"
    FEMALE = "F"
    OTHER = "O"


class LeadSource(str, Enum):
    WEBSITE = "website"
    BULK = "bulk"
    LANDING_PAGE = "landingPage"
    WHATSAPP = "whatsapp"
    APP = "app"


class LeadCreateRequest(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    f_name: str = Field(min_length=1, max_length=200)
    m_name: str | None = Field(default=None, max_length=100)
    l_name: str | None = Field(default=None, max_length=100)
    gender: Gender
    dob: date
    aadhaar: str = Field(pattern=r"^\d{12}$")
    pan: str = Field(pattern=PAN_PATTERN)
    mobile: str = Field(min_length=10, max_length=15)
    alternate_mobile: str | None = Field(default=None, max_length=15)
    personal_email: EmailStr
    office_email: EmailStr
    loan_amount: Decimal = Field(gt=0)
    salary: Decimal = Field(ge=0)
    pin_code: str = Field(min_length=6, max_length=10)
    state: str = Field(min_length=1, max_length=100)
    city: str = Field(min_length=1, max_length=100)
    source: LeadSource = LeadSource.WEBSITE

    @field_validator("f_name", "state", "city")
    @classmethod
    def _strip(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("must not be blank")
        return cleaned

    @field_validator("pan", mode="before")
    @classmethod
    def _upper_pan(cls, value):
        return value.strip().upper() if isinstance(value, str) else value


class AppLeadCreateRequest(LeadCreateRequest):
    """Lead submitted from the borrower app, which sends gender spelled out."""

    source: LeadSource = LeadSource.APP

    @field_validator("gender", mode="before")
    @classmethod
    def _gender_code(cls, value):
        if not isinstance(value, str):
            return value
        return {"MALE": "M", "M": "M", "FEMALE": "F", "F": "F"}.get(value.strip().upper(), "O")


class LeadUpdateRequest(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    f_name: str | None = Field(default=None, min_length=1, max_length=100)
    m_name: str | None = Field(default=None, max_length=100)
    l_name: str | None = Field(default=None, max_length=100)
    gender: Gender | None = None
    dob: date | None = None
    alternate_mobile: str | None = Field(default=None, max_length=15)
    personal_email: EmailStr | None = None
    office_email: EmailStr | None = None
    loan_amount: Decimal | None = Field(default=None, gt=0)
    salary: Decimal | None = Field(default=None, ge=0)
    pin_code: str | None = Field(default=None, min_length=6, max_length=10)
    state: str | None = Field(default=None, min_length=1, max_length=100)
    city: str | None = Field(default=None, min_length=1, max_length=100)

    @field_validator(
        "f_name",
        "gender",
        "dob",
        "personal_email",
        "office_email",
        "loan_amount",
        "salary",
        "pin_code",
        "state",
        "city",
        mode="before",
    )
    @classmethod
    def _required_when_sent(cls, value):
        # omitted fields stay untouched; an explicit null would blank a required column
        if value is None:
            raise ValueError("must not be null")
        return value


class LeadDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    lead_no: str
    f_name: str
    m_name: str | None = None
    l_name: str | None = None
    gender: str
    dob: date
    pan: str
    cibil_score: str | None = None
    mobile: str
    alternate_mobile: str | None = None
    personal_email: str
    office_email: str
    loan_amount: Decimal
    salary: Decimal
    pin_code: str
    state: str
    city: str
    source: str | None = None
    screener_id: UUID | None = None
    lead_status_id: UUID | None = None
    documents_id: UUID | None = None
    is_mobile_verified: Flag = False
    is_email_verified: Flag = False
    is_aadhaar_verified: Flag = False
    is_aadhaar_details_saved: Flag = False
    is_pan_verified: Flag = False
    on_hold: Flag = False
    held_by: UUID | None = None
    is_rejected: Flag = False
    rejected_by: UUID | None = None
    is_recommended: Flag = False
    recommended_by: UUID | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class LeadListResponse(PageMeta):
    items: list[LeadDTO]


class LeadStatusDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    pan: str
    lead_no: str
    stage: str
    is_in_process: Flag = False
    is_rejected: Flag = False
    is_on_hold: Flag = False
    is_approved: Flag = False
    is_disbursed: Flag = False
    is_closed: Flag = False


class LeadLogDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID | None = None
    lead_id: UUID
    actor_id: UUID | None = None
    status: str
    borrower: str
    lead_remark: str | None = None
    reason: str | None = None
    changes: dict | None = None
    created_at: datetime | None = None


class LeadLogListResponse(BaseModel):
    items: list[LeadLogDTO]
    total: int


class LeadActionResponse(BaseModel):
    lead: LeadDTO
    log: LeadLogDTO | None = None


class RejectedListResponse(PageMeta):
    stage: str
    items: list[dict]


class StageActionResponse(BaseModel):
    stage: str
    record: dict[str, Any]
    log: LeadLogDTO | None = None
