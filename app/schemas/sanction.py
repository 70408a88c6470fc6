from __future__ import annotations

from datetime import date, datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.application import ApplicationDTO
from app.schemas.common import Flag, PageMeta
from app.schemas.lead import LeadDTO


class SanctionDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    application_id: UUID
    pan: str
    lead_no: str
    loan_no: str | None = None
    sanction_date: date | None = None
    recommended_by: UUID | None = None
    approved_by: UUID | None = None
    is_approved: Flag = False
    e_sign_pending: Flag = False
    e_signed: Flag = False
    e_sign_reference: str | None = None
    on_hold: Flag = False
    held_by: UUID | None = None
    is_rejected: Flag = False
    rejected_by: UUID | None = None
    is_disbursed: Flag = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


class SanctionDetailDTO(SanctionDTO):
    application: ApplicationDTO | None = None
    lead: LeadDTO | None = None
    recommended_by_name: str | None = None


class SanctionListResponse(PageMeta):
    items: list[SanctionDetailDTO]


class SanctionLetterDTO(BaseModel):
    sanction_id: UUID
    title: str
    full_name: str
    loan_no: str | None = None
    sanction_date: date
    mobile: str
    personal_email: str
    residence_address: str
    state_country: str
    loan_recommended: Any = None
    roi: Any = None
    eligible_tenure: Any = None
    disbursal_date: Any = None
    repayment_date: Any = None
    repayment_amount: Any = None


class SanctionedItemDTO(BaseModel):
    sanction: SanctionDTO
    lead: LeadDTO
    cam: dict[str, Any] = Field(default_factory=dict)
    recommended_by_name: str | None = None


class SanctionedListResponse(PageMeta):
    items: list[SanctionedItemDTO]


class ESignCompleteRequest(BaseModel):
    reference: str | None = Field(default=None, max_length=100)


class SanctionActionResponse(BaseModel):
    sanction: SanctionDTO
    message: str
