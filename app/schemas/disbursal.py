from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.common import Flag, PageMeta
from app.schemas.lead import LeadDTO
from app.schemas.sanction import SanctionDTO


class DisbursalDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    sanction_id: UUID
    pan: str
    lead_no: str
    loan_no: str
    disbursal_manager_id: UUID | None = None
    sanction_e_signed: Flag = False
    is_recommended: Flag = False
    recommended_by: UUID | None = None
    is_approved: Flag = False
    is_disbursed: Flag = False
    disbursed_by: UUID | None = None
    disbursed_at: datetime | None = None
    payable_account: str | None = None
    payment_mode: str | None = None
    amount: Decimal | None = None
    channel: str | None = None
    utr: str | None = None
    remarks: str | None = None
    on_hold: Flag = False
    held_by: UUID | None = None
    is_rejected: Flag = False
    rejected_by: UUID | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class DisbursalDetailDTO(DisbursalDTO):
    sanction: SanctionDTO | None = None
    lead: LeadDTO | None = None
    cam: dict[str, Any] = Field(default_factory=dict)


class DisbursalListResponse(PageMeta):
    items: list[DisbursalDetailDTO]


class DisbursalApproveRequest(BaseModel):
    payable_account: str = Field(min_length=1, max_length=50)
    payment_mode: str = Field(min_length=1, max_length=30)
    amount: Decimal = Field(gt=0)
    channel: str = Field(min_length=1, max_length=30)
    disbursal_date: datetime
    remarks: str = Field(min_length=1, max_length=100, description="Bank UTR of the payout")


class DisbursalActionResponse(BaseModel):
    disbursal: DisbursalDTO
    message: str
