from __future__ import annotations

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.schemas.common import Flag, PageMeta
from app.schemas.lead import LeadDTO


class RequestedStatus(str, Enum):
    CLOSED = "closed"
    SETTLED = "settled"
    WRITE_OFF = "writeOff"
    PART_PAID = "partPaid"


class ClosedEntryDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID | None = None
    pan: str
    lead_no: str
    loan_no: str
    disbursal_id: UUID | None = None
    is_active: Flag = False
    is_disbursed: Flag = False
    is_verified: Flag = False
    is_closed: Flag = False
    is_settled: Flag = False
    is_write_off: Flag = False
    defaulted: Flag = False
    requested_status: str | None = None
    closing_date: date | None = None
    closing_amount: Decimal | None = None
    utr: str | None = None
    dpd: int | None = None
    partial_paid: list[dict[str, Any]] = Field(default_factory=list)


class ActiveLeadDTO(BaseModel):
    entry: ClosedEntryDTO
    lead: LeadDTO | None = None
    cam: dict[str, Any] = Field(default_factory=dict)
    disbursed_by_name: str | None = None


class ActiveLeadListResponse(PageMeta):
    items: list[ActiveLeadDTO]


class StatusChangeRequest(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    status: RequestedStatus
    closing_date: date | None = None
    amount: Decimal | None = Field(default=None, gt=0)
    utr: str | None = Field(default=None, max_length=100)
    dpd: int | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _require_payment_details(self) -> "StatusChangeRequest":
        if self.status == RequestedStatus.PART_PAID.value and (self.amount is None or not self.utr):
            raise ValueError("partPaid requires amount and utr")
        return self


class PaymentVerifyRequest(BaseModel):
    status: str = Field(min_length=1, max_length=20)
    utr: str | None = Field(default=None, max_length=100)


class PaymentRejectRequest(BaseModel):
    utr: str = Field(min_length=1, max_length=100)


class AccountActionResponse(BaseModel):
    entry: ClosedEntryDTO
    message: str
