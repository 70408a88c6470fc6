from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from app.api import deps
from app.core.permissions import EmployeeRole, WorkflowStage
from app.models import CamDetails, ClosedEntry, ClosedLedger, Disbursal, Employee, Lead
from app.schemas.account import RequestedStatus, StatusChangeRequest
from app.schemas.common import PageParams
from app.services import lead_logs
from app.services.errors import conflict, not_found
from app.services.records import lead_status_by_lead_no, paginate, require_role

logger = logging.getLogger(__name__)

LOAN_NOT_FOUND = "Loan number not found."

disburser = aliased(Employee)

# Final flags per verified status; every one of them also ends the loan.
_CLOSING_FLAGS: dict[str, dict[str, bool]] = {
    RequestedStatus.SETTLED.value: {"is_settled": True},
    RequestedStatus.CLOSED.value: {"is_closed": True},
    RequestedStatus.WRITE_OFF.value: {"is_write_off": True, "defaulted": True},
}


def _active_view():
    return (
        select(ClosedEntry, Lead, CamDetails, Disbursal, disburser)
        .outerjoin(Lead, Lead.lead_no == ClosedEntry.lead_no)
        .outerjoin(CamDetails, CamDetails.lead_id == Lead.id)
        .outerjoin(Disbursal, Disbursal.id == ClosedEntry.disbursal_id)
        .outerjoin(disburser, disburser.id == Disbursal.disbursed_by)
    )


async def active_entry_for_pan(db: AsyncSession, pan: str) -> ClosedEntry | None:
    result = await db.execute(
        select(ClosedEntry).where(ClosedEntry.pan == pan, ClosedEntry.is_active.is_(True))
    )
    return result.scalars().first()


async def entry_for_loan_no(db: AsyncSession, loan_no: str) -> ClosedEntry | None:
    result = await db.execute(select(ClosedEntry).where(ClosedEntry.loan_no == loan_no))
    return result.scalar_one_or_none()


async def _entry_or_404(db: AsyncSession, loan_no: str) -> ClosedEntry:
    entry = await entry_for_loan_no(db, loan_no)
    if entry is None:
        raise not_found(LOAN_NOT_FOUND, loan_no=loan_no)
    return entry


async def _lead_for_entry(db: AsyncSession, entry: ClosedEntry) -> Lead | None:
    result = await db.execute(select(Lead).where(Lead.lead_no == entry.lead_no))
    return result.scalar_one_or_none()


async def create_active_lead(db: AsyncSession, pan: str, loan_no: str, lead_no: str) -> ClosedEntry:
    """Open a new running-loan entry on the PAN's ledger, creating the ledger on first loan."""
    result = await db.execute(select(ClosedLedger).where(ClosedLedger.pan == pan))
    ledger = result.scalar_one_or_none()
    if ledger is None:
        ledger = ClosedLedger(pan=pan)
        db.add(ledger)
        await db.flush()

    entry = ClosedEntry(
        ledger_id=ledger.id,
        pan=pan,
        lead_no=lead_no,
        loan_no=loan_no,
        is_active=True,
        is_disbursed=False,
        dpd=0,
        partial_paid=[],
    )
    db.add(entry)
    return entry


async def list_active_leads(db: AsyncSession, actor: deps.EmployeeContext, params: PageParams) -> tuple[list, int]:
    require_role(
        actor,
        EmployeeRole.COLLECTION_EXECUTIVE,
        EmployeeRole.ACCOUNT_EXECUTIVE,
        EmployeeRole.ADMIN,
    )
    stmt = (
        _active_view()
        .where(ClosedEntry.is_active.is_(True), ClosedEntry.is_disbursed.is_(True))
        .order_by(ClosedEntry.updated_at.desc())
    )
    return await paginate(db, stmt, params, scalars=False)


async def get_active_lead(db: AsyncSession, loan_no: str) -> Any:
    result = await db.execute(_active_view().where(ClosedEntry.loan_no == loan_no))
    row = result.first()
    if row is None:
        raise not_found(LOAN_NOT_FOUND, loan_no=loan_no)
    return row


async def request_status(
    db: AsyncSession,
    actor: deps.EmployeeContext,
    loan_no: str,
    payload: StatusChangeRequest,
) -> ClosedEntry:
    """Collection executive flags a payment outcome for the account team to confirm."""
    require_role(actor, EmployeeRole.COLLECTION_EXECUTIVE)
    entry = await _entry_or_404(db, loan_no)
    if not entry.is_active or not entry.is_disbursed:
        raise conflict("loan_not_active", "This loan is not active!!")

    if payload.status == RequestedStatus.PART_PAID.value:
        item = lead_logs.json_safe(
            {
                "date": payload.closing_date,
                "amount": payload.amount,
                "utr": payload.utr,
                "requestedStatus": payload.status,
                "isPartlyPaid": False,
            }
        )
        entry.partial_paid = [*(entry.partial_paid or []), item]
    else:
        entry.requested_status = payload.status
        entry.closing_date = payload.closing_date
        entry.closing_amount = payload.amount
        entry.utr = payload.utr
        if payload.dpd is not None:
            entry.dpd = payload.dpd

    lead = await _lead_for_entry(db, entry)
    if lead is not None:
        lead_logs.record_lead_log(
            db,
            lead.id,
            status="PAYMENT STATUS REQUESTED",
            borrower=lead.full_name,
            remark=f"{payload.status} requested by {actor.employee.full_name}",
            actor_id=actor.employee_id,
        )
    await db.commit()
    return entry


async def list_to_verify(db: AsyncSession, actor: deps.EmployeeContext, params: PageParams) -> tuple[list, int]:
    require_role(
        actor,
        EmployeeRole.ACCOUNT_EXECUTIVE,
        EmployeeRole.COLLECTION_EXECUTIVE,
        EmployeeRole.ADMIN,
    )
    stmt = (
        _active_view()
        .where(
            ClosedEntry.is_active.is_(True),
            ClosedEntry.is_disbursed.is_(True),
            ClosedEntry.is_verified.is_not(True),
            ClosedEntry.is_closed.is_not(True),
            or_(
                ClosedEntry.closing_date.is_not(None),
                ClosedEntry.closing_amount.is_not(None),
                ClosedEntry.requested_status.is_not(None),
                ClosedEntry.dpd > 0,
                ClosedEntry.partial_paid.contains([{"isPartlyPaid": False}]),
            ),
        )
        .order_by(ClosedEntry.updated_at.desc())
    )
    return await paginate(db, stmt, params, scalars=False)


async def verify_active_lead(
    db: AsyncSession,
    actor: deps.EmployeeContext,
    loan_no: str,
    status: str,
    utr: str | None = None,
) -> tuple[ClosedEntry, str]:
    """Account executive confirms the money arrived.

    Unconfirmed partial payments are settled first, matched by UTR; only
    then is the entry's own requested status considered.
    """
    require_role(actor, EmployeeRole.ACCOUNT_EXECUTIVE)
    entry = await _entry_or_404(db, loan_no)
    partials = list(entry.partial_paid or [])

    if any(not item.get("isPartlyPaid") for item in partials):
        index = next(
            (i for i, item in enumerate(partials) if item.get("utr") == utr and not item.get("isPartlyPaid")),
            None,
        )
        if index is None:
            raise not_found("No pending payment found for this UTR.", loan_no=loan_no, utr=utr)
        if partials[index].get("requestedStatus") != status:
            raise conflict(
                "status_mismatch",
                "Contact the Collection Executive because the status they requested is different from what you're trying to do!!",
            )
        partials[index] = {**partials[index], "isPartlyPaid": True}
        entry.partial_paid = partials
    elif entry.requested_status == status:
        flags = _CLOSING_FLAGS.get(status)
        if flags is None:
            raise conflict("invalid_status", f'Invalid status "{status}". Unable to update loan entry.')
        for field, value in flags.items():
            setattr(entry, field, value)
        entry.is_verified = True
        entry.is_active = False
        lead_status = await lead_status_by_lead_no(db, entry.lead_no)
        lead_status.is_closed = True
        lead_status.is_in_process = False
        lead_status.stage = WorkflowStage.CLOSED.value
    else:
        raise conflict(
            "status_mismatch",
            "Contact the Collection Executive because the status they requested is different from what you're trying to do!!",
        )

    lead = await _lead_for_entry(db, entry)
    if lead is not None:
        lead_logs.record_lead_log(
            db,
            lead.id,
            status="PAYMENT VERIFIED",
            borrower=lead.full_name,
            remark=f"{status} verified by {actor.employee.full_name}",
            reason=utr,
            actor_id=actor.employee_id,
        )
    await db.commit()
    logger.info("Payment verified", extra={"loan_no": loan_no})
    return entry, f"Record updated successfully. Status {status} is now verified."


async def reject_payment_verification(
    db: AsyncSession,
    actor: deps.EmployeeContext,
    loan_no: str,
    utr: str,
) -> ClosedEntry:
    require_role(actor, EmployeeRole.ACCOUNT_EXECUTIVE)
    entry = await _entry_or_404(db, loan_no)
    partials = list(entry.partial_paid or [])
    matches_partial = any(item.get("utr") == utr for item in partials)
    if entry.utr != utr and not matches_partial:
        raise not_found(LOAN_NOT_FOUND, loan_no=loan_no, utr=utr)

    entry.requested_status = None
    if matches_partial:
        entry.partial_paid = [
            item for item in partials if item.get("utr") != utr or item.get("isPartlyPaid")
        ]

    lead = await _lead_for_entry(db, entry)
    if lead is not None:
        lead_logs.record_lead_log(
            db,
            lead.id,
            status="PAYMENT VERIFICATION REJECTED",
            borrower=lead.full_name,
            remark=f"Payment {utr} rejected by {actor.employee.full_name}",
            actor_id=actor.employee_id,
        )
    await db.commit()
    return entry
