from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from app.api import deps
from app.core.permissions import EmployeeRole, WorkflowStage
from app.models import CamDetails, Disbursal, Employee, Lead, LeadLog, Sanction
from app.schemas.common import PageParams
from app.schemas.disbursal import DisbursalApproveRequest
from app.services import cam, collections, lead_logs
from app.services.errors import conflict, forbidden, not_found
from app.services.records import get_or_404, lead_status_by_lead_no, paginate, require_role

logger = logging.getLogger(__name__)

DISBURSAL_NOT_FOUND = "Disbursal not found"

disburser = aliased(Employee)


def _with_context():
    return (
        select(Disbursal, Sanction, Lead, CamDetails)
        .join(Sanction, Sanction.id == Disbursal.sanction_id)
        .join(Lead, Lead.lead_no == Disbursal.lead_no)
        .outerjoin(CamDetails, CamDetails.lead_id == Lead.id)
    )


async def _live_sanction(db: AsyncSession, disbursal: Disbursal) -> Sanction:
    sanction = await get_or_404(db, Sanction, disbursal.sanction_id, "Sanction not found")
    if sanction.is_rejected:
        raise conflict("sanction_rejected", "The sanction for this disbursal is rejected!!")
    return sanction


async def _lead_for(db: AsyncSession, disbursal: Disbursal) -> Lead:
    result = await db.execute(select(Lead).where(Lead.lead_no == disbursal.lead_no))
    lead = result.scalar_one_or_none()
    if lead is None:
        raise not_found("Lead not found", lead_no=disbursal.lead_no)
    return lead


async def list_new_disbursals(db: AsyncSession, actor: deps.EmployeeContext, params: PageParams) -> tuple[list, int]:
    require_role(actor, EmployeeRole.DISBURSAL_MANAGER, EmployeeRole.DISBURSAL_HEAD, EmployeeRole.ADMIN)
    stmt = (
        _with_context()
        .where(
            Disbursal.disbursal_manager_id.is_(None),
            Disbursal.sanction_e_signed.is_(True),
            Disbursal.is_recommended.is_not(True),
            Disbursal.is_approved.is_not(True),
            Disbursal.is_rejected.is_not(True),
        )
        .order_by(Disbursal.updated_at.desc())
    )
    return await paginate(db, stmt, params, scalars=False)


async def get_disbursal(db: AsyncSession, disbursal_id: UUID) -> Any:
    result = await db.execute(_with_context().where(Disbursal.id == disbursal_id))
    row = result.first()
    if row is None:
        raise not_found(DISBURSAL_NOT_FOUND, id=str(disbursal_id))
    return row


async def allocate_disbursal(db: AsyncSession, actor: deps.EmployeeContext, disbursal_id: UUID) -> tuple[Disbursal, LeadLog]:
    require_role(actor, EmployeeRole.DISBURSAL_MANAGER)
    disbursal = await get_or_404(db, Disbursal, disbursal_id, DISBURSAL_NOT_FOUND)
    if disbursal.disbursal_manager_id and disbursal.disbursal_manager_id != actor.employee_id:
        raise conflict("already_allocated", "Disbursal is already allocated to another manager!!")
    if disbursal.is_rejected:
        raise conflict("disbursal_rejected", "This disbursal is rejected!!")
    if not disbursal.sanction_e_signed:
        raise conflict("esign_pending", "Sanction letter is not e-signed yet!!")
    await _live_sanction(db, disbursal)

    lead = await _lead_for(db, disbursal)
    disbursal.disbursal_manager_id = actor.employee_id
    log = lead_logs.record_lead_log(
        db,
        lead.id,
        status="DISBURSAL APPLICATION IN PROCESS",
        borrower=lead.full_name,
        remark=f"Disbursal application approved by {actor.employee.full_name}",
        actor_id=actor.employee_id,
    )
    await db.commit()
    return disbursal, log


async def list_allocated_disbursals(db: AsyncSession, actor: deps.EmployeeContext, params: PageParams) -> tuple[list, int]:
    conditions = [
        Disbursal.on_hold.is_not(True),
        Disbursal.is_rejected.is_not(True),
        Disbursal.is_recommended.is_not(True),
    ]
    if actor.has_role(EmployeeRole.ADMIN, EmployeeRole.DISBURSAL_HEAD):
        conditions.append(Disbursal.disbursal_manager_id.is_not(None))
    elif actor.has_role(EmployeeRole.DISBURSAL_MANAGER):
        conditions.append(Disbursal.disbursal_manager_id == actor.employee_id)
    else:
        require_role(actor, EmployeeRole.ADMIN, EmployeeRole.DISBURSAL_HEAD, EmployeeRole.DISBURSAL_MANAGER)
    stmt = _with_context().where(*conditions).order_by(Disbursal.updated_at.desc())
    return await paginate(db, stmt, params, scalars=False)


async def recommend_disbursal(
    db: AsyncSession,
    actor: deps.EmployeeContext,
    disbursal_id: UUID,
    remarks: str | None = None,
) -> tuple[Disbursal, LeadLog]:
    require_role(actor, EmployeeRole.DISBURSAL_MANAGER)
    disbursal = await get_or_404(db, Disbursal, disbursal_id, DISBURSAL_NOT_FOUND)
    if disbursal.disbursal_manager_id != actor.employee_id:
        raise forbidden("You are not authorized to recommend this disbursal!!")
    if disbursal.is_rejected or disbursal.on_hold:
        raise conflict("not_actionable", "Disbursal is rejected or on hold!!")
    if disbursal.is_recommended:
        raise conflict("already_recommended", "Disbursal is already recommended!!")
    await _live_sanction(db, disbursal)

    lead = await _lead_for(db, disbursal)
    disbursal.is_recommended = True
    disbursal.recommended_by = actor.employee_id
    log = lead_logs.record_lead_log(
        db,
        lead.id,
        status="DISBURSAL APPLICATION RECOMMENDED. SENDING TO DISBURSAL HEAD",
        borrower=lead.full_name,
        remark=remarks or f"Disbursal recommended by {actor.employee.full_name}",
        actor_id=actor.employee_id,
    )
    await db.commit()
    return disbursal, log


async def list_pending_disbursals(db: AsyncSession, actor: deps.EmployeeContext, params: PageParams) -> tuple[list, int]:
    require_role(actor, EmployeeRole.DISBURSAL_MANAGER, EmployeeRole.DISBURSAL_HEAD, EmployeeRole.ADMIN)
    conditions = [
        Disbursal.is_recommended.is_(True),
        Disbursal.on_hold.is_not(True),
        Disbursal.is_rejected.is_not(True),
        Disbursal.is_disbursed.is_not(True),
    ]
    if actor.active_role == EmployeeRole.DISBURSAL_MANAGER.value:
        conditions.append(Disbursal.recommended_by == actor.employee_id)
    stmt = _with_context().where(*conditions).order_by(Disbursal.updated_at.desc())
    return await paginate(db, stmt, params, scalars=False)


async def approve_disbursal(
    db: AsyncSession,
    actor: deps.EmployeeContext,
    disbursal_id: UUID,
    payload: DisbursalApproveRequest,
) -> tuple[Disbursal, LeadLog]:
    """Record the payout and turn the loan into an active, disbursed account."""
    require_role(actor, EmployeeRole.DISBURSAL_HEAD)
    disbursal = await get_or_404(db, Disbursal, disbursal_id, DISBURSAL_NOT_FOUND)
    if not disbursal.is_recommended:
        raise conflict("not_recommended", "Disbursal is not recommended yet!!")
    if disbursal.is_disbursed:
        raise conflict("already_disbursed", "Loan is already disbursed!!")
    if disbursal.is_rejected:
        raise conflict("disbursal_rejected", "This disbursal is rejected!!")

    sanction = await _live_sanction(db, disbursal)
    lead = await _lead_for(db, disbursal)
    status = await lead_status_by_lead_no(db, disbursal.lead_no)
    entry = await collections.entry_for_loan_no(db, disbursal.loan_no)
    if entry is None:
        raise not_found(collections.LOAN_NOT_FOUND, loan_no=disbursal.loan_no)

    result = await db.execute(select(CamDetails).where(CamDetails.lead_id == lead.id))
    cam_details = result.scalar_one_or_none()
    if cam_details is not None and cam_details.details:
        updated = cam.reschedule(cam_details.details, payload.disbursal_date)
        if updated is not None:
            cam_details.details = updated
            logger.info("CAM rescheduled to actual disbursal date", extra={"loan_no": disbursal.loan_no})

    disbursal.payable_account = payload.payable_account
    disbursal.payment_mode = payload.payment_mode
    disbursal.amount = payload.amount
    disbursal.channel = payload.channel
    disbursal.disbursed_at = payload.disbursal_date
    disbursal.utr = payload.remarks
    disbursal.remarks = payload.remarks
    disbursal.is_disbursed = True
    disbursal.is_approved = True
    disbursal.disbursed_by = actor.employee_id

    sanction.is_disbursed = True
    entry.is_disbursed = True
    entry.disbursal_id = disbursal.id
    status.is_disbursed = True
    status.stage = WorkflowStage.ACTIVE.value

    log = lead_logs.record_lead_log(
        db,
        lead.id,
        status="DISBURSAL APPLICATION APPROVED. SENT TO FINANCE",
        borrower=lead.full_name,
        remark=f"Disbursal approved by {actor.employee.full_name}",
        reason=payload.remarks,
        actor_id=actor.employee_id,
    )
    await db.commit()
    logger.info("Loan disbursed", extra={"lead_no": lead.lead_no, "loan_no": disbursal.loan_no})
    return disbursal, log


async def list_disbursed(db: AsyncSession, actor: deps.EmployeeContext, params: PageParams) -> tuple[list, int]:
    require_role(actor, EmployeeRole.DISBURSAL_HEAD, EmployeeRole.ADMIN)
    stmt = (
        select(Disbursal, Sanction, Lead, CamDetails, disburser)
        .join(Sanction, Sanction.id == Disbursal.sanction_id)
        .join(Lead, Lead.lead_no == Disbursal.lead_no)
        .outerjoin(CamDetails, CamDetails.lead_id == Lead.id)
        .outerjoin(disburser, disburser.id == Disbursal.disbursed_by)
        .where(Disbursal.is_disbursed.is_(True))
        .order_by(Disbursal.disbursed_at.desc())
    )
    return await paginate(db, stmt, params, scalars=False)
