from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.permissions import EmployeeRole, WorkflowStage, stage_for_role
from app.models import Application, Disbursal, Lead, LeadLog, Sanction
from app.schemas.common import PageParams
from app.services import collections, lead_logs
from app.services.errors import conflict, forbidden, not_found
from app.services.records import get_or_404, lead_status_by_lead_no, paginate

logger = logging.getLogger(__name__)

# Record a rejection or hold lands on, per workflow stage.
STAGE_MODELS = {
    WorkflowStage.LEAD: Lead,
    WorkflowStage.APPLICATION: Application,
    WorkflowStage.SANCTION: Sanction,
    WorkflowStage.DISBURSAL: Disbursal,
}


def resolve_stage(actor: deps.EmployeeContext, stage: WorkflowStage | None = None) -> WorkflowStage:
    """Stage the actor's active role acts on; a stage named in the route must agree with it."""
    role_stage = stage_for_role(actor.active_role)
    if role_stage is None:
        raise forbidden("You are not authorized to perform this action!!", role=actor.active_role)
    if stage is not None and stage != role_stage:
        raise forbidden(
            f"Your role can only act on the {role_stage.value} stage!!",
            role=actor.active_role,
            stage=stage.value,
        )
    return role_stage


async def load_stage_record(db: AsyncSession, stage: WorkflowStage, record_id: UUID):
    model = STAGE_MODELS[stage]
    return await get_or_404(db, model, record_id, f"{stage.value} not found")


async def lead_for_record(db: AsyncSession, record) -> Lead:
    if isinstance(record, Lead):
        return record
    result = await db.execute(select(Lead).where(Lead.lead_no == record.lead_no))
    lead = result.scalar_one_or_none()
    if lead is None:
        raise not_found("Lead not found", lead_no=record.lead_no)
    return lead


def already_moved_on(stage: WorkflowStage, record) -> bool:
    """Promoted leads and applications, and paid-out loans, are past rejection."""
    if stage in (WorkflowStage.SANCTION, WorkflowStage.DISBURSAL):
        return bool(record.is_disbursed)
    return bool(record.is_recommended)


async def close_entry(db: AsyncSession, loan_no: str | None) -> None:
    """Free the PAN for a later sanction."""
    if not loan_no:
        return
    entry = await collections.entry_for_loan_no(db, loan_no)
    if entry is not None:
        entry.is_active = False
        entry.is_closed = True


async def _reject_pending_disbursal(db: AsyncSession, actor: deps.EmployeeContext, sanction: Sanction) -> None:
    result = await db.execute(select(Disbursal).where(Disbursal.sanction_id == sanction.id))
    disbursal = result.scalar_one_or_none()
    if disbursal is not None and not disbursal.is_rejected:
        disbursal.is_rejected = True
        disbursal.rejected_by = actor.employee_id
        disbursal.on_hold = False


async def reject(
    db: AsyncSession,
    actor: deps.EmployeeContext,
    record_id: UUID,
    reason: str,
    stage: WorkflowStage | None = None,
) -> tuple[object, LeadLog]:
    stage = resolve_stage(actor, stage)
    record = await load_stage_record(db, stage, record_id)
    status = await lead_status_by_lead_no(db, record.lead_no)
    if record.is_rejected:
        raise conflict("already_rejected", f"{stage.value} is already rejected!!")
    if already_moved_on(stage, record):
        raise conflict("already_moved_on", f"{stage.value} has already moved to the next stage!!")

    record.is_rejected = True
    record.rejected_by = actor.employee_id
    if stage is WorkflowStage.LEAD:
        record.on_hold = False
        record.held_by = None
    if stage is WorkflowStage.SANCTION:
        await close_entry(db, record.loan_no)
        await _reject_pending_disbursal(db, actor, record)
    if stage is WorkflowStage.DISBURSAL:
        await close_entry(db, record.loan_no)

    status.is_rejected = True
    status.is_in_process = False
    status.is_on_hold = False

    lead = await lead_for_record(db, record)
    log = lead_logs.record_lead_log(
        db,
        lead.id,
        status=f"{stage.value.upper()} REJECTED",
        borrower=lead.full_name,
        remark=f"{stage.value} rejected by {actor.employee.full_name}",
        reason=reason,
        actor_id=actor.employee_id,
    )
    await db.commit()
    logger.info("%s rejected", stage.value, extra={"lead_no": lead.lead_no})
    return record, log


async def list_rejected(
    db: AsyncSession,
    actor: deps.EmployeeContext,
    params: PageParams,
    stage: WorkflowStage | None = None,
) -> tuple[WorkflowStage, list, int]:
    if actor.has_role(EmployeeRole.ADMIN) and actor.active_role == EmployeeRole.ADMIN.value:
        stage = stage or WorkflowStage.LEAD
    else:
        stage = resolve_stage(actor, stage)
    model = STAGE_MODELS.get(stage)
    if model is None:
        raise conflict("invalid_stage", f"Nothing is rejected at the {stage.value} stage")
    stmt = select(model).where(model.is_rejected.is_(True)).order_by(model.updated_at.desc())
    items, total = await paginate(db, stmt, params)
    return stage, items, total
