from __future__ import annotations

from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.permissions import WorkflowStage
from app.models import LeadLog
from app.services import lead_logs
from app.services.errors import conflict
from app.services.records import lead_status_by_lead_no
from app.services.rejections import lead_for_record, load_stage_record, resolve_stage


async def _set_hold(
    db: AsyncSession,
    actor: deps.EmployeeContext,
    record_id: UUID,
    stage: WorkflowStage | None,
    *,
    on_hold: bool,
    reason: str | None,
) -> tuple[object, LeadLog]:
    stage = resolve_stage(actor, stage)
    record = await load_stage_record(db, stage, record_id)
    status = await lead_status_by_lead_no(db, record.lead_no)
    if record.is_rejected:
        raise conflict("already_rejected", f"{stage.value} is rejected and can not be put on hold!!")
    if bool(record.on_hold) == on_hold:
        state = "already on hold" if on_hold else "not on hold"
        raise conflict("hold_unchanged", f"{stage.value} is {state}!!")

    record.on_hold = on_hold
    record.held_by = actor.employee_id if on_hold else None
    status.is_on_hold = on_hold

    lead = await lead_for_record(db, record)
    action = "ON HOLD" if on_hold else "UNHOLD"
    log = lead_logs.record_lead_log(
        db,
        lead.id,
        status=f"{stage.value.upper()} {action}",
        borrower=lead.full_name,
        remark=f"{stage.value} {'put on hold' if on_hold else 'released'} by {actor.employee.full_name}",
        reason=reason,
        actor_id=actor.employee_id,
    )
    await db.commit()
    return record, log


async def hold(
    db: AsyncSession,
    actor: deps.EmployeeContext,
    record_id: UUID,
    reason: str | None = None,
    stage: WorkflowStage | None = None,
) -> tuple[object, LeadLog]:
    return await _set_hold(db, actor, record_id, stage, on_hold=True, reason=reason)


async def unhold(
    db: AsyncSession,
    actor: deps.EmployeeContext,
    record_id: UUID,
    reason: str | None = None,
    stage: WorkflowStage | None = None,
) -> tuple[object, LeadLog]:
    return await _set_hold(db, actor, record_id, stage, on_hold=False, reason=reason)
