from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.permissions import EmployeeRole, WorkflowStage
from app.models import Application, Document, Lead, LeadLog, LeadStatus
from app.schemas.common import PageParams
from app.schemas.lead import LeadCreateRequest, LeadUpdateRequest
from app.services import applicants, applications, approval, lead_logs, sequences
from app.services.errors import conflict, forbidden, not_authorized
from app.services.records import get_lead_status, get_or_404, paginate, require_role

logger = logging.getLogger(__name__)

LEAD_NOT_FOUND = "Lead not found"


def split_name(f_name: str, m_name: str | None, l_name: str | None) -> tuple[str, str, str]:
    """A two-word first name becomes first + middle unless a middle name was given."""
    parts = f_name.split()
    middle = m_name or (" ".join(parts[1:]) if len(parts) > 1 else "")
    return parts[0], middle, l_name or ""


async def _get_or_create_documents(db: AsyncSession, pan: str) -> Document:
    result = await db.execute(select(Document).where(Document.pan == pan))
    documents = result.scalar_one_or_none()
    if documents is None:
        documents = Document(pan=pan, items=[])
        db.add(documents)
        await db.flush()
    return documents


async def create_lead(db: AsyncSession, payload: LeadCreateRequest) -> tuple[Lead, LeadLog]:
    f_name, m_name, l_name = split_name(payload.f_name, payload.m_name, payload.l_name)
    documents = await _get_or_create_documents(db, payload.pan)
    lead_no = await sequences.next_lead_no(db)

    status = LeadStatus(
        pan=payload.pan,
        lead_no=lead_no,
        stage=WorkflowStage.LEAD.value,
        is_in_process=True,
    )
    db.add(status)
    await db.flush()

    lead = Lead(
        lead_no=lead_no,
        f_name=f_name,
        m_name=m_name,
        l_name=l_name,
        gender=payload.gender,
        dob=payload.dob,
        aadhaar=payload.aadhaar,
        pan=payload.pan,
        mobile=str(payload.mobile),
        alternate_mobile=str(payload.alternate_mobile) if payload.alternate_mobile else "",
        personal_email=payload.personal_email,
        office_email=payload.office_email,
        loan_amount=payload.loan_amount,
        salary=payload.salary,
        pin_code=payload.pin_code,
        state=payload.state,
        city=payload.city,
        source=payload.source,
        lead_status_id=status.id,
        documents_id=documents.id,
    )
    db.add(lead)
    await db.flush()

    log = lead_logs.record_lead_log(
        db,
        lead.id,
        status="NEW LEAD",
        borrower=lead.full_name,
        remark="New lead created",
    )
    await db.commit()
    logger.info("Lead created", extra={"lead_no": lead_no})
    return lead, log


async def list_new_leads(db: AsyncSession, params: PageParams) -> tuple[list[Lead], int]:
    stmt = (
        select(Lead)
        .where(Lead.screener_id.is_(None), Lead.is_recommended.is_not(True))
        .order_by(Lead.updated_at.desc())
    )
    return await paginate(db, stmt, params)


async def get_lead(db: AsyncSession, lead_id: UUID) -> Lead:
    return await get_or_404(db, Lead, lead_id, LEAD_NOT_FOUND)


async def allocate_lead(db: AsyncSession, actor: deps.EmployeeContext, lead_id: UUID) -> tuple[Lead, LeadLog]:
    require_role(actor, EmployeeRole.SCREENER)
    lead = await get_lead(db, lead_id)
    if lead.screener_id and lead.screener_id != actor.employee_id:
        raise conflict("already_allocated", "Lead is already allocated to another screener!!")

    lead.screener_id = actor.employee_id
    log = lead_logs.record_lead_log(
        db,
        lead.id,
        status="LEAD IN PROCESS",
        borrower=lead.full_name,
        remark=f"Lead allocated to {actor.employee.full_name}",
        actor_id=actor.employee_id,
    )
    await db.commit()
    return lead, log


async def list_allocated_leads(
    db: AsyncSession, actor: deps.EmployeeContext, params: PageParams
) -> tuple[list[Lead], int]:
    conditions = [
        Lead.on_hold.is_not(True),
        Lead.is_rejected.is_not(True),
        Lead.is_recommended.is_not(True),
    ]
    if actor.has_role(EmployeeRole.ADMIN, EmployeeRole.SANCTION_HEAD):
        conditions.append(Lead.screener_id.is_not(None))
    elif actor.has_role(EmployeeRole.SCREENER):
        conditions.append(Lead.screener_id == actor.employee_id)
    else:
        raise not_authorized("Not authorized!!!")

    stmt = select(Lead).where(*conditions).order_by(Lead.updated_at.desc())
    return await paginate(db, stmt, params)


async def update_lead(
    db: AsyncSession,
    actor: deps.EmployeeContext,
    lead_id: UUID,
    payload: LeadUpdateRequest,
) -> tuple[Lead, LeadLog]:
    lead = await get_lead(db, lead_id)
    if lead.screener_id != actor.employee_id:
        raise forbidden("Unauthorized: You can not update this lead!!")

    updates = payload.model_dump(exclude_unset=True)
    before = lead_logs.snapshot(lead)
    for field, value in updates.items():
        setattr(lead, field, value)

    log = lead_logs.record_lead_log(
        db,
        lead.id,
        status="LEAD UPDATED",
        borrower=lead.full_name,
        remark=f"Lead details updated by {actor.employee.full_name}",
        actor_id=actor.employee_id,
        old_value=before,
        new_value=lead_logs.snapshot(lead),
    )
    await db.commit()
    return lead, log


async def recommend_lead(db: AsyncSession, actor: deps.EmployeeContext, lead_id: UUID) -> tuple[Application, LeadLog]:
    """Screener sign-off: the lead becomes an Application for the credit team."""
    require_role(actor, EmployeeRole.SCREENER)
    lead = await get_lead(db, lead_id)
    status = await get_lead_status(db, lead.lead_status_id)

    if lead.is_recommended:
        raise conflict("already_recommended", "Lead is already recommended!!")
    approved, message = approval.check_lead_approval(lead, actor.employee_id)
    if not approved:
        raise conflict("approval_check_failed", message)

    applicant = await applicants.upsert_applicant(
        db,
        lead,
        screened_by=actor.employee.full_name,
    )
    await applications.ensure_cam_details(db, lead)

    application = Application(
        lead_id=lead.id,
        lead_no=lead.lead_no,
        pan=lead.pan,
        applicant_id=applicant.id,
        is_recommended=False,
    )
    db.add(application)

    status.stage = WorkflowStage.APPLICATION.value
    lead.is_recommended = True
    lead.recommended_by = actor.employee_id

    log = lead_logs.record_lead_log(
        db,
        lead.id,
        status="LEAD APPROVED. TRANSFERED TO CREDIT MANAGER",
        borrower=lead.full_name,
        remark=f"Lead approved by {actor.employee.full_name}",
        actor_id=actor.employee_id,
    )
    await db.flush()
    await db.commit()
    logger.info("Lead recommended to credit", extra={"lead_no": lead.lead_no})
    return application, log
