from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.permissions import EmployeeRole, WorkflowStage
from app.models import Application, CamDetails, Employee, Lead, LeadLog, Sanction
from app.schemas.common import PageParams
from app.services import applicants, approval, lead_logs
from app.services.errors import conflict, not_authorized, not_found
from app.services.records import get_lead_status, get_or_404, paginate, require_role

logger = logging.getLogger(__name__)

APPLICATION_NOT_FOUND = "Application not found"

# Figures echoed into the lead log whenever the CAM changes.
CAM_SUMMARY_KEYS = (
    "loanAmount",
    "loanRecommended",
    "netDisbursalAmount",
    "disbursalDate",
    "repaymentDate",
    "eligibleTenure",
    "repaymentAmount",
)


def _with_lead():
    return select(Application, Lead).join(Lead, Lead.id == Application.lead_id)


async def ensure_cam_details(db: AsyncSession, lead: Lead) -> CamDetails:
    result = await db.execute(select(CamDetails).where(CamDetails.lead_id == lead.id))
    cam_details = result.scalar_one_or_none()
    if cam_details is None:
        cam_details = CamDetails(
            lead_id=lead.id,
            lead_no=lead.lead_no,
            details={
                "cibilScore": lead.cibil_score,
                "loanAmount": float(lead.loan_amount) if lead.loan_amount is not None else None,
            },
        )
        db.add(cam_details)
    return cam_details


async def cam_for_lead(db: AsyncSession, lead_id: UUID) -> CamDetails | None:
    result = await db.execute(select(CamDetails).where(CamDetails.lead_id == lead_id))
    return result.scalar_one_or_none()


async def list_new_applications(
    db: AsyncSession, actor: deps.EmployeeContext, params: PageParams
) -> tuple[list, int]:
    if actor.has_role(EmployeeRole.SCREENER):
        raise not_authorized("Screeners doesn't have the authorization.")
    stmt = (
        _with_lead()
        .where(
            Application.credit_manager_id.is_(None),
            Application.is_recommended.is_not(True),
        )
        .order_by(Application.updated_at.desc())
    )
    return await paginate(db, stmt, params, scalars=False)


async def get_application(db: AsyncSession, application_id: UUID) -> tuple[Application, Lead]:
    application = await get_or_404(db, Application, application_id, APPLICATION_NOT_FOUND)
    lead = await get_or_404(db, Lead, application.lead_id, "Lead not found")
    return application, lead


async def allocate_application(
    db: AsyncSession,
    actor: deps.EmployeeContext,
    application_id: UUID,
    credit_manager_id: UUID | None = None,
) -> tuple[Application, LeadLog]:
    if actor.has_role(EmployeeRole.ADMIN):
        if credit_manager_id is None:
            raise conflict("credit_manager_required", "creditManagerId is required!!")
        assignee = await get_or_404(db, Employee, credit_manager_id, "Credit manager not found")
        if EmployeeRole.CREDIT_MANAGER.value not in (assignee.roles or []):
            raise conflict("invalid_assignee", "Employee is not a credit manager!!")
    elif actor.has_role(EmployeeRole.CREDIT_MANAGER):
        assignee = actor.employee
    else:
        raise not_authorized()

    application, lead = await get_application(db, application_id)
    application.credit_manager_id = assignee.id
    log = lead_logs.record_lead_log(
        db,
        lead.id,
        status="APPLICATION IN PROCESS",
        borrower=lead.full_name,
        remark=f"Application allocated to {assignee.full_name}",
        actor_id=actor.employee_id,
    )
    await db.commit()
    return application, log


async def list_allocated_applications(
    db: AsyncSession, actor: deps.EmployeeContext, params: PageParams
) -> tuple[list, int]:
    conditions = [
        Application.on_hold.is_not(True),
        Application.is_rejected.is_not(True),
        Application.is_recommended.is_not(True),
    ]
    if actor.has_role(EmployeeRole.ADMIN, EmployeeRole.SANCTION_HEAD):
        conditions.append(Application.credit_manager_id.is_not(None))
    elif actor.has_role(EmployeeRole.CREDIT_MANAGER):
        conditions.append(Application.credit_manager_id == actor.employee_id)
    else:
        raise not_authorized("Not authorized!!!")
    stmt = _with_lead().where(*conditions).order_by(Application.updated_at.desc())
    return await paginate(db, stmt, params, scalars=False)


async def get_cam(db: AsyncSession, application_id: UUID) -> CamDetails:
    application = await get_or_404(db, Application, application_id, APPLICATION_NOT_FOUND)
    cam_details = await cam_for_lead(db, application.lead_id)
    if cam_details is None:
        raise not_found("No CAM found!!", lead_id=str(application.lead_id))
    return cam_details


async def update_cam(
    db: AsyncSession,
    actor: deps.EmployeeContext,
    application_id: UUID,
    details: dict,
) -> tuple[CamDetails, LeadLog]:
    application, lead = await get_application(db, application_id)
    if application.credit_manager_id != actor.employee_id:
        raise not_authorized("You are not authorized to update CAM!!")
    cam_details = await cam_for_lead(db, lead.id)
    if cam_details is None:
        raise not_found("No CAM found!!", lead_id=str(lead.id))

    before = dict(cam_details.details or {})
    cam_details.details = {**before, **lead_logs.json_safe(details)}
    summary = " ".join(str(cam_details.details.get(key)) for key in CAM_SUMMARY_KEYS)
    log = lead_logs.record_lead_log(
        db,
        lead.id,
        status="APPLICATION IN PROCESS",
        borrower=lead.full_name,
        remark=f"CAM details added by {actor.employee.full_name}",
        reason=summary,
        actor_id=actor.employee_id,
        old_value=before,
        new_value=cam_details.details,
    )
    await db.commit()
    return cam_details, log


async def recommend_application(
    db: AsyncSession, actor: deps.EmployeeContext, application_id: UUID
) -> tuple[Sanction, LeadLog]:
    """Credit manager sign-off: the application becomes a Sanction awaiting the sanction head."""
    require_role(actor, EmployeeRole.CREDIT_MANAGER, message="You are not authorized!!!")
    application, lead = await get_application(db, application_id)
    status = await get_lead_status(db, lead.lead_status_id)
    if application.credit_manager_id != actor.employee_id:
        raise not_authorized("You are not authorized to recommend this application!!")
    if application.is_recommended:
        raise conflict("already_recommended", "Application is already recommended!!")

    cam_details = await cam_for_lead(db, lead.id)
    banks = await applicants.list_banks(db, application.applicant_id) if application.applicant_id else []
    approved, message = approval.check_application_approval(
        application, cam_details, banks, actor.employee_id
    )
    if not approved:
        raise conflict("approval_check_failed", message)

    sanction = Sanction(
        application_id=application.id,
        pan=application.pan,
        lead_no=application.lead_no,
        recommended_by=actor.employee_id,
    )
    db.add(sanction)

    status.stage = WorkflowStage.SANCTION.value
    application.is_recommended = True
    application.recommended_by = actor.employee_id

    log = lead_logs.record_lead_log(
        db,
        lead.id,
        status="APPLICATION FORWARDED. TRANSFERED TO SANCTION HEAD",
        borrower=lead.full_name,
        remark=f"Application forwarded by {actor.employee.full_name}",
        actor_id=actor.employee_id,
    )
    await db.flush()
    await db.commit()
    logger.info("Application forwarded to sanction", extra={"lead_no": lead.lead_no})
    return sanction, log
