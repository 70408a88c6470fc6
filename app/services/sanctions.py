from __future__ import annotations

import logging
from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from app.api import deps
from app.core.permissions import EmployeeRole, WorkflowStage
from app.models import Applicant, Application, CamDetails, Disbursal, Employee, Lead, LeadLog, Sanction
from app.schemas.common import PageParams
from app.services import collections, lead_logs, providers, sequences
from app.services.applications import cam_for_lead
from app.services.errors import conflict, not_found, provider_failure
from app.services.records import get_lead_status, get_or_404, paginate, require_role

logger = logging.getLogger(__name__)

SANCTION_NOT_FOUND = "Sanction not found"
ACTIVE_LOAN_EXISTS = "This PAN already has an active lead!!"

recommender = aliased(Employee)


def _with_application():
    return (
        select(Sanction, Application, Lead, recommender)
        .join(Application, Application.id == Sanction.application_id)
        .join(Lead, Lead.id == Application.lead_id)
        .outerjoin(recommender, recommender.id == Sanction.recommended_by)
    )


def _sanctioned_view():
    return (
        select(Sanction, Lead, CamDetails, recommender)
        .join(Lead, Lead.lead_no == Sanction.lead_no)
        .outerjoin(CamDetails, CamDetails.lead_id == Lead.id)
        .outerjoin(recommender, recommender.id == Sanction.recommended_by)
    )


async def _load_context(db: AsyncSession, sanction_id: UUID) -> tuple[Sanction, Application, Lead]:
    sanction = await get_or_404(db, Sanction, sanction_id, SANCTION_NOT_FOUND)
    application = await get_or_404(db, Application, sanction.application_id, "Application not found")
    lead = await get_or_404(db, Lead, application.lead_id, "Lead not found")
    return sanction, application, lead


async def list_pending_sanctions(db: AsyncSession, actor: deps.EmployeeContext, params: PageParams) -> tuple[list, int]:
    require_role(actor, EmployeeRole.SANCTION_HEAD)
    stmt = (
        _with_application()
        .where(
            Sanction.is_rejected.is_not(True),
            Sanction.e_sign_pending.is_not(True),
            Sanction.e_signed.is_not(True),
        )
        .order_by(Sanction.updated_at.desc())
    )
    return await paginate(db, stmt, params, scalars=False)


async def list_esign_pending(db: AsyncSession, actor: deps.EmployeeContext, params: PageParams) -> tuple[list, int]:
    require_role(actor, EmployeeRole.SANCTION_HEAD)
    stmt = (
        _with_application()
        .where(
            Sanction.is_rejected.is_not(True),
            Sanction.is_approved.is_(True),
            Sanction.e_signed.is_not(True),
        )
        .order_by(Sanction.updated_at.desc())
    )
    return await paginate(db, stmt, params, scalars=False)


async def list_recommended(db: AsyncSession, actor: deps.EmployeeContext, params: PageParams) -> tuple[list, int]:
    if actor.has_role(EmployeeRole.CREDIT_MANAGER):
        conditions = [
            Sanction.recommended_by == actor.employee_id,
            Sanction.is_rejected.is_not(True),
            Sanction.on_hold.is_not(True),
            Sanction.e_signed.is_not(True),
        ]
    elif actor.has_role(EmployeeRole.SANCTION_HEAD, EmployeeRole.ADMIN):
        conditions = [
            Sanction.is_rejected.is_not(True),
            Sanction.on_hold.is_not(True),
            Sanction.is_disbursed.is_not(True),
        ]
    else:
        require_role(actor, EmployeeRole.CREDIT_MANAGER, EmployeeRole.SANCTION_HEAD, EmployeeRole.ADMIN)
    stmt = _with_application().where(*conditions).order_by(Sanction.updated_at.desc())
    return await paginate(db, stmt, params, scalars=False)


async def get_sanction(db: AsyncSession, sanction_id: UUID) -> Any:
    result = await db.execute(_with_application().where(Sanction.id == sanction_id))
    row = result.first()
    if row is None:
        raise not_found(SANCTION_NOT_FOUND, id=str(sanction_id))
    return row


async def _letter_data(db: AsyncSession, sanction: Sanction, application: Application, lead: Lead) -> dict[str, Any]:
    applicant = await db.get(Applicant, application.applicant_id) if application.applicant_id else None
    residence = (applicant.residence if applicant else None) or {}
    cam_details = await cam_for_lead(db, lead.id)
    terms = (cam_details.details if cam_details else None) or {}

    address = ", ".join(
        str(residence[key]) for key in ("address", "city", "state", "pincode") if residence.get(key)
    )
    return {
        "sanction_id": sanction.id,
        "title": "Mr." if lead.gender == "M" else "Ms.",
        "full_name": lead.full_name,
        "loan_no": sanction.loan_no,
        "sanction_date": sanction.sanction_date or date.today(),
        "mobile": lead.mobile,
        "personal_email": lead.personal_email,
        "residence_address": address or f"{lead.city}, {lead.state} {lead.pin_code}",
        "state_country": f"{residence.get('state') or lead.state}, India",
        "loan_recommended": terms.get("loanRecommended"),
        "roi": terms.get("roi"),
        "eligible_tenure": terms.get("eligibleTenure"),
        "disbursal_date": terms.get("disbursalDate"),
        "repayment_date": terms.get("repaymentDate"),
        "repayment_amount": terms.get("repaymentAmount"),
    }


async def sanction_preview(db: AsyncSession, actor: deps.EmployeeContext, sanction_id: UUID) -> dict[str, Any]:
    require_role(actor, EmployeeRole.SANCTION_HEAD)
    sanction, application, lead = await _load_context(db, sanction_id)
    return await _letter_data(db, sanction, application, lead)


async def approve_sanction(db: AsyncSession, actor: deps.EmployeeContext, sanction_id: UUID) -> tuple[Sanction, LeadLog]:
    """Issue the loan number and open the PAN's active-loan entry in one commit."""
    require_role(actor, EmployeeRole.SANCTION_HEAD)
    sanction, _application, lead = await _load_context(db, sanction_id)
    if sanction.is_rejected:
        raise conflict("sanction_rejected", "This sanction is rejected!!")
    if sanction.is_approved:
        raise conflict("already_approved", "This sanction is already approved!!")

    if await collections.active_entry_for_pan(db, sanction.pan) is not None:
        raise conflict("active_loan_exists", ACTIVE_LOAN_EXISTS, pan=sanction.pan)

    loan_no = await sequences.next_loan_no(db)
    sanction.loan_no = loan_no
    sanction.sanction_date = date.today()
    sanction.is_approved = True
    sanction.approved_by = actor.employee_id

    await collections.create_active_lead(db, sanction.pan, loan_no, sanction.lead_no)
    status = await get_lead_status(db, lead.lead_status_id)
    status.is_approved = True

    log = lead_logs.record_lead_log(
        db,
        lead.id,
        status="SANCTION APPROVED AND LOAN NUMBER ALLOTTED",
        borrower=lead.full_name,
        remark=f"Sanction approved by {actor.employee.full_name}",
        reason=loan_no,
        actor_id=actor.employee_id,
    )
    try:
        await db.commit()
    except IntegrityError as exc:
        # the partial unique index caught a concurrent approval for the same PAN
        await db.rollback()
        raise conflict("active_loan_exists", ACTIVE_LOAN_EXISTS, pan=sanction.pan) from exc
    logger.info("Sanction approved", extra={"lead_no": lead.lead_no, "loan_no": loan_no})
    return sanction, log


async def send_esign(db: AsyncSession, actor: deps.EmployeeContext, sanction_id: UUID) -> tuple[Sanction, Disbursal, LeadLog]:
    require_role(actor, EmployeeRole.SANCTION_HEAD)
    sanction, application, lead = await _load_context(db, sanction_id)
    if sanction.is_rejected:
        raise conflict("sanction_rejected", "This sanction is rejected!!")
    if not sanction.is_approved or not sanction.loan_no:
        raise conflict("not_approved", "Sanction must be approved before sending for e-sign!!")
    if sanction.e_sign_pending or sanction.e_signed:
        raise conflict("esign_already_sent", "Sanction letter is already sent for e-sign!!")

    entry = await collections.entry_for_loan_no(db, sanction.loan_no)
    if entry is None:
        raise conflict(
            "missing_active_entry",
            "No matching record found to update in the Closed collection!",
            loan_no=sanction.loan_no,
        )

    letter = lead_logs.json_safe(await _letter_data(db, sanction, application, lead))
    try:
        response = await providers.send_esign_request(letter)
    except providers.ProviderError as exc:
        logger.warning("E-sign request failed for %s: %s", sanction.loan_no, exc.message)
        raise provider_failure(exc.provider, exc.message) from exc

    sanction.e_sign_pending = True
    sanction.e_sign_reference = str(response["reference"])

    disbursal = Disbursal(
        sanction_id=sanction.id,
        pan=sanction.pan,
        lead_no=sanction.lead_no,
        loan_no=sanction.loan_no,
        sanction_e_signed=False,
    )
    db.add(disbursal)
    await db.flush()
    entry.disbursal_id = disbursal.id

    log = lead_logs.record_lead_log(
        db,
        lead.id,
        status="SANCTION LETTER SENT TO CLIENT FOR E-SIGN",
        borrower=lead.full_name,
        remark=f"Sanction Letter sent by {actor.employee.full_name}",
        actor_id=actor.employee_id,
    )
    await db.commit()
    return sanction, disbursal, log


async def complete_esign(db: AsyncSession, loan_no: str, reference: str | None = None) -> Sanction:
    """Provider callback once the applicant has signed; repeated calls are no-ops."""
    result = await db.execute(select(Sanction).where(Sanction.loan_no == loan_no))
    sanction = result.scalar_one_or_none()
    if sanction is None:
        raise not_found(SANCTION_NOT_FOUND, loan_no=loan_no)
    if sanction.is_rejected:
        raise conflict("sanction_rejected", "This sanction is rejected!!")
    if sanction.e_signed:
        return sanction
    if not sanction.e_sign_pending:
        raise conflict("esign_not_requested", "E-sign was never requested for this sanction!!")
    if reference and sanction.e_sign_reference and reference != sanction.e_sign_reference:
        raise conflict("esign_reference_mismatch", "E-sign reference does not match!!")

    result = await db.execute(select(Disbursal).where(Disbursal.sanction_id == sanction.id))
    disbursal = result.scalar_one_or_none()
    if disbursal is None:
        raise not_found("Disbursal not found", loan_no=loan_no)
    application = await get_or_404(db, Application, sanction.application_id, "Application not found")
    lead = await get_or_404(db, Lead, application.lead_id, "Lead not found")
    status = await get_lead_status(db, lead.lead_status_id)

    sanction.e_signed = True
    sanction.e_sign_pending = False
    disbursal.sanction_e_signed = True
    status.stage = WorkflowStage.DISBURSAL.value

    lead_logs.record_lead_log(
        db,
        lead.id,
        status="SANCTION LETTER E-SIGNED BY CLIENT",
        borrower=lead.full_name,
        remark="Sanction letter e-signed. Sent to disbursal",
        reason=sanction.e_sign_reference,
    )
    await db.commit()
    logger.info("Sanction e-signed", extra={"loan_no": loan_no})
    return sanction


async def list_sanctioned(db: AsyncSession, actor: deps.EmployeeContext, params: PageParams) -> tuple[list, int]:
    if actor.has_role(EmployeeRole.CREDIT_MANAGER):
        conditions = [
            Sanction.recommended_by == actor.employee_id,
            Sanction.is_approved.is_(True),
            Sanction.e_signed.is_not(True),
        ]
    elif actor.has_role(EmployeeRole.SANCTION_HEAD, EmployeeRole.ADMIN):
        conditions = [
            Sanction.is_approved.is_(True),
            or_(Sanction.e_signed.is_(True), Sanction.e_sign_pending.is_(True)),
        ]
    else:
        require_role(actor, EmployeeRole.CREDIT_MANAGER, EmployeeRole.SANCTION_HEAD, EmployeeRole.ADMIN)
    stmt = _sanctioned_view().where(*conditions).order_by(Sanction.updated_at.desc())
    return await paginate(db, stmt, params, scalars=False)
