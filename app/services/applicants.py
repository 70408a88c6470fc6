from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.models import Applicant, ApplicantBank, Application, Lead
from app.schemas.application import ApplicantUpdateRequest, BankVerifyRequest
from app.services import lead_logs, providers
from app.services.errors import conflict, forbidden
from app.services.records import get_or_404

logger = logging.getLogger(__name__)


def _personal_details(lead: Lead, screened_by: str | None) -> dict:
    details = {
        "fName": lead.f_name,
        "mName": lead.m_name,
        "lName": lead.l_name,
        "gender": lead.gender,
        "dob": lead.dob,
        "mobile": lead.mobile,
        "alternateMobile": lead.alternate_mobile,
        "personalEmail": lead.personal_email,
        "officeEmail": lead.office_email,
        "pan": lead.pan,
    }
    if screened_by:
        details["screenedBy"] = screened_by
    return lead_logs.json_safe(details)


async def upsert_applicant(db: AsyncSession, lead: Lead, *, screened_by: str | None = None) -> Applicant:
    """One applicant per PAN; a returning borrower's personal details are refreshed from the new lead."""
    result = await db.execute(select(Applicant).where(Applicant.pan == lead.pan))
    applicant = result.scalar_one_or_none()
    personal = _personal_details(lead, screened_by)
    if applicant is None:
        applicant = Applicant(
            pan=lead.pan,
            aadhaar=lead.aadhaar,
            personal_details=personal,
            residence={},
            employment={},
        )
        db.add(applicant)
        await db.flush()
    else:
        applicant.aadhaar = lead.aadhaar
        applicant.personal_details = {**(applicant.personal_details or {}), **personal}
    return applicant


async def update_applicant(
    db: AsyncSession,
    actor: deps.EmployeeContext,
    application_id: UUID,
    payload: ApplicantUpdateRequest,
) -> Applicant:
    application = await get_or_404(db, Application, application_id, "Application not found")
    if application.credit_manager_id != actor.employee_id:
        raise forbidden("You are not authorized to update this applicant!!")
    applicant = await get_or_404(db, Applicant, application.applicant_id, "Applicant not found")

    before = {
        "personal_details": applicant.personal_details,
        "residence": applicant.residence,
        "employment": applicant.employment,
    }
    updates = payload.model_dump(exclude_none=True)
    for block, values in updates.items():
        # reassign so the JSONB column is flagged dirty
        setattr(applicant, block, {**(getattr(applicant, block) or {}), **values})

    lead_logs.record_lead_log(
        db,
        application.lead_id,
        status="APPLICANT DETAILS UPDATED",
        borrower=" ".join(
            str(applicant.personal_details.get(key) or "") for key in ("fName", "lName")
        ).strip(),
        remark=f"Applicant details updated by {actor.employee.full_name}",
        actor_id=actor.employee_id,
        old_value=before,
        new_value={
            "personal_details": applicant.personal_details,
            "residence": applicant.residence,
            "employment": applicant.employment,
        },
    )
    await db.commit()
    return applicant


async def _verify_with_provider(payload: BankVerifyRequest) -> None:
    try:
        response = await providers.verify_bank_account(
            payload.bank_acc_no, payload.ifsc_code, payload.beneficiary_name
        )
    except providers.ProviderError as exc:
        raise conflict("bank_verification_failed", exc.message) from exc
    if not response.get("verified", response.get("success")):
        raise conflict(
            "bank_verification_failed",
            response.get("message") or "Bank account could not be verified",
        )


async def verify_bank(db: AsyncSession, applicant_id: UUID, payload: BankVerifyRequest) -> ApplicantBank:
    applicant = await get_or_404(db, Applicant, applicant_id, "Applicant not found")
    if payload.confirm_bank_acc_no is not None and payload.confirm_bank_acc_no != payload.bank_acc_no:
        raise conflict("account_mismatch", "Account numbers do not match!!")

    result = await db.execute(select(ApplicantBank).where(ApplicantBank.bank_acc_no == payload.bank_acc_no))
    if result.scalar_one_or_none() is not None:
        raise conflict("duplicate_account", "Bank account already exists!!")

    await _verify_with_provider(payload)

    bank = ApplicantBank(
        applicant_id=applicant.id,
        beneficiary_name=payload.beneficiary_name,
        bank_acc_no=payload.bank_acc_no,
        ifsc_code=payload.ifsc_code,
        account_type=payload.account_type,
        bank_name=payload.bank_name,
        branch_name=payload.branch_name,
        is_verified=True,
    )
    db.add(bank)
    await db.commit()
    logger.info("Bank account verified for applicant %s", applicant.id)
    return bank


async def list_banks(db: AsyncSession, applicant_id: UUID) -> list[ApplicantBank]:
    result = await db.execute(
        select(ApplicantBank)
        .where(ApplicantBank.applicant_id == applicant_id)
        .order_by(ApplicantBank.created_at.desc())
    )
    return list(result.scalars().all())


async def get_banks(db: AsyncSession, applicant_id: UUID) -> list[ApplicantBank]:
    await get_or_404(db, Applicant, applicant_id, "Applicant not found")
    return await list_banks(db, applicant_id)


async def get_applicant(db: AsyncSession, applicant_id: UUID) -> Applicant:
    return await get_or_404(db, Applicant, applicant_id, "Applicant not found")


async def update_bank(db: AsyncSession, applicant_id: UUID, payload: BankVerifyRequest) -> ApplicantBank:
    """Re-verify and replace the applicant's bank account on file."""
    applicant = await get_or_404(db, Applicant, applicant_id, "Applicant not found")
    banks = await list_banks(db, applicant.id)
    if not banks:
        raise conflict("no_bank_on_file", "Unable to add or update bank details")
    bank = banks[0]
    if payload.confirm_bank_acc_no is not None and payload.confirm_bank_acc_no != payload.bank_acc_no:
        raise conflict("account_mismatch", "Account numbers do not match!!")

    if payload.bank_acc_no != bank.bank_acc_no:
        result = await db.execute(select(ApplicantBank).where(ApplicantBank.bank_acc_no == payload.bank_acc_no))
        if result.scalar_one_or_none() is not None:
            raise conflict("duplicate_account", "Bank account already exists!!")
    await _verify_with_provider(payload)

    bank.beneficiary_name = payload.beneficiary_name
    bank.bank_acc_no = payload.bank_acc_no
    bank.ifsc_code = payload.ifsc_code
    bank.account_type = payload.account_type
    bank.bank_name = payload.bank_name
    bank.branch_name = payload.branch_name or bank.branch_name
    bank.is_verified = True
    await db.commit()
    logger.info("Bank account updated for applicant %s", applicant.id)
    return bank
