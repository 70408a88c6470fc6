"""Screener-side identity checks run against a lead before it can be recommended."""

from __future__ import annotations

import logging
import re
import secrets
from datetime import date, datetime, timedelta, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.settings import settings
from app.models import AadhaarDetails, Lead, Otp, PanDetails
from app.schemas.lead import PAN_PATTERN
from app.schemas.verification import AadhaarOtpVerifyRequest, MobileOtpRequest, PanVerifyRequest
from app.services import lead_logs, providers
from app.services.errors import WorkflowError, conflict, forbidden, not_found, provider_failure
from app.services.records import get_or_404
from app.services.state_codes import state_code

logger = logging.getLogger(__name__)

AADHAAR_RE = re.compile(r"^\d{12}$")
PAN_RE = re.compile(PAN_PATTERN)


async def _owned_lead(db: AsyncSession, actor: deps.EmployeeContext, lead_id: UUID, action: str) -> Lead:
    lead = await get_or_404(db, Lead, lead_id, "Lead not found!!!")
    if lead.screener_id != actor.employee_id:
        raise forbidden(f"You are not authorized to {action} for this lead!!!")
    return lead


async def verify_email(db: AsyncSession, actor: deps.EmployeeContext, lead_id: UUID) -> Lead:
    lead = await _owned_lead(db, actor, lead_id, "verify email")
    lead.is_email_verified = True
    lead_logs.record_lead_log(
        db,
        lead.id,
        status="EMAIL VERIFIED",
        borrower=lead.full_name,
        remark=f"Email verified by {actor.employee.full_name}",
        actor_id=actor.employee_id,
    )
    await db.commit()
    return lead


def generate_otp() -> str:
    return f"{secrets.randbelow(1_000_000):06d}"


async def send_mobile_otp(db: AsyncSession, payload: MobileOtpRequest) -> Otp:
    otp = generate_otp()
    try:
        await providers.send_sms_otp(payload.mobile, payload.f_name, payload.l_name, otp)
    except providers.ProviderError as exc:
        raise provider_failure(exc.provider, exc.message) from exc

    result = await db.execute(select(Otp).where(Otp.mobile == payload.mobile))
    record = result.scalar_one_or_none()
    if record is None:
        record = Otp(mobile=payload.mobile)
        db.add(record)
    record.f_name = payload.f_name
    record.l_name = payload.l_name
    record.otp = otp
    record.created_at = datetime.now(timezone.utc)
    await db.commit()
    return record


async def verify_mobile_otp(db: AsyncSession, mobile: str | None, otp: str | None) -> int:
    """Check the OTP and flag every lead on that mobile; returns how many leads were flagged."""
    if not mobile or not otp:
        raise conflict("missing_fields", "Mobile number and OTP are required.")

    result = await db.execute(select(Otp).where(Otp.mobile == mobile))
    record = result.scalar_one_or_none()
    if record is None:
        raise not_found("No OTP found for this mobile number. Please request a new OTP.", mobile=mobile)

    created_at = record.created_at
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    if datetime.now(timezone.utc) - created_at > timedelta(minutes=settings.otp_expiry_minutes):
        raise conflict("otp_expired", "OTP has expired. Please request a new OTP.")
    if not secrets.compare_digest(record.otp, otp):
        raise WorkflowError(401, "invalid_otp", "Invalid OTP. Please try again.")

    updated = await db.execute(
        update(Lead).where(Lead.mobile == mobile).values(is_mobile_verified=True)
    )
    await db.commit()
    return updated.rowcount or 0


def _credit_inquiry(lead: Lead) -> dict[str, Any]:
    return {
        "InquiryPurpose": "00",
        "FirstName": lead.f_name,
        "MiddleName": lead.m_name or "",
        "LastName": lead.l_name or "",
        "DOB": lead.dob.isoformat() if isinstance(lead.dob, date) else str(lead.dob),
        "InquiryAddresses": [
            {
                "seq": "1",
                "AddressType": ["H"],
                "AddressLine1": lead.city,
                "State": state_code(lead.state),
                "Postal": lead.pin_code,
            }
        ],
        "InquiryPhones": [{"seq": "1", "Number": lead.mobile, "PhoneType": ["M"]}],
        "IDDetails": [{"seq": "1", "IDType": "T", "IDValue": lead.pan, "Source": "Inquiry"}],
    }


def _score_from_report(report: dict[str, Any]) -> str | None:
    try:
        data = report["CCRResponse"]["CIRReportDataLst"][0]["CIRReportData"]
        value = data["ScoreDetails"][0]["Value"]
    except (KeyError, IndexError, TypeError):
        return None
    return str(value) if value else None


async def fetch_cibil(db: AsyncSession, actor: deps.EmployeeContext, lead_id: UUID) -> str:
    lead = await _owned_lead(db, actor, lead_id, "fetch CIBIL")
    if lead.cibil_score:
        return lead.cibil_score

    try:
        report = await providers.fetch_credit_report(_credit_inquiry(lead))
    except providers.ProviderError as exc:
        raise provider_failure(exc.provider, exc.message) from exc
    value = _score_from_report(report)
    if not value:
        raise conflict("cibil_unavailable", "CIBIL couldn't be fetched")

    lead.cibil_score = value
    lead_logs.record_lead_log(
        db,
        lead.id,
        status="CIBIL FETCHED",
        borrower=lead.full_name,
        remark=f"CIBIL fetched by {actor.employee.full_name}",
        reason=value,
        actor_id=actor.employee_id,
    )
    await db.commit()
    return value


async def save_aadhaar_record(db: AsyncSession, unique_id: str, details: dict[str, Any]) -> None:
    result = await db.execute(select(AadhaarDetails).where(AadhaarDetails.unique_id == unique_id))
    record = result.scalar_one_or_none()
    if record is None:
        db.add(AadhaarDetails(unique_id=unique_id, data=details))
    else:
        record.data = details


async def save_pan_record(db: AsyncSession, pan: str, data: dict[str, Any]) -> None:
    result = await db.execute(select(PanDetails).where(PanDetails.pan == pan))
    record = result.scalar_one_or_none()
    if record is None:
        db.add(PanDetails(pan=pan, data=data))
    else:
        record.data = data


async def generate_aadhaar_otp(
    db: AsyncSession, actor: deps.EmployeeContext, lead_id: UUID, aadhaar: str | None = None
) -> dict[str, Any]:
    lead = await _owned_lead(db, actor, lead_id, "verify Aadhaar")
    aadhaar = aadhaar or lead.aadhaar
    if not aadhaar or not AADHAAR_RE.match(aadhaar):
        raise conflict("invalid_aadhaar", "Aadhaar number must be a 12-digit number.")
    try:
        model = await providers.request_aadhaar_otp(aadhaar)
    except providers.ProviderError as exc:
        raise provider_failure(exc.provider, exc.message) from exc
    return {
        "transaction_id": model["transactionId"],
        "fwdp": model.get("fwdp", ""),
        "code_verifier": model.get("codeVerifier", ""),
    }


async def verify_aadhaar_otp(
    db: AsyncSession, actor: deps.EmployeeContext, lead_id: UUID, payload: AadhaarOtpVerifyRequest
) -> dict[str, Any]:
    if not (payload.otp and payload.transaction_id and payload.fwdp and payload.code_verifier):
        raise conflict("missing_fields", "Missing fields.")
    lead = await _owned_lead(db, actor, lead_id, "verify Aadhaar")

    try:
        details = await providers.submit_aadhaar_otp(
            payload.otp, payload.transaction_id, payload.fwdp, payload.code_verifier
        )
    except providers.ProviderError as exc:
        raise provider_failure(exc.provider, exc.message) from exc

    unique_id = f"{lead.f_name.lower()}{lead.aadhaar[-4:]}"
    await save_aadhaar_record(db, unique_id, details)

    lead.is_aadhaar_verified = True
    lead.is_aadhaar_details_saved = True
    lead_logs.record_lead_log(
        db,
        lead.id,
        status="AADHAAR VERIFIED",
        borrower=lead.full_name,
        remark=f"Aadhaar verified by {actor.employee.full_name}",
        actor_id=actor.employee_id,
    )
    await db.commit()
    return details


def _normalize(value: Any) -> str:
    return str(value or "").strip().lower()


def pan_mismatches(expected: dict[str, Any], result: dict[str, Any]) -> list[str]:
    mismatches = []
    for field, value in expected.items():
        returned = result.get(field)
        if field == "gender":
            value, returned = str(value or "")[:1], str(returned or "")[:1]
        if _normalize(value) != _normalize(returned):
            mismatches.append(field)
    return mismatches


async def verify_pan(
    db: AsyncSession, actor: deps.EmployeeContext, lead_id: UUID, payload: PanVerifyRequest
) -> dict[str, Any]:
    pan = payload.pan.strip().upper()
    if not PAN_RE.match(pan):
        raise conflict("invalid_pan", "Invalid PAN number format.")
    lead = await _owned_lead(db, actor, lead_id, "verify PAN")

    try:
        result = await providers.fetch_pan(pan)
    except providers.ProviderError as exc:
        raise provider_failure(exc.provider, exc.message) from exc

    expected = {
        "first_name": lead.f_name,
        "last_name": lead.l_name,
        "gender": lead.gender,
        "dob": lead.dob.strftime("%d/%m/%Y") if isinstance(lead.dob, date) else str(lead.dob),
    }
    # values sent with the request override what the lead carries
    expected.update(
        {
            field: value
            for field, value in {
                "first_name": payload.first_name,
                "last_name": payload.last_name,
                "gender": payload.gender,
                "dob": payload.dob,
            }.items()
            if value
        }
    )
    mismatches = pan_mismatches(expected, result)
    if mismatches:
        raise conflict(
            "pan_mismatch",
            f"PAN details do not match: {', '.join(mismatches)}",
            fields=mismatches,
        )
    await save_pan_record(db, pan, result)

    lead.is_pan_verified = True
    lead_logs.record_lead_log(
        db,
        lead.id,
        status="PAN VERIFIED",
        borrower=lead.full_name,
        remark=f"PAN verified by {actor.employee.full_name}",
        actor_id=actor.employee_id,
    )
    await db.commit()
    logger.info("PAN verified", extra={"lead_no": lead.lead_no})
    return result
