"""Borrower app onboarding: self-service KYC ahead of lead capture.

These calls have no lead or employee behind them yet, so nothing is flagged
on a lead and no lead log is written until ``create_app_lead``.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.models import Lead, LeadLog
from app.schemas.lead import AppLeadCreateRequest
from app.schemas.verification import AadhaarOtpVerifyRequest, BorrowerPanRequest
from app.services import leads, providers, verification
from app.services.errors import conflict, provider_failure

logger = logging.getLogger(__name__)


async def request_aadhaar_otp(aadhaar: str | None) -> dict[str, Any]:
    if not aadhaar or not verification.AADHAAR_RE.match(aadhaar):
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


def aadhaar_unique_id(details: dict[str, Any]) -> str:
    """Lowercase first name plus the last four Aadhaar digits, as screeners store it."""
    first_name = str(details.get("name") or "").split(" ")[0].lower()
    number = str(details.get("adharNumber") or "")
    return f"{first_name}{number[-4:]}"


async def save_aadhaar_details(db: AsyncSession, payload: AadhaarOtpVerifyRequest) -> dict[str, Any]:
    if not (payload.otp and payload.transaction_id and payload.fwdp and payload.code_verifier):
        raise conflict("missing_fields", "Missing fields.")
    try:
        details = await providers.submit_aadhaar_otp(
            payload.otp, payload.transaction_id, payload.fwdp, payload.code_verifier
        )
    except providers.ProviderError as exc:
        raise provider_failure(exc.provider, exc.message) from exc

    unique_id = aadhaar_unique_id(details)
    if len(unique_id) <= 4:
        raise conflict("aadhaar_incomplete", "Aadhaar details are missing the holder's name or number.")
    await verification.save_aadhaar_record(db, unique_id, details)
    await db.commit()
    return details


def _normalize_pan(pan: str) -> str:
    pan = pan.strip().upper()
    if not verification.PAN_RE.match(pan):
        raise conflict("invalid_pan", "Invalid PAN!!!")
    return pan


async def verify_pan(db: AsyncSession, payload: BorrowerPanRequest) -> dict[str, Any]:
    """Match the borrower's own name, gender and birth date against the PAN record."""
    pan = _normalize_pan(payload.pan)
    try:
        result = await providers.fetch_pan(pan)
    except providers.ProviderError as exc:
        raise provider_failure(exc.provider, exc.message) from exc

    expected: dict[str, Any] = {"first_name": payload.first_name, "gender": payload.gender, "dob": payload.dob}
    if payload.last_name.strip():
        expected["last_name"] = payload.last_name
    mismatches = verification.pan_mismatches(expected, result)
    if mismatches:
        raise conflict(
            "pan_mismatch",
            f"PAN details do not match: {', '.join(mismatches)}",
            fields=mismatches,
        )

    await verification.save_pan_record(db, pan, result)
    await db.commit()
    return result


async def save_pan_details(db: AsyncSession, data: dict[str, Any]) -> str:
    pan = _normalize_pan(str(data.get("pan") or data.get("PAN") or ""))
    await verification.save_pan_record(db, pan, data)
    await db.commit()
    return pan


async def create_app_lead(db: AsyncSession, payload: AppLeadCreateRequest) -> tuple[Lead, LeadLog]:
    lead, log = await leads.create_lead(db, payload)
    logger.info("Lead captured from the borrower app", extra={"lead_no": lead.lead_no})
    return lead, log
