from __future__ import annotations

from typing import Iterable
from uuid import UUID

from app.models import ApplicantBank, Application, CamDetails, Lead
from app.services import cam


def check_lead_approval(lead: Lead, employee_id: UUID) -> tuple[bool, str]:
    """Everything a screener must have done before a lead can move to credit."""
    if lead.screener_id != employee_id:
        return False, "Lead is not allocated to you!!"
    if lead.is_rejected:
        return False, "Lead is already rejected!!"
    if lead.on_hold:
        return False, "Lead is on hold!!"
    if not lead.cibil_score:
        return False, "CIBIL score has not been fetched!!"
    if not lead.is_email_verified:
        return False, "Email is not verified!!"
    if not lead.is_mobile_verified:
        return False, "Mobile is not verified!!"
    if not lead.is_aadhaar_verified:
        return False, "Aadhaar is not verified!!"
    if not lead.is_pan_verified:
        return False, "PAN is not verified!!"
    return True, "Approved"


def check_application_approval(
    application: Application,
    cam_details: CamDetails | None,
    banks: Iterable[ApplicantBank],
    employee_id: UUID,
) -> tuple[bool, str]:
    if application.credit_manager_id != employee_id:
        return False, "Application is not allocated to you!!"
    if application.is_rejected:
        return False, "Application is already rejected!!"
    if application.on_hold:
        return False, "Application is on hold!!"
    if cam_details is None:
        return False, "CAM details are missing!!"
    missing = cam.missing_keys(cam_details.details)
    if missing:
        return False, f"CAM is incomplete: {', '.join(missing)}"
    if not any(bank.is_verified for bank in banks):
        return False, "Applicant has no verified bank account!!"
    return True, "Approved"
