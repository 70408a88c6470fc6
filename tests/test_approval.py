from uuid import uuid4

import pytest

from app.services import approval

from conftest import make_applicant, make_application, make_bank, make_cam, make_employee, make_lead, make_verified_lead


def test_verified_lead_passes():
    screener = make_employee()
    lead = make_verified_lead(screener)
    assert approval.check_lead_approval(lead, screener.id) == (True, "Approved")


@pytest.mark.parametrize(
    ("overrides", "message"),
    [
        ({"is_rejected": True}, "Lead is already rejected!!"),
        ({"on_hold": True}, "Lead is on hold!!"),
        ({"cibil_score": None}, "CIBIL score has not been fetched!!"),
        ({"is_email_verified": False}, "Email is not verified!!"),
        ({"is_mobile_verified": False}, "Mobile is not verified!!"),
        ({"is_aadhaar_verified": False}, "Aadhaar is not verified!!"),
        ({"is_pan_verified": False}, "PAN is not verified!!"),
    ],
)
def test_lead_check_reports_first_failure(overrides, message):
    screener = make_employee()
    lead = make_verified_lead(screener, **overrides)
    assert approval.check_lead_approval(lead, screener.id) == (False, message)


def test_lead_check_requires_allocation_to_caller():
    screener = make_employee()
    lead = make_verified_lead(screener)
    approved, message = approval.check_lead_approval(lead, uuid4())
    assert approved is False
    assert message == "Lead is not allocated to you!!"


def _application_setup():
    manager = make_employee(roles=["creditManager"])
    lead = make_lead()
    applicant = make_applicant()
    application = make_application(lead=lead, applicant_id=applicant.id, credit_manager_id=manager.id)
    return manager, lead, applicant, application


def test_application_check_passes_with_complete_cam_and_verified_bank():
    manager, lead, applicant, application = _application_setup()
    result = approval.check_application_approval(
        application, make_cam(lead=lead), [make_bank(applicant=applicant)], manager.id
    )
    assert result == (True, "Approved")


def test_application_check_requires_cam():
    manager, _lead, applicant, application = _application_setup()
    approved, message = approval.check_application_approval(
        application, None, [make_bank(applicant=applicant)], manager.id
    )
    assert approved is False
    assert message == "CAM details are missing!!"


def test_application_check_lists_missing_cam_keys():
    manager, lead, applicant, application = _application_setup()
    incomplete = make_cam(lead=lead, details={"loanRecommended": 10000, "roi": 1})
    approved, message = approval.check_application_approval(
        application, incomplete, [make_bank(applicant=applicant)], manager.id
    )
    assert approved is False
    assert "eligibleTenure" in message and "repaymentDate" in message


def test_application_check_requires_verified_bank():
    manager, lead, applicant, application = _application_setup()
    approved, message = approval.check_application_approval(
        application, make_cam(lead=lead), [make_bank(applicant=applicant, verified=False)], manager.id
    )
    assert approved is False
    assert message == "Applicant has no verified bank account!!"
