from datetime import date
from decimal import Decimal

import pytest

from app.core.permissions import EmployeeRole, WorkflowStage
from app.models import ClosedEntry, Lead, LeadLog, LeadStatus
from app.schemas.account import StatusChangeRequest
from app.schemas.common import PageParams
from app.services import collections
from app.services.errors import WorkflowError

from conftest import (
    LOAN_NO,
    FakeAsyncSession,
    FakeResult,
    entity_handler,
    get_data,
    make_actor,
    make_cam,
    make_employee,
    make_entry,
    make_lead,
    make_status,
    page_handler,
)


def _pending_partial(utr: str = "UTR-P1", status: str = "partPaid") -> dict:
    return {
        "date": "2024-02-10",
        "amount": "5000",
        "utr": utr,
        "requestedStatus": status,
        "isPartlyPaid": False,
    }


def _entry_session(*, with_lead: bool = True, **entry_overrides):
    db = FakeAsyncSession()
    status = make_status(stage=WorkflowStage.ACTIVE.value, is_disbursed=True)
    entry = make_entry(**entry_overrides)
    db.on_execute(entity_handler(ClosedEntry, FakeResult(scalar=entry)))
    db.on_execute(entity_handler(LeadStatus, FakeResult(scalar=status)))
    if with_lead:
        db.on_execute(entity_handler(Lead, FakeResult(scalar=make_lead(status=status))))
    return db, status, entry


@pytest.mark.asyncio
async def test_request_part_payment_appends_pending_item():
    db, _status, entry = _entry_session()
    payload = StatusChangeRequest(status="partPaid", closing_date=date(2024, 2, 10), amount="5000", utr="UTR-P1")

    updated = await collections.request_status(db, make_actor(EmployeeRole.COLLECTION_EXECUTIVE), LOAN_NO, payload)

    assert updated.partial_paid == [_pending_partial()]
    assert updated.requested_status is None
    assert db.added_of(LeadLog)[0].status == "PAYMENT STATUS REQUESTED"
    assert db.committed is True


@pytest.mark.asyncio
async def test_request_closure_sets_closing_fields():
    db, _status, entry = _entry_session()
    payload = StatusChangeRequest(
        status="closed", closing_date=date(2024, 1, 31), amount="13000", utr="UTR-C1", dpd=2
    )

    await collections.request_status(db, make_actor(EmployeeRole.COLLECTION_EXECUTIVE), LOAN_NO, payload)

    assert entry.requested_status == "closed"
    assert entry.closing_date == date(2024, 1, 31)
    assert entry.closing_amount == Decimal("13000")
    assert entry.utr == "UTR-C1"
    assert entry.dpd == 2


@pytest.mark.asyncio
async def test_request_status_without_lead_skips_log():
    db, _status, _entry = _entry_session(with_lead=False)
    payload = StatusChangeRequest(status="settled", amount="11000", utr="UTR-S1")

    await collections.request_status(db, make_actor(EmployeeRole.COLLECTION_EXECUTIVE), LOAN_NO, payload)

    assert db.added_of(LeadLog) == []
    assert db.committed is True


@pytest.mark.asyncio
async def test_request_status_on_closed_loan_is_rejected():
    db, _status, _entry = _entry_session(is_active=False)
    payload = StatusChangeRequest(status="closed", utr="UTR-C1")

    with pytest.raises(WorkflowError) as exc:
        await collections.request_status(db, make_actor(EmployeeRole.COLLECTION_EXECUTIVE), LOAN_NO, payload)

    assert exc.value.code == "loan_not_active"


@pytest.mark.asyncio
async def test_only_collection_executive_requests_status():
    payload = StatusChangeRequest(status="closed", utr="UTR-C1")
    with pytest.raises(WorkflowError) as exc:
        await collections.request_status(
            FakeAsyncSession(), make_actor(EmployeeRole.ACCOUNT_EXECUTIVE), LOAN_NO, payload
        )
    assert exc.value.status_code == 401


def test_part_payment_needs_amount_and_utr(client, login_as):
    login_as(EmployeeRole.COLLECTION_EXECUTIVE)
    response = client.patch(f"/api/accounts/active/{LOAN_NO}", json={"status": "partPaid"})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_verify_confirms_partial_payment_by_utr():
    db, status, entry = _entry_session(partial_paid=[_pending_partial("UTR-P1"), _pending_partial("UTR-P2")])

    updated, message = await collections.verify_active_lead(
        db, make_actor(EmployeeRole.ACCOUNT_EXECUTIVE), LOAN_NO, "partPaid", "UTR-P2"
    )

    assert updated.partial_paid[0]["isPartlyPaid"] is False
    assert updated.partial_paid[1]["isPartlyPaid"] is True
    assert updated.is_active is True
    assert status.stage == WorkflowStage.ACTIVE.value
    assert message == "Record updated successfully. Status partPaid is now verified."


@pytest.mark.asyncio
async def test_verify_unknown_partial_utr_is_not_found():
    db, _status, _entry = _entry_session(partial_paid=[_pending_partial("UTR-P1")])

    with pytest.raises(WorkflowError) as exc:
        await collections.verify_active_lead(
            db, make_actor(EmployeeRole.ACCOUNT_EXECUTIVE), LOAN_NO, "partPaid", "UTR-XX"
        )

    assert exc.value.status_code == 404


@pytest.mark.asyncio
async def test_verify_partial_with_other_status_is_mismatch():
    db, _status, _entry = _entry_session(partial_paid=[_pending_partial("UTR-P1")])

    with pytest.raises(WorkflowError) as exc:
        await collections.verify_active_lead(
            db, make_actor(EmployeeRole.ACCOUNT_EXECUTIVE), LOAN_NO, "closed", "UTR-P1"
        )

    assert exc.value.code == "status_mismatch"


@pytest.mark.parametrize(
    ("requested", "flag"),
    [
        ("closed", "is_closed"),
        ("settled", "is_settled"),
        ("writeOff", "is_write_off"),
    ],
)
@pytest.mark.asyncio
async def test_verify_closing_status_ends_the_loan(requested, flag):
    db, status, entry = _entry_session(requested_status=requested, utr="UTR-C1")

    await collections.verify_active_lead(db, make_actor(EmployeeRole.ACCOUNT_EXECUTIVE), LOAN_NO, requested, "UTR-C1")

    assert getattr(entry, flag) is True
    assert entry.is_verified is True
    assert entry.is_active is False
    assert entry.defaulted is (requested == "writeOff")
    assert status.is_closed is True
    assert status.is_in_process is False
    assert status.stage == WorkflowStage.CLOSED.value


@pytest.mark.asyncio
async def test_verify_status_mismatch():
    db, status, entry = _entry_session(requested_status="settled")

    with pytest.raises(WorkflowError) as exc:
        await collections.verify_active_lead(db, make_actor(EmployeeRole.ACCOUNT_EXECUTIVE), LOAN_NO, "closed")

    assert exc.value.code == "status_mismatch"
    assert entry.is_active is True
    assert status.stage == WorkflowStage.ACTIVE.value


@pytest.mark.asyncio
async def test_reject_payment_drops_unconfirmed_partial():
    confirmed = {**_pending_partial("UTR-P0"), "isPartlyPaid": True}
    db, _status, entry = _entry_session(partial_paid=[confirmed, _pending_partial("UTR-P1")])

    await collections.reject_payment_verification(db, make_actor(EmployeeRole.ACCOUNT_EXECUTIVE), LOAN_NO, "UTR-P1")

    assert entry.partial_paid == [confirmed]
    assert db.added_of(LeadLog)[0].status == "PAYMENT VERIFICATION REJECTED"


@pytest.mark.asyncio
async def test_reject_payment_clears_requested_status():
    db, _status, entry = _entry_session(requested_status="closed", utr="UTR-C1")

    await collections.reject_payment_verification(db, make_actor(EmployeeRole.ACCOUNT_EXECUTIVE), LOAN_NO, "UTR-C1")

    assert entry.requested_status is None


@pytest.mark.asyncio
async def test_reject_payment_with_unknown_utr():
    db, _status, _entry = _entry_session(requested_status="closed", utr="UTR-C1")

    with pytest.raises(WorkflowError) as exc:
        await collections.reject_payment_verification(
            db, make_actor(EmployeeRole.ACCOUNT_EXECUTIVE), LOAN_NO, "UTR-XX"
        )

    assert exc.value.status_code == 404


@pytest.mark.asyncio
async def test_active_list_is_for_accounts_and_collections():
    with pytest.raises(WorkflowError) as exc:
        await collections.list_active_leads(FakeAsyncSession(), make_actor(EmployeeRole.SCREENER), PageParams())
    assert exc.value.status_code == 401


def test_active_list_route(client, fake_db, login_as):
    login_as(EmployeeRole.COLLECTION_EXECUTIVE)
    lead = make_lead()
    head = make_employee(roles=[EmployeeRole.DISBURSAL_HEAD.value], f_name="Kiran", l_name="Rao")
    fake_db.on_execute(page_handler([(make_entry(), lead, make_cam(lead=lead), None, head)]))

    response = client.get("/api/accounts/active")

    assert response.status_code == 200
    item = get_data(response)["items"][0]
    assert item["entry"]["loan_no"] == LOAN_NO
    assert item["lead"]["lead_no"] == lead.lead_no
    assert item["cam"]["repaymentAmount"] == 13000
    assert item["disbursed_by_name"] == "Kiran Rao"


def test_verify_route_returns_message(client, fake_db, login_as):
    login_as(EmployeeRole.ACCOUNT_EXECUTIVE)
    status = make_status(stage=WorkflowStage.ACTIVE.value)
    fake_db.on_execute(
        entity_handler(ClosedEntry, FakeResult(scalar=make_entry(requested_status="closed", utr="UTR-C1")))
    )
    fake_db.on_execute(entity_handler(LeadStatus, FakeResult(scalar=status)))

    response = client.patch(f"/api/accounts/active/verify/{LOAN_NO}", json={"status": "closed", "utr": "UTR-C1"})

    assert response.status_code == 200
    data = get_data(response)
    assert data["entry"]["is_closed"] is True
    assert data["message"] == "Record updated successfully. Status closed is now verified."


@pytest.mark.asyncio
async def test_verification_queue_is_not_for_credit_roles():
    with pytest.raises(WorkflowError) as exc:
        await collections.list_to_verify(FakeAsyncSession(), make_actor(EmployeeRole.CREDIT_MANAGER), PageParams())
    assert exc.value.status_code == 401


def test_verification_queue_route(client, fake_db, login_as):
    login_as(EmployeeRole.ACCOUNT_EXECUTIVE)
    lead = make_lead()
    pending = make_entry(requested_status="closed", utr="UTR-C1")
    fake_db.on_execute(page_handler([(pending, lead, make_cam(lead=lead), None, None)]))

    response = client.get("/api/accounts/active/verify")

    assert response.status_code == 200
    data = get_data(response)
    assert data["total"] == 1
    assert data["items"][0]["entry"]["requested_status"] == "closed"
    assert data["items"][0]["disbursed_by_name"] is None
