from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from app.core.permissions import EmployeeRole, WorkflowStage
from app.models import CamDetails, ClosedEntry, Lead, LeadStatus
from app.schemas.common import PageParams
from app.schemas.disbursal import DisbursalApproveRequest
from app.services import disbursals
from app.services.errors import WorkflowError

from conftest import (
    LOAN_NO,
    FakeAsyncSession,
    FakeResult,
    entity_handler,
    get_data,
    make_actor,
    make_application,
    make_cam,
    make_disbursal,
    make_employee,
    make_entry,
    make_lead,
    make_sanction,
    make_status,
    page_handler,
)


def _approve_payload(**overrides) -> DisbursalApproveRequest:
    data = {
        "payable_account": "50100012345678",
        "payment_mode": "online",
        "amount": "9500",
        "channel": "IMPS",
        "disbursal_date": "2024-01-11T10:00:00+00:00",
        "remarks": "UTR123456789",
    }
    data.update(overrides)
    return DisbursalApproveRequest(**data)


def _disbursal_setup(db: FakeAsyncSession, **overrides):
    status = make_status(stage=WorkflowStage.DISBURSAL.value, is_approved=True)
    lead = make_lead(status=status)
    application = make_application(lead=lead)
    sanction = make_sanction(application=application, is_approved=True, loan_no=LOAN_NO, e_signed=True)
    disbursal = make_disbursal(sanction=sanction, **overrides)
    db.store(sanction, disbursal)
    db.on_execute(entity_handler(Lead, FakeResult(scalar=lead)))
    db.on_execute(entity_handler(LeadStatus, FakeResult(scalar=status)))
    return status, lead, sanction, disbursal


@pytest.mark.asyncio
async def test_allocate_disbursal_requires_esign():
    db = FakeAsyncSession()
    _status, _lead, _sanction, disbursal = _disbursal_setup(db, sanction_e_signed=False)

    with pytest.raises(WorkflowError) as exc:
        await disbursals.allocate_disbursal(db, make_actor(EmployeeRole.DISBURSAL_MANAGER), disbursal.id)

    assert exc.value.code == "esign_pending"


@pytest.mark.asyncio
async def test_allocate_disbursal_refuses_rejected_sanction():
    db = FakeAsyncSession()
    _status, _lead, sanction, disbursal = _disbursal_setup(db)
    sanction.is_rejected = True

    with pytest.raises(WorkflowError) as exc:
        await disbursals.allocate_disbursal(db, make_actor(EmployeeRole.DISBURSAL_MANAGER), disbursal.id)

    assert exc.value.code == "sanction_rejected"
    assert disbursal.disbursal_manager_id is None


@pytest.mark.asyncio
async def test_approve_disbursal_refuses_rejected_sanction():
    db = FakeAsyncSession()
    status, _lead, sanction, disbursal = _disbursal_setup(db, is_recommended=True)
    sanction.is_rejected = True
    db.on_execute(entity_handler(ClosedEntry, FakeResult(scalar=make_entry(is_disbursed=False))))

    with pytest.raises(WorkflowError) as exc:
        await disbursals.approve_disbursal(db, make_actor(EmployeeRole.DISBURSAL_HEAD), disbursal.id, _approve_payload())

    assert exc.value.status_code == 400
    assert exc.value.code == "sanction_rejected"
    assert disbursal.is_disbursed is False
    assert status.stage == WorkflowStage.DISBURSAL.value


def test_disbursal_manager_takes_disbursal(client, fake_db, login_as):
    actor = login_as(EmployeeRole.DISBURSAL_MANAGER)
    _status, _lead, _sanction, disbursal = _disbursal_setup(fake_db)

    response = client.patch(f"/api/disbursals/{disbursal.id}")

    assert response.status_code == 200
    data = get_data(response)
    assert data["disbursal"]["disbursal_manager_id"] == str(actor.employee_id)
    assert data["message"] == "DISBURSAL APPLICATION IN PROCESS"


@pytest.mark.asyncio
async def test_allocate_disbursal_held_by_another_manager():
    db = FakeAsyncSession()
    _status, _lead, _sanction, disbursal = _disbursal_setup(db, disbursal_manager_id=uuid4())

    with pytest.raises(WorkflowError) as exc:
        await disbursals.allocate_disbursal(db, make_actor(EmployeeRole.DISBURSAL_MANAGER), disbursal.id)

    assert exc.value.code == "already_allocated"


@pytest.mark.asyncio
async def test_recommend_disbursal_only_by_owner():
    db = FakeAsyncSession()
    _status, _lead, _sanction, disbursal = _disbursal_setup(db, disbursal_manager_id=uuid4())

    with pytest.raises(WorkflowError) as exc:
        await disbursals.recommend_disbursal(db, make_actor(EmployeeRole.DISBURSAL_MANAGER), disbursal.id)

    assert exc.value.status_code == 403


@pytest.mark.asyncio
async def test_recommend_disbursal_marks_recommended():
    db = FakeAsyncSession()
    actor = make_actor(EmployeeRole.DISBURSAL_MANAGER)
    _status, _lead, _sanction, disbursal = _disbursal_setup(db, disbursal_manager_id=actor.employee_id)

    updated, log = await disbursals.recommend_disbursal(db, actor, disbursal.id, "All documents in order")

    assert updated.is_recommended is True
    assert updated.recommended_by == actor.employee_id
    assert log.lead_remark == "All documents in order"
    assert log.status == "DISBURSAL APPLICATION RECOMMENDED. SENDING TO DISBURSAL HEAD"


@pytest.mark.asyncio
async def test_approve_disbursal_activates_loan_and_reschedules_cam():
    db = FakeAsyncSession()
    actor = make_actor(EmployeeRole.DISBURSAL_HEAD)
    status, lead, sanction, disbursal = _disbursal_setup(db, is_recommended=True, recommended_by=uuid4())
    entry = make_entry(is_disbursed=False)
    cam_details = make_cam(lead=lead)
    db.on_execute(entity_handler(ClosedEntry, FakeResult(scalar=entry)))
    db.on_execute(entity_handler(CamDetails, FakeResult(scalar=cam_details)))

    updated, log = await disbursals.approve_disbursal(db, actor, disbursal.id, _approve_payload())

    assert updated.is_disbursed is True
    assert updated.is_approved is True
    assert updated.disbursed_by == actor.employee_id
    assert updated.utr == "UTR123456789"
    assert updated.amount == Decimal("9500")
    assert updated.disbursed_at == datetime(2024, 1, 11, 10, tzinfo=timezone.utc)
    assert sanction.is_disbursed is True
    assert entry.is_disbursed is True
    assert entry.disbursal_id == disbursal.id
    assert status.is_disbursed is True
    assert status.stage == WorkflowStage.ACTIVE.value
    # paid out ten days late: 20 days at 1% a day on 10,000
    assert cam_details.details["eligibleTenure"] == 20
    assert cam_details.details["repaymentAmount"] == 12000.0
    assert log.status == "DISBURSAL APPLICATION APPROVED. SENT TO FINANCE"
    assert db.committed is True


@pytest.mark.asyncio
async def test_approve_disbursal_keeps_cam_when_paid_on_plan():
    db = FakeAsyncSession()
    _status, lead, _sanction, disbursal = _disbursal_setup(db, is_recommended=True)
    cam_details = make_cam(lead=lead)
    original = dict(cam_details.details)
    db.on_execute(entity_handler(ClosedEntry, FakeResult(scalar=make_entry(is_disbursed=False))))
    db.on_execute(entity_handler(CamDetails, FakeResult(scalar=cam_details)))

    await disbursals.approve_disbursal(
        db,
        make_actor(EmployeeRole.DISBURSAL_HEAD),
        disbursal.id,
        _approve_payload(disbursal_date="2024-01-01T09:30:00+00:00"),
    )

    assert cam_details.details == original


@pytest.mark.asyncio
async def test_approve_disbursal_requires_recommendation():
    db = FakeAsyncSession()
    _status, _lead, _sanction, disbursal = _disbursal_setup(db)

    with pytest.raises(WorkflowError) as exc:
        await disbursals.approve_disbursal(db, make_actor(EmployeeRole.DISBURSAL_HEAD), disbursal.id, _approve_payload())

    assert exc.value.code == "not_recommended"


@pytest.mark.asyncio
async def test_approve_disbursal_twice_is_rejected():
    db = FakeAsyncSession()
    _status, _lead, _sanction, disbursal = _disbursal_setup(db, is_recommended=True, is_disbursed=True)

    with pytest.raises(WorkflowError) as exc:
        await disbursals.approve_disbursal(db, make_actor(EmployeeRole.DISBURSAL_HEAD), disbursal.id, _approve_payload())

    assert exc.value.code == "already_disbursed"


@pytest.mark.asyncio
async def test_only_disbursal_head_approves():
    db = FakeAsyncSession()
    _status, _lead, _sanction, disbursal = _disbursal_setup(db, is_recommended=True)

    with pytest.raises(WorkflowError) as exc:
        await disbursals.approve_disbursal(
            db, make_actor(EmployeeRole.DISBURSAL_MANAGER), disbursal.id, _approve_payload()
        )

    assert exc.value.status_code == 401


def test_approve_disbursal_validates_payload(client, login_as):
    login_as(EmployeeRole.DISBURSAL_HEAD)
    response = client.patch(f"/api/disbursals/approve/{uuid4()}", json={"payment_mode": "online"})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_disbursed_list_is_for_heads():
    with pytest.raises(WorkflowError) as exc:
        await disbursals.list_disbursed(FakeAsyncSession(), make_actor(EmployeeRole.DISBURSAL_MANAGER), PageParams())
    assert exc.value.status_code == 401


def test_list_new_disbursals(client, fake_db, login_as):
    login_as(EmployeeRole.DISBURSAL_MANAGER)
    lead = make_lead()
    application = make_application(lead=lead)
    sanction = make_sanction(application=application, loan_no=LOAN_NO, e_signed=True)
    disbursal = make_disbursal(sanction=sanction)
    cam_details = make_cam(lead=lead)
    fake_db.on_execute(page_handler([(disbursal, sanction, lead, cam_details)]))

    response = client.get("/api/disbursals")

    assert response.status_code == 200
    item = get_data(response)["items"][0]
    assert item["loan_no"] == LOAN_NO
    assert item["sanction"]["e_signed"] is True
    assert item["cam"]["roi"] == 1


def test_list_disbursed_includes_disburser(client, fake_db, login_as):
    login_as(EmployeeRole.DISBURSAL_HEAD)
    lead = make_lead()
    application = make_application(lead=lead)
    sanction = make_sanction(application=application, loan_no=LOAN_NO, is_disbursed=True)
    head = make_employee(roles=[EmployeeRole.DISBURSAL_HEAD.value], f_name="Kiran", l_name="Rao")
    disbursal = make_disbursal(sanction=sanction, is_disbursed=True, disbursed_by=head.id)
    fake_db.on_execute(page_handler([(disbursal, sanction, lead, None, head)]))

    response = client.get("/api/disbursals/disbursed")

    assert response.status_code == 200
    data = get_data(response)
    assert data["total"] == 1
    assert data["items"][0]["is_disbursed"] is True
