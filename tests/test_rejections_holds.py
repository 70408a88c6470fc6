import pytest

from app.core.permissions import EmployeeRole, WorkflowStage
from app.models import ClosedEntry, Disbursal, Lead, LeadLog, LeadStatus
from app.schemas.common import PageParams
from app.services import holds, rejections
from app.services.errors import WorkflowError

from conftest import (
    LOAN_NO,
    FakeAsyncSession,
    FakeResult,
    entity_handler,
    get_data,
    make_actor,
    make_application,
    make_disbursal,
    make_entry,
    make_lead,
    make_sanction,
    make_status,
    page_handler,
)


def _lead_session(**lead_overrides):
    db = FakeAsyncSession()
    status = make_status()
    lead = make_lead(status=status, **lead_overrides)
    db.store(lead)
    db.on_execute(entity_handler(LeadStatus, FakeResult(scalar=status)))
    return db, status, lead


def test_resolve_stage_follows_active_role():
    assert rejections.resolve_stage(make_actor(EmployeeRole.SCREENER)) is WorkflowStage.LEAD
    assert rejections.resolve_stage(make_actor(EmployeeRole.DISBURSAL_HEAD)) is WorkflowStage.DISBURSAL


def test_resolve_stage_refuses_roles_without_a_stage():
    with pytest.raises(WorkflowError) as exc:
        rejections.resolve_stage(make_actor(EmployeeRole.ACCOUNT_EXECUTIVE))
    assert exc.value.status_code == 403


def test_resolve_stage_refuses_other_stage():
    with pytest.raises(WorkflowError) as exc:
        rejections.resolve_stage(make_actor(EmployeeRole.SCREENER), WorkflowStage.SANCTION)
    assert exc.value.status_code == 403
    assert exc.value.details["stage"] == "Sanction"


@pytest.mark.asyncio
async def test_reject_lead_clears_hold_and_closes_process():
    actor = make_actor(EmployeeRole.SCREENER)
    db, status, lead = _lead_session(on_hold=True, held_by=actor.employee_id)
    status.is_on_hold = True

    record, log = await rejections.reject(db, actor, lead.id, "Fake salary slips")

    assert record is lead
    assert lead.is_rejected is True
    assert lead.rejected_by == actor.employee_id
    assert lead.on_hold is False
    assert lead.held_by is None
    assert status.is_rejected is True
    assert status.is_in_process is False
    assert status.is_on_hold is False
    assert log.status == "LEAD REJECTED"
    assert log.reason == "Fake salary slips"
    assert db.committed is True


@pytest.mark.asyncio
async def test_reject_twice_is_a_conflict():
    db, _status, lead = _lead_session(is_rejected=True)

    with pytest.raises(WorkflowError) as exc:
        await rejections.reject(db, make_actor(EmployeeRole.SCREENER), lead.id, "again")

    assert exc.value.code == "already_rejected"
    assert db.committed is False


@pytest.mark.asyncio
async def test_reject_disbursal_closes_ledger_entry():
    db = FakeAsyncSession()
    status = make_status(stage=WorkflowStage.DISBURSAL.value)
    lead = make_lead(status=status)
    sanction = make_sanction(application=make_application(lead=lead), loan_no=LOAN_NO)
    disbursal = make_disbursal(sanction=sanction)
    entry = make_entry(is_disbursed=False)
    db.store(disbursal)
    db.on_execute(entity_handler(LeadStatus, FakeResult(scalar=status)))
    db.on_execute(entity_handler(ClosedEntry, FakeResult(scalar=entry)))
    db.on_execute(entity_handler(Lead, FakeResult(scalar=lead)))

    _record, log = await rejections.reject(
        db, make_actor(EmployeeRole.DISBURSAL_MANAGER), disbursal.id, "Account frozen"
    )

    assert disbursal.is_rejected is True
    assert entry.is_active is False
    assert entry.is_closed is True
    assert log.status == "DISBURSAL REJECTED"


@pytest.mark.asyncio
async def test_reject_sanction_frees_pan_and_drops_pending_disbursal():
    db = FakeAsyncSession()
    status = make_status(stage=WorkflowStage.SANCTION.value, is_approved=True)
    lead = make_lead(status=status)
    sanction = make_sanction(
        application=make_application(lead=lead), is_approved=True, loan_no=LOAN_NO, e_sign_pending=True
    )
    disbursal = make_disbursal(sanction=sanction, sanction_e_signed=False)
    entry = make_entry(is_disbursed=False, disbursal_id=disbursal.id)
    db.store(sanction)
    db.on_execute(entity_handler(LeadStatus, FakeResult(scalar=status)))
    db.on_execute(entity_handler(ClosedEntry, FakeResult(scalar=entry)))
    db.on_execute(entity_handler(Disbursal, FakeResult(scalar=disbursal)))
    db.on_execute(entity_handler(Lead, FakeResult(scalar=lead)))
    actor = make_actor(EmployeeRole.SANCTION_HEAD)

    _record, log = await rejections.reject(db, actor, sanction.id, "Employer could not be verified")

    assert sanction.is_rejected is True
    assert entry.is_active is False
    assert entry.is_closed is True
    assert disbursal.is_rejected is True
    assert disbursal.rejected_by == actor.employee_id
    assert status.is_rejected is True
    assert log.status == "SANCTION REJECTED"


@pytest.mark.asyncio
async def test_disbursed_loan_cannot_be_rejected():
    db = FakeAsyncSession()
    status = make_status(stage=WorkflowStage.ACTIVE.value, is_disbursed=True)
    lead = make_lead(status=status)
    sanction = make_sanction(application=make_application(lead=lead), loan_no=LOAN_NO, is_disbursed=True)
    disbursal = make_disbursal(sanction=sanction, is_disbursed=True, is_approved=True)
    entry = make_entry()
    db.store(disbursal)
    db.on_execute(entity_handler(LeadStatus, FakeResult(scalar=status)))
    db.on_execute(entity_handler(ClosedEntry, FakeResult(scalar=entry)))

    with pytest.raises(WorkflowError) as exc:
        await rejections.reject(db, make_actor(EmployeeRole.DISBURSAL_HEAD), disbursal.id, "late")

    assert exc.value.status_code == 400
    assert exc.value.code == "already_moved_on"
    assert disbursal.is_rejected is False
    assert entry.is_active is True
    assert status.is_rejected is False
    assert db.committed is False


@pytest.mark.asyncio
async def test_recommended_lead_cannot_be_rejected():
    db, status, lead = _lead_session(is_recommended=True)

    with pytest.raises(WorkflowError) as exc:
        await rejections.reject(db, make_actor(EmployeeRole.SCREENER), lead.id, "changed my mind")

    assert exc.value.code == "already_moved_on"
    assert lead.is_rejected is False
    assert status.is_rejected is False


def test_reject_route_requires_reason(client, login_as):
    login_as(EmployeeRole.SCREENER)
    response = client.patch(f"/api/leads/reject/{make_lead().id}", json={})
    assert response.status_code == 422


def test_reject_route_for_wrong_stage(client, login_as):
    login_as(EmployeeRole.SCREENER)
    response = client.patch(f"/api/sanction/reject/{make_lead().id}", json={"reason": "no"})
    assert response.status_code == 403
    assert response.json()["code"] == "not_owner"


def test_reject_lead_over_http(client, fake_db, login_as):
    login_as(EmployeeRole.SCREENER)
    status = make_status()
    lead = make_lead(status=status)
    fake_db.store(lead)
    fake_db.on_execute(entity_handler(LeadStatus, FakeResult(scalar=status)))

    response = client.patch(f"/api/leads/reject/{lead.id}", json={"reason": "Duplicate lead"})

    assert response.status_code == 200
    data = get_data(response)
    assert data["stage"] == "Lead"
    assert data["record"]["is_rejected"] is True
    assert data["log"]["reason"] == "Duplicate lead"
    assert len(fake_db.added_of(LeadLog)) == 1


@pytest.mark.asyncio
async def test_hold_and_unhold_lead():
    actor = make_actor(EmployeeRole.SCREENER)
    db, status, lead = _lead_session()

    _record, log = await holds.hold(db, actor, lead.id, "Awaiting salary slip")

    assert lead.on_hold is True
    assert lead.held_by == actor.employee_id
    assert status.is_on_hold is True
    assert log.status == "LEAD ON HOLD"

    _record, log = await holds.unhold(db, actor, lead.id)

    assert lead.on_hold is False
    assert lead.held_by is None
    assert status.is_on_hold is False
    assert log.status == "LEAD UNHOLD"


@pytest.mark.asyncio
async def test_hold_twice_is_unchanged():
    db, _status, lead = _lead_session(on_hold=True)

    with pytest.raises(WorkflowError) as exc:
        await holds.hold(db, make_actor(EmployeeRole.SCREENER), lead.id)

    assert exc.value.code == "hold_unchanged"


@pytest.mark.asyncio
async def test_rejected_record_cannot_be_held():
    db, _status, lead = _lead_session(is_rejected=True)

    with pytest.raises(WorkflowError) as exc:
        await holds.hold(db, make_actor(EmployeeRole.SCREENER), lead.id)

    assert exc.value.code == "already_rejected"


@pytest.mark.asyncio
async def test_admin_rejected_list_defaults_to_leads():
    db = FakeAsyncSession()
    db.on_execute(page_handler([make_lead(is_rejected=True)], scalars=True))

    stage, items, total = await rejections.list_rejected(db, make_actor(EmployeeRole.ADMIN), PageParams())

    assert stage is WorkflowStage.LEAD
    assert total == 1
    assert items[0].is_rejected is True


def test_rejected_list_route_uses_role_stage(client, fake_db, login_as):
    login_as(EmployeeRole.SANCTION_HEAD)
    sanction = make_sanction(application=make_application(lead=make_lead()), is_rejected=True)
    fake_db.on_execute(page_handler([sanction], scalars=True))

    response = client.get("/api/leads/rejected")

    assert response.status_code == 200
    data = get_data(response)
    assert data["stage"] == "Sanction"
    assert data["items"][0]["id"] == str(sanction.id)
