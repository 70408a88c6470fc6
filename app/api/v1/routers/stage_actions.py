"""Reject, hold and unhold routes shared by every workflow stage router."""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.permissions import WorkflowStage
from app.schemas.application import ApplicationDTO
from app.schemas.common import ReasonRequest, RemarksRequest
from app.schemas.disbursal import DisbursalDTO
from app.schemas.lead import LeadDTO, LeadLogDTO, StageActionResponse
from app.schemas.sanction import SanctionDTO
from app.services import holds, rejections

STAGE_DTOS = {
    WorkflowStage.LEAD: LeadDTO,
    WorkflowStage.APPLICATION: ApplicationDTO,
    WorkflowStage.SANCTION: SanctionDTO,
    WorkflowStage.DISBURSAL: DisbursalDTO,
}


def serialize_record(stage: WorkflowStage, record) -> dict:
    return STAGE_DTOS[stage].model_validate(record).model_dump(mode="json")


def _action_response(stage: WorkflowStage, record, log) -> StageActionResponse:
    return StageActionResponse(
        stage=stage.value,
        record=serialize_record(stage, record),
        log=LeadLogDTO.model_validate(log) if log is not None else None,
    )


def build_stage_actions(stage: WorkflowStage) -> APIRouter:
    router = APIRouter()
    label = stage.value.lower()

    @router.patch(
        "/reject/{record_id}",
        response_model=StageActionResponse,
        summary=f"Reject a {label}",
    )
    async def reject_record(
        record_id: UUID,
        payload: ReasonRequest,
        actor: deps.EmployeeContext = Depends(deps.get_employee_context),
        db: AsyncSession = Depends(deps.get_db_session),
    ) -> StageActionResponse:
        record, log = await rejections.reject(db, actor, record_id, payload.reason, stage=stage)
        return _action_response(stage, record, log)

    @router.patch(
        "/hold/{record_id}",
        response_model=StageActionResponse,
        summary=f"Put a {label} on hold",
    )
    async def hold_record(
        record_id: UUID,
        payload: RemarksRequest | None = None,
        actor: deps.EmployeeContext = Depends(deps.get_employee_context),
        db: AsyncSession = Depends(deps.get_db_session),
    ) -> StageActionResponse:
        reason = payload.remarks if payload else None
        record, log = await holds.hold(db, actor, record_id, reason, stage=stage)
        return _action_response(stage, record, log)

    @router.patch(
        "/unhold/{record_id}",
        response_model=StageActionResponse,
        summary=f"Release a {label} from hold",
    )
    async def unhold_record(
        record_id: UUID,
        payload: RemarksRequest | None = None,
        actor: deps.EmployeeContext = Depends(deps.get_employee_context),
        db: AsyncSession = Depends(deps.get_db_session),
    ) -> StageActionResponse:
        reason = payload.remarks if payload else None
        record, log = await holds.unhold(db, actor, record_id, reason, stage=stage)
        return _action_response(stage, record, log)

    return router
