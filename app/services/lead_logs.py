"""Lead log: the borrower-facing history of every workflow step.

Each row is mirrored to the audit logger so the trail also reaches log storage.
The mirror line is queued on the session and only written once the row
commits; a rollback drops it.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable
from uuid import UUID

from fastapi.encoders import jsonable_encoder
from sqlalchemy import event, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from app.core.logging import get_audit_logger
from app.models.lead_log import LeadLog

audit_logger = get_audit_logger()

_PENDING_AUDIT = "pending_audit"

# Never copied into a log row's change set.
_UNLOGGED_COLUMNS = frozenset({"aadhaar", "created_at", "updated_at"})


def json_safe(value: Any) -> Any:
    """Amounts as strings and dates as ISO text, matching what the JSON columns store."""
    return jsonable_encoder(
        value,
        custom_encoder={Decimal: str, datetime: datetime.isoformat, date: date.isoformat, bytes: lambda _v: None},
    )


def snapshot(record: Any, *, exclude: Iterable[str] = ()) -> dict[str, Any]:
    if record is None:
        return {}
    skipped = _UNLOGGED_COLUMNS | set(exclude)
    return json_safe(
        {column.name: getattr(record, column.name) for column in record.__table__.columns if column.name not in skipped}
    )


def changed_fields(old: Any, new: Any, path: str = "") -> dict[str, dict[str, Any]]:
    """Flatten nested dicts into dotted paths that differ, e.g. ``residence.city``."""
    if isinstance(old, dict) and isinstance(new, dict):
        changes: dict[str, dict[str, Any]] = {}
        for key in sorted(old.keys() | new.keys()):
            changes.update(changed_fields(old.get(key), new.get(key), f"{path}.{key}" if path else str(key)))
        return changes
    return {path or "value": {"from": old, "to": new}} if old != new else {}


def record_lead_log(
    db: AsyncSession,
    lead_id: UUID,
    *,
    status: str,
    borrower: str,
    remark: str | None = None,
    reason: str | None = None,
    actor_id: UUID | None = None,
    old_value: Any | None = None,
    new_value: Any | None = None,
) -> LeadLog:
    changes = None
    if old_value is not None or new_value is not None:
        changes = changed_fields(json_safe(old_value) or {}, json_safe(new_value) or {}) or None
    entry = LeadLog(
        lead_id=lead_id,
        actor_id=actor_id,
        status=status,
        borrower=borrower,
        lead_remark=remark,
        reason=reason,
        changes=changes,
    )
    db.add(entry)
    db.info.setdefault(_PENDING_AUDIT, []).append(
        (
            status,
            remark or borrower,
            {
                "lead_id": str(lead_id),
                "actor_id": str(actor_id) if actor_id else None,
                "workflow_status": status,
            },
        )
    )
    return entry


def emit_pending_audit(info: dict) -> None:
    for status, message, extra in info.pop(_PENDING_AUDIT, []):
        audit_logger.info("%s: %s", status, message, extra=extra)


def discard_pending_audit(info: dict) -> None:
    info.pop(_PENDING_AUDIT, None)


@event.listens_for(Session, "after_commit")
def _audit_after_commit(session: Session) -> None:
    emit_pending_audit(session.info)


@event.listens_for(Session, "after_soft_rollback")
def _audit_after_rollback(session: Session, previous_transaction) -> None:
    discard_pending_audit(session.info)


async def list_lead_logs(db: AsyncSession, lead_id: UUID) -> list[LeadLog]:
    stmt = select(LeadLog).where(LeadLog.lead_id == lead_id).order_by(LeadLog.created_at.desc())
    result = await db.execute(stmt)
    return list(result.scalars().all())
