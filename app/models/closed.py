import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID

from app.db.base import Base


REQUESTED_STATUSES = ("closed", "settled", "writeOff", "partPaid")


class ClosedLedger(Base):
    """Per-PAN ledger of every loan the applicant has taken."""

    __tablename__ = "closed_ledgers"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    pan = Column(String(10), nullable=False, unique=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class ClosedEntry(Base):
    __tablename__ = "closed_entries"
    __mapper_args__ = {"eager_defaults": True}
    __table_args__ = (
        CheckConstraint(
            "requested_status IS NULL OR requested_status IN ('closed', 'settled', 'writeOff', 'partPaid')",
            name="ck_closed_entries_requested_status",
        ),
        CheckConstraint("dpd >= 0", name="ck_closed_entries_dpd_nonneg"),
        # One running loan per PAN.
        Index(
            "uq_closed_entries_active_pan",
            "pan",
            unique=True,
            postgresql_where=text("is_active"),
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    ledger_id = Column(
        UUID(as_uuid=True),
        ForeignKey("closed_ledgers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    pan = Column(String(10), nullable=False, index=True)
    lead_no = Column(String(20), nullable=False)
    loan_no = Column(String(30), nullable=False, unique=True)
    disbursal_id = Column(UUID(as_uuid=True), ForeignKey("disbursals.id"), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    is_disbursed = Column(Boolean, nullable=False, default=False)
    is_verified = Column(Boolean, nullable=False, default=False)
    is_closed = Column(Boolean, nullable=False, default=False)
    is_settled = Column(Boolean, nullable=False, default=False)
    is_write_off = Column(Boolean, nullable=False, default=False)
    defaulted = Column(Boolean, nullable=False, default=False)
    requested_status = Column(String(20), nullable=True)
    closing_date = Column(Date, nullable=True)
    closing_amount = Column(Numeric(14, 2), nullable=True)
    utr = Column(String(100), nullable=True)
    dpd = Column(Integer, nullable=False, default=0)
    partial_paid = Column(JSONB, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
