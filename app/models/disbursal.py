import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import UUID

from app.db.base import Base


class Disbursal(Base):
    __tablename__ = "disbursals"
    __mapper_args__ = {"eager_defaults": True}
    __table_args__ = (
        CheckConstraint("amount IS NULL OR amount >= 0", name="ck_disbursals_amount_nonneg"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    sanction_id = Column(UUID(as_uuid=True), ForeignKey("sanctions.id"), nullable=False, unique=True)
    pan = Column(String(10), nullable=False, index=True)
    lead_no = Column(String(20), nullable=False)
    loan_no = Column(String(30), nullable=False, index=True)
    disbursal_manager_id = Column(
        UUID(as_uuid=True), ForeignKey("employees.id", ondelete="SET NULL"), nullable=True, index=True
    )
    sanction_e_signed = Column(Boolean, nullable=False, default=False)
    is_recommended = Column(Boolean, nullable=False, default=False)
    recommended_by = Column(UUID(as_uuid=True), ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)
    is_approved = Column(Boolean, nullable=False, default=False)
    is_disbursed = Column(Boolean, nullable=False, default=False)
    disbursed_by = Column(UUID(as_uuid=True), ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)
    disbursed_at = Column(DateTime(timezone=True), nullable=True)
    payable_account = Column(String(50), nullable=True)
    payment_mode = Column(String(30), nullable=True)
    amount = Column(Numeric(14, 2), nullable=True)
    channel = Column(String(30), nullable=True)
    utr = Column(String(100), nullable=True)
    remarks = Column(Text, nullable=True)
    on_hold = Column(Boolean, nullable=False, default=False)
    held_by = Column(UUID(as_uuid=True), ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)
    is_rejected = Column(Boolean, nullable=False, default=False)
    rejected_by = Column(UUID(as_uuid=True), ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
