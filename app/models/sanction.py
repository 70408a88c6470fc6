import uuid

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, String, func
from sqlalchemy.dialects.postgresql import UUID

from app.db.base import Base


class Sanction(Base):
    __tablename__ = "sanctions"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    application_id = Column(UUID(as_uuid=True), ForeignKey("applications.id"), nullable=False, unique=True)
    pan = Column(String(10), nullable=False, index=True)
    lead_no = Column(String(20), nullable=False)
    loan_no = Column(String(30), nullable=True, unique=True)
    sanction_date = Column(Date, nullable=True)
    recommended_by = Column(UUID(as_uuid=True), ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)
    approved_by = Column(UUID(as_uuid=True), ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)
    is_approved = Column(Boolean, nullable=False, default=False)
    e_sign_pending = Column(Boolean, nullable=False, default=False)
    e_signed = Column(Boolean, nullable=False, default=False)
    e_sign_reference = Column(String(100), nullable=True)
    on_hold = Column(Boolean, nullable=False, default=False)
    held_by = Column(UUID(as_uuid=True), ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)
    is_rejected = Column(Boolean, nullable=False, default=False)
    rejected_by = Column(UUID(as_uuid=True), ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)
    is_disbursed = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
