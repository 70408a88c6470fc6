import uuid

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, String, func
from sqlalchemy.dialects.postgresql import UUID

from app.db.base import Base


class LeadStatus(Base):
    __tablename__ = "lead_statuses"
    __mapper_args__ = {"eager_defaults": True}
    __table_args__ = (
        CheckConstraint(
            "stage IN ('Lead', 'Application', 'Sanction', 'Disbursal', 'Active', 'Closed')",
            name="ck_lead_statuses_stage",
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    pan = Column(String(10), nullable=False, index=True)
    lead_no = Column(String(20), nullable=False, unique=True)
    stage = Column(String(20), nullable=False, default="Lead")
    is_in_process = Column(Boolean, nullable=False, default=False)
    is_rejected = Column(Boolean, nullable=False, default=False)
    is_on_hold = Column(Boolean, nullable=False, default=False)
    is_approved = Column(Boolean, nullable=False, default=False)
    is_disbursed = Column(Boolean, nullable=False, default=False)
    is_closed = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
