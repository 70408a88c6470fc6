import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    func,
)
from sqlalchemy.dialects.postgresql import UUID

from app.db.base import Base
from app.models.types import EncryptedString


LEAD_SOURCES = ("website", "bulk", "landingPage", "whatsapp", "app")


class Lead(Base):
    __tablename__ = "leads"
    __mapper_args__ = {"eager_defaults": True}
    __table_args__ = (
        CheckConstraint("gender IN ('M', 'F', 'O')", name="ck_leads_gender"),
        CheckConstraint(
            "source IN ('website', 'bulk', 'landingPage', 'whatsapp', 'app')",
            name="ck_leads_source",
        ),
        CheckConstraint("loan_amount >= 0", name="ck_leads_loan_amount_nonneg"),
        Index("ix_leads_screener_queue", "screener_id", "is_recommended", "is_rejected"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    lead_no = Column(String(20), nullable=False, unique=True)
    f_name = Column(String(100), nullable=False)
    m_name = Column(String(100), nullable=True)
    l_name = Column(String(100), nullable=True)
    gender = Column(String(1), nullable=False)
    dob = Column(Date, nullable=False)
    aadhaar = Column(EncryptedString(), nullable=False)
    pan = Column(String(10), nullable=False, index=True)
    cibil_score = Column(String(10), nullable=True)
    mobile = Column(String(15), nullable=False, index=True)
    alternate_mobile = Column(String(15), nullable=True)
    personal_email = Column(String(255), nullable=False)
    office_email = Column(String(255), nullable=False)
    loan_amount = Column(Numeric(14, 2), nullable=False)
    salary = Column(Numeric(14, 2), nullable=False)
    pin_code = Column(String(10), nullable=False)
    state = Column(String(100), nullable=False)
    city = Column(String(100), nullable=False)
    source = Column(String(20), nullable=False, default="website")
    reference_id = Column(String(100), nullable=True)

    screener_id = Column(UUID(as_uuid=True), ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)
    lead_status_id = Column(UUID(as_uuid=True), ForeignKey("lead_statuses.id"), nullable=True)
    documents_id = Column(UUID(as_uuid=True), ForeignKey("documents.id"), nullable=True)

    is_mobile_verified = Column(Boolean, nullable=False, default=False)
    is_email_verified = Column(Boolean, nullable=False, default=False)
    is_aadhaar_verified = Column(Boolean, nullable=False, default=False)
    is_aadhaar_details_saved = Column(Boolean, nullable=False, default=False)
    is_pan_verified = Column(Boolean, nullable=False, default=False)

    on_hold = Column(Boolean, nullable=False, default=False)
    held_by = Column(UUID(as_uuid=True), ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)
    is_rejected = Column(Boolean, nullable=False, default=False)
    rejected_by = Column(UUID(as_uuid=True), ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)
    is_recommended = Column(Boolean, nullable=False, default=False)
    recommended_by = Column(UUID(as_uuid=True), ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.f_name, self.m_name, self.l_name) if part)
