import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, func
from sqlalchemy.dialects.postgresql import JSONB, UUID

from app.db.base import Base
from app.models.types import EncryptedString


class Applicant(Base):
    __tablename__ = "applicants"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    pan = Column(String(10), nullable=False, unique=True)
    aadhaar = Column(EncryptedString(), nullable=True)
    personal_details = Column(JSONB, nullable=False, default=dict)
    residence = Column(JSONB, nullable=False, default=dict)
    employment = Column(JSONB, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )


class ApplicantBank(Base):
    __tablename__ = "applicant_banks"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    applicant_id = Column(
        UUID(as_uuid=True),
        ForeignKey("applicants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    beneficiary_name = Column(String(200), nullable=False)
    bank_acc_no = Column(String(30), nullable=False, unique=True)
    ifsc_code = Column(String(11), nullable=False)
    account_type = Column(String(20), nullable=False)
    bank_name = Column(String(200), nullable=False)
    branch_name = Column(String(200), nullable=True)
    is_verified = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
