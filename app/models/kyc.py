import uuid

from sqlalchemy import Column, DateTime, String, func
from sqlalchemy.dialects.postgresql import JSONB, UUID

from app.db.base import Base


class PanDetails(Base):
    __tablename__ = "pan_details"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    pan = Column(String(10), nullable=False, unique=True)
    data = Column(JSONB, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )


class AadhaarDetails(Base):
    __tablename__ = "aadhaar_details"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # lowercase first name followed by the last four Aadhaar digits
    unique_id = Column(String(120), nullable=False, unique=True)
    data = Column(JSONB, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
