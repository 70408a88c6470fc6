import uuid

from sqlalchemy import Column, DateTime, String, func
from sqlalchemy.dialects.postgresql import UUID

from app.db.base import Base


class Otp(Base):
    __tablename__ = "otps"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    mobile = Column(String(15), nullable=False, unique=True)
    f_name = Column(String(100), nullable=True)
    l_name = Column(String(100), nullable=True)
    otp = Column(String(6), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
