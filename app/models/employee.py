import uuid

from sqlalchemy import Boolean, Column, DateTime, String, func
from sqlalchemy.dialects.postgresql import ARRAY, UUID

from app.db.base import Base


class Employee(Base):
    __tablename__ = "employees"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=False, unique=True, index=True)
    f_name = Column(String(100), nullable=False)
    m_name = Column(String(100), nullable=True)
    l_name = Column(String(100), nullable=True)
    roles = Column(ARRAY(String(50)), nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True)
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
