from sqlalchemy import BigInteger, Column, String

from app.db.base import Base


class Sequence(Base):
    __tablename__ = "sequences"

    name = Column(String(50), primary_key=True)
    value = Column(BigInteger, nullable=False, default=0)
