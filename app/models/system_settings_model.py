from sqlalchemy import Column, String, Text, Integer, DateTime
from sqlalchemy.sql import func
from app.utils.database import Base


class SystemSetting(Base):
    """
    Runtime overrides for policy values (PENALTY_*, SINGLE_INSTALLMENT_PER_PAYMENT).
    Keys are stored upper-case; a missing row falls back to the env default.
    """

    __tablename__ = "system_settings"

    key = Column(String(100), primary_key=True)
    value = Column(String(200), nullable=False)
    description = Column(Text)

    # actor id from the auth gateway; users live outside this service
    updated_by = Column(Integer, nullable=True)
    updated_on = Column(DateTime, server_default=func.now(), onupdate=func.now())

    def __repr__(self) -> str:
        return f"<SystemSetting(key={self.key}, value={self.value})>"
