from sqlalchemy import (
    Column, Integer, String, Date, DateTime, Numeric, Text, ForeignKey, Index
)
from sqlalchemy.sql import func
from app.utils.database import Base


class JournalEntry(Base):
    __tablename__ = "journal_entries"
    __table_args__ = (
        Index("ix_journal_entries_source", "source_type", "source_id"),
    )

    id = Column(Integer, primary_key=True, index=True)

    date = Column(Date, nullable=False)
    description = Column(Text, nullable=True)

    account_code = Column(String(20), ForeignKey("chart_of_accounts.code"), nullable=False, index=True)

    # exactly one of debit/credit is non-zero per row
    debit = Column(Numeric(12, 2), nullable=False, default=0)
    credit = Column(Numeric(12, 2), nullable=False, default=0)

    source_type = Column(String(30), nullable=False)  # payment / extra_capital / ...
    source_id = Column(Integer, nullable=False)

    created_by = Column(Integer, nullable=True)
    created_on = Column(DateTime, server_default=func.now())
