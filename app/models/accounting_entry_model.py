import enum

from sqlalchemy import (
    Column, Integer, String, DateTime, Numeric, Text, ForeignKey, Index, Enum
)
from sqlalchemy.sql import func
from app.utils.database import Base


class AccountingEntryType(str, enum.Enum):
    CAPITAL_PAID = "capitalPaid"
    INTEREST_PAID = "interestPaid"
    PENALTY_PAID = "penaltyPaid"
    CASH = "cash"
    EXTRA_CAPITAL = "extraCapital"


class AccountingEntry(Base):
    """Categorized entry for reporting aggregation. Not double-entry."""

    __tablename__ = "accounting_entries"
    __table_args__ = (
        Index("ix_accounting_entries_source", "source_type", "source_id"),
        Index("ix_accounting_entries_loan_type", "loan_id", "type"),
    )

    id = Column(Integer, primary_key=True, index=True)
    loan_id = Column(Integer, ForeignKey("loans.loan_id"), nullable=False, index=True)

    type = Column(
        Enum(
            AccountingEntryType,
            name="accounting_entry_type",
            native_enum=False,
            values_callable=lambda e: [m.value for m in e],
            validate_strings=True,
            length=20,
        ),
        nullable=False,
    )
    amount = Column(Numeric(12, 2), nullable=False)
    description = Column(Text, nullable=True)

    source_type = Column(String(30), nullable=False)
    source_id = Column(Integer, nullable=False)

    created_on = Column(DateTime, server_default=func.now())
