import enum

from sqlalchemy import (
    Column, Integer, String, Date, Numeric, ForeignKey, UniqueConstraint
)
from sqlalchemy.orm import relationship
from app.utils.database import Base


class InstallmentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"


class LoanInstallment(Base):
    __tablename__ = "loan_installments"
    __table_args__ = (
        UniqueConstraint("loan_id", "week_number", name="uq_loan_installment_week"),
    )

    installment_id = Column(Integer, primary_key=True, index=True)
    loan_id = Column(Integer, ForeignKey("loans.loan_id"), nullable=False, index=True)

    week_number = Column(Integer, nullable=False)
    due_date = Column(Date, nullable=False, index=True)

    # fixed per period: amount_due == capital_portion + interest_portion
    amount_due = Column(Numeric(12, 2), nullable=False)
    capital_portion = Column(Numeric(12, 2), nullable=False)
    interest_portion = Column(Numeric(12, 2), nullable=False)

    # cumulative, never decreases
    penalty_applied = Column(Numeric(12, 2), nullable=False, default=0)
    last_penalty_applied = Column(Date, nullable=True)

    capital_paid = Column(Numeric(12, 2), nullable=False, default=0)
    interest_paid = Column(Numeric(12, 2), nullable=False, default=0)
    penalty_paid = Column(Numeric(12, 2), nullable=False, default=0)

    status = Column(String(20), nullable=False, default=InstallmentStatus.PENDING.value)
    paid_date = Column(Date, nullable=True)

    loan = relationship("Loan", back_populates="installments")
