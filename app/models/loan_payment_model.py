import enum

from sqlalchemy import (
    Column, Integer, String, DateTime, Numeric, ForeignKey, Index
)
from sqlalchemy.sql import func
from app.utils.database import Base


class PaymentMethod(str, enum.Enum):
    EFECTIVO = "efectivo"
    TRANSFERENCIA = "transferencia"
    TARJETA = "tarjeta"


class LoanPayment(Base):
    __tablename__ = "loan_payments"
    __table_args__ = (
        Index("ix_loan_payments_loan_week", "loan_id", "installment_week"),
    )

    payment_id = Column(Integer, primary_key=True, index=True)

    loan_id = Column(Integer, ForeignKey("loans.loan_id"), nullable=False, index=True)

    # cash received, immutable
    amount = Column(Numeric(12, 2), nullable=False)
    method = Column(String(20), nullable=False, default=PaymentMethod.EFECTIVO.value)

    # the single installment this payment is attributed to; None for extra capital
    installment_week = Column(Integer, nullable=True)

    payment_date = Column(DateTime, server_default=func.now(), nullable=False)
    store_id = Column(Integer, nullable=True)

    created_by = Column(Integer, nullable=True)
    created_on = Column(DateTime, server_default=func.now())
