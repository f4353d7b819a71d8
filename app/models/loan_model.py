# app/models/loan_model.py
import enum

from sqlalchemy import (
    Column,
    Integer,
    String,
    Date,
    DateTime,
    Numeric,
    Index,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.utils.database import Base


class LoanStatus(str, enum.Enum):
    PENDING = "pending"
    PENDING_ADMIN_APPROVAL = "pending_admin_approval"
    APPROVED = "approved"
    DELIVERED = "delivered"
    ACTIVE = "active"
    PAID_OFF = "paid_off"
    DEFAULTED = "defaulted"


class LoanType(str, enum.Enum):
    EFECTIVO = "efectivo"  # cash loan
    PRODUCTO = "producto"  # product financed, must be delivered first


class Loan(Base):
    __tablename__ = "loans"

    __table_args__ = (
        Index("ix_loans_status", "status"),
        Index("ix_loans_customer_status", "customer_id", "status"),
    )

    loan_id = Column(Integer, primary_key=True, index=True)

    # owner of the 1103-XXXX receivable sub-account; customers live outside this service
    customer_id = Column(Integer, nullable=True, index=True)
    store_id = Column(Integer, nullable=True)

    loan_type = Column(String(20), nullable=False, server_default=LoanType.EFECTIVO.value)

    principal_amount = Column(Numeric(12, 2), nullable=False)
    interest_amount_total = Column(Numeric(12, 2), nullable=False, server_default="0")
    duration_weeks = Column(Integer, nullable=False)

    first_installment_date = Column(Date, nullable=True)

    status = Column(String(30), nullable=False, server_default=LoanStatus.PENDING.value)

    created_by = Column(Integer, nullable=True)
    created_on = Column(DateTime, server_default=func.now(), nullable=True)

    installments = relationship(
        "LoanInstallment",
        back_populates="loan",
        order_by="LoanInstallment.week_number",
        lazy="selectin",
        passive_deletes=True,
    )
