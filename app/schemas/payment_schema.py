from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Literal


class PaymentApply(BaseModel):
    loan_id: int
    amount: Decimal = Field(gt=0, decimal_places=2)
    method: Literal["efectivo", "transferencia", "tarjeta"]
    store_id: Optional[int] = None
    apply_extra_to: Optional[Literal["capital"]] = None
    # defaults to now on the business clock
    payment_date: Optional[datetime] = None

    @field_validator("apply_extra_to", mode="before")
    def empty_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None


class AllocationOut(BaseModel):
    installment_id: int
    week_number: int
    payment_amount: float
    penalty_paid: float
    interest_paid: float
    capital_paid: float
    remaining_due: float
    penalty_accrual: str
    penalty_delta: float


class PaymentOutcomeOut(BaseModel):
    loan_id: int
    payment_id: Optional[int] = None
    paidInstallmentWeeks: List[int]
    remaining: float
    remaining_unapplied: bool
    extra_capital: float
    receipt_generated: bool
    allocations: List[AllocationOut]
    journal_entry_ids: List[int]
    accounting_entry_ids: List[int]

    @classmethod
    def from_outcome(cls, outcome) -> "PaymentOutcomeOut":
        return cls(
            loan_id=outcome.loan_id,
            payment_id=outcome.payment_id,
            paidInstallmentWeeks=outcome.paid_installment_weeks,
            remaining=float(outcome.remaining),
            remaining_unapplied=outcome.remaining_flagged,
            extra_capital=float(outcome.extra_capital),
            receipt_generated=outcome.receipt_generated,
            allocations=[
                AllocationOut(
                    installment_id=a.installment.installment_id,
                    week_number=a.week_number,
                    payment_amount=float(a.payment_amount),
                    penalty_paid=float(a.penalty_paid),
                    interest_paid=float(a.interest_paid),
                    capital_paid=float(a.capital_paid),
                    remaining_due=float(a.remaining_due),
                    penalty_accrual=a.accrual.status.value,
                    penalty_delta=float(a.accrual.penalty_delta),
                )
                for a in outcome.allocations
            ],
            journal_entry_ids=outcome.journal_entry_ids,
            accounting_entry_ids=outcome.accounting_entry_ids,
        )
