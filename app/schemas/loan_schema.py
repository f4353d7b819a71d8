from pydantic import BaseModel
from datetime import date, datetime
from typing import Optional


class InstallmentOut(BaseModel):
    installment_id: int
    loan_id: int
    week_number: int
    due_date: date

    amount_due: float
    capital_portion: float
    interest_portion: float

    penalty_applied: float
    last_penalty_applied: Optional[date] = None

    capital_paid: float
    interest_paid: float
    penalty_paid: float

    status: str
    paid_date: Optional[date] = None

    class Config:
        from_attributes = True


class ScheduleResult(BaseModel):
    loan_id: int
    installments_created: int


class AccrualRequest(BaseModel):
    as_of: Optional[datetime] = None


class AccrualOut(BaseModel):
    installment_id: int
    status: str
    penaltyDelta: float
    newPenaltyTotal: float
    reason: Optional[str] = None
