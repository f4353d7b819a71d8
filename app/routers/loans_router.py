from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional

from app.utils.database import get_db
from app.schemas.loan_schema import (
    InstallmentOut,
    ScheduleResult,
    AccrualRequest,
    AccrualOut,
)
from app.services import penalty_service, schedule_service

router = APIRouter(tags=["Loans"])


@router.get("/loans/{loan_id}/schedule", response_model=list[InstallmentOut])
def get_schedule(loan_id: int, db: Session = Depends(get_db)):
    schedule_service.get_loan(db, loan_id)
    return schedule_service.get_schedule(db, loan_id)


@router.post("/loans/{loan_id}/schedule", response_model=ScheduleResult)
def create_schedule(loan_id: int, db: Session = Depends(get_db)):
    try:
        loan = schedule_service.get_loan(db, loan_id, lock=True)
        installments = schedule_service.generate_schedule(db, loan)
        db.commit()
    except Exception:
        db.rollback()
        raise

    return ScheduleResult(loan_id=loan_id, installments_created=len(installments))


@router.post("/installments/{installment_id}/accrue-penalty", response_model=AccrualOut)
def accrue_installment_penalty(
        installment_id: int,
        payload: Optional[AccrualRequest] = None,
        db: Session = Depends(get_db),
):
    as_of = payload.as_of if payload else None
    outcome = penalty_service.accrue_penalty(db, installment_id, as_of=as_of)
    return AccrualOut(
        installment_id=installment_id,
        status=outcome.status.value,
        penaltyDelta=float(outcome.penalty_delta),
        newPenaltyTotal=float(outcome.new_penalty_total),
        reason=outcome.reason,
    )
