from fastapi import APIRouter, Depends, Header
from sqlalchemy.orm import Session
from typing import Optional

from app.utils.database import get_db
from app.schemas.payment_schema import PaymentApply, PaymentOutcomeOut
from app.services.payment_service import PaymentRequest, apply_payment

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("/apply", response_model=PaymentOutcomeOut)
def apply_loan_payment(
        payload: PaymentApply,
        x_user_id: Optional[int] = Header(None),  # set by the auth gateway
        db: Session = Depends(get_db),
):
    outcome = apply_payment(
        db,
        PaymentRequest(
            loan_id=payload.loan_id,
            amount=payload.amount,
            method=payload.method,
            store_id=payload.store_id,
            apply_extra_to=payload.apply_extra_to,
            as_of=payload.payment_date,
        ),
        actor_id=x_user_id,
    )
    return PaymentOutcomeOut.from_outcome(outcome)
