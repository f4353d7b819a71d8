"""
Installment schedule: creation and the queries the allocator relies on.
"""

import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.errors import NotFoundError, PrecondContractError
from app.models.loan_installment_model import LoanInstallment, InstallmentStatus
from app.models.loan_model import Loan, LoanStatus
from app.models.loan_payment_model import LoanPayment
from app.utils.loan_calculations import build_weekly_schedule, money

logger = logging.getLogger(__name__)

SCHEDULABLE_STATUSES = (LoanStatus.APPROVED.value, LoanStatus.DELIVERED.value)


def get_loan(db: Session, loan_id: int, lock: bool = False) -> Loan:
    q = db.query(Loan).filter(Loan.loan_id == loan_id)
    if lock:
        q = q.with_for_update()
    loan = q.first()
    if not loan:
        raise NotFoundError("Loan not found", loan_id=loan_id)
    return loan


def get_schedule(db: Session, loan_id: int) -> list[LoanInstallment]:
    return (
        db.query(LoanInstallment)
        .filter(LoanInstallment.loan_id == loan_id)
        .order_by(LoanInstallment.week_number.asc())
        .all()
    )


def pending_installments(db: Session, loan_id: int, lock: bool = False) -> list[LoanInstallment]:
    """Pending installments, oldest week first. ``lock`` takes row locks (FOR UPDATE)."""
    q = (
        db.query(LoanInstallment)
        .filter(
            LoanInstallment.loan_id == loan_id,
            LoanInstallment.status == InstallmentStatus.PENDING.value,
        )
        .order_by(LoanInstallment.week_number.asc())
    )
    if lock:
        q = q.with_for_update()
    return q.all()


def count_pending(db: Session, loan_id: int) -> int:
    return (
        db.query(func.count(LoanInstallment.installment_id))
        .filter(
            LoanInstallment.loan_id == loan_id,
            LoanInstallment.status == InstallmentStatus.PENDING.value,
        )
        .scalar()
    )


def paid_for_week(db: Session, loan_id: int, week_number: int) -> Decimal:
    """Sum of payments already recorded against one installment week."""
    total = (
        db.query(func.coalesce(func.sum(LoanPayment.amount), 0))
        .filter(
            LoanPayment.loan_id == loan_id,
            LoanPayment.installment_week == week_number,
        )
        .scalar()
    )
    return money(total)


def total_due(inst: LoanInstallment) -> Decimal:
    return money(money(inst.amount_due) + money(inst.penalty_applied))


def total_collected(inst: LoanInstallment) -> Decimal:
    return money(money(inst.capital_paid) + money(inst.interest_paid) + money(inst.penalty_paid))


def mark_paid_if_settled(inst: LoanInstallment, on: date) -> bool:
    """
    pending -> paid once collected >= amount_due + penalty_applied.
    A paid installment is never reopened.
    """
    if inst.status == InstallmentStatus.PAID.value:
        return True
    if total_collected(inst) >= total_due(inst):
        inst.status = InstallmentStatus.PAID.value
        inst.paid_date = on
        return True
    return False


def generate_schedule(db: Session, loan: Loan) -> list[LoanInstallment]:
    """Create the weekly installments for an approved or delivered loan."""
    if loan.status not in SCHEDULABLE_STATUSES:
        raise PrecondContractError(
            f"Loan status not eligible for schedule: {loan.status}",
            loan_id=loan.loan_id,
        )
    if not loan.first_installment_date:
        raise PrecondContractError("Loan has no first_installment_date", loan_id=loan.loan_id)

    exists = (
        db.query(LoanInstallment.installment_id)
        .filter(LoanInstallment.loan_id == loan.loan_id)
        .first()
    )
    if exists:
        raise PrecondContractError("Schedule already generated", loan_id=loan.loan_id)

    rows = build_weekly_schedule(
        principal=loan.principal_amount,
        interest_total=loan.interest_amount_total or 0,
        duration_weeks=loan.duration_weeks,
        first_due_date=loan.first_installment_date,
    )

    installments = []
    for row in rows:
        inst = LoanInstallment(
            loan_id=loan.loan_id,
            penalty_applied=money(0),
            capital_paid=money(0),
            interest_paid=money(0),
            penalty_paid=money(0),
            status=InstallmentStatus.PENDING.value,
            **row,
        )
        db.add(inst)
        installments.append(inst)

    db.flush()
    logger.info(
        "Generated %s installments", len(installments),
        extra={"loan_id": loan.loan_id, "action": "generate_schedule"},
    )
    return installments
