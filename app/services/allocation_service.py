"""
Payment allocation across installments.

Installments are visited oldest week first. Each touched installment has its
penalty brought up to date, then the cash applied to it is split by the
fixed waterfall: penalty, then interest, then capital.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from app.core import config
from app.core.errors import PaymentValidationError, PrecondContractError
from app.models.loan_installment_model import LoanInstallment
from app.models.loan_model import Loan, LoanStatus, LoanType
from app.models.loan_payment_model import PaymentMethod
from app.services import penalty_service, schedule_service
from app.services.penalty_service import AccrualOutcome, PenaltyPolicy
from app.services.settings_service import get_bool_setting
from app.utils.loan_calculations import money, ZERO

logger = logging.getLogger(__name__)

APPLY_EXTRA_TO_CAPITAL = "capital"


@dataclass(frozen=True)
class PaymentPolicy:
    penalty: PenaltyPolicy = field(default_factory=PenaltyPolicy)
    # True keeps the "one payment = one installment" behaviour
    single_installment_per_payment: bool = config.SINGLE_INSTALLMENT_PER_PAYMENT

    @classmethod
    def from_settings(cls, db: Session) -> "PaymentPolicy":
        return cls(
            penalty=PenaltyPolicy.from_settings(db),
            single_installment_per_payment=get_bool_setting(
                db, "SINGLE_INSTALLMENT_PER_PAYMENT", config.SINGLE_INSTALLMENT_PER_PAYMENT
            ),
        )


@dataclass
class ComponentSplit:
    penalty: Decimal
    interest: Decimal
    capital: Decimal

    @property
    def total(self) -> Decimal:
        return money(self.penalty + self.interest + self.capital)


@dataclass
class InstallmentAllocation:
    installment: LoanInstallment
    payment_amount: Decimal
    penalty_paid: Decimal
    interest_paid: Decimal
    capital_paid: Decimal
    already_paid: Decimal
    total_due: Decimal
    accrual: AccrualOutcome

    @property
    def week_number(self) -> int:
        return self.installment.week_number

    @property
    def remaining_due(self) -> Decimal:
        """What is still owed on the installment once this allocation posts."""
        return money(self.total_due - self.already_paid - self.payment_amount)

    @property
    def settles(self) -> bool:
        return self.remaining_due <= 0


@dataclass
class AllocationResult:
    loan_id: int
    amount: Decimal
    method: str
    store_id: Optional[int]
    as_of: datetime
    per_installment: list[InstallmentAllocation] = field(default_factory=list)
    remainder: Decimal = ZERO
    extra_capital: Decimal = ZERO
    paid_installment_weeks: list[int] = field(default_factory=list)

    @property
    def applied_total(self) -> Decimal:
        return money(sum((a.payment_amount for a in self.per_installment), ZERO))


def split_waterfall(amount, penalty_outstanding, interest_outstanding, capital_outstanding) -> ComponentSplit:
    """
    Split ``amount`` penalty first, then interest, then capital.
    Each step is capped by that component's outstanding balance and by the
    cash left; every piece is rounded to cents before it is subtracted.
    """
    left = money(amount)

    penalty = money(min(left, max(money(penalty_outstanding), ZERO)))
    left = money(left - penalty)

    interest = money(min(left, max(money(interest_outstanding), ZERO)))
    left = money(left - interest)

    capital = money(min(left, max(money(capital_outstanding), ZERO)))

    return ComponentSplit(penalty=penalty, interest=interest, capital=capital)


def validate_request(amount, method) -> Decimal:
    try:
        amount = money(amount)
    except (ArithmeticError, ValueError, TypeError):
        raise PaymentValidationError("Payment amount is not a valid number", amount=str(amount))
    if amount <= 0:
        raise PaymentValidationError("Payment amount must be > 0", amount=amount)

    try:
        PaymentMethod(method)
    except ValueError:
        raise PaymentValidationError(f"Unsupported payment method: {method}", method=str(method))
    return amount


def check_loan_accepts_payments(loan: Loan) -> None:
    if loan.status in (LoanStatus.PENDING.value, LoanStatus.PENDING_ADMIN_APPROVAL.value):
        raise PrecondContractError(
            f"Loan status not eligible for payment: {loan.status}",
            loan_id=loan.loan_id, status=loan.status,
        )
    if loan.loan_type == LoanType.PRODUCTO.value and loan.status == LoanStatus.APPROVED.value:
        raise PrecondContractError(
            "Product loan has not been delivered yet",
            loan_id=loan.loan_id, status=loan.status,
        )


def allocate(
        db: Session,
        loan_id: int,
        amount,
        method: str,
        store_id: Optional[int] = None,
        as_of: Optional[datetime] = None,
        policy: Optional[PaymentPolicy] = None,
        apply_extra_to: Optional[str] = None,
) -> AllocationResult:
    """
    Allocate ``amount`` over the loan's pending installments.

    Installment rows are locked (FOR UPDATE) before anything is read from
    them; the caller owns the transaction. Nothing is written except the
    penalty accrual of the installments visited.
    """
    amount = validate_request(amount, method)
    if apply_extra_to not in (None, APPLY_EXTRA_TO_CAPITAL):
        raise PaymentValidationError(
            f"Unsupported apply_extra_to: {apply_extra_to}", apply_extra_to=apply_extra_to
        )

    policy = policy or PaymentPolicy()
    as_of = as_of or penalty_service.business_now(policy.penalty)

    loan = schedule_service.get_loan(db, loan_id)
    check_loan_accepts_payments(loan)

    installments = schedule_service.pending_installments(db, loan_id, lock=True)
    if not installments:
        raise PrecondContractError("All installments already paid", loan_id=loan_id)

    result = AllocationResult(
        loan_id=loan_id,
        amount=amount,
        method=PaymentMethod(method).value,
        store_id=store_id,
        as_of=as_of,
    )
    remaining = amount

    for inst in installments:
        if remaining <= 0:
            break

        accrual = penalty_service.accrue(db, inst, as_of, policy.penalty)

        already_paid = schedule_service.paid_for_week(db, loan_id, inst.week_number)
        total_due = schedule_service.total_due(inst)
        remaining_due = money(total_due - already_paid)
        if remaining_due <= 0:
            # settled by earlier payments; no cash consumed
            schedule_service.mark_paid_if_settled(inst, penalty_service.to_local(as_of, policy.penalty).date())
            continue

        payment_now = min(remaining, remaining_due)
        split = split_waterfall(
            payment_now,
            penalty_outstanding=money(inst.penalty_applied) - money(inst.penalty_paid),
            interest_outstanding=money(inst.interest_portion) - money(inst.interest_paid),
            capital_outstanding=money(inst.capital_portion) - money(inst.capital_paid),
        )
        # components can cap below payment_now when payment history and paid columns disagree
        payment_now = split.total
        if payment_now <= 0:
            continue

        alloc = InstallmentAllocation(
            installment=inst,
            payment_amount=payment_now,
            penalty_paid=split.penalty,
            interest_paid=split.interest,
            capital_paid=split.capital,
            already_paid=already_paid,
            total_due=total_due,
            accrual=accrual,
        )
        result.per_installment.append(alloc)
        if alloc.settles:
            result.paid_installment_weeks.append(inst.week_number)

        remaining = money(remaining - payment_now)

        if policy.single_installment_per_payment:
            break

    if remaining > 0 and apply_extra_to == APPLY_EXTRA_TO_CAPITAL:
        result.extra_capital = remaining
        remaining = ZERO
    result.remainder = remaining

    if result.remainder > 0:
        logger.info(
            "Unapplied remainder %s returned to caller", result.remainder,
            extra={"loan_id": loan_id, "action": "allocate"},
        )
    return result
