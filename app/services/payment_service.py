"""
Apply-payment orchestration.

One call = one database transaction: lock the loan's pending installments,
accrue penalties, allocate, post. Any failure rolls everything back. The
receipt is dispatched only after commit and cannot undo the payment.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import LedgerEngineError, PostingError
from app.services import allocation_service, ledger_service, schedule_service
from app.services.allocation_service import InstallmentAllocation, PaymentPolicy
from app.services.chart_of_accounts import AccountCodes, DEFAULT_ACCOUNTS
from app.services.receipt_service import LoggingReceiptDispatcher, ReceiptDispatcher
from app.utils.loan_calculations import ZERO

logger = logging.getLogger(__name__)


@dataclass
class PaymentRequest:
    loan_id: int
    amount: Decimal
    method: str
    store_id: Optional[int] = None
    apply_extra_to: Optional[str] = None
    as_of: Optional[datetime] = None


@dataclass
class PaymentOutcome:
    loan_id: int
    payment_id: Optional[int]
    paid_installment_weeks: list[int]
    remaining: Decimal
    extra_capital: Decimal = ZERO
    receipt_generated: bool = False
    allocations: list[InstallmentAllocation] = field(default_factory=list)
    payment_ids: list[int] = field(default_factory=list)
    journal_entry_ids: list[int] = field(default_factory=list)
    accounting_entry_ids: list[int] = field(default_factory=list)

    @property
    def remaining_flagged(self) -> bool:
        """Cash was left unapplied and must go back to the customer."""
        return self.remaining > 0


def apply_payment(
        db: Session,
        request: PaymentRequest,
        actor_id: Optional[int] = None,
        policy: Optional[PaymentPolicy] = None,
        accounts: AccountCodes = DEFAULT_ACCOUNTS,
        dispatcher: Optional[ReceiptDispatcher] = None,
) -> PaymentOutcome:
    policy = policy or PaymentPolicy.from_settings(db)
    dispatcher = dispatcher or LoggingReceiptDispatcher()

    try:
        allocation = allocation_service.allocate(
            db,
            loan_id=request.loan_id,
            amount=request.amount,
            method=request.method,
            store_id=request.store_id,
            as_of=request.as_of,
            policy=policy,
            apply_extra_to=request.apply_extra_to,
        )
        loan = schedule_service.get_loan(db, request.loan_id)
        posting = ledger_service.post(
            db, allocation, loan,
            actor_id=actor_id,
            accounts=accounts,
            penalty_policy=policy.penalty,
        )
        db.commit()
    except LedgerEngineError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(
            "Payment posting failed, transaction rolled back: %s", e,
            exc_info=True,
            extra={"loan_id": request.loan_id, "action": "apply_payment"},
        )
        raise PostingError("Payment could not be posted", loan_id=request.loan_id) from e
    except Exception:
        db.rollback()
        raise

    outcome = PaymentOutcome(
        loan_id=request.loan_id,
        payment_id=posting.payment_id,
        paid_installment_weeks=allocation.paid_installment_weeks,
        remaining=allocation.remainder,
        extra_capital=allocation.extra_capital,
        allocations=allocation.per_installment,
        payment_ids=posting.payment_ids,
        journal_entry_ids=posting.journal_entry_ids,
        accounting_entry_ids=posting.accounting_entry_ids,
    )

    logger.info(
        "Payment of %s applied, weeks paid %s, remaining %s",
        allocation.amount, outcome.paid_installment_weeks, outcome.remaining,
        extra={
            "loan_id": request.loan_id,
            "payment_id": outcome.payment_id,
            "actor_id": actor_id,
            "action": "apply_payment",
        },
    )

    try:
        outcome.receipt_generated = bool(dispatcher.dispatch(outcome))
    except Exception as e:
        # payment is committed; receipt failure is only reported
        logger.warning(
            "Receipt dispatch failed: %s", e,
            exc_info=True,
            extra={"loan_id": request.loan_id, "payment_id": outcome.payment_id, "action": "receipt"},
        )
        outcome.receipt_generated = False

    return outcome
