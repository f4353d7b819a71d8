"""
Ledger poster: turns an allocation into a Payment row, balanced journal
rows and categorized accounting entries, then moves installment and loan
state forward.

Everything here runs inside the caller's transaction and only flushes.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from app.core.errors import PostingError
from app.models.accounting_entry_model import AccountingEntry, AccountingEntryType
from app.models.journal_entry_model import JournalEntry
from app.models.loan_model import Loan, LoanStatus
from app.models.loan_payment_model import LoanPayment
from app.services import schedule_service
from app.services.allocation_service import AllocationResult, InstallmentAllocation
from app.services.chart_of_accounts import AccountCodes, DEFAULT_ACCOUNTS, ensure_customer_receivable
from app.services.penalty_service import to_local, PenaltyPolicy
from app.utils.loan_calculations import money, ZERO

logger = logging.getLogger(__name__)

SOURCE_PAYMENT = "payment"

# loan statuses that become active once the first payment posts
STARTS_ON_FIRST_PAYMENT = (LoanStatus.APPROVED.value, LoanStatus.DELIVERED.value)


@dataclass
class JournalLine:
    account_code: str
    debit: Decimal = ZERO
    credit: Decimal = ZERO


@dataclass
class PostingResult:
    payment_ids: list[int] = field(default_factory=list)
    journal_entry_ids: list[int] = field(default_factory=list)
    accounting_entry_ids: list[int] = field(default_factory=list)

    @property
    def payment_id(self) -> Optional[int]:
        return self.payment_ids[0] if self.payment_ids else None


def build_payment_lines(
        cash_account: str,
        receivable_account: str,
        accounts: AccountCodes,
        penalty: Decimal,
        interest: Decimal,
        capital: Decimal,
) -> list[JournalLine]:
    """Debit cash/bank for the gross; credit each non-zero component."""
    penalty, interest, capital = money(penalty), money(interest), money(capital)
    gross = money(penalty + interest + capital)

    lines = [JournalLine(cash_account, debit=gross)]
    if capital > 0:
        lines.append(JournalLine(receivable_account, credit=capital))
    if interest > 0:
        lines.append(JournalLine(accounts.interest_income, credit=interest))
    if penalty > 0:
        lines.append(JournalLine(accounts.penalty_income, credit=penalty))
    return lines


def assert_balanced(lines: list[JournalLine]) -> None:
    debits = money(sum((l.debit for l in lines), ZERO))
    credits = money(sum((l.credit for l in lines), ZERO))
    if debits != credits:
        raise PostingError(
            f"Unbalanced journal: debits {debits} != credits {credits}",
            debits=debits, credits=credits,
        )
    for l in lines:
        if (l.debit > 0) == (l.credit > 0):
            raise PostingError(
                f"Journal line on {l.account_code} must carry exactly one of debit/credit",
                account_code=l.account_code,
            )


def _write_journal(db: Session, lines, description, source_id, entry_date, actor_id) -> list[JournalEntry]:
    assert_balanced(lines)
    rows = [
        JournalEntry(
            date=entry_date,
            description=description,
            account_code=l.account_code,
            debit=money(l.debit),
            credit=money(l.credit),
            source_type=SOURCE_PAYMENT,
            source_id=source_id,
            created_by=actor_id,
        )
        for l in lines
    ]
    db.add_all(rows)
    return rows


def _write_accounting(db: Session, loan_id, components, description, source_id) -> list[AccountingEntry]:
    rows = [
        AccountingEntry(
            loan_id=loan_id,
            type=entry_type,
            amount=money(amount),
            description=description,
            source_type=SOURCE_PAYMENT,
            source_id=source_id,
        )
        for entry_type, amount in components
        if money(amount) > 0
    ]
    db.add_all(rows)
    return rows


def _apply_to_installment(alloc: InstallmentAllocation, paid_on) -> None:
    inst = alloc.installment
    inst.penalty_paid = money(money(inst.penalty_paid) + alloc.penalty_paid)
    inst.interest_paid = money(money(inst.interest_paid) + alloc.interest_paid)
    inst.capital_paid = money(money(inst.capital_paid) + alloc.capital_paid)
    schedule_service.mark_paid_if_settled(inst, paid_on)


def _advance_loan_status(db: Session, loan: Loan) -> None:
    # defaulted loans keep their status until paid off
    if loan.status in STARTS_ON_FIRST_PAYMENT:
        loan.status = LoanStatus.ACTIVE.value
    db.flush()
    if schedule_service.count_pending(db, loan.loan_id) == 0:
        loan.status = LoanStatus.PAID_OFF.value


def post(
        db: Session,
        allocation: AllocationResult,
        loan: Loan,
        actor_id: Optional[int] = None,
        accounts: AccountCodes = DEFAULT_ACCOUNTS,
        penalty_policy: Optional[PenaltyPolicy] = None,
) -> PostingResult:
    """
    Post every per-installment allocation, plus extra capital if requested.

    Raises PostingError on an unbalanced journal; database errors propagate
    so the caller can roll the whole payment back.
    """
    result = PostingResult()
    if not allocation.per_installment and allocation.extra_capital <= 0:
        return result

    cash_account = accounts.for_method(allocation.method)
    receivable_account = ensure_customer_receivable(db, loan.customer_id, accounts)
    local_as_of = to_local(allocation.as_of, penalty_policy or PenaltyPolicy())
    entry_date = local_as_of.date()

    for alloc in allocation.per_installment:
        if alloc.payment_amount <= 0:
            continue

        payment = LoanPayment(
            loan_id=loan.loan_id,
            amount=alloc.payment_amount,
            method=allocation.method,
            installment_week=alloc.week_number,
            payment_date=local_as_of.replace(tzinfo=None),
            store_id=allocation.store_id,
            created_by=actor_id,
        )
        db.add(payment)
        db.flush()  # gives payment.payment_id

        description = f"Pago semana {alloc.week_number} - Préstamo {loan.loan_id} - {allocation.method}"
        lines = build_payment_lines(
            cash_account, receivable_account, accounts,
            penalty=alloc.penalty_paid,
            interest=alloc.interest_paid,
            capital=alloc.capital_paid,
        )
        journal = _write_journal(db, lines, description, payment.payment_id, entry_date, actor_id)
        entries = _write_accounting(
            db,
            loan.loan_id,
            [
                (AccountingEntryType.CAPITAL_PAID, alloc.capital_paid),
                (AccountingEntryType.INTEREST_PAID, alloc.interest_paid),
                (AccountingEntryType.PENALTY_PAID, alloc.penalty_paid),
                (AccountingEntryType.CASH, alloc.payment_amount),
            ],
            description,
            payment.payment_id,
        )

        _apply_to_installment(alloc, entry_date)

        db.flush()
        result.payment_ids.append(payment.payment_id)
        result.journal_entry_ids.extend(r.id for r in journal)
        result.accounting_entry_ids.extend(r.id for r in entries)

    if allocation.extra_capital > 0:
        extra = money(allocation.extra_capital)
        # own row with no week, so paid_for_week only sees installment cash
        extra_payment = LoanPayment(
            loan_id=loan.loan_id,
            amount=extra,
            method=allocation.method,
            installment_week=None,
            payment_date=local_as_of.replace(tzinfo=None),
            store_id=allocation.store_id,
            created_by=actor_id,
        )
        db.add(extra_payment)
        db.flush()
        result.payment_ids.append(extra_payment.payment_id)

        description = f"Abono a capital - Préstamo {loan.loan_id} - {allocation.method}"
        lines = [
            JournalLine(cash_account, debit=extra),
            JournalLine(receivable_account, credit=extra),
        ]
        journal = _write_journal(db, lines, description, extra_payment.payment_id, entry_date, actor_id)
        entries = _write_accounting(
            db,
            loan.loan_id,
            [
                (AccountingEntryType.EXTRA_CAPITAL, extra),
                (AccountingEntryType.CASH, extra),
            ],
            description,
            extra_payment.payment_id,
        )
        db.flush()
        result.journal_entry_ids.extend(r.id for r in journal)
        result.accounting_entry_ids.extend(r.id for r in entries)

    _advance_loan_status(db, loan)

    logger.info(
        "Posted %s journal rows for %s", len(result.journal_entry_ids), allocation.amount,
        extra={"loan_id": loan.loan_id, "payment_id": result.payment_id, "action": "post_payment"},
    )
    return result
