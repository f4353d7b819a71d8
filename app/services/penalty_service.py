"""
Late-payment penalty accrual.

Accrual is lazy: it runs when a payment (or an explicit accrual request)
touches an installment, and adds at most one penalty per calendar day.
Failures are reported through ``AccrualOutcome`` and never raised, so a
penalty bug cannot block collection of the payment itself.
"""

import enum
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from app.core import config
from app.core.errors import NotFoundError
from app.models.loan_installment_model import LoanInstallment, InstallmentStatus
from app.services.settings_service import get_setting
from app.utils.loan_calculations import money, ZERO

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PenaltyPolicy:
    flat_amount: Decimal = field(default_factory=lambda: money(config.PENALTY_FLAT_AMOUNT))
    threshold: Decimal = field(default_factory=lambda: money(config.PENALTY_THRESHOLD))
    rate: Decimal = field(default_factory=lambda: Decimal(config.PENALTY_RATE))
    cutoff_hour: int = config.PENALTY_CUTOFF_HOUR
    timezone: str = config.BUSINESS_TIMEZONE

    @classmethod
    def from_settings(cls, db: Session) -> "PenaltyPolicy":
        """
        Env defaults overridden by system_settings rows, when present.
        An unreadable row falls back to the env default with a warning.
        """
        return cls(
            flat_amount=_policy_value(db, "PENALTY_FLAT_AMOUNT", config.PENALTY_FLAT_AMOUNT, _parse_amount),
            threshold=_policy_value(db, "PENALTY_THRESHOLD", config.PENALTY_THRESHOLD, _parse_amount),
            rate=_policy_value(db, "PENALTY_RATE", config.PENALTY_RATE, _parse_rate),
            cutoff_hour=_policy_value(db, "PENALTY_CUTOFF_HOUR", config.PENALTY_CUTOFF_HOUR, _parse_hour),
            timezone=config.BUSINESS_TIMEZONE,
        )


def _parse_amount(value) -> Decimal:
    amount = money(value)
    if amount < 0:
        raise ValueError(f"negative amount: {value}")
    return amount


def _parse_rate(value) -> Decimal:
    rate = Decimal(str(value).strip())
    if not rate.is_finite() or rate < 0:
        raise ValueError(f"invalid rate: {value}")
    return rate


def _parse_hour(value) -> int:
    hour = Decimal(str(value).strip())
    if not hour.is_finite() or hour != hour.to_integral_value() or not 0 <= hour <= 23:
        raise ValueError(f"invalid hour: {value}")
    return int(hour)


def _policy_value(db: Session, key: str, default, parse):
    raw = get_setting(db, key, None)
    if raw is None:
        return parse(default)
    try:
        return parse(raw)
    except (ArithmeticError, ValueError) as e:
        logger.warning(
            "Ignoring unreadable setting %s=%r, using default %s: %s", key, raw, default, e,
            extra={"action": "load_penalty_policy"},
        )
        return parse(default)


class AccrualStatus(str, enum.Enum):
    APPLIED = "applied"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class AccrualOutcome:
    status: AccrualStatus
    penalty_delta: Decimal
    new_penalty_total: Decimal
    reason: Optional[str] = None

    @property
    def applied(self) -> bool:
        return self.status == AccrualStatus.APPLIED


def business_now(policy: PenaltyPolicy) -> datetime:
    return datetime.now(ZoneInfo(policy.timezone))


def to_local(as_of: datetime, policy: PenaltyPolicy) -> datetime:
    """Naive timestamps are taken as already local."""
    if as_of.tzinfo is None:
        return as_of
    return as_of.astimezone(ZoneInfo(policy.timezone))


def is_overdue(due_date: date, as_of: datetime, policy: PenaltyPolicy) -> bool:
    local = to_local(as_of, policy)
    if local.date() > due_date:
        return True
    return local.date() == due_date and local.hour >= policy.cutoff_hour


def penalty_amount(amount_due, policy: PenaltyPolicy) -> Decimal:
    """Flat fee below the threshold, percentage of the installment otherwise."""
    amount_due = money(amount_due)
    if amount_due < policy.threshold:
        return money(policy.flat_amount)
    return money(amount_due * policy.rate)


def _skipped(inst: LoanInstallment, reason: str) -> AccrualOutcome:
    return AccrualOutcome(AccrualStatus.SKIPPED, ZERO, money(inst.penalty_applied), reason)


def _accrue_unguarded(db: Session, inst: LoanInstallment, as_of: datetime, policy: PenaltyPolicy) -> AccrualOutcome:
    if inst.status == InstallmentStatus.PAID.value:
        return _skipped(inst, "installment already paid")

    if not is_overdue(inst.due_date, as_of, policy):
        return _skipped(inst, "not overdue")

    today = to_local(as_of, policy).date()
    reference = inst.last_penalty_applied or inst.due_date
    if reference == today:
        return _skipped(inst, "already accrued today")

    delta = penalty_amount(inst.amount_due, policy)
    inst.penalty_applied = money(money(inst.penalty_applied) + delta)
    inst.last_penalty_applied = today
    db.flush()

    return AccrualOutcome(AccrualStatus.APPLIED, delta, money(inst.penalty_applied))


def accrue(db: Session, inst: LoanInstallment, as_of: datetime, policy: Optional[PenaltyPolicy] = None) -> AccrualOutcome:
    """
    Bring one installment's penalty up to date.

    Runs in a SAVEPOINT: on failure the installment is left as it was and the
    caller's transaction carries on.
    """
    policy = policy or PenaltyPolicy()
    try:
        with db.begin_nested():
            outcome = _accrue_unguarded(db, inst, as_of, policy)
    except Exception as e:
        logger.warning(
            "Penalty accrual failed, treating as no penalty this cycle: %s", e,
            exc_info=True,
            extra={
                "loan_id": inst.loan_id,
                "installment_id": inst.installment_id,
                "action": "accrue_penalty",
            },
        )
        return AccrualOutcome(AccrualStatus.FAILED, ZERO, money(inst.penalty_applied), str(e))

    if outcome.applied:
        logger.info(
            "Penalty %s applied (total %s)", outcome.penalty_delta, outcome.new_penalty_total,
            extra={
                "loan_id": inst.loan_id,
                "installment_id": inst.installment_id,
                "action": "accrue_penalty",
            },
        )
    return outcome


def accrue_penalty(
        db: Session,
        installment_id: int,
        as_of: Optional[datetime] = None,
        policy: Optional[PenaltyPolicy] = None,
) -> AccrualOutcome:
    """Standalone accrual for one installment in its own transaction."""
    policy = policy or PenaltyPolicy.from_settings(db)
    as_of = as_of or business_now(policy)

    inst = (
        db.query(LoanInstallment)
        .filter(LoanInstallment.installment_id == installment_id)
        .with_for_update()
        .first()
    )
    if not inst:
        db.rollback()
        raise NotFoundError("Installment not found", installment_id=installment_id)

    outcome = accrue(db, inst, as_of, policy)
    db.commit()
    return outcome
