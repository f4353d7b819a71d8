"""
Tests for penalty accrual

Covers the overdue rule (strictly past due, or due today after the cutoff),
the flat/percentage amount, once-per-day idempotency and fail-open behaviour.
"""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from app.core.errors import NotFoundError
from app.models.loan_installment_model import InstallmentStatus
from app.services import penalty_service
from app.services.penalty_service import (
    AccrualStatus, PenaltyPolicy, accrue, accrue_penalty, is_overdue, penalty_amount,
)

POLICY = PenaltyPolicy(
    flat_amount=Decimal("50.00"),
    threshold=Decimal("500.00"),
    rate=Decimal("0.10"),
    cutoff_hour=14,
    timezone="America/Mexico_City",
)


class TestOverdueRule:

    def test_day_after_due_is_overdue(self):
        assert is_overdue(date(2024, 1, 8), datetime(2024, 1, 9, 8, 0), POLICY)

    def test_due_day_before_cutoff_is_not_overdue(self):
        assert not is_overdue(date(2024, 1, 8), datetime(2024, 1, 8, 13, 59), POLICY)

    def test_due_day_at_cutoff_is_overdue(self):
        assert is_overdue(date(2024, 1, 8), datetime(2024, 1, 8, 14, 0), POLICY)

    def test_before_due_date(self):
        assert not is_overdue(date(2024, 1, 8), datetime(2024, 1, 7, 23, 0), POLICY)

    def test_aware_timestamp_uses_business_clock(self):
        # 2024-01-08 21:00 UTC is 15:00 in Mexico City
        assert is_overdue(date(2024, 1, 8), datetime(2024, 1, 8, 21, 0, tzinfo=timezone.utc), POLICY)
        # 2024-01-08 19:00 UTC is 13:00 in Mexico City
        assert not is_overdue(date(2024, 1, 8), datetime(2024, 1, 8, 19, 0, tzinfo=timezone.utc), POLICY)


class TestPenaltyAmount:

    def test_flat_below_threshold(self):
        assert penalty_amount(Decimal("300.00"), POLICY) == Decimal("50.00")

    def test_percentage_at_threshold(self):
        assert penalty_amount(Decimal("500.00"), POLICY) == Decimal("50.00")

    def test_percentage_rounded_to_cents(self):
        assert penalty_amount(Decimal("1234.56"), POLICY) == Decimal("123.46")


class TestAccrue:

    def test_overdue_installment_accrues_once(self, db, loan_with_installment):
        """Scenario B: amount_due >= 500 accrues 10% = 100"""
        _, inst = loan_with_installment

        outcome = accrue(db, inst, datetime(2024, 1, 9, 10, 0), POLICY)

        assert outcome.status == AccrualStatus.APPLIED
        assert outcome.penalty_delta == Decimal("100.00")
        assert outcome.new_penalty_total == Decimal("100.00")
        assert inst.last_penalty_applied == date(2024, 1, 9)

    def test_flat_penalty_idempotent_same_day(self, db, make_loan, make_installment):
        """Scenario C: 300 due accrues 50 once; second attempt same day is a no-op"""
        loan = make_loan(principal="250.00", interest="50.00")
        inst = make_installment(loan, amount_due="300.00", interest_portion="50.00", capital_portion="250.00")

        first = accrue(db, inst, datetime(2024, 1, 10, 9, 0), POLICY)
        second = accrue(db, inst, datetime(2024, 1, 10, 18, 0), POLICY)

        assert first.status == AccrualStatus.APPLIED
        assert second.status == AccrualStatus.SKIPPED
        assert second.penalty_delta == Decimal("0.00")
        assert Decimal(inst.penalty_applied) == Decimal("50.00")

    def test_accrues_again_next_day(self, db, loan_with_installment):
        _, inst = loan_with_installment

        accrue(db, inst, datetime(2024, 1, 9, 10, 0), POLICY)
        outcome = accrue(db, inst, datetime(2024, 1, 10, 10, 0), POLICY)

        assert outcome.status == AccrualStatus.APPLIED
        assert Decimal(inst.penalty_applied) == Decimal("200.00")

    def test_not_overdue_is_skipped(self, db, loan_with_installment):
        _, inst = loan_with_installment

        outcome = accrue(db, inst, datetime(2024, 1, 8, 10, 0), POLICY)

        assert outcome.status == AccrualStatus.SKIPPED
        assert Decimal(inst.penalty_applied) == Decimal("0.00")
        assert inst.last_penalty_applied is None

    def test_due_day_after_cutoff_compares_against_due_date(self, db, loan_with_installment):
        """Never-accrued installments use due_date as the last accrual day"""
        _, inst = loan_with_installment

        outcome = accrue(db, inst, datetime(2024, 1, 8, 15, 0), POLICY)

        assert outcome.status == AccrualStatus.SKIPPED
        assert outcome.reason == "already accrued today"

    def test_paid_installment_never_accrues(self, db, loan_with_installment):
        _, inst = loan_with_installment
        inst.status = InstallmentStatus.PAID.value
        db.commit()

        outcome = accrue(db, inst, datetime(2024, 2, 1, 10, 0), POLICY)

        assert outcome.status == AccrualStatus.SKIPPED
        assert Decimal(inst.penalty_applied) == Decimal("0.00")

    def test_failure_is_reported_not_raised(self, db, loan_with_installment, monkeypatch):
        _, inst = loan_with_installment

        def broken(*args, **kwargs):
            raise RuntimeError("rate table missing")

        monkeypatch.setattr(penalty_service, "penalty_amount", broken)

        outcome = accrue(db, inst, datetime(2024, 1, 9, 10, 0), POLICY)

        assert outcome.status == AccrualStatus.FAILED
        assert "rate table missing" in outcome.reason
        assert outcome.penalty_delta == Decimal("0.00")
        assert Decimal(inst.penalty_applied) == Decimal("0.00")


class TestAccruePenaltyStandalone:

    def test_commits_and_is_idempotent(self, db, loan_with_installment):
        _, inst = loan_with_installment
        as_of = datetime(2024, 1, 9, 10, 0)

        first = accrue_penalty(db, inst.installment_id, as_of=as_of, policy=POLICY)
        second = accrue_penalty(db, inst.installment_id, as_of=as_of, policy=POLICY)

        db.refresh(inst)
        assert first.applied
        assert not second.applied
        assert Decimal(inst.penalty_applied) == Decimal("100.00")

    def test_unknown_installment(self, db):
        with pytest.raises(NotFoundError):
            accrue_penalty(db, 9999, as_of=datetime(2024, 1, 9), policy=POLICY)

    def test_policy_from_settings(self, db):
        from app.models.system_settings_model import SystemSetting

        db.add(SystemSetting(key="PENALTY_FLAT_AMOUNT", value="75"))
        db.add(SystemSetting(key="PENALTY_CUTOFF_HOUR", value="12"))
        db.commit()

        policy = PenaltyPolicy.from_settings(db)

        assert policy.flat_amount == Decimal("75.00")
        assert policy.cutoff_hour == 12
        assert policy.threshold == Decimal("500.00")

    @pytest.mark.parametrize("key,raw", [
        ("PENALTY_CUTOFF_HOUR", "14.0"),
        ("PENALTY_CUTOFF_HOUR", "noon"),
        ("PENALTY_CUTOFF_HOUR", "31"),
        ("PENALTY_RATE", "ten percent"),
        ("PENALTY_FLAT_AMOUNT", "-5"),
    ])
    def test_unreadable_setting_falls_back_to_default(self, db, key, raw):
        from app.models.system_settings_model import SystemSetting

        db.add(SystemSetting(key=key, value=raw))
        db.commit()

        policy = PenaltyPolicy.from_settings(db)

        assert policy == PenaltyPolicy()
