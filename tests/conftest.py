"""
Shared fixtures: in-memory SQLite database, seeded chart of accounts, and
small factories for loans and installments.
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import event
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401  registers every table on Base.metadata
from app.models.loan_installment_model import LoanInstallment, InstallmentStatus
from app.models.loan_model import Loan, LoanStatus, LoanType
from app.services.chart_of_accounts import seed_chart_of_accounts
from app.utils.database import Base, build_engine, build_session_factory

DUE = date(2024, 1, 8)


@pytest.fixture
def engine():
    eng = build_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite needs explicit BEGIN for SAVEPOINT to nest correctly
    @event.listens_for(eng, "connect")
    def _connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(eng, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def db(engine):
    session = build_session_factory(engine)()
    seed_chart_of_accounts(session)
    session.commit()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_loan(db):
    def _make(
            status=LoanStatus.DELIVERED.value,
            loan_type=LoanType.EFECTIVO.value,
            principal="800.00",
            interest="200.00",
            weeks=1,
            customer_id=None,
            first_installment_date=DUE,
    ):
        loan = Loan(
            customer_id=customer_id,
            loan_type=loan_type,
            principal_amount=Decimal(principal),
            interest_amount_total=Decimal(interest),
            duration_weeks=weeks,
            first_installment_date=first_installment_date,
            status=status,
        )
        db.add(loan)
        db.commit()
        return loan

    return _make


@pytest.fixture
def make_installment(db):
    def _make(
            loan,
            week_number=1,
            due_date=DUE,
            amount_due="1000.00",
            interest_portion="200.00",
            capital_portion="800.00",
            penalty_applied="0.00",
    ):
        inst = LoanInstallment(
            loan_id=loan.loan_id,
            week_number=week_number,
            due_date=due_date,
            amount_due=Decimal(amount_due),
            interest_portion=Decimal(interest_portion),
            capital_portion=Decimal(capital_portion),
            penalty_applied=Decimal(penalty_applied),
            capital_paid=Decimal("0.00"),
            interest_paid=Decimal("0.00"),
            penalty_paid=Decimal("0.00"),
            status=InstallmentStatus.PENDING.value,
        )
        db.add(inst)
        db.commit()
        return inst

    return _make


@pytest.fixture
def loan_with_installment(make_loan, make_installment):
    """Scenario installment: amount_due 1000 = 200 interest + 800 capital, due 2024-01-08."""
    loan = make_loan()
    inst = make_installment(loan)
    return loan, inst
