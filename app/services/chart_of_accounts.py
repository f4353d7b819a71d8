"""
Chart of accounts used by the payment engine.

The codes live in one table here and are handed to the ledger poster as an
``AccountCodes`` value; nothing else in the engine spells an account literal.
"""

import logging
from dataclasses import dataclass

from sqlalchemy import insert
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import PaymentValidationError
from app.models.chart_of_accounts_model import ChartOfAccount
from app.models.loan_payment_model import PaymentMethod

logger = logging.getLogger(__name__)

CASH = "1101"
BANK = "1102"
RECEIVABLES = "1103"
INTEREST_INCOME = "4100"
PENALTY_INCOME = "4101"

# code -> (name, type, category)
CHART_OF_ACCOUNTS = {
    CASH: ("Caja", "asset", "ACTIVO CIRCULANTE"),
    BANK: ("Bancos", "asset", "ACTIVO CIRCULANTE"),
    RECEIVABLES: ("Cuentas por Cobrar", "asset", "ACTIVO CIRCULANTE"),
    INTEREST_INCOME: ("Ingresos por Intereses", "revenue", "INGRESOS"),
    PENALTY_INCOME: ("Ingresos por Moratorios", "revenue", "INGRESOS"),
}


@dataclass(frozen=True)
class AccountCodes:
    cash: str = CASH
    bank: str = BANK
    receivables: str = RECEIVABLES
    interest_income: str = INTEREST_INCOME
    penalty_income: str = PENALTY_INCOME

    def for_method(self, method) -> str:
        """efectivo -> cash; transferencia / tarjeta -> bank"""
        try:
            method = PaymentMethod(method)
        except ValueError:
            raise PaymentValidationError(f"Unsupported payment method: {method}", method=str(method))

        return {
            PaymentMethod.EFECTIVO: self.cash,
            PaymentMethod.TRANSFERENCIA: self.bank,
            PaymentMethod.TARJETA: self.bank,
        }[method]

    def customer_receivable(self, customer_id) -> str:
        if customer_id is None:
            return self.receivables
        return f"{self.receivables}-{int(customer_id):04d}"


DEFAULT_ACCOUNTS = AccountCodes()

# dialects with a native ON CONFLICT DO NOTHING
_CONFLICT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def insert_account_if_missing(db: Session, **values) -> bool:
    """
    INSERT ... ON CONFLICT (code) DO NOTHING.

    Returns True when this call created the row. Concurrent payments for the
    same customer can race here; the loser simply finds the row already there.
    """
    dialect_insert = _CONFLICT_INSERTS.get(db.get_bind().dialect.name)
    if dialect_insert is not None:
        stmt = dialect_insert(ChartOfAccount).values(**values).on_conflict_do_nothing(index_elements=["code"])
        return db.execute(stmt).rowcount > 0

    try:
        with db.begin_nested():
            db.execute(insert(ChartOfAccount).values(**values))
    except IntegrityError:
        return False
    return True


def seed_chart_of_accounts(db: Session) -> int:
    """Insert missing base accounts. Returns how many were created."""
    created = 0
    for code, (name, acc_type, category) in CHART_OF_ACCOUNTS.items():
        if insert_account_if_missing(db, code=code, name=name, type=acc_type, category=category):
            created += 1

    if created:
        logger.info("Seeded %s chart of accounts rows", created)
    return created


def ensure_customer_receivable(db: Session, customer_id, accounts: AccountCodes = DEFAULT_ACCOUNTS) -> str:
    """Return the customer's receivable sub-account code, creating it on first use."""
    code = accounts.customer_receivable(customer_id)
    if code == accounts.receivables or db.get(ChartOfAccount, code) is not None:
        return code

    created = insert_account_if_missing(
        db,
        code=code,
        name=f"Cuenta por Cobrar - Cliente {int(customer_id)}",
        type="asset",
        category="ACTIVO CIRCULANTE",
        parent_code=accounts.receivables,
    )
    if created:
        logger.info("Created receivable sub-account %s", code)
    return code
