from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from app.utils.database import get_db
from app.models.accounting_entry_model import AccountingEntry
from app.models.chart_of_accounts_model import ChartOfAccount
from app.models.journal_entry_model import JournalEntry
from app.schemas.ledger_schema import JournalRowOut, AccountingRowOut, AccountOut

router = APIRouter(prefix="/ledger", tags=["Ledger"])


# audit trail: rows produced by one business event
@router.get("/journal", response_model=list[JournalRowOut])
def journal_rows(
        source_type: str = Query("payment"),
        source_id: Optional[int] = Query(None),
        db: Session = Depends(get_db),
):
    q = db.query(JournalEntry).filter(JournalEntry.source_type == source_type)
    if source_id is not None:
        q = q.filter(JournalEntry.source_id == source_id)
    return q.order_by(JournalEntry.id.asc()).all()


@router.get("/accounting", response_model=list[AccountingRowOut])
def accounting_rows(
        source_type: str = Query("payment"),
        source_id: Optional[int] = Query(None),
        loan_id: Optional[int] = Query(None),
        db: Session = Depends(get_db),
):
    q = db.query(AccountingEntry).filter(AccountingEntry.source_type == source_type)
    if source_id is not None:
        q = q.filter(AccountingEntry.source_id == source_id)
    if loan_id is not None:
        q = q.filter(AccountingEntry.loan_id == loan_id)
    return q.order_by(AccountingEntry.id.asc()).all()


@router.get("/accounts", response_model=list[AccountOut])
def chart_of_accounts(db: Session = Depends(get_db)):
    return db.query(ChartOfAccount).order_by(ChartOfAccount.code.asc()).all()
