from pydantic import BaseModel
from datetime import date, datetime
from typing import Optional

from app.models.accounting_entry_model import AccountingEntryType


class JournalRowOut(BaseModel):
    id: int
    date: date
    description: Optional[str] = None
    account_code: str
    debit: float
    credit: float
    source_type: str
    source_id: int
    created_by: Optional[int] = None

    class Config:
        from_attributes = True


class AccountingRowOut(BaseModel):
    id: int
    loan_id: int
    type: AccountingEntryType
    amount: float
    description: Optional[str] = None
    source_type: str
    source_id: int
    created_on: Optional[datetime] = None

    class Config:
        from_attributes = True


class AccountOut(BaseModel):
    code: str
    name: str
    type: str
    category: Optional[str] = None
    parent_code: Optional[str] = None

    class Config:
        from_attributes = True
