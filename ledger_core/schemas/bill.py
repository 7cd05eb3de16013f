"""
Pydantic schemas for bills.
"""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from ledger_core.models.bill import Bill
from ledger_core.models.enums import BillStatus, RecurringType


class BillCreate(BaseModel):
    owner_id: str = Field(min_length=1, max_length=100)
    title: str = Field(min_length=1, max_length=100)
    company: str = Field(min_length=1, max_length=100)
    amount: Decimal = Field(gt=0, decimal_places=4)
    due_date: date
    category: str = Field(default="General", max_length=50)
    account_id: int | None = None
    autopay: bool = False
    recurring_type: RecurringType | None = None


class BillPayment(BaseModel):
    """Pays from the bill's linked account when account_id is omitted."""
    account_id: int | None = None


class BillResponse(BaseModel):
    """A bill as callers see it; status already reflects OVERDUE."""
    id: int
    owner_id: str
    title: str
    company: str
    amount: Decimal
    due_date: date
    status: BillStatus
    category: str
    account_id: int | None
    autopay: bool
    recurring_type: RecurringType | None
    ledger_entry_id: int | None
    created_at: datetime
    paid_at: datetime | None

    @classmethod
    def from_bill(cls, bill: Bill, as_of: date) -> "BillResponse":
        return cls(
            id=bill.id,
            owner_id=bill.owner_id,
            title=bill.title,
            company=bill.company,
            amount=bill.amount,
            due_date=bill.due_date,
            status=bill.effective_status(as_of),
            category=bill.category,
            account_id=bill.account_id,
            autopay=bill.autopay,
            recurring_type=bill.recurring_type,
            ledger_entry_id=bill.ledger_entry_id,
            created_at=bill.created_at,
            paid_at=bill.paid_at,
        )
