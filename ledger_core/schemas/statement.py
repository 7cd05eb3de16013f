"""
Pydantic schemas for account statements.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel

from ledger_core.models.enums import EntryType, EntryStatus


# Stable column order for statement exports
STATEMENT_EXPORT_FIELDS = (
    "timestamp",
    "entry_id",
    "type",
    "description",
    "category",
    "status",
    "amount",
    "running_balance",
)


class StatementRow(BaseModel):
    entry_id: int
    created_at: datetime
    entry_type: EntryType
    description: str
    category: str
    status: EntryStatus
    amount: Decimal
    running_balance: Decimal


class StatementSummary(BaseModel):
    total_deposits: Decimal = Decimal("0")
    total_withdrawals: Decimal = Decimal("0")
    total_fees: Decimal = Decimal("0")
    total_payments: Decimal = Decimal("0")
    total_transfers_in: Decimal = Decimal("0")
    total_transfers_out: Decimal = Decimal("0")
    total_reversals: Decimal = Decimal("0")
    transaction_count: int = 0


class Statement(BaseModel):
    account_id: int
    account_number: str
    period_start: datetime
    period_end: datetime
    snapshot_sequence: int
    opening_balance: Decimal
    closing_balance: Decimal
    transactions: list[StatementRow]
    summary: StatementSummary
    generated_at: datetime

    def export_rows(self) -> list[dict]:
        """Rows keyed by STATEMENT_EXPORT_FIELDS, in statement order."""
        return [
            {
                "timestamp": row.created_at.isoformat(),
                "entry_id": row.entry_id,
                "type": row.entry_type.value,
                "description": row.description,
                "category": row.category,
                "status": row.status.value,
                "amount": str(row.amount),
                "running_balance": str(row.running_balance),
            }
            for row in self.transactions
        ]
