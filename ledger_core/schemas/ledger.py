"""
Pydantic schemas for ledger entries.

These define the API contract: what data goes out. They are
separate from the database models because the API shape and the
storage shape are often different.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel

from ledger_core.models.enums import EntryType, EntryStatus


class LedgerEntryResponse(BaseModel):
    """Single entry in API responses."""
    id: int
    account_id: int
    entry_type: EntryType
    amount: Decimal
    category: str
    description: str
    status: EntryStatus
    reference: str
    counterpart_id: int | None
    related_entry_id: int | None
    hold_reason: str | None
    failure_reason: str | None
    created_at: datetime
    completed_at: datetime | None

    model_config = {"from_attributes": True}
