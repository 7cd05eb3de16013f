"""
Pydantic schemas for account operations.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from ledger_core.models.enums import AccountType, AccountStatus


class AccountOpen(BaseModel):
    """Request to open a new account."""
    owner_id: str = Field(min_length=1, max_length=100)
    name: str = Field(default="New Account", min_length=1, max_length=100)
    account_type: AccountType = AccountType.CHECKING
    minimum_balance: Decimal = Field(default=Decimal("0"), ge=0)
    interest_rate: Decimal = Field(default=Decimal("0"), ge=0)
    currency: str = Field(default="USD", min_length=3, max_length=3)


class AccountResponse(BaseModel):
    id: int
    owner_id: str
    account_number: str
    name: str
    account_type: AccountType
    balance: Decimal
    status: AccountStatus
    minimum_balance: Decimal
    interest_rate: Decimal
    currency: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class AccountStatusUpdate(BaseModel):
    """Request to change account status."""
    new_status: AccountStatus
    reason: str = Field(min_length=1, max_length=255)


class AccountBalanceResponse(BaseModel):
    account_id: int
    account_type: AccountType
    status: AccountStatus
    balance: Decimal
    currency: str


class ReconciliationResult(BaseModel):
    """Cached balance against the ledger-derived balance."""
    account_id: int
    cached_balance: Decimal
    ledger_balance: Decimal
    drift: Decimal
    corrected: bool
