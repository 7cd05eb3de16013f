"""
Pydantic schemas for transaction operations.
"""

from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from ledger_core.config import Settings, get_settings
from ledger_core.models.enums import EntryType


DEFAULT_DESCRIPTIONS = {
    EntryType.DEPOSIT: "Cash deposit",
    EntryType.WITHDRAWAL: "Cash withdrawal",
    EntryType.TRANSFER: "Transfer",
    EntryType.PAYMENT: "Payment",
    EntryType.FEE: "Fee",
}

DEFAULT_CATEGORIES = {
    EntryType.DEPOSIT: "Income",
    EntryType.WITHDRAWAL: "Cash",
    EntryType.TRANSFER: "Transfer",
    EntryType.PAYMENT: "Payment",
    EntryType.FEE: "Fee",
}


class TransactionRequest(BaseModel):
    """
    A requested operation against an account.

    The destination is only meaningful for transfers; its absence on a
    transfer is reported by the processor as InvalidDestination rather
    than rejected here, so callers get one typed error path.
    """
    operation: EntryType
    account_id: int
    amount: Decimal = Field(gt=0, decimal_places=4)
    destination_account_id: int | None = None
    description: str | None = Field(default=None, max_length=255)
    category: str | None = Field(default=None, max_length=50)
    idempotency_key: str | None = Field(
        default=None, min_length=1, max_length=100
    )

    @field_validator("operation")
    @classmethod
    def reversal_is_not_submittable(cls, v: EntryType) -> EntryType:
        if v == EntryType.REVERSAL:
            raise ValueError("reversals are posted through reverse()")
        return v

    @property
    def resolved_description(self) -> str:
        return self.description or DEFAULT_DESCRIPTIONS[self.operation]

    @property
    def resolved_category(self) -> str:
        return self.category or DEFAULT_CATEGORIES[self.operation]


class ReversalRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=255)


class HoldDecision(BaseModel):
    reason: str = Field(default="Hold rejected", min_length=1, max_length=255)


class TransactionPolicy(BaseModel):
    """
    Money policy applied by the transaction processor.

    Thresholds vary per tier and jurisdiction, so they are data rather
    than constants. A fee of zero disables that fee.
    """
    daily_limit: Decimal = Decimal("10000")
    large_deposit_threshold: Decimal = Decimal("10000")
    withdrawal_fee_threshold: Decimal = Decimal("500")
    withdrawal_fee: Decimal = Decimal("2.50")
    payment_fee_threshold: Decimal = Decimal("1000")
    payment_fee: Decimal = Decimal("5.00")

    model_config = {"frozen": True}

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "TransactionPolicy":
        settings = settings or get_settings()
        return cls(
            daily_limit=settings.DAILY_LIMIT,
            large_deposit_threshold=settings.LARGE_DEPOSIT_THRESHOLD,
            withdrawal_fee_threshold=settings.WITHDRAWAL_FEE_THRESHOLD,
            withdrawal_fee=settings.WITHDRAWAL_FEE,
            payment_fee_threshold=settings.PAYMENT_FEE_THRESHOLD,
            payment_fee=settings.PAYMENT_FEE,
        )

    def fee_for(self, operation: EntryType, amount: Decimal) -> Decimal:
        """Fee that an operation of this amount incurs, or zero."""
        if operation == EntryType.WITHDRAWAL and amount > self.withdrawal_fee_threshold:
            return self.withdrawal_fee
        if operation == EntryType.PAYMENT and amount > self.payment_fee_threshold:
            return self.payment_fee
        return Decimal("0")
