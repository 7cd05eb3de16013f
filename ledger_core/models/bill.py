"""
Bill model.

A bill is created PENDING and becomes PAID only through a successful
payment transaction, at which point it links the payment entry.
OVERDUE is never stored: it is derived from the due date whenever a
bill is read.
"""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    String, Date, DateTime, Numeric, Boolean, ForeignKey,
    Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column

from ledger_core.models.base import Base, utcnow
from ledger_core.models.enums import BillStatus, RecurringType


class Bill(Base):
    __tablename__ = "bills"

    id: Mapped[int] = mapped_column(primary_key=True)
    owner_id: Mapped[str] = mapped_column(
        String(100), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    company: Mapped[str] = mapped_column(String(100), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(19, 4), nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[BillStatus] = mapped_column(
        SAEnum(BillStatus, name="bill_status_enum", create_constraint=True),
        nullable=False,
        default=BillStatus.PENDING,
    )
    category: Mapped[str] = mapped_column(
        String(50), nullable=False, default="General"
    )
    account_id: Mapped[int | None] = mapped_column(
        ForeignKey("accounts.id"), nullable=True
    )
    autopay: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    recurring_type: Mapped[RecurringType | None] = mapped_column(
        SAEnum(RecurringType, name="recurring_type_enum"), nullable=True
    )
    ledger_entry_id: Mapped[int | None] = mapped_column(
        ForeignKey("ledger_entries.id"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )
    paid_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True
    )

    def effective_status(self, as_of: date) -> BillStatus:
        """Stored status, with PENDING past its due date read as OVERDUE."""
        if self.status == BillStatus.PENDING and self.due_date < as_of:
            return BillStatus.OVERDUE
        return self.status

    def __repr__(self) -> str:
        return f"<Bill {self.id} {self.title} {self.amount} ({self.status.value})>"
