"""
Ledger entry model.

Each entry records one signed movement of value into (positive) or out
of (negative) an account. Entries are immutable once they reach a
terminal status; they are never modified or deleted afterwards.

A transfer is represented by exactly two entries, a debit on the source
and a credit on the destination, sharing one reference and pointing at
each other through counterpart_id.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    String, DateTime, Numeric, ForeignKey,
    Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_core.models.base import Base, utcnow
from ledger_core.models.enums import EntryType, EntryStatus


class LedgerEntry(Base):
    """
    One entry in the append-only ledger.

    The primary key is assigned in append order and doubles as the
    ledger sequence number that readers use to pin a snapshot.
    """

    __tablename__ = "ledger_entries"

    id: Mapped[int] = mapped_column(primary_key=True)
    account_id: Mapped[int] = mapped_column(
        ForeignKey("accounts.id"), nullable=False, index=True
    )
    entry_type: Mapped[EntryType] = mapped_column(
        SAEnum(EntryType, name="entry_type_enum"),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(19, 4), nullable=False
    )
    category: Mapped[str] = mapped_column(
        String(50), nullable=False, default="General"
    )
    description: Mapped[str] = mapped_column(
        String(255), nullable=False
    )
    status: Mapped[EntryStatus] = mapped_column(
        SAEnum(EntryStatus, name="entry_status_enum"),
        nullable=False,
        default=EntryStatus.PENDING,
    )
    reference: Mapped[str] = mapped_column(
        String(36), nullable=False, index=True
    )
    counterpart_id: Mapped[int | None] = mapped_column(
        ForeignKey("ledger_entries.id"), nullable=True
    )
    related_entry_id: Mapped[int | None] = mapped_column(
        ForeignKey("ledger_entries.id"), nullable=True, index=True
    )
    idempotency_key: Mapped[str | None] = mapped_column(
        String(100), unique=True, nullable=True
    )
    hold_reason: Mapped[str | None] = mapped_column(
        String(255), nullable=True
    )
    failure_reason: Mapped[str | None] = mapped_column(
        String(500), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, index=True
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True
    )

    account: Mapped["Account"] = relationship(back_populates="entries")

    def __repr__(self) -> str:
        return (
            f"<LedgerEntry {self.id} {self.entry_type.value} "
            f"{self.amount} ({self.status.value})>"
        )
