"""
Ledger: the append-only log that every balance is derived from.

This module enforces the fundamental rules:
1. Entries are only appended, never deleted
2. An entry leaves PENDING exactly once; terminal states are final
3. A transfer is two entries that complete or fail together
4. Balances are reconstructed from COMPLETED entries only

No other module writes ledger entries directly. All financial
operations go through the transaction processor, which uses this
class inside its unit of work.
"""

import uuid
from datetime import date, datetime, time, timedelta
from decimal import Decimal

from sqlalchemy import select, func, or_, and_
from sqlalchemy.orm import Session

from ledger_core.errors import InvalidOperation, RecordNotFound
from ledger_core.models.base import utcnow
from ledger_core.models.enums import EntryStatus, EntryType
from ledger_core.models.ledger_entry import LedgerEntry


MONEY_QUANT = Decimal("0.0001")

# Entry types that count toward the daily outflow limit
LIMITED_OUTFLOW_TYPES = (EntryType.WITHDRAWAL, EntryType.TRANSFER)


def to_money(value) -> Decimal:
    """Normalise a numeric database result to a 4-place Decimal."""
    if value is None:
        return Decimal("0").quantize(MONEY_QUANT)
    return Decimal(str(value)).quantize(MONEY_QUANT)


def new_reference() -> str:
    return str(uuid.uuid4())


class Ledger:
    """
    Ledger operations bound to one session.

    The caller controls the transaction boundary. Entries appended
    here are flushed (so they have ids) but only become durable when
    the caller commits.
    """

    def __init__(self, db: Session):
        self.db = db

    # --- Writes ---

    def append(
        self,
        account_id: int,
        entry_type: EntryType,
        amount: Decimal,
        *,
        description: str,
        category: str = "General",
        reference: str | None = None,
        related_entry_id: int | None = None,
        idempotency_key: str | None = None,
        hold_reason: str | None = None,
    ) -> LedgerEntry:
        """Append a PENDING entry and assign its id and timestamp."""
        entry = LedgerEntry(
            account_id=account_id,
            entry_type=entry_type,
            amount=amount,
            description=description,
            category=category,
            status=EntryStatus.PENDING,
            reference=reference or new_reference(),
            related_entry_id=related_entry_id,
            idempotency_key=idempotency_key,
            hold_reason=hold_reason,
            created_at=utcnow(),
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def append_transfer_pair(
        self,
        from_account_id: int,
        to_account_id: int,
        amount: Decimal,
        description: str,
        *,
        category: str = "Transfer",
        idempotency_key: str | None = None,
    ) -> tuple[LedgerEntry, LedgerEntry]:
        """
        Append the debit and credit of one transfer.

        Both entries share a reference and point at each other.
        The idempotency key, if any, lives on the debit.
        """
        reference = new_reference()
        debit = self.append(
            from_account_id,
            EntryType.TRANSFER,
            -amount,
            description=description,
            category=category,
            reference=reference,
            idempotency_key=idempotency_key,
        )
        credit = self.append(
            to_account_id,
            EntryType.TRANSFER,
            amount,
            description=description,
            category=category,
            reference=reference,
        )
        debit.counterpart_id = credit.id
        credit.counterpart_id = debit.id
        self.db.flush()
        return debit, credit

    def _transition(
        self,
        entry: LedgerEntry,
        status: EntryStatus,
        reason: str | None = None,
    ) -> None:
        if entry.status != EntryStatus.PENDING:
            raise InvalidOperation(
                f"Entry {entry.id} is already {entry.status.value}"
            )
        entry.status = status
        if status == EntryStatus.COMPLETED:
            entry.completed_at = utcnow()
        else:
            entry.failure_reason = reason

    def complete(self, entry_id: int) -> LedgerEntry:
        entry = self.get(entry_id)
        self._transition(entry, EntryStatus.COMPLETED)
        self.db.flush()
        return entry

    def fail(self, entry_id: int, reason: str) -> LedgerEntry:
        entry = self.get(entry_id)
        self._transition(entry, EntryStatus.FAILED, reason)
        self.db.flush()
        return entry

    def cancel(self, entry_id: int, reason: str) -> LedgerEntry:
        entry = self.get(entry_id)
        self._transition(entry, EntryStatus.CANCELLED, reason)
        self.db.flush()
        return entry

    def complete_pair(self, debit: LedgerEntry, credit: LedgerEntry) -> None:
        """Complete both legs of a transfer in one flush."""
        self._check_pair(debit, credit)
        self._transition(debit, EntryStatus.COMPLETED)
        self._transition(credit, EntryStatus.COMPLETED)
        self.db.flush()

    def fail_pair(
        self, debit: LedgerEntry, credit: LedgerEntry, reason: str
    ) -> None:
        self._check_pair(debit, credit)
        self._transition(debit, EntryStatus.FAILED, reason)
        self._transition(credit, EntryStatus.FAILED, reason)
        self.db.flush()

    @staticmethod
    def _check_pair(debit: LedgerEntry, credit: LedgerEntry) -> None:
        if debit.counterpart_id != credit.id or credit.counterpart_id != debit.id:
            raise InvalidOperation(
                f"Entries {debit.id} and {credit.id} are not a transfer pair"
            )
        if debit.status != credit.status:
            raise InvalidOperation(
                f"Transfer pair {debit.reference} is split: "
                f"{debit.status.value}/{credit.status.value}"
            )

    # --- Reads ---

    def get(self, entry_id: int) -> LedgerEntry:
        entry = self.db.get(LedgerEntry, entry_id)
        if not entry:
            raise RecordNotFound(f"Ledger entry {entry_id} not found")
        return entry

    def current_sequence(self) -> int:
        """Highest entry id appended so far; 0 for an empty ledger."""
        return self.db.execute(
            select(func.coalesce(func.max(LedgerEntry.id), 0))
        ).scalar()

    def entries_for(
        self,
        account_id: int,
        since: datetime | None = None,
        until: datetime | None = None,
        *,
        status: EntryStatus | None = None,
        after_id: int | None = None,
        up_to_sequence: int | None = None,
    ) -> list[LedgerEntry]:
        """
        Entries for an account in chronological order.

        Ties on created_at are broken by id. Passing the id of the last
        entry already seen as after_id resumes the read from there.
        """
        stmt = select(LedgerEntry).where(LedgerEntry.account_id == account_id)

        if since is not None:
            stmt = stmt.where(LedgerEntry.created_at >= since)
        if until is not None:
            stmt = stmt.where(LedgerEntry.created_at <= until)
        if status is not None:
            stmt = stmt.where(LedgerEntry.status == status)
        if up_to_sequence is not None:
            stmt = stmt.where(LedgerEntry.id <= up_to_sequence)
        if after_id is not None:
            anchor = self.get(after_id)
            stmt = stmt.where(or_(
                LedgerEntry.created_at > anchor.created_at,
                and_(
                    LedgerEntry.created_at == anchor.created_at,
                    LedgerEntry.id > anchor.id,
                ),
            ))

        entries = self.db.execute(
            stmt.order_by(LedgerEntry.created_at, LedgerEntry.id)
        ).scalars().all()
        return list(entries)

    def entries_by_reference(self, reference: str) -> list[LedgerEntry]:
        entries = self.db.execute(
            select(LedgerEntry)
            .where(LedgerEntry.reference == reference)
            .order_by(LedgerEntry.id)
        ).scalars().all()
        return list(entries)

    def find_by_idempotency_key(self, key: str) -> LedgerEntry | None:
        return self.db.execute(
            select(LedgerEntry).where(LedgerEntry.idempotency_key == key)
        ).scalar_one_or_none()

    def find_reversal_of(self, entry_id: int) -> LedgerEntry | None:
        return self.db.execute(
            select(LedgerEntry).where(
                LedgerEntry.related_entry_id == entry_id,
                LedgerEntry.entry_type == EntryType.REVERSAL,
                LedgerEntry.status != EntryStatus.FAILED,
            ).limit(1)
        ).scalar_one_or_none()

    def balance_of(
        self,
        account_id: int,
        *,
        until: datetime | None = None,
        up_to_sequence: int | None = None,
    ) -> Decimal:
        """
        Reconstruct a balance from COMPLETED entries.

        until limits by entry timestamp, up_to_sequence by append
        order; together they give the balance at a point in time as
        seen from a fixed snapshot.
        """
        stmt = select(func.coalesce(func.sum(LedgerEntry.amount), 0)).where(
            LedgerEntry.account_id == account_id,
            LedgerEntry.status == EntryStatus.COMPLETED,
        )
        if until is not None:
            stmt = stmt.where(LedgerEntry.created_at <= until)
        if up_to_sequence is not None:
            stmt = stmt.where(LedgerEntry.id <= up_to_sequence)
        return to_money(self.db.execute(stmt).scalar())

    def daily_outflow(self, account_id: int, day: date) -> Decimal:
        """
        Total withdrawn or transferred out on a UTC calendar day.

        Pending entries count too: money on its way out has already
        used up part of the day's limit.
        """
        start = datetime.combine(day, time.min)
        end = start + timedelta(days=1)
        total = self.db.execute(
            select(func.coalesce(func.sum(LedgerEntry.amount), 0)).where(
                LedgerEntry.account_id == account_id,
                LedgerEntry.entry_type.in_(LIMITED_OUTFLOW_TYPES),
                LedgerEntry.amount < 0,
                LedgerEntry.status.in_(
                    (EntryStatus.PENDING, EntryStatus.COMPLETED)
                ),
                LedgerEntry.created_at >= start,
                LedgerEntry.created_at < end,
            )
        ).scalar()
        return -to_money(total)
