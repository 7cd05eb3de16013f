"""
Statement builder: read-only reports over a date range.

A statement never takes account locks. It pins the ledger's append
sequence when it starts and reads nothing appended after that, so a
transfer committing mid-build cannot appear half in the statement.

    closing = current balance within the pinned sequence
    opening = closing − net of completed entries inside the period

For a period that ends in the past the closing balance therefore
includes activity after the period; the rows and the summary cover the
period only.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy.orm import sessionmaker

from ledger_core.errors import InvalidOperation
from ledger_core.models.base import utcnow
from ledger_core.models.enums import EntryStatus, EntryType
from ledger_core.models.ledger_entry import LedgerEntry
from ledger_core.schemas.identity import Actor
from ledger_core.schemas.statement import Statement, StatementRow, StatementSummary
from ledger_core.services.account_store import AccountStore
from ledger_core.services.authorization import require_access
from ledger_core.services.ledger import to_money


def summarize(entries: list[LedgerEntry]) -> StatementSummary:
    """Totals by entry type in one pass. Outflows are reported as positive."""
    summary = StatementSummary()
    for entry in entries:
        amount = to_money(entry.amount)
        if entry.entry_type == EntryType.DEPOSIT:
            summary.total_deposits += amount
        elif entry.entry_type == EntryType.WITHDRAWAL:
            summary.total_withdrawals -= amount
        elif entry.entry_type == EntryType.FEE:
            summary.total_fees -= amount
        elif entry.entry_type == EntryType.PAYMENT:
            summary.total_payments -= amount
        elif entry.entry_type == EntryType.TRANSFER:
            if amount > 0:
                summary.total_transfers_in += amount
            else:
                summary.total_transfers_out -= amount
        elif entry.entry_type == EntryType.REVERSAL:
            summary.total_reversals += amount
        summary.transaction_count += 1
    return summary


class StatementBuilder:

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def build(
        self,
        account_id: int,
        start: datetime,
        end: datetime,
        actor: Actor,
    ) -> Statement:
        if end < start:
            raise InvalidOperation(
                f"Statement period ends ({end}) before it starts ({start})"
            )

        with self.session_factory() as db:
            store = AccountStore(db)
            ledger = store.ledger

            account = store.get(account_id)
            require_access(actor, account.owner_id, f"account {account_id}")

            sequence = ledger.current_sequence()
            closing = ledger.balance_of(account_id, up_to_sequence=sequence)
            entries = ledger.entries_for(
                account_id,
                start,
                end,
                status=EntryStatus.COMPLETED,
                up_to_sequence=sequence,
            )

            net = sum((to_money(e.amount) for e in entries), Decimal("0"))
            opening = closing - net

            rows = []
            running = opening
            for entry in entries:
                running += to_money(entry.amount)
                rows.append(StatementRow(
                    entry_id=entry.id,
                    created_at=entry.created_at,
                    entry_type=entry.entry_type,
                    description=entry.description,
                    category=entry.category,
                    status=entry.status,
                    amount=to_money(entry.amount),
                    running_balance=running,
                ))

            return Statement(
                account_id=account.id,
                account_number=account.masked_number,
                period_start=start,
                period_end=end,
                snapshot_sequence=sequence,
                opening_balance=opening,
                closing_balance=closing,
                transactions=rows,
                summary=summarize(entries),
                generated_at=utcnow(),
            )
