"""
Bill service: bill lifecycle and payment.

A bill becomes PAID only through a successful PAYMENT transaction. The
bill is marked inside the processor's unit of work, so the payment
entry and the status change commit together or not at all. Each bill
has its own lock, held for the whole payment, so the same bill cannot
be paid twice by concurrent callers.

A payment is audited twice on success: `transaction.payment` for the
ledger entry and `bill.pay` for the bill. A refused payment is audited
once: as `bill.pay` when the bill itself cannot be paid, or as
`transaction.payment` when the processor rejects the payment.
"""

import calendar
import logging
from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from ledger_core.errors import (
    AlreadyPaid,
    InvalidOperation,
    LedgerError,
    RecordNotFound,
)
from ledger_core.models.base import utcnow
from ledger_core.models.bill import Bill
from ledger_core.models.enums import AuditOutcome, BillStatus, EntryType, RecurringType
from ledger_core.models.ledger_entry import LedgerEntry
from ledger_core.schemas.bill import BillCreate
from ledger_core.schemas.identity import Actor
from ledger_core.schemas.transaction import TransactionRequest
from ledger_core.services.account_store import AccountStore
from ledger_core.services.audit_recorder import AuditRecorder
from ledger_core.services.authorization import require_access, require_privileged
from ledger_core.services.ledger import to_money
from ledger_core.services.locks import AccountLocks, bill_key
from ledger_core.services.transaction_processor import TransactionProcessor

logger = logging.getLogger(__name__)


RECURRENCE_MONTHS = {
    RecurringType.MONTHLY: 1,
    RecurringType.QUARTERLY: 3,
    RecurringType.YEARLY: 12,
}


def next_due_date(due: date, recurring_type: RecurringType) -> date:
    """Advance by the recurrence period, clamping to the end of the month."""
    months = due.month - 1 + RECURRENCE_MONTHS[recurring_type]
    year = due.year + months // 12
    month = months % 12 + 1
    day = min(due.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


class BillService:

    def __init__(
        self,
        session_factory: sessionmaker,
        locks: AccountLocks,
        processor: TransactionProcessor,
        audit: AuditRecorder,
    ):
        self.session_factory = session_factory
        self.locks = locks
        self.processor = processor
        self.audit = audit

    def create_bill(self, request: BillCreate, actor: Actor) -> Bill:
        require_access(actor, request.owner_id, "bills")

        with self.session_factory() as db:
            if request.account_id is not None:
                self._check_payer(db, request.account_id, request.owner_id)

            bill = Bill(
                owner_id=request.owner_id,
                title=request.title,
                company=request.company,
                amount=request.amount,
                due_date=request.due_date,
                status=BillStatus.PENDING,
                category=request.category,
                account_id=request.account_id,
                autopay=request.autopay,
                recurring_type=request.recurring_type,
            )
            db.add(bill)
            db.commit()

        logger.info("Bill %s created for %s", bill.id, bill.owner_id)
        self.audit.record_for(
            actor, "bill.create", "bill", bill.id,
            amount=bill.amount,
            details={"company": bill.company, "due_date": bill.due_date.isoformat()},
        )
        return bill

    @staticmethod
    def _check_payer(db: Session, account_id: int, owner_id: str) -> None:
        account = AccountStore(db).get(account_id)
        if account.owner_id != owner_id:
            raise InvalidOperation(
                f"Account {account_id} does not belong to {owner_id}"
            )

    def get_bill(self, bill_id: int, actor: Actor) -> Bill:
        with self.session_factory() as db:
            bill = db.get(Bill, bill_id)
        if not bill:
            raise RecordNotFound(f"Bill {bill_id} not found")
        require_access(actor, bill.owner_id, f"bill {bill_id}")
        return bill

    def list_bills(
        self,
        actor: Actor,
        owner_id: str | None = None,
        status: BillStatus | None = None,
        as_of: date | None = None,
    ) -> list[Bill]:
        """
        Bills for an owner ordered by due date.

        status is matched against the effective status, so filtering
        on OVERDUE finds pending bills past their due date.
        """
        owner_id = owner_id or actor.identity_id
        require_access(actor, owner_id, "bills")
        as_of = as_of or utcnow().date()

        with self.session_factory() as db:
            bills = db.execute(
                select(Bill)
                .where(Bill.owner_id == owner_id)
                .order_by(Bill.due_date, Bill.id)
            ).scalars().all()

        if status is None:
            return list(bills)
        return [b for b in bills if b.effective_status(as_of) == status]

    def pay_bill(
        self,
        bill_id: int,
        actor: Actor,
        account_id: int | None = None,
    ) -> Bill:
        """
        Pay a bill from an account, by default the bill's linked account.

        Raises AlreadyPaid for a paid bill without touching the ledger.
        Errors from the payment itself are audited by the processor only.
        """
        with self.locks.hold(bill_key(bill_id)):
            try:
                bill = self._payable(bill_id, actor)
                payer = account_id or bill.account_id
                if payer is None:
                    raise InvalidOperation(f"Bill {bill_id} has no account to pay from")
            except LedgerError as exc:
                self.audit.record_for(
                    actor, "bill.pay", "bill", bill_id,
                    outcome=AuditOutcome.FAILURE,
                    details={"error": exc.code, "message": str(exc)},
                )
                raise

            def mark_paid(db: Session, entry: LedgerEntry) -> None:
                row = db.get(Bill, bill_id)
                row.status = BillStatus.PAID
                row.paid_at = utcnow()
                row.ledger_entry_id = entry.id
                row.account_id = payer
                db.flush()
                if row.recurring_type is not None:
                    self._schedule_next(db, row)

            entry = self.processor.submit(
                TransactionRequest(
                    operation=EntryType.PAYMENT,
                    account_id=payer,
                    amount=to_money(bill.amount),
                    description=f"Bill payment: {bill.company} - {bill.title}",
                    category=bill.category,
                ),
                actor,
                on_applied=mark_paid,
            )

        with self.session_factory() as db:
            paid = db.get(Bill, bill_id)

        logger.info("Bill %s paid by entry %s", bill_id, entry.id)
        self.audit.record_for(
            actor, "bill.pay", "bill", bill_id,
            amount=paid.amount,
            details={"entry_id": entry.id, "account_id": payer},
        )
        return paid

    def _payable(self, bill_id: int, actor: Actor) -> Bill:
        bill = self.get_bill(bill_id, actor)
        if bill.status == BillStatus.PAID:
            raise AlreadyPaid(f"Bill {bill_id} is already paid")
        if bill.status == BillStatus.CANCELLED:
            raise InvalidOperation(f"Bill {bill_id} is cancelled")
        return bill

    def _schedule_next(self, db: Session, paid: Bill) -> Bill:
        """Create the next occurrence of a recurring bill."""
        upcoming = Bill(
            owner_id=paid.owner_id,
            title=paid.title,
            company=paid.company,
            amount=paid.amount,
            due_date=next_due_date(paid.due_date, paid.recurring_type),
            status=BillStatus.PENDING,
            category=paid.category,
            account_id=paid.account_id,
            autopay=paid.autopay,
            recurring_type=paid.recurring_type,
        )
        db.add(upcoming)
        db.flush()
        logger.info(
            "Scheduled bill %s due %s after paying bill %s",
            upcoming.id, upcoming.due_date, paid.id,
        )
        return upcoming

    def cancel_bill(self, bill_id: int, actor: Actor) -> Bill:
        with self.locks.hold(bill_key(bill_id)):
            with self.session_factory() as db:
                bill = db.get(Bill, bill_id)
                if not bill:
                    raise RecordNotFound(f"Bill {bill_id} not found")
                require_access(actor, bill.owner_id, f"bill {bill_id}")
                if bill.status != BillStatus.PENDING:
                    raise InvalidOperation(
                        f"Cannot cancel bill {bill_id} ({bill.status.value})"
                    )
                bill.status = BillStatus.CANCELLED
                db.commit()

        self.audit.record_for(actor, "bill.cancel", "bill", bill_id)
        return bill

    def pay_due_autopay_bills(self, actor: Actor, as_of: date | None = None) -> list[Bill]:
        """
        Pay every autopay bill due on or before as_of.

        A bill that cannot be paid is logged and left pending; the
        run continues with the rest.
        """
        require_privileged(actor, "run autopay")
        as_of = as_of or utcnow().date()

        with self.session_factory() as db:
            due_ids = db.execute(
                select(Bill.id).where(
                    Bill.autopay.is_(True),
                    Bill.status == BillStatus.PENDING,
                    Bill.account_id.is_not(None),
                    Bill.due_date <= as_of,
                ).order_by(Bill.due_date, Bill.id)
            ).scalars().all()

        paid = []
        for bill_id in due_ids:
            try:
                paid.append(self.pay_bill(bill_id, actor))
            except LedgerError as exc:
                logger.warning("Autopay skipped bill %s: %s", bill_id, exc)
        return paid
