"""
Tests for the BillService.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import date, timedelta
from decimal import Decimal

import pytest

from ledger_core.errors import (
    AlreadyPaid,
    InsufficientFunds,
    InvalidOperation,
    PermissionDenied,
    RecordNotFound,
)
from ledger_core.models.account import Account
from ledger_core.models.base import utcnow
from ledger_core.models.enums import (
    AuditOutcome,
    BillStatus,
    EntryStatus,
    EntryType,
    RecurringType,
)
from ledger_core.schemas.audit import AuditQuery
from ledger_core.schemas.bill import BillCreate
from ledger_core.services.bill_service import next_due_date
from ledger_core.services.ledger import Ledger


def make_bill(core, actor, account=None, amount="120.00", due_in_days=10, **fields):
    return core.bills.create_bill(
        BillCreate(
            owner_id=actor.identity_id,
            title="Electricity",
            company="City Power",
            amount=Decimal(amount),
            due_date=utcnow().date() + timedelta(days=due_in_days),
            category="Utilities",
            account_id=account.id if account else None,
            **fields,
        ),
        actor,
    )


def payments_of(core, account_id):
    with core.session_factory() as db:
        return [
            e for e in Ledger(db).entries_for(account_id)
            if e.entry_type == EntryType.PAYMENT
        ]


class TestCreateBill:

    def test_new_bill_is_pending(self, core, open_account, alice):
        account = open_account("alice", "500")

        bill = make_bill(core, alice, account)

        assert bill.status == BillStatus.PENDING
        assert bill.ledger_entry_id is None

    def test_payer_account_must_belong_to_owner(self, core, open_account, alice):
        other = open_account("bob", "500")

        with pytest.raises(InvalidOperation):
            make_bill(core, alice, other)

    def test_client_cannot_create_for_others(self, core, alice):
        with pytest.raises(PermissionDenied):
            core.bills.create_bill(
                BillCreate(
                    owner_id="bob",
                    title="Rent",
                    company="Landlord",
                    amount=Decimal("900"),
                    due_date=date(2030, 1, 1),
                ),
                alice,
            )


class TestPayBill:

    def test_payment_marks_bill_paid_and_links_entry(self, core, open_account, alice):
        account = open_account("alice", "500")
        bill = make_bill(core, alice, account)

        paid = core.bills.pay_bill(bill.id, alice)

        assert paid.status == BillStatus.PAID
        assert paid.paid_at is not None
        (entry,) = payments_of(core, account.id)
        assert paid.ledger_entry_id == entry.id
        assert entry.status == EntryStatus.COMPLETED
        assert entry.amount == Decimal("-120")
        assert entry.category == "Utilities"

    def test_paying_twice_raises_already_paid(self, core, open_account, alice):
        account = open_account("alice", "500")
        bill = make_bill(core, alice, account)
        core.bills.pay_bill(bill.id, alice)

        with pytest.raises(AlreadyPaid):
            core.bills.pay_bill(bill.id, alice)

        assert len(payments_of(core, account.id)) == 1

    def test_concurrent_payments_pay_once(self, core, open_account, alice):
        account = open_account("alice", "500")
        bill = make_bill(core, alice, account)

        def pay(_):
            try:
                core.bills.pay_bill(bill.id, alice)
                return "paid"
            except AlreadyPaid:
                return "already"

        with ThreadPoolExecutor(max_workers=3) as pool:
            outcomes = sorted(pool.map(pay, range(3)))

        assert outcomes == ["already", "already", "paid"]
        assert len(payments_of(core, account.id)) == 1

    def test_failed_payment_leaves_bill_pending(self, core, open_account, alice):
        account = open_account("alice", "50")
        bill = make_bill(core, alice, account)

        with pytest.raises(InsufficientFunds):
            core.bills.pay_bill(bill.id, alice)

        assert core.bills.get_bill(bill.id, alice).status == BillStatus.PENDING
        assert payments_of(core, account.id) == []

    def test_rejected_payment_is_audited_once(self, core, open_account, alice, admin):
        account = open_account("alice", "50")
        bill = make_bill(core, alice, account)

        with pytest.raises(InsufficientFunds):
            core.bills.pay_bill(bill.id, alice)

        failures = core.audit.query(
            admin, AuditQuery(actor_id="alice", outcome=AuditOutcome.FAILURE)
        )
        assert [e.action for e in failures] == ["transaction.payment"]

    def test_unpayable_bill_is_audited_as_bill_failure(
        self, core, open_account, alice, admin
    ):
        account = open_account("alice", "500")
        bill = make_bill(core, alice, account)
        core.bills.pay_bill(bill.id, alice)

        with pytest.raises(AlreadyPaid):
            core.bills.pay_bill(bill.id, alice)

        failures = core.audit.query(
            admin, AuditQuery(actor_id="alice", outcome=AuditOutcome.FAILURE)
        )
        assert [e.action for e in failures] == ["bill.pay"]
        assert failures[0].details["error"] == AlreadyPaid.code

    def test_pay_from_explicit_account(self, core, open_account, alice):
        bill = make_bill(core, alice)
        account = open_account("alice", "500")

        paid = core.bills.pay_bill(bill.id, alice, account_id=account.id)

        assert paid.account_id == account.id
        with core.session_factory() as db:
            assert db.get(Account, account.id).balance == Decimal("380")

    def test_bill_without_account_cannot_be_paid(self, core, alice):
        bill = make_bill(core, alice)

        with pytest.raises(InvalidOperation, match="no account"):
            core.bills.pay_bill(bill.id, alice)

    def test_cancelled_bill_cannot_be_paid(self, core, open_account, alice):
        account = open_account("alice", "500")
        bill = make_bill(core, alice, account)
        core.bills.cancel_bill(bill.id, alice)

        with pytest.raises(InvalidOperation, match="cancelled"):
            core.bills.pay_bill(bill.id, alice)

    def test_missing_bill(self, core, alice):
        with pytest.raises(RecordNotFound):
            core.bills.pay_bill(404, alice)

    def test_recurring_bill_schedules_next(self, core, open_account, alice):
        account = open_account("alice", "500")
        bill = make_bill(core, alice, account, recurring_type=RecurringType.MONTHLY)

        core.bills.pay_bill(bill.id, alice)

        pending = core.bills.list_bills(alice, status=BillStatus.PENDING)
        assert len(pending) == 1
        assert pending[0].due_date == next_due_date(bill.due_date, RecurringType.MONTHLY)


class TestOverdue:

    def test_overdue_is_derived_not_stored(self, core, open_account, alice):
        account = open_account("alice", "500")
        bill = make_bill(core, alice, account, due_in_days=-3)

        overdue = core.bills.list_bills(alice, status=BillStatus.OVERDUE)

        assert [b.id for b in overdue] == [bill.id]
        assert overdue[0].status == BillStatus.PENDING
        assert core.bills.list_bills(alice, status=BillStatus.PENDING) == []

    def test_overdue_bill_can_still_be_paid(self, core, open_account, alice):
        account = open_account("alice", "500")
        bill = make_bill(core, alice, account, due_in_days=-3)

        paid = core.bills.pay_bill(bill.id, alice)

        assert paid.effective_status(utcnow().date()) == BillStatus.PAID


class TestAutopay:

    def test_pays_due_autopay_bills_only(self, core, open_account, alice, admin):
        account = open_account("alice", "1000")
        due = make_bill(core, alice, account, due_in_days=0, autopay=True)
        make_bill(core, alice, account, due_in_days=5, autopay=True)
        make_bill(core, alice, account, due_in_days=0)

        paid = core.bills.pay_due_autopay_bills(admin)

        assert [b.id for b in paid] == [due.id]

    def test_unpayable_bills_are_skipped(self, core, open_account, alice, admin):
        poor = open_account("alice", "10")
        rich = open_account("alice", "1000")
        skipped = make_bill(core, alice, poor, due_in_days=-1, autopay=True)
        paid_bill = make_bill(core, alice, rich, due_in_days=0, autopay=True)

        paid = core.bills.pay_due_autopay_bills(admin)

        assert [b.id for b in paid] == [paid_bill.id]
        assert core.bills.get_bill(skipped.id, alice).status == BillStatus.PENDING

    def test_autopay_requires_privilege(self, core, alice):
        with pytest.raises(PermissionDenied):
            core.bills.pay_due_autopay_bills(alice)


class TestNextDueDate:

    @pytest.mark.parametrize("due, recurring, expected", [
        (date(2026, 1, 15), RecurringType.MONTHLY, date(2026, 2, 15)),
        (date(2026, 1, 31), RecurringType.MONTHLY, date(2026, 2, 28)),
        (date(2026, 11, 30), RecurringType.QUARTERLY, date(2027, 2, 28)),
        (date(2028, 2, 29), RecurringType.YEARLY, date(2029, 2, 28)),
    ])
    def test_next_due_date(self, due, recurring, expected):
        assert next_due_date(due, recurring) == expected
