"""
Tests for soft delete and restore.
"""

from datetime import date
from decimal import Decimal

import pytest

from ledger_core.errors import (
    InvalidOperation,
    NotRestorable,
    PermissionDenied,
    RecordNotFound,
)
from ledger_core.models.bill import Bill
from ledger_core.models.enums import AuditOutcome, BillStatus, RecurringType
from ledger_core.schemas.audit import AuditQuery
from ledger_core.schemas.bill import BillCreate
from ledger_core.services.soft_delete import snapshot_of, values_from_snapshot


@pytest.fixture
def bill(core, alice):
    return core.bills.create_bill(
        BillCreate(
            owner_id="alice",
            title="Internet",
            company="FiberNet",
            amount=Decimal("59.99"),
            due_date=date(2030, 3, 31),
            recurring_type=RecurringType.MONTHLY,
        ),
        alice,
    )


class TestSoftDelete:

    def test_record_moves_to_tombstone(self, core, bill, admin):
        tombstone = core.soft_delete.soft_delete("bills", str(bill.id), admin, "Duplicate")

        assert tombstone.can_restore is True
        assert tombstone.snapshot["title"] == "Internet"
        assert tombstone.snapshot["status"] == "PENDING"
        with core.session_factory() as db:
            assert db.get(Bill, bill.id) is None

    def test_deletion_is_audited_as_critical(self, core, bill, admin):
        core.soft_delete.soft_delete("bills", str(bill.id), admin, "Duplicate")

        (event,) = core.audit.query(admin, AuditQuery(action="record.soft_delete"))
        assert event.severity.value == "CRITICAL"
        assert event.details["reason"] == "Duplicate"

    def test_clients_cannot_soft_delete(self, core, bill, alice, admin):
        with pytest.raises(PermissionDenied):
            core.soft_delete.soft_delete("bills", str(bill.id), alice, "Oops")

        failures = core.audit.query(
            admin, AuditQuery(action="record.soft_delete", outcome=AuditOutcome.FAILURE)
        )
        assert len(failures) == 1

    @pytest.mark.parametrize("table_name", ["ledger_entries", "accounts", "nope"])
    def test_unregistered_tables_are_refused(self, core, admin, table_name):
        with pytest.raises(InvalidOperation):
            core.soft_delete.soft_delete(table_name, "1", admin, "Cleanup")

    @pytest.mark.parametrize("record_id", ["999", "abc"])
    def test_missing_record(self, core, admin, record_id):
        with pytest.raises(RecordNotFound):
            core.soft_delete.soft_delete("bills", record_id, admin, "Cleanup")


class TestRestore:

    def test_restore_writes_the_record_back(self, core, bill, admin, alice):
        tombstone = core.soft_delete.soft_delete("bills", str(bill.id), admin, "Mistake")

        restored = core.soft_delete.restore(tombstone.id, admin)

        assert restored.can_restore is False
        assert restored.restored_by == "admin-1"
        again = core.bills.get_bill(bill.id, alice)
        assert again.amount == Decimal("59.99")
        assert again.due_date == date(2030, 3, 31)
        assert again.status == BillStatus.PENDING
        assert again.recurring_type == RecurringType.MONTHLY
        assert again.created_at == bill.created_at

    def test_second_restore_is_refused(self, core, bill, admin):
        tombstone = core.soft_delete.soft_delete("bills", str(bill.id), admin, "Mistake")
        core.soft_delete.restore(tombstone.id, admin)

        with pytest.raises(NotRestorable):
            core.soft_delete.restore(tombstone.id, admin)

    def test_missing_tombstone(self, core, admin):
        with pytest.raises(RecordNotFound):
            core.soft_delete.restore(404, admin)

    def test_list_tombstones(self, core, bill, admin):
        tombstone = core.soft_delete.soft_delete("bills", str(bill.id), admin, "Mistake")

        assert [t.id for t in core.soft_delete.list_tombstones(admin)] == [tombstone.id]

        core.soft_delete.restore(tombstone.id, admin)

        assert core.soft_delete.list_tombstones(admin, restorable_only=True) == []
        assert len(core.soft_delete.list_tombstones(admin, table_name="bills")) == 1


class TestSnapshot:

    def test_snapshot_is_json_safe_and_reversible(self):
        bill = Bill(
            id=3,
            owner_id="alice",
            title="Water",
            company="Aqua",
            amount=Decimal("18.2500"),
            due_date=date(2031, 1, 5),
            status=BillStatus.PAID,
            category="Utilities",
            account_id=None,
            autopay=False,
            recurring_type=None,
            ledger_entry_id=None,
            paid_at=None,
        )

        snapshot = snapshot_of(bill)
        values = values_from_snapshot(Bill, snapshot)

        assert snapshot["amount"] == "18.2500"
        assert snapshot["due_date"] == "2031-01-05"
        assert snapshot["status"] == "PAID"
        assert values["amount"] == Decimal("18.25")
        assert values["due_date"] == date(2031, 1, 5)
        assert values["status"] == BillStatus.PAID
        assert values["recurring_type"] is None
