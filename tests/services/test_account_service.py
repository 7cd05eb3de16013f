"""
Tests for the AccountService: opening, access control, lifecycle.
"""

from decimal import Decimal

import pytest

from ledger_core.errors import InvalidOperation, PermissionDenied, RecordNotFound
from ledger_core.models.enums import AccountStatus, AuditOutcome
from ledger_core.schemas.account import AccountOpen, AccountStatusUpdate
from ledger_core.schemas.audit import AuditQuery


class TestOpenAccount:

    def test_client_opens_own_account(self, core, alice):
        account = core.accounts.open_account(AccountOpen(owner_id="alice"), alice)

        assert account.owner_id == "alice"
        assert account.status == AccountStatus.ACTIVE

    def test_client_cannot_open_for_someone_else(self, core, alice):
        with pytest.raises(PermissionDenied):
            core.accounts.open_account(AccountOpen(owner_id="bob"), alice)

    def test_opening_is_audited(self, core, alice, admin):
        account = core.accounts.open_account(AccountOpen(owner_id="alice"), alice)

        events = core.audit.query(admin, AuditQuery(action="account.open"))

        assert len(events) == 1
        assert events[0].resource_id == str(account.id)
        assert events[0].actor_id == "alice"


class TestReadAccess:

    def test_owner_reads_account_and_balance(self, core, open_account, alice):
        account = open_account("alice", "125.50")

        balance = core.accounts.get_balance(account.id, alice)

        assert balance.balance == Decimal("125.50")

    def test_other_client_is_denied(self, core, open_account, bob):
        account = open_account("alice", "10")

        with pytest.raises(PermissionDenied):
            core.accounts.get_account(account.id, bob)
        with pytest.raises(PermissionDenied):
            core.accounts.entries(account.id, bob)

    def test_missing_account(self, core, admin):
        with pytest.raises(RecordNotFound):
            core.accounts.get_account(404, admin)

    def test_list_defaults_to_the_caller(self, core, open_account, alice):
        open_account("alice")
        open_account("alice")
        open_account("bob")

        assert len(core.accounts.list_accounts(alice)) == 2


class TestChangeStatus:

    def test_admin_suspends_account(self, core, open_account, admin):
        account = open_account("alice")

        updated = core.accounts.change_status(
            account.id,
            AccountStatusUpdate(new_status=AccountStatus.SUSPENDED, reason="Fraud review"),
            admin,
        )

        assert updated.status == AccountStatus.SUSPENDED
        events = core.audit.query(admin, AuditQuery(action="account.suspend"))
        assert events[0].details["reason"] == "Fraud review"

    def test_client_cannot_change_status(self, core, open_account, alice, admin):
        account = open_account("alice")

        with pytest.raises(PermissionDenied):
            core.accounts.change_status(
                account.id,
                AccountStatusUpdate(new_status=AccountStatus.SUSPENDED, reason="x"),
                alice,
            )

        failures = core.audit.query(
            admin, AuditQuery(action="account.suspend", outcome=AuditOutcome.FAILURE)
        )
        assert len(failures) == 1

    def test_closing_requires_zero_balance(self, core, open_account, admin):
        account = open_account("alice", "20")

        with pytest.raises(InvalidOperation):
            core.accounts.change_status(
                account.id,
                AccountStatusUpdate(new_status=AccountStatus.CLOSED, reason="Customer request"),
                admin,
            )


class TestReconcile:

    def test_reconcile_requires_admin(self, core, open_account, alice):
        account = open_account("alice", "10")

        with pytest.raises(PermissionDenied):
            core.accounts.reconcile(account.id, alice)

    def test_balances_agree_after_normal_activity(self, core, open_account, admin):
        account = open_account("alice", "300")

        result = core.accounts.reconcile(account.id, admin)

        assert result.corrected is False
        assert result.ledger_balance == Decimal("300")
