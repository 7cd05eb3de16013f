"""
Tests for the AuditRecorder and the security events it raises.
"""

from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from ledger_core.errors import InvalidOperation, PermissionDenied, RecordNotFound
from ledger_core.models.enums import (
    AuditOutcome,
    EntryType,
    Role,
    SecurityEventType,
    Severity,
)
from ledger_core.schemas.audit import AUDIT_EXPORT_FIELDS, AuditQuery
from ledger_core.schemas.identity import Actor
from ledger_core.schemas.transaction import TransactionRequest
from ledger_core.services.audit_recorder import determine_severity


def failed_logins(core, identity_id, count, ip_address="203.0.113.7"):
    for _ in range(count):
        core.audit.record_login(identity_id, success=False, ip_address=ip_address)


class TestRecord:

    def test_event_is_stored_with_actor_details(self, core, alice, admin):
        event = core.audit.record_for(
            alice, "account.open", "account", 7, details={"note": "first"}
        )

        assert event.id is not None
        assert event.actor_role == Role.CLIENT
        assert event.resource_id == "7"
        assert event.ip_address == "10.0.0.1"
        assert event.severity == Severity.INFO
        assert core.audit.query(admin)[0].details == {"note": "first"}

    @pytest.mark.parametrize("action, outcome, expected", [
        ("account.open", AuditOutcome.SUCCESS, Severity.INFO),
        ("transaction.withdrawal", AuditOutcome.FAILURE, Severity.WARNING),
        ("transaction.reversal", AuditOutcome.SUCCESS, Severity.WARNING),
        ("account.close", AuditOutcome.SUCCESS, Severity.CRITICAL),
        ("record.soft_delete", AuditOutcome.FAILURE, Severity.CRITICAL),
    ])
    def test_severity_follows_action_and_outcome(self, action, outcome, expected):
        assert determine_severity(action, outcome) == expected

    def test_write_failure_does_not_raise(self, core, alice, admin, monkeypatch):
        calls = []

        def failing_write(event, severity):
            calls.append(event.action)
            raise OperationalError("INSERT INTO audit_events", {}, Exception("disk I/O error"))

        monkeypatch.setattr(core.audit, "_write", failing_write)

        assert core.audit.record_for(alice, "account.open", "account", 1) is None
        assert len(calls) == 3


class TestQuery:

    def test_newest_first(self, core, alice, admin):
        for resource_id in (1, 2, 3):
            core.audit.record_for(alice, "account.open", "account", resource_id)

        events = core.audit.query(admin)

        assert [e.resource_id for e in events] == ["3", "2", "1"]

    def test_filters(self, core, alice, bob, admin):
        core.audit.record_for(alice, "account.open", "account", 1)
        core.audit.record_for(bob, "account.open", "account", 2)
        core.audit.record_for(
            alice, "transaction.withdrawal", "account", 1,
            outcome=AuditOutcome.FAILURE,
        )

        by_actor = core.audit.query(admin, AuditQuery(actor_id="alice"))
        by_action = core.audit.query(admin, AuditQuery(action="transaction"))
        failures = core.audit.query(admin, AuditQuery(outcome=AuditOutcome.FAILURE))

        assert len(by_actor) == 2
        assert [e.actor_id for e in by_action] == ["alice"]
        assert [e.severity for e in failures] == [Severity.WARNING]

    def test_limit(self, core, alice, admin):
        for resource_id in range(5):
            core.audit.record_for(alice, "account.open", "account", resource_id)

        assert len(core.audit.query(admin, limit=2)) == 2

    def test_clients_cannot_read_the_log(self, core, alice):
        with pytest.raises(PermissionDenied):
            core.audit.query(alice)

    def test_export_rows(self, core, alice, admin):
        core.audit.record_for(alice, "account.open", "account", 1)
        core.audit.record_for(
            alice, "bill.pay", "bill", 4, amount=Decimal("12.50")
        )

        rows = core.audit.export_rows(admin)

        assert tuple(rows[0]) == AUDIT_EXPORT_FIELDS
        assert rows[0]["action"] == "bill.pay"
        assert rows[0]["amount"] == "12.5000"
        assert rows[0]["status"] == "SUCCESS"
        assert rows[1]["amount"] == ""


class TestSecurityEvents:

    def test_two_failed_logins_raise_nothing(self, core, admin):
        failed_logins(core, "mallory", 2)

        assert core.audit.security_events(admin) == []

    def test_third_failed_login_raises_finding(self, core, admin):
        failed_logins(core, "mallory", 3)

        (event,) = core.audit.security_events(admin)
        assert event.event_type == SecurityEventType.FAILED_LOGIN
        assert event.identity_id == "mallory"
        assert event.details["attempt_count"] == 3
        assert event.risk_score == 60
        assert event.resolved is False

    def test_five_failed_logins_lock_the_identity(self, core, admin):
        failed_logins(core, "mallory", 5)

        locked = core.audit.security_events(
            admin, event_type=SecurityEventType.ACCOUNT_LOCKED
        )
        failed = core.audit.security_events(
            admin, event_type=SecurityEventType.FAILED_LOGIN
        )

        assert len(locked) == 1
        assert locked[0].risk_score == 90
        assert sorted(e.details["attempt_count"] for e in failed) == [3, 4, 5]

    def test_successful_logins_are_not_flagged(self, core, admin):
        for _ in range(4):
            core.audit.record_login("carol", success=True, ip_address="198.51.100.1")

        assert core.audit.security_events(admin) == []

    def test_large_transaction_is_flagged(self, core, open_account, admin):
        account = open_account("alice")

        core.transactions.submit(
            TransactionRequest(
                operation=EntryType.DEPOSIT,
                account_id=account.id,
                amount=Decimal("15000"),
            ),
            admin,
        )

        (event,) = core.audit.security_events(
            admin, event_type=SecurityEventType.SUSPICIOUS_ACTIVITY
        )
        assert event.details["reason"] == "Large transaction"
        assert event.details["amount"] == "15000"

    def test_many_addresses_are_flagged(self, core, admin):
        for n in range(1, 5):
            actor = Actor(identity_id="carol", ip_address=f"192.0.2.{n}")
            core.audit.record_for(actor, "account.open", "account", n)

        (event,) = core.audit.security_events(admin)
        assert event.details == {"reason": "Multiple IP addresses", "ip_count": 4}

    def test_resolve_once(self, core, admin):
        failed_logins(core, "mallory", 3)
        (event,) = core.audit.security_events(admin)

        resolved = core.audit.resolve_security_event(event.id, admin)

        assert resolved.resolved is True
        assert resolved.resolved_by == "admin-1"
        assert core.audit.security_events(admin, resolved=False) == []
        with pytest.raises(InvalidOperation):
            core.audit.resolve_security_event(event.id, admin)

    def test_resolve_missing_event(self, core, admin):
        with pytest.raises(RecordNotFound):
            core.audit.resolve_security_event(99, admin)

    def test_clients_cannot_triage(self, core, alice):
        with pytest.raises(PermissionDenied):
            core.audit.security_events(alice)
