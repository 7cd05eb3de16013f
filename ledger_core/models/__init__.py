"""
Database models package.

All models must be imported here so that Alembic can discover
them through Base.metadata when generating migrations.
"""

from ledger_core.models.base import Base
from ledger_core.models.enums import (
    AccountType,
    AccountStatus,
    EntryType,
    EntryStatus,
    BillStatus,
    RecurringType,
    Role,
    AuditOutcome,
    Severity,
    SecurityEventType,
)
from ledger_core.models.account import Account
from ledger_core.models.ledger_entry import LedgerEntry
from ledger_core.models.bill import Bill
from ledger_core.models.audit_event import AuditEvent, SecurityEvent
from ledger_core.models.tombstone import SoftDeleteTombstone

__all__ = [
    "Base",
    "AccountType",
    "AccountStatus",
    "EntryType",
    "EntryStatus",
    "BillStatus",
    "RecurringType",
    "Role",
    "AuditOutcome",
    "Severity",
    "SecurityEventType",
    "Account",
    "LedgerEntry",
    "Bill",
    "AuditEvent",
    "SecurityEvent",
    "SoftDeleteTombstone",
]
