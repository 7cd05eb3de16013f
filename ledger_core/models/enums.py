"""
Shared enumerations for database models.

Using Python enums mapped to database enums ensures that
only valid values can be stored.
"""

import enum


class AccountType(str, enum.Enum):
    CHECKING = "CHECKING"
    SAVINGS = "SAVINGS"
    INVESTMENT = "INVESTMENT"
    CREDIT = "CREDIT"


class AccountStatus(str, enum.Enum):
    """Lifecycle of a customer account."""
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    CLOSED = "CLOSED"


class EntryType(str, enum.Enum):
    """What kind of movement a ledger entry records."""
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    TRANSFER = "TRANSFER"
    PAYMENT = "PAYMENT"
    FEE = "FEE"
    REVERSAL = "REVERSAL"


class EntryStatus(str, enum.Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


# Once an entry leaves PENDING it never changes again
TERMINAL_ENTRY_STATUSES = frozenset({
    EntryStatus.COMPLETED,
    EntryStatus.FAILED,
    EntryStatus.CANCELLED,
})


class BillStatus(str, enum.Enum):
    """OVERDUE is derived from the due date and never stored."""
    PENDING = "PENDING"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"


class RecurringType(str, enum.Enum):
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    YEARLY = "YEARLY"


class Role(str, enum.Enum):
    """Role of the identity acting on the core."""
    CLIENT = "CLIENT"
    ADMIN = "ADMIN"
    SYSTEM = "SYSTEM"


class AuditOutcome(str, enum.Enum):
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"


class Severity(str, enum.Enum):
    INFO = "INFO"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


class SecurityEventType(str, enum.Enum):
    LOGIN_ATTEMPT = "LOGIN_ATTEMPT"
    FAILED_LOGIN = "FAILED_LOGIN"
    SUSPICIOUS_ACTIVITY = "SUSPICIOUS_ACTIVITY"
    ACCOUNT_LOCKED = "ACCOUNT_LOCKED"
    PASSWORD_CHANGE = "PASSWORD_CHANGE"
