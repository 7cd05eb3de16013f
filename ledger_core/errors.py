"""
Typed ledger errors.

Every condition a caller can recover from has its own class so that
callers branch on the cause rather than parsing messages. All of them
derive from ValueError, the error type the services have always raised
for rejected requests, and each carries the HTTP status the API layer
reports for it.
"""


class LedgerError(ValueError):
    """Base class for all rejected ledger operations."""

    status_code = 400
    code = "ledger_error"


class AccountUnavailable(LedgerError):
    """Account is missing, closed, or suspended for this operation."""

    status_code = 409
    code = "account_unavailable"


class InsufficientFunds(LedgerError):
    status_code = 422
    code = "insufficient_funds"


class DailyLimitExceeded(LedgerError):
    status_code = 422
    code = "daily_limit_exceeded"


class InvalidDestination(LedgerError):
    status_code = 422
    code = "invalid_destination"


class RecordNotFound(LedgerError):
    status_code = 404
    code = "record_not_found"


class AlreadyPaid(LedgerError):
    status_code = 409
    code = "already_paid"


class NotRestorable(LedgerError):
    status_code = 409
    code = "not_restorable"


class PermissionDenied(LedgerError):
    """The acting identity lacks the role or ownership required."""

    status_code = 403
    code = "permission_denied"


class InvalidOperation(LedgerError):
    """The request conflicts with the current state of a record."""

    status_code = 409
    code = "invalid_operation"
