"""Business logic services."""

from ledger_core.services.account_service import AccountService
from ledger_core.services.audit_recorder import AuditRecorder
from ledger_core.services.bill_service import BillService
from ledger_core.services.soft_delete import SoftDeleteService
from ledger_core.services.statement_builder import StatementBuilder
from ledger_core.services.transaction_processor import TransactionProcessor

__all__ = [
    "AccountService",
    "AuditRecorder",
    "BillService",
    "SoftDeleteService",
    "StatementBuilder",
    "TransactionProcessor",
]
