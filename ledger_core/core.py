"""
Wiring of the ledger core.

build_core() creates one set of services sharing a session factory,
a lock registry and an audit recorder. Nothing here is a process-wide
singleton: each call returns an independent core, which is how tests
get a fresh store per test.
"""

from dataclasses import dataclass

from sqlalchemy.orm import sessionmaker

from ledger_core.config import Settings, get_settings
from ledger_core.models.base import make_engine, make_session_factory
from ledger_core.schemas.transaction import TransactionPolicy
from ledger_core.services.account_service import AccountService
from ledger_core.services.audit_recorder import AuditRecorder
from ledger_core.services.bill_service import BillService
from ledger_core.services.locks import AccountLocks
from ledger_core.services.risk import ScoringStrategy, default_strategies
from ledger_core.services.soft_delete import SoftDeleteService
from ledger_core.services.statement_builder import StatementBuilder
from ledger_core.services.transaction_processor import TransactionProcessor


@dataclass
class LedgerCore:
    session_factory: sessionmaker
    locks: AccountLocks
    audit: AuditRecorder
    accounts: AccountService
    transactions: TransactionProcessor
    statements: StatementBuilder
    bills: BillService
    soft_delete: SoftDeleteService


def build_core(
    session_factory: sessionmaker | None = None,
    settings: Settings | None = None,
    policy: TransactionPolicy | None = None,
    strategies: list[ScoringStrategy] | None = None,
) -> LedgerCore:
    """
    Assemble the services.

    Without a session factory one is built from DATABASE_URL. Policy
    and scoring strategies default to what the settings describe.
    """
    settings = settings or get_settings()
    if session_factory is None:
        session_factory = make_session_factory(make_engine(settings.DATABASE_URL))
    if strategies is None:
        strategies = default_strategies(settings.LARGE_TRANSACTION_ALERT)

    locks = AccountLocks()
    audit = AuditRecorder(
        session_factory,
        strategies=strategies,
        retry_attempts=settings.AUDIT_RETRY_ATTEMPTS,
    )
    transactions = TransactionProcessor(
        session_factory,
        locks,
        audit,
        policy or TransactionPolicy.from_settings(settings),
    )

    return LedgerCore(
        session_factory=session_factory,
        locks=locks,
        audit=audit,
        accounts=AccountService(session_factory, locks, audit),
        transactions=transactions,
        statements=StatementBuilder(session_factory),
        bills=BillService(session_factory, locks, transactions, audit),
        soft_delete=SoftDeleteService(session_factory, locks, audit),
    )
