"""
Account service: opens accounts and manages their lifecycle.

This service coordinates between callers and the account store.
Status changes run under the account's lock so that a suspension or
closure cannot interleave with a transaction on the same account.
Balance queries come from the cached balance; reconcile() checks the
cache against the ledger.
"""

import logging
from datetime import datetime

from sqlalchemy.orm import sessionmaker

from ledger_core.errors import LedgerError
from ledger_core.models.account import Account
from ledger_core.models.enums import AccountStatus, AuditOutcome
from ledger_core.models.ledger_entry import LedgerEntry
from ledger_core.schemas.account import (
    AccountBalanceResponse,
    AccountOpen,
    AccountStatusUpdate,
    ReconciliationResult,
)
from ledger_core.schemas.identity import Actor
from ledger_core.services.account_store import AccountStore
from ledger_core.services.audit_recorder import AuditRecorder
from ledger_core.services.authorization import require_access, require_privileged
from ledger_core.services.locks import AccountLocks, account_key

logger = logging.getLogger(__name__)


STATUS_ACTIONS = {
    AccountStatus.ACTIVE: "account.activate",
    AccountStatus.SUSPENDED: "account.suspend",
    AccountStatus.CLOSED: "account.close",
}


class AccountService:

    def __init__(
        self,
        session_factory: sessionmaker,
        locks: AccountLocks,
        audit: AuditRecorder,
    ):
        self.session_factory = session_factory
        self.locks = locks
        self.audit = audit

    def open_account(self, request: AccountOpen, actor: Actor) -> Account:
        """Open a new ACTIVE account with a zero balance."""
        try:
            require_access(actor, request.owner_id, "accounts")
        except LedgerError as exc:
            self._audit_failure(actor, "account.open", None, exc)
            raise

        with self.session_factory() as db:
            account = AccountStore(db).create(request)
            db.commit()

        logger.info(
            "Opened %s account %s for %s",
            account.account_type.value, account.id, account.owner_id,
        )
        self.audit.record_for(
            actor, "account.open", "account", account.id,
            details={
                "account_type": account.account_type.value,
                "currency": account.currency,
            },
        )
        return account

    def get_account(self, account_id: int, actor: Actor) -> Account:
        """Get an account by ID."""
        with self.session_factory() as db:
            account = AccountStore(db).get(account_id)
        require_access(actor, account.owner_id, f"account {account_id}")
        return account

    def list_accounts(self, actor: Actor, owner_id: str | None = None) -> list[Account]:
        """Get all accounts for an owner, the actor by default."""
        owner_id = owner_id or actor.identity_id
        require_access(actor, owner_id, "accounts")
        with self.session_factory() as db:
            return AccountStore(db).list_for_owner(owner_id)

    def get_balance(self, account_id: int, actor: Actor) -> AccountBalanceResponse:
        account = self.get_account(account_id, actor)
        return AccountBalanceResponse(
            account_id=account.id,
            account_type=account.account_type,
            status=account.status,
            balance=account.balance,
            currency=account.currency,
        )

    def entries(
        self,
        account_id: int,
        actor: Actor,
        since: datetime | None = None,
        until: datetime | None = None,
        after_id: int | None = None,
    ) -> list[LedgerEntry]:
        """The account's ledger entries, chronological and resumable."""
        with self.session_factory() as db:
            store = AccountStore(db)
            account = store.get(account_id)
            require_access(actor, account.owner_id, f"account {account_id}")
            return store.ledger.entries_for(
                account_id, since, until, after_id=after_id
            )

    def get_entry(self, entry_id: int, actor: Actor) -> LedgerEntry:
        with self.session_factory() as db:
            store = AccountStore(db)
            entry = store.ledger.get(entry_id)
            account = store.get(entry.account_id)
        require_access(actor, account.owner_id, f"ledger entry {entry_id}")
        return entry

    def change_status(
        self,
        account_id: int,
        request: AccountStatusUpdate,
        actor: Actor,
    ) -> Account:
        """
        Transition an account to a new status.

        Enforces the state machine: only valid transitions
        are allowed, and only zero-balance accounts close.
        """
        action = STATUS_ACTIONS[request.new_status]
        try:
            require_privileged(actor, "change account status")
            with self.locks.hold(account_key(account_id)):
                with self.session_factory() as db:
                    store = AccountStore(db)
                    old_status = store.get(account_id).status
                    account = store.set_status(account_id, request.new_status)
                    db.commit()
        except LedgerError as exc:
            self._audit_failure(actor, action, account_id, exc)
            raise

        logger.info(
            "Account %s: %s -> %s (%s)",
            account_id, old_status.value, account.status.value, request.reason,
        )
        self.audit.record_for(
            actor, action, "account", account_id,
            details={
                "from": old_status.value,
                "to": account.status.value,
                "reason": request.reason,
            },
        )
        return account

    def reconcile(self, account_id: int, actor: Actor) -> ReconciliationResult:
        """Rebuild the cached balance from the ledger and report any drift."""
        require_privileged(actor, "reconcile accounts")
        with self.locks.hold(account_key(account_id)):
            with self.session_factory() as db:
                result = AccountStore(db).reconcile(account_id)
                db.commit()

        if result.corrected:
            logger.warning(
                "Account %s balance drift %s corrected (cached %s, ledger %s)",
                account_id, result.drift, result.cached_balance, result.ledger_balance,
            )
            self.audit.record_for(
                actor, "account.reconcile", "account", account_id,
                amount=result.drift,
                details={
                    "cached_balance": str(result.cached_balance),
                    "ledger_balance": str(result.ledger_balance),
                },
            )
        return result

    def _audit_failure(self, actor, action, account_id, exc) -> None:
        self.audit.record_for(
            actor, action, "account", account_id,
            outcome=AuditOutcome.FAILURE,
            details={"error": exc.code, "message": str(exc)},
        )
