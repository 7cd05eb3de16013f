"""
Transaction processor: deposits, withdrawals, transfers, payments, fees.

Each submission:
1. Takes the locks of every account it touches (sorted, so no deadlock)
2. Replays the original entry if the idempotency key was seen before,
   once the caller may act on the account and only for the same request
3. Validates, failing fast on the first violation:
   account available → funds → daily limit → transfer destination
4. Appends the ledger entries and moves the cached balances
5. Commits once, while still holding the locks
6. Records exactly one audit event, success or failure

If anything fails after validation the whole unit of work is rolled
back; a failed transfer is then recorded as a FAILED pair so the
attempt stays visible in the ledger.
"""

import logging
from collections.abc import Callable
from decimal import Decimal
from functools import partial

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ledger_core.errors import (
    AccountUnavailable,
    DailyLimitExceeded,
    InsufficientFunds,
    InvalidDestination,
    InvalidOperation,
    LedgerError,
)
from ledger_core.models.account import Account
from ledger_core.models.base import utcnow
from ledger_core.models.enums import (
    AccountStatus,
    AuditOutcome,
    EntryStatus,
    EntryType,
)
from ledger_core.models.ledger_entry import LedgerEntry
from ledger_core.schemas.identity import Actor
from ledger_core.schemas.transaction import TransactionPolicy, TransactionRequest
from ledger_core.services.account_store import AccountStore
from ledger_core.services.audit_recorder import AuditRecorder
from ledger_core.services.authorization import require_access, require_privileged
from ledger_core.services.ledger import Ledger, new_reference, to_money
from ledger_core.services.locks import AccountLocks, account_key, request_key

logger = logging.getLogger(__name__)


# Operations that take money out of the account and need covering funds
DEBIT_OPERATIONS = frozenset({
    EntryType.WITHDRAWAL,
    EntryType.TRANSFER,
    EntryType.PAYMENT,
})

# Operations counted against the daily limit
LIMITED_OPERATIONS = frozenset({EntryType.WITHDRAWAL, EntryType.TRANSFER})

HOLD_REASON = "Large deposit verification"

CENT = Decimal("0.01")

# Called inside the unit of work after the entries are applied and
# before the commit; raising from it rolls the submission back.
OnApplied = Callable[[Session, LedgerEntry], None]


def calculate_simple_interest(
    balance: Decimal, annual_rate: Decimal, days: int
) -> Decimal:
    """Interest on balance at annual_rate percent over days."""
    return balance * annual_rate * days / (365 * 100)


class TransactionProcessor:

    def __init__(
        self,
        session_factory: sessionmaker,
        locks: AccountLocks,
        audit: AuditRecorder,
        policy: TransactionPolicy | None = None,
    ):
        self.session_factory = session_factory
        self.locks = locks
        self.audit = audit
        self.policy = policy or TransactionPolicy.from_settings()

    # --- Unit of work ---

    def _execute(
        self,
        actor: Actor,
        action: str,
        lock_keys: list[str] | Callable[[], list[str]],
        work: Callable[[Session], tuple[LedgerEntry, dict]],
        *,
        subject_id,
        subject_resource: str = "account",
        amount: Decimal | None = None,
        on_failure: Callable[[Exception], None] | None = None,
    ) -> LedgerEntry:
        """
        Run work under the given locks in one session and audit the outcome.

        work returns the primary entry and extra audit details. The
        commit happens before the locks are released so the next holder
        sees the new balance. on_failure runs after the rollback, still
        under the locks. lock_keys may be a callable when the keys
        depend on a lookup that can itself fail.
        """
        log_fields = {"actor_id": actor.identity_id, "action": action}
        if subject_resource == "account":
            log_fields["account_id"] = subject_id
        else:
            log_fields["entry_id"] = subject_id

        try:
            if callable(lock_keys):
                lock_keys = lock_keys()
            with self.locks.hold(*lock_keys):
                with self.session_factory() as db:
                    try:
                        entry, details = work(db)
                        db.commit()
                    except Exception as exc:
                        db.rollback()
                        if on_failure is not None:
                            on_failure(exc)
                        raise
        except LedgerError as exc:
            logger.info(
                "%s rejected for %s: %s", action, subject_id, exc, extra=log_fields
            )
            self._audit_failure(actor, action, subject_resource, subject_id, amount, exc)
            raise
        except Exception as exc:
            logger.exception("%s failed for %s", action, subject_id, extra=log_fields)
            self._audit_failure(actor, action, subject_resource, subject_id, amount, exc)
            raise

        logger.info(
            "%s applied: entry %s (%s)", action, entry.id, entry.status.value,
            extra={**log_fields, "account_id": entry.account_id, "entry_id": entry.id},
        )
        self.audit.record_for(
            actor, action, "ledger_entry", entry.id,
            amount=amount,
            details={
                "account_id": entry.account_id,
                "status": entry.status.value,
                "reference": entry.reference,
                **details,
            },
        )
        return entry

    def _audit_failure(self, actor, action, resource, subject_id, amount, exc) -> None:
        self.audit.record_for(
            actor, action, resource, subject_id,
            outcome=AuditOutcome.FAILURE,
            amount=amount,
            details={
                "error": getattr(exc, "code", type(exc).__name__),
                "message": str(exc),
            },
        )

    # --- Submission ---

    def submit(
        self,
        request: TransactionRequest,
        actor: Actor,
        on_applied: OnApplied | None = None,
    ) -> LedgerEntry:
        """
        Validate and apply one operation. Returns its primary entry.

        For transfers this is the debit on the source account; the
        credit is reachable through counterpart_id. Large deposits
        come back PENDING with a hold reason.
        """
        keys = [account_key(request.account_id)]
        if (
            request.operation == EntryType.TRANSFER
            and request.destination_account_id is not None
        ):
            keys.append(account_key(request.destination_account_id))
        if request.idempotency_key:
            keys.append(request_key(request.idempotency_key))

        # Set once a transfer starts writing; validation errors never reach the ledger
        applying = False

        def work(db: Session) -> tuple[LedgerEntry, dict]:
            nonlocal applying
            ledger = Ledger(db)
            store = AccountStore(db)

            if request.idempotency_key:
                owner = store.find(request.account_id)
                if owner is None:
                    raise AccountUnavailable(f"Account {request.account_id} not found")
                require_access(actor, owner.owner_id, f"account {owner.id}")
                existing = ledger.find_by_idempotency_key(request.idempotency_key)
                if existing:
                    self._check_replay(existing, request)
                    return existing, {"replayed": True}

            account = self._validate(store, ledger, request, actor)
            fee = self.policy.fee_for(request.operation, request.amount)

            if request.operation == EntryType.TRANSFER:
                applying = True
                entry = self._apply_transfer(ledger, store, request)
            elif (
                request.operation == EntryType.DEPOSIT
                and request.amount > self.policy.large_deposit_threshold
            ):
                entry = self._place_hold(ledger, request, account)
            else:
                entry = self._apply_single(ledger, store, request, account, fee)

            if on_applied is not None:
                on_applied(db, entry)
            return entry, {"fee": str(fee)} if fee else {}

        def on_failure(exc: Exception) -> None:
            if applying:
                self._record_failed_transfer(request, str(exc))

        return self._execute(
            actor,
            f"transaction.{request.operation.value.lower()}",
            keys,
            work,
            subject_id=request.account_id,
            amount=request.amount,
            on_failure=on_failure,
        )

    @staticmethod
    def _check_replay(existing: LedgerEntry, request: TransactionRequest) -> None:
        """A key only replays the request that first used it."""
        if (
            existing.account_id != request.account_id
            or existing.entry_type != request.operation
            or abs(existing.amount) != request.amount
        ):
            raise InvalidOperation(
                "Idempotency key already used for a different request"
            )

    def _validate(
        self,
        store: AccountStore,
        ledger: Ledger,
        request: TransactionRequest,
        actor: Actor,
    ) -> Account:
        account = store.find(request.account_id)
        if account is None:
            raise AccountUnavailable(f"Account {request.account_id} not found")
        if account.status != AccountStatus.ACTIVE:
            raise AccountUnavailable(
                f"Account {account.id} is {account.status.value.lower()}"
            )
        require_access(actor, account.owner_id, f"account {account.id}")
        if request.operation == EntryType.FEE:
            require_privileged(actor, "charge fees")

        if request.operation in DEBIT_OPERATIONS:
            fee = self.policy.fee_for(request.operation, request.amount)
            available = to_money(account.balance) - to_money(account.minimum_balance)
            required = request.amount + fee
            if available < required:
                raise InsufficientFunds(
                    f"Insufficient funds: available={available}, "
                    f"requested={required}"
                )

        if request.operation in LIMITED_OPERATIONS:
            used = ledger.daily_outflow(account.id, utcnow().date())
            if used + request.amount > self.policy.daily_limit:
                raise DailyLimitExceeded(
                    f"Daily limit {self.policy.daily_limit} exceeded: "
                    f"used={used}, requested={request.amount}"
                )

        if request.operation == EntryType.TRANSFER:
            self._validate_destination(store, request, account)

        return account

    def _validate_destination(
        self,
        store: AccountStore,
        request: TransactionRequest,
        source: Account,
    ) -> Account:
        destination_id = request.destination_account_id
        if destination_id is None:
            raise InvalidDestination("Transfer destination account required")
        if destination_id == source.id:
            raise InvalidDestination("Cannot transfer to the same account")

        destination = store.find(destination_id)
        if destination is None or destination.status != AccountStatus.ACTIVE:
            raise InvalidDestination(
                f"Account {destination_id} cannot receive transfers"
            )
        if destination.currency != source.currency:
            raise InvalidDestination(
                f"Account {destination_id} currency is {destination.currency}, "
                f"source currency is {source.currency}"
            )
        return destination

    # --- Application ---

    def _apply_single(
        self,
        ledger: Ledger,
        store: AccountStore,
        request: TransactionRequest,
        account: Account,
        fee: Decimal,
    ) -> LedgerEntry:
        signed = request.amount
        if request.operation != EntryType.DEPOSIT:
            signed = -request.amount

        entry = ledger.append(
            account.id,
            request.operation,
            signed,
            description=request.resolved_description,
            category=request.resolved_category,
            idempotency_key=request.idempotency_key,
        )
        ledger.complete(entry.id)
        store.update_balance(account.id, entry.amount)

        if fee > 0:
            fee_entry = ledger.append(
                account.id,
                EntryType.FEE,
                -fee,
                description=f"{request.operation.value.title()} fee",
                category="Fee",
                reference=entry.reference,
                related_entry_id=entry.id,
            )
            ledger.complete(fee_entry.id)
            store.update_balance(account.id, fee_entry.amount)

        return entry

    def _place_hold(
        self,
        ledger: Ledger,
        request: TransactionRequest,
        account: Account,
    ) -> LedgerEntry:
        """Large deposits wait PENDING for review; the balance is untouched."""
        return ledger.append(
            account.id,
            EntryType.DEPOSIT,
            request.amount,
            description=request.resolved_description,
            category=request.resolved_category,
            idempotency_key=request.idempotency_key,
            hold_reason=HOLD_REASON,
        )

    def _apply_transfer(
        self,
        ledger: Ledger,
        store: AccountStore,
        request: TransactionRequest,
    ) -> LedgerEntry:
        debit, credit = ledger.append_transfer_pair(
            request.account_id,
            request.destination_account_id,
            request.amount,
            request.resolved_description,
            category=request.resolved_category,
            idempotency_key=request.idempotency_key,
        )
        store.update_balance(debit.account_id, debit.amount)

        destination = store.get(credit.account_id)
        if destination.status != AccountStatus.ACTIVE:
            raise InvalidDestination(
                f"Account {destination.id} became "
                f"{destination.status.value.lower()} during the transfer"
            )
        store.update_balance(credit.account_id, credit.amount)
        ledger.complete_pair(debit, credit)
        return debit

    def _record_failed_transfer(self, request: TransactionRequest, reason: str) -> None:
        """Leave a FAILED pair behind for a transfer that was rolled back."""
        try:
            with self.session_factory() as db:
                ledger = Ledger(db)
                debit, credit = ledger.append_transfer_pair(
                    request.account_id,
                    request.destination_account_id,
                    request.amount,
                    request.resolved_description,
                    category=request.resolved_category,
                )
                ledger.fail_pair(debit, credit, reason[:500])
                db.commit()
        except SQLAlchemyError:
            logger.exception(
                "Could not record failed transfer from account %s",
                request.account_id,
            )

    # --- Administrative entries ---

    def _entry_lock_keys(self, actor: Actor, action: str, entry_id: int) -> list[str]:
        """Lock keys for an entry's account and, for transfers, its pair."""
        require_privileged(actor, action)
        with self.session_factory() as db:
            ledger = Ledger(db)
            entry = ledger.get(entry_id)
            keys = [account_key(entry.account_id)]
            if entry.counterpart_id is not None:
                keys.append(account_key(ledger.get(entry.counterpart_id).account_id))
            return keys

    def reverse(self, entry_id: int, actor: Actor, reason: str) -> LedgerEntry:
        """
        Post REVERSAL entries negating a completed entry.

        A transfer is reversed on both legs at once. The original
        entries are not modified; reversals point back at them.
        Reversals are the one kind of entry a SUSPENDED account accepts.
        """
        keys = partial(self._entry_lock_keys, actor, "reverse entries", entry_id)

        def work(db: Session) -> tuple[LedgerEntry, dict]:
            ledger = Ledger(db)
            store = AccountStore(db)

            original = ledger.get(entry_id)
            if original.status != EntryStatus.COMPLETED:
                raise InvalidOperation(
                    f"Can only reverse completed entries "
                    f"(status: {original.status.value})"
                )
            if original.entry_type == EntryType.REVERSAL:
                raise InvalidOperation("Cannot reverse a reversal")

            legs = [original]
            if original.counterpart_id is not None:
                legs.append(ledger.get(original.counterpart_id))

            for leg in legs:
                if ledger.find_reversal_of(leg.id):
                    raise InvalidOperation(f"Entry {leg.id} already reversed")
                if store.get(leg.account_id).status == AccountStatus.CLOSED:
                    raise AccountUnavailable(f"Account {leg.account_id} is closed")

            reference = new_reference()
            reversals = []
            for leg in legs:
                reversal = ledger.append(
                    leg.account_id,
                    EntryType.REVERSAL,
                    -leg.amount,
                    description=f"Reversal: {leg.description}",
                    category="Reversal",
                    reference=reference,
                    related_entry_id=leg.id,
                )
                ledger.complete(reversal.id)
                store.update_balance(leg.account_id, reversal.amount)
                reversals.append(reversal)

            return reversals[0], {
                "reversed_entry_id": entry_id,
                "reason": reason,
                "entry_ids": [r.id for r in reversals],
            }

        return self._execute(
            actor, "transaction.reversal", keys, work,
            subject_id=entry_id, subject_resource="ledger_entry",
        )

    def release_hold(self, entry_id: int, actor: Actor) -> LedgerEntry:
        """Complete a held deposit and credit the account."""
        keys = partial(self._entry_lock_keys, actor, "release deposit holds", entry_id)

        def work(db: Session) -> tuple[LedgerEntry, dict]:
            ledger = Ledger(db)
            store = AccountStore(db)
            entry = self._held_deposit(ledger, entry_id)
            if store.get(entry.account_id).status == AccountStatus.CLOSED:
                raise AccountUnavailable(f"Account {entry.account_id} is closed")
            ledger.complete(entry.id)
            store.update_balance(entry.account_id, entry.amount)
            return entry, {}

        return self._execute(
            actor, "hold.release", keys, work,
            subject_id=entry_id, subject_resource="ledger_entry",
        )

    def reject_hold(self, entry_id: int, actor: Actor, reason: str) -> LedgerEntry:
        """Cancel a held deposit; the balance never moved."""
        keys = partial(self._entry_lock_keys, actor, "reject deposit holds", entry_id)

        def work(db: Session) -> tuple[LedgerEntry, dict]:
            ledger = Ledger(db)
            entry = self._held_deposit(ledger, entry_id)
            ledger.cancel(entry.id, reason)
            return entry, {"reason": reason}

        return self._execute(
            actor, "hold.reject", keys, work,
            subject_id=entry_id, subject_resource="ledger_entry",
        )

    @staticmethod
    def _held_deposit(ledger: Ledger, entry_id: int) -> LedgerEntry:
        entry = ledger.get(entry_id)
        if entry.entry_type != EntryType.DEPOSIT or entry.hold_reason is None:
            raise InvalidOperation(f"Entry {entry_id} is not a held deposit")
        if entry.status != EntryStatus.PENDING:
            raise InvalidOperation(
                f"Hold on entry {entry_id} is already {entry.status.value}"
            )
        return entry

    def post_interest(self, account_id: int, days: int, actor: Actor) -> LedgerEntry:
        """Credit simple interest for the given number of days."""

        def work(db: Session) -> tuple[LedgerEntry, dict]:
            require_privileged(actor, "post interest")
            ledger = Ledger(db)
            store = AccountStore(db)
            account = store.get(account_id)
            if account.status != AccountStatus.ACTIVE:
                raise AccountUnavailable(
                    f"Account {account_id} is {account.status.value.lower()}"
                )

            interest = calculate_simple_interest(
                to_money(account.balance), to_money(account.interest_rate), days
            ).quantize(CENT)
            if interest <= 0:
                raise InvalidOperation(f"No interest accrued on account {account_id}")

            entry = ledger.append(
                account_id,
                EntryType.DEPOSIT,
                interest,
                description=f"Interest for {days} days",
                category="Interest",
            )
            ledger.complete(entry.id)
            store.update_balance(account_id, interest)
            return entry, {"days": days, "rate": str(account.interest_rate)}

        return self._execute(
            actor, "transaction.interest", [account_key(account_id)], work,
            subject_id=account_id,
        )
