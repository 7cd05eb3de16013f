"""
Account store: the single home of account records and cached balances.

The cached balance is a projection of the ledger. The store moves it
only by relative deltas applied in SQL, and can always rebuild it from
the ledger through reconcile().
"""

import secrets
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ledger_core.errors import InvalidOperation, RecordNotFound
from ledger_core.models.account import Account
from ledger_core.models.enums import AccountStatus
from ledger_core.schemas.account import AccountOpen, ReconciliationResult
from ledger_core.services.ledger import Ledger, to_money


class AccountStore:
    """
    Account persistence bound to one session.

    The caller owns the transaction boundary and decides when to
    commit. Balance updates must run under the account's lock.
    """

    def __init__(self, db: Session):
        self.db = db
        self.ledger = Ledger(db)

    def create(self, request: AccountOpen) -> Account:
        account = Account(
            owner_id=request.owner_id,
            account_number=self._generate_account_number(),
            name=request.name,
            account_type=request.account_type,
            balance=Decimal("0"),
            status=AccountStatus.ACTIVE,
            minimum_balance=request.minimum_balance,
            interest_rate=request.interest_rate,
            currency=request.currency,
        )
        self.db.add(account)
        self.db.flush()
        return account

    def _generate_account_number(self) -> str:
        while True:
            number = "".join(secrets.choice("0123456789") for _ in range(10))
            taken = self.db.execute(
                select(Account.id).where(Account.account_number == number)
            ).first()
            if not taken:
                return number

    def find(self, account_id: int) -> Account | None:
        return self.db.get(Account, account_id)

    def get(self, account_id: int) -> Account:
        """Get an account by ID."""
        account = self.db.get(Account, account_id)
        if not account:
            raise RecordNotFound(f"Account {account_id} not found")
        return account

    def list_for_owner(self, owner_id: str) -> list[Account]:
        accounts = self.db.execute(
            select(Account)
            .where(Account.owner_id == owner_id)
            .order_by(Account.id)
        ).scalars().all()
        return list(accounts)

    def update_balance(self, account_id: int, delta: Decimal) -> Account:
        """
        Move the cached balance by delta.

        The increment is a single UPDATE so the database never sees a
        read-modify-write of the balance column.
        """
        result = self.db.execute(
            update(Account)
            .where(Account.id == account_id)
            .values(balance=Account.balance + delta)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise RecordNotFound(f"Account {account_id} not found")

        account = self.db.get(Account, account_id)
        self.db.refresh(account, attribute_names=["balance", "updated_at"])
        return account

    def set_status(self, account_id: int, status: AccountStatus) -> Account:
        """
        Transition an account to a new status.

        Enforces the state machine. An account can only be closed
        once its balance is zero.
        """
        account = self.get(account_id)

        if not account.can_transition_to(status):
            raise InvalidOperation(
                f"Cannot transition from {account.status.value} "
                f"to {status.value}"
            )
        if status == AccountStatus.CLOSED and to_money(account.balance) != 0:
            raise InvalidOperation(
                f"Account {account_id} has balance {account.balance}; "
                f"only zero-balance accounts can be closed"
            )

        account.status = status
        self.db.flush()
        return account

    def ledger_balance(self, account_id: int) -> Decimal:
        return self.ledger.balance_of(account_id)

    def reconcile(self, account_id: int) -> ReconciliationResult:
        """
        Rebuild the cached balance from the ledger.

        Returns the drift that was found; the cache is corrected in
        the same unit of work when the two disagree.
        """
        account = self.get(account_id)
        cached = to_money(account.balance)
        derived = self.ledger.balance_of(account_id)
        drift = cached - derived

        if drift != 0:
            account.balance = derived
            self.db.flush()

        return ReconciliationResult(
            account_id=account_id,
            cached_balance=cached,
            ledger_balance=derived,
            drift=drift,
            corrected=drift != 0,
        )
