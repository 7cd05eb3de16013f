"""
Customer account model.

The account holds a cached balance. The cache is a projection of the
ledger: it always equals the signed sum of the account's completed
ledger entries, and it is only ever moved together with an entry
reaching COMPLETED.

The account has a state machine governing its lifecycle.
Invalid state transitions are rejected.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import String, DateTime, Numeric, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_core.models.base import Base, utcnow
from ledger_core.models.enums import AccountType, AccountStatus


# Valid state transitions: the source of truth for the state machine
VALID_TRANSITIONS: dict[AccountStatus, set[AccountStatus]] = {
    AccountStatus.ACTIVE: {AccountStatus.SUSPENDED, AccountStatus.CLOSED},
    AccountStatus.SUSPENDED: {AccountStatus.ACTIVE, AccountStatus.CLOSED},
    AccountStatus.CLOSED: set(),  # Terminal state: no transitions out
}


class Account(Base):
    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(primary_key=True)
    owner_id: Mapped[str] = mapped_column(
        String(100), nullable=False, index=True
    )
    account_number: Mapped[str] = mapped_column(
        String(17), unique=True, nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    account_type: Mapped[AccountType] = mapped_column(
        SAEnum(AccountType, name="account_type_enum", create_constraint=True),
        nullable=False,
    )
    balance: Mapped[Decimal] = mapped_column(
        Numeric(19, 4), nullable=False, default=Decimal("0")
    )
    status: Mapped[AccountStatus] = mapped_column(
        SAEnum(
            AccountStatus,
            name="account_status_enum",
            create_constraint=True,
        ),
        nullable=False,
        default=AccountStatus.ACTIVE,
    )
    minimum_balance: Mapped[Decimal] = mapped_column(
        Numeric(19, 4), nullable=False, default=Decimal("0")
    )
    # Annual rate in percent, e.g. 2.5 for 2.5%
    interest_rate: Mapped[Decimal] = mapped_column(
        Numeric(7, 4), nullable=False, default=Decimal("0")
    )
    currency: Mapped[str] = mapped_column(
        String(3), nullable=False, default="USD"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, onupdate=utcnow
    )

    entries: Mapped[list["LedgerEntry"]] = relationship(
        back_populates="account"
    )

    def can_transition_to(self, new_status: AccountStatus) -> bool:
        """Check if a state transition is valid."""
        return new_status in VALID_TRANSITIONS.get(self.status, set())

    @property
    def masked_number(self) -> str:
        visible = self.account_number[-4:]
        return "*" * (len(self.account_number) - len(visible)) + visible

    def __repr__(self) -> str:
        return (
            f"<Account {self.id} "
            f"{self.account_type.value} ({self.status.value})>"
        )
