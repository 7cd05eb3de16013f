"""
Shared test fixtures.

Sets up an isolated test database so tests never touch
the real database. Tables are created before each test and
dropped after it, and every test builds its own core (its own
lock registry and audit recorder) on top of that database.
"""

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from ledger_core.config import Settings
from ledger_core.core import build_core
from ledger_core.main import create_app
from ledger_core.models import Base
from ledger_core.models.base import make_engine, make_session_factory
from ledger_core.models.enums import EntryType, Role
from ledger_core.schemas.account import AccountOpen
from ledger_core.schemas.identity import Actor
from ledger_core.schemas.transaction import TransactionPolicy, TransactionRequest


# Use SQLite for tests: no external database needed.
# A file rather than :memory: so worker threads share one database.
TEST_DATABASE_URL = "sqlite:///./test.db"

engine = make_engine(TEST_DATABASE_URL)
TestSessionLocal = make_session_factory(engine)


@pytest.fixture(autouse=True)
def setup_database():
    """
    Create all tables before each test, drop them after.

    autouse=True means every test gets this automatically.
    This ensures each test starts with a clean database.
    """
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session_factory():
    return TestSessionLocal


@pytest.fixture
def db_session():
    """Provide a database session for direct store and ledger testing."""
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def policy():
    """The default money policy, spelled out so tests can rely on it."""
    return TransactionPolicy(
        daily_limit=Decimal("10000"),
        large_deposit_threshold=Decimal("10000"),
        withdrawal_fee_threshold=Decimal("500"),
        withdrawal_fee=Decimal("2.50"),
        payment_fee_threshold=Decimal("1000"),
        payment_fee=Decimal("5.00"),
    )


@pytest.fixture
def core(policy):
    return build_core(TestSessionLocal, settings=Settings(), policy=policy)


@pytest.fixture
def admin():
    return Actor(identity_id="admin-1", role=Role.ADMIN)


@pytest.fixture
def alice():
    return Actor(identity_id="alice", role=Role.CLIENT, ip_address="10.0.0.1")


@pytest.fixture
def bob():
    return Actor(identity_id="bob", role=Role.CLIENT, ip_address="10.0.0.2")


@pytest.fixture
def open_account(core, admin):
    """
    Factory: open an ACTIVE account and optionally fund it.

    Funding is a plain deposit made by the admin, so it must stay
    at or below the large-deposit threshold to complete at once.
    """
    def _open(owner_id: str, balance: str = "0", **fields):
        account = core.accounts.open_account(
            AccountOpen(owner_id=owner_id, **fields), admin
        )
        if Decimal(balance) > 0:
            core.transactions.submit(
                TransactionRequest(
                    operation=EntryType.DEPOSIT,
                    account_id=account.id,
                    amount=Decimal(balance),
                    description="Opening deposit",
                ),
                admin,
            )
        return account

    return _open


@pytest.fixture
def client(core):
    """Provide a test client whose app runs on the test core."""
    return TestClient(create_app(core))


# Identity headers forwarded by the gateway
@pytest.fixture
def as_admin():
    return {"X-Identity-Id": "admin-1", "X-Identity-Role": "ADMIN"}


@pytest.fixture
def as_alice():
    return {"X-Identity-Id": "alice", "X-Identity-Role": "CLIENT"}


@pytest.fixture
def as_bob():
    return {"X-Identity-Id": "bob"}
