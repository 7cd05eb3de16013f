"""
Tests for the JSON log formatter and the fields services attach to it.
"""

import json
import logging
from decimal import Decimal

import pytest

from ledger_core.errors import InsufficientFunds
from ledger_core.logging_config import JSONFormatter, setup_logging
from ledger_core.models.enums import EntryType
from ledger_core.schemas.transaction import TransactionRequest


class ListHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


@pytest.fixture
def processor_records():
    """Records emitted by the transaction processor during the test."""
    logger = logging.getLogger("ledger_core.services.transaction_processor")
    handler = ListHandler()
    previous = logger.level
    logger.setLevel(logging.INFO)
    logger.addHandler(handler)
    yield handler.records
    logger.removeHandler(handler)
    logger.setLevel(previous)


def withdrawal(account_id, amount):
    return TransactionRequest(
        operation=EntryType.WITHDRAWAL,
        account_id=account_id,
        amount=Decimal(amount),
    )


def rendered(record):
    return json.loads(JSONFormatter().format(record))


class TestJSONFormatter:

    def test_extra_fields_are_rendered(self):
        record = logging.makeLogRecord({
            "name": "ledger_core.test",
            "levelname": "INFO",
            "msg": "applied %s",
            "args": ("entry",),
            "actor_id": "alice",
            "action": "transaction.deposit",
            "account_id": 7,
            "entry_id": 42,
        })

        line = rendered(record)

        assert line["message"] == "applied entry"
        assert line["actor_id"] == "alice"
        assert line["action"] == "transaction.deposit"
        assert line["account_id"] == 7
        assert line["entry_id"] == 42

    def test_missing_fields_are_left_out(self):
        record = logging.makeLogRecord({"msg": "plain", "levelname": "INFO"})

        assert set(rendered(record)) == {"timestamp", "level", "logger", "message"}

    def test_setup_logging_replaces_handlers(self):
        logger = setup_logging("DEBUG", logger_name="ledger_core.test_setup")
        setup_logging("DEBUG", logger_name="ledger_core.test_setup")

        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, JSONFormatter)
        assert logger.propagate is False


class TestProcessorLogFields:

    def test_applied_entry_carries_context(
        self, core, open_account, alice, processor_records
    ):
        account = open_account("alice", "100")

        entry = core.transactions.submit(withdrawal(account.id, "25"), alice)

        (record,) = [
            r for r in processor_records
            if getattr(r, "action", None) == "transaction.withdrawal"
        ]
        line = rendered(record)
        assert line["actor_id"] == "alice"
        assert line["account_id"] == account.id
        assert line["entry_id"] == entry.id

    def test_rejection_carries_context(
        self, core, open_account, alice, processor_records
    ):
        account = open_account("alice", "10")

        with pytest.raises(InsufficientFunds):
            core.transactions.submit(withdrawal(account.id, "25"), alice)

        (record,) = [
            r for r in processor_records
            if getattr(r, "action", None) == "transaction.withdrawal"
        ]
        line = rendered(record)
        assert line["actor_id"] == "alice"
        assert line["account_id"] == account.id
        assert "entry_id" not in line
