"""
Soft delete and restore of business records.

Deleting moves a row out of its table and leaves a tombstone holding
a JSON snapshot of every column. Restoring writes the snapshot back
under the original id and closes the tombstone for good: a tombstone
restores at most once.

Only tables registered in SOFT_DELETABLE can be soft-deleted. Ledger
entries and accounts never are; they are corrected by reversal and
closed by status.
"""

import enum
import logging
from collections.abc import Callable
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Date, DateTime, Enum as SAEnum, Numeric, inspect, select
from sqlalchemy.orm import sessionmaker

from ledger_core.errors import (
    InvalidOperation,
    LedgerError,
    NotRestorable,
    RecordNotFound,
)
from ledger_core.models.base import Base, utcnow
from ledger_core.models.bill import Bill
from ledger_core.models.enums import AuditOutcome
from ledger_core.models.tombstone import SoftDeleteTombstone
from ledger_core.schemas.identity import Actor
from ledger_core.services.audit_recorder import AuditRecorder
from ledger_core.services.authorization import require_privileged
from ledger_core.services.locks import AccountLocks, bill_key

logger = logging.getLogger(__name__)


# table name → (model, lock key for one of its records)
SOFT_DELETABLE: dict[str, tuple[type[Base], Callable[[int], str]]] = {
    "bills": (Bill, bill_key),
}


def snapshot_of(record: Base) -> dict:
    """Column values of a row as JSON-safe primitives."""
    snapshot = {}
    for column in inspect(type(record)).columns:
        value = getattr(record, column.key)
        if isinstance(value, enum.Enum):
            value = value.value
        elif isinstance(value, (datetime, date)):
            value = value.isoformat()
        elif isinstance(value, Decimal):
            value = str(value)
        snapshot[column.key] = value
    return snapshot


def values_from_snapshot(model: type[Base], snapshot: dict) -> dict:
    """Inverse of snapshot_of, driven by the model's column types."""
    values = {}
    for column in inspect(model).columns:
        if column.key not in snapshot:
            continue
        value = snapshot[column.key]
        if value is not None:
            if isinstance(column.type, SAEnum) and column.type.enum_class:
                value = column.type.enum_class(value)
            elif isinstance(column.type, DateTime):
                value = datetime.fromisoformat(value)
            elif isinstance(column.type, Date):
                value = date.fromisoformat(value)
            elif isinstance(column.type, Numeric):
                value = Decimal(value)
        values[column.key] = value
    return values


class SoftDeleteService:

    def __init__(
        self,
        session_factory: sessionmaker,
        locks: AccountLocks,
        audit: AuditRecorder,
    ):
        self.session_factory = session_factory
        self.locks = locks
        self.audit = audit

    @staticmethod
    def _registered(table_name: str) -> tuple[type[Base], Callable[[int], str]]:
        if table_name not in SOFT_DELETABLE:
            raise InvalidOperation(f"Table '{table_name}' does not support soft delete")
        return SOFT_DELETABLE[table_name]

    @staticmethod
    def _record_id(record_id: str) -> int:
        try:
            return int(record_id)
        except (TypeError, ValueError):
            raise RecordNotFound(f"Record {record_id!r} not found") from None

    def soft_delete(
        self,
        table_name: str,
        record_id: str,
        actor: Actor,
        reason: str,
    ) -> SoftDeleteTombstone:
        try:
            require_privileged(actor, "soft delete records")
            model, key_for = self._registered(table_name)
            pk = self._record_id(record_id)

            with self.locks.hold(key_for(pk)):
                with self.session_factory() as db:
                    record = db.get(model, pk)
                    if not record:
                        raise RecordNotFound(f"{table_name} record {record_id} not found")

                    tombstone = SoftDeleteTombstone(
                        table_name=table_name,
                        record_id=str(pk),
                        deleted_by=actor.identity_id,
                        reason=reason,
                        snapshot=snapshot_of(record),
                        can_restore=True,
                        deleted_at=utcnow(),
                    )
                    db.add(tombstone)
                    db.delete(record)
                    db.commit()
        except LedgerError as exc:
            self._audit_failure(actor, "record.soft_delete", table_name, record_id, exc)
            raise

        logger.info(
            "Soft-deleted %s:%s by %s (tombstone %s)",
            table_name, record_id, actor.identity_id, tombstone.id,
        )
        self.audit.record_for(
            actor, "record.soft_delete", table_name, record_id,
            details={"reason": reason, "tombstone_id": tombstone.id},
        )
        return tombstone

    def restore(self, tombstone_id: int, actor: Actor) -> SoftDeleteTombstone:
        """
        Write a tombstone's snapshot back into its table.

        Raises NotRestorable when the tombstone was already restored.
        """
        try:
            require_privileged(actor, "restore records")
            with self.session_factory() as db:
                found = db.get(SoftDeleteTombstone, tombstone_id)
            if not found:
                raise RecordNotFound(f"Tombstone {tombstone_id} not found")
            model, key_for = self._registered(found.table_name)

            with self.locks.hold(key_for(int(found.record_id))):
                with self.session_factory() as db:
                    tombstone = db.get(SoftDeleteTombstone, tombstone_id)
                    if not tombstone.can_restore:
                        raise NotRestorable(
                            f"Tombstone {tombstone_id} has already been restored"
                        )
                    if db.get(model, int(tombstone.record_id)):
                        raise InvalidOperation(
                            f"{tombstone.table_name} record {tombstone.record_id} "
                            f"already exists"
                        )

                    db.add(model(**values_from_snapshot(model, tombstone.snapshot)))
                    tombstone.can_restore = False
                    tombstone.restored_by = actor.identity_id
                    tombstone.restored_at = utcnow()
                    db.commit()
        except LedgerError as exc:
            self._audit_failure(actor, "record.restore", "tombstone", tombstone_id, exc)
            raise

        logger.info(
            "Restored %s:%s from tombstone %s",
            tombstone.table_name, tombstone.record_id, tombstone_id,
        )
        self.audit.record_for(
            actor, "record.restore", tombstone.table_name, tombstone.record_id,
            details={"tombstone_id": tombstone_id},
        )
        return tombstone

    def list_tombstones(
        self,
        actor: Actor,
        table_name: str | None = None,
        restorable_only: bool = False,
    ) -> list[SoftDeleteTombstone]:
        require_privileged(actor, "list deleted records")
        stmt = select(SoftDeleteTombstone)
        if table_name:
            stmt = stmt.where(SoftDeleteTombstone.table_name == table_name)
        if restorable_only:
            stmt = stmt.where(SoftDeleteTombstone.can_restore.is_(True))
        stmt = stmt.order_by(
            SoftDeleteTombstone.deleted_at.desc(), SoftDeleteTombstone.id.desc()
        )
        with self.session_factory() as db:
            return list(db.execute(stmt).scalars().all())

    def _audit_failure(self, actor, action, resource, resource_id, exc) -> None:
        self.audit.record_for(
            actor, action, resource, resource_id,
            outcome=AuditOutcome.FAILURE,
            details={"error": exc.code, "message": str(exc)},
        )
