"""
Soft-delete tombstone model.

When a business record is soft-deleted its row leaves the primary
table and a tombstone keeps a snapshot of it. A tombstone is
permanent; restoring only flips can_restore off after the snapshot
has been written back.
"""

from datetime import datetime

from sqlalchemy import String, DateTime, Boolean, JSON
from sqlalchemy.orm import Mapped, mapped_column

from ledger_core.models.base import Base, utcnow


class SoftDeleteTombstone(Base):
    __tablename__ = "soft_delete_tombstones"

    id: Mapped[int] = mapped_column(primary_key=True)
    table_name: Mapped[str] = mapped_column(
        String(50), nullable=False, index=True
    )
    record_id: Mapped[str] = mapped_column(String(100), nullable=False)
    deleted_by: Mapped[str] = mapped_column(String(100), nullable=False)
    reason: Mapped[str] = mapped_column(String(255), nullable=False)
    snapshot: Mapped[dict] = mapped_column(JSON, nullable=False)
    can_restore: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )
    deleted_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )
    restored_by: Mapped[str | None] = mapped_column(
        String(100), nullable=True
    )
    restored_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True
    )

    def __repr__(self) -> str:
        return f"<SoftDeleteTombstone {self.table_name}:{self.record_id}>"
