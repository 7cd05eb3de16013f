"""
Audit and security event models.

Records significant system events for compliance and debugging.
Every mutating operation, successful or not, leaves an audit event.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    String, DateTime, Numeric, Integer, Boolean, JSON,
    Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column

from ledger_core.models.base import Base, utcnow
from ledger_core.models.enums import (
    AuditOutcome,
    Role,
    SecurityEventType,
    Severity,
)


class AuditEvent(Base):
    """
    Immutable record of a system event.

    Like ledger entries, audit events are append-only.
    You never update or delete an audit record.
    """

    __tablename__ = "audit_events"

    id: Mapped[int] = mapped_column(primary_key=True)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False, index=True
    )
    actor_id: Mapped[str] = mapped_column(
        String(100), nullable=False, index=True
    )
    actor_role: Mapped[Role] = mapped_column(
        SAEnum(Role, name="role_enum"), nullable=False
    )
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    resource: Mapped[str] = mapped_column(String(50), nullable=False)
    resource_id: Mapped[str | None] = mapped_column(
        String(100), nullable=True
    )
    outcome: Mapped[AuditOutcome] = mapped_column(
        SAEnum(AuditOutcome, name="audit_outcome_enum"), nullable=False
    )
    severity: Mapped[Severity] = mapped_column(
        SAEnum(Severity, name="severity_enum"), nullable=False
    )
    amount: Mapped[Decimal | None] = mapped_column(
        Numeric(19, 4), nullable=True
    )
    details: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    ip_address: Mapped[str | None] = mapped_column(
        String(45), nullable=True
    )
    session_id: Mapped[str | None] = mapped_column(
        String(100), nullable=True
    )


class SecurityEvent(Base):
    """
    An advisory finding for a human to triage.

    Produced by the scoring strategies after an audit event is
    recorded. Only the resolution fields ever change.
    """

    __tablename__ = "security_events"

    id: Mapped[int] = mapped_column(primary_key=True)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False, index=True
    )
    event_type: Mapped[SecurityEventType] = mapped_column(
        SAEnum(SecurityEventType, name="security_event_type_enum"),
        nullable=False,
    )
    identity_id: Mapped[str | None] = mapped_column(
        String(100), nullable=True, index=True
    )
    ip_address: Mapped[str | None] = mapped_column(
        String(45), nullable=True
    )
    details: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    risk_score: Mapped[int] = mapped_column(Integer, nullable=False)
    resolved: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    resolved_by: Mapped[str | None] = mapped_column(
        String(100), nullable=True
    )
    resolved_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True
    )
