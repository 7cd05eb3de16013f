"""
Audit recorder: append-only log of mutating and security-relevant events.

Recording is isolated from the business operation that triggered it:
each event is written in its own session after the operation has
finished, retried a few times, and dropped with an error log if it
still cannot be written. An audit failure never turns a successful
transaction into a failed one.

After an event is written the scoring strategies look at it together
with the actor's recent history and may raise security events. Those
are advisory only.
"""

import logging
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ledger_core.errors import InvalidOperation, RecordNotFound
from ledger_core.models.audit_event import AuditEvent, SecurityEvent
from ledger_core.models.base import utcnow
from ledger_core.models.enums import (
    AuditOutcome,
    Role,
    SecurityEventType,
    Severity,
)
from ledger_core.schemas.audit import (
    AUDIT_EXPORT_FIELDS,
    AuditEventCreate,
    AuditQuery,
)
from ledger_core.schemas.identity import Actor
from ledger_core.services.authorization import require_privileged
from ledger_core.services.risk import (
    HISTORY_WINDOW,
    LOGIN_ACTION,
    Finding,
    ScoringStrategy,
    risk_score_for,
)

logger = logging.getLogger(__name__)


CRITICAL_ACTIONS = ("account.close", "record.soft_delete", "record.restore")
WARNING_ACTIONS = ("account.suspend", "hold.reject", "transaction.reversal")

HIGH_RISK_SCORE = 80
LOCKOUT_ATTEMPTS = 5


def determine_severity(action: str, outcome: AuditOutcome) -> Severity:
    if any(critical in action for critical in CRITICAL_ACTIONS):
        return Severity.CRITICAL
    if outcome == AuditOutcome.FAILURE:
        return Severity.WARNING
    if any(warning in action for warning in WARNING_ACTIONS):
        return Severity.WARNING
    return Severity.INFO


class AuditRecorder:

    def __init__(
        self,
        session_factory: sessionmaker,
        strategies: list[ScoringStrategy] | None = None,
        retry_attempts: int = 3,
    ):
        self.session_factory = session_factory
        self.strategies = strategies or []
        self.retry_attempts = max(1, retry_attempts)

    # --- Recording ---

    def record(self, event: AuditEventCreate) -> AuditEvent | None:
        """
        Append an event. Returns the stored row, or None if it was dropped.

        Never raises: this runs after the business operation has
        already reached its outcome.
        """
        severity = event.severity or determine_severity(event.action, event.outcome)

        row = None
        for attempt in range(1, self.retry_attempts + 1):
            try:
                row = self._write(event, severity)
                break
            except SQLAlchemyError:
                logger.warning(
                    "Audit write failed (attempt %d/%d) for %s",
                    attempt, self.retry_attempts, event.action,
                    exc_info=True,
                    extra={"actor_id": event.actor_id, "action": event.action},
                )

        if row is None:
            logger.error(
                "Audit event dropped: %s on %s/%s by %s",
                event.action, event.resource, event.resource_id, event.actor_id,
                extra={"actor_id": event.actor_id, "action": event.action},
            )
            return None

        self._score(row)
        return row

    def _write(self, event: AuditEventCreate, severity: Severity) -> AuditEvent:
        with self.session_factory() as db:
            row = AuditEvent(
                timestamp=utcnow(),
                actor_id=event.actor_id,
                actor_role=event.actor_role,
                action=event.action,
                resource=event.resource,
                resource_id=event.resource_id,
                outcome=event.outcome,
                severity=severity,
                amount=event.amount,
                details=event.details,
                ip_address=event.ip_address,
                session_id=event.session_id,
            )
            db.add(row)
            db.commit()
            return row

    def record_for(
        self,
        actor: Actor,
        action: str,
        resource: str,
        resource_id=None,
        *,
        outcome: AuditOutcome = AuditOutcome.SUCCESS,
        amount: Decimal | None = None,
        details: dict | None = None,
    ) -> AuditEvent | None:
        """Shorthand for recording an event on behalf of an actor."""
        return self.record(AuditEventCreate(
            actor_id=actor.identity_id,
            actor_role=actor.role,
            action=action,
            resource=resource,
            resource_id=None if resource_id is None else str(resource_id),
            outcome=outcome,
            amount=amount,
            details=details or {},
            ip_address=actor.ip_address,
            session_id=actor.session_id,
        ))

    def record_login(
        self,
        identity_id: str,
        success: bool,
        ip_address: str | None = None,
        role: Role = Role.CLIENT,
    ) -> AuditEvent | None:
        """Log a login attempt reported by the identity provider."""
        return self.record(AuditEventCreate(
            actor_id=identity_id,
            actor_role=role,
            action=LOGIN_ACTION,
            resource="session",
            outcome=AuditOutcome.SUCCESS if success else AuditOutcome.FAILURE,
            ip_address=ip_address,
        ))

    # --- Scoring ---

    def _score(self, row: AuditEvent) -> None:
        if not self.strategies:
            return
        try:
            with self.session_factory() as db:
                history = self._recent_history(db, row)
                findings: list[Finding] = []
                for strategy in self.strategies:
                    findings.extend(strategy(row, history))
                for finding in findings:
                    self._raise(db, finding, row.actor_id, row.ip_address)
                db.commit()
        except Exception:
            logger.exception("Security scoring failed for audit event %s", row.id)

    def _recent_history(self, db: Session, row: AuditEvent) -> list[AuditEvent]:
        events = db.execute(
            select(AuditEvent).where(
                AuditEvent.actor_id == row.actor_id,
                AuditEvent.timestamp >= row.timestamp - HISTORY_WINDOW,
                AuditEvent.id < row.id,
            ).order_by(AuditEvent.id)
        ).scalars().all()
        return list(events)

    def _raise(
        self,
        db: Session,
        finding: Finding,
        identity_id: str | None,
        ip_address: str | None,
    ) -> SecurityEvent:
        event = SecurityEvent(
            timestamp=utcnow(),
            event_type=finding.event_type,
            identity_id=identity_id,
            ip_address=ip_address,
            details=finding.details,
            risk_score=risk_score_for(finding.event_type, finding.details),
            resolved=False,
        )
        db.add(event)
        db.flush()
        logger.info(
            "Security event %s raised for %s (score %d)",
            event.event_type.value, identity_id, event.risk_score,
            extra={"actor_id": identity_id},
        )

        if event.risk_score > HIGH_RISK_SCORE:
            logger.warning(
                "High-risk security event %s for %s: %s",
                event.event_type.value, identity_id, event.details,
                extra={"actor_id": identity_id},
            )
            attempts = int(finding.details.get("attempt_count", 0))
            if (
                finding.event_type == SecurityEventType.FAILED_LOGIN
                and attempts >= LOCKOUT_ATTEMPTS
            ):
                self._raise(
                    db,
                    Finding(
                        SecurityEventType.ACCOUNT_LOCKED,
                        {
                            "reason": "Too many failed login attempts",
                            "attempt_count": attempts,
                        },
                    ),
                    identity_id,
                    ip_address,
                )
        return event

    # --- Queries ---

    def query(
        self,
        actor: Actor,
        filters: AuditQuery | None = None,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Matching events, newest first."""
        require_privileged(actor, "read the audit log")
        filters = filters or AuditQuery()

        stmt = select(AuditEvent)
        if filters.actor_id:
            stmt = stmt.where(AuditEvent.actor_id == filters.actor_id)
        if filters.action:
            stmt = stmt.where(AuditEvent.action.contains(filters.action))
        if filters.resource:
            stmt = stmt.where(AuditEvent.resource == filters.resource)
        if filters.severity:
            stmt = stmt.where(AuditEvent.severity == filters.severity)
        if filters.outcome:
            stmt = stmt.where(AuditEvent.outcome == filters.outcome)
        if filters.start:
            stmt = stmt.where(AuditEvent.timestamp >= filters.start)
        if filters.end:
            stmt = stmt.where(AuditEvent.timestamp <= filters.end)

        stmt = stmt.order_by(
            AuditEvent.timestamp.desc(), AuditEvent.id.desc()
        ).limit(limit)

        with self.session_factory() as db:
            return list(db.execute(stmt).scalars().all())

    def export_rows(
        self,
        actor: Actor,
        filters: AuditQuery | None = None,
        limit: int = 1000,
    ) -> list[dict]:
        """Query results flattened to AUDIT_EXPORT_FIELDS for export tools."""
        rows = []
        for event in self.query(actor, filters, limit):
            rows.append(dict(zip(AUDIT_EXPORT_FIELDS, (
                event.timestamp.isoformat(),
                event.actor_id,
                event.action,
                event.resource,
                event.resource_id or "",
                event.severity.value,
                event.outcome.value,
                "" if event.amount is None else str(event.amount),
            ))))
        return rows

    def security_events(
        self,
        actor: Actor,
        resolved: bool | None = None,
        event_type: SecurityEventType | None = None,
    ) -> list[SecurityEvent]:
        require_privileged(actor, "read security events")
        stmt = select(SecurityEvent)
        if resolved is not None:
            stmt = stmt.where(SecurityEvent.resolved == resolved)
        if event_type is not None:
            stmt = stmt.where(SecurityEvent.event_type == event_type)
        stmt = stmt.order_by(
            SecurityEvent.timestamp.desc(), SecurityEvent.id.desc()
        )
        with self.session_factory() as db:
            return list(db.execute(stmt).scalars().all())

    def resolve_security_event(self, event_id: int, actor: Actor) -> SecurityEvent:
        require_privileged(actor, "resolve security events")
        with self.session_factory() as db:
            event = db.get(SecurityEvent, event_id)
            if not event:
                raise RecordNotFound(f"Security event {event_id} not found")
            if event.resolved:
                raise InvalidOperation(f"Security event {event_id} is already resolved")
            event.resolved = True
            event.resolved_by = actor.identity_id
            event.resolved_at = utcnow()
            db.commit()

        self.record_for(
            actor, "security_event.resolve", "security_event", event_id,
            details={"event_type": event.event_type.value},
        )
        return event
