"""
Advisory risk scoring.

A scoring strategy is a plain function from an audit event and the
acting identity's recent history to a list of findings. Findings become
security events for a human to triage; nothing here can block or undo
a transaction. Strategies are swapped by passing a different list to
the AuditRecorder.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal

from ledger_core.models.audit_event import AuditEvent
from ledger_core.models.enums import AuditOutcome, SecurityEventType


# Rolling window the strategies look back over
HISTORY_WINDOW = timedelta(hours=1)

LOGIN_ACTION = "login_attempt"


@dataclass
class Finding:
    event_type: SecurityEventType
    details: dict = field(default_factory=dict)


ScoringStrategy = Callable[[AuditEvent, list[AuditEvent]], list[Finding]]


@dataclass
class RiskAssessment:
    risk_score: int
    risk_level: str
    flags: list[str]
    requires_review: bool


def assess_transaction_risk(
    amount: Decimal,
    at: datetime,
    large_amount: Decimal = Decimal("10000"),
) -> RiskAssessment:
    """Score a single transaction by size and time of day."""
    score = 0
    flags = []

    if amount > large_amount:
        score += 30
        flags.append("Large transaction amount")

    if at.hour < 6 or at.hour > 22:
        score += 20
        flags.append("Unusual transaction time")

    if score < 25:
        level = "low"
    elif score < 50:
        level = "medium"
    else:
        level = "high"

    return RiskAssessment(
        risk_score=score,
        risk_level=level,
        flags=flags,
        requires_review=level == "high",
    )


def risk_score_for(event_type: SecurityEventType, details: dict) -> int:
    if event_type == SecurityEventType.FAILED_LOGIN:
        return min(int(details.get("attempt_count", 1)) * 20, 100)
    if event_type == SecurityEventType.SUSPICIOUS_ACTIVITY:
        return 60
    if event_type == SecurityEventType.ACCOUNT_LOCKED:
        return 90
    return 30


def _is_failed_login(event: AuditEvent) -> bool:
    return event.action == LOGIN_ACTION and event.outcome == AuditOutcome.FAILURE


def failed_login_burst(threshold: int = 3) -> ScoringStrategy:
    """Flag once an identity reaches `threshold` failed logins in the window."""

    def strategy(event: AuditEvent, history: list[AuditEvent]) -> list[Finding]:
        if not _is_failed_login(event):
            return []
        attempts = 1 + sum(1 for past in history if _is_failed_login(past))
        if attempts < threshold:
            return []
        return [Finding(
            SecurityEventType.FAILED_LOGIN,
            {
                "identity_id": event.actor_id,
                "attempt_count": attempts,
                "ip_address": event.ip_address,
            },
        )]

    return strategy


def large_transaction(threshold: Decimal) -> ScoringStrategy:
    """Flag successful transactions above the alert threshold."""

    def strategy(event: AuditEvent, history: list[AuditEvent]) -> list[Finding]:
        if not event.action.startswith("transaction."):
            return []
        if event.outcome != AuditOutcome.SUCCESS or event.amount is None:
            return []
        amount = abs(Decimal(str(event.amount)))
        if amount <= threshold:
            return []
        assessment = assess_transaction_risk(amount, event.timestamp, threshold)
        return [Finding(
            SecurityEventType.SUSPICIOUS_ACTIVITY,
            {
                "reason": "Large transaction",
                "amount": str(amount),
                "entry_id": event.resource_id,
                "flags": assessment.flags,
                "risk_level": assessment.risk_level,
            },
        )]

    return strategy


def multiple_ip_addresses(max_ips: int = 3) -> ScoringStrategy:
    """Flag an identity seen from more than `max_ips` addresses in the window."""

    def strategy(event: AuditEvent, history: list[AuditEvent]) -> list[Finding]:
        if event.ip_address is None:
            return []
        addresses = {past.ip_address for past in history if past.ip_address}
        if event.ip_address in addresses:
            # Only a new address can push the count over the limit
            return []
        addresses.add(event.ip_address)
        if len(addresses) <= max_ips:
            return []
        return [Finding(
            SecurityEventType.SUSPICIOUS_ACTIVITY,
            {
                "reason": "Multiple IP addresses",
                "ip_count": len(addresses),
            },
        )]

    return strategy


def default_strategies(large_transaction_alert: Decimal) -> list[ScoringStrategy]:
    return [
        failed_login_burst(),
        large_transaction(large_transaction_alert),
        multiple_ip_addresses(),
    ]
