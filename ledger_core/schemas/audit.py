"""
Pydantic schemas for audit events, security events, and tombstones.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

from ledger_core.models.enums import (
    AuditOutcome,
    Role,
    SecurityEventType,
    Severity,
)


# Stable column order for audit exports
AUDIT_EXPORT_FIELDS = (
    "timestamp",
    "actor",
    "action",
    "resource",
    "resource_id",
    "severity",
    "status",
    "amount",
)


class AuditEventCreate(BaseModel):
    """
    An event to append to the audit log.

    Severity is derived from the action and outcome when not given.
    """
    actor_id: str
    actor_role: Role
    action: str = Field(min_length=1, max_length=100)
    resource: str = Field(min_length=1, max_length=50)
    resource_id: str | None = None
    outcome: AuditOutcome = AuditOutcome.SUCCESS
    severity: Severity | None = None
    amount: Decimal | None = None
    details: dict[str, Any] = Field(default_factory=dict)
    ip_address: str | None = None
    session_id: str | None = None


class AuditQuery(BaseModel):
    actor_id: str | None = None
    action: str | None = None
    resource: str | None = None
    severity: Severity | None = None
    outcome: AuditOutcome | None = None
    start: datetime | None = None
    end: datetime | None = None


class AuditEventResponse(BaseModel):
    id: int
    timestamp: datetime
    actor_id: str
    actor_role: Role
    action: str
    resource: str
    resource_id: str | None
    outcome: AuditOutcome
    severity: Severity
    amount: Decimal | None
    details: dict[str, Any]
    ip_address: str | None
    session_id: str | None

    model_config = {"from_attributes": True}


class SecurityEventResponse(BaseModel):
    id: int
    timestamp: datetime
    event_type: SecurityEventType
    identity_id: str | None
    ip_address: str | None
    details: dict[str, Any]
    risk_score: int
    resolved: bool
    resolved_by: str | None
    resolved_at: datetime | None

    model_config = {"from_attributes": True}


class SoftDeleteRequest(BaseModel):
    table_name: str = Field(min_length=1, max_length=50)
    record_id: str = Field(min_length=1, max_length=100)
    reason: str = Field(min_length=1, max_length=255)


class TombstoneResponse(BaseModel):
    id: int
    table_name: str
    record_id: str
    deleted_by: str
    reason: str
    snapshot: dict[str, Any]
    can_restore: bool
    deleted_at: datetime
    restored_by: str | None
    restored_at: datetime | None

    model_config = {"from_attributes": True}


class LoginAttempt(BaseModel):
    """A login outcome reported by the identity provider."""
    identity_id: str = Field(min_length=1, max_length=100)
    success: bool
    ip_address: str | None = None
    role: Role = Role.CLIENT
