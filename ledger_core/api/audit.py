"""
Audit log and security event endpoints.

Read access is admin only. Export rows use the stable field names
in AUDIT_EXPORT_FIELDS so reporting tools can rely on them.
"""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query

from ledger_core.api.deps import get_actor, get_core
from ledger_core.core import LedgerCore
from ledger_core.errors import LedgerError
from ledger_core.models.enums import AuditOutcome, SecurityEventType, Severity
from ledger_core.schemas.audit import (
    AuditEventResponse,
    AuditQuery,
    LoginAttempt,
    SecurityEventResponse,
)
from ledger_core.schemas.identity import Actor
from ledger_core.services.authorization import require_privileged

router = APIRouter(prefix="/audit", tags=["Audit"])


def audit_filters(
    actor_id: str | None = None,
    action: str | None = None,
    resource: str | None = None,
    severity: Severity | None = None,
    outcome: AuditOutcome | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> AuditQuery:
    return AuditQuery(
        actor_id=actor_id,
        action=action,
        resource=resource,
        severity=severity,
        outcome=outcome,
        start=start,
        end=end,
    )


@router.get("/events", response_model=list[AuditEventResponse])
def query_events(
    filters: AuditQuery = Depends(audit_filters),
    limit: int = Query(default=100, ge=1, le=1000),
    core: LedgerCore = Depends(get_core),
    actor: Actor = Depends(get_actor),
):
    """Audit events, newest first."""
    try:
        return core.audit.query(actor, filters, limit)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/export")
def export_events(
    filters: AuditQuery = Depends(audit_filters),
    limit: int = Query(default=1000, ge=1, le=10000),
    core: LedgerCore = Depends(get_core),
    actor: Actor = Depends(get_actor),
):
    try:
        return core.audit.export_rows(actor, filters, limit)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post("/logins", status_code=202)
def record_login(
    request: LoginAttempt,
    core: LedgerCore = Depends(get_core),
    actor: Actor = Depends(get_actor),
):
    """Accept a login outcome from the identity provider."""
    try:
        require_privileged(actor, "report login attempts")
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    event = core.audit.record_login(
        request.identity_id, request.success, request.ip_address, request.role
    )
    return {"recorded": event is not None}


@router.get("/security-events", response_model=list[SecurityEventResponse])
def list_security_events(
    resolved: bool | None = None,
    event_type: SecurityEventType | None = None,
    core: LedgerCore = Depends(get_core),
    actor: Actor = Depends(get_actor),
):
    try:
        return core.audit.security_events(actor, resolved, event_type)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post(
    "/security-events/{event_id}/resolve",
    response_model=SecurityEventResponse,
)
def resolve_security_event(
    event_id: int,
    core: LedgerCore = Depends(get_core),
    actor: Actor = Depends(get_actor),
):
    try:
        return core.audit.resolve_security_event(event_id, actor)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
