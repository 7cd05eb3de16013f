"""
Shared FastAPI dependencies.

The gateway in front of this service authenticates callers and
forwards the identity in X-Identity-Id / X-Identity-Role. The core
trusts those headers; it only authorizes.
"""

from fastapi import Header, HTTPException, Request

from ledger_core.core import LedgerCore
from ledger_core.models.enums import Role
from ledger_core.schemas.identity import Actor


def get_core(request: Request) -> LedgerCore:
    return request.app.state.core


def get_actor(
    request: Request,
    x_identity_id: str | None = Header(default=None),
    x_identity_role: Role = Header(default=Role.CLIENT),
    x_session_id: str | None = Header(default=None),
) -> Actor:
    """The acting identity for this request; 401 without one."""
    if not x_identity_id:
        raise HTTPException(status_code=401, detail="Missing X-Identity-Id header")
    return Actor(
        identity_id=x_identity_id,
        role=x_identity_role,
        ip_address=request.client.host if request.client else None,
        session_id=x_session_id,
    )

