"""
Authorization checks shared by the services.

Identities arrive already authenticated; these checks only decide
whether the given role may perform the operation.
"""

from ledger_core.errors import PermissionDenied
from ledger_core.schemas.identity import Actor


def require_privileged(actor: Actor, action: str) -> None:
    """Administrative operations need the ADMIN or SYSTEM role."""
    if not actor.is_privileged:
        raise PermissionDenied(
            f"{actor.identity_id} ({actor.role.value}) may not {action}"
        )


def require_access(actor: Actor, owner_id: str, resource: str) -> None:
    if not actor.can_act_for(owner_id):
        raise PermissionDenied(
            f"{actor.identity_id} may not access {resource}"
        )
