"""
The acting identity passed into every core call.

The identity provider authenticates the caller; the core trusts the
identity and role it is given and only performs authorization.
"""

from pydantic import BaseModel, Field

from ledger_core.models.enums import Role


class Actor(BaseModel):
    identity_id: str = Field(min_length=1, max_length=100)
    role: Role = Role.CLIENT
    ip_address: str | None = None
    session_id: str | None = None

    model_config = {"frozen": True}

    @property
    def is_privileged(self) -> bool:
        return self.role in (Role.ADMIN, Role.SYSTEM)

    def can_act_for(self, owner_id: str) -> bool:
        """Clients act on their own records; admins and the system on any."""
        return self.is_privileged or self.identity_id == owner_id


SYSTEM_ACTOR = Actor(identity_id="system", role=Role.SYSTEM)
