from __future__ import annotations

from pydantic import BaseModel, Field

from idregistry.core.constants import ADMIN_ROLE, SYSTEM_ACTOR


class RequestIdentity(BaseModel):
    email: str | None = None
    auth_source: str = "anonymous"
    role_names: list[str] = Field(default_factory=list)

    @property
    def actor(self) -> str:
        return (self.email or "").strip().lower() or SYSTEM_ACTOR

    @property
    def is_admin(self) -> bool:
        roles = {(role or "").strip().upper() for role in self.role_names}
        return ADMIN_ROLE in roles or "SYSTEM" in roles


SYSTEM_IDENTITY = RequestIdentity(email=SYSTEM_ACTOR, auth_source="system", role_names=["SYSTEM"])
