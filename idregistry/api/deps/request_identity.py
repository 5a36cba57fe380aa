from __future__ import annotations

from fastapi import Request

from idregistry.core.constants import SYSTEM_ACTOR
from idregistry.schemas.request_identity import RequestIdentity


def _role_names_from_header(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [token.strip().upper() for token in raw.split(",") if token.strip()]


def resolve_request_identity(request: Request) -> RequestIdentity:
    email = request.headers.get("X-User-Email") or request.headers.get("X-User") or SYSTEM_ACTOR
    return RequestIdentity(
        email=(email or "").strip().lower() or None,
        auth_source="legacy_header",
        role_names=_role_names_from_header(request.headers.get("X-User-Roles")),
    )


def get_request_identity(request: Request) -> RequestIdentity:
    return resolve_request_identity(request)
