from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from idregistry.api.deps.request_identity import get_request_identity
from idregistry.api.errors import raise_registry_error
from idregistry.core.errors import RegistryError
from idregistry.db.session import get_db
from idregistry.schemas.identifiers import IdentifierRetire
from idregistry.schemas.request_identity import RequestIdentity
from idregistry.services.identifier_service import IdentifierService

router = APIRouter(prefix="/api/v1/identifiers", tags=["Identifiers"])


@router.post("/cancel")
def cancel_identifier(
    payload: IdentifierRetire,
    db: Session = Depends(get_db),
    identity: RequestIdentity = Depends(get_request_identity),
):
    """Retire an identifier into its sub-range's reusable pool."""
    try:
        IdentifierService(db).cancel(payload.identifier, identity)
    except RegistryError as exc:
        raise_registry_error(db, exc)
    return {"identifier": payload.identifier, "canceled": True}


@router.post("/remove")
def remove_identifier(
    payload: IdentifierRetire,
    db: Session = Depends(get_db),
    identity: RequestIdentity = Depends(get_request_identity),
):
    """Retire an identifier permanently."""
    try:
        IdentifierService(db).remove(payload.identifier, identity)
    except RegistryError as exc:
        raise_registry_error(db, exc)
    return {"identifier": payload.identifier, "removed": True}
