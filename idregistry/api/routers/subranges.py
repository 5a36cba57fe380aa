from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from idregistry.api.deps.request_identity import get_request_identity
from idregistry.api.errors import raise_registry_error
from idregistry.core.errors import RegistryError
from idregistry.db.session import get_db
from idregistry.schemas.identifiers import IdentifierBatchGenerate, IdentifierBatchResponse
from idregistry.schemas.ranges import SubrangeResponse
from idregistry.schemas.request_identity import RequestIdentity
from idregistry.services.subrange_service import SubrangeService

router = APIRouter(
    prefix="/api/v1/subranges/{identifier_type}",
    tags=["ISBN/ISMN Publisher Ranges"],
)


def _service(identifier_type: str, db: Session) -> SubrangeService:
    try:
        return SubrangeService(db, identifier_type)
    except RegistryError as exc:
        raise_registry_error(db, exc)


@router.get("", response_model=list[SubrangeResponse])
def list_publisher_subranges(identifier_type: str, publisher_id: int, db: Session = Depends(get_db)):
    return _service(identifier_type, db).list_for_publisher(publisher_id)


@router.post(
    "/batches",
    response_model=IdentifierBatchResponse,
    status_code=status.HTTP_201_CREATED,
)
def generate_identifier_batch(
    identifier_type: str,
    payload: IdentifierBatchGenerate,
    db: Session = Depends(get_db),
    identity: RequestIdentity = Depends(get_request_identity),
):
    try:
        return _service(identifier_type, db).generate_identifier_batch(
            payload.publisher_id,
            identity,
            count=payload.count,
            publication_id=payload.publication_id,
        )
    except RegistryError as exc:
        raise_registry_error(db, exc)


@router.get("/{subrange_id}", response_model=SubrangeResponse)
def read_subrange(identifier_type: str, subrange_id: int, db: Session = Depends(get_db)):
    try:
        return _service(identifier_type, db).read(subrange_id)
    except RegistryError as exc:
        raise_registry_error(db, exc)


@router.delete("/{subrange_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_subrange(
    identifier_type: str,
    subrange_id: int,
    db: Session = Depends(get_db),
    identity: RequestIdentity = Depends(get_request_identity),
):
    try:
        _service(identifier_type, db).remove(subrange_id, identity)
    except RegistryError as exc:
        raise_registry_error(db, exc)
    return None


@router.post("/{subrange_id}/{transition}", response_model=SubrangeResponse)
def transition_subrange(
    identifier_type: str,
    subrange_id: int,
    transition: str,
    db: Session = Depends(get_db),
    identity: RequestIdentity = Depends(get_request_identity),
):
    service = _service(identifier_type, db)
    handlers = {
        "activate": service.activate,
        "deactivate": service.deactivate,
        "open": service.open,
        "close": service.close,
    }
    try:
        handler = handlers.get(transition)
        if handler is None:
            raise RegistryError.not_found(f"Unknown subrange transition: {transition}")
        return handler(subrange_id, identity)
    except RegistryError as exc:
        raise_registry_error(db, exc)
