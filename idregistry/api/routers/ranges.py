from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from idregistry.api.deps.request_identity import get_request_identity
from idregistry.api.errors import raise_registry_error
from idregistry.core.errors import RegistryError
from idregistry.db.session import get_db
from idregistry.schemas.ranges import (
    RangeCreate,
    RangeResponse,
    SubrangeCreate,
    SubrangeOption,
    SubrangeResponse,
)
from idregistry.schemas.request_identity import RequestIdentity
from idregistry.services.range_service import RangeService

router = APIRouter(
    prefix="/api/v1/ranges/{identifier_type}",
    tags=["ISBN/ISMN Ranges"],
)


def _service(identifier_type: str, db: Session) -> RangeService:
    try:
        return RangeService(db, identifier_type)
    except RegistryError as exc:
        raise_registry_error(db, exc)


@router.get("", response_model=list[RangeResponse])
def list_ranges(identifier_type: str, db: Session = Depends(get_db)):
    return _service(identifier_type, db).read_all()


@router.get("/{range_id}", response_model=RangeResponse)
def read_range(identifier_type: str, range_id: int, db: Session = Depends(get_db)):
    try:
        return _service(identifier_type, db).read(range_id)
    except RegistryError as exc:
        raise_registry_error(db, exc)


@router.post("", response_model=RangeResponse, status_code=status.HTTP_201_CREATED)
def create_range(
    identifier_type: str,
    payload: RangeCreate,
    db: Session = Depends(get_db),
    identity: RequestIdentity = Depends(get_request_identity),
):
    try:
        return _service(identifier_type, db).create(payload, identity)
    except RegistryError as exc:
        raise_registry_error(db, exc)


@router.delete("/{range_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_range(
    identifier_type: str,
    range_id: int,
    db: Session = Depends(get_db),
    identity: RequestIdentity = Depends(get_request_identity),
):
    try:
        _service(identifier_type, db).remove(range_id, identity)
    except RegistryError as exc:
        raise_registry_error(db, exc)
    return None


@router.post(
    "/{range_id}/subranges",
    response_model=SubrangeResponse,
    status_code=status.HTTP_201_CREATED,
)
def generate_subrange(
    identifier_type: str,
    range_id: int,
    payload: SubrangeCreate,
    db: Session = Depends(get_db),
    identity: RequestIdentity = Depends(get_request_identity),
):
    try:
        return _service(identifier_type, db).generate_subrange(
            range_id, payload.publisher_id, payload.selection, identity
        )
    except RegistryError as exc:
        raise_registry_error(db, exc)


@router.get("/{range_id}/subrange-options", response_model=list[SubrangeOption])
def subrange_options(identifier_type: str, range_id: int, db: Session = Depends(get_db)):
    try:
        return _service(identifier_type, db).subrange_options(range_id)
    except RegistryError as exc:
        raise_registry_error(db, exc)


@router.post("/{range_id}/{transition}", response_model=RangeResponse)
def transition_range(
    identifier_type: str,
    range_id: int,
    transition: str,
    db: Session = Depends(get_db),
    identity: RequestIdentity = Depends(get_request_identity),
):
    """Drive the range state machine: activate, deactivate, open or close."""
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
            raise RegistryError.not_found(f"Unknown range transition: {transition}")
        return handler(range_id, identity)
    except RegistryError as exc:
        raise_registry_error(db, exc)
