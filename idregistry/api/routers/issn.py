from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from idregistry.api.deps.request_identity import get_request_identity
from idregistry.api.errors import raise_registry_error
from idregistry.core.errors import RegistryError
from idregistry.db.session import get_db
from idregistry.schemas.issn import IssnAssignment
from idregistry.schemas.ranges import IssnRangeCreate, IssnRangeResponse
from idregistry.schemas.request_identity import RequestIdentity
from idregistry.services.issn_range_service import IssnRangeService
from idregistry.services.issn_service import IssnService

router = APIRouter(prefix="/api/v1/issn", tags=["ISSN"])


@router.get("/ranges", response_model=list[IssnRangeResponse])
def list_issn_ranges(db: Session = Depends(get_db)):
    return IssnRangeService(db).read_all()


@router.get("/ranges/{range_id}", response_model=IssnRangeResponse)
def read_issn_range(range_id: int, db: Session = Depends(get_db)):
    try:
        return IssnRangeService(db).read(range_id)
    except RegistryError as exc:
        raise_registry_error(db, exc)


@router.post("/ranges", response_model=IssnRangeResponse, status_code=status.HTTP_201_CREATED)
def create_issn_range(
    payload: IssnRangeCreate,
    db: Session = Depends(get_db),
    identity: RequestIdentity = Depends(get_request_identity),
):
    try:
        return IssnRangeService(db).create(payload, identity)
    except RegistryError as exc:
        raise_registry_error(db, exc)


@router.delete("/ranges/{range_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_issn_range(
    range_id: int,
    db: Session = Depends(get_db),
    identity: RequestIdentity = Depends(get_request_identity),
):
    try:
        IssnRangeService(db).remove(range_id, identity)
    except RegistryError as exc:
        raise_registry_error(db, exc)
    return None


@router.post("/ranges/{range_id}/{transition}", response_model=IssnRangeResponse)
def transition_issn_range(
    range_id: int,
    transition: str,
    db: Session = Depends(get_db),
    identity: RequestIdentity = Depends(get_request_identity),
):
    service = IssnRangeService(db)
    handlers = {
        "activate": service.activate,
        "deactivate": service.deactivate,
        "open": service.open,
        "close": service.close,
    }
    try:
        handler = handlers.get(transition)
        if handler is None:
            raise RegistryError.not_found(f"Unknown ISSN range transition: {transition}")
        return handler(range_id, identity)
    except RegistryError as exc:
        raise_registry_error(db, exc)


@router.post("/publications/{publication_id}/issn", response_model=IssnAssignment)
def assign_issn(
    publication_id: int,
    db: Session = Depends(get_db),
    identity: RequestIdentity = Depends(get_request_identity),
):
    try:
        return IssnService(db).get_issn(publication_id, identity)
    except RegistryError as exc:
        raise_registry_error(db, exc)


@router.delete("/publications/{publication_id}/issn", response_model=IssnAssignment)
def release_issn(
    publication_id: int,
    db: Session = Depends(get_db),
    identity: RequestIdentity = Depends(get_request_identity),
):
    try:
        return IssnService(db).delete_issn(publication_id, identity)
    except RegistryError as exc:
        raise_registry_error(db, exc)
