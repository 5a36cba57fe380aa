from __future__ import annotations

from fastapi import APIRouter, Depends, status
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from idregistry.api.deps.request_identity import get_request_identity
from idregistry.api.errors import raise_registry_error
from idregistry.core.errors import RegistryError
from idregistry.db.session import get_db
from idregistry.schemas.identifiers import BatchQuery, BatchQueryResult
from idregistry.schemas.request_identity import RequestIdentity
from idregistry.services.identifier_batch_service import IdentifierBatchService

router = APIRouter(prefix="/api/v1/identifier-batches", tags=["Identifier Batches"])


@router.post("/query", response_model=BatchQueryResult)
def query_batches(payload: BatchQuery, db: Session = Depends(get_db)):
    try:
        return IdentifierBatchService(db).query(payload)
    except RegistryError as exc:
        raise_registry_error(db, exc)


@router.get("/{batch_id}")
def read_batch(
    batch_id: int,
    db: Session = Depends(get_db),
    identity: RequestIdentity = Depends(get_request_identity),
):
    try:
        return IdentifierBatchService(db).read(batch_id, identity)
    except RegistryError as exc:
        raise_registry_error(db, exc)


@router.get("/{batch_id}/download", response_class=PlainTextResponse)
def download_batch(batch_id: int, db: Session = Depends(get_db)):
    try:
        result = IdentifierBatchService(db).download(batch_id)
    except RegistryError as exc:
        raise_registry_error(db, exc)
    return PlainTextResponse(
        content=result["body"],
        headers={
            "Content-Disposition": f'attachment; filename="identifiers_{batch_id}.txt"',
            "X-Content-SHA256": result["sha256sum"],
        },
    )


@router.delete("/{batch_id}", status_code=status.HTTP_204_NO_CONTENT)
def safe_remove_batch(
    batch_id: int,
    db: Session = Depends(get_db),
    identity: RequestIdentity = Depends(get_request_identity),
):
    try:
        IdentifierBatchService(db).safe_remove(batch_id, identity)
    except RegistryError as exc:
        raise_registry_error(db, exc)
    return None
