from __future__ import annotations

from fastapi import HTTPException
from sqlalchemy.orm import Session

from idregistry.core.errors import RegistryError


def raise_registry_error(db: Session, exc: RegistryError) -> None:
    db.rollback()
    raise HTTPException(status_code=exc.status_code, detail=exc.to_detail()) from exc
