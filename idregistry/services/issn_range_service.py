from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from idregistry.core.constants import IdentifierType
from idregistry.core.errors import RegistryError
from idregistry.db.transaction import Transaction, transaction_scope
from idregistry.models.issn import IssnCanceled, IssnRange, IssnUsed
from idregistry.schemas.ranges import IssnRangeCreate
from idregistry.schemas.request_identity import RequestIdentity
from idregistry.services.checksum import issn_check_digit
from idregistry.services.range_overlap import normalize, overlaps_existing

logger = logging.getLogger(__name__)


def deactivate_other_issn_ranges(db: Session, keep_id: int | None, user: RequestIdentity) -> None:
    """Only one ISSN block issues at a time."""
    query = db.query(IssnRange).filter(IssnRange.is_active.is_(True))
    if keep_id is not None:
        query = query.filter(IssnRange.id != keep_id)
    for row in query.with_for_update().all():
        row.is_active = False
        row.modified_by = user.actor


class IssnRangeService:
    def __init__(self, db: Session):
        self.db = db

    def _get_range(self, range_id: int, *, for_update: bool = False) -> IssnRange:
        query = self.db.query(IssnRange).filter(IssnRange.id == int(range_id))
        if for_update:
            query = query.with_for_update()
        row = query.first()
        if row is None:
            raise RegistryError.not_found("ISSN range was not found.")
        return row

    def read(self, range_id: int) -> IssnRange:
        return self._get_range(range_id)

    def read_all(self) -> list[IssnRange]:
        return self.db.query(IssnRange).order_by(IssnRange.id.asc()).all()

    def create(self, payload: IssnRangeCreate, user: RequestIdentity, tx: Transaction | None = None) -> IssnRange:
        if not (payload.block.isdigit() and payload.range_begin.isdigit() and payload.range_end.isdigit()):
            raise RegistryError.unprocessable("ISSN block and range bounds must be decimal digits.")
        if int(payload.range_end) < int(payload.range_begin):
            raise RegistryError.unprocessable("ISSN range end cannot be smaller than range begin.")

        with transaction_scope(self.db, tx, name="issn_range_create"):
            candidate = normalize(
                IdentifierType.ISSN, (payload.block,), payload.range_begin, payload.range_end
            )
            existing = [
                normalize(IdentifierType.ISSN, (row.block,), row.range_begin, row.range_end)
                for row in self.db.query(IssnRange).all()
            ]
            if overlaps_existing(candidate, existing):
                raise RegistryError.conflict("Cannot create range: New range would overlap existing range.")

            range_begin = f"{payload.range_begin}{issn_check_digit(payload.block + payload.range_begin)}"
            range_end = f"{payload.range_end}{issn_check_digit(payload.block + payload.range_end)}"

            if payload.is_active:
                deactivate_other_issn_ranges(self.db, None, user)

            row = IssnRange(
                block=payload.block,
                range_begin=range_begin,
                range_end=range_end,
                next=range_begin,
                free=int(payload.range_end) - int(payload.range_begin) + 1,
                taken=0,
                canceled=0,
                is_active=payload.is_active,
                is_closed=False,
                created_by=user.actor,
                modified_by=user.actor,
            )
            self.db.add(row)
            self.db.flush()
            logger.info(
                "issn_range_created id=%s block=%s begin=%s end=%s active=%s",
                row.id,
                row.block,
                row.range_begin,
                row.range_end,
                row.is_active,
            )
        return row

    def remove(self, range_id: int, user: RequestIdentity, tx: Transaction | None = None) -> bool:
        with transaction_scope(self.db, tx, name="issn_range_remove"):
            row = self._get_range(range_id, for_update=True)
            if row.next != row.range_begin:
                raise RegistryError.conflict("Cannot delete range that has identifiers given from.")
            used = self.db.query(IssnUsed.id).filter(IssnUsed.issn_range_id == row.id).count()
            canceled = self.db.query(IssnCanceled.id).filter(IssnCanceled.issn_range_id == row.id).count()
            if used or canceled:
                raise RegistryError.conflict(
                    "Cannot delete range that has associations to either used or canceled identifiers."
                )
            self.db.delete(row)
            self.db.flush()
            logger.info("issn_range_removed id=%s by=%s", range_id, user.actor)
        return True

    def _pooled(self, row: IssnRange) -> int:
        return self.db.query(IssnCanceled.id).filter(IssnCanceled.issn_range_id == row.id).count()

    def open(self, range_id: int, user: RequestIdentity, tx: Transaction | None = None) -> IssnRange:
        with transaction_scope(self.db, tx, name="issn_range_open"):
            row = self._get_range(range_id, for_update=True)
            if not row.is_closed:
                raise RegistryError.conflict("Cannot open range that is already open.")
            if row.free == 0 and self._pooled(row) == 0:
                raise RegistryError.conflict("Cannot open range that has not got any available identifiers.")
            row.is_closed = False
            row.modified_by = user.actor
            self.db.flush()
        return row

    def close(self, range_id: int, user: RequestIdentity, tx: Transaction | None = None) -> IssnRange:
        with transaction_scope(self.db, tx, name="issn_range_close"):
            row = self._get_range(range_id, for_update=True)
            if row.is_closed:
                raise RegistryError.conflict("Cannot close range that is already closed.")
            row.is_closed = True
            row.is_active = False
            row.modified_by = user.actor
            self.db.flush()
        return row

    def activate(self, range_id: int, user: RequestIdentity, tx: Transaction | None = None) -> IssnRange:
        with transaction_scope(self.db, tx, name="issn_range_activate"):
            row = self._get_range(range_id, for_update=True)
            if row.is_closed:
                raise RegistryError.conflict("Cannot activate range that is closed.")
            if row.is_active:
                raise RegistryError.conflict("Cannot activate range that is already active.")
            if row.free == 0 and self._pooled(row) == 0:
                raise RegistryError.conflict(
                    "Cannot activate range that has not got any available identifiers."
                )
            deactivate_other_issn_ranges(self.db, row.id, user)
            row.is_active = True
            row.modified_by = user.actor
            self.db.flush()
        return row

    def deactivate(self, range_id: int, user: RequestIdentity, tx: Transaction | None = None) -> IssnRange:
        with transaction_scope(self.db, tx, name="issn_range_deactivate"):
            row = self._get_range(range_id, for_update=True)
            if not row.is_active:
                raise RegistryError.conflict("Cannot deactivate range that is already deactivated.")
            row.is_active = False
            row.modified_by = user.actor
            self.db.flush()
        return row
