"""
Assignment and release of ISSN identifiers for ISSN publications.

ISSNs are issued straight from the single active IssnRange; there is no
publisher tier. Released ISSNs either roll the range back (when they were the
most recent one issued) or go to the global IssnCanceled pool, which is always
drained before a new ISSN is minted.
"""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from idregistry.core.constants import IssnFormStatus, IssnMedium, IssnPublicationStatus
from idregistry.core.errors import RegistryError
from idregistry.core.flow_logging import flow_info
from idregistry.db.transaction import Transaction, transaction_scope
from idregistry.models.issn import IssnCanceled, IssnForm, IssnRange, IssnUsed, PublicationIssn, PublisherIssn
from idregistry.schemas.request_identity import RequestIdentity
from idregistry.services.checksum import issn_check_digit, validate_issn
from idregistry.services.issn_range_service import deactivate_other_issn_ranges

logger = logging.getLogger(__name__)

_MEDIUMS = {medium.value for medium in IssnMedium}


def _base(tail: str) -> int:
    return int(tail[:3])


def _tail_for(block: str, base: int) -> str:
    digits = str(base).zfill(3)
    return f"{digits}{issn_check_digit(block + digits)}"


class IssnService:
    def __init__(self, db: Session):
        self.db = db

    def _get_publication(self, publication_id: int) -> PublicationIssn:
        publication = (
            self.db.query(PublicationIssn)
            .filter(PublicationIssn.id == int(publication_id))
            .with_for_update()
            .first()
        )
        if publication is None:
            raise RegistryError.not_found("ISSN publication was not found.")
        return publication

    def _get_form(self, form_id: int) -> IssnForm:
        form = self.db.query(IssnForm).filter(IssnForm.id == form_id).with_for_update().first()
        if form is None:
            raise RegistryError.not_found("ISSN form was not found.")
        return form

    def _get_range(self, range_id: int) -> IssnRange:
        row = self.db.query(IssnRange).filter(IssnRange.id == range_id).with_for_update().first()
        if row is None:
            raise RegistryError.conflict("Range of the ISSN identifier could not be found.")
        return row

    def get_issn(self, publication_id: int, user: RequestIdentity, tx: Transaction | None = None) -> PublicationIssn:
        with transaction_scope(self.db, tx, name="issn_assign"):
            active = (
                self.db.query(IssnRange)
                .filter(IssnRange.is_active.is_(True))
                .order_by(IssnRange.id.asc())
                .with_for_update()
                .first()
            )
            if active is None:
                raise RegistryError.conflict("Could not find active ISSN range.")

            publication = self._get_publication(publication_id)
            if self.db.get(PublisherIssn, publication.publisher_id) is None:
                raise RegistryError.not_found("Publisher of the ISSN publication was not found.")
            if publication.medium not in _MEDIUMS:
                raise RegistryError.conflict("Publication medium either does not exist or is invalid.")
            if publication.issn:
                raise RegistryError.conflict("Publication already has ISSN identifier.")
            if self.db.query(IssnUsed.id).filter(IssnUsed.publication_id == publication.id).count():
                raise RegistryError.conflict("Publication is already associated with an used ISSN identifier.")
            form = self._get_form(publication.form_id)

            canceled = (
                self.db.query(IssnCanceled)
                .order_by(IssnCanceled.id.asc())
                .with_for_update()
                .first()
            )
            if canceled is not None:
                issn, owner = self._reuse(canceled, user)
            else:
                issn, owner = self._mint(active, user)
            self._ensure_unused(issn)

            self.db.add(
                IssnUsed(
                    issn=issn,
                    issn_range_id=owner.id,
                    publication_id=publication.id,
                    created_by=user.actor,
                )
            )

            publication.issn = issn
            publication.status = IssnPublicationStatus.WAITING_FOR_CONTROL_COPY.value
            publication.modified_by = user.actor

            form.publication_count_issn += 1
            if form.publication_count == form.publication_count_issn:
                form.status = IssnFormStatus.NOT_NOTIFIED.value
            form.modified_by = user.actor
            self.db.flush()

            flow_info(
                logger,
                "issn_assigned issn=%s publication_id=%s range_id=%s reused=%s",
                issn,
                publication.id,
                owner.id,
                canceled is not None,
                category="allocation",
            )
        return publication

    def _ensure_unused(self, issn: str) -> None:
        if self.db.query(IssnUsed.id).filter(IssnUsed.issn == issn).first() is not None:
            raise RegistryError.conflict(f"ISSN {issn} has already been issued.")

    def _reuse(self, canceled: IssnCanceled, user: RequestIdentity) -> tuple[str, IssnRange]:
        if not validate_issn(canceled.issn):
            raise RegistryError.conflict(
                "Could not create valid ISSN due to canceled identifier being invalid."
            )
        owner = self._get_range(canceled.issn_range_id)
        if owner.canceled - 1 < 0:
            raise RegistryError.internal("ISSN range canceled counter would become negative.")
        owner.canceled -= 1
        owner.taken += 1
        owner.modified_by = user.actor
        issn = canceled.issn
        self.db.delete(canceled)
        return issn, owner

    def _mint(self, active: IssnRange, user: RequestIdentity) -> tuple[str, IssnRange]:
        if active.next == "":
            raise RegistryError.conflict(
                "ISSN range next value is empty: no more identifiers can be granted from this range."
            )
        next_base = _base(active.next)
        if next_base < _base(active.range_begin):
            raise RegistryError.conflict("ISSN range begin value is greater than the anticipated ISSN.")
        if next_base > _base(active.range_end):
            raise RegistryError.conflict("ISSN range end value is smaller than the anticipated ISSN.")

        issn = active.format_issn(active.next)
        if not validate_issn(issn):
            raise RegistryError.conflict("Could not create valid ISSN.")

        if active.next == active.range_end:
            active.next = ""
            active.is_active = False
            active.is_closed = True
        else:
            following = _tail_for(active.block, next_base + 1)
            if not validate_issn(active.format_issn(following)):
                raise RegistryError.conflict("Could not calculate valid next value for the ISSN range.")
            active.next = following
        active.free -= 1
        active.taken += 1
        if active.free < 0:
            raise RegistryError.internal("ISSN range free counter would become negative.")
        active.modified_by = user.actor
        return issn, active

    def _is_latest_issued(self, row: IssnRange, issn: str) -> bool:
        tail = issn.split("-")[1]
        if row.next == "":
            return tail == row.range_end
        return _base(tail) == _base(row.next) - 1

    def delete_issn(self, publication_id: int, user: RequestIdentity, tx: Transaction | None = None) -> PublicationIssn:
        with transaction_scope(self.db, tx, name="issn_release"):
            publication = self._get_publication(publication_id)
            form = self._get_form(publication.form_id)

            if not publication.issn:
                raise RegistryError.conflict(
                    "Cannot delete issn from the selected publication as it does not exist."
                )
            if publication.status == IssnPublicationStatus.ISSN_FROZEN.value:
                raise RegistryError.conflict(
                    "Cannot delete issn from the selected publication as status is set to ISSN_FROZEN."
                )
            used_rows = (
                self.db.query(IssnUsed)
                .filter(IssnUsed.publication_id == publication.id)
                .all()
            )
            if len(used_rows) != 1:
                raise RegistryError.conflict("Publication must be associated with exactly one ISSN.")
            used = used_rows[0]
            if used.issn != publication.issn:
                raise RegistryError.conflict(
                    "Publication issn information does not match associated database issn identifier."
                )

            row = self._get_range(used.issn_range_id)
            if self._is_latest_issued(row, used.issn):
                row.next = used.issn.split("-")[1]
                row.free += 1
                row.taken -= 1
                if row.is_closed:
                    deactivate_other_issn_ranges(self.db, row.id, user)
                    row.is_closed = False
                    row.is_active = True
                outcome = "rolled_back"
            else:
                self.db.add(
                    IssnCanceled(issn=used.issn, issn_range_id=row.id, canceled_by=user.actor)
                )
                row.taken -= 1
                row.canceled += 1
                outcome = "archived"
            if row.taken < 0:
                raise RegistryError.internal("ISSN range taken counter would become negative.")
            row.modified_by = user.actor

            self.db.delete(used)

            form.publication_count_issn -= 1
            if form.status == IssnFormStatus.NOT_NOTIFIED.value:
                form.status = IssnFormStatus.NOT_HANDLED.value
            form.modified_by = user.actor

            publication.issn = ""
            publication.status = IssnPublicationStatus.NO_PREPUBLICATION_RECORD.value
            publication.modified_by = user.actor
            self.db.flush()

            flow_info(
                logger,
                "issn_released issn=%s publication_id=%s range_id=%s outcome=%s",
                used.issn,
                publication.id,
                row.id,
                outcome,
                category="retirement",
            )
        return publication
