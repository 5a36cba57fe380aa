from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from idregistry.core.config import settings
from idregistry.core.constants import (
    CANCELED_SUBRANGE_PREFIX,
    ISBN_CATEGORIES,
    ISBN_PREFIXES,
    ISMN_CATEGORIES,
    ISMN_PREFIX,
    IdentifierType,
)
from idregistry.core.errors import RegistryError
from idregistry.core.flow_logging import flow_info
from idregistry.db.transaction import Transaction, transaction_scope
from idregistry.models.publisher import PublisherIsbn
from idregistry.schemas.ranges import RangeCreate
from idregistry.schemas.request_identity import RequestIdentity
from idregistry.services.identifier_types import resolve_identifier_type
from idregistry.services.range_overlap import normalize, overlaps_existing

logger = logging.getLogger(__name__)


class RangeService:
    """Master ISBN/ISMN range ledger: lifecycle and carving of publisher sub-ranges."""

    def __init__(self, db: Session, identifier_type: IdentifierType | str):
        self.db = db
        self.types = resolve_identifier_type(identifier_type)
        self.range_model = self.types.range_model
        self.subrange_model = self.types.subrange_model
        self.subrange_canceled_model = self.types.subrange_canceled_model

    # -- lookups -----------------------------------------------------------

    def _get_range(self, range_id: int, *, for_update: bool = False):
        query = self.db.query(self.range_model).filter(self.range_model.id == int(range_id))
        if for_update:
            query = query.with_for_update()
        row = query.first()
        if row is None:
            raise RegistryError.not_found(f"{self.types.identifier_type.value} range was not found.")
        return row

    def _get_publisher(self, publisher_id: int) -> PublisherIsbn:
        publisher = (
            self.db.query(PublisherIsbn)
            .filter(PublisherIsbn.id == int(publisher_id))
            .with_for_update()
            .first()
        )
        if publisher is None:
            raise RegistryError.not_found("Publisher was not found.")
        return publisher

    def read(self, range_id: int):
        return self._get_range(range_id)

    def read_all(self) -> list:
        return self.db.query(self.range_model).order_by(self.range_model.id.asc()).all()

    # -- creation ------------------------------------------------------------

    def _validate_payload(self, payload: RangeCreate) -> None:
        begin = payload.range_begin
        end = payload.range_end
        category = payload.category

        if self.types.identifier_type == IdentifierType.ISBN:
            if _as_int(payload.prefix) not in ISBN_PREFIXES:
                raise RegistryError.unprocessable("Prefix can be only either 978 or 979.")
            if payload.lang_group not in settings.ISBN_LANGUAGE_GROUPS:
                raise RegistryError.unprocessable(
                    "Language group is not one of the accepted registration groups."
                )
            if category not in ISBN_CATEGORIES:
                raise RegistryError.unprocessable("Category can be only integer between 1 and 5.")
        else:
            if str(payload.prefix) != ISMN_PREFIX:
                raise RegistryError.unprocessable("ISMN range prefix can be only 979-0.")
            if category not in ISMN_CATEGORIES:
                raise RegistryError.unprocessable("ISMN range category can be only 3, 5, 6 or 7.")

        if not begin.isdigit() or not end.isdigit():
            raise RegistryError.unprocessable("rangeBegin and rangeEnd must be decimal digits.")
        if len(begin) != category or len(end) != category:
            raise RegistryError.unprocessable(
                "rangeBegin and rangeEnd length must equal the range category."
            )
        if int(end) < int(begin):
            raise RegistryError.unprocessable("rangeBegin cannot be greater than rangeEnd.")

    def _scope_of(self, payload: RangeCreate) -> tuple:
        if self.types.identifier_type == IdentifierType.ISBN:
            return (_as_int(payload.prefix), payload.lang_group)
        return (str(payload.prefix),)

    def create(self, payload: RangeCreate, user: RequestIdentity, tx: Transaction | None = None):
        self._validate_payload(payload)
        identifier_type = self.types.identifier_type

        with transaction_scope(self.db, tx, name="range_create"):
            candidate = normalize(
                identifier_type, self._scope_of(payload), payload.range_begin, payload.range_end
            )
            existing = [
                normalize(identifier_type, row.scope_key(), row.range_begin, row.range_end)
                for row in self.db.query(self.range_model).all()
            ]
            if overlaps_existing(candidate, existing):
                raise RegistryError.conflict(
                    "Cannot create new range as it would overlap existing range."
                )

            values = dict(
                prefix=payload.prefix,
                category=payload.category,
                range_begin=payload.range_begin,
                range_end=payload.range_end,
                next=payload.range_begin,
                free=int(payload.range_end) - int(payload.range_begin) + 1,
                taken=0,
                canceled=0,
                is_active=True,
                is_closed=False,
                created_by=user.actor,
                modified_by=user.actor,
            )
            if identifier_type == IdentifierType.ISBN:
                values["prefix"] = _as_int(payload.prefix)
                values["lang_group"] = payload.lang_group
            else:
                values["prefix"] = str(payload.prefix)

            row = self.range_model(**values)
            self.db.add(row)
            self.db.flush()
            logger.info(
                "range_created type=%s id=%s begin=%s end=%s",
                identifier_type.value,
                row.id,
                row.range_begin,
                row.range_end,
            )
        return row

    def remove(self, range_id: int, user: RequestIdentity, tx: Transaction | None = None) -> bool:
        with transaction_scope(self.db, tx, name="range_remove"):
            row = self._get_range(range_id, for_update=True)
            if row.range_begin != row.next:
                raise RegistryError.conflict(
                    "Publisher ranges have already been given from the selected range, cannot delete."
                )
            linked = (
                self.db.query(self.subrange_model)
                .filter(self.subrange_model.range_id == row.id)
                .count()
            )
            archived = (
                self.db.query(self.subrange_canceled_model)
                .filter(self.subrange_canceled_model.range_id == row.id)
                .count()
            )
            if linked or archived:
                raise RegistryError.conflict(
                    "Publisher ranges linked to selected range exist, cannot delete."
                )
            self.db.delete(row)
            self.db.flush()
            logger.info(
                "range_removed type=%s id=%s by=%s",
                self.types.identifier_type.value,
                range_id,
                user.actor,
            )
        return True

    # -- state machine -------------------------------------------------------

    def activate(self, range_id: int, user: RequestIdentity, tx: Transaction | None = None):
        with transaction_scope(self.db, tx, name="range_activate"):
            row = self._get_range(range_id, for_update=True)
            if not row.has_available:
                raise RegistryError.conflict(
                    "Cannot activate range which does not have free publisher identifiers available."
                )
            if row.is_active:
                raise RegistryError.conflict("Cannot activate range that is already active.")
            if row.is_closed:
                raise RegistryError.conflict("Cannot activate range that is closed.")
            row.is_active = True
            row.modified_by = user.actor
            self.db.flush()
        return row

    def deactivate(self, range_id: int, user: RequestIdentity, tx: Transaction | None = None):
        with transaction_scope(self.db, tx, name="range_deactivate"):
            row = self._get_range(range_id, for_update=True)
            if not row.is_active:
                raise RegistryError.conflict("Cannot deactivate range that is not active.")
            row.is_active = False
            row.modified_by = user.actor
            self.db.flush()
        return row

    def close(self, range_id: int, user: RequestIdentity, tx: Transaction | None = None):
        with transaction_scope(self.db, tx, name="range_close"):
            row = self._get_range(range_id, for_update=True)
            if row.is_closed:
                raise RegistryError.conflict("Cannot close range that is already closed.")
            row.is_active = False
            row.is_closed = True
            row.modified_by = user.actor
            self.db.flush()
        return row

    def open(self, range_id: int, user: RequestIdentity, tx: Transaction | None = None):
        with transaction_scope(self.db, tx, name="range_open"):
            row = self._get_range(range_id, for_update=True)
            if not row.is_closed:
                raise RegistryError.conflict("Cannot open range that is already open.")
            if not row.has_available:
                raise RegistryError.conflict(
                    "Cannot open range that does not have available publisher identifiers."
                )
            row.is_closed = False
            row.modified_by = user.actor
            self.db.flush()
        return row

    # -- sub-range carving ---------------------------------------------------

    def _belongs_to_range(self, row, digits: str) -> bool:
        if not digits.isdigit() or len(digits) != row.category:
            return False
        return int(row.range_begin) <= int(digits) <= int(row.range_end)

    def _taken_identifiers(self, row) -> set[str]:
        used = (
            self.db.query(self.subrange_model.publisher_identifier)
            .filter(self.subrange_model.range_id == row.id)
            .all()
        )
        return {value for (value,) in used}

    def _pooled_identifiers(self, row) -> set[str]:
        pooled = (
            self.db.query(self.subrange_canceled_model.identifier)
            .filter(self.subrange_canceled_model.range_id == row.id)
            .all()
        )
        return {value for (value,) in pooled}

    def _advance_next(self, row, unavailable: set[str]) -> None:
        width = row.category
        position = int(row.next) + 1
        last = int(row.range_end)
        while position <= last:
            digits = str(position).zfill(width)
            if row.format_publisher_identifier(digits) not in unavailable:
                break
            position += 1
        row.next = str(position).zfill(width)

    def _take_canceled_selection(self, row, selection: str, user: RequestIdentity) -> str:
        raw_id = selection[len(CANCELED_SUBRANGE_PREFIX):]
        if not raw_id.isdigit():
            raise RegistryError.unprocessable("Canceled publisher identifier selection is malformed.")
        pooled = (
            self.db.query(self.subrange_canceled_model)
            .filter(self.subrange_canceled_model.id == int(raw_id))
            .first()
        )
        if pooled is None:
            raise RegistryError.not_found("Canceled publisher identifier was not found.")
        if pooled.range_id != row.id:
            raise RegistryError.conflict(
                "Selected canceled identifier does not belong to selected range."
            )
        if pooled.identifier in self._taken_identifiers(row):
            raise RegistryError.conflict(
                "Selected publisher identifier is already in use. Please contact system administrator."
            )
        if row.canceled - 1 < 0:
            raise RegistryError.conflict(
                "Cannot decrease canceled since range canceled value would be negative."
            )

        formatted = pooled.identifier
        self.db.delete(pooled)
        row.canceled -= 1
        row.taken += 1
        if row.is_exhausted:
            row.is_active = False
            row.is_closed = True
        row.modified_by = user.actor
        flow_info(
            logger,
            "subrange_reused_from_pool type=%s range_id=%s identifier=%s",
            self.types.identifier_type.value,
            row.id,
            formatted,
            category="allocation",
        )
        return formatted

    def _take_fresh_selection(self, row, digits: str, user: RequestIdentity) -> str:
        if not self._belongs_to_range(row, digits):
            raise RegistryError.conflict("Selected publisher identifier does not belong to selected range.")
        formatted = row.format_publisher_identifier(digits)
        taken = self._taken_identifiers(row)
        if formatted in taken:
            raise RegistryError.conflict("Selected publisher identifier is not available.")
        pooled = self._pooled_identifiers(row)
        if formatted in pooled:
            raise RegistryError.conflict(
                "Selected publisher identifier is only available through using similar canceled identifier."
            )
        if row.free - 1 < 0:
            raise RegistryError.conflict("Range has no free publisher identifiers left.")

        if digits == row.next:
            self._advance_next(row, taken | pooled | {formatted})
        row.free -= 1
        row.taken += 1
        if row.is_exhausted:
            row.is_active = False
            row.is_closed = True
        row.modified_by = user.actor
        return formatted

    def generate_subrange(
        self,
        range_id: int,
        publisher_id: int,
        selection: str,
        user: RequestIdentity,
        tx: Transaction | None = None,
    ):
        selection = (selection or "").strip()
        if not selection:
            raise RegistryError.unprocessable("Publisher identifier selection is required.")

        with transaction_scope(self.db, tx, name="generate_subrange"):
            row = self._get_range(range_id, for_update=True)
            publisher = self._get_publisher(publisher_id)

            if row.is_closed:
                raise RegistryError.conflict("Cannot generate subrange from closed range.")
            if not row.is_active:
                raise RegistryError.conflict("Cannot generate subrange from inactive range.")
            if publisher.has_quitted:
                raise RegistryError.conflict(
                    "Cannot generate subrange for publisher who has quit publishing."
                )

            if selection.startswith(CANCELED_SUBRANGE_PREFIX):
                publisher_identifier = self._take_canceled_selection(row, selection, user)
            else:
                publisher_identifier = self._take_fresh_selection(row, selection, user)

            digits = publisher_identifier.split("-")[-1]
            if not self._belongs_to_range(row, digits):
                raise RegistryError.conflict(
                    "Selected identifier does not belong to selected range. "
                    "Refusing to create publisher identifier for publisher."
                )

            active_siblings = (
                self.db.query(self.subrange_model)
                .filter(self.subrange_model.publisher_id == publisher.id)
                .filter(self.subrange_model.is_active.is_(True))
                .with_for_update()
                .all()
            )
            for sibling in active_siblings:
                sibling.is_active = False
                sibling.modified_by = user.actor

            category = self.types.identifier_length - row.category
            range_begin = "0" * category
            range_end = "9" * category
            subrange = self.subrange_model(
                range_id=row.id,
                publisher_id=publisher.id,
                publisher_identifier=publisher_identifier,
                category=category,
                range_begin=range_begin,
                range_end=range_end,
                next=range_begin,
                free=int(range_end) - int(range_begin) + 1,
                taken=0,
                canceled=0,
                deleted=0,
                is_active=True,
                is_closed=False,
                created_by=user.actor,
                modified_by=user.actor,
            )
            self.db.add(subrange)
            setattr(publisher, self.types.publisher_attribute, publisher_identifier)
            publisher.modified_by = user.actor
            self.db.flush()

            flow_info(
                logger,
                "subrange_generated type=%s range_id=%s publisher_id=%s identifier=%s",
                self.types.identifier_type.value,
                row.id,
                publisher.id,
                publisher_identifier,
                category="allocation",
            )
        return subrange

    def subrange_options(self, range_id: int) -> list[dict]:
        row = self._get_range(range_id)
        if row.is_closed or not row.is_active:
            raise RegistryError.conflict(
                "Won't generate options for range that is either closed or deactivated."
            )
        taken = self._taken_identifiers(row)
        pooled_rows = (
            self.db.query(self.subrange_canceled_model)
            .filter(self.subrange_canceled_model.range_id == row.id)
            .order_by(self.subrange_canceled_model.id.asc())
            .all()
        )
        pooled = {item.identifier for item in pooled_rows}

        options: list[dict] = []
        for position in range(int(row.range_begin), int(row.range_end) + 1):
            digits = str(position).zfill(row.category)
            formatted = row.format_publisher_identifier(digits)
            if formatted in taken or formatted in pooled:
                continue
            options.append({"value": digits, "identifier": formatted})
        for item in pooled_rows:
            options.append(
                {"value": f"{CANCELED_SUBRANGE_PREFIX}{item.id}", "identifier": item.identifier}
            )
        return options


def _as_int(value) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
