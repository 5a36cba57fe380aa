from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from idregistry.core.constants import IdentifierType
from idregistry.core.errors import RegistryError
from idregistry.core.flow_logging import flow_info
from idregistry.db.transaction import Transaction, transaction_scope
from idregistry.models.identifiers import Identifier, IdentifierBatch, IdentifierCanceled
from idregistry.models.publisher import PublisherIsbn
from idregistry.schemas.request_identity import RequestIdentity
from idregistry.services.identifier_types import resolve_identifier_type

logger = logging.getLogger(__name__)


class SubrangeService:
    """Publisher sub-range ledger for one identifier type (ISBN or ISMN)."""

    def __init__(self, db: Session, identifier_type: IdentifierType | str):
        self.db = db
        self.types = resolve_identifier_type(identifier_type)
        self.range_model = self.types.range_model
        self.subrange_model = self.types.subrange_model
        self.subrange_canceled_model = self.types.subrange_canceled_model

    def _get_subrange(self, subrange_id: int, *, for_update: bool = False):
        query = self.db.query(self.subrange_model).filter(self.subrange_model.id == int(subrange_id))
        if for_update:
            query = query.with_for_update()
        row = query.first()
        if row is None:
            raise RegistryError.not_found(
                f"{self.types.identifier_type.value} subrange was not found."
            )
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

    def _clear_publisher_reference(self, publisher: PublisherIsbn, subrange, user: RequestIdentity) -> None:
        attribute = self.types.publisher_attribute
        if getattr(publisher, attribute) == subrange.publisher_identifier:
            setattr(publisher, attribute, "")
            publisher.modified_by = user.actor

    def read(self, subrange_id: int):
        return self._get_subrange(subrange_id)

    def list_for_publisher(self, publisher_id: int) -> list:
        return (
            self.db.query(self.subrange_model)
            .filter(self.subrange_model.publisher_id == int(publisher_id))
            .order_by(self.subrange_model.id.asc())
            .all()
        )

    # -- state machine -------------------------------------------------------

    def activate(self, subrange_id: int, user: RequestIdentity, tx: Transaction | None = None):
        with transaction_scope(self.db, tx, name="subrange_activate"):
            subrange = self._get_subrange(subrange_id, for_update=True)
            publisher = self._get_publisher(subrange.publisher_id)

            if not subrange.has_available:
                raise RegistryError.conflict(
                    "Cannot activate subrange which does not have free identifiers available."
                )
            if subrange.is_active:
                raise RegistryError.conflict("Cannot activate subrange that is already active.")
            if subrange.is_closed:
                raise RegistryError.conflict("Cannot activate subrange that has been closed.")

            siblings = (
                self.db.query(self.subrange_model)
                .filter(self.subrange_model.publisher_id == publisher.id)
                .filter(self.subrange_model.is_active.is_(True))
                .with_for_update()
                .all()
            )
            for sibling in siblings:
                sibling.is_active = False
                sibling.modified_by = user.actor

            setattr(publisher, self.types.publisher_attribute, subrange.publisher_identifier)
            publisher.modified_by = user.actor
            subrange.is_active = True
            subrange.modified_by = user.actor
            self.db.flush()
            flow_info(
                logger,
                "subrange_activated type=%s id=%s publisher_id=%s",
                self.types.identifier_type.value,
                subrange.id,
                publisher.id,
                category="allocation",
            )
        return subrange

    def deactivate(self, subrange_id: int, user: RequestIdentity, tx: Transaction | None = None):
        with transaction_scope(self.db, tx, name="subrange_deactivate"):
            subrange = self._get_subrange(subrange_id, for_update=True)
            publisher = self._get_publisher(subrange.publisher_id)
            if not subrange.is_active:
                raise RegistryError.conflict("Cannot deactivate subrange that is already deactivated.")
            self._clear_publisher_reference(publisher, subrange, user)
            subrange.is_active = False
            subrange.modified_by = user.actor
            self.db.flush()
        return subrange

    def close(self, subrange_id: int, user: RequestIdentity, tx: Transaction | None = None):
        with transaction_scope(self.db, tx, name="subrange_close"):
            subrange = self._get_subrange(subrange_id, for_update=True)
            publisher = self._get_publisher(subrange.publisher_id)
            if subrange.is_closed:
                raise RegistryError.conflict("Cannot close subrange that is already closed.")
            if subrange.is_active:
                self._clear_publisher_reference(publisher, subrange, user)
            subrange.is_active = False
            subrange.is_closed = True
            subrange.modified_by = user.actor
            self.db.flush()
        return subrange

    def open(self, subrange_id: int, user: RequestIdentity, tx: Transaction | None = None):
        with transaction_scope(self.db, tx, name="subrange_open"):
            subrange = self._get_subrange(subrange_id, for_update=True)
            if not subrange.is_closed:
                raise RegistryError.conflict("Cannot re-open subrange that is already open.")
            if not subrange.has_available:
                raise RegistryError.conflict(
                    "Cannot re-open subrange that does not have available identifiers."
                )
            subrange.is_closed = False
            subrange.modified_by = user.actor
            self.db.flush()
        return subrange

    # -- removal -------------------------------------------------------------

    def _has_no_footprint(self, subrange) -> bool:
        if subrange.next == subrange.range_begin:
            return True
        # Everything minted was cancelled back into the pool.
        return subrange.taken == 0 and subrange.deleted == 0

    def _can_remove(self, subrange) -> bool:
        if not self._has_no_footprint(subrange):
            return False

        identifiers = (
            self.db.query(Identifier.id)
            .filter(Identifier.subrange_id == subrange.id)
            .filter(Identifier.identifier.like(f"{subrange.publisher_identifier}-%"))
            .count()
        )
        batches = (
            self.db.query(IdentifierBatch.id)
            .filter(IdentifierBatch.identifier_type == self.types.identifier_type.value)
            .filter(IdentifierBatch.subrange_id == subrange.id)
            .count()
        )
        if identifiers or batches:
            return False

        pooled = (
            self.db.query(IdentifierCanceled.id)
            .filter(IdentifierCanceled.identifier_type == self.types.identifier_type.value)
            .filter(IdentifierCanceled.subrange_id == subrange.id)
            .count()
        )
        return pooled == subrange.canceled

    def _was_last_issued(self, parent, subrange) -> bool:
        previous = str(int(parent.next) - 1).zfill(parent.category)
        return parent.format_publisher_identifier(previous) == subrange.publisher_identifier

    def remove(self, subrange_id: int, user: RequestIdentity, tx: Transaction | None = None) -> bool:
        with transaction_scope(self.db, tx, name="subrange_remove"):
            subrange = self._get_subrange(subrange_id, for_update=True)
            parent = (
                self.db.query(self.range_model)
                .filter(self.range_model.id == subrange.range_id)
                .with_for_update()
                .first()
            )
            if parent is None:
                raise RegistryError.not_found("Range of the subrange was not found.")

            if not self._can_remove(subrange):
                raise RegistryError.conflict(
                    "Identifiers have already been given from subrange, cannot delete."
                )

            if parent.taken - 1 < 0:
                raise RegistryError.internal("Range taken counter would become negative.")

            if self._was_last_issued(parent, subrange):
                parent.free += 1
                parent.taken -= 1
                parent.next = str(int(parent.next) - 1).zfill(parent.category)
                outcome = "rolled_back"
            else:
                self.db.add(
                    self.subrange_canceled_model(
                        identifier=subrange.publisher_identifier,
                        range_id=parent.id,
                        category=parent.category,
                        created_by=user.actor,
                        modified_by=user.actor,
                    )
                )
                parent.taken -= 1
                parent.canceled += 1
                outcome = "archived"
            parent.modified_by = user.actor

            if subrange.canceled > 0:
                purged = (
                    self.db.query(IdentifierCanceled)
                    .filter(IdentifierCanceled.identifier_type == self.types.identifier_type.value)
                    .filter(IdentifierCanceled.subrange_id == subrange.id)
                    .delete(synchronize_session=False)
                )
                if purged != subrange.canceled:
                    raise RegistryError.internal(
                        "Error in removing canceled identifiers during subrange removal."
                    )

            publisher = self._get_publisher(subrange.publisher_id)
            self._clear_publisher_reference(publisher, subrange, user)

            self.db.delete(subrange)
            self.db.flush()
            flow_info(
                logger,
                "subrange_removed type=%s id=%s identifier=%s outcome=%s",
                self.types.identifier_type.value,
                subrange_id,
                subrange.publisher_identifier,
                outcome,
                category="retirement",
            )
        return True

    # -- allocation ----------------------------------------------------------

    def generate_identifier_batch(
        self,
        publisher_id: int,
        user: RequestIdentity,
        *,
        count: int | None = None,
        publication_id: int | None = None,
        tx: Transaction | None = None,
    ) -> IdentifierBatch:
        from idregistry.services.identifier_allocator import IdentifierAllocator

        allocator = IdentifierAllocator(self.db, self.types.identifier_type)
        return allocator.generate_batch(
            publisher_id,
            user,
            count=count,
            publication_id=publication_id,
            tx=tx,
        )
