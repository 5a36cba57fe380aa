from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from idregistry.core.constants import PublicationFormat
from idregistry.core.errors import RegistryError
from idregistry.core.flow_logging import flow_info
from idregistry.db.transaction import Transaction, transaction_scope
from idregistry.models.identifiers import Identifier, IdentifierBatch, IdentifierCanceled
from idregistry.models.publication import MessageIsbn, PublicationIsbn
from idregistry.schemas.request_identity import RequestIdentity
from idregistry.services.identifier_types import resolve_identifier_type
from idregistry.services.publication_identifiers import dump_identifier_map, parse_identifier_map

logger = logging.getLogger(__name__)


def clear_publication_identifiers(publication: PublicationIsbn, user: RequestIdentity) -> None:
    publication.publication_identifier_print = ""
    publication.publication_identifier_electronical = ""
    publication.publication_identifier_type = ""
    publication.on_process = True
    publication.modified_by = user.actor


class IdentifierService:
    """Retirement of issued ISBN/ISMN identifiers.

    `cancel` returns the identifier to its sub-range's reusable pool, `remove`
    retires it permanently. Both detach it from its batch and publication.
    """

    def __init__(self, db: Session):
        self.db = db

    def cancel(self, identifier: str, user: RequestIdentity, tx: Transaction | None = None) -> bool:
        return self._retire(identifier, user, permanent=False, tx=tx)

    def remove(self, identifier: str, user: RequestIdentity, tx: Transaction | None = None) -> bool:
        return self._retire(identifier, user, permanent=True, tx=tx)

    def _retire(
        self,
        identifier: str,
        user: RequestIdentity,
        *,
        permanent: bool,
        tx: Transaction | None,
    ) -> bool:
        operation = "identifier_remove" if permanent else "identifier_cancel"
        with transaction_scope(self.db, tx, name=operation):
            entity = (
                self.db.query(Identifier)
                .filter(Identifier.identifier == identifier)
                .with_for_update()
                .first()
            )
            if entity is None:
                raise RegistryError.not_found("Identifier was not found.")

            batch = (
                self.db.query(IdentifierBatch)
                .filter(IdentifierBatch.id == entity.identifier_batch_id)
                .with_for_update()
                .first()
            )
            if batch is None:
                raise RegistryError.conflict("Batch of the identifier could not be found.")

            publication = None
            if batch.publication_id is not None:
                publication = self.db.get(PublicationIsbn, batch.publication_id)
                if publication is None:
                    raise RegistryError.conflict("Publication of the identifier batch could not be found.")

            types = resolve_identifier_type(batch.identifier_type)
            subrange = (
                self.db.query(types.subrange_model)
                .filter(types.subrange_model.id == entity.subrange_id)
                .with_for_update()
                .first()
            )
            if subrange is None:
                raise RegistryError.conflict("Subrange of the identifier could not be found.")

            messages = self.db.query(MessageIsbn).filter(MessageIsbn.batch_id == batch.id).all()
            if messages and not permanent:
                raise RegistryError.conflict(
                    "Cannot cancel identifier from batch that has been sent to the publisher. "
                    "Delete the identifier instead."
                )

            last_of_batch = batch.total_count == 1 or batch.retired_count == batch.total_count - 1
            if last_of_batch:
                self.db.delete(entity)
                for message in messages:
                    message.batch_id = None
                if publication is not None:
                    clear_publication_identifiers(publication, user)
                self.db.flush()
                self.db.delete(batch)
            else:
                if permanent:
                    batch.identifier_deleted_count += 1
                else:
                    batch.identifier_canceled_count += 1
                if publication is not None:
                    self._detach_from_publication(publication, identifier, user)
                self.db.delete(entity)

            if subrange.taken - 1 < 0:
                raise RegistryError.internal("Subrange taken counter would become negative.")
            subrange.taken -= 1
            if permanent:
                subrange.deleted += 1
            else:
                self.db.add(
                    IdentifierCanceled(
                        identifier=identifier,
                        identifier_type=batch.identifier_type,
                        category=subrange.category,
                        publisher_id=subrange.publisher_id,
                        subrange_id=subrange.id,
                        canceled_by=user.actor,
                    )
                )
                subrange.canceled += 1
                subrange.is_closed = False
            subrange.modified_by = user.actor
            self.db.flush()

            flow_info(
                logger,
                "identifier_retired identifier=%s permanent=%s batch_id=%s batch_removed=%s",
                identifier,
                permanent,
                batch.id,
                last_of_batch,
                category="retirement",
            )
        return True

    def _detach_from_publication(
        self,
        publication: PublicationIsbn,
        identifier: str,
        user: RequestIdentity,
    ) -> None:
        fields = []
        if publication.publication_format in (
            PublicationFormat.PRINT.value,
            PublicationFormat.PRINT_ELECTRONICAL.value,
        ):
            fields.append("publication_identifier_print")
        if publication.publication_format in (
            PublicationFormat.ELECTRONICAL.value,
            PublicationFormat.PRINT_ELECTRONICAL.value,
        ):
            fields.append("publication_identifier_electronical")

        for field in fields:
            identifiers = parse_identifier_map(getattr(publication, field))
            if identifier in identifiers:
                label = identifiers.pop(identifier)
                setattr(publication, field, dump_identifier_map(identifiers))
                logger.info(
                    "publication_identifier_dropped publication_id=%s identifier=%s type=%s",
                    publication.id,
                    identifier,
                    label,
                )
        publication.modified_by = user.actor
