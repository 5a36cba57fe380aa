from __future__ import annotations

import hashlib
import logging

from sqlalchemy.orm import Session

from idregistry.core.config import settings
from idregistry.core.constants import IdentifierType
from idregistry.core.errors import RegistryError
from idregistry.core.flow_logging import flow_info
from idregistry.db.transaction import Transaction, transaction_scope
from idregistry.models.identifiers import (
    Identifier,
    IdentifierBatch,
    IdentifierBatchDownload,
    IdentifierCanceled,
)
from idregistry.models.publication import MessageIsbn, PublicationIsbn
from idregistry.models.publisher import PublisherIsbn
from idregistry.schemas.identifiers import BatchQuery
from idregistry.schemas.request_identity import RequestIdentity
from idregistry.services.identifier_service import clear_publication_identifiers
from idregistry.services.identifier_types import resolve_identifier_type

logger = logging.getLogger(__name__)

DOWNLOAD_HEADER_FI = "Seuraavat tunnukset on myönnetty kustantajalle {name}"
DOWNLOAD_HEADER_EN = "Following identifiers have been assigned to publisher {name}"
DOWNLOAD_TEST_WARNING = (
    "SEURAAVAT TUNNUKSET ON TUOTETTU TESTIJÄRJESTELMÄSTÄ JA NIITÄ EI MISSÄÄN NIMESSÄ PIDÄ "
    "OIKEASTI KÄYTTÄÄ!"
)
LINE_BREAK = "\r\n"


def _identifier_dict(row: Identifier) -> dict:
    return {"id": row.id, "identifier": row.identifier, "publicationType": row.publication_type}


def _batch_dict(batch: IdentifierBatch) -> dict:
    return {
        "id": batch.id,
        "identifierType": batch.identifier_type,
        "identifierCount": batch.identifier_count,
        "identifierCanceledUsedCount": batch.identifier_canceled_used_count,
        "identifierCanceledCount": batch.identifier_canceled_count,
        "identifierDeletedCount": batch.identifier_deleted_count,
        "publisherId": batch.publisher_id,
        "publicationId": batch.publication_id,
        "createdBy": batch.created_by,
        "created": batch.created_at,
    }


class IdentifierBatchService:
    """Read, query, download and safe removal of ISBN/ISMN identifier batches.

    Batches are created by the allocator through the sub-range ledger.
    """

    def __init__(self, db: Session):
        self.db = db

    def _get_batch(self, batch_id: int, *, for_update: bool = False) -> IdentifierBatch:
        query = self.db.query(IdentifierBatch).filter(IdentifierBatch.id == int(batch_id))
        if for_update:
            query = query.with_for_update()
        batch = query.first()
        if batch is None:
            raise RegistryError.not_found("Identifier batch was not found.")
        return batch

    def _identifiers(self, batch_id: int) -> list[Identifier]:
        return (
            self.db.query(Identifier)
            .filter(Identifier.identifier_batch_id == batch_id)
            .order_by(Identifier.id.asc())
            .all()
        )

    # -- read ----------------------------------------------------------------

    def read(self, batch_id: int, user: RequestIdentity) -> dict:
        batch = self._get_batch(batch_id)
        types = resolve_identifier_type(batch.identifier_type)
        subrange = self.db.get(types.subrange_model, batch.subrange_id)
        if subrange is None:
            raise RegistryError.not_found("Identifier batch was not found.")
        publisher = self.db.get(PublisherIsbn, batch.publisher_id)
        publisher_name = publisher.official_name if publisher is not None else ""

        if user.is_admin:
            doc = _batch_dict(batch)
            doc["publisherName"] = publisher_name
            doc["publisherIdentifier"] = subrange.publisher_identifier
            doc["identifiers"] = [_identifier_dict(row) for row in self._identifiers(batch.id)]
            return doc

        # Publication batches are only visible to administrators.
        if batch.publication_id:
            raise RegistryError.not_found("Identifier batch was not found.")

        return {
            "id": batch.id,
            "identifierType": batch.identifier_type,
            "identifierCount": batch.identifier_count,
            "publisherName": publisher_name,
            "publisherId": batch.publisher_id,
            "publisherIdentifier": subrange.publisher_identifier,
        }

    # -- safe removal --------------------------------------------------------

    def safe_remove(self, batch_id: int, user: RequestIdentity, tx: Transaction | None = None) -> bool:
        with transaction_scope(self.db, tx, name="identifier_batch_safe_remove"):
            batch = self._get_batch(batch_id, for_update=True)
            if batch.retired_count != 0:
                raise RegistryError.conflict(
                    "Cannot delete identifier batch which has canceled or deleted identifiers."
                )

            latest = (
                self.db.query(IdentifierBatch.id)
                .filter(IdentifierBatch.identifier_type == batch.identifier_type)
                .filter(IdentifierBatch.subrange_id == batch.subrange_id)
                .order_by(IdentifierBatch.id.desc())
                .first()
            )
            if latest is None or latest.id != batch.id:
                raise RegistryError.conflict(
                    "Cannot delete batch since it was not latest batch given from subrange."
                )

            messages = self.db.query(MessageIsbn.id).filter(MessageIsbn.batch_id == batch.id).count()
            if messages:
                raise RegistryError.conflict(
                    "Cannot delete batch since a message regarding it was already sent to customer."
                )

            # Descending order puts the newly minted identifiers of the primary sub-range first.
            identifiers = (
                self.db.query(Identifier)
                .filter(Identifier.identifier_batch_id == batch.id)
                .order_by(Identifier.identifier.desc())
                .all()
            )

            types = resolve_identifier_type(batch.identifier_type)
            subrange_model = types.subrange_model
            subrange = (
                self.db.query(subrange_model)
                .filter(subrange_model.id == batch.subrange_id)
                .with_for_update()
                .first()
            )
            if subrange is None:
                raise RegistryError.conflict(
                    "Cannot delete batch since subrange associated with it could not be found."
                )

            primary_rows = [row for row in identifiers if row.subrange_id == batch.subrange_id]
            if batch.identifier_count > 0:
                previous_next = str(int(subrange.next) - 1).zfill(subrange.category)
                positions = {row.identifier.split("-")[-2] for row in primary_rows}
                if previous_next not in positions:
                    raise RegistryError.conflict(
                        "Cannot delete batch since it was not latest batch given from subrange."
                    )

            if len(identifiers) != batch.total_count:
                raise RegistryError.conflict(
                    "Cannot delete batch since its identifier count does not match the count "
                    "of identifiers found from database."
                )

            subrange.next = str(int(subrange.next) - batch.identifier_count).zfill(subrange.category)
            subrange.free += batch.identifier_count
            subrange.taken -= batch.identifier_count
            if subrange.taken < 0:
                raise RegistryError.internal("Subrange taken counter would become negative.")
            subrange.is_closed = False
            subrange.modified_by = user.actor

            if batch.publication_id:
                publication = self.db.get(PublicationIsbn, batch.publication_id)
                if publication is None:
                    raise RegistryError.conflict(
                        "Cannot delete batch since publication associated with it could not be found."
                    )
                clear_publication_identifiers(publication, user)

            minted_ids = {row.id for row in primary_rows[: batch.identifier_count]}
            recanceled = 0
            for row in identifiers:
                if row.id in minted_ids:
                    continue
                owner = (
                    self.db.query(subrange_model)
                    .filter(subrange_model.id == row.subrange_id)
                    .with_for_update()
                    .first()
                )
                if owner is None:
                    raise RegistryError.conflict(
                        "Cannot delete batch since one of its identifiers subrange could not be found."
                    )
                self.db.add(
                    IdentifierCanceled(
                        identifier=row.identifier,
                        identifier_type=batch.identifier_type,
                        category=owner.category,
                        publisher_id=batch.publisher_id,
                        subrange_id=owner.id,
                        canceled_by=user.actor,
                    )
                )
                owner.taken -= 1
                owner.canceled += 1
                owner.is_closed = False
                owner.modified_by = user.actor
                recanceled += 1

            for row in identifiers:
                self.db.delete(row)
            self.db.flush()
            self.db.delete(batch)
            self.db.flush()

            flow_info(
                logger,
                "identifier_batch_removed batch_id=%s subrange_id=%s rolled_back=%s recanceled=%s",
                batch_id,
                subrange.id,
                batch.identifier_count,
                recanceled,
                category="retirement",
            )
        return True

    # -- download ------------------------------------------------------------

    def download(self, batch_id: int, tx: Transaction | None = None) -> dict:
        batch = self._get_batch(batch_id)
        if batch.publication_id:
            raise RegistryError.conflict(
                "Cannot download identifiers that have been assigned to a publication."
            )
        publisher = self.db.get(PublisherIsbn, batch.publisher_id)
        if publisher is None or not publisher.official_name:
            raise RegistryError.conflict(
                "Cannot download identifiers that have problem with associated publisher information."
            )
        identifiers = self._identifiers(batch.id)
        if not identifiers:
            raise RegistryError.conflict(
                "Cannot download identifiers as batch does not contain identifier information."
            )

        header = [
            DOWNLOAD_HEADER_FI.format(name=publisher.official_name),
            DOWNLOAD_HEADER_EN.format(name=publisher.official_name),
            "",
        ]
        if not settings.is_production:
            header.extend([DOWNLOAD_TEST_WARNING, ""])
        body = "".join(f"{line}{LINE_BREAK}" for line in header)
        body += "".join(f"{row.identifier}{LINE_BREAK}" for row in identifiers)
        sha256sum = hashlib.sha256(body.encode("utf-8")).hexdigest()

        with transaction_scope(self.db, tx, name="identifier_batch_download"):
            self.db.add(IdentifierBatchDownload(batch_id=batch.id, sha256sum=sha256sum))
            self.db.flush()
        logger.info("identifier_batch_downloaded batch_id=%s sha256=%s", batch.id, sha256sum)
        return {"body": body, "sha256sum": sha256sum}

    # -- query ---------------------------------------------------------------

    def query(self, filters: BatchQuery) -> dict:
        if filters.publisher_id and filters.publication_id:
            raise RegistryError.unprocessable(
                "Accepting only either publisherId or publicationId as query parameter, not both."
            )

        query = self.db.query(IdentifierBatch)
        if filters.publication_id:
            query = query.filter(IdentifierBatch.publication_id == filters.publication_id)
        elif filters.publisher_id:
            query = query.filter(IdentifierBatch.publisher_id == filters.publisher_id)
            if not filters.include_publications:
                query = query.filter(IdentifierBatch.publication_id.is_(None))

        total = query.count()
        rows = (
            query.order_by(IdentifierBatch.id.desc())
            .offset(filters.offset)
            .limit(filters.limit)
            .all()
        )

        results = [_batch_dict(batch) for batch in rows]
        if filters.publisher_id:
            identifiers_by_subrange: dict[tuple[str, int], str] = {}
            for identifier_type in (IdentifierType.ISBN, IdentifierType.ISMN):
                subrange_model = resolve_identifier_type(identifier_type).subrange_model
                for subrange in (
                    self.db.query(subrange_model)
                    .filter(subrange_model.publisher_id == filters.publisher_id)
                    .all()
                ):
                    identifiers_by_subrange[(identifier_type.value, subrange.id)] = (
                        subrange.publisher_identifier
                    )
            for doc, batch in zip(results, rows):
                doc["publisherRangeIdentifier"] = identifiers_by_subrange.get(
                    (batch.identifier_type, batch.subrange_id)
                )
        if filters.publication_id:
            for doc, batch in zip(results, rows):
                doc["identifiers"] = [_identifier_dict(row) for row in self._identifiers(batch.id)]

        return {"totalDoc": total, "results": results}
