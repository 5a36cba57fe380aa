"""
Minting of ISBN/ISMN identifier batches.

A batch combines identifiers reissued from the publisher's canceled pool with
newly minted ones from the active sub-range. When the active sub-range runs
short while serving a publication, allocation may move once to another
sub-range of the same category; the remainder of the exhausted sub-range is
minted and immediately canceled so it becomes reusable from the new one.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging

from sqlalchemy.orm import Session

from idregistry.core.config import settings
from idregistry.core.constants import (
    ELECTRONICAL_TYPES,
    IdentifierType,
    PRINT_TYPES,
    PublicationFormat,
    PublicationType,
)
from idregistry.core.errors import RegistryError
from idregistry.core.flow_logging import flow_info
from idregistry.db.transaction import Transaction, transaction_scope
from idregistry.models.identifiers import Identifier, IdentifierBatch, IdentifierCanceled
from idregistry.models.publication import PublicationIsbn
from idregistry.models.publisher import PublisherIsbn
from idregistry.schemas.request_identity import RequestIdentity
from idregistry.services.checksum import is_valid_identifier, isbn_check_digit
from idregistry.services.identifier_types import resolve_identifier_type
from idregistry.services.publication_identifiers import (
    dump_identifier_map,
    electronical_map,
    print_map,
    split_types,
)

logger = logging.getLogger(__name__)

SEARCH_ACTIVE_SUBRANGE = "active_subrange"
SEARCH_SAME_CATEGORY = "same_category"


@dataclass
class AllocationState:
    remaining: int
    active_subrange: object
    search_scope: str = SEARCH_ACTIVE_SUBRANGE
    switched: bool = False


@dataclass
class MintedIdentifier:
    identifier: str
    subrange_id: int
    publication_type: str


class IdentifierAllocator:
    def __init__(self, db: Session, identifier_type: IdentifierType | str):
        self.db = db
        self.types = resolve_identifier_type(identifier_type)
        self.identifier_type = self.types.identifier_type
        self.subrange_model = self.types.subrange_model

    # -- lookups -------------------------------------------------------------

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

    def _publisher_subranges(self, publisher_id: int) -> list:
        return (
            self.db.query(self.subrange_model)
            .filter(self.subrange_model.publisher_id == int(publisher_id))
            .order_by(self.subrange_model.id.asc())
            .with_for_update()
            .all()
        )

    def _active_subrange(self, publisher: PublisherIsbn, subranges: list):
        active_identifier = getattr(publisher, self.types.publisher_attribute)
        for subrange in subranges:
            if (
                subrange.publisher_identifier == active_identifier
                and subrange.is_active
                and not subrange.is_closed
            ):
                return subrange
        raise RegistryError.conflict(
            "Publisher does not have a publisher range which is active and not closed. "
            "Please set active publisher range for publisher before generating identifiers."
        )

    def _publication_types(self, publication: PublicationIsbn, publisher_id: int) -> list[str]:
        if publication.publication_identifier_print or publication.publication_identifier_electronical:
            raise RegistryError.conflict(
                "Cannot generate identifiers for publication that already has identifiers defined."
            )
        if not publication.publication_format:
            raise RegistryError.conflict(
                "Cannot generate identifiers for publication without defined format."
            )
        if publication.publisher_id != int(publisher_id):
            raise RegistryError.conflict("Selected publication does not belong to defined publisher.")
        if publication.no_identifier_granted:
            raise RegistryError.conflict(
                "Cannot generate identifiers for publication that has had its application denied."
            )
        if not publication.publications_public or publication.publications_intra:
            raise RegistryError.conflict(
                "Cannot generate identifiers for publication that is either not public "
                "or defined only for intra use."
            )
        is_sheet_music = publication.publication_type == PublicationType.SHEET_MUSIC.value
        if self.identifier_type == IdentifierType.ISMN and not is_sheet_music:
            raise RegistryError.conflict(
                "Cannot generate ISMN identifiers for publication that is not sheet music."
            )
        if self.identifier_type == IdentifierType.ISBN and is_sheet_music:
            raise RegistryError.conflict("Cannot generate ISBN identifiers for sheet music.")

        print_types = split_types(publication.type)
        electronical_types = split_types(publication.fileformat)
        if any(label not in PRINT_TYPES for label in print_types) or any(
            label not in ELECTRONICAL_TYPES for label in electronical_types
        ):
            raise RegistryError.conflict("Publication has unsupported type or fileformat values.")

        publication_format = publication.publication_format
        if publication_format == PublicationFormat.PRINT.value:
            consistent = bool(print_types) and not electronical_types
        elif publication_format == PublicationFormat.ELECTRONICAL.value:
            consistent = not print_types and bool(electronical_types)
        elif publication_format == PublicationFormat.PRINT_ELECTRONICAL.value:
            consistent = bool(print_types) and bool(electronical_types)
        else:
            raise RegistryError.conflict(
                "Cannot generate identifiers for unsupported publication format value."
            )
        if not consistent:
            raise RegistryError.conflict("Conflict in publication format and type definitions.")

        return print_types + electronical_types

    def _canceled_pool(self, publisher_id: int, state: AllocationState) -> list[IdentifierCanceled]:
        active = state.active_subrange
        if state.search_scope == SEARCH_SAME_CATEGORY:
            subrange_ids = [
                row.id
                for row in self.db.query(self.subrange_model.id)
                .filter(self.subrange_model.publisher_id == int(publisher_id))
                .filter(self.subrange_model.category == active.category)
                .all()
            ]
        else:
            subrange_ids = [active.id]

        return (
            self.db.query(IdentifierCanceled)
            .filter(IdentifierCanceled.identifier_type == self.identifier_type.value)
            .filter(IdentifierCanceled.publisher_id == int(publisher_id))
            .filter(IdentifierCanceled.subrange_id.in_(subrange_ids))
            .order_by(IdentifierCanceled.id.asc())
            .with_for_update()
            .all()
        )

    # -- public entry --------------------------------------------------------

    def generate_batch(
        self,
        publisher_id: int,
        user: RequestIdentity,
        *,
        count: int | None = None,
        publication_id: int | None = None,
        tx: Transaction | None = None,
    ) -> IdentifierBatch:
        if count is not None and publication_id:
            raise RegistryError.unprocessable(
                "If publication is defined for identifier batch generation, cannot define count."
            )
        if count is None and not publication_id:
            raise RegistryError.unprocessable("Either count or publication must be defined.")
        if count is not None and count > settings.IDENTIFIER_BATCH_MAX_SIZE:
            raise RegistryError.conflict(
                "Cannot create identifier batch this large: maximum identifiers to be created "
                f"is {settings.IDENTIFIER_BATCH_MAX_SIZE}."
            )
        if count is not None and count < 1:
            raise RegistryError.unprocessable("Identifier count must be a positive integer.")

        with transaction_scope(self.db, tx, name="generate_identifier_batch") as scope:
            batch = self._allocate(publisher_id, user, count, publication_id, scope)
        return batch

    # -- allocation loop -----------------------------------------------------

    def _allocate(
        self,
        publisher_id: int,
        user: RequestIdentity,
        count: int | None,
        publication_id: int | None,
        scope: Transaction,
    ) -> IdentifierBatch:
        publisher = self._get_publisher(publisher_id)
        if publisher.has_quitted:
            raise RegistryError.conflict("Cannot create identifiers for publisher that has quitted.")

        subranges = self._publisher_subranges(publisher.id)
        if not subranges:
            raise RegistryError.conflict(
                "Cannot create identifiers for publisher that does not have publisher ranges "
                "of selected type."
            )
        active = self._active_subrange(publisher, subranges)

        publication = None
        publication_types: list[str] = []
        if publication_id:
            publication = self.db.get(PublicationIsbn, int(publication_id))
            if publication is None:
                raise RegistryError.not_found("Publication was not found.")
            publication_types = self._publication_types(publication, publisher.id)
            count = len(publication_types)
            if count > settings.IDENTIFIER_BATCH_MAX_SIZE:
                raise RegistryError.conflict("Publication requires too many identifiers.")

        state = AllocationState(remaining=count, active_subrange=active)
        while True:
            pool = self._canceled_pool(publisher.id, state)
            new_required = max(0, state.remaining - len(pool))
            if new_required > state.active_subrange.free:
                self._switch_subrange(state, publisher, subranges, new_required, publication, user, scope)
                continue
            break

        reuse_count = min(state.remaining, len(pool))
        minted = self._mint(state.active_subrange, new_required, publication_types, user)
        reused = self._reuse(pool[:reuse_count], publication_types[len(minted):], user)

        batch = IdentifierBatch(
            identifier_type=self.identifier_type.value,
            identifier_count=len(minted),
            identifier_canceled_used_count=len(reused),
            identifier_canceled_count=0,
            identifier_deleted_count=0,
            publisher_id=publisher.id,
            publication_id=publication.id if publication is not None else None,
            subrange_id=state.active_subrange.id,
            created_by=user.actor,
        )
        self.db.add(batch)
        self.db.flush()

        entries = minted + reused
        if any(not is_valid_identifier(entry.identifier, self.identifier_type) for entry in entries):
            raise RegistryError.internal(
                "Encountered an error during identifier creation. Some identifier was malformed."
            )
        self._ensure_unused([entry.identifier for entry in entries])

        self.db.add_all(
            [
                Identifier(
                    identifier=entry.identifier,
                    subrange_id=entry.subrange_id,
                    identifier_batch_id=batch.id,
                    publication_type=entry.publication_type,
                )
                for entry in entries
            ]
        )
        for row in pool[:reuse_count]:
            self.db.delete(row)

        if publication is not None:
            self._assign_to_publication(publication, entries, user)

        self.db.flush()
        flow_info(
            logger,
            "identifier_batch_created type=%s batch_id=%s publisher_id=%s new=%s reused=%s subrange_id=%s",
            self.identifier_type.value,
            batch.id,
            publisher.id,
            batch.identifier_count,
            batch.identifier_canceled_used_count,
            batch.subrange_id,
            category="allocation",
        )
        return batch

    def _switch_subrange(
        self,
        state: AllocationState,
        publisher: PublisherIsbn,
        subranges: list,
        new_required: int,
        publication: PublicationIsbn | None,
        user: RequestIdentity,
        scope: Transaction,
    ) -> None:
        from idregistry.services.identifier_service import IdentifierService
        from idregistry.services.subrange_service import SubrangeService

        active = state.active_subrange
        if state.switched:
            raise RegistryError.conflict("Cannot produce enough identifiers from publisher's available subranges.")
        # Cross sub-range allocation is limited to ten-identifier sub-ranges serving a publication.
        if active.category != 1 or publication is None:
            raise RegistryError.conflict("Cannot produce enough identifiers from available active subrange.")

        alternatives = [
            row
            for row in subranges
            if row.id != active.id and not row.is_closed and row.category == active.category
        ]
        shortfall = new_required - active.free
        if not alternatives or alternatives[0].free + alternatives[0].canceled < shortfall:
            raise RegistryError.conflict("Cannot produce enough identifiers from publisher's available subranges.")
        alternative = alternatives[0]

        flow_info(
            logger,
            "subrange_overflow type=%s publisher_id=%s from_subrange=%s to_subrange=%s shortfall=%s",
            self.identifier_type.value,
            publisher.id,
            active.id,
            alternative.id,
            shortfall,
            category="allocation",
        )

        if active.free > 0:
            drain = AllocationState(remaining=active.free + active.canceled, active_subrange=active)
            pool = self._canceled_pool(publisher.id, drain)
            minted = self._mint(active, drain.remaining - len(pool), [], user)
            reused = self._reuse(pool, [], user)
            temporary = IdentifierBatch(
                identifier_type=self.identifier_type.value,
                identifier_count=len(minted),
                identifier_canceled_used_count=len(reused),
                publisher_id=publisher.id,
                publication_id=None,
                subrange_id=active.id,
                created_by=user.actor,
            )
            self.db.add(temporary)
            self.db.flush()
            self.db.add_all(
                [
                    Identifier(
                        identifier=entry.identifier,
                        subrange_id=entry.subrange_id,
                        identifier_batch_id=temporary.id,
                        publication_type="",
                    )
                    for entry in minted + reused
                ]
            )
            for row in pool:
                self.db.delete(row)
            self.db.flush()

            # The final cancellation destroys the temporary batch.
            retirement = IdentifierService(self.db)
            for entry in minted + reused:
                retirement.cancel(entry.identifier, user, tx=scope)

        SubrangeService(self.db, self.identifier_type).activate(alternative.id, user, tx=scope)
        state.active_subrange = alternative
        state.search_scope = SEARCH_SAME_CATEGORY
        state.switched = True

    # -- minting primitives --------------------------------------------------

    def _mint(
        self,
        subrange,
        quantity: int,
        publication_types: list[str],
        user: RequestIdentity,
    ) -> list[MintedIdentifier]:
        if quantity <= 0:
            return []

        start = int(subrange.next)
        end = int(subrange.range_end)
        if start + quantity > end + 1:
            raise RegistryError.conflict(
                "Subrange's internal counters produced an error. "
                "Please review subrange begin, end and free attributes."
            )
        if start < int(subrange.range_begin):
            raise RegistryError.conflict("Subrange next pointer is below the subrange begin.")

        body_prefix = subrange.publisher_identifier.replace("-", "")
        minted: list[MintedIdentifier] = []
        for offset in range(quantity):
            item = str(start + offset).zfill(subrange.category)
            check = isbn_check_digit(f"{body_prefix}{item}")
            minted.append(
                MintedIdentifier(
                    identifier=f"{subrange.publisher_identifier}-{item}-{check}",
                    subrange_id=subrange.id,
                    publication_type=publication_types[offset] if offset < len(publication_types) else "",
                )
            )

        subrange.next = str(start + quantity).zfill(subrange.category)
        subrange.free -= quantity
        subrange.taken += quantity
        if subrange.free < 0:
            raise RegistryError.internal("Cannot update subrange: results into invalid counter values.")
        if subrange.is_exhausted:
            subrange.is_active = False
            subrange.is_closed = True
        subrange.modified_by = user.actor
        return minted

    def _reuse(
        self,
        pool: list[IdentifierCanceled],
        publication_types: list[str],
        user: RequestIdentity,
    ) -> list[MintedIdentifier]:
        reused: list[MintedIdentifier] = []
        for index, canceled in enumerate(pool):
            owner = (
                self.db.query(self.subrange_model)
                .filter(self.subrange_model.id == canceled.subrange_id)
                .with_for_update()
                .first()
            )
            if owner is None:
                raise RegistryError.conflict("Subrange of a canceled identifier could not be found.")
            if owner.canceled - 1 < 0:
                raise RegistryError.conflict(
                    "Cannot decrease canceled if subrange has not got enough canceled identifiers."
                )
            owner.canceled -= 1
            owner.taken += 1
            if owner.is_exhausted:
                owner.is_active = False
                owner.is_closed = True
            owner.modified_by = user.actor
            reused.append(
                MintedIdentifier(
                    identifier=canceled.identifier,
                    subrange_id=canceled.subrange_id,
                    publication_type=publication_types[index] if index < len(publication_types) else "",
                )
            )
        return reused

    def _ensure_unused(self, identifiers: list[str]) -> None:
        if not identifiers:
            return
        clash = (
            self.db.query(Identifier.identifier)
            .filter(Identifier.identifier.in_(identifiers))
            .first()
        )
        if clash is not None:
            raise RegistryError.conflict(f"Identifier {clash[0]} has already been issued.")

    def _assign_to_publication(
        self,
        publication: PublicationIsbn,
        entries: list[MintedIdentifier],
        user: RequestIdentity,
    ) -> None:
        assigned = {entry.identifier: entry.publication_type for entry in entries}
        publication_format = publication.publication_format
        if publication_format in (PublicationFormat.PRINT.value, PublicationFormat.PRINT_ELECTRONICAL.value):
            publication.publication_identifier_print = dump_identifier_map(print_map(assigned))
        if publication_format in (
            PublicationFormat.ELECTRONICAL.value,
            PublicationFormat.PRINT_ELECTRONICAL.value,
        ):
            publication.publication_identifier_electronical = dump_identifier_map(
                electronical_map(assigned)
            )
        publication.publication_identifier_type = self.identifier_type.value
        publication.on_process = False
        publication.modified_by = user.actor
