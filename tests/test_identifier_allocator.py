from __future__ import annotations

import json

import pytest

from idregistry.core.config import settings
from idregistry.core.errors import RegistryError
from idregistry.models.identifiers import Identifier, IdentifierBatch, IdentifierCanceled
from idregistry.services.checksum import isbn_check_digit
from idregistry.services.identifier_batch_service import IdentifierBatchService
from idregistry.services.identifier_service import IdentifierService
from idregistry.services.subrange_service import SubrangeService


def _identifier(publisher_identifier: str, item: str) -> str:
    body = publisher_identifier.replace("-", "") + item
    return f"{publisher_identifier}-{item}-{isbn_check_digit(body)}"


def _identifiers_of(db_session, batch) -> list[str]:
    rows = (
        db_session.query(Identifier)
        .filter(Identifier.identifier_batch_id == batch.id)
        .order_by(Identifier.id.asc())
        .all()
    )
    return [row.identifier for row in rows]


def _assert_ledger(subrange):
    capacity = int(subrange.range_end) - int(subrange.range_begin) + 1
    assert subrange.free + subrange.taken + subrange.canceled + subrange.deleted == capacity


def _small_subranges(seed, publisher, count: int = 1):
    """Category 5 range, so every publisher range holds ten identifiers."""
    row = seed.isbn_range(category=5, begin="10000", end="10009")
    return [seed.subrange(row, publisher, f"1000{index}") for index in range(count)]


def test_list_batch_mints_sequential_identifiers(seed, db_session, admin):
    row = seed.isbn_range()
    publisher = seed.publisher()
    subrange = seed.subrange(row, publisher, "100")

    batch = SubrangeService(db_session, "ISBN").generate_identifier_batch(publisher.id, admin, count=3)

    assert _identifiers_of(db_session, batch) == [
        "978-951-100-000-6",
        "978-951-100-001-3",
        "978-951-100-002-0",
    ]
    assert batch.identifier_type == "ISBN"
    assert batch.identifier_count == 3
    assert batch.identifier_canceled_used_count == 0
    assert batch.publication_id is None
    assert batch.subrange_id == subrange.id
    assert subrange.next == "003"
    assert subrange.free == 997 and subrange.taken == 3
    _assert_ledger(subrange)


def test_canceled_identifier_is_reissued_before_minting(seed, db_session, admin):
    row = seed.isbn_range()
    publisher = seed.publisher()
    subrange = seed.subrange(row, publisher, "100")
    service = SubrangeService(db_session, "ISBN")
    service.generate_identifier_batch(publisher.id, admin, count=3)

    IdentifierService(db_session).cancel("978-951-100-001-3", admin)
    assert subrange.canceled == 1
    assert db_session.query(IdentifierCanceled).count() == 1

    batch = service.generate_identifier_batch(publisher.id, admin, count=1)

    assert _identifiers_of(db_session, batch) == ["978-951-100-001-3"]
    assert batch.identifier_count == 0
    assert batch.identifier_canceled_used_count == 1
    assert subrange.next == "003"
    assert subrange.canceled == 0 and subrange.taken == 3
    assert db_session.query(IdentifierCanceled).count() == 0
    _assert_ledger(subrange)


def test_reuse_then_mint_in_one_batch(seed, db_session, admin):
    row = seed.isbn_range()
    publisher = seed.publisher()
    subrange = seed.subrange(row, publisher, "100")
    service = SubrangeService(db_session, "ISBN")
    service.generate_identifier_batch(publisher.id, admin, count=2)
    IdentifierService(db_session).cancel("978-951-100-000-6", admin)

    batch = service.generate_identifier_batch(publisher.id, admin, count=3)

    assert sorted(_identifiers_of(db_session, batch)) == [
        "978-951-100-000-6",
        "978-951-100-002-0",
        _identifier("978-951-100", "003"),
    ]
    assert batch.identifier_count == 2
    assert batch.identifier_canceled_used_count == 1
    assert subrange.next == "004"
    _assert_ledger(subrange)


def test_allocating_exact_remaining_free_closes_subrange(seed, db_session, admin):
    publisher = seed.publisher()
    (subrange,) = _small_subranges(seed, publisher)

    SubrangeService(db_session, "ISBN").generate_identifier_batch(publisher.id, admin, count=10)

    assert subrange.free == 0 and subrange.taken == 10
    assert subrange.next == "10"
    assert subrange.is_closed is True and subrange.is_active is False
    _assert_ledger(subrange)

    with pytest.raises(RegistryError) as exc_info:
        SubrangeService(db_session, "ISBN").generate_identifier_batch(publisher.id, admin, count=1)
    assert exc_info.value.status_code == 409


def test_canceling_from_exhausted_subrange_reopens_it_for_reuse(seed, db_session, admin):
    publisher = seed.publisher()
    (subrange,) = _small_subranges(seed, publisher)
    service = SubrangeService(db_session, "ISBN")
    service.generate_identifier_batch(publisher.id, admin, count=10)
    assert subrange.is_closed is True

    IdentifierService(db_session).cancel(_identifier("978-951-10000", "4"), admin)
    assert subrange.is_closed is False and subrange.is_active is False
    assert subrange.free == 0 and subrange.canceled == 1

    service.activate(subrange.id, admin)
    batch = service.generate_identifier_batch(publisher.id, admin, count=1)

    assert _identifiers_of(db_session, batch) == [_identifier("978-951-10000", "4")]
    assert subrange.canceled == 0 and subrange.taken == 10
    assert subrange.is_closed is True and subrange.is_active is False
    _assert_ledger(subrange)


def test_batch_ceiling_is_enforced_before_any_work(seed, db_session, admin, monkeypatch):
    row = seed.isbn_range()
    publisher = seed.publisher()
    subrange = seed.subrange(row, publisher, "100")
    monkeypatch.setattr(settings, "IDENTIFIER_BATCH_MAX_SIZE", 5)

    with pytest.raises(RegistryError) as exc_info:
        SubrangeService(db_session, "ISBN").generate_identifier_batch(publisher.id, admin, count=6)

    assert exc_info.value.status_code == 409
    assert db_session.query(IdentifierBatch).count() == 0
    assert subrange.next == "000"


@pytest.mark.parametrize("kwargs", [dict(), dict(count=1, publication_id=1), dict(count=0)])
def test_count_or_publication_is_required(seed, db_session, admin, kwargs):
    publisher = seed.publisher()
    with pytest.raises(RegistryError) as exc_info:
        SubrangeService(db_session, "ISBN").generate_identifier_batch(publisher.id, admin, **kwargs)
    assert exc_info.value.status_code == 422


def test_allocation_requires_active_subrange(seed, db_session, admin):
    row = seed.isbn_range()
    publisher = seed.publisher()
    subrange = seed.subrange(row, publisher, "100")
    SubrangeService(db_session, "ISBN").deactivate(subrange.id, admin)

    with pytest.raises(RegistryError) as exc_info:
        SubrangeService(db_session, "ISBN").generate_identifier_batch(publisher.id, admin, count=1)
    assert exc_info.value.status_code == 409


def test_allocation_requires_known_active_publisher(seed, db_session, admin):
    row = seed.isbn_range()
    publisher = seed.publisher()
    seed.subrange(row, publisher, "100")

    with pytest.raises(RegistryError) as exc_info:
        SubrangeService(db_session, "ISBN").generate_identifier_batch(9999, admin, count=1)
    assert exc_info.value.status_code == 404

    publisher.has_quitted = True
    db_session.commit()
    with pytest.raises(RegistryError) as exc_info:
        SubrangeService(db_session, "ISBN").generate_identifier_batch(publisher.id, admin, count=1)
    assert exc_info.value.status_code == 409


def test_failed_validation_rolls_back_every_mutation(seed, db_session, admin, monkeypatch):
    row = seed.isbn_range()
    publisher = seed.publisher()
    subrange = seed.subrange(row, publisher, "100")
    monkeypatch.setattr(
        "idregistry.services.identifier_allocator.is_valid_identifier",
        lambda identifier, identifier_type: False,
    )

    with pytest.raises(RegistryError) as exc_info:
        SubrangeService(db_session, "ISBN").generate_identifier_batch(publisher.id, admin, count=3)

    assert exc_info.value.status_code == 500
    db_session.refresh(subrange)
    assert subrange.next == "000"
    assert subrange.free == 1000 and subrange.taken == 0
    assert db_session.query(IdentifierBatch).count() == 0
    assert db_session.query(Identifier).count() == 0


def test_publication_batch_fills_identifier_maps(seed, db_session, admin):
    row = seed.isbn_range()
    publisher = seed.publisher()
    seed.subrange(row, publisher, "100")
    publication = seed.publication(
        publisher,
        publication_format="PRINT_ELECTRONICAL",
        print_types="PAPERBACK,HARDBACK",
        fileformats="PDF",
    )

    batch = SubrangeService(db_session, "ISBN").generate_identifier_batch(
        publisher.id, admin, publication_id=publication.id
    )

    assert batch.publication_id == publication.id
    assert batch.identifier_count == 3
    assert json.loads(publication.publication_identifier_print) == {
        "978-951-100-000-6": "PAPERBACK",
        "978-951-100-001-3": "HARDBACK",
    }
    assert json.loads(publication.publication_identifier_electronical) == {
        "978-951-100-002-0": "PDF",
    }
    assert publication.publication_identifier_type == "ISBN"
    assert publication.on_process is False

    with pytest.raises(RegistryError):
        SubrangeService(db_session, "ISBN").generate_identifier_batch(
            publisher.id, admin, publication_id=publication.id
        )


@pytest.mark.parametrize(
    "publication_kwargs",
    [
        dict(publication_format="PRINT", print_types="PAPERBACK", fileformats="PDF"),
        dict(publication_format="ELECTRONICAL", print_types="", fileformats=""),
        dict(publication_format="PRINT", print_types="PAPERBACK", publication_type="SHEET_MUSIC"),
    ],
)
def test_inconsistent_publication_is_refused(seed, db_session, admin, publication_kwargs):
    row = seed.isbn_range()
    publisher = seed.publisher()
    seed.subrange(row, publisher, "100")
    publication = seed.publication(publisher, **publication_kwargs)

    with pytest.raises(RegistryError) as exc_info:
        SubrangeService(db_session, "ISBN").generate_identifier_batch(
            publisher.id, admin, publication_id=publication.id
        )
    assert exc_info.value.status_code == 409


def test_ismn_requires_sheet_music(seed, db_session, admin):
    row = seed.ismn_range()
    publisher = seed.publisher()
    seed.subrange(row, publisher, "100", identifier_type="ISMN")
    book = seed.publication(publisher)
    score = seed.publication(publisher, publication_type="SHEET_MUSIC")
    service = SubrangeService(db_session, "ISMN")

    with pytest.raises(RegistryError):
        service.generate_identifier_batch(publisher.id, admin, publication_id=book.id)

    batch = service.generate_identifier_batch(publisher.id, admin, publication_id=score.id)
    identifiers = _identifiers_of(db_session, batch)
    assert identifiers == [_identifier("979-0-100", "00000")]
    assert json.loads(score.publication_identifier_print) == {identifiers[0]: "PAPERBACK"}
    assert score.publication_identifier_type == "ISMN"


def test_publication_overflow_switches_to_sibling_subrange(seed, db_session, admin):
    publisher = seed.publisher()
    first, second = _small_subranges(seed, publisher, count=2)
    service = SubrangeService(db_session, "ISBN")
    service.activate(first.id, admin)
    service.generate_identifier_batch(publisher.id, admin, count=9)
    assert first.free == 1

    publication = seed.publication(
        publisher,
        publication_format="PRINT_ELECTRONICAL",
        print_types="PAPERBACK,HARDBACK",
        fileformats="PDF",
    )
    batch = service.generate_identifier_batch(publisher.id, admin, publication_id=publication.id)

    last_of_first = _identifier("978-951-10000", "9")
    assert sorted(_identifiers_of(db_session, batch)) == sorted(
        [
            _identifier("978-951-10001", "0"),
            _identifier("978-951-10001", "1"),
            last_of_first,
        ]
    )
    assert batch.identifier_count == 2
    assert batch.identifier_canceled_used_count == 1
    assert batch.subrange_id == second.id
    assert json.loads(publication.publication_identifier_electronical) == {last_of_first: "PDF"}

    db_session.refresh(first)
    db_session.refresh(second)
    assert first.free == 0 and first.canceled == 0 and first.taken == 10
    assert first.is_closed is True and first.is_active is False
    assert second.is_active is True and second.next == "2"
    assert publisher.active_identifier_isbn == "978-951-10001"
    _assert_ledger(first)
    _assert_ledger(second)
    # The temporary batch used while draining the first range is gone.
    assert db_session.query(IdentifierBatch).count() == 2
    assert db_session.query(IdentifierCanceled).count() == 0


def _overflowed_publication_batch(seed, db_session, admin):
    """Leaves one free slot in the first range so a three identifier publication spills over."""
    publisher = seed.publisher()
    first, second = _small_subranges(seed, publisher, count=2)
    service = SubrangeService(db_session, "ISBN")
    service.activate(first.id, admin)
    service.generate_identifier_batch(publisher.id, admin, count=9)
    publication = seed.publication(
        publisher,
        publication_format="PRINT_ELECTRONICAL",
        print_types="PAPERBACK,HARDBACK",
        fileformats="PDF",
    )
    batch = service.generate_identifier_batch(publisher.id, admin, publication_id=publication.id)
    return first, second, batch


def test_removing_overflow_batch_returns_identifiers_to_their_own_subranges(seed, db_session, admin):
    first, second, batch = _overflowed_publication_batch(seed, db_session, admin)

    assert IdentifierBatchService(db_session).safe_remove(batch.id, admin) is True

    db_session.refresh(first)
    db_session.refresh(second)
    assert second.next == "0"
    assert second.free == 10 and second.taken == 0 and second.canceled == 0
    assert first.free == 0 and first.taken == 9 and first.canceled == 1
    assert first.is_closed is False
    pooled = db_session.query(IdentifierCanceled).one()
    assert pooled.identifier == _identifier("978-951-10000", "9")
    assert pooled.subrange_id == first.id
    _assert_ledger(first)
    _assert_ledger(second)


def test_canceling_overflow_identifier_updates_its_own_subrange(seed, db_session, admin):
    first, second, _ = _overflowed_publication_batch(seed, db_session, admin)

    IdentifierService(db_session).cancel(_identifier("978-951-10000", "9"), admin)

    db_session.refresh(first)
    db_session.refresh(second)
    assert first.canceled == 1 and first.taken == 9
    assert first.is_closed is False
    assert second.taken == 2 and second.canceled == 0 and second.next == "2"
    assert db_session.query(IdentifierCanceled).one().subrange_id == first.id
    _assert_ledger(first)
    _assert_ledger(second)



def test_list_overflow_is_refused_without_partial_state(seed, db_session, admin):
    publisher = seed.publisher()
    first, second = _small_subranges(seed, publisher, count=2)
    service = SubrangeService(db_session, "ISBN")
    service.activate(first.id, admin)
    service.generate_identifier_batch(publisher.id, admin, count=9)

    with pytest.raises(RegistryError) as exc_info:
        service.generate_identifier_batch(publisher.id, admin, count=3)

    assert exc_info.value.status_code == 409
    db_session.refresh(first)
    db_session.refresh(second)
    assert first.free == 1 and first.next == "9"
    assert second.free == 10
    assert db_session.query(IdentifierBatch).count() == 1


def test_overflow_without_sibling_is_refused(seed, db_session, admin):
    publisher = seed.publisher()
    (subrange,) = _small_subranges(seed, publisher)
    service = SubrangeService(db_session, "ISBN")
    service.generate_identifier_batch(publisher.id, admin, count=9)
    publication = seed.publication(publisher, print_types="PAPERBACK,HARDBACK")

    with pytest.raises(RegistryError):
        service.generate_identifier_batch(publisher.id, admin, publication_id=publication.id)

    db_session.refresh(subrange)
    assert subrange.free == 1
    assert publication.on_process is True
