from __future__ import annotations

import pytest

from idregistry.core.errors import RegistryError
from idregistry.models.identifiers import IdentifierBatch, IdentifierCanceled
from idregistry.models.ranges import IsbnSubRange, IsbnSubRangeCanceled
from idregistry.services.identifier_service import IdentifierService
from idregistry.services.subrange_service import SubrangeService


def test_subrange_state_machine_tracks_publisher_reference(seed, db_session, admin):
    row = seed.isbn_range()
    publisher = seed.publisher()
    first = seed.subrange(row, publisher, "100")
    second = seed.subrange(row, publisher, "101")
    service = SubrangeService(db_session, "ISBN")

    service.activate(first.id, admin)
    db_session.refresh(second)
    assert first.is_active is True and second.is_active is False
    assert publisher.active_identifier_isbn == "978-951-100"

    with pytest.raises(RegistryError):
        service.activate(first.id, admin)

    service.deactivate(first.id, admin)
    assert first.is_active is False
    assert publisher.active_identifier_isbn == ""

    service.close(first.id, admin)
    assert first.is_closed is True
    with pytest.raises(RegistryError):
        service.activate(first.id, admin)

    service.open(first.id, admin)
    assert first.is_closed is False
    with pytest.raises(RegistryError):
        service.open(first.id, admin)


def test_closing_active_subrange_clears_publisher_reference(seed, db_session, admin):
    row = seed.isbn_range()
    publisher = seed.publisher()
    subrange = seed.subrange(row, publisher, "100")

    SubrangeService(db_session, "ISBN").close(subrange.id, admin)

    assert subrange.is_active is False and subrange.is_closed is True
    assert publisher.active_identifier_isbn == ""


def test_remove_last_issued_subrange_rolls_back_range(seed, db_session, admin):
    row = seed.isbn_range()
    publisher = seed.publisher()
    subrange = seed.subrange(row, publisher, "100")

    assert SubrangeService(db_session, "ISBN").remove(subrange.id, admin) is True

    db_session.refresh(row)
    assert row.next == "100"
    assert row.free == 100 and row.taken == 0 and row.canceled == 0
    assert db_session.query(IsbnSubRange).count() == 0
    assert db_session.query(IsbnSubRangeCanceled).count() == 0
    assert publisher.active_identifier_isbn == ""


def test_remove_refused_once_identifiers_were_given(seed, db_session, admin):
    row = seed.isbn_range()
    publisher = seed.publisher()
    subrange = seed.subrange(row, publisher, "100")
    SubrangeService(db_session, "ISBN").generate_identifier_batch(publisher.id, admin, count=2)

    with pytest.raises(RegistryError) as exc_info:
        SubrangeService(db_session, "ISBN").remove(subrange.id, admin)
    assert exc_info.value.status_code == 409
    assert db_session.query(IsbnSubRange).count() == 1


def test_remove_after_every_identifier_was_canceled_purges_pool(seed, db_session, admin):
    row = seed.isbn_range()
    publisher = seed.publisher()
    subrange = seed.subrange(row, publisher, "100")
    SubrangeService(db_session, "ISBN").generate_identifier_batch(publisher.id, admin, count=2)

    retirement = IdentifierService(db_session)
    retirement.cancel("978-951-100-000-6", admin)
    retirement.cancel("978-951-100-001-3", admin)
    assert db_session.query(IdentifierBatch).count() == 0
    assert subrange.canceled == 2 and subrange.taken == 0

    SubrangeService(db_session, "ISBN").remove(subrange.id, admin)

    assert db_session.query(IdentifierCanceled).count() == 0
    assert db_session.query(IsbnSubRange).count() == 0
    db_session.refresh(row)
    assert row.free == 100 and row.taken == 0


def test_remove_refused_when_pool_does_not_match_counter(seed, db_session, admin):
    row = seed.isbn_range()
    publisher = seed.publisher()
    subrange = seed.subrange(row, publisher, "100")
    SubrangeService(db_session, "ISBN").generate_identifier_batch(publisher.id, admin, count=1)
    IdentifierService(db_session).cancel("978-951-100-000-6", admin)

    db_session.query(IdentifierCanceled).delete()
    db_session.commit()

    with pytest.raises(RegistryError):
        SubrangeService(db_session, "ISBN").remove(subrange.id, admin)
