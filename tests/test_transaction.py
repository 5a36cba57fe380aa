from __future__ import annotations

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from idregistry.core.errors import RegistryError
from idregistry.db.transaction import Transaction, transaction_scope
from idregistry.models.issn import IssnUsed


def test_constraint_violation_surfaces_as_conflict(seed, db_session):
    row = seed.issn_range()
    (publication,) = seed.issn_publications(1)

    with pytest.raises(RegistryError) as exc_info:
        with transaction_scope(db_session, name="duplicate_issn"):
            db_session.add_all(
                [
                    IssnUsed(issn="1234-0006", issn_range_id=row.id, publication_id=publication.id),
                    IssnUsed(issn="1234-0006", issn_range_id=row.id, publication_id=publication.id),
                ]
            )
            db_session.flush()

    assert exc_info.value.status_code == 409
    assert exc_info.value.code == "CONFLICT"
    assert isinstance(exc_info.value.__cause__, IntegrityError)
    assert db_session.query(IssnUsed).count() == 0


def test_joined_scope_leaves_commit_to_owner(seed, db_session):
    row = seed.issn_range()
    (publication,) = seed.issn_publications(1)

    with transaction_scope(db_session, name="outer") as tx:
        with transaction_scope(db_session, tx, name="inner") as joined:
            assert joined is tx
            db_session.add(IssnUsed(issn="1234-0006", issn_range_id=row.id, publication_id=publication.id))
        db_session.rollback()

    assert db_session.query(IssnUsed).count() == 0


def test_scope_rejects_handle_from_other_session(db_session, engine):
    with Session(bind=engine) as other:
        with pytest.raises(RegistryError) as exc_info:
            with transaction_scope(db_session, Transaction(session=other)):
                pass
    assert exc_info.value.status_code == 500
