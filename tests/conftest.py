from __future__ import annotations

import os
import sys

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import importlib

fastapi_app = importlib.import_module("idregistry.main").app
from idregistry.db.base import Base
from idregistry.db.session import get_db

# Ensure all models are registered with SQLAlchemy metadata
import idregistry.models  # noqa: F401
from idregistry.models.issn import IssnForm, PublicationIssn, PublisherIssn
from idregistry.models.publication import PublicationIsbn
from idregistry.models.publisher import PublisherIsbn
from idregistry.schemas.ranges import IssnRangeCreate, RangeCreate
from idregistry.schemas.request_identity import RequestIdentity
from idregistry.services.issn_range_service import IssnRangeService
from idregistry.services.range_service import RangeService


@pytest.fixture(scope="session")
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, _connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    return engine


@pytest.fixture(scope="function")
def db_session(engine):
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function")
def client(engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def _override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    fastapi_app.dependency_overrides[get_db] = _override_get_db
    with TestClient(fastapi_app) as test_client:
        yield test_client
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def admin():
    return RequestIdentity(email="Admin@Example.com", auth_source="legacy_header", role_names=["ADMIN"])


@pytest.fixture
def publisher_user():
    return RequestIdentity(email="publisher@example.com", auth_source="legacy_header", role_names=[])


class RegistrySeed:
    """Builds registry fixtures through the services so counters stay consistent."""

    def __init__(self, db, user: RequestIdentity):
        self.db = db
        self.user = user

    def publisher(self, name: str = "Kustannus Oy") -> PublisherIsbn:
        publisher = PublisherIsbn(official_name=name)
        self.db.add(publisher)
        self.db.commit()
        return publisher

    def isbn_range(
        self,
        *,
        category: int = 3,
        begin: str = "100",
        end: str = "199",
        lang_group: int = 951,
        prefix: int = 978,
    ):
        payload = RangeCreate(
            prefix=prefix,
            lang_group=lang_group,
            category=category,
            range_begin=begin,
            range_end=end,
        )
        return RangeService(self.db, "ISBN").create(payload, self.user)

    def ismn_range(self, *, category: int = 3, begin: str = "100", end: str = "199"):
        payload = RangeCreate(prefix="979-0", category=category, range_begin=begin, range_end=end)
        return RangeService(self.db, "ISMN").create(payload, self.user)

    def subrange(self, range_row, publisher: PublisherIsbn, selection: str, identifier_type: str = "ISBN"):
        return RangeService(self.db, identifier_type).generate_subrange(
            range_row.id, publisher.id, selection, self.user
        )

    def publication(
        self,
        publisher: PublisherIsbn,
        *,
        publication_format: str = "PRINT",
        print_types: str = "PAPERBACK",
        fileformats: str = "",
        publication_type: str = "BOOK",
    ) -> PublicationIsbn:
        publication = PublicationIsbn(
            publisher_id=publisher.id,
            title="Kirja",
            publication_type=publication_type,
            publication_format=publication_format,
            type=print_types,
            fileformat=fileformats,
        )
        self.db.add(publication)
        self.db.commit()
        return publication

    def issn_range(self, *, block: str = "1234", begin: str = "000", end: str = "002", active: bool = True):
        payload = IssnRangeCreate(block=block, range_begin=begin, range_end=end, is_active=active)
        return IssnRangeService(self.db).create(payload, self.user)

    def issn_publications(self, count: int, *, medium: str = "PRINTED") -> list[PublicationIssn]:
        publisher = PublisherIssn(official_name="Lehtitalo Oy")
        self.db.add(publisher)
        self.db.flush()
        form = IssnForm(publisher_id=publisher.id, publication_count=count)
        self.db.add(form)
        self.db.flush()
        publications = [
            PublicationIssn(
                publisher_id=publisher.id,
                form_id=form.id,
                title=f"Aikakauslehti {index}",
                medium=medium,
            )
            for index in range(count)
        ]
        self.db.add_all(publications)
        self.db.commit()
        return publications


@pytest.fixture
def seed(db_session, admin):
    return RegistrySeed(db_session, admin)
