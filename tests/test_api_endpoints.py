from __future__ import annotations

import hashlib

from idregistry.models.issn import IssnForm, PublicationIssn, PublisherIssn
from idregistry.models.publisher import PublisherIsbn

ADMIN_HEADERS = {"X-User-Email": "admin@example.com", "X-User-Roles": "ADMIN"}


def _seed_publisher(db_session) -> int:
    publisher = PublisherIsbn(official_name="Kustannus Oy")
    db_session.add(publisher)
    db_session.commit()
    return publisher.id


def _seed_issn_publication(db_session) -> int:
    publisher = PublisherIssn(official_name="Lehtitalo Oy")
    db_session.add(publisher)
    db_session.flush()
    form = IssnForm(publisher_id=publisher.id, publication_count=1)
    db_session.add(form)
    db_session.flush()
    publication = PublicationIssn(
        publisher_id=publisher.id,
        form_id=form.id,
        title="Aikakauslehti",
        medium="ONLINE",
    )
    db_session.add(publication)
    db_session.commit()
    return publication.id


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "up"}


def test_isbn_allocation_flow(client, db_session):
    publisher_id = _seed_publisher(db_session)

    created = client.post(
        "/api/v1/ranges/ISBN",
        json={"prefix": 978, "lang_group": 951, "category": 3, "range_begin": "100", "range_end": "199"},
        headers=ADMIN_HEADERS,
    )
    assert created.status_code == 201
    range_id = created.json()["id"]
    assert created.json()["next"] == "100"
    assert created.json()["created_by"] == "admin@example.com"

    options = client.get(f"/api/v1/ranges/ISBN/{range_id}/subrange-options")
    assert options.status_code == 200
    assert options.json()[0]["value"] == "100"

    subrange = client.post(
        f"/api/v1/ranges/ISBN/{range_id}/subranges",
        json={"publisher_id": publisher_id, "selection": "100"},
        headers=ADMIN_HEADERS,
    )
    assert subrange.status_code == 201
    assert subrange.json()["publisher_identifier"] == "978-951-100"

    listed = client.get("/api/v1/subranges/ISBN", params={"publisher_id": publisher_id})
    assert [row["publisher_identifier"] for row in listed.json()] == ["978-951-100"]

    batch = client.post(
        "/api/v1/subranges/ISBN/batches",
        json={"publisher_id": publisher_id, "count": 2},
        headers=ADMIN_HEADERS,
    )
    assert batch.status_code == 201
    batch_id = batch.json()["id"]
    assert batch.json()["identifier_count"] == 2

    download = client.get(f"/api/v1/identifier-batches/{batch_id}/download")
    assert download.status_code == 200
    assert "978-951-100-000-6\r\n978-951-100-001-3\r\n" in download.text
    assert download.headers["X-Content-SHA256"] == hashlib.sha256(download.text.encode("utf-8")).hexdigest()

    detail = client.get(f"/api/v1/identifier-batches/{batch_id}", headers=ADMIN_HEADERS)
    assert [row["identifier"] for row in detail.json()["identifiers"]] == [
        "978-951-100-000-6",
        "978-951-100-001-3",
    ]

    canceled = client.post(
        "/api/v1/identifiers/cancel",
        json={"identifier": "978-951-100-000-6"},
        headers=ADMIN_HEADERS,
    )
    assert canceled.status_code == 200
    assert canceled.json() == {"identifier": "978-951-100-000-6", "canceled": True}

    refused = client.delete(f"/api/v1/identifier-batches/{batch_id}", headers=ADMIN_HEADERS)
    assert refused.status_code == 409
    assert refused.json()["detail"]["code"] == "CONFLICT"

    queried = client.post("/api/v1/identifier-batches/query", json={"publisher_id": publisher_id})
    assert queried.status_code == 200
    assert queried.json()["totalDoc"] == 1
    assert queried.json()["results"][0]["identifierCanceledCount"] == 1


def test_engine_errors_map_to_http_status(client, db_session):
    publisher_id = _seed_publisher(db_session)

    assert client.get("/api/v1/ranges/ISXN").status_code == 422
    assert client.get("/api/v1/ranges/ISBN/999").status_code == 404

    no_subrange = client.post(
        "/api/v1/subranges/ISBN/batches",
        json={"publisher_id": publisher_id, "count": 1},
        headers=ADMIN_HEADERS,
    )
    assert no_subrange.status_code == 409

    ambiguous = client.post(
        "/api/v1/subranges/ISBN/batches",
        json={"publisher_id": publisher_id, "count": 1, "publication_id": 1},
    )
    assert ambiguous.status_code == 422

    created = client.post(
        "/api/v1/ranges/ISMN",
        json={"prefix": "979-0", "category": 3, "range_begin": "100", "range_end": "199"},
        headers=ADMIN_HEADERS,
    )
    assert created.status_code == 201
    unknown = client.post(f"/api/v1/ranges/ISMN/{created.json()['id']}/explode", headers=ADMIN_HEADERS)
    assert unknown.status_code == 404

    closed = client.post(f"/api/v1/ranges/ISMN/{created.json()['id']}/close", headers=ADMIN_HEADERS)
    assert closed.status_code == 200
    assert closed.json()["is_closed"] is True

    short_identifier = client.post("/api/v1/identifiers/remove", json={"identifier": "978-951"})
    assert short_identifier.status_code == 422


def test_issn_flow(client, db_session):
    publication_id = _seed_issn_publication(db_session)

    created = client.post(
        "/api/v1/issn/ranges",
        json={"block": "1234", "range_begin": "000", "range_end": "002", "is_active": True},
        headers=ADMIN_HEADERS,
    )
    assert created.status_code == 201
    assert created.json()["range_begin"] == "0006"
    range_id = created.json()["id"]

    assigned = client.post(f"/api/v1/issn/publications/{publication_id}/issn", headers=ADMIN_HEADERS)
    assert assigned.status_code == 200
    assert assigned.json()["issn"] == "1234-0006"
    assert assigned.json()["status"] == "WAITING_FOR_CONTROL_COPY"

    again = client.post(f"/api/v1/issn/publications/{publication_id}/issn", headers=ADMIN_HEADERS)
    assert again.status_code == 409

    assert client.delete(f"/api/v1/issn/ranges/{range_id}", headers=ADMIN_HEADERS).status_code == 409

    released = client.delete(f"/api/v1/issn/publications/{publication_id}/issn", headers=ADMIN_HEADERS)
    assert released.status_code == 200
    assert released.json()["issn"] == ""

    ranged = client.get(f"/api/v1/issn/ranges/{range_id}")
    assert ranged.json()["next"] == "0006"
    assert ranged.json()["free"] == 3

    assert client.delete(f"/api/v1/issn/ranges/{range_id}", headers=ADMIN_HEADERS).status_code == 204
