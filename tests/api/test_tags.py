from __future__ import annotations

from fastapi.testclient import TestClient

from tests.conftest import CRED_DEF_ID, SCHEMA_ID


def test_list_includes_predefined_tags(client: TestClient) -> None:
    resp = client.get("/catalogue/tags")
    assert resp.status_code == 200
    tags = {t["id"]: t for t in resp.json()}
    assert {"bc-gov", "canada", "sovrin", "candy", "other"} <= set(tags)
    assert tags["bc-gov"]["isPredefined"] is True


def test_create_custom_tag(client: TestClient) -> None:
    resp = client.post("/catalogue/tags", json={"name": "  Northern Health Authority "})

    assert resp.status_code == 201
    assert resp.json() == {
        "id": "northern-health-authority",
        "name": "Northern Health Authority",
        "isPredefined": False,
    }
    ids = [t["id"] for t in client.get("/catalogue/tags").json()]
    assert "northern-health-authority" in ids


def test_create_duplicate_tag(client: TestClient) -> None:
    assert client.post("/catalogue/tags", json={"name": "Acme"}).status_code == 201
    assert client.post("/catalogue/tags", json={"name": "ACME"}).status_code == 409


def test_create_tag_colliding_with_predefined(client: TestClient) -> None:
    assert client.post("/catalogue/tags", json={"name": "Canada"}).status_code == 409


def test_create_blank_tag(client: TestClient) -> None:
    assert client.post("/catalogue/tags", json={"name": "   "}).status_code == 422
    assert client.post("/catalogue/tags", json={"name": ""}).status_code == 422


def test_custom_tag_usable_for_import_classification(client: TestClient) -> None:
    client.post("/catalogue/tags", json={"name": "Acme"})
    body = {
        "schemaData": {
            "name": "BC Person",
            "version": "1.0",
            "schemaId": SCHEMA_ID,
            "ledger": "candy:dev",
            "attributes": ["given_names"],
        },
        "credDefData": {
            "credDefId": CRED_DEF_ID,
            "schemaId": SCHEMA_ID,
            "ledger": "candy:dev",
        },
        "ecosystemTagId": "acme",
    }

    resp = client.post("/catalogue", json=body)
    assert resp.status_code == 201
    assert resp.json()["ecosystemTag"] == "acme"


def test_delete_custom_tag(client: TestClient) -> None:
    client.post("/catalogue/tags", json={"name": "Acme"})

    assert client.delete("/catalogue/tags/acme").status_code == 204
    assert client.delete("/catalogue/tags/acme").status_code == 404


def test_delete_predefined_tag(client: TestClient) -> None:
    assert client.delete("/catalogue/tags/bc-gov").status_code == 409
    ids = [t["id"] for t in client.get("/catalogue/tags").json()]
    assert "bc-gov" in ids
