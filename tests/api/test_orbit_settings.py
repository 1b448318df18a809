from __future__ import annotations

import json
from pathlib import Path

from fastapi.testclient import TestClient

from app.api.dependencies import get_orbit_settings_store
from app.main import app
from app.services.orbit_settings import OrbitSettingsStore


def _use(store: OrbitSettingsStore) -> None:
    app.dependency_overrides[get_orbit_settings_store] = lambda: store


def test_save_settings(client: TestClient, tmp_path: Path) -> None:
    path = tmp_path / "saved.json"
    _use(OrbitSettingsStore(path, "test-encryption-key"))

    resp = client.put(
        "/settings/orbit",
        json={"baseUrl": "https://orbit.example/", "lobId": "lob-7", "apiKey": "s3cret"},
    )

    assert resp.status_code == 200
    assert resp.json() == {
        "configured": True,
        "source": "file",
        "baseUrl": "https://orbit.example",
        "lobId": "lob-7",
        "hasApiKey": True,
    }
    assert "s3cret" not in path.read_text()
    assert json.loads(path.read_text())["lobId"] == "lob-7"


def test_save_without_key_keeps_key(client: TestClient, tmp_path: Path) -> None:
    _use(OrbitSettingsStore(tmp_path / "saved.json", "test-encryption-key"))
    client.put(
        "/settings/orbit",
        json={"baseUrl": "https://orbit.example", "lobId": "lob-7", "apiKey": "s3cret"},
    )

    resp = client.put(
        "/settings/orbit", json={"baseUrl": "https://orbit.example", "lobId": "lob-8"}
    )

    assert resp.status_code == 200
    assert resp.json()["hasApiKey"] is True
    assert resp.json()["lobId"] == "lob-8"


def test_save_invalid_settings(client: TestClient, tmp_path: Path) -> None:
    _use(OrbitSettingsStore(tmp_path / "saved.json", "test-encryption-key"))
    resp = client.put("/settings/orbit", json={"baseUrl": "not a url", "lobId": "lob"})
    assert resp.status_code == 422


def test_clear_settings_falls_back_to_environment(
    client: TestClient, orbit_store: OrbitSettingsStore
) -> None:
    client.put(
        "/settings/orbit",
        json={"baseUrl": "https://orbit.example", "lobId": "lob-7", "apiKey": "k"},
    )
    assert client.get("/catalogue/orbit-status").json()["source"] == "file"

    assert client.delete("/settings/orbit").status_code == 204

    assert client.get("/catalogue/orbit-status").json()["source"] == "env"


def test_connection_test_when_not_configured(
    client: TestClient, unconfigured_store: OrbitSettingsStore
) -> None:
    _use(unconfigured_store)

    resp = client.post("/settings/orbit/test")

    assert resp.status_code == 200
    assert resp.json() == {
        "success": False,
        "message": "Registry is not configured",
        "statusCode": None,
    }
