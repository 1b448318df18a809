from __future__ import annotations

import json
import sys
from collections.abc import Iterator
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

# Ensure repo root is on sys.path so `import app` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import httpx  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.api.dependencies import (  # noqa: E402
    catalogue_repo,
    get_ledger_parser,
    get_orbit_settings_store,
    get_registry_client,
    tag_repo,
)
from app.main import app  # noqa: E402
from app.models.catalogue import CatalogueCredential  # noqa: E402
from app.repos.catalogue_repo import InMemoryCatalogueRepo  # noqa: E402
from app.services import token_service  # noqa: E402
from app.services.ledger_parser import LedgerReferenceParser  # noqa: E402
from app.services.orbit_settings import OrbitSettings, OrbitSettingsStore  # noqa: E402
from app.services.registration import RegistryRegistrationCoordinator  # noqa: E402
from app.services.registry_client import OrbitRegistryClient  # noqa: E402
from app.services.round_lock import InMemoryRoundLock, round_lock  # noqa: E402

DID = "Th7MpTaRZVRYnPiabds81Y"
SCHEMA_ID = f"{DID}:2:BC Person:1.0"
CRED_DEF_ID = f"{DID}:3:CL:12345:default"
ORBIT_BASE_URL = "https://orbit.test"


@pytest.fixture(autouse=True)
def reset_catalogue_state() -> Iterator[None]:
    """Clear the in-memory repos and locks between tests."""
    catalogue_repo._by_id.clear()
    tag_repo.reset()
    if hasattr(round_lock, "_locks"):
        round_lock._locks.clear()  # type: ignore[union-attr]
    yield
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Fake external services (httpx.MockTransport)
# ---------------------------------------------------------------------------


class FakeRegistry:
    """Scripted registry.  Unscripted calls succeed with a generated id."""

    def __init__(self) -> None:
        self.calls: list[httpx.Request] = []
        self._scripted: dict[str, list[Any]] = {}
        self._counter = 0

    def respond(
        self,
        path: str,
        status_code: int = 200,
        json_body: Any = None,
        text: str | None = None,
    ) -> None:
        if text is not None:
            response = httpx.Response(status_code, text=text)
        else:
            response = httpx.Response(status_code, json=json_body)
        self._scripted.setdefault(path, []).append(response)

    def fail(self, path: str, exc_type: type[httpx.TransportError]) -> None:
        self._scripted.setdefault(path, []).append(exc_type)

    def _default(self, request: httpx.Request) -> httpx.Response:
        self._counter += 1
        body = json.loads(request.content)
        path = request.url.path
        if path == "/api/schema/store":
            return httpx.Response(200, json={"id": f"orbit-schema-{self._counter}"})
        if path == "/api/schema":
            return httpx.Response(
                200,
                json={
                    "data": {
                        "id": f"orbit-schema-{self._counter}",
                        "schemaId": f"{DID}:2:{body['name']}:{body['version']}",
                        "ledger": "bcovrin:test",
                    }
                },
            )
        if "credDefId" in body:
            return httpx.Response(200, json={"id": f"orbit-creddef-{self._counter}"})
        return httpx.Response(
            200,
            json={
                "data": {
                    "id": f"orbit-creddef-{self._counter}",
                    "credDefId": f"{DID}:3:CL:999:{body['tag']}",
                }
            },
        )

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        queued = self._scripted.get(request.url.path)
        if queued:
            item = queued.pop(0)
            if isinstance(item, type):
                raise item("scripted failure", request=request)
            return item
        return self._default(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def paths(self) -> list[str]:
        return [r.url.path for r in self.calls]

    def body(self, index: int) -> dict[str, Any]:
        return json.loads(self.calls[index].content)


class FakeExplorer:
    """Serves canned explorer pages by URL."""

    def __init__(self) -> None:
        self.pages: dict[str, httpx.Response] = {}
        self.requests: list[httpx.Request] = []

    def page(self, url: str, body: str, status_code: int = 200) -> None:
        self.pages[url] = httpx.Response(status_code, text=body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.pages.get(str(request.url))
        return response if response is not None else httpx.Response(404, text="not found")

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def registry() -> FakeRegistry:
    return FakeRegistry()


@pytest.fixture
def explorer() -> FakeExplorer:
    return FakeExplorer()


@pytest.fixture
def orbit_store(tmp_path: Path) -> OrbitSettingsStore:
    """Registry configured through the environment fallback."""
    return OrbitSettingsStore(
        tmp_path / "orbit-settings.json",
        "test-encryption-key",
        fallback=OrbitSettings(
            base_url=ORBIT_BASE_URL, lob_id="lob-1", api_key="secret-key", source="env"
        ),
    )


@pytest.fixture
def unconfigured_store(tmp_path: Path) -> OrbitSettingsStore:
    return OrbitSettingsStore(tmp_path / "orbit-settings.json", "test-encryption-key")


@pytest.fixture
def repo() -> InMemoryCatalogueRepo:
    return InMemoryCatalogueRepo()


@pytest.fixture
def lock() -> InMemoryRoundLock:
    return InMemoryRoundLock()


@pytest.fixture
def coordinator(
    registry: FakeRegistry,
    orbit_store: OrbitSettingsStore,
    repo: InMemoryCatalogueRepo,
    lock: InMemoryRoundLock,
) -> RegistryRegistrationCoordinator:
    client = OrbitRegistryClient(orbit_store, transport=registry.transport)
    return RegistryRegistrationCoordinator(client, repo, lock)


@pytest.fixture
def client(
    registry: FakeRegistry,
    explorer: FakeExplorer,
    orbit_store: OrbitSettingsStore,
) -> TestClient:
    app.dependency_overrides[get_orbit_settings_store] = lambda: orbit_store
    app.dependency_overrides[get_registry_client] = lambda: OrbitRegistryClient(
        orbit_store, transport=registry.transport
    )
    app.dependency_overrides[get_ledger_parser] = lambda: LedgerReferenceParser(
        transport=explorer.transport
    )
    return TestClient(app)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def make_credential(**overrides: Any) -> CatalogueCredential:
    values: dict[str, Any] = {
        "schema_id": SCHEMA_ID,
        "cred_def_id": CRED_DEF_ID,
        "ledger": "candy:dev",
        "attributes": ("given_names", "family_name", "birthdate"),
        "name": "BC Person",
        "version": "1.0",
        "ecosystem_tag": "bc-gov",
        "imported_at": datetime(2026, 1, 1, tzinfo=UTC),
        "imported_by": "tester",
        "issuer_did": DID,
    }
    values.update(overrides)
    return CatalogueCredential.new(**values)


def session_cookie(username: str = "alice@example.com") -> dict[str, str]:
    return {"session": token_service.create_session_token(sub=username)}
