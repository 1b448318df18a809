from __future__ import annotations

from datetime import UTC, datetime

import pytest

from app.models.catalogue import (
    CatalogueCredential,
    ParsedCredDef,
    ParsedSchema,
    RegistrationState,
)
from app.repos.catalogue_repo import DuplicateCredentialError, InMemoryCatalogueRepo
from app.repos.tag_repo import InMemoryTagRepo
from app.services.errors import (
    DuplicateImportError,
    MismatchError,
    RoundInProgressError,
    TagNotFoundError,
    ValidationError,
)
from app.services.import_service import CatalogueImportService, ImportRequest
from app.services.record_builder import CatalogueRecordBuilder
from app.services.registration import RegistryRegistrationCoordinator
from app.services.orbit_settings import OrbitSettingsStore
from app.services.registry_client import SCHEMA_STORE_PATH, OrbitRegistryClient
from app.services.round_lock import InMemoryRoundLock
from tests.conftest import CRED_DEF_ID, DID, SCHEMA_ID, FakeRegistry, make_credential

NOW = datetime(2026, 3, 1, tzinfo=UTC)

SCHEMA = ParsedSchema(
    name="BC Person",
    version="1.0",
    schema_id=SCHEMA_ID,
    ledger="candy:dev",
    attributes=("given_names", "family_name", "birthdate"),
    source_url="https://candyscan.idlab.org/tx/CANDY_DEV/domain/12345",
    issuer_did=DID,
)
CRED_DEF = ParsedCredDef(
    cred_def_id=CRED_DEF_ID,
    schema_id=SCHEMA_ID,
    ledger="candy:dev",
    source_url="https://candyscan.idlab.org/tx/CANDY_DEV/domain/12346",
)


@pytest.fixture
def service(
    coordinator: RegistryRegistrationCoordinator,
    repo: InMemoryCatalogueRepo,
    lock: InMemoryRoundLock,
) -> CatalogueImportService:
    return CatalogueImportService(
        CatalogueRecordBuilder(clock=lambda: NOW),
        repo,
        InMemoryTagRepo(),
        coordinator,
        lock,
    )


def _request(**overrides) -> ImportRequest:
    values = dict(schema=SCHEMA, cred_def=CRED_DEF, ecosystem_tag_id="bc-gov")
    values.update(overrides)
    return ImportRequest(**values)


@pytest.mark.asyncio
async def test_import_without_registration(
    service: CatalogueImportService,
    registry: FakeRegistry,
    repo: InMemoryCatalogueRepo,
) -> None:
    credential = await service.import_credential(_request(), "alice@example.com")

    assert credential.imported_by == "alice@example.com"
    assert credential.imported_at == NOW
    assert credential.registration_state == RegistrationState.PENDING
    assert await repo.get_by_id(credential.id) == credential
    assert registry.calls == []


@pytest.mark.asyncio
async def test_import_with_registration_returns_registered_record(
    service: CatalogueImportService, registry: FakeRegistry
) -> None:
    credential = await service.import_credential(
        _request(register_with_orbit=True), "alice@example.com"
    )

    assert credential.registration_state == RegistrationState.FULLY_REGISTERED
    assert credential.orbit_schema_id == "orbit-schema-1"
    assert len(registry.calls) == 2


@pytest.mark.asyncio
async def test_registration_failure_keeps_the_import(
    service: CatalogueImportService,
    registry: FakeRegistry,
    repo: InMemoryCatalogueRepo,
) -> None:
    registry.respond(SCHEMA_STORE_PATH, 400, {"message": "duplicate schema"})

    credential = await service.import_credential(
        _request(register_with_orbit=True), "alice@example.com"
    )

    assert credential.registration_state == RegistrationState.SCHEMA_FAILED
    assert credential.orbit_schema_log is not None
    assert credential.orbit_schema_log.error_message == "duplicate schema"
    assert await repo.get_by_id(credential.id) is not None


@pytest.mark.asyncio
async def test_second_import_of_same_pair_is_rejected(
    service: CatalogueImportService, repo: InMemoryCatalogueRepo
) -> None:
    first = await service.import_credential(_request(), "alice@example.com")

    with pytest.raises(DuplicateImportError) as exc:
        await service.import_credential(_request(), "bob@example.com")

    assert exc.value.existing_id == first.id
    assert len(await repo.list_all()) == 1


@pytest.mark.asyncio
async def test_unknown_tag_is_rejected(
    service: CatalogueImportService, repo: InMemoryCatalogueRepo
) -> None:
    with pytest.raises(TagNotFoundError):
        await service.import_credential(_request(ecosystem_tag_id="nope"), "alice")
    assert await repo.list_all() == []


@pytest.mark.asyncio
async def test_blank_tag_is_rejected(service: CatalogueImportService) -> None:
    with pytest.raises(ValidationError):
        await service.import_credential(_request(ecosystem_tag_id=" "), "alice")


@pytest.mark.asyncio
async def test_mismatched_pair_is_rejected(service: CatalogueImportService) -> None:
    other = ParsedCredDef(
        cred_def_id=CRED_DEF_ID,
        schema_id=f"{DID}:2:Other:9.9",
        ledger="candy:dev",
        source_url="https://candyscan.idlab.org/tx/CANDY_DEV/domain/1",
    )
    with pytest.raises(MismatchError):
        await service.import_credential(_request(cred_def=other), "alice")


@pytest.mark.asyncio
async def test_concurrent_import_of_same_pair_is_rejected(
    service: CatalogueImportService, lock: InMemoryRoundLock
) -> None:
    async with lock.hold("import", f"candy:dev|{SCHEMA_ID}|{CRED_DEF_ID}"):
        with pytest.raises(RoundInProgressError):
            await service.import_credential(_request(), "alice")


# ---- commit ordering ----


class _LockAwareRepo(InMemoryCatalogueRepo):
    """Records which round locks are held at each commit."""

    def __init__(self, lock: InMemoryRoundLock) -> None:
        super().__init__()
        self._lock = lock
        self.commits: list[list[str]] = []

    async def commit(self) -> None:
        held = sorted(k for k, lk in self._lock._locks.items() if lk.locked())
        self.commits.append(held)


class _UncommittedRivalRepo(InMemoryCatalogueRepo):
    """A rival import is written but not yet visible to the first lookup."""

    def __init__(self, rival: CatalogueCredential) -> None:
        super().__init__()
        self._rival = rival
        self._hidden = True

    async def find_by_ledger_ids(
        self, ledger: str, schema_id: str, cred_def_id: str
    ) -> CatalogueCredential | None:
        if self._hidden:
            self._hidden = False
            return None
        return self._rival

    async def create(self, credential: CatalogueCredential) -> None:
        raise DuplicateCredentialError("credential already exists")


def _service_for(
    repo: InMemoryCatalogueRepo,
    lock: InMemoryRoundLock,
    registry: FakeRegistry,
    orbit_store: OrbitSettingsStore,
) -> CatalogueImportService:
    client = OrbitRegistryClient(orbit_store, transport=registry.transport)
    return CatalogueImportService(
        CatalogueRecordBuilder(clock=lambda: NOW),
        repo,
        InMemoryTagRepo(),
        RegistryRegistrationCoordinator(client, repo, lock),
        lock,
    )


@pytest.mark.asyncio
async def test_import_and_registration_commit_before_locks_release(
    lock: InMemoryRoundLock, registry: FakeRegistry, orbit_store: OrbitSettingsStore
) -> None:
    repo = _LockAwareRepo(lock)
    service = _service_for(repo, lock, registry, orbit_store)

    credential = await service.import_credential(
        _request(register_with_orbit=True), "alice"
    )

    import_key = f"import:candy:dev|{SCHEMA_ID}|{CRED_DEF_ID}"
    assert repo.commits == [
        [import_key],
        sorted([import_key, f"credential:{credential.id}"]),
    ]
    assert lock._locks == {}


@pytest.mark.asyncio
async def test_duplicate_row_on_write_is_a_duplicate_import(
    lock: InMemoryRoundLock, registry: FakeRegistry, orbit_store: OrbitSettingsStore
) -> None:
    rival = make_credential()
    service = _service_for(_UncommittedRivalRepo(rival), lock, registry, orbit_store)

    with pytest.raises(DuplicateImportError) as exc:
        await service.import_credential(_request(register_with_orbit=True), "bob")

    assert exc.value.existing_id == rival.id
    assert registry.calls == []
