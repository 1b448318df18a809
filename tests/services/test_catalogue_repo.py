from __future__ import annotations

from datetime import UTC, datetime

import pytest
from sqlalchemy.exc import IntegrityError

from app.models.catalogue import OperationLog, RegistrationState
from app.repos.catalogue_repo import (
    DuplicateCredentialError,
    InMemoryCatalogueRepo,
    check_changes,
)
from app.repos.pg_catalogue_repo import (
    PgCatalogueRepo,
    _credential_to_row,
    _row_to_credential,
)
from tests.conftest import DID, make_credential

LOG = OperationLog(
    success=False,
    timestamp=datetime(2026, 1, 2, tzinfo=UTC),
    status_code=400,
    request_url="https://orbit.test/api/schema/store",
    request_payload={"schemaId": "x"},
    response_body='{"message": "duplicate schema"}',
    error_message="duplicate schema",
)


# ---- partial updates ----


def test_check_changes_rejects_immutable_fields() -> None:
    with pytest.raises(ValueError, match="immutable"):
        check_changes({"schema_id": "other"})
    with pytest.raises(ValueError, match="immutable"):
        check_changes({"imported_by": "mallory"})


def test_check_changes_rejects_unknown_fields() -> None:
    with pytest.raises(ValueError, match="unknown"):
        check_changes({"colour": "blue"})


@pytest.mark.asyncio
async def test_update_touches_only_given_fields(repo: InMemoryCatalogueRepo) -> None:
    credential = make_credential(issuer_name="Province of BC", cloned_schema_name="X")
    await repo.create(credential)

    updated = await repo.update(
        credential.id, {"orbit_schema_id": "s-1", "orbit_schema_log": LOG}
    )

    assert updated is not None
    assert updated.orbit_schema_id == "s-1"
    assert updated.orbit_schema_log == LOG
    assert updated.issuer_name == "Province of BC"
    assert updated.cloned_schema_name == "X"
    assert updated.imported_at == credential.imported_at


@pytest.mark.asyncio
async def test_update_unknown_id(repo: InMemoryCatalogueRepo) -> None:
    assert await repo.update(make_credential().id, {"issuer_name": "x"}) is None


@pytest.mark.asyncio
async def test_rejected_update_changes_nothing(repo: InMemoryCatalogueRepo) -> None:
    credential = make_credential()
    await repo.create(credential)

    with pytest.raises(ValueError):
        await repo.update(credential.id, {"issuer_name": "x", "ledger": "other"})

    assert await repo.get_by_id(credential.id) == credential


# ---- uniqueness and lookup ----


@pytest.mark.asyncio
async def test_create_rejects_same_ledger_ids(repo: InMemoryCatalogueRepo) -> None:
    await repo.create(make_credential())
    with pytest.raises(DuplicateCredentialError):
        await repo.create(make_credential())


@pytest.mark.asyncio
async def test_same_ids_on_another_ledger_are_distinct(
    repo: InMemoryCatalogueRepo,
) -> None:
    first = make_credential()
    second = make_credential(ledger="sovrin:mainnet")
    await repo.create(first)
    await repo.create(second)

    found = await repo.find_by_ledger_ids("sovrin:mainnet", first.schema_id, first.cred_def_id)
    assert found is not None and found.id == second.id


@pytest.mark.asyncio
async def test_delete(repo: InMemoryCatalogueRepo) -> None:
    credential = make_credential()
    await repo.create(credential)
    assert await repo.delete(credential.id) is True
    assert await repo.delete(credential.id) is False
    assert await repo.get_by_id(credential.id) is None


# ---- row mapping ----


def test_row_round_trip_keeps_logs() -> None:
    credential = make_credential(
        orbit_schema_log=LOG,
        cloned_at=datetime(2026, 2, 1, tzinfo=UTC),
        cloned_schema_id=f"{DID}:2:BC Person:1.0.1",
        enabled_for_issuance=True,
    )

    row = _credential_to_row(credential)

    assert row.orbit_schema_log is not None
    assert row.orbit_schema_log["statusCode"] == 400
    assert row.attributes == ["given_names", "family_name", "birthdate"]
    assert _row_to_credential(row) == credential


def test_row_with_legacy_error_is_converted_on_read() -> None:
    row = _credential_to_row(make_credential())
    row.orbit_registration_error = (
        'Failed to import schema to Orbit: 400 - {"message": "duplicate schema"}'
    )

    credential = _row_to_credential(row)

    assert credential.registration_state == RegistrationState.SCHEMA_FAILED
    assert credential.orbit_schema_log is not None
    assert credential.orbit_schema_log.error_message == "duplicate schema"
    assert credential.orbit_schema_log.timestamp == credential.imported_at


# ---- PostgreSQL write path ----


class _UniqueViolationSession:
    """Just enough of AsyncSession for PgCatalogueRepo.create/commit."""

    def __init__(self) -> None:
        self.added: list[object] = []
        self.rolled_back = False
        self.committed = False

    def add(self, row: object) -> None:
        self.added.append(row)

    async def flush(self) -> None:
        raise IntegrityError("INSERT INTO catalogue_credentials", {}, Exception("unique"))

    async def rollback(self) -> None:
        self.rolled_back = True

    async def commit(self) -> None:
        self.committed = True


@pytest.mark.asyncio
async def test_pg_unique_violation_is_a_duplicate() -> None:
    session = _UniqueViolationSession()
    repo = PgCatalogueRepo(session)  # type: ignore[arg-type]

    with pytest.raises(DuplicateCredentialError):
        await repo.create(make_credential())

    assert session.rolled_back is True


@pytest.mark.asyncio
async def test_pg_commit_commits_the_session() -> None:
    session = _UniqueViolationSession()
    await PgCatalogueRepo(session).commit()  # type: ignore[arg-type]
    assert session.committed is True
