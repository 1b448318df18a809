"""PostgreSQL implementation of CatalogueRepo."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import CatalogueCredentialRow
from app.models.catalogue import CatalogueCredential, OperationLog
from app.repos.catalogue_repo import DuplicateCredentialError, check_changes
from app.services.legacy import merge_legacy_error

_LOG_COLUMNS = frozenset(
    {
        "orbit_schema_log",
        "orbit_cred_def_log",
        "cloned_orbit_schema_log",
        "cloned_orbit_cred_def_log",
    }
)


class PgCatalogueRepo:
    """Satisfies the CatalogueRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, credential: CatalogueCredential) -> None:
        self._session.add(_credential_to_row(credential))
        try:
            await self._session.flush()
        except IntegrityError:
            await self._session.rollback()
            raise DuplicateCredentialError("credential already exists") from None

    async def get_by_id(self, credential_id: UUID) -> CatalogueCredential | None:
        stmt = select(CatalogueCredentialRow).where(
            CatalogueCredentialRow.id == credential_id
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_credential(row)

    async def find_by_ledger_ids(
        self, ledger: str, schema_id: str, cred_def_id: str
    ) -> CatalogueCredential | None:
        stmt = select(CatalogueCredentialRow).where(
            CatalogueCredentialRow.ledger == ledger,
            CatalogueCredentialRow.schema_id == schema_id,
            CatalogueCredentialRow.cred_def_id == cred_def_id,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_credential(row)

    async def update(
        self, credential_id: UUID, changes: Mapping[str, Any]
    ) -> CatalogueCredential | None:
        check_changes(changes)
        values = {
            key: _log_to_json(value) if key in _LOG_COLUMNS else value
            for key, value in changes.items()
        }
        if "attributes" in values:
            values["attributes"] = list(values["attributes"])
        stmt = (
            update(CatalogueCredentialRow)
            .where(CatalogueCredentialRow.id == credential_id)
            .values(**values)
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            return None
        # The session may hold a stale identity-map copy of the row.
        self._session.expire_all()
        return await self.get_by_id(credential_id)

    async def delete(self, credential_id: UUID) -> bool:
        stmt = delete(CatalogueCredentialRow).where(
            CatalogueCredentialRow.id == credential_id
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def list_all(self) -> list[CatalogueCredential]:
        stmt = select(CatalogueCredentialRow).order_by(
            CatalogueCredentialRow.imported_at.desc()
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_credential(r) for r in rows]

    async def commit(self) -> None:
        await self._session.commit()


def _log_to_json(log: OperationLog | None) -> dict[str, Any] | None:
    return log.to_document() if log is not None else None


def _json_to_log(doc: dict[str, Any] | None) -> OperationLog | None:
    return OperationLog.from_document(doc) if doc else None


def _credential_to_row(c: CatalogueCredential) -> CatalogueCredentialRow:
    return CatalogueCredentialRow(
        id=c.id,
        schema_id=c.schema_id,
        cred_def_id=c.cred_def_id,
        ledger=c.ledger,
        attributes=list(c.attributes),
        name=c.name,
        version=c.version,
        ecosystem_tag=c.ecosystem_tag,
        issuer_name=c.issuer_name,
        issuer_did=c.issuer_did,
        issuer_entity_id=c.issuer_entity_id,
        cred_def_tag=c.cred_def_tag,
        signature_type=c.signature_type,
        schema_source_url=c.schema_source_url,
        cred_def_source_url=c.cred_def_source_url,
        imported_at=c.imported_at,
        imported_by=c.imported_by,
        orbit_schema_id=c.orbit_schema_id,
        orbit_cred_def_id=c.orbit_cred_def_id,
        orbit_schema_log=_log_to_json(c.orbit_schema_log),
        orbit_cred_def_log=_log_to_json(c.orbit_cred_def_log),
        cloned_at=c.cloned_at,
        cloned_ledger=c.cloned_ledger,
        cloned_schema_id=c.cloned_schema_id,
        cloned_cred_def_id=c.cloned_cred_def_id,
        cloned_orbit_schema_id=c.cloned_orbit_schema_id,
        cloned_orbit_cred_def_id=c.cloned_orbit_cred_def_id,
        cloned_orbit_schema_log=_log_to_json(c.cloned_orbit_schema_log),
        cloned_orbit_cred_def_log=_log_to_json(c.cloned_orbit_cred_def_log),
        cloned_schema_name=c.cloned_schema_name,
        cloned_schema_version=c.cloned_schema_version,
        enabled_for_issuance=c.enabled_for_issuance,
    )


def _row_to_credential(row: CatalogueCredentialRow) -> CatalogueCredential:
    schema_log, cred_def_log = merge_legacy_error(
        schema_log=_json_to_log(row.orbit_schema_log),
        cred_def_log=_json_to_log(row.orbit_cred_def_log),
        orbit_schema_id=row.orbit_schema_id,
        legacy_error=row.orbit_registration_error,
        legacy_details=row.orbit_registration_error_details,
        imported_at=row.imported_at,
    )
    return CatalogueCredential(
        id=row.id,
        schema_id=row.schema_id,
        cred_def_id=row.cred_def_id,
        ledger=row.ledger,
        attributes=tuple(row.attributes) if row.attributes else (),
        name=row.name,
        version=row.version,
        ecosystem_tag=row.ecosystem_tag,
        imported_at=row.imported_at,
        imported_by=row.imported_by,
        issuer_name=row.issuer_name,
        issuer_did=row.issuer_did,
        issuer_entity_id=row.issuer_entity_id,
        cred_def_tag=row.cred_def_tag,
        signature_type=row.signature_type,
        schema_source_url=row.schema_source_url,
        cred_def_source_url=row.cred_def_source_url,
        orbit_schema_id=row.orbit_schema_id,
        orbit_cred_def_id=row.orbit_cred_def_id,
        orbit_schema_log=schema_log,
        orbit_cred_def_log=cred_def_log,
        cloned_at=row.cloned_at,
        cloned_ledger=row.cloned_ledger,
        cloned_schema_id=row.cloned_schema_id,
        cloned_cred_def_id=row.cloned_cred_def_id,
        cloned_orbit_schema_id=row.cloned_orbit_schema_id,
        cloned_orbit_cred_def_id=row.cloned_orbit_cred_def_id,
        cloned_orbit_schema_log=_json_to_log(row.cloned_orbit_schema_log),
        cloned_orbit_cred_def_log=_json_to_log(row.cloned_orbit_cred_def_log),
        cloned_schema_name=row.cloned_schema_name,
        cloned_schema_version=row.cloned_schema_version,
        enabled_for_issuance=row.enabled_for_issuance,
    )
