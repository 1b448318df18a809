"""One catalogue import: build, persist, optionally register.

The record is committed before registration is attempted, so a registry
failure never loses the import; the failure is kept in the record's logs
and can be retried with POST /catalogue/{id}/register.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from app.models.catalogue import CatalogueCredential, ParsedCredDef, ParsedSchema
from app.repos.catalogue_repo import CatalogueRepo, DuplicateCredentialError
from app.repos.tag_repo import TagRepo
from app.services.errors import DuplicateImportError, TagNotFoundError
from app.services.record_builder import CatalogueRecordBuilder, SourceUrls
from app.services.registration import RegistryRegistrationCoordinator
from app.services.round_lock import RoundLock

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ImportRequest:
    schema: ParsedSchema
    cred_def: ParsedCredDef
    ecosystem_tag_id: str
    issuer_name: str | None = None
    issuer_entity_id: str | None = None
    schema_source_url: str | None = None
    cred_def_source_url: str | None = None
    register_with_orbit: bool = False


class CatalogueImportService:
    def __init__(
        self,
        builder: CatalogueRecordBuilder,
        repo: CatalogueRepo,
        tag_repo: TagRepo,
        coordinator: RegistryRegistrationCoordinator,
        lock: RoundLock,
    ) -> None:
        self._builder = builder
        self._repo = repo
        self._tag_repo = tag_repo
        self._coordinator = coordinator
        self._lock = lock

    async def import_credential(
        self, request: ImportRequest, actor: str | None
    ) -> CatalogueCredential:
        credential = self._builder.build(
            request.schema,
            request.cred_def,
            request.ecosystem_tag_id,
            request.issuer_name,
            SourceUrls(request.schema_source_url, request.cred_def_source_url),
            actor,
            issuer_entity_id=request.issuer_entity_id,
        )
        if await self._tag_repo.get(credential.ecosystem_tag) is None:
            raise TagNotFoundError(f"unknown ecosystem tag {credential.ecosystem_tag!r}")

        key = f"{credential.ledger}|{credential.schema_id}|{credential.cred_def_id}"
        async with self._lock.hold("import", key):
            existing = await self._repo.find_by_ledger_ids(
                credential.ledger, credential.schema_id, credential.cred_def_id
            )
            if existing is not None:
                logger.warning(
                    "Rejected duplicate import schema=%s cred_def=%s",
                    credential.schema_id,
                    credential.cred_def_id,
                    extra={"credential_id": str(existing.id)},
                )
                raise DuplicateImportError(existing.id)

            try:
                await self._repo.create(credential)
            except DuplicateCredentialError:
                # Committed by a concurrent writer the lock did not cover.
                existing = await self._repo.find_by_ledger_ids(
                    credential.ledger, credential.schema_id, credential.cred_def_id
                )
                raise DuplicateImportError(
                    existing.id if existing is not None else None
                ) from None
            await self._repo.commit()
            logger.info(
                "Imported %s %s by %s",
                credential.name,
                credential.version,
                credential.imported_by,
                extra={"credential_id": str(credential.id), "ledger": credential.ledger},
            )

            if request.register_with_orbit:
                await self._coordinator.register(credential)
                credential = await self._repo.get_by_id(credential.id) or credential

        return credential
