from __future__ import annotations

from collections.abc import Mapping
from dataclasses import fields, replace
from typing import Any, Protocol
from uuid import UUID

from app.models.catalogue import IMMUTABLE_FIELDS, CatalogueCredential

# Fields a partial update may touch.
UPDATABLE_FIELDS = frozenset(
    f.name for f in fields(CatalogueCredential) if f.name not in IMMUTABLE_FIELDS
)


class DuplicateCredentialError(ValueError):
    """A record with the same (ledger, schema_id, cred_def_id) already exists."""


def check_changes(changes: Mapping[str, Any]) -> None:
    """Reject immutable or unknown fields before anything is written."""
    immutable = IMMUTABLE_FIELDS.intersection(changes)
    if immutable:
        raise ValueError(f"immutable fields cannot be updated: {sorted(immutable)}")
    unknown = set(changes) - UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"unknown fields: {sorted(unknown)}")


class CatalogueRepo(Protocol):
    async def create(self, credential: CatalogueCredential) -> None: ...
    async def get_by_id(self, credential_id: UUID) -> CatalogueCredential | None: ...
    async def find_by_ledger_ids(
        self, ledger: str, schema_id: str, cred_def_id: str
    ) -> CatalogueCredential | None: ...
    async def update(
        self, credential_id: UUID, changes: Mapping[str, Any]
    ) -> CatalogueCredential | None: ...
    async def delete(self, credential_id: UUID) -> bool: ...
    async def list_all(self) -> list[CatalogueCredential]: ...
    async def commit(self) -> None: ...


class InMemoryCatalogueRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, CatalogueCredential] = {}

    async def create(self, credential: CatalogueCredential) -> None:
        existing = await self.find_by_ledger_ids(
            credential.ledger, credential.schema_id, credential.cred_def_id
        )
        if credential.id in self._by_id or existing is not None:
            raise DuplicateCredentialError("credential already exists")
        self._by_id[credential.id] = credential

    async def get_by_id(self, credential_id: UUID) -> CatalogueCredential | None:
        return self._by_id.get(credential_id)

    async def find_by_ledger_ids(
        self, ledger: str, schema_id: str, cred_def_id: str
    ) -> CatalogueCredential | None:
        for c in self._by_id.values():
            if (c.ledger, c.schema_id, c.cred_def_id) == (ledger, schema_id, cred_def_id):
                return c
        return None

    async def update(
        self, credential_id: UUID, changes: Mapping[str, Any]
    ) -> CatalogueCredential | None:
        check_changes(changes)
        current = self._by_id.get(credential_id)
        if current is None:
            return None
        updated = replace(current, **changes)
        self._by_id[credential_id] = updated
        return updated

    async def delete(self, credential_id: UUID) -> bool:
        return self._by_id.pop(credential_id, None) is not None

    async def list_all(self) -> list[CatalogueCredential]:
        return sorted(self._by_id.values(), key=lambda c: c.imported_at, reverse=True)

    async def commit(self) -> None:
        """Writes are visible immediately; nothing to flush."""
