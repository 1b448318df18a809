from __future__ import annotations

import logging
from uuid import UUID

from app.models.catalogue import CatalogueCredential
from app.repos.catalogue_repo import CatalogueRepo
from app.services.errors import CredentialNotFoundError, NotClonedError

logger = logging.getLogger(__name__)


class IssuanceEligibilityGate:
    """Decides which clones the downstream issuance catalog may offer.

    NotCloned --clone--> Cloned(disabled) <--set_enabled--> Cloned(enabled)
    Only a completed clone can be enabled.
    """

    def __init__(self, repo: CatalogueRepo) -> None:
        self._repo = repo

    async def set_enabled(self, credential_id: UUID, enabled: bool) -> CatalogueCredential:
        credential = await self._repo.get_by_id(credential_id)
        if credential is None:
            raise CredentialNotFoundError(credential_id)
        if not credential.is_cloned:
            logger.warning(
                "Rejected issuance toggle on credential without clone",
                extra={"credential_id": str(credential_id)},
            )
            raise NotClonedError(credential_id)

        updated = await self._repo.update(
            credential_id, {"enabled_for_issuance": enabled}
        )
        if updated is None:
            raise CredentialNotFoundError(credential_id)
        logger.info(
            "Issuance %s",
            "enabled" if enabled else "disabled",
            extra={"credential_id": str(credential_id)},
        )
        return updated

    async def list_issuable(self) -> list[CatalogueCredential]:
        return [
            c
            for c in await self._repo.list_all()
            if c.is_cloned and c.enabled_for_issuance
        ]
