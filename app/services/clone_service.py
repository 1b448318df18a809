"""Clone an imported credential into a new, locally issuable pair.

The clone is a second registration round in publish mode: the registry
writes a new schema with the same attributes and a new credential
definition on it.  The original import and its registration fields are
never touched; the result lands in the ``cloned_*`` field group, which
every attempt replaces as a whole.

Default naming: same schema name, version ``<original version>.<epoch ms>``
so repeated clones never collide on the ledger.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from app.core.metrics import CLONE_ROUNDS
from app.models.catalogue import (
    EMPTY_CLONE,
    CatalogueCredential,
    CloneOptions,
    CloneOutcome,
    CredDefFailed,
    FullyRegistered,
    RegistrationOutcome,
    RegistrationState,
)
from app.repos.catalogue_repo import CatalogueRepo
from app.services.errors import CloneCollisionError, CredentialNotFoundError
from app.services.registration import RegistrationRound, RegistryRegistrationCoordinator
from app.services.round_lock import RoundLock

logger = logging.getLogger(__name__)

DEFAULT_CRED_DEF_TAG = "default"


def _epoch_ms() -> int:
    return int(time.time() * 1000)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _blank_to_none(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


def clone_outcome(
    outcome: RegistrationOutcome, *, schema_name: str, schema_version: str
) -> CloneOutcome:
    match outcome:
        case FullyRegistered():
            return CloneOutcome(
                state=outcome.state,
                schema_name=schema_name,
                schema_version=schema_version,
                cloned_ledger=outcome.ledger,
                cloned_schema_id=outcome.ledger_schema_id,
                cloned_cred_def_id=outcome.ledger_cred_def_id,
                cloned_orbit_schema_id=outcome.schema_id,
                cloned_orbit_cred_def_id=outcome.cred_def_id,
                schema_log=outcome.schema_log,
                cred_def_log=outcome.cred_def_log,
            )
        case CredDefFailed():
            return CloneOutcome(
                state=outcome.state,
                schema_name=schema_name,
                schema_version=schema_version,
                cloned_ledger=outcome.ledger,
                cloned_schema_id=outcome.ledger_schema_id,
                cloned_orbit_schema_id=outcome.schema_id,
                schema_log=outcome.schema_log,
                cred_def_log=outcome.cred_def_log,
            )
    return CloneOutcome(
        state=outcome.state,
        schema_name=schema_name,
        schema_version=schema_version,
        schema_log=outcome.schema_log,
    )


def clone_changes(result: CloneOutcome, *, now: datetime) -> dict[str, Any]:
    """The complete clone field group after one attempt."""
    succeeded = result.state == RegistrationState.FULLY_REGISTERED
    return {
        "cloned_at": now if succeeded else None,
        "cloned_ledger": result.cloned_ledger,
        "cloned_schema_id": result.cloned_schema_id,
        "cloned_cred_def_id": result.cloned_cred_def_id,
        "cloned_orbit_schema_id": result.cloned_orbit_schema_id,
        "cloned_orbit_cred_def_id": result.cloned_orbit_cred_def_id,
        "cloned_orbit_schema_log": result.schema_log,
        "cloned_orbit_cred_def_log": result.cred_def_log,
        "cloned_schema_name": result.schema_name,
        "cloned_schema_version": result.schema_version,
        "enabled_for_issuance": False,
    }


class CloneForIssuanceService:
    def __init__(
        self,
        coordinator: RegistryRegistrationCoordinator,
        repo: CatalogueRepo,
        lock: RoundLock,
        *,
        epoch_ms: Callable[[], int] = _epoch_ms,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._coordinator = coordinator
        self._repo = repo
        self._lock = lock
        self._epoch_ms = epoch_ms
        self._clock = clock

    def _plan_round(
        self, credential: CatalogueCredential, options: CloneOptions
    ) -> RegistrationRound:
        name = _blank_to_none(options.schema_name)
        version = _blank_to_none(options.schema_version)
        tag = _blank_to_none(options.cred_def_tag) or DEFAULT_CRED_DEF_TAG
        explicit = name is not None or version is not None

        resume = (
            not explicit
            and credential.clone_state == RegistrationState.CREDDEF_FAILED
            and credential.cloned_schema_name is not None
            and credential.cloned_schema_version is not None
        )
        if resume:
            return RegistrationRound(
                mode="publish",
                name=credential.cloned_schema_name or credential.name,
                version=credential.cloned_schema_version or credential.version,
                attributes=credential.attributes,
                cred_def_tag=tag,
                support_revocation=options.support_revocation,
                registry_schema_id=credential.cloned_orbit_schema_id,
                schema_log=credential.cloned_orbit_schema_log,
                ledger_schema_id=credential.cloned_schema_id,
                ledger=credential.cloned_ledger,
            )

        name = name or credential.name
        version = version or f"{credential.version}.{self._epoch_ms()}"
        if explicit:
            taken = {
                (credential.name, credential.version),
                (credential.cloned_schema_name, credential.cloned_schema_version),
            }
            if (name, version) in taken:
                raise CloneCollisionError(name, version)

        return RegistrationRound(
            mode="publish",
            name=name,
            version=version,
            attributes=credential.attributes,
            cred_def_tag=tag,
            support_revocation=options.support_revocation,
        )

    async def clone(
        self, credential_id: UUID, options: CloneOptions | None = None
    ) -> CloneOutcome:
        options = options or CloneOptions()
        ctx = {"credential_id": str(credential_id)}
        async with self._lock.hold("credential", str(credential_id)):
            credential = await self._repo.get_by_id(credential_id)
            if credential is None:
                raise CredentialNotFoundError(credential_id)

            rnd = self._plan_round(credential, options)
            logger.info(
                "Cloning credential as %s %s (resume=%s)",
                rnd.name,
                rnd.version,
                rnd.registry_schema_id is not None,
                extra=ctx,
            )
            outcome = await self._coordinator.run_round(rnd)
            result = clone_outcome(
                outcome, schema_name=rnd.name, schema_version=rnd.version
            )
            await self._repo.update(
                credential_id, clone_changes(result, now=self._clock())
            )
            await self._repo.commit()

        CLONE_ROUNDS.labels(state=result.state.value).inc()
        if result.error:
            logger.warning("Clone round failed: %s", result.error, extra=ctx)
        else:
            logger.info("Clone round finished", extra=ctx)
        return result

    async def delete_clone(self, credential_id: UUID) -> CatalogueCredential:
        """Forget the clone.  The registry is not contacted."""
        async with self._lock.hold("credential", str(credential_id)):
            updated = await self._repo.update(credential_id, EMPTY_CLONE)
            await self._repo.commit()
        if updated is None:
            raise CredentialNotFoundError(credential_id)
        logger.info("Clone removed", extra={"credential_id": str(credential_id)})
        return updated
