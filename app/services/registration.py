"""Two-phase registration of a (schema, credential definition) pair.

    schema call ──ok──> cred def call ──ok──> FullyRegistered
        │                    │
       fail                 fail
        v                    v
    SchemaFailed         CredDefFailed

The cred def call is never made unless the schema call of the same round
succeeded; it carries the schema id the registry returned.  Every call
leaves an OperationLog behind, and both logs are returned in the outcome.

Rounds resume: when a schema id from an earlier round is already known,
the schema call is skipped and only the cred def call is retried.  When
both ids are known the round is a no-op.

``run_round`` is pure (no persistence) so the clone service can reuse it
for publish-mode rounds.  ``register`` wraps it for imported credentials:
it holds the credential's round lock and writes exactly the registration
fields.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Literal

from app.core.metrics import REGISTRATION_ROUNDS
from app.models.catalogue import (
    CatalogueCredential,
    CredDefFailed,
    FullyRegistered,
    OperationLog,
    RegistrationOutcome,
    SchemaFailed,
)
from app.repos.catalogue_repo import CatalogueRepo
from app.services.errors import CredentialNotFoundError, RegistrationError
from app.services.registry_client import OrbitRegistryClient, RegistryResult
from app.services.round_lock import RoundLock

logger = logging.getLogger(__name__)

RoundMode = Literal["store", "publish"]


@dataclass(frozen=True, slots=True)
class RegistrationRound:
    """Everything one round needs, plus the state of any earlier attempt."""

    mode: RoundMode
    name: str
    version: str
    attributes: Sequence[str]
    cred_def_tag: str = "default"
    # store mode: the pair already on the ledger
    schema_id: str | None = None
    cred_def_id: str | None = None
    issuer_did: str | None = None
    signature_type: str = "CL"
    # publish mode
    support_revocation: bool = False
    # earlier attempt
    registry_schema_id: str | None = None
    registry_cred_def_id: str | None = None
    schema_log: OperationLog | None = None
    cred_def_log: OperationLog | None = None
    ledger_schema_id: str | None = None
    ledger: str | None = None


def round_for_import(credential: CatalogueCredential) -> RegistrationRound:
    return RegistrationRound(
        mode="store",
        name=credential.name,
        version=credential.version,
        attributes=credential.attributes,
        cred_def_tag=credential.cred_def_tag,
        schema_id=credential.schema_id,
        cred_def_id=credential.cred_def_id,
        issuer_did=credential.issuer_did,
        signature_type=credential.signature_type,
        registry_schema_id=credential.orbit_schema_id,
        registry_cred_def_id=credential.orbit_cred_def_id,
        schema_log=credential.orbit_schema_log,
        cred_def_log=credential.orbit_cred_def_log,
    )


def registration_changes(outcome: RegistrationOutcome) -> dict[str, Any]:
    """The registration field group of a credential after ``outcome``."""
    match outcome:
        case FullyRegistered():
            return {
                "orbit_schema_id": outcome.schema_id,
                "orbit_cred_def_id": outcome.cred_def_id,
                "orbit_schema_log": outcome.schema_log,
                "orbit_cred_def_log": outcome.cred_def_log,
            }
        case CredDefFailed():
            return {
                "orbit_schema_id": outcome.schema_id,
                "orbit_cred_def_id": None,
                "orbit_schema_log": outcome.schema_log,
                "orbit_cred_def_log": outcome.cred_def_log,
            }
        case SchemaFailed():
            return {
                "orbit_schema_id": None,
                "orbit_cred_def_id": None,
                "orbit_schema_log": outcome.schema_log,
                "orbit_cred_def_log": None,
            }
    raise TypeError(f"unexpected outcome {outcome!r}")


class RegistryRegistrationCoordinator:
    def __init__(
        self,
        client: OrbitRegistryClient,
        repo: CatalogueRepo,
        lock: RoundLock,
    ) -> None:
        self._client = client
        self._repo = repo
        self._lock = lock

    async def _register_schema(self, rnd: RegistrationRound) -> RegistryResult:
        if rnd.mode == "store":
            return await self._client.store_schema(
                schema_id=rnd.schema_id or "",
                name=rnd.name,
                version=rnd.version,
                attributes=rnd.attributes,
                issuer_did=rnd.issuer_did,
            )
        return await self._client.publish_schema(
            name=rnd.name, version=rnd.version, attributes=rnd.attributes
        )

    async def _register_cred_def(
        self, rnd: RegistrationRound, registry_schema_id: str
    ) -> RegistryResult:
        if rnd.mode == "store":
            return await self._client.store_cred_def(
                cred_def_id=rnd.cred_def_id or "",
                schema_id=registry_schema_id,
                issuer_did=rnd.issuer_did,
                tag=rnd.cred_def_tag,
                signature_type=rnd.signature_type,
            )
        return await self._client.publish_cred_def(
            schema_id=registry_schema_id,
            tag=rnd.cred_def_tag,
            support_revocation=rnd.support_revocation,
        )

    async def run_round(self, rnd: RegistrationRound) -> RegistrationOutcome:
        if rnd.registry_schema_id and rnd.registry_cred_def_id:
            return FullyRegistered(
                schema_id=rnd.registry_schema_id,
                cred_def_id=rnd.registry_cred_def_id,
                schema_log=rnd.schema_log,
                cred_def_log=rnd.cred_def_log,
                ledger_schema_id=rnd.ledger_schema_id,
                ledger=rnd.ledger,
            )

        if rnd.registry_schema_id:
            logger.info(
                "Resuming round at cred def step schema=%s", rnd.registry_schema_id
            )
            schema_id = rnd.registry_schema_id
            schema_log = rnd.schema_log
            ledger_schema_id = rnd.ledger_schema_id
            ledger = rnd.ledger
        else:
            try:
                schema = await self._register_schema(rnd)
            except RegistrationError as e:
                return SchemaFailed(schema_log=e.log)
            schema_id = schema.registry_id
            schema_log = schema.log
            ledger_schema_id = schema.ledger_id
            ledger = schema.ledger

        try:
            cred_def = await self._register_cred_def(rnd, schema_id)
        except RegistrationError as e:
            return CredDefFailed(
                schema_id=schema_id,
                schema_log=schema_log,
                cred_def_log=e.log,
                ledger_schema_id=ledger_schema_id,
                ledger=ledger,
            )

        return FullyRegistered(
            schema_id=schema_id,
            cred_def_id=cred_def.registry_id,
            schema_log=schema_log,
            cred_def_log=cred_def.log,
            ledger_schema_id=ledger_schema_id,
            ledger_cred_def_id=cred_def.ledger_id,
            ledger=ledger or cred_def.ledger,
        )

    async def register(self, credential: CatalogueCredential) -> RegistrationOutcome:
        """Register (or resume registering) an imported credential."""
        ctx = {"credential_id": str(credential.id)}
        async with self._lock.hold("credential", str(credential.id)):
            # Re-read under the lock: another round may have finished since
            # the caller loaded the record.
            current = await self._repo.get_by_id(credential.id)
            if current is None:
                raise CredentialNotFoundError(credential.id)

            already_registered = bool(current.orbit_schema_id and current.orbit_cred_def_id)
            outcome = await self.run_round(round_for_import(current))
            REGISTRATION_ROUNDS.labels(state=outcome.state.value).inc()

            if not already_registered:
                await self._repo.update(current.id, registration_changes(outcome))
                await self._repo.commit()

        log = logger.info if isinstance(outcome, FullyRegistered) else logger.warning
        log("Registration round finished state=%s", outcome.state.value, extra=ctx)
        return outcome
