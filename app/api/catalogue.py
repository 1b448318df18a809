"""Credential catalogue endpoints.

Import wizard flow:
  1. POST /catalogue/import/schema   explorer URL -> parsed schema
  2. POST /catalogue/import/creddef  explorer URL -> parsed cred def
  3. POST /catalogue                 save (and optionally register)

Static paths are declared before ``/catalogue/{credential_id}`` so they
are matched first.
"""

from __future__ import annotations

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status

from app.api.dependencies import (
    get_actor,
    get_catalogue_repo,
    get_clone_service,
    get_coordinator,
    get_import_service,
    get_issuance_gate,
    get_ledger_parser,
    get_orbit_settings_store,
    get_tag_repo,
)
from app.api.schemas import (
    CloneIn,
    CloneOutcomeOut,
    CredentialOut,
    CredentialPatchIn,
    ImportIn,
    IssuableIn,
    OrbitStatusOut,
    ParseCredDefIn,
    ParsedCredDefBody,
    ParsedSchemaBody,
    ParseSchemaIn,
    RegistrationOut,
)
from app.models.catalogue import CloneOptions
from app.repos.catalogue_repo import CatalogueRepo
from app.repos.tag_repo import TagRepo
from app.services.clone_service import CloneForIssuanceService
from app.services.errors import (
    CloneCollisionError,
    CredentialNotFoundError,
    DuplicateImportError,
    MismatchError,
    NotClonedError,
    ParseError,
    RoundInProgressError,
    TagNotFoundError,
    ValidationError,
)
from app.services.import_service import CatalogueImportService, ImportRequest
from app.services.issuance_gate import IssuanceEligibilityGate
from app.services.ledger_parser import LedgerReferenceParser
from app.services.orbit_settings import OrbitSettingsStore
from app.services.registration import RegistryRegistrationCoordinator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/catalogue", tags=["catalogue"])


def _not_found(credential_id: UUID) -> HTTPException:
    return HTTPException(status_code=404, detail=f"credential {credential_id} not found")


# --- Explorer parsing ---


@router.post("/import/schema", response_model=ParsedSchemaBody)
async def parse_schema(
    body: ParseSchemaIn,
    parser: Annotated[LedgerReferenceParser, Depends(get_ledger_parser)],
) -> ParsedSchemaBody:
    try:
        parsed = await parser.parse_schema(body.url)
    except ParseError as e:
        logger.warning("Schema parse failed kind=%s: %s", e.kind, e)
        raise HTTPException(status_code=400, detail=str(e)) from None
    return ParsedSchemaBody.from_domain(parsed)


@router.post("/import/creddef", response_model=ParsedCredDefBody)
async def parse_cred_def(
    body: ParseCredDefIn,
    parser: Annotated[LedgerReferenceParser, Depends(get_ledger_parser)],
) -> ParsedCredDefBody:
    try:
        parsed = await parser.parse_cred_def(
            body.url, body.schema_id, expected_schema_seq_no=body.schema_seq_no
        )
    except ParseError as e:
        logger.warning("Cred def parse failed kind=%s: %s", e.kind, e)
        raise HTTPException(status_code=400, detail=str(e)) from None
    except MismatchError as e:
        raise HTTPException(status_code=409, detail=str(e)) from None
    return ParsedCredDefBody.from_domain(parsed)


# --- Collection ---


@router.post("", response_model=CredentialOut, status_code=status.HTTP_201_CREATED)
async def import_credential(
    body: ImportIn,
    service: Annotated[CatalogueImportService, Depends(get_import_service)],
    actor: Annotated[str, Depends(get_actor)],
) -> CredentialOut:
    request = ImportRequest(
        schema=body.schema_data.to_domain(),
        cred_def=body.cred_def_data.to_domain(),
        ecosystem_tag_id=body.ecosystem_tag_id,
        issuer_name=body.issuer_name,
        issuer_entity_id=body.issuer_entity_id,
        schema_source_url=body.schema_source_url,
        cred_def_source_url=body.cred_def_source_url,
        register_with_orbit=body.register_with_orbit,
    )
    try:
        credential = await service.import_credential(request, actor)
    except (ValidationError, TagNotFoundError) as e:
        logger.warning("Import rejected: %s", e)
        raise HTTPException(status_code=422, detail=str(e)) from None
    except (MismatchError, DuplicateImportError, RoundInProgressError) as e:
        raise HTTPException(status_code=409, detail=str(e)) from None
    return CredentialOut.from_domain(credential)


@router.get("", response_model=list[CredentialOut])
async def list_credentials(
    repo: Annotated[CatalogueRepo, Depends(get_catalogue_repo)],
) -> list[CredentialOut]:
    return [CredentialOut.from_domain(c) for c in await repo.list_all()]


@router.get("/issuable", response_model=list[CredentialOut])
async def list_issuable(
    gate: Annotated[IssuanceEligibilityGate, Depends(get_issuance_gate)],
) -> list[CredentialOut]:
    """Cloned credentials enabled for issuance (the issuance catalog feed)."""
    return [CredentialOut.from_domain(c) for c in await gate.list_issuable()]


@router.get("/orbit-status", response_model=OrbitStatusOut)
def orbit_status(
    store: Annotated[OrbitSettingsStore, Depends(get_orbit_settings_store)],
) -> OrbitStatusOut:
    """Registry configuration, without the API key."""
    return OrbitStatusOut.model_validate(store.status())


# --- Single record ---


@router.get("/{credential_id}", response_model=CredentialOut)
async def get_credential(
    credential_id: UUID,
    repo: Annotated[CatalogueRepo, Depends(get_catalogue_repo)],
) -> CredentialOut:
    credential = await repo.get_by_id(credential_id)
    if credential is None:
        raise _not_found(credential_id)
    return CredentialOut.from_domain(credential)


@router.patch("/{credential_id}", response_model=CredentialOut)
async def update_credential(
    credential_id: UUID,
    body: CredentialPatchIn,
    repo: Annotated[CatalogueRepo, Depends(get_catalogue_repo)],
    tags: Annotated[TagRepo, Depends(get_tag_repo)],
) -> CredentialOut:
    """Change classification only: ecosystem tag, issuer name, issuer entity."""
    changes = body.model_dump(exclude_unset=True)
    if "ecosystem_tag" in changes:
        tag_id = (changes["ecosystem_tag"] or "").strip()
        if not tag_id:
            raise HTTPException(status_code=422, detail="ecosystem tag is required")
        if await tags.get(tag_id) is None:
            raise HTTPException(status_code=422, detail=f"unknown ecosystem tag {tag_id!r}")
        changes["ecosystem_tag"] = tag_id
    for key in ("issuer_name", "issuer_entity_id"):
        if key in changes:
            changes[key] = (changes[key] or "").strip() or None

    if changes:
        updated = await repo.update(credential_id, changes)
    else:
        updated = await repo.get_by_id(credential_id)
    if updated is None:
        raise _not_found(credential_id)
    return CredentialOut.from_domain(updated)


@router.delete("/{credential_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_credential(
    credential_id: UUID,
    repo: Annotated[CatalogueRepo, Depends(get_catalogue_repo)],
) -> None:
    if not await repo.delete(credential_id):
        raise _not_found(credential_id)
    logger.info("Credential deleted", extra={"credential_id": str(credential_id)})


# --- Registration, clone, issuance ---


@router.post("/{credential_id}/register", response_model=RegistrationOut)
async def register_credential(
    credential_id: UUID,
    repo: Annotated[CatalogueRepo, Depends(get_catalogue_repo)],
    coordinator: Annotated[RegistryRegistrationCoordinator, Depends(get_coordinator)],
) -> RegistrationOut:
    """Register with the registry, or resume a round that failed part-way."""
    credential = await repo.get_by_id(credential_id)
    if credential is None:
        raise _not_found(credential_id)
    try:
        outcome = await coordinator.register(credential)
    except CredentialNotFoundError:
        raise _not_found(credential_id) from None
    except RoundInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e)) from None

    updated = await repo.get_by_id(credential_id)
    if updated is None:
        raise _not_found(credential_id)
    return RegistrationOut(state=outcome.state, credential=CredentialOut.from_domain(updated))


@router.post("/{credential_id}/clone-for-issuance", response_model=CloneOutcomeOut)
async def clone_for_issuance(
    credential_id: UUID,
    service: Annotated[CloneForIssuanceService, Depends(get_clone_service)],
    body: CloneIn | None = None,
) -> CloneOutcomeOut:
    """Clone into a new schema/cred def pair.  Registry failures are in the body."""
    body = body or CloneIn()
    options = CloneOptions(
        schema_name=body.schema_name,
        schema_version=body.schema_version,
        cred_def_tag=body.cred_def_tag,
        support_revocation=body.support_revocation,
    )
    try:
        outcome = await service.clone(credential_id, options)
    except CredentialNotFoundError:
        raise _not_found(credential_id) from None
    except (CloneCollisionError, RoundInProgressError) as e:
        logger.warning("Clone rejected: %s", e)
        raise HTTPException(status_code=409, detail=str(e)) from None
    return CloneOutcomeOut.from_domain(outcome)


@router.delete("/{credential_id}/clone", status_code=status.HTTP_204_NO_CONTENT)
async def delete_clone(
    credential_id: UUID,
    service: Annotated[CloneForIssuanceService, Depends(get_clone_service)],
) -> None:
    try:
        await service.delete_clone(credential_id)
    except CredentialNotFoundError:
        raise _not_found(credential_id) from None
    except RoundInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e)) from None


@router.patch("/{credential_id}/issuable", status_code=status.HTTP_204_NO_CONTENT)
async def set_issuable(
    credential_id: UUID,
    body: IssuableIn,
    gate: Annotated[IssuanceEligibilityGate, Depends(get_issuance_gate)],
) -> None:
    try:
        await gate.set_enabled(credential_id, body.enabled)
    except CredentialNotFoundError:
        raise _not_found(credential_id) from None
    except NotClonedError as e:
        raise HTTPException(status_code=409, detail=str(e)) from None
