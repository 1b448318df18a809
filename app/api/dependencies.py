"""FastAPI dependency providers.

Repositories follow DATABASE_URL: without it the module-level in-memory
singletons below are used; with it every request gets PostgreSQL repos
bound to one request-scoped session (FastAPI caches ``get_session`` per
request, so the catalogue and tag repos share a transaction).

Services are built per request from these pieces.  Tests swap the
explorer parser, the registry client or the settings store through
``app.dependency_overrides``.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from typing import Annotated

import jwt
from fastapi import Cookie, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import SETTINGS
from app.db.engine import async_session_factory, get_async_session
from app.repos.catalogue_repo import CatalogueRepo, InMemoryCatalogueRepo
from app.repos.pg_catalogue_repo import PgCatalogueRepo
from app.repos.pg_tag_repo import PgTagRepo
from app.repos.tag_repo import InMemoryTagRepo, TagRepo
from app.services import token_service
from app.services.clone_service import CloneForIssuanceService
from app.services.import_service import CatalogueImportService
from app.services.issuance_gate import IssuanceEligibilityGate
from app.services.ledger_parser import LedgerReferenceParser
from app.services.orbit_settings import OrbitSettingsStore, orbit_settings_store
from app.services.record_builder import ANONYMOUS_ACTOR, CatalogueRecordBuilder
from app.services.registration import RegistryRegistrationCoordinator
from app.services.registry_client import OrbitRegistryClient
from app.services.round_lock import RoundLock, round_lock

logger = logging.getLogger(__name__)

SESSION_COOKIE = "session"

# --- Module-level repo singletons (used when no DATABASE_URL) ---
catalogue_repo = InMemoryCatalogueRepo()
tag_repo = InMemoryTagRepo()


def get_actor(
    session: Annotated[str | None, Cookie(alias=SESSION_COOKIE)] = None,
) -> str:
    """Who is acting: the session cookie's subject, else "unknown"."""
    if not session:
        return ANONYMOUS_ACTOR
    try:
        claims = token_service.decode_session_token(session)
    except jwt.InvalidTokenError as e:
        logger.warning("Ignoring invalid session cookie: %s", e)
        return ANONYMOUS_ACTOR
    return str(claims["sub"])


async def get_session() -> AsyncGenerator[AsyncSession | None, None]:
    if async_session_factory is None:
        yield None
        return
    async for session in get_async_session():
        yield session


def get_catalogue_repo(
    session: Annotated[AsyncSession | None, Depends(get_session)],
) -> CatalogueRepo:
    if session is None:
        return catalogue_repo
    return PgCatalogueRepo(session)


def get_tag_repo(
    session: Annotated[AsyncSession | None, Depends(get_session)],
) -> TagRepo:
    if session is None:
        return tag_repo
    return PgTagRepo(session)


def get_round_lock() -> RoundLock:
    return round_lock


def get_orbit_settings_store() -> OrbitSettingsStore:
    return orbit_settings_store


def get_ledger_parser() -> LedgerReferenceParser:
    return LedgerReferenceParser(timeout=SETTINGS.explorer_timeout_seconds)


def get_registry_client(
    store: Annotated[OrbitSettingsStore, Depends(get_orbit_settings_store)],
) -> OrbitRegistryClient:
    return OrbitRegistryClient(store, timeout=SETTINGS.orbit_timeout_seconds)


def get_coordinator(
    client: Annotated[OrbitRegistryClient, Depends(get_registry_client)],
    repo: Annotated[CatalogueRepo, Depends(get_catalogue_repo)],
    lock: Annotated[RoundLock, Depends(get_round_lock)],
) -> RegistryRegistrationCoordinator:
    return RegistryRegistrationCoordinator(client, repo, lock)


def get_clone_service(
    coordinator: Annotated[RegistryRegistrationCoordinator, Depends(get_coordinator)],
    repo: Annotated[CatalogueRepo, Depends(get_catalogue_repo)],
    lock: Annotated[RoundLock, Depends(get_round_lock)],
) -> CloneForIssuanceService:
    return CloneForIssuanceService(coordinator, repo, lock)


def get_issuance_gate(
    repo: Annotated[CatalogueRepo, Depends(get_catalogue_repo)],
) -> IssuanceEligibilityGate:
    return IssuanceEligibilityGate(repo)


def get_import_service(
    repo: Annotated[CatalogueRepo, Depends(get_catalogue_repo)],
    tags: Annotated[TagRepo, Depends(get_tag_repo)],
    coordinator: Annotated[RegistryRegistrationCoordinator, Depends(get_coordinator)],
    lock: Annotated[RoundLock, Depends(get_round_lock)],
) -> CatalogueImportService:
    return CatalogueImportService(CatalogueRecordBuilder(), repo, tags, coordinator, lock)
