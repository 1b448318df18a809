"""HTTP client for the external credential registry ("Orbit").

Every call produces an OperationLog, successful or not.  A failed call
raises RegistrationError carrying that log; callers decide whether the
failure is terminal.  Nothing here retries.

Two modes:
  store    register metadata of a schema/cred def that already exists on a
           ledger (catalogue import)
  publish  ask the registry to write a new schema/cred def (clone for issuance)
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Literal

import httpx

from app.core.metrics import REGISTRY_CALL_DURATION, REGISTRY_CALLS
from app.models.catalogue import OperationLog
from app.services.errors import RegistrationError
from app.services.orbit_settings import OrbitSettingsStore

logger = logging.getLogger(__name__)

Phase = Literal["schema", "creddef"]

NOT_CONFIGURED_MESSAGE = "Registry is not configured"

SCHEMA_STORE_PATH = "/api/schema/store"
SCHEMA_PUBLISH_PATH = "/api/schema"
CRED_DEF_PATH = "/api/credential-definition"


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class RegistryResult:
    """A successful registry call."""

    registry_id: str
    log: OperationLog
    ledger_id: str | None = None
    ledger: str | None = None


def _error_message(body: Any, status_code: int) -> str:
    if isinstance(body, dict):
        for key in ("message", "error"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
            if isinstance(value, dict) and isinstance(value.get("message"), str):
                return value["message"]
    return f"Registry returned HTTP {status_code}"


def _unwrap(body: Any) -> dict[str, Any]:
    if not isinstance(body, dict):
        return {}
    data = body.get("data")
    return data if isinstance(data, dict) else body


class OrbitRegistryClient:
    def __init__(
        self,
        settings_store: OrbitSettingsStore,
        *,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._settings_store = settings_store
        self._timeout = timeout
        self._transport = transport
        self._clock = clock

    async def store_schema(
        self,
        *,
        schema_id: str,
        name: str,
        version: str,
        attributes: Sequence[str],
        issuer_did: str | None,
    ) -> RegistryResult:
        payload = {
            "schemaId": schema_id,
            "name": name,
            "version": version,
            "attributes": list(attributes),
            "issuerDid": issuer_did,
        }
        return await self._post("schema", SCHEMA_STORE_PATH, payload, "schemaId")

    async def publish_schema(
        self, *, name: str, version: str, attributes: Sequence[str]
    ) -> RegistryResult:
        payload = {"name": name, "version": version, "attributes": list(attributes)}
        return await self._post("schema", SCHEMA_PUBLISH_PATH, payload, "schemaId")

    async def store_cred_def(
        self,
        *,
        cred_def_id: str,
        schema_id: str,
        issuer_did: str | None,
        tag: str,
        signature_type: str,
    ) -> RegistryResult:
        payload = {
            "credDefId": cred_def_id,
            "schemaId": schema_id,
            "issuerDid": issuer_did,
            "tag": tag,
            "signatureType": signature_type,
        }
        return await self._post("creddef", CRED_DEF_PATH, payload, "credDefId")

    async def publish_cred_def(
        self, *, schema_id: str, tag: str, support_revocation: bool = False
    ) -> RegistryResult:
        payload = {
            "schemaId": schema_id,
            "tag": tag,
            "supportRevocation": support_revocation,
        }
        return await self._post("creddef", CRED_DEF_PATH, payload, "credDefId")

    # ------------------------------------------------------------------

    def _fail(self, phase: Phase, result: str, log: OperationLog) -> RegistrationError:
        REGISTRY_CALLS.labels(phase=phase, result=result).inc()
        logger.warning(
            "Registry %s call failed status=%s: %s",
            phase,
            log.status_code,
            log.error_message,
            extra={"phase": phase},
        )
        return RegistrationError(log)

    async def _post(
        self, phase: Phase, path: str, payload: dict[str, Any], ledger_key: str
    ) -> RegistryResult:
        settings = self._settings_store.load()
        url = f"{settings.base_url}{path}" if settings.base_url else path

        if not settings.is_configured:
            log = OperationLog(
                success=False,
                timestamp=self._clock(),
                request_url=url,
                request_payload=payload,
                error_message=NOT_CONFIGURED_MESSAGE,
            )
            raise self._fail(phase, "not-configured", log)

        logger.info("Registry %s call POST %s", phase, url, extra={"phase": phase})
        start = time.monotonic()
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(url, json=payload, headers=settings.headers())
        except httpx.TimeoutException:
            message = f"Request timed out after {self._timeout:g}s"
        except httpx.HTTPError as e:
            message = f"Request failed: {e}"
        else:
            message = None
        finally:
            REGISTRY_CALL_DURATION.labels(phase=phase).observe(time.monotonic() - start)

        if message is not None:
            log = OperationLog(
                success=False,
                timestamp=self._clock(),
                request_url=url,
                request_payload=payload,
                error_message=message,
            )
            raise self._fail(phase, "transport-error", log)

        raw = response.text
        try:
            body = response.json() if raw else None
        except json.JSONDecodeError:
            body = None

        if not response.is_success:
            log = OperationLog(
                success=False,
                timestamp=self._clock(),
                status_code=response.status_code,
                request_url=url,
                request_payload=payload,
                response_body=raw,
                error_message=_error_message(body, response.status_code),
            )
            raise self._fail(phase, "http-error", log)

        data = _unwrap(body)
        registry_id = data.get("id") or data.get(ledger_key)
        if not registry_id:
            log = OperationLog(
                success=False,
                timestamp=self._clock(),
                status_code=response.status_code,
                request_url=url,
                request_payload=payload,
                response_body=raw,
                error_message="Registry response did not include an id",
            )
            raise self._fail(phase, "no-id", log)

        REGISTRY_CALLS.labels(phase=phase, result="ok").inc()
        log = OperationLog(
            success=True,
            timestamp=self._clock(),
            status_code=response.status_code,
            request_url=url,
            request_payload=payload,
            response_body=raw,
        )
        return RegistryResult(
            registry_id=str(registry_id),
            log=log,
            ledger_id=data.get(ledger_key) or None,
            ledger=data.get("ledger") or data.get("ledgerId") or None,
        )
