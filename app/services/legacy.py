"""Read records written by the previous, file-backed catalogue.

Older records carry a single ``orbitRegistrationError`` string and,
sometimes, an ``orbitRegistrationErrorDetails`` object instead of the
per-phase OperationLogs.  They are converted on read: the legacy error
becomes the schema or cred def log depending on which step failed.  The
structured logs always win when both are present.  Nothing writes the
legacy shape back.

Legacy error string format:

    "Failed to import schema to Orbit: 400 - {\"message\": \"duplicate schema\"}"
"""

from __future__ import annotations

import json
import re
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from app.models.catalogue import CatalogueCredential, OperationLog

_LEGACY_ERROR_RE = re.compile(r"^(.*?):\s*(\d+)\s*-\s*(.*)$", re.DOTALL)


def _parse_timestamp(value: Any, default: datetime) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        # Older Node.js writers used a trailing "Z"
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    return default


def _json_message(raw: str | None) -> str | None:
    if not raw:
        return None
    try:
        body = json.loads(raw)
    except json.JSONDecodeError:
        return None
    if isinstance(body, dict) and isinstance(body.get("message"), str):
        return body["message"]
    return None


def parse_legacy_error(
    message: str,
    details: dict[str, Any] | None,
    *,
    timestamp: datetime,
) -> OperationLog:
    """Build a failed OperationLog from the legacy error string and details."""
    if details:
        raw = details.get("responseBody")
        payload = details.get("requestPayload")
        return OperationLog(
            success=False,
            timestamp=_parse_timestamp(details.get("timestamp"), timestamp),
            status_code=details.get("statusCode"),
            request_url=details.get("requestUrl"),
            request_payload=payload if isinstance(payload, dict) else None,
            response_body=raw,
            error_message=_json_message(raw) or details.get("message") or message,
        )

    m = _LEGACY_ERROR_RE.match(message)
    if m is None:
        return OperationLog(success=False, timestamp=timestamp, error_message=message)

    prefix, status, raw = m.groups()
    return OperationLog(
        success=False,
        timestamp=timestamp,
        status_code=int(status),
        response_body=raw,
        error_message=_json_message(raw) or prefix,
    )


def legacy_failed_step(
    message: str, details: dict[str, Any] | None, orbit_schema_id: str | None
) -> str:
    step = (details or {}).get("failedStep")
    if step in ("schema", "creddef"):
        return step
    if orbit_schema_id:
        return "creddef"
    lowered = message.lower()
    if "cred" in lowered and "schema" not in lowered:
        return "creddef"
    return "schema"


def merge_legacy_error(
    *,
    schema_log: OperationLog | None,
    cred_def_log: OperationLog | None,
    orbit_schema_id: str | None,
    legacy_error: str | None,
    legacy_details: dict[str, Any] | None,
    imported_at: datetime,
) -> tuple[OperationLog | None, OperationLog | None]:
    """Return (schema_log, cred_def_log) with a legacy error folded in."""
    if not legacy_error or schema_log is not None or cred_def_log is not None:
        return schema_log, cred_def_log

    log = parse_legacy_error(legacy_error, legacy_details, timestamp=imported_at)
    if legacy_failed_step(legacy_error, legacy_details, orbit_schema_id) == "creddef":
        return None, log
    return log, None


def _log(doc: Any, default_timestamp: datetime) -> OperationLog | None:
    if not isinstance(doc, dict):
        return None
    # Some legacy logs were written without a timestamp.
    timestamp = _parse_timestamp(doc.get("timestamp"), default_timestamp)
    return OperationLog.from_document({**doc, "timestamp": timestamp.isoformat()})


def credential_from_document(doc: dict[str, Any]) -> CatalogueCredential:
    """Convert one camelCase record of the previous catalogue file."""
    imported_at = _parse_timestamp(doc.get("importedAt"), datetime.now(UTC))
    orbit_schema_id = doc.get("orbitSchemaId") or None
    schema_log, cred_def_log = merge_legacy_error(
        schema_log=_log(doc.get("orbitSchemaLog"), imported_at),
        cred_def_log=_log(doc.get("orbitCredDefLog"), imported_at),
        orbit_schema_id=orbit_schema_id,
        legacy_error=doc.get("orbitRegistrationError"),
        legacy_details=doc.get("orbitRegistrationErrorDetails"),
        imported_at=imported_at,
    )
    cloned_at = doc.get("clonedAt")

    return CatalogueCredential(
        id=UUID(doc["id"]),
        schema_id=doc["schemaId"],
        cred_def_id=doc["credDefId"],
        ledger=doc.get("ledger") or "unknown",
        attributes=tuple(doc.get("attributes") or ()),
        name=doc.get("name") or "",
        version=doc.get("version") or "",
        ecosystem_tag=doc.get("ecosystemTag") or "other",
        imported_at=imported_at,
        imported_by=doc.get("importedBy") or "unknown",
        issuer_name=doc.get("issuerName"),
        issuer_did=doc.get("issuerDid"),
        issuer_entity_id=doc.get("issuerEntityId"),
        cred_def_tag=doc.get("credDefTag") or "default",
        signature_type=doc.get("signatureType") or "CL",
        schema_source_url=doc.get("schemaSourceUrl"),
        cred_def_source_url=doc.get("credDefSourceUrl"),
        orbit_schema_id=orbit_schema_id,
        orbit_cred_def_id=doc.get("orbitCredDefId") or None,
        orbit_schema_log=schema_log,
        orbit_cred_def_log=cred_def_log,
        cloned_at=_parse_timestamp(cloned_at, imported_at) if cloned_at else None,
        cloned_ledger=doc.get("clonedLedger"),
        cloned_schema_id=doc.get("clonedSchemaId"),
        cloned_cred_def_id=doc.get("clonedCredDefId"),
        cloned_orbit_schema_id=doc.get("clonedOrbitSchemaId"),
        cloned_orbit_cred_def_id=doc.get("clonedOrbitCredDefId"),
        cloned_orbit_schema_log=_log(doc.get("clonedOrbitSchemaLog"), imported_at),
        cloned_orbit_cred_def_log=_log(doc.get("clonedOrbitCredDefLog"), imported_at),
        # enabled_for_issuance is meaningless without a completed clone
        enabled_for_issuance=bool(cloned_at and doc.get("enabledForIssuance")),
    )
