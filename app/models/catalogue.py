"""Credential catalogue domain models.

Frozen dataclasses; repositories convert rows/documents to and from these.
Updates go through ``dataclasses.replace`` (in memory) or a partial
UPDATE (PostgreSQL), never by mutating an instance.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class OperationLog:
    """One attempted registry call, successful or not."""

    success: bool
    timestamp: datetime
    status_code: int | None = None
    request_url: str | None = None
    request_payload: dict[str, Any] | None = None
    response_body: str | None = None
    error_message: str | None = None

    def to_document(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "statusCode": self.status_code,
            "requestUrl": self.request_url,
            "requestPayload": self.request_payload,
            "responseBody": self.response_body,
            "errorMessage": self.error_message,
            "timestamp": self.timestamp.isoformat(),
        }

    @staticmethod
    def from_document(doc: dict[str, Any]) -> OperationLog:
        return OperationLog(
            success=bool(doc.get("success")),
            status_code=doc.get("statusCode"),
            request_url=doc.get("requestUrl"),
            request_payload=doc.get("requestPayload"),
            response_body=doc.get("responseBody"),
            error_message=doc.get("errorMessage"),
            timestamp=datetime.fromisoformat(doc["timestamp"]),
        )


@dataclass(frozen=True, slots=True)
class ParsedSchema:
    name: str
    version: str
    schema_id: str
    ledger: str
    attributes: tuple[str, ...]
    source_url: str
    issuer_did: str | None = None
    seq_no: int | None = None


@dataclass(frozen=True, slots=True)
class ParsedCredDef:
    cred_def_id: str
    schema_id: str
    ledger: str
    source_url: str
    tag: str = "default"
    signature_type: str = "CL"
    issuer_did: str | None = None
    seq_no: int | None = None
    schema_seq_no: int | None = None


@dataclass(frozen=True, slots=True)
class EcosystemTag:
    id: str
    name: str
    is_predefined: bool = False


PREDEFINED_ECOSYSTEM_TAGS: tuple[EcosystemTag, ...] = (
    EcosystemTag(id="bc-gov", name="BC Government", is_predefined=True),
    EcosystemTag(id="canada", name="Government of Canada", is_predefined=True),
    EcosystemTag(id="sovrin", name="Sovrin", is_predefined=True),
    EcosystemTag(id="candy", name="CANdy", is_predefined=True),
    EcosystemTag(id="other", name="Other", is_predefined=True),
)


class RegistrationState(str, enum.Enum):
    PENDING = "pending"
    SCHEMA_REGISTERED = "schema-registered"
    FULLY_REGISTERED = "fully-registered"
    SCHEMA_FAILED = "schema-failed"
    CREDDEF_FAILED = "creddef-failed"


def registration_state(
    schema_id: str | None,
    schema_log: OperationLog | None,
    cred_def_id: str | None,
    cred_def_log: OperationLog | None,
) -> RegistrationState:
    """Derive the round state of one (schema, cred def) registration pair."""
    if schema_id is None:
        if schema_log is not None and not schema_log.success:
            return RegistrationState.SCHEMA_FAILED
        return RegistrationState.PENDING
    if cred_def_id is not None:
        return RegistrationState.FULLY_REGISTERED
    if cred_def_log is not None and not cred_def_log.success:
        return RegistrationState.CREDDEF_FAILED
    return RegistrationState.SCHEMA_REGISTERED


# Field groups.  Each writer owns exactly one group; the repository's
# partial update lets them write without disturbing each other.
IMMUTABLE_FIELDS = frozenset(
    {"id", "schema_id", "cred_def_id", "ledger", "imported_at", "imported_by"}
)
CLASSIFICATION_FIELDS = frozenset({"ecosystem_tag", "issuer_name", "issuer_entity_id"})
REGISTRATION_FIELDS = frozenset(
    {"orbit_schema_id", "orbit_cred_def_id", "orbit_schema_log", "orbit_cred_def_log"}
)
CLONE_FIELDS = frozenset(
    {
        "cloned_at",
        "cloned_ledger",
        "cloned_schema_id",
        "cloned_cred_def_id",
        "cloned_orbit_schema_id",
        "cloned_orbit_cred_def_id",
        "cloned_orbit_schema_log",
        "cloned_orbit_cred_def_log",
        "cloned_schema_name",
        "cloned_schema_version",
        "enabled_for_issuance",
    }
)

EMPTY_CLONE: dict[str, Any] = {
    name: (False if name == "enabled_for_issuance" else None) for name in CLONE_FIELDS
}


@dataclass(frozen=True, slots=True)
class CatalogueCredential:
    id: UUID
    schema_id: str
    cred_def_id: str
    ledger: str
    attributes: tuple[str, ...]
    name: str
    version: str
    ecosystem_tag: str
    imported_at: datetime
    imported_by: str
    issuer_name: str | None = None
    issuer_did: str | None = None
    issuer_entity_id: str | None = None
    cred_def_tag: str = "default"
    signature_type: str = "CL"
    schema_source_url: str | None = None
    cred_def_source_url: str | None = None

    orbit_schema_id: str | None = None
    orbit_cred_def_id: str | None = None
    orbit_schema_log: OperationLog | None = None
    orbit_cred_def_log: OperationLog | None = None

    cloned_at: datetime | None = None
    cloned_ledger: str | None = None
    cloned_schema_id: str | None = None
    cloned_cred_def_id: str | None = None
    cloned_orbit_schema_id: str | None = None
    cloned_orbit_cred_def_id: str | None = None
    cloned_orbit_schema_log: OperationLog | None = None
    cloned_orbit_cred_def_log: OperationLog | None = None
    cloned_schema_name: str | None = None
    cloned_schema_version: str | None = None
    enabled_for_issuance: bool = False

    @staticmethod
    def new(
        *,
        schema_id: str,
        cred_def_id: str,
        ledger: str,
        attributes: tuple[str, ...],
        name: str,
        version: str,
        ecosystem_tag: str,
        imported_at: datetime,
        imported_by: str,
        **optional: Any,
    ) -> CatalogueCredential:
        return CatalogueCredential(
            id=uuid4(),
            schema_id=schema_id,
            cred_def_id=cred_def_id,
            ledger=ledger,
            attributes=attributes,
            name=name,
            version=version,
            ecosystem_tag=ecosystem_tag,
            imported_at=imported_at,
            imported_by=imported_by,
            **optional,
        )

    @property
    def is_cloned(self) -> bool:
        return self.cloned_at is not None

    @property
    def registration_state(self) -> RegistrationState:
        return registration_state(
            self.orbit_schema_id,
            self.orbit_schema_log,
            self.orbit_cred_def_id,
            self.orbit_cred_def_log,
        )

    @property
    def clone_state(self) -> RegistrationState:
        return registration_state(
            self.cloned_orbit_schema_id,
            self.cloned_orbit_schema_log,
            self.cloned_orbit_cred_def_id,
            self.cloned_orbit_cred_def_log,
        )


# ---------------------------------------------------------------------------
# Registration round outcomes
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class FullyRegistered:
    schema_id: str
    cred_def_id: str
    schema_log: OperationLog | None
    cred_def_log: OperationLog | None
    ledger_schema_id: str | None = None
    ledger_cred_def_id: str | None = None
    ledger: str | None = None
    state: RegistrationState = field(default=RegistrationState.FULLY_REGISTERED)


@dataclass(frozen=True, slots=True)
class SchemaFailed:
    schema_log: OperationLog
    state: RegistrationState = field(default=RegistrationState.SCHEMA_FAILED)


@dataclass(frozen=True, slots=True)
class CredDefFailed:
    schema_id: str
    schema_log: OperationLog | None
    cred_def_log: OperationLog
    ledger_schema_id: str | None = None
    ledger: str | None = None
    state: RegistrationState = field(default=RegistrationState.CREDDEF_FAILED)


RegistrationOutcome = FullyRegistered | SchemaFailed | CredDefFailed


@dataclass(frozen=True, slots=True)
class CloneOptions:
    schema_name: str | None = None
    schema_version: str | None = None
    cred_def_tag: str | None = None
    support_revocation: bool = False


@dataclass(frozen=True, slots=True)
class CloneOutcome:
    state: RegistrationState
    schema_name: str
    schema_version: str
    cloned_ledger: str | None = None
    cloned_schema_id: str | None = None
    cloned_cred_def_id: str | None = None
    cloned_orbit_schema_id: str | None = None
    cloned_orbit_cred_def_id: str | None = None
    schema_log: OperationLog | None = None
    cred_def_log: OperationLog | None = None

    @property
    def primary_log(self) -> OperationLog | None:
        """The log to show first: a failed cred def step outranks the schema step."""
        if self.cred_def_log is not None and not self.cred_def_log.success:
            return self.cred_def_log
        if self.schema_log is not None and not self.schema_log.success:
            return self.schema_log
        return self.cred_def_log or self.schema_log

    @property
    def error(self) -> str | None:
        if self.state == RegistrationState.FULLY_REGISTERED:
            return None
        log = self.primary_log
        if log is None:
            return None
        return log.error_message or f"Registry call failed ({log.status_code})"
