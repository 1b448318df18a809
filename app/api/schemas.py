"""Pydantic request/response bodies for the catalogue API.

Bodies are camelCase on the wire (``schemaId``, ``credDefData``, ...) and
snake_case in Python; ``populate_by_name`` lets tests use either.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.models.catalogue import (
    CatalogueCredential,
    CloneOutcome,
    EcosystemTag,
    OperationLog,
    ParsedCredDef,
    ParsedSchema,
    RegistrationState,
)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Explorer parsing ---


class ParseSchemaIn(CamelModel):
    url: str


class ParseCredDefIn(CamelModel):
    url: str
    schema_id: str
    schema_seq_no: int


class ParsedSchemaBody(CamelModel):
    name: str
    version: str
    schema_id: str
    ledger: str
    attributes: list[str]
    source_url: str = ""
    issuer_did: str | None = None
    seq_no: int | None = None

    @staticmethod
    def from_domain(s: ParsedSchema) -> ParsedSchemaBody:
        return ParsedSchemaBody(
            name=s.name,
            version=s.version,
            schema_id=s.schema_id,
            ledger=s.ledger,
            attributes=list(s.attributes),
            source_url=s.source_url,
            issuer_did=s.issuer_did,
            seq_no=s.seq_no,
        )

    def to_domain(self) -> ParsedSchema:
        return ParsedSchema(
            name=self.name,
            version=self.version,
            schema_id=self.schema_id,
            ledger=self.ledger,
            attributes=tuple(self.attributes),
            source_url=self.source_url,
            issuer_did=self.issuer_did,
            seq_no=self.seq_no,
        )


class ParsedCredDefBody(CamelModel):
    cred_def_id: str
    schema_id: str
    ledger: str
    source_url: str = ""
    tag: str = "default"
    signature_type: str = "CL"
    issuer_did: str | None = None
    seq_no: int | None = None
    schema_seq_no: int | None = None

    @staticmethod
    def from_domain(c: ParsedCredDef) -> ParsedCredDefBody:
        return ParsedCredDefBody(
            cred_def_id=c.cred_def_id,
            schema_id=c.schema_id,
            ledger=c.ledger,
            source_url=c.source_url,
            tag=c.tag,
            signature_type=c.signature_type,
            issuer_did=c.issuer_did,
            seq_no=c.seq_no,
            schema_seq_no=c.schema_seq_no,
        )

    def to_domain(self) -> ParsedCredDef:
        return ParsedCredDef(
            cred_def_id=self.cred_def_id,
            schema_id=self.schema_id,
            ledger=self.ledger,
            source_url=self.source_url,
            tag=self.tag,
            signature_type=self.signature_type,
            issuer_did=self.issuer_did,
            seq_no=self.seq_no,
            schema_seq_no=self.schema_seq_no,
        )


# --- Catalogue records ---


class ImportIn(CamelModel):
    schema_data: ParsedSchemaBody
    cred_def_data: ParsedCredDefBody
    ecosystem_tag_id: str
    issuer_name: str | None = None
    issuer_entity_id: str | None = None
    schema_source_url: str | None = None
    cred_def_source_url: str | None = None
    register_with_orbit: bool = False


class CredentialPatchIn(CamelModel):
    ecosystem_tag: str | None = None
    issuer_name: str | None = None
    issuer_entity_id: str | None = None


class OperationLogOut(CamelModel):
    success: bool
    timestamp: datetime
    status_code: int | None = None
    request_url: str | None = None
    request_payload: dict[str, Any] | None = None
    response_body: str | None = None
    error_message: str | None = None

    @staticmethod
    def from_domain(log: OperationLog | None) -> OperationLogOut | None:
        if log is None:
            return None
        return OperationLogOut(
            success=log.success,
            timestamp=log.timestamp,
            status_code=log.status_code,
            request_url=log.request_url,
            request_payload=log.request_payload,
            response_body=log.response_body,
            error_message=log.error_message,
        )


class CredentialOut(CamelModel):
    id: str
    name: str
    version: str
    schema_id: str
    cred_def_id: str
    ledger: str
    attributes: list[str]
    ecosystem_tag: str
    issuer_name: str | None
    issuer_did: str | None
    issuer_entity_id: str | None
    cred_def_tag: str
    signature_type: str
    schema_source_url: str | None
    cred_def_source_url: str | None
    imported_at: datetime
    imported_by: str

    registration_state: RegistrationState
    orbit_schema_id: str | None
    orbit_cred_def_id: str | None
    orbit_schema_log: OperationLogOut | None
    orbit_cred_def_log: OperationLogOut | None

    is_cloned: bool
    clone_state: RegistrationState
    cloned_at: datetime | None
    cloned_ledger: str | None
    cloned_schema_id: str | None
    cloned_cred_def_id: str | None
    cloned_orbit_schema_id: str | None
    cloned_orbit_cred_def_id: str | None
    cloned_orbit_schema_log: OperationLogOut | None
    cloned_orbit_cred_def_log: OperationLogOut | None
    cloned_schema_name: str | None
    cloned_schema_version: str | None
    enabled_for_issuance: bool

    @staticmethod
    def from_domain(c: CatalogueCredential) -> CredentialOut:
        return CredentialOut(
            id=str(c.id),
            name=c.name,
            version=c.version,
            schema_id=c.schema_id,
            cred_def_id=c.cred_def_id,
            ledger=c.ledger,
            attributes=list(c.attributes),
            ecosystem_tag=c.ecosystem_tag,
            issuer_name=c.issuer_name,
            issuer_did=c.issuer_did,
            issuer_entity_id=c.issuer_entity_id,
            cred_def_tag=c.cred_def_tag,
            signature_type=c.signature_type,
            schema_source_url=c.schema_source_url,
            cred_def_source_url=c.cred_def_source_url,
            imported_at=c.imported_at,
            imported_by=c.imported_by,
            registration_state=c.registration_state,
            orbit_schema_id=c.orbit_schema_id,
            orbit_cred_def_id=c.orbit_cred_def_id,
            orbit_schema_log=OperationLogOut.from_domain(c.orbit_schema_log),
            orbit_cred_def_log=OperationLogOut.from_domain(c.orbit_cred_def_log),
            is_cloned=c.is_cloned,
            clone_state=c.clone_state,
            cloned_at=c.cloned_at,
            cloned_ledger=c.cloned_ledger,
            cloned_schema_id=c.cloned_schema_id,
            cloned_cred_def_id=c.cloned_cred_def_id,
            cloned_orbit_schema_id=c.cloned_orbit_schema_id,
            cloned_orbit_cred_def_id=c.cloned_orbit_cred_def_id,
            cloned_orbit_schema_log=OperationLogOut.from_domain(
                c.cloned_orbit_schema_log
            ),
            cloned_orbit_cred_def_log=OperationLogOut.from_domain(
                c.cloned_orbit_cred_def_log
            ),
            cloned_schema_name=c.cloned_schema_name,
            cloned_schema_version=c.cloned_schema_version,
            enabled_for_issuance=c.enabled_for_issuance,
        )


# --- Registration and clone ---


class RegistrationOut(CamelModel):
    state: RegistrationState
    credential: CredentialOut


class CloneIn(CamelModel):
    cred_def_tag: str | None = None
    support_revocation: bool = False
    schema_name: str | None = None
    schema_version: str | None = None


class CloneOutcomeOut(CamelModel):
    success: bool
    state: RegistrationState
    error: str | None
    schema_name: str
    schema_version: str
    cloned_ledger: str | None
    cloned_schema_id: str | None
    cloned_cred_def_id: str | None
    cloned_orbit_schema_id: str | None
    cloned_orbit_cred_def_id: str | None
    schema_log: OperationLogOut | None
    cred_def_log: OperationLogOut | None

    @staticmethod
    def from_domain(o: CloneOutcome) -> CloneOutcomeOut:
        return CloneOutcomeOut(
            success=o.state == RegistrationState.FULLY_REGISTERED,
            state=o.state,
            error=o.error,
            schema_name=o.schema_name,
            schema_version=o.schema_version,
            cloned_ledger=o.cloned_ledger,
            cloned_schema_id=o.cloned_schema_id,
            cloned_cred_def_id=o.cloned_cred_def_id,
            cloned_orbit_schema_id=o.cloned_orbit_schema_id,
            cloned_orbit_cred_def_id=o.cloned_orbit_cred_def_id,
            schema_log=OperationLogOut.from_domain(o.schema_log),
            cred_def_log=OperationLogOut.from_domain(o.cred_def_log),
        )


class IssuableIn(CamelModel):
    enabled: bool


# --- Tags and registry settings ---


class TagIn(CamelModel):
    name: str = Field(min_length=1, max_length=255)


class TagOut(CamelModel):
    id: str
    name: str
    is_predefined: bool

    @staticmethod
    def from_domain(t: EcosystemTag) -> TagOut:
        return TagOut(id=t.id, name=t.name, is_predefined=t.is_predefined)


class OrbitStatusOut(CamelModel):
    configured: bool
    source: str
    base_url: str | None
    lob_id: str | None
    has_api_key: bool


class OrbitSettingsIn(CamelModel):
    base_url: str
    lob_id: str
    api_key: str | None = None


class ConnectionTestOut(CamelModel):
    success: bool
    message: str
    status_code: int | None = None
