"""SQLAlchemy table definitions.

These map to the frozen dataclass domain models in app/models/catalogue.py.
Repos convert between SQLAlchemy rows and domain dataclasses.

OperationLogs are stored as JSONB documents in the camelCase wire shape
(OperationLog.to_document), so a row can be inspected directly in psql
with the same field names the API returns.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.db.engine import Base


class CatalogueCredentialRow(Base):
    __tablename__ = "catalogue_credentials"
    __table_args__ = (
        UniqueConstraint(
            "ledger", "schema_id", "cred_def_id", name="uq_catalogue_ledger_ids"
        ),
        CheckConstraint(
            "cloned_at IS NOT NULL OR NOT enabled_for_issuance",
            name="ck_catalogue_enabled_requires_clone",
        ),
        Index("ix_catalogue_credentials_imported_at", "imported_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    schema_id: Mapped[str] = mapped_column(String(512), nullable=False)
    cred_def_id: Mapped[str] = mapped_column(String(512), nullable=False)
    ledger: Mapped[str] = mapped_column(String(64), nullable=False)
    attributes: Mapped[list[str]] = mapped_column(ARRAY(String), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    version: Mapped[str] = mapped_column(String(64), nullable=False)
    ecosystem_tag: Mapped[str] = mapped_column(String(128), nullable=False)
    issuer_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    issuer_did: Mapped[str | None] = mapped_column(String(128), nullable=True)
    issuer_entity_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    cred_def_tag: Mapped[str] = mapped_column(
        String(128), nullable=False, default="default"
    )
    signature_type: Mapped[str] = mapped_column(String(16), nullable=False, default="CL")
    schema_source_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    cred_def_source_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    imported_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    imported_by: Mapped[str] = mapped_column(String(320), nullable=False)

    # Registration of the imported pair
    orbit_schema_id: Mapped[str | None] = mapped_column(String(512), nullable=True)
    orbit_cred_def_id: Mapped[str | None] = mapped_column(String(512), nullable=True)
    orbit_schema_log: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)
    orbit_cred_def_log: Mapped[dict[str, Any] | None] = mapped_column(
        JSONB, nullable=True
    )

    # Written by the file-backed catalogue before structured logs existed.
    # Read (and converted) only; never written by this service.
    orbit_registration_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    orbit_registration_error_details: Mapped[dict[str, Any] | None] = mapped_column(
        JSONB, nullable=True
    )

    # Clone for issuance
    cloned_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    cloned_ledger: Mapped[str | None] = mapped_column(String(64), nullable=True)
    cloned_schema_id: Mapped[str | None] = mapped_column(String(512), nullable=True)
    cloned_cred_def_id: Mapped[str | None] = mapped_column(String(512), nullable=True)
    cloned_orbit_schema_id: Mapped[str | None] = mapped_column(
        String(512), nullable=True
    )
    cloned_orbit_cred_def_id: Mapped[str | None] = mapped_column(
        String(512), nullable=True
    )
    cloned_orbit_schema_log: Mapped[dict[str, Any] | None] = mapped_column(
        JSONB, nullable=True
    )
    cloned_orbit_cred_def_log: Mapped[dict[str, Any] | None] = mapped_column(
        JSONB, nullable=True
    )
    cloned_schema_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    cloned_schema_version: Mapped[str | None] = mapped_column(String(64), nullable=True)
    enabled_for_issuance: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )


class EcosystemTagRow(Base):
    __tablename__ = "ecosystem_tags"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_predefined: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
