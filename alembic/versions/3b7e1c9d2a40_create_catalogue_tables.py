"""create catalogue tables

Revision ID: 3b7e1c9d2a40
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3b7e1c9d2a40"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_PREDEFINED_TAGS = [
    {"id": "bc-gov", "name": "BC Government", "is_predefined": True},
    {"id": "canada", "name": "Government of Canada", "is_predefined": True},
    {"id": "sovrin", "name": "Sovrin", "is_predefined": True},
    {"id": "candy", "name": "CANdy", "is_predefined": True},
    {"id": "other", "name": "Other", "is_predefined": True},
]


def upgrade() -> None:
    tags = op.create_table(
        "ecosystem_tags",
        sa.Column("id", sa.String(length=128), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("is_predefined", sa.Boolean(), nullable=False, server_default="false"),
    )
    op.bulk_insert(tags, _PREDEFINED_TAGS)

    op.create_table(
        "catalogue_credentials",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("schema_id", sa.String(length=512), nullable=False),
        sa.Column("cred_def_id", sa.String(length=512), nullable=False),
        sa.Column("ledger", sa.String(length=64), nullable=False),
        sa.Column("attributes", postgresql.ARRAY(sa.String()), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("version", sa.String(length=64), nullable=False),
        sa.Column("ecosystem_tag", sa.String(length=128), nullable=False),
        sa.Column("issuer_name", sa.String(length=255), nullable=True),
        sa.Column("issuer_did", sa.String(length=128), nullable=True),
        sa.Column("issuer_entity_id", sa.String(length=128), nullable=True),
        sa.Column(
            "cred_def_tag", sa.String(length=128), nullable=False, server_default="default"
        ),
        sa.Column(
            "signature_type", sa.String(length=16), nullable=False, server_default="CL"
        ),
        sa.Column("schema_source_url", sa.Text(), nullable=True),
        sa.Column("cred_def_source_url", sa.Text(), nullable=True),
        sa.Column("imported_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("imported_by", sa.String(length=320), nullable=False),
        sa.Column("orbit_schema_id", sa.String(length=512), nullable=True),
        sa.Column("orbit_cred_def_id", sa.String(length=512), nullable=True),
        sa.Column("orbit_schema_log", postgresql.JSONB(), nullable=True),
        sa.Column("orbit_cred_def_log", postgresql.JSONB(), nullable=True),
        sa.Column("orbit_registration_error", sa.Text(), nullable=True),
        sa.Column("orbit_registration_error_details", postgresql.JSONB(), nullable=True),
        sa.Column("cloned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cloned_ledger", sa.String(length=64), nullable=True),
        sa.Column("cloned_schema_id", sa.String(length=512), nullable=True),
        sa.Column("cloned_cred_def_id", sa.String(length=512), nullable=True),
        sa.Column("cloned_orbit_schema_id", sa.String(length=512), nullable=True),
        sa.Column("cloned_orbit_cred_def_id", sa.String(length=512), nullable=True),
        sa.Column("cloned_orbit_schema_log", postgresql.JSONB(), nullable=True),
        sa.Column("cloned_orbit_cred_def_log", postgresql.JSONB(), nullable=True),
        sa.Column("cloned_schema_name", sa.String(length=255), nullable=True),
        sa.Column("cloned_schema_version", sa.String(length=64), nullable=True),
        sa.Column(
            "enabled_for_issuance", sa.Boolean(), nullable=False, server_default="false"
        ),
        sa.UniqueConstraint(
            "ledger", "schema_id", "cred_def_id", name="uq_catalogue_ledger_ids"
        ),
        sa.CheckConstraint(
            "cloned_at IS NOT NULL OR NOT enabled_for_issuance",
            name="ck_catalogue_enabled_requires_clone",
        ),
    )
    op.create_index(
        "ix_catalogue_credentials_imported_at",
        "catalogue_credentials",
        ["imported_at"],
    )


def downgrade() -> None:
    op.drop_index(
        "ix_catalogue_credentials_imported_at", table_name="catalogue_credentials"
    )
    op.drop_table("catalogue_credentials")
    op.drop_table("ecosystem_tags")
