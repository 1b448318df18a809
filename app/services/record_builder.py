from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from app.models.catalogue import CatalogueCredential, ParsedCredDef, ParsedSchema
from app.services.errors import MismatchError, ValidationError

logger = logging.getLogger(__name__)

ANONYMOUS_ACTOR = "unknown"


@dataclass(frozen=True, slots=True)
class SourceUrls:
    schema_url: str | None = None
    cred_def_url: str | None = None


def _utcnow() -> datetime:
    return datetime.now(UTC)


class CatalogueRecordBuilder:
    """Turn a parsed (schema, cred def) pair plus classification into a record.

    Pure: no I/O and no registry contact.  The clock is injectable so tests
    can pin ``imported_at``.
    """

    def __init__(self, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock

    def build(
        self,
        parsed_schema: ParsedSchema,
        parsed_cred_def: ParsedCredDef,
        ecosystem_tag_id: str,
        issuer_name: str | None,
        source_urls: SourceUrls,
        actor: str | None,
        *,
        issuer_entity_id: str | None = None,
    ) -> CatalogueCredential:
        tag = (ecosystem_tag_id or "").strip()
        if not tag:
            logger.warning("Rejected import without ecosystem tag")
            raise ValidationError("ecosystem tag is required")

        attributes = tuple(parsed_schema.attributes)
        if not attributes:
            raise ValidationError("schema has no attributes")
        if any(not (a or "").strip() for a in attributes):
            logger.warning("Rejected import with a blank attribute name")
            raise ValidationError("schema attribute names must not be blank")

        if parsed_cred_def.schema_id != parsed_schema.schema_id:
            raise MismatchError(parsed_schema.schema_id, parsed_cred_def.schema_id)

        return CatalogueCredential.new(
            schema_id=parsed_schema.schema_id,
            cred_def_id=parsed_cred_def.cred_def_id,
            ledger=parsed_schema.ledger or parsed_cred_def.ledger,
            attributes=attributes,
            name=parsed_schema.name,
            version=parsed_schema.version,
            ecosystem_tag=tag,
            imported_at=self._clock(),
            imported_by=(actor or "").strip() or ANONYMOUS_ACTOR,
            issuer_name=(issuer_name or "").strip() or None,
            issuer_did=parsed_schema.issuer_did or parsed_cred_def.issuer_did,
            issuer_entity_id=issuer_entity_id or None,
            cred_def_tag=parsed_cred_def.tag,
            signature_type=parsed_cred_def.signature_type,
            schema_source_url=source_urls.schema_url or parsed_schema.source_url,
            cred_def_source_url=source_urls.cred_def_url or parsed_cred_def.source_url,
        )
