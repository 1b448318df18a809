"""Error taxonomy for the import / registration / clone pipeline.

Parse, mismatch and validation errors abort the current step and reach
the caller verbatim.  RegistrationError never escapes the coordinator:
it is converted into an OperationLog on the record.  Routers map each
class to one HTTP status.
"""

from __future__ import annotations

from typing import Literal
from uuid import UUID

from app.models.catalogue import OperationLog

ParseErrorKind = Literal["unsupported-url", "fetch-failed", "unparseable"]


class CatalogueError(Exception):
    pass


class ParseError(CatalogueError):
    def __init__(self, kind: ParseErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind


class MismatchError(CatalogueError):
    def __init__(self, expected_schema_id: str, actual: str) -> None:
        super().__init__(
            f"credential definition references schema {actual!r}, "
            f"expected {expected_schema_id!r}"
        )
        self.expected_schema_id = expected_schema_id
        self.actual = actual


class ValidationError(CatalogueError, ValueError):
    pass


class RegistrationError(CatalogueError):
    """A registry call failed; ``log`` holds the full diagnostic record."""

    def __init__(self, log: OperationLog) -> None:
        super().__init__(log.error_message or "registry call failed")
        self.log = log


class CloneCollisionError(CatalogueError):
    def __init__(self, name: str, version: str) -> None:
        super().__init__(f"schema {name!r} version {version!r} already exists")
        self.name = name
        self.version = version


class CredentialNotFoundError(CatalogueError):
    def __init__(self, credential_id: UUID) -> None:
        super().__init__(f"credential {credential_id} not found")
        self.credential_id = credential_id


class NotClonedError(CatalogueError):
    def __init__(self, credential_id: UUID) -> None:
        super().__init__(f"credential {credential_id} has not been cloned for issuance")
        self.credential_id = credential_id


class DuplicateImportError(CatalogueError):
    def __init__(self, existing_id: UUID | None) -> None:
        super().__init__(
            f"credential already imported as {existing_id}"
            if existing_id is not None
            else "credential already imported"
        )
        self.existing_id = existing_id


class RoundInProgressError(CatalogueError):
    def __init__(self, key: str) -> None:
        super().__init__(f"another operation is already running for {key}")
        self.key = key


class TagNotFoundError(CatalogueError):
    pass


class TagConflictError(CatalogueError):
    pass
