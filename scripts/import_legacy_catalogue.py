"""Load the previous file-backed catalogue into the configured database.

The old service kept everything in two JSON files:

    <assets>/credential-catalogue/credentials.json
    <assets>/credential-catalogue/tags.json      (custom tags only)

Records go through app.services.legacy, so old single-string registration
errors become structured logs.  Records already present (same ledger,
schema id and cred def id) are skipped, so the script can be re-run.

Run with:
    DATABASE_URL=postgresql+asyncpg://... \\
        python scripts/import_legacy_catalogue.py path/to/credential-catalogue
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path

from app.core.config import SETTINGS
from app.core.logging import setup_logging
from app.db.engine import async_session_factory
from app.models.catalogue import EcosystemTag
from app.repos.catalogue_repo import CatalogueRepo
from app.repos.pg_catalogue_repo import PgCatalogueRepo
from app.repos.pg_tag_repo import PgTagRepo
from app.repos.tag_repo import TagRepo, tag_id_for
from app.services.legacy import credential_from_document

logger = logging.getLogger("import_legacy_catalogue")


def _read_list(path: Path) -> list[dict]:
    if not path.exists():
        return []
    data = json.loads(path.read_text(encoding="utf-8"))
    return [d for d in data if isinstance(d, dict)] if isinstance(data, list) else []


async def load_legacy_catalogue(
    directory: Path, catalogue: CatalogueRepo, tags: TagRepo
) -> tuple[int, int]:
    """Copy tags and credentials from ``directory``.  Returns (imported, skipped)."""
    for doc in _read_list(directory / "tags.json"):
        name = str(doc.get("name") or "").strip()
        tag_id = doc.get("id") or tag_id_for(name)
        if name and await tags.get(tag_id) is None:
            await tags.add(EcosystemTag(id=tag_id, name=name))
            logger.info("Tag %s imported", tag_id)

    imported = skipped = 0
    for doc in _read_list(directory / "credentials.json"):
        try:
            credential = credential_from_document(doc)
        except (KeyError, ValueError) as e:
            logger.warning("Skipping malformed record id=%s: %s", doc.get("id"), e)
            skipped += 1
            continue

        existing = await catalogue.find_by_ledger_ids(
            credential.ledger, credential.schema_id, credential.cred_def_id
        )
        if existing is not None or await catalogue.get_by_id(credential.id) is not None:
            skipped += 1
            continue

        await catalogue.create(credential)
        imported += 1
        logger.info(
            "Imported %s %s",
            credential.name,
            credential.version,
            extra={"credential_id": str(credential.id)},
        )
    return imported, skipped


async def main(directory: Path) -> int:
    if async_session_factory is None:
        logger.error("DATABASE_URL is not configured; nothing to import into")
        return 1

    async with async_session_factory() as session:
        imported, skipped = await load_legacy_catalogue(
            directory, PgCatalogueRepo(session), PgTagRepo(session)
        )
        await session.commit()

    logger.info("Done: %d imported, %d skipped", imported, skipped)
    return 0


if __name__ == "__main__":
    setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)
    if len(sys.argv) != 2:
        print(__doc__)
        sys.exit(2)
    sys.exit(asyncio.run(main(Path(sys.argv[1]))))
