"""PostgreSQL implementation of TagRepo.

Predefined tags are seeded by the migration; they are ordinary rows with
``is_predefined`` set.
"""

from __future__ import annotations

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import EcosystemTagRow
from app.models.catalogue import EcosystemTag


class PgTagRepo:
    """Satisfies the TagRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_all(self) -> list[EcosystemTag]:
        stmt = select(EcosystemTagRow).order_by(
            EcosystemTagRow.is_predefined.desc(), EcosystemTagRow.name
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_tag(r) for r in rows]

    async def get(self, tag_id: str) -> EcosystemTag | None:
        row = await self._session.get(EcosystemTagRow, tag_id)
        if row is None:
            return None
        return _row_to_tag(row)

    async def add(self, tag: EcosystemTag) -> None:
        row = EcosystemTagRow(id=tag.id, name=tag.name, is_predefined=tag.is_predefined)
        self._session.add(row)
        await self._session.flush()

    async def delete(self, tag_id: str) -> bool:
        stmt = delete(EcosystemTagRow).where(EcosystemTagRow.id == tag_id)
        result = await self._session.execute(stmt)
        return result.rowcount > 0


def _row_to_tag(row: EcosystemTagRow) -> EcosystemTag:
    return EcosystemTag(id=row.id, name=row.name, is_predefined=row.is_predefined)
