from __future__ import annotations

from typing import Protocol

from app.models.catalogue import PREDEFINED_ECOSYSTEM_TAGS, EcosystemTag


def tag_id_for(name: str) -> str:
    """Custom tag ids are the lower-cased name with spaces as hyphens."""
    return "-".join(name.strip().lower().split())


class TagRepo(Protocol):
    async def list_all(self) -> list[EcosystemTag]: ...
    async def get(self, tag_id: str) -> EcosystemTag | None: ...
    async def add(self, tag: EcosystemTag) -> None: ...
    async def delete(self, tag_id: str) -> bool: ...


class InMemoryTagRepo:
    def __init__(self) -> None:
        self._by_id: dict[str, EcosystemTag] = {t.id: t for t in PREDEFINED_ECOSYSTEM_TAGS}

    def reset(self) -> None:
        self._by_id = {t.id: t for t in PREDEFINED_ECOSYSTEM_TAGS}

    async def list_all(self) -> list[EcosystemTag]:
        return list(self._by_id.values())

    async def get(self, tag_id: str) -> EcosystemTag | None:
        return self._by_id.get(tag_id)

    async def add(self, tag: EcosystemTag) -> None:
        if tag.id in self._by_id:
            raise ValueError("tag already exists")
        self._by_id[tag.id] = tag

    async def delete(self, tag_id: str) -> bool:
        return self._by_id.pop(tag_id, None) is not None
