"""Ecosystem tags used to classify catalogue credentials."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from app.api.dependencies import get_tag_repo
from app.api.schemas import TagIn, TagOut
from app.models.catalogue import EcosystemTag
from app.repos.tag_repo import TagRepo, tag_id_for

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/catalogue/tags", tags=["catalogue"])


@router.get("", response_model=list[TagOut])
async def list_tags(
    tags: Annotated[TagRepo, Depends(get_tag_repo)],
) -> list[TagOut]:
    return [TagOut.from_domain(t) for t in await tags.list_all()]


@router.post("", response_model=TagOut, status_code=status.HTTP_201_CREATED)
async def create_tag(
    body: TagIn,
    tags: Annotated[TagRepo, Depends(get_tag_repo)],
) -> TagOut:
    name = body.name.strip()
    tag_id = tag_id_for(name)
    if not tag_id:
        raise HTTPException(status_code=422, detail="tag name must be non-empty")
    if await tags.get(tag_id) is not None:
        raise HTTPException(status_code=409, detail=f"tag {tag_id!r} already exists")

    tag = EcosystemTag(id=tag_id, name=name)
    await tags.add(tag)
    logger.info("Created ecosystem tag id=%s", tag_id)
    return TagOut.from_domain(tag)


@router.delete("/{tag_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_tag(
    tag_id: str,
    tags: Annotated[TagRepo, Depends(get_tag_repo)],
) -> None:
    """Delete a custom tag.  Credentials keep the (now orphaned) tag id."""
    tag = await tags.get(tag_id)
    if tag is None:
        raise HTTPException(status_code=404, detail=f"tag {tag_id!r} not found")
    if tag.is_predefined:
        raise HTTPException(status_code=409, detail="predefined tags cannot be deleted")
    await tags.delete(tag_id)
    logger.info("Deleted ecosystem tag id=%s", tag_id)
