"""Registry connection settings (admin UI)."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from app.api.dependencies import get_orbit_settings_store
from app.api.schemas import ConnectionTestOut, OrbitSettingsIn, OrbitStatusOut
from app.services.errors import ValidationError
from app.services.orbit_settings import OrbitSettingsStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/settings/orbit", tags=["settings"])


@router.put("", response_model=OrbitStatusOut)
def save_settings(
    body: OrbitSettingsIn,
    store: Annotated[OrbitSettingsStore, Depends(get_orbit_settings_store)],
) -> OrbitStatusOut:
    """Store settings; omit apiKey to keep the current key."""
    try:
        store.save(base_url=body.base_url, lob_id=body.lob_id, api_key=body.api_key)
    except ValidationError as e:
        logger.warning("Rejected registry settings: %s", e)
        raise HTTPException(status_code=422, detail=str(e)) from None
    return OrbitStatusOut.model_validate(store.status())


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
def clear_settings(
    store: Annotated[OrbitSettingsStore, Depends(get_orbit_settings_store)],
) -> None:
    store.clear()


@router.post("/test", response_model=ConnectionTestOut)
async def test_connection(
    store: Annotated[OrbitSettingsStore, Depends(get_orbit_settings_store)],
) -> ConnectionTestOut:
    result = await store.test_connection()
    return ConnectionTestOut(
        success=result.success,
        message=result.message,
        status_code=result.status_code,
    )
