"""Health and readiness endpoints.

  /health  liveness plus per-dependency status.  Always 200; the
           ``status`` field says "ok" or "degraded".
  /ready   503 when a critical dependency (PostgreSQL, if configured) is
           unreachable, so the load balancer stops routing here.

Redis is optional (the round lock falls back to in-process locks) and
the registry is optional (imports work without registration), so
neither affects readiness.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Response
from sqlalchemy import text

from app.db.engine import engine
from app.db.redis import redis_pool
from app.services.orbit_settings import orbit_settings_store

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def _check_database() -> str:
    if engine is None:
        return "not_configured"
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Database health check failed")
        return "degraded"
    return "ok"


async def _check_redis() -> str:
    if redis_pool is None:
        return "not_configured"
    try:
        await redis_pool.ping()  # type: ignore[misc]
    except Exception:
        logger.exception("Redis health check failed")
        return "degraded"
    return "ok"


@router.get("/health")
async def health() -> dict:
    checks = {
        "database": await _check_database(),
        "redis": await _check_redis(),
        # Configuration only; POST /settings/orbit/test makes a live call.
        "registry": (
            "configured" if orbit_settings_store.load().is_configured else "not_configured"
        ),
    }
    overall = "degraded" if "degraded" in checks.values() else "ok"
    return {"status": overall, "checks": checks}


@router.get("/ready")
async def ready() -> Response:
    if await _check_database() == "degraded":
        return Response(status_code=503)
    return Response(status_code=200)
