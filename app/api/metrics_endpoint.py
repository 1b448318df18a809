"""Prometheus scrape endpoint (text exposition format).

Example output:
  registry_calls_total{phase="schema",result="ok"} 12.0
  registry_calls_total{phase="creddef",result="http-error"} 3.0
  registration_rounds_total{state="creddef-failed"} 3.0
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter(tags=["observability"])


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
