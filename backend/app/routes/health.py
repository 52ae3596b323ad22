"""
SubText Backend — Status & Health Routes
==========================================

GET /, GET /api   Liveness banner ({status, version, timestamp}); no I/O.
GET /health       Probes the database (SELECT 1) and the LLM provider.

Status levels for /health:
    healthy:   database and LLM reachable
    degraded:  LLM unreachable (OCR and analysis will fail, auth still works)
    unhealthy: database unreachable
"""

import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app import __version__
from app.container import ServiceContainer
from app.dependencies import get_container
from app.schemas.common import ApiStatusResponse, HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


def _api_status() -> ApiStatusResponse:
    return ApiStatusResponse(
        status="SubText API is running!",
        version=__version__,
        timestamp=datetime.now(timezone.utc),
    )


@router.get("/", response_model=ApiStatusResponse, summary="API status banner")
async def root() -> ApiStatusResponse:
    return _api_status()


@router.get("/api", response_model=ApiStatusResponse, summary="API status banner")
async def api_root() -> ApiStatusResponse:
    return _api_status()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    description="Health of the backend and its dependencies, for load balancers and monitoring.",
)
async def health_check(
    container: ServiceContainer = Depends(get_container),
) -> HealthResponse:
    db_status = "connected"
    llm_status = "available"
    overall = "healthy"

    # ── Check Database ────────────────────────────────────────────────────
    try:
        async with container.session_factory() as session:
            await session.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    # ── Check LLM provider ────────────────────────────────────────────────
    if not await container.llm.health_check():
        llm_status = "unavailable"
        overall = "degraded" if overall != "unhealthy" else overall

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        llm=llm_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
