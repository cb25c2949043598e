"""Health check endpoints for Hyetaek API v1.

Liveness reports the process is up; readiness reports whether a snapshot
is loaded and whether a batch job is running.
"""

from __future__ import annotations

import time

import structlog
from fastapi import APIRouter, Request
from pydantic import BaseModel

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """Basic health check response."""

    status: str
    version: str
    uptime_seconds: float


class ReadinessResponse(BaseModel):
    status: str
    checks: dict[str, str]


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get("", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Liveness probe; does not look at the batch files."""
    start_time: float = getattr(request.app.state, "start_time", time.time())
    uptime = time.time() - start_time

    return HealthResponse(
        status="healthy",
        version=request.app.version,
        uptime_seconds=round(uptime, 2),
    )


@router.get("/ready", response_model=ReadinessResponse)
async def readiness_check(request: Request) -> ReadinessResponse:
    """Readiness probe: ready once a snapshot is available."""
    checks: dict[str, str] = {}

    catalog = getattr(request.app.state, "catalog", None)
    info = catalog.snapshot_info() if catalog is not None else None
    if info is not None:
        checks["snapshot"] = f"ok ({info['totalCount']} benefits)"
    else:
        checks["snapshot"] = "no_data"

    runner = getattr(request.app.state, "job_runner", None)
    checks["job_runner"] = "busy" if runner is not None and runner.is_busy else "idle"

    status = "ready" if info is not None else "degraded"
    logger.info("health.readiness_check", status=status, checks=checks)
    return ReadinessResponse(status=status, checks=checks)
