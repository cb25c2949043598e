"""Admin batch-job endpoints for Hyetaek v1.

Endpoints
---------
- ``POST /api/v1/admin/jobs/snapshot`` -- Regenerate the snapshot.
- ``POST /api/v1/admin/jobs/crawl``    -- Crawl detail pages (sample/full/incremental).
- ``POST /api/v1/admin/jobs/enrich``   -- Regenerate enrichment and target flags.
- ``GET  /api/v1/admin/jobs/status``   -- Scheduler and runner state.

All endpoints require the ``X-Admin-API-Key`` header.  Jobs run inline
and can take minutes; only one job runs at a time (409 otherwise).
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel

from src.middleware.auth import require_admin_api_key
from src.services.crawl.orchestrator import CrawlMode
from src.services.jobs import JobBusyError, JobRunner
from src.services.storage import BatchUnavailableError

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

router = APIRouter(
    prefix="/admin/jobs",
    tags=["admin", "jobs"],
    dependencies=[Depends(require_admin_api_key)],
)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class JobResponse(BaseModel):
    """Response returned after a job has run."""

    status: str
    job: str
    result: dict[str, Any]


class JobStatusResponse(BaseModel):
    runner_busy: bool
    scheduler_running: bool = False
    last_full_run: str | None = None
    last_incremental_run: str | None = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _get_runner(request: Request) -> JobRunner:
    """Retrieve the job runner from app state, or raise 503."""
    runner = getattr(request.app.state, "job_runner", None)
    if runner is None:
        raise HTTPException(status_code=503, detail="Job runner not initialised.")
    return runner


def _job_error(job: str, exc: Exception) -> HTTPException:
    if isinstance(exc, JobBusyError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, BatchUnavailableError):
        return HTTPException(
            status_code=409,
            detail=f"{exc}. Run the snapshot job first.",
        )
    logger.error("api.admin.jobs.failed", job=job, exc_info=True)
    return HTTPException(status_code=500, detail=f"{job} job failed: {exc}")


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("/snapshot", response_model=JobResponse)
async def trigger_snapshot(request: Request) -> JobResponse:
    """Fetch the upstream catalog, diff it and persist a new snapshot."""
    runner = _get_runner(request)
    logger.info("api.admin.jobs.snapshot_triggered")
    try:
        result = await runner.run_snapshot()
    except Exception as exc:
        raise _job_error("snapshot", exc) from exc
    return JobResponse(status="completed", job="snapshot", result=result.to_dict())


@router.post("/crawl", response_model=JobResponse)
async def trigger_crawl(
    request: Request,
    mode: CrawlMode = Query(default=CrawlMode.INCREMENTAL, description="Crawl mode"),
    limit: int | None = Query(default=None, ge=1, description="Crawl only the first N pages"),
) -> JobResponse:
    """Crawl gov.kr detail pages for the current snapshot."""
    runner = _get_runner(request)
    logger.info("api.admin.jobs.crawl_triggered", mode=mode.value, limit=limit)
    try:
        result = await runner.run_crawl(mode, limit=limit)
    except Exception as exc:
        raise _job_error("crawl", exc) from exc
    return JobResponse(status="completed", job="crawl", result=result.to_dict())


@router.post("/enrich", response_model=JobResponse)
async def trigger_enrich(
    request: Request,
    sample: bool = Query(default=False, description="Read the sample detail batch"),
) -> JobResponse:
    """Regenerate the rule-based enrichment and target-flag batches."""
    runner = _get_runner(request)
    logger.info("api.admin.jobs.enrich_triggered", sample=sample)
    try:
        result = await runner.run_enrich(use_sample_details=sample)
    except Exception as exc:
        raise _job_error("enrich", exc) from exc
    return JobResponse(status="completed", job="enrich", result=result.to_dict())


@router.get("/status", response_model=JobStatusResponse)
async def get_job_status(request: Request) -> JobStatusResponse:
    runner = _get_runner(request)
    scheduler = getattr(request.app.state, "scheduler", None)

    response = JobStatusResponse(runner_busy=runner.is_busy)
    if scheduler is not None:
        response.scheduler_running = scheduler.is_running
        if scheduler.last_full_run is not None:
            response.last_full_run = scheduler.last_full_run.isoformat()
        if scheduler.last_incremental_run is not None:
            response.last_incremental_run = scheduler.last_incremental_run.isoformat()
    return response
