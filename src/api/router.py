"""Main API router combining all v1 route modules.

Aggregates all routers under the ``/api/v1`` prefix so the
FastAPI application only needs to include a single router.

Includes:
    * Catalog: benefits (merged read-only view)
    * Ops: health
    * Admin: batch jobs
"""

from __future__ import annotations

from fastapi import APIRouter

from src.api.v1 import benefits, health, jobs

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(benefits.router)
api_router.include_router(health.router)
api_router.include_router(jobs.router)
