"""Read-only benefit catalog endpoints for Hyetaek v1.

All data comes from the merged catalog (``app.state.catalog``), which
reads the persisted batches; these endpoints never trigger crawling or
ingestion.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel

from src.models import BenefitCategory
from src.services.merge_view import BenefitCatalog

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

router = APIRouter(prefix="/benefits", tags=["benefits"])


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class BenefitListResponse(BaseModel):
    """Paginated list of benefit records."""

    items: list[dict[str, Any]]
    total: int
    page: int
    page_size: int


class SnapshotInfoResponse(BaseModel):
    version: str
    generated_at: str
    total_count: int


# ---------------------------------------------------------------------------
# Helper
# ---------------------------------------------------------------------------


def _get_catalog(request: Request) -> BenefitCatalog:
    """Retrieve the catalog from app state, or raise 503."""
    catalog = getattr(request.app.state, "catalog", None)
    if catalog is None:
        raise HTTPException(status_code=503, detail="Benefit catalog not initialised.")
    return catalog


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get("", response_model=BenefitListResponse)
async def list_benefits(
    request: Request,
    category: str | None = Query(default=None, description="Filter by benefit category"),
    q: str | None = Query(default=None, description="Search title, tags and summary"),
    page: int = Query(default=1, ge=1, description="Page number"),
    page_size: int = Query(default=20, ge=1, le=100, description="Results per page"),
) -> BenefitListResponse:
    """List benefits in snapshot order with optional category/search filters."""
    catalog = _get_catalog(request)

    category_enum: BenefitCategory | None = None
    if category:
        try:
            category_enum = BenefitCategory(category)
        except ValueError:
            raise HTTPException(
                status_code=400,
                detail=(
                    f"Invalid category '{category}'. "
                    f"Valid categories: {[c.value for c in BenefitCategory]}"
                ),
            )

    records = catalog.list_records(category=category_enum, query=q)
    start = (page - 1) * page_size
    page_records = records[start : start + page_size]

    return BenefitListResponse(
        items=[record.to_json_dict() for record in page_records],
        total=len(records),
        page=page,
        page_size=page_size,
    )


@router.get("/snapshot", response_model=SnapshotInfoResponse)
async def get_snapshot_info(request: Request) -> SnapshotInfoResponse:
    """Version, generation time and size of the current snapshot."""
    info = _get_catalog(request).snapshot_info()
    if info is None:
        raise HTTPException(status_code=404, detail="No snapshot has been generated yet.")
    return SnapshotInfoResponse(
        version=info["version"],
        generated_at=info["generatedAt"],
        total_count=info["totalCount"],
    )


@router.get("/{record_id}")
async def get_benefit(record_id: str, request: Request) -> dict[str, Any]:
    """Merged view of one benefit: record, detail, enrichment and flags."""
    view = _get_catalog(request).get_view(record_id)
    if view is None:
        raise HTTPException(status_code=404, detail=f"Benefit '{record_id}' not found.")
    return view.to_dict()
