"""Persisted batch file formats.

Every batch is replaced as a whole on each write; none of these files is
appended to incrementally.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import Field

from src.models.benefit import BenefitRecord, CamelModel
from src.models.detail import CrawlDetail
from src.models.enrichment import EnrichmentRecord, TargetFlags

BATCH_VERSION = "1.0.0"


def utc_now_iso() -> str:
    return datetime.now(UTC).isoformat()


class SnapshotBatch(CamelModel):
    version: str = BATCH_VERSION
    generated_at: str = Field(default_factory=utc_now_iso)
    total_count: int = 0
    items: list[BenefitRecord] = Field(default_factory=list)

    @classmethod
    def of(cls, items: list[BenefitRecord]) -> SnapshotBatch:
        return cls(total_count=len(items), items=items)


class DetailBatch(CamelModel):
    version: str = BATCH_VERSION
    generated_at: str = Field(default_factory=utc_now_iso)
    total_count: int = 0
    success_count: int = 0
    failed_ids: list[str] = Field(default_factory=list)
    items: dict[str, CrawlDetail] = Field(default_factory=dict)


class EnrichmentBatch(CamelModel):
    version: str = BATCH_VERSION
    generated_at: str = Field(default_factory=utc_now_iso)
    items: dict[str, EnrichmentRecord] = Field(default_factory=dict)

    def to_json_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "generatedAt": self.generated_at,
            "items": {rid: rec.to_json_dict() for rid, rec in self.items.items()},
        }


class TargetFlagsBatch(CamelModel):
    version: str = BATCH_VERSION
    generated_at: str = Field(default_factory=utc_now_iso)
    items: dict[str, TargetFlags] = Field(default_factory=dict)


class CrawlCheckpoint(CamelModel):
    """Transient resume point of a crawl run."""

    last_processed_index: int = -1
    items: dict[str, CrawlDetail] = Field(default_factory=dict)
    failed_ids: list[str] = Field(default_factory=list)
    mode: str = ""
    candidate_count: int = 0
