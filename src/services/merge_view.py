"""Read-time composition of all persisted batches into one benefit view.

Layers, each optional and independently absent-tolerant:

1. the canonical :class:`BenefitRecord` (required -- no record, no view);
2. the crawled :class:`CrawlDetail`, looked up by the record's upstream
   ``서비스ID``;
3. an :class:`EnrichmentRecord`, taken from the first enrichment source
   that has one (generative output first, then the rule-based batch);
4. the record's :class:`TargetFlags`.

No layer mutates another.  The only read-time derivation is the region
backfill: a record without regions gets regions extracted from its title
and agency name, on the returned copy only.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

import structlog

from src.models import (
    BenefitCategory,
    BenefitRecord,
    CrawlDetail,
    EnrichmentBatch,
    EnrichmentRecord,
    SnapshotBatch,
    TargetFlags,
)
from src.services.ingestion.extractors import extract_regions
from src.services.storage import BatchStore

logger = structlog.get_logger(__name__)

ENRICHMENT_SOURCE_GENERATIVE = "generative"
ENRICHMENT_SOURCE_RULES = "rules"


@dataclass(frozen=True)
class BenefitView:
    """Consumer-facing composition for one benefit."""

    record: BenefitRecord
    detail: CrawlDetail | None = None
    enrichment: EnrichmentRecord | None = None
    enrichment_source: str | None = None
    targets: TargetFlags | None = None

    def to_dict(self) -> dict[str, Any]:
        payload = self.record.to_json_dict()
        if self.detail is not None:
            # The crawl stamp is bookkeeping for incremental crawls only.
            detail = self.detail.to_json_dict()
            detail.pop("sourceModified", None)
            payload["detail"] = detail
        if self.enrichment is not None:
            payload["ai"] = self.enrichment.to_json_dict()
            payload["aiSource"] = self.enrichment_source
        if self.targets is not None:
            payload["targets"] = self.targets.to_json_dict()
        return payload


def backfill_region(record: BenefitRecord) -> BenefitRecord:
    """Copy of *record* with regions derived from title + agency when empty."""
    if record.eligibility.region:
        return record
    combined = " ".join(part for part in (record.title, record.source.name) if part)
    region = extract_regions(combined)
    if not region:
        return record
    eligibility = record.eligibility.model_copy(update={"region": region})
    return record.model_copy(update={"eligibility": eligibility})


# ---------------------------------------------------------------------------
# BenefitCatalog
# ---------------------------------------------------------------------------


class BenefitCatalog:
    """Read-only access to the merged catalog.

    All batch files are loaded on first use and held in memory until
    :meth:`reload` is called.

    Parameters
    ----------
    store:
        Batch storage to read from.
    hidden_ids:
        Record identifiers excluded from listings (still reachable by id).
    """

    def __init__(self, store: BatchStore, *, hidden_ids: Iterable[str] = ()) -> None:
        self._store = store
        self._hidden_ids = frozenset(hidden_ids)
        self._loaded = False
        self._snapshot: SnapshotBatch | None = None
        self._records: dict[str, BenefitRecord] = {}
        self._details: dict[str, CrawlDetail] = {}
        self._enrichment_sources: list[tuple[str, dict[str, EnrichmentRecord]]] = []
        self._targets: dict[str, TargetFlags] = {}

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def reload(self) -> None:
        """Re-read every batch from storage."""
        self._snapshot = self._store.load_snapshot()
        items = self._snapshot.items if self._snapshot is not None else []
        self._records = {record.id: record for record in items}

        details = self._store.load_details()
        self._details = details.items if details is not None else {}

        # Ordered by precedence: the first source holding a record wins.
        loaders: list[tuple[str, Callable[[], EnrichmentBatch | None]]] = [
            (ENRICHMENT_SOURCE_GENERATIVE, self._store.load_generative_enrichment),
            (ENRICHMENT_SOURCE_RULES, self._store.load_enrichment),
        ]
        self._enrichment_sources = []
        for name, load in loaders:
            batch = load()
            if batch is not None:
                self._enrichment_sources.append((name, batch.items))

        targets = self._store.load_targets()
        self._targets = targets.items if targets is not None else {}

        self._loaded = True
        logger.info(
            "catalog.loaded",
            records=len(self._records),
            details=len(self._details),
            enrichment_sources=[name for name, _ in self._enrichment_sources],
            targets=len(self._targets),
        )

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.reload()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_record(self, record_id: str) -> BenefitRecord | None:
        self._ensure_loaded()
        record = self._records.get(record_id)
        return backfill_region(record) if record is not None else None

    def get_view(self, record_id: str) -> BenefitView | None:
        """Merged view of one benefit, or ``None`` for an unknown id."""
        self._ensure_loaded()
        record = self._records.get(record_id)
        if record is None:
            return None

        page_id = record.page_id
        detail = self._details.get(page_id) if page_id else None

        enrichment: EnrichmentRecord | None = None
        enrichment_source: str | None = None
        for name, items in self._enrichment_sources:
            found = items.get(record_id)
            if found is not None:
                enrichment, enrichment_source = found, name
                break

        return BenefitView(
            record=backfill_region(record),
            detail=detail,
            enrichment=enrichment,
            enrichment_source=enrichment_source,
            targets=self._targets.get(record_id),
        )

    def list_records(
        self,
        *,
        category: BenefitCategory | None = None,
        query: str | None = None,
    ) -> list[BenefitRecord]:
        """Visible records in snapshot order, optionally filtered.

        *query* matches case-insensitively against the title, the tags and
        the one-line summary.
        """
        self._ensure_loaded()
        needle = query.strip().lower() if query else ""
        results: list[BenefitRecord] = []
        for record in self._records.values():
            if record.id in self._hidden_ids:
                continue
            if category is not None and record.category != category:
                continue
            if needle and not _matches(record, needle):
                continue
            results.append(backfill_region(record))
        return results

    def snapshot_info(self) -> dict[str, Any] | None:
        self._ensure_loaded()
        if self._snapshot is None:
            return None
        return {
            "version": self._snapshot.version,
            "generatedAt": self._snapshot.generated_at,
            "totalCount": self._snapshot.total_count,
        }


def _matches(record: BenefitRecord, needle: str) -> bool:
    return (
        needle in record.title.lower()
        or any(needle in tag.lower() for tag in record.tags)
        or needle in record.summary.one_liner.lower()
    )
