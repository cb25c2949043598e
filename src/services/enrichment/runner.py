"""Enrichment job: regenerates the rule-based enrichment and target flags.

Both output batches are rebuilt in full from the current snapshot and
detail batch on every run; there is no incremental state.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import UTC, datetime

import structlog

from src.models import EnrichmentBatch, TargetFlagsBatch
from src.services.enrichment.reformatter import ReformatInput, reformat_by_rules
from src.services.enrichment.targets import flags_for_record
from src.services.storage import BatchStore

logger = structlog.get_logger(__name__)


@dataclass
class EnrichmentRunResult:
    """Report produced by an enrichment run."""

    total: int = 0
    with_detail: int = 0
    flagged: int = 0
    duration_seconds: float = 0.0

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "with_detail": self.with_detail,
            "flagged": self.flagged,
            "duration_seconds": round(self.duration_seconds, 2),
        }


class EnrichmentRunner:
    """Builds ``benefit-enriched.json`` and ``benefit-targets.json``.

    Parameters
    ----------
    store:
        Batch storage.
    summary_max_length:
        Character budget of the enrichment summary.
    current_year:
        Calendar year used to turn birth years into ages; defaults to the
        current UTC year at run time.
    """

    def __init__(
        self,
        store: BatchStore,
        *,
        summary_max_length: int = 50,
        current_year: int | None = None,
    ) -> None:
        self._store = store
        self._summary_max_length = summary_max_length
        self._current_year = current_year

    def run(self, *, use_sample_details: bool = False) -> EnrichmentRunResult:
        """Regenerate both batches.

        Raises
        ------
        BatchUnavailableError
            When the snapshot cannot be read.
        """
        start = time.monotonic()
        snapshot = self._store.require_snapshot()

        details_batch = self._store.load_details(sample=use_sample_details)
        if details_batch is None:
            logger.warning("enrichment.no_details", sample=use_sample_details)
        details = details_batch.items if details_batch is not None else {}

        year = self._current_year or datetime.now(UTC).year
        enrichment = EnrichmentBatch()
        targets = TargetFlagsBatch()
        result = EnrichmentRunResult(total=len(snapshot.items))

        for record in snapshot.items:
            detail = details.get(record.page_id) if record.page_id else None
            if detail is not None:
                result.with_detail += 1

            enrichment.items[record.id] = reformat_by_rules(
                ReformatInput.from_record(record, detail),
                summary_max_length=self._summary_max_length,
            )

            flags = flags_for_record(record, year)
            if flags is not None:
                targets.items[record.id] = flags

        result.flagged = len(targets.items)
        self._store.save_enrichment(enrichment)
        self._store.save_targets(targets)

        result.duration_seconds = time.monotonic() - start
        logger.info(
            "enrichment.run_complete",
            total=result.total,
            with_detail=result.with_detail,
            flagged=result.flagged,
            duration_s=round(result.duration_seconds, 2),
        )
        return result
