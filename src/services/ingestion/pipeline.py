"""Snapshot pipeline -- fetches, normalises and persists the benefit catalog.

Steps of one run
----------------
1. Load the previous snapshot (absent or malformed counts as empty).
2. Fetch raw records from the upstream service list (or the bundled
   fallback dataset).
3. Transform every raw record into a canonical :class:`BenefitRecord`.
4. Diff the new batch against the previous one.
5. Carry summaries forward for unchanged records; optionally run an
   injected summarizer over added and modified records.
6. Persist the new snapshot when anything changed.

Idempotency
-----------
Running the pipeline twice against the same upstream data leaves the
second run with every record ``unchanged`` and nothing written.
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

import structlog

from src.models import BenefitRecord, SnapshotBatch
from src.services.ingestion.public_data_client import PublicDataClient
from src.services.ingestion.snapshot import SnapshotDiff, diff_snapshots
from src.services.ingestion.transformer import transform_records
from src.services.storage import BatchStore

logger = structlog.get_logger(__name__)

# Async callable producing summaries for records that need a fresh one.
Summarizer = Callable[[list[BenefitRecord]], Awaitable[list[BenefitRecord]]]

SOURCE_UPSTREAM = "api.odcloud.kr"
SOURCE_FALLBACK = "bundled_fallback_data"


# ---------------------------------------------------------------------------
# SnapshotResult dataclass
# ---------------------------------------------------------------------------


@dataclass
class SnapshotResult:
    """Report produced by a snapshot run."""

    total_fetched: int = 0
    added: int = 0
    modified: int = 0
    unchanged: int = 0
    removed: int = 0
    restamped: int = 0
    saved: bool = False
    used_fallback: bool = False
    sources_used: list[str] = field(default_factory=list)
    duration_seconds: float = 0.0
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Serialise to a JSON-compatible dictionary."""
        return {
            "total_fetched": self.total_fetched,
            "added": self.added,
            "modified": self.modified,
            "unchanged": self.unchanged,
            "removed": self.removed,
            "restamped": self.restamped,
            "saved": self.saved,
            "used_fallback": self.used_fallback,
            "sources_used": self.sources_used,
            "duration_seconds": round(self.duration_seconds, 2),
            "timestamp": self.timestamp.isoformat(),
            "errors": self.errors,
        }


# ---------------------------------------------------------------------------
# SnapshotPipeline
# ---------------------------------------------------------------------------


class SnapshotPipeline:
    """Builds the canonical snapshot batch from the upstream catalog.

    Parameters
    ----------
    client:
        Upstream service list client.
    store:
        Batch storage holding the previous and the new snapshot.
    summarizer:
        Optional async callable that returns records with regenerated
        summaries.  It only ever sees added and modified records.
    """

    def __init__(
        self,
        client: PublicDataClient,
        store: BatchStore,
        summarizer: Summarizer | None = None,
    ) -> None:
        self._client = client
        self._store = store
        self._summarizer = summarizer
        self._last_result: SnapshotResult | None = None

    @property
    def last_result(self) -> SnapshotResult | None:
        """The result of the most recent run."""
        return self._last_result

    async def run(self) -> SnapshotResult:
        """Run one snapshot generation.

        Returns
        -------
        SnapshotResult
            Counts per diff bucket and whether a new snapshot was written.
        """
        start = time.monotonic()
        result = SnapshotResult()
        logger.info("snapshot.run_start")

        # -- Step 1: Previous snapshot -------------------------------------
        previous_batch = self._store.load_snapshot()
        previous = previous_batch.items if previous_batch is not None else []
        logger.info("snapshot.previous_loaded", count=len(previous))

        # -- Step 2: Fetch -------------------------------------------------
        fetched = await self._client.fetch_all()
        result.used_fallback = fetched.used_fallback
        result.errors.extend(fetched.errors)
        result.sources_used.append(
            SOURCE_FALLBACK if fetched.used_fallback else SOURCE_UPSTREAM
        )

        if fetched.incomplete and previous_batch is not None:
            # A partial fetch never replaces a stored snapshot.
            logger.warning(
                "snapshot.fetch_incomplete",
                fetched=len(fetched.records),
                expected=fetched.total_count,
                kept=len(previous),
            )
            result.errors.append("Upstream fetch incomplete; previous snapshot kept")
            return self._finish(result, start)

        # -- Step 3: Transform ---------------------------------------------
        current = transform_records(fetched.records)
        result.total_fetched = len(current)

        # -- Step 4: Diff --------------------------------------------------
        diff = diff_snapshots(previous, current)
        result.added = len(diff.added)
        result.modified = len(diff.modified)
        result.unchanged = len(diff.unchanged)
        result.removed = len(diff.removed_ids)
        result.restamped = len(diff.restamped_ids)

        # -- Step 5/6: Summaries and save ----------------------------------
        if diff.has_changes or diff.restamped_ids or previous_batch is None:
            items = await self._assemble(current, previous, diff, result)
            self._store.save_snapshot(SnapshotBatch.of(items))
            result.saved = True
        else:
            logger.info("snapshot.no_changes", kept=len(previous))

        return self._finish(result, start)

    def _finish(self, result: SnapshotResult, start: float) -> SnapshotResult:
        result.duration_seconds = time.monotonic() - start
        self._last_result = result
        logger.info(
            "snapshot.run_complete",
            total=result.total_fetched,
            added=result.added,
            modified=result.modified,
            unchanged=result.unchanged,
            removed=result.removed,
            restamped=result.restamped,
            saved=result.saved,
            fallback=result.used_fallback,
            duration_s=round(result.duration_seconds, 2),
        )
        return result

    async def _assemble(
        self,
        current: list[BenefitRecord],
        previous: list[BenefitRecord],
        diff: SnapshotDiff,
        result: SnapshotResult,
    ) -> list[BenefitRecord]:
        """Final item list, in upstream order, with summaries resolved."""
        previous_by_id = {record.id: record for record in previous}
        resolved: dict[str, BenefitRecord] = {}

        for record in diff.unchanged:
            prior = previous_by_id[record.id]
            resolved[record.id] = record.model_copy(update={"summary": prior.summary})

        needs_summary = diff.added + diff.modified
        if needs_summary and self._summarizer is not None:
            try:
                summarized = await self._summarizer(needs_summary)
            except Exception as exc:
                # Keep the default summaries; the catalog is still usable.
                result.errors.append(f"Summarizer failed: {exc}")
                logger.error("snapshot.summarizer_failed", error=str(exc))
            else:
                needs_summary = summarized
                logger.info("snapshot.summaries_generated", count=len(summarized))

        for record in needs_summary:
            resolved[record.id] = record

        return [resolved.get(record.id, record) for record in current]
