"""Checkpointed, resumable detail crawl over the snapshot's page identifiers.

Modes
-----
``sample``
    The fixed :data:`SAMPLE_PAGE_IDS` are always fetched and written to the
    sample detail file.  No checkpoint, no merge with earlier results.
``full``
    Every candidate page (optionally only the first ``limit``) is fetched.
    Pages past ``limit`` keep their previous detail untouched.
``incremental``
    A candidate is skipped when a previous detail exists and its recorded
    ``source_modified`` stamp equals the snapshot's current ``수정일시``.
    A previous detail without a stamp is never considered stale: it is
    kept and backfilled with the current stamp.

In ``full`` and ``incremental`` mode a failed fetch keeps the previous
detail for that page (if any) and lists the page in ``failedIds``.
Pages no longer present in the snapshot are dropped from the output.

Checkpoints
-----------
Every ``checkpoint_every`` processed candidates the accumulated
:class:`CrawlState` is written as a whole.  A later run with the same mode
and candidate count resumes right after ``lastProcessedIndex``; any other
checkpoint is discarded.  The checkpoint is deleted once the final detail
batch has been written.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Protocol

import structlog

from src.models import CrawlCheckpoint, CrawlDetail, CrawlOutcome, DetailBatch, SnapshotBatch
from src.services.storage import BatchStore

logger = structlog.get_logger(__name__)

SAMPLE_PAGE_IDS: tuple[str, ...] = (
    "000000465790",  # 유아학비 (누리과정) 지원
    "105100000001",  # 근로·자녀장려금
    "116010000001",  # 주택금융공사 월세자금보증
    "119200000001",  # 친환경 에너지절감장비 보급
    "119200000007",  # 해양사고 국선 심판변론인 선정 지원
)


class CrawlMode(StrEnum):
    __slots__ = ()

    SAMPLE = "sample"
    FULL = "full"
    INCREMENTAL = "incremental"


class DetailFetcher(Protocol):
    async def fetch_detail(self, page_id: str) -> CrawlOutcome: ...


@dataclass(frozen=True)
class Candidate:
    """A page to crawl together with its current upstream stamp."""

    page_id: str
    source_modified: str | None = None


# ---------------------------------------------------------------------------
# Run state
# ---------------------------------------------------------------------------


@dataclass
class CrawlState:
    """Accumulator threaded through the crawl loop.

    Only ``last_processed_index``, ``items`` and ``failed_ids`` are durable
    (they make up the checkpoint); the counters describe the current
    process only.
    """

    last_processed_index: int = -1
    items: dict[str, CrawlDetail] = field(default_factory=dict)
    failed_ids: list[str] = field(default_factory=list)
    fetched: int = 0
    skipped: int = 0

    @classmethod
    def from_checkpoint(cls, checkpoint: CrawlCheckpoint) -> CrawlState:
        return cls(
            last_processed_index=checkpoint.last_processed_index,
            items=dict(checkpoint.items),
            failed_ids=list(checkpoint.failed_ids),
        )

    def to_checkpoint(self, mode: CrawlMode, candidate_count: int) -> CrawlCheckpoint:
        return CrawlCheckpoint(
            last_processed_index=self.last_processed_index,
            items=self.items,
            failed_ids=self.failed_ids,
            mode=mode.value,
            candidate_count=candidate_count,
        )


@dataclass
class CrawlRunResult:
    """Report produced by a crawl run."""

    mode: str
    total_count: int = 0
    success_count: int = 0
    failed_ids: list[str] = field(default_factory=list)
    fetched: int = 0
    skipped: int = 0
    resumed_from: int | None = None
    output_path: str | None = None
    duration_seconds: float = 0.0

    def to_dict(self) -> dict:
        return {
            "mode": self.mode,
            "total_count": self.total_count,
            "success_count": self.success_count,
            "failed_ids": self.failed_ids,
            "fetched": self.fetched,
            "skipped": self.skipped,
            "resumed_from": self.resumed_from,
            "output_path": self.output_path,
            "duration_seconds": round(self.duration_seconds, 2),
        }


def snapshot_candidates(snapshot: SnapshotBatch, limit: int | None = None) -> list[Candidate]:
    """Unique page identifiers of the snapshot, in snapshot order.

    Records without an upstream ``서비스ID`` cannot be linked to a detail
    page and are not candidates.
    """
    seen: dict[str, Candidate] = {}
    for record in snapshot.items:
        page_id = record.page_id
        if page_id and page_id not in seen:
            seen[page_id] = Candidate(page_id, record.source_modified)
    candidates = list(seen.values())
    return candidates[:limit] if limit is not None else candidates


# ---------------------------------------------------------------------------
# CrawlOrchestrator
# ---------------------------------------------------------------------------


class CrawlOrchestrator:
    """Drives a :class:`DetailFetcher` sequentially over the candidates.

    Parameters
    ----------
    fetcher:
        Page fetcher; it enforces the inter-request delay itself.
    store:
        Batch storage for the snapshot, detail batches and checkpoint.
    checkpoint_every:
        Number of processed candidates between checkpoint writes.
    """

    def __init__(
        self,
        fetcher: DetailFetcher,
        store: BatchStore,
        *,
        checkpoint_every: int = 100,
    ) -> None:
        self._fetcher = fetcher
        self._store = store
        self._checkpoint_every = max(1, checkpoint_every)

    async def run(self, mode: CrawlMode, *, limit: int | None = None) -> CrawlRunResult:
        """Crawl in *mode*.

        Raises
        ------
        BatchUnavailableError
            In ``full``/``incremental`` mode when the snapshot is unreadable.
        """
        if mode is CrawlMode.SAMPLE:
            return await self._run_sample()
        return await self._run_batch(mode, limit)

    # ------------------------------------------------------------------
    # Sample mode
    # ------------------------------------------------------------------

    async def _run_sample(self) -> CrawlRunResult:
        start = time.monotonic()
        logger.info("crawl.run_start", mode=CrawlMode.SAMPLE.value, total=len(SAMPLE_PAGE_IDS))

        state = CrawlState()
        for index, page_id in enumerate(SAMPLE_PAGE_IDS):
            outcome = await self._fetcher.fetch_detail(page_id)
            state.fetched += 1
            if outcome.success and outcome.data is not None:
                state.items[page_id] = outcome.data
            else:
                state.failed_ids.append(page_id)
            state.last_processed_index = index

        batch = DetailBatch(
            total_count=len(SAMPLE_PAGE_IDS),
            success_count=len(state.items),
            failed_ids=state.failed_ids,
            items=state.items,
        )
        path = self._store.save_details(batch, sample=True)
        return self._finish(CrawlMode.SAMPLE, batch, state, path, start, resumed_from=None)

    # ------------------------------------------------------------------
    # Full / incremental mode
    # ------------------------------------------------------------------

    async def _run_batch(self, mode: CrawlMode, limit: int | None) -> CrawlRunResult:
        start = time.monotonic()
        snapshot = self._store.require_snapshot()
        candidates = snapshot_candidates(snapshot, limit)

        previous_batch = self._store.load_details()
        previous = previous_batch.items if previous_batch is not None else {}

        state = self._resume(mode, len(candidates))
        resumed_from = state.last_processed_index if state.last_processed_index >= 0 else None

        logger.info(
            "crawl.run_start",
            mode=mode.value,
            total=len(candidates),
            previous_details=len(previous),
            resume_index=resumed_from,
        )

        for index in range(state.last_processed_index + 1, len(candidates)):
            state = await self._process(state, mode, candidates[index], previous)
            state.last_processed_index = index

            if (index + 1) % self._checkpoint_every == 0:
                self._store.save_checkpoint(state.to_checkpoint(mode, len(candidates)))
                logger.info(
                    "crawl.checkpoint_saved",
                    index=index,
                    items=len(state.items),
                    failed=len(state.failed_ids),
                )

        # Every page still in the snapshot keeps a detail, including pages
        # past *limit* that this run did not visit.
        items: dict[str, CrawlDetail] = {}
        for candidate in snapshot_candidates(snapshot):
            detail = state.items.get(candidate.page_id) or previous.get(candidate.page_id)
            if detail is not None:
                items[candidate.page_id] = detail
        failed_ids = list(dict.fromkeys(state.failed_ids))

        batch = DetailBatch(
            total_count=len(candidates),
            success_count=len(candidates) - len(failed_ids),
            failed_ids=failed_ids,
            items=items,
        )
        path = self._store.save_details(batch)
        self._store.delete_checkpoint()
        return self._finish(mode, batch, state, path, start, resumed_from=resumed_from)

    def _resume(self, mode: CrawlMode, candidate_count: int) -> CrawlState:
        checkpoint = self._store.load_checkpoint()
        if checkpoint is None:
            return CrawlState()

        if checkpoint.mode != mode.value or checkpoint.candidate_count != candidate_count:
            logger.warning(
                "crawl.checkpoint_discarded",
                checkpoint_mode=checkpoint.mode,
                checkpoint_candidates=checkpoint.candidate_count,
                mode=mode.value,
                candidates=candidate_count,
            )
            self._store.delete_checkpoint()
            return CrawlState()

        logger.info(
            "crawl.checkpoint_resumed",
            last_processed_index=checkpoint.last_processed_index,
            items=len(checkpoint.items),
        )
        return CrawlState.from_checkpoint(checkpoint)

    async def _process(
        self,
        state: CrawlState,
        mode: CrawlMode,
        candidate: Candidate,
        previous: dict[str, CrawlDetail],
    ) -> CrawlState:
        """Advance *state* by one candidate."""
        page_id = candidate.page_id
        prior = previous.get(page_id)

        if mode is CrawlMode.INCREMENTAL and prior is not None:
            if prior.source_modified is None:
                state.items[page_id] = prior.model_copy(
                    update={"source_modified": candidate.source_modified}
                )
                state.skipped += 1
                return state
            if candidate.source_modified is None or prior.source_modified == candidate.source_modified:
                state.items[page_id] = prior
                state.skipped += 1
                return state

        outcome = await self._fetcher.fetch_detail(page_id)
        state.fetched += 1

        if outcome.success and outcome.data is not None:
            state.items[page_id] = outcome.data.model_copy(
                update={"source_modified": candidate.source_modified}
            )
        else:
            logger.warning("crawl.page_failed", page_id=page_id, error=outcome.error)
            state.failed_ids.append(page_id)
            if prior is not None:
                state.items[page_id] = prior
        return state

    @staticmethod
    def _finish(
        mode: CrawlMode,
        batch: DetailBatch,
        state: CrawlState,
        path: Path,
        start: float,
        *,
        resumed_from: int | None,
    ) -> CrawlRunResult:
        result = CrawlRunResult(
            mode=mode.value,
            total_count=batch.total_count,
            success_count=batch.success_count,
            failed_ids=batch.failed_ids,
            fetched=state.fetched,
            skipped=state.skipped,
            resumed_from=resumed_from,
            output_path=str(path),
            duration_seconds=time.monotonic() - start,
        )
        logger.info(
            "crawl.run_complete",
            mode=result.mode,
            total=result.total_count,
            success=result.success_count,
            failed=len(result.failed_ids),
            fetched=result.fetched,
            skipped=result.skipped,
            duration_s=round(result.duration_seconds, 2),
        )
        return result
