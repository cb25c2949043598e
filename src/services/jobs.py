"""Batch job wiring: settings -> clients -> pipeline stages.

The CLI, the admin API and the scheduler all run jobs through a
:class:`JobRunner`, which guarantees that at most one job touches the
batch files at a time.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import httpx
import structlog

from src.services.crawl.detail_client import DetailPageClient
from src.services.crawl.orchestrator import CrawlMode, CrawlOrchestrator, CrawlRunResult
from src.services.enrichment.runner import EnrichmentRunner, EnrichmentRunResult
from src.services.ingestion.pipeline import SnapshotPipeline, SnapshotResult, Summarizer
from src.services.ingestion.public_data_client import PublicDataClient
from src.services.storage import BatchStore

if TYPE_CHECKING:
    from config.settings import Settings

logger = structlog.get_logger(__name__)


class JobBusyError(RuntimeError):
    """Another batch job is already running."""


@dataclass
class CycleResult:
    """Results of one snapshot -> crawl -> enrich cycle."""

    snapshot: SnapshotResult
    crawl: CrawlRunResult
    enrichment: EnrichmentRunResult
    errors: list[str] = field(default_factory=list)

    def summary(self) -> dict:
        return {
            "records": self.snapshot.total_fetched,
            "snapshot_saved": self.snapshot.saved,
            "crawl_mode": self.crawl.mode,
            "crawl_fetched": self.crawl.fetched,
            "crawl_failed": len(self.crawl.failed_ids),
            "flagged": self.enrichment.flagged,
        }

    def to_dict(self) -> dict:
        return {
            "snapshot": self.snapshot.to_dict(),
            "crawl": self.crawl.to_dict(),
            "enrichment": self.enrichment.to_dict(),
            "errors": self.errors,
        }


class JobRunner:
    """Runs the batch jobs with settings-derived collaborators.

    Parameters
    ----------
    settings:
        Application settings.
    store:
        Batch storage; defaults to one rooted at ``settings.data_dir``.
    summarizer:
        Optional summarizer handed to the snapshot pipeline.
    on_batches_changed:
        Called after every job that wrote batch files (e.g. to reload an
        in-memory catalog).
    transport:
        Optional httpx transport shared by both HTTP clients (tests).
    """

    def __init__(
        self,
        settings: Settings,
        *,
        store: BatchStore | None = None,
        summarizer: Summarizer | None = None,
        on_batches_changed: Callable[[], None] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._store = store or BatchStore(settings.data_dir)
        self._summarizer = summarizer
        self._on_batches_changed = on_batches_changed
        self._transport = transport
        self._lock = asyncio.Lock()

    @property
    def store(self) -> BatchStore:
        return self._store

    @property
    def is_busy(self) -> bool:
        return self._lock.locked()

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    async def run_snapshot(self) -> SnapshotResult:
        async with self._exclusive("snapshot"):
            return await self._snapshot()

    async def run_crawl(
        self,
        mode: CrawlMode = CrawlMode.FULL,
        *,
        limit: int | None = None,
    ) -> CrawlRunResult:
        async with self._exclusive("crawl"):
            return await self._crawl(mode, limit)

    async def run_enrich(self, *, use_sample_details: bool = False) -> EnrichmentRunResult:
        async with self._exclusive("enrich"):
            return await self._enrich(use_sample_details)

    async def run_cycle(self, *, full_crawl: bool = False) -> CycleResult:
        """Snapshot, then crawl (full or incremental), then enrich."""
        async with self._exclusive("cycle"):
            snapshot = await self._snapshot()
            crawl = await self._crawl(
                CrawlMode.FULL if full_crawl else CrawlMode.INCREMENTAL, None
            )
            enrichment = await self._enrich(False)
            return CycleResult(
                snapshot=snapshot,
                crawl=crawl,
                enrichment=enrichment,
                errors=list(snapshot.errors),
            )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _exclusive(self, job: str) -> AsyncIterator[None]:
        if self._lock.locked():
            raise JobBusyError(f"Cannot start {job!r}: another job is running")
        async with self._lock:
            logger.info("jobs.started", job=job)
            try:
                yield
            except Exception as exc:
                logger.error("jobs.failed", job=job, error=str(exc))
                raise
            logger.info("jobs.finished", job=job)

    async def _snapshot(self) -> SnapshotResult:
        s = self._settings
        async with PublicDataClient(
            s.public_data_api_key,
            base_url=s.public_data_base_url,
            per_page=s.public_data_per_page,
            page_delay=s.public_data_page_delay,
            timeout=s.http_timeout_seconds,
            transport=self._transport,
        ) as client:
            pipeline = SnapshotPipeline(client, self._store, summarizer=self._summarizer)
            result = await pipeline.run()
        if result.saved:
            self._notify()
        return result

    async def _crawl(self, mode: CrawlMode, limit: int | None) -> CrawlRunResult:
        s = self._settings
        async with DetailPageClient(
            base_url=s.detail_base_url,
            delay_seconds=s.crawl_delay_seconds,
            retry_attempts=s.crawl_retry_attempts,
            timeout=s.http_timeout_seconds,
            transport=self._transport,
        ) as client:
            orchestrator = CrawlOrchestrator(
                client, self._store, checkpoint_every=s.crawl_checkpoint_every
            )
            result = await orchestrator.run(mode, limit=limit)
        self._notify()
        return result

    async def _enrich(self, use_sample_details: bool) -> EnrichmentRunResult:
        runner = EnrichmentRunner(
            self._store, summary_max_length=self._settings.summary_max_length
        )
        # Runs off the event loop.
        result = await asyncio.to_thread(runner.run, use_sample_details=use_sample_details)
        self._notify()
        return result

    def _notify(self) -> None:
        if self._on_batches_changed is not None:
            self._on_batches_changed()

