"""Periodic scheduler for the batch jobs.

One *cycle* is: snapshot -> detail crawl -> enrichment.  Daily cycles use
an incremental crawl; the weekly cycle re-crawls every detail page.

Development mode
    An ``asyncio`` background task with sleep-based scheduling runs in the
    same event loop as the FastAPI application.

Production mode
    Cycles are triggered externally (cron / a job scheduler) through the
    CLI or the admin jobs endpoint; no background loop runs.

Schedule (UTC; KST is UTC+9)
----------------------------
- **Full cycle**: Weekly, Sunday 18:00 UTC (Monday 03:00 KST).
- **Incremental cycle**: Daily, 19:00 UTC (04:00 KST).
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from config.settings import Settings
    from src.services.jobs import CycleResult, JobRunner

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_FULL_CYCLE_DAY = 6  # Sunday (Monday=0, Sunday=6)
_FULL_CYCLE_HOUR_UTC = 18
_INCREMENTAL_HOUR_UTC = 19
_STARTUP_DELAY_SECONDS = 60
_MAX_CHECK_INTERVAL_SECONDS = 900


# ---------------------------------------------------------------------------
# JobScheduler
# ---------------------------------------------------------------------------


class JobScheduler:
    """Runs batch job cycles on a fixed weekly/daily timetable.

    Parameters
    ----------
    runner:
        The :class:`~src.services.jobs.JobRunner` executing the jobs.
    settings:
        Application settings (``enable_auto_ingestion`` and
        ``ingestion_interval_hours``).
    """

    def __init__(self, runner: JobRunner, settings: Settings) -> None:
        self._runner = runner
        self._settings = settings
        self._task: asyncio.Task | None = None  # type: ignore[type-arg]
        self._running = False
        self._last_full_run: datetime | None = None
        self._last_incremental_run: datetime | None = None

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def last_full_run(self) -> datetime | None:
        return self._last_full_run

    @property
    def last_incremental_run(self) -> datetime | None:
        return self._last_incremental_run

    # ------------------------------------------------------------------
    # Background loop
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Spawn the background loop unless auto-ingestion is disabled."""
        if not self._settings.enable_auto_ingestion:
            logger.info("scheduler.auto_ingestion_disabled")
            return
        if self._task is None:
            self._task = asyncio.create_task(self._loop())

    async def _loop(self) -> None:
        self._running = True
        logger.info("scheduler.background_started")

        try:
            await asyncio.sleep(_STARTUP_DELAY_SECONDS)

            check_interval_seconds = min(
                self._settings.ingestion_interval_hours * 3600 / 4,
                _MAX_CHECK_INTERVAL_SECONDS,
            )

            while self._running:
                now = datetime.now(UTC)

                if self._should_run_full(now):
                    logger.info("scheduler.triggering_full_cycle")
                    if await self._safe_run(full=True) is not None:
                        self._last_full_run = now

                elif self._should_run_incremental(now):
                    logger.info("scheduler.triggering_incremental_cycle")
                    if await self._safe_run(full=False) is not None:
                        self._last_incremental_run = now

                await asyncio.sleep(check_interval_seconds)

        except asyncio.CancelledError:
            logger.info("scheduler.background_cancelled")
        except Exception:
            logger.error("scheduler.background_error", exc_info=True)
        finally:
            self._running = False
            logger.info("scheduler.background_stopped")

    def _should_run_full(self, now: datetime) -> bool:
        """Weekly: on the full-cycle day and hour, once per date."""
        if now.weekday() != _FULL_CYCLE_DAY or now.hour != _FULL_CYCLE_HOUR_UTC:
            return False
        if self._last_full_run is not None and self._last_full_run.date() == now.date():
            return False
        return True

    def _should_run_incremental(self, now: datetime) -> bool:
        """Daily: on the incremental hour, once per date."""
        if now.hour != _INCREMENTAL_HOUR_UTC:
            return False
        if (
            self._last_incremental_run is not None
            and self._last_incremental_run.date() == now.date()
        ):
            return False
        return True

    async def _safe_run(self, full: bool) -> CycleResult | None:
        """Run one cycle; failures are logged and reported as ``None``."""
        try:
            result = await self._runner.run_cycle(full_crawl=full)
        except Exception:
            logger.error("scheduler.run_failed", full=full, exc_info=True)
            return None

        logger.info("scheduler.run_complete", full=full, **result.summary())
        return result

    # ------------------------------------------------------------------
    # On-demand execution
    # ------------------------------------------------------------------

    async def run_scheduled_update(self, full: bool = False) -> CycleResult | None:
        """Entry point for externally scheduled cycles."""
        logger.info("scheduler.manual_trigger", full=full)
        result = await self._safe_run(full=full)

        if result is not None:
            if full:
                self._last_full_run = datetime.now(UTC)
            else:
                self._last_incremental_run = datetime.now(UTC)

        return result

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def stop(self) -> None:
        """Stop the background loop, waiting briefly for it to finish."""
        logger.info("scheduler.stopping")
        self._running = False

        if self._task is not None:
            self._task.cancel()
            try:
                await asyncio.wait_for(self._task, timeout=10.0)
            except (asyncio.CancelledError, TimeoutError):
                pass
            self._task = None

        logger.info("scheduler.stopped")
