"""Hyetaek FastAPI application entry point.

Creates the FastAPI app, configures middleware, includes routers, and
manages the lifecycle of the batch services (BatchStore, BenefitCatalog,
JobRunner, JobScheduler).
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx
import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from config.settings import Settings, settings
from src.api.router import api_router
from src.services import BatchStore, BenefitCatalog, JobRunner
from src.services.ingestion.scheduler import JobScheduler

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

APP_VERSION = "0.1.0"


# ---------------------------------------------------------------------------
# Structured logging configuration
# ---------------------------------------------------------------------------


def configure_logging(app_settings: Settings | None = None) -> None:
    """Set up structlog with JSON or console rendering based on settings."""
    app_settings = app_settings or settings
    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if app_settings.log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelNamesMapping().get(app_settings.log_level.upper(), logging.INFO),
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(
    app_settings: Settings | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build the API application.

    Parameters
    ----------
    app_settings:
        Settings to run with; defaults to the module-level singleton.
    transport:
        Optional httpx transport handed to the job runner's clients.
    """
    app_settings = app_settings or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Wire the batch services onto ``app.state``.

        On startup:
          1. Open the batch store under ``data_dir``
          2. Load the merged catalog
          3. Create the job runner (reloads the catalog after each job)
          4. Start the scheduler when auto-ingestion is enabled

        On shutdown the scheduler is stopped.
        """
        configure_logging(app_settings)
        logger.info("app.startup", env=app_settings.env, data_dir=str(app_settings.data_dir))

        app.state.start_time = time.time()
        app.state.settings = app_settings

        # -- 1. Storage --------------------------------------------------------
        store = BatchStore(app_settings.data_dir)
        app.state.store = store

        # -- 2. Catalog --------------------------------------------------------
        catalog = BenefitCatalog(store, hidden_ids=app_settings.hidden_benefit_ids)
        catalog.reload()
        app.state.catalog = catalog

        # -- 3. Job runner -----------------------------------------------------
        runner = JobRunner(
            app_settings,
            store=store,
            on_batches_changed=catalog.reload,
            transport=transport,
        )
        app.state.job_runner = runner

        # -- 4. Scheduler ------------------------------------------------------
        scheduler = JobScheduler(runner, app_settings)
        scheduler.start()
        app.state.scheduler = scheduler

        logger.info("app.startup_complete")

        yield

        logger.info("app.shutdown_start")
        await scheduler.stop()
        logger.info("app.shutdown_complete")

    app = FastAPI(
        title="Hyetaek API",
        description=(
            "Hyetaek (혜택) -- Korean public benefits catalog. Serves the "
            "merged snapshot, crawled detail, enrichment and target flags, and "
            "exposes admin endpoints for the batch jobs."
        ),
        version=APP_VERSION,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/docs" if not app_settings.is_production else None,
        redoc_url="/redoc" if not app_settings.is_production else None,
    )

    # -- CORS middleware --------------------------------------------------------
    # allow_credentials=True must not be combined with allow_origins=["*"].
    if app_settings.is_production:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=app_settings.cors_origin_list,
            allow_credentials=True,
            allow_methods=["GET", "POST"],
            allow_headers=["Content-Type", "Authorization", "X-Admin-API-Key"],
        )
    else:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["http://localhost:3000", "http://localhost:8000", "http://127.0.0.1:8000"],
            allow_credentials=False,
            allow_methods=["GET", "POST", "OPTIONS", "HEAD"],
            allow_headers=["Content-Type", "Accept", "Authorization", "X-Admin-API-Key"],
        )

    app.include_router(api_router)

    @app.get("/api", response_class=ORJSONResponse)
    async def api_info() -> dict:
        """API information endpoint."""
        return {
            "name": "Hyetaek API",
            "version": APP_VERSION,
            "docs": "/docs",
            "endpoints": {
                "benefits": "/api/v1/benefits",
                "snapshot": "/api/v1/benefits/snapshot",
                "health": "/api/v1/health",
                "admin_jobs": "/api/v1/admin/jobs",
            },
        }

    return app


app = create_app()
