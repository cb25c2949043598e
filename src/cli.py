"""Command-line entry point for the batch jobs.

Usage::

    hyetaek snapshot
    hyetaek crawl --sample
    hyetaek crawl --limit 50
    hyetaek crawl --incremental
    hyetaek enrich [--sample]
    hyetaek cycle [--full]
    hyetaek serve

Each job prints its result as JSON on stdout; logs go through structlog.
"""

from __future__ import annotations

import asyncio
import sys
from collections.abc import Awaitable
from typing import Any, TypeVar

import click
import orjson

from config.settings import settings
from src.main import configure_logging
from src.services import BatchUnavailableError, JobRunner
from src.services.crawl.orchestrator import CrawlMode

T = TypeVar("T")


def _run_job(job: Awaitable[T]) -> T:
    try:
        return asyncio.run(job)
    except KeyboardInterrupt:
        click.echo("Job cancelled by user", err=True)
        sys.exit(1)
    except BatchUnavailableError as exc:
        click.echo(f"Error: {exc}. Run `hyetaek snapshot` first.", err=True)
        sys.exit(1)


def _print_result(payload: dict[str, Any]) -> None:
    click.echo(orjson.dumps(payload, option=orjson.OPT_INDENT_2).decode())


def _runner() -> JobRunner:
    configure_logging(settings)
    return JobRunner(settings)


@click.group()
def cli() -> None:
    """Hyetaek - public benefits catalog ingestion, crawl and enrichment."""


@cli.command()
def snapshot() -> None:
    """Fetch the upstream catalog and write a new snapshot if it changed."""
    result = _run_job(_runner().run_snapshot())
    _print_result(result.to_dict())


@cli.command()
@click.option("--sample", is_flag=True, help="Crawl the fixed sample pages only")
@click.option("--incremental", is_flag=True, help="Re-fetch only pages whose source changed")
@click.option("--limit", type=click.IntRange(min=1), default=None, help="Crawl only the first N pages")
def crawl(sample: bool, incremental: bool, limit: int | None) -> None:
    """Crawl gov.kr detail pages for the current snapshot."""
    if sample and incremental:
        raise click.UsageError("--sample and --incremental are mutually exclusive")

    if sample:
        mode = CrawlMode.SAMPLE
    elif incremental:
        mode = CrawlMode.INCREMENTAL
    else:
        mode = CrawlMode.FULL

    result = _run_job(_runner().run_crawl(mode, limit=limit))
    _print_result(result.to_dict())
    if result.failed_ids:
        click.echo(f"{len(result.failed_ids)} page(s) failed", err=True)


@cli.command()
@click.option("--sample", is_flag=True, help="Read the sample detail batch")
def enrich(sample: bool) -> None:
    """Regenerate rule-based enrichment and target flags."""
    result = _run_job(_runner().run_enrich(use_sample_details=sample))
    _print_result(result.to_dict())


@cli.command()
@click.option("--full", is_flag=True, help="Re-crawl every detail page")
def cycle(full: bool) -> None:
    """Run snapshot, crawl and enrichment back to back."""
    result = _run_job(_runner().run_cycle(full_crawl=full))
    _print_result(result.to_dict())


@cli.command()
@click.option("--host", default=None, help="Bind address (default: API_HOST)")
@click.option("--port", type=int, default=None, help="Port (default: API_PORT)")
def serve(host: str | None, port: int | None) -> None:
    """Serve the catalog API with uvicorn."""
    import uvicorn

    uvicorn.run(
        "src.main:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
    )


if __name__ == "__main__":
    cli()
