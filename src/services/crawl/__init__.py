"""Detail page crawling: fetcher, parser and checkpointed orchestrator.

Public API::

    from src.services.crawl import (
        CrawlMode,
        CrawlOrchestrator,
        DetailPageClient,
        parse_detail_page,
    )
"""

from __future__ import annotations

from src.services.crawl.detail_client import DetailPageClient
from src.services.crawl.detail_parser import parse_detail_page
from src.services.crawl.orchestrator import (
    SAMPLE_PAGE_IDS,
    Candidate,
    CrawlMode,
    CrawlOrchestrator,
    CrawlRunResult,
    CrawlState,
)

__all__ = [
    "SAMPLE_PAGE_IDS",
    "Candidate",
    "CrawlMode",
    "CrawlOrchestrator",
    "CrawlRunResult",
    "CrawlState",
    "DetailPageClient",
    "parse_detail_page",
]
