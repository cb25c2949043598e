"""Hyetaek service layer -- batch storage, pipeline jobs and the merged catalog.

Subpackages:

- :mod:`src.services.ingestion` -- upstream fetch, normalisation, snapshot diff.
- :mod:`src.services.crawl` -- detail page fetcher, parser, orchestrator.
- :mod:`src.services.enrichment` -- rule-based reformatting and target flags.
"""

from __future__ import annotations

from src.services.storage import BatchStore, BatchUnavailableError
from src.services.merge_view import BenefitCatalog, BenefitView
from src.services.jobs import CycleResult, JobBusyError, JobRunner

__all__ = [
    "BatchStore",
    "BatchUnavailableError",
    "BenefitCatalog",
    "BenefitView",
    "CycleResult",
    "JobBusyError",
    "JobRunner",
]
