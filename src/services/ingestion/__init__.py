"""Snapshot ingestion for the public benefits catalog.

Fetches the service list from the public data API, normalises every raw
record into a :class:`~src.models.BenefitRecord`, detects changes against
the previous snapshot and persists the result.

Public API::

    from src.services.ingestion import (
        PublicDataClient,
        SnapshotPipeline,
        JobScheduler,
        diff_snapshots,
        transform_record,
    )
"""

from __future__ import annotations

from src.services.ingestion.pipeline import SnapshotPipeline, SnapshotResult
from src.services.ingestion.public_data_client import FetchResult, PublicDataClient
from src.services.ingestion.scheduler import JobScheduler
from src.services.ingestion.snapshot import SnapshotDiff, diff_snapshots
from src.services.ingestion.transformer import transform_record, transform_records

__all__ = [
    "FetchResult",
    "JobScheduler",
    "PublicDataClient",
    "SnapshotDiff",
    "SnapshotPipeline",
    "SnapshotResult",
    "diff_snapshots",
    "transform_record",
    "transform_records",
]
