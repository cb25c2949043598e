"""Whole-file JSON persistence for pipeline batches.

Every artifact (snapshot, detail batch, enrichment batch, target flags,
crawl checkpoint) is read entirely, recomputed, and written back entirely.
Writes go to a temporary sibling file that is then moved into place with
:func:`os.replace`, so a crash mid-write never leaves a truncated batch.

A missing or malformed file is reported as ``None`` -- callers proceed as
if the artifact had never been produced.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, TypeVar

import orjson
import structlog
from pydantic import BaseModel, ValidationError

from src.models import (
    CrawlCheckpoint,
    DetailBatch,
    EnrichmentBatch,
    SnapshotBatch,
    TargetFlagsBatch,
)

logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

# ---------------------------------------------------------------------------
# File names (relative to ``settings.data_dir``)
# ---------------------------------------------------------------------------

SNAPSHOT_FILE = "benefit-snapshot.json"
DETAIL_FILE = "benefit-detail.json"
DETAIL_SAMPLE_FILE = "benefit-detail-sample.json"
DETAIL_CHECKPOINT_FILE = "benefit-detail-checkpoint.json"
ENRICHED_FILE = "benefit-enriched.json"
AI_FILE = "benefit-ai.json"  # produced by an external generative pass
TARGETS_FILE = "benefit-targets.json"


class BatchUnavailableError(RuntimeError):
    """A batch required as input could not be read."""


# ---------------------------------------------------------------------------
# Low-level helpers
# ---------------------------------------------------------------------------


def write_json(path: Path, payload: Any) -> None:
    """Atomically replace *path* with the JSON encoding of *payload*."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f".{path.name}.tmp")
    tmp_path.write_bytes(orjson.dumps(payload, option=orjson.OPT_INDENT_2))
    os.replace(tmp_path, path)


def read_json(path: Path) -> Any | None:
    """Return the decoded JSON content of *path*, or ``None``."""
    if not path.exists():
        return None
    try:
        return orjson.loads(path.read_bytes())
    except (orjson.JSONDecodeError, OSError) as exc:
        logger.warning("storage.read_failed", path=str(path), error=str(exc))
        return None


def read_model(path: Path, model: type[ModelT]) -> ModelT | None:
    """Load *path* into *model*; malformed content counts as absent."""
    data = read_json(path)
    if data is None:
        return None
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        logger.warning(
            "storage.malformed_batch",
            path=str(path),
            model=model.__name__,
            errors=exc.error_count(),
        )
        return None


# ---------------------------------------------------------------------------
# BatchStore
# ---------------------------------------------------------------------------


class BatchStore:
    """Typed access to the batch files under one data directory.

    Parameters
    ----------
    data_dir:
        Directory holding all persisted batches.
    """

    def __init__(self, data_dir: Path | str) -> None:
        self._data_dir = Path(data_dir)

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def path(self, name: str) -> Path:
        return self._data_dir / name

    # -- Snapshot ---------------------------------------------------------

    def load_snapshot(self) -> SnapshotBatch | None:
        return read_model(self.path(SNAPSHOT_FILE), SnapshotBatch)

    def require_snapshot(self) -> SnapshotBatch:
        """Load the snapshot or raise :class:`BatchUnavailableError`."""
        snapshot = self.load_snapshot()
        if snapshot is None:
            raise BatchUnavailableError(
                f"Snapshot not readable at {self.path(SNAPSHOT_FILE)}"
            )
        return snapshot

    def save_snapshot(self, batch: SnapshotBatch) -> None:
        write_json(self.path(SNAPSHOT_FILE), batch.to_json_dict())
        logger.info("storage.snapshot_saved", count=batch.total_count)

    # -- Crawl details ----------------------------------------------------

    def load_details(self, *, sample: bool = False) -> DetailBatch | None:
        name = DETAIL_SAMPLE_FILE if sample else DETAIL_FILE
        return read_model(self.path(name), DetailBatch)

    def save_details(self, batch: DetailBatch, *, sample: bool = False) -> Path:
        path = self.path(DETAIL_SAMPLE_FILE if sample else DETAIL_FILE)
        write_json(path, batch.to_json_dict())
        logger.info(
            "storage.details_saved",
            path=str(path),
            total=batch.total_count,
            success=batch.success_count,
            failed=len(batch.failed_ids),
        )
        return path

    def load_checkpoint(self) -> CrawlCheckpoint | None:
        return read_model(self.path(DETAIL_CHECKPOINT_FILE), CrawlCheckpoint)

    def save_checkpoint(self, checkpoint: CrawlCheckpoint) -> None:
        write_json(self.path(DETAIL_CHECKPOINT_FILE), checkpoint.to_json_dict())

    def delete_checkpoint(self) -> None:
        self.path(DETAIL_CHECKPOINT_FILE).unlink(missing_ok=True)

    # -- Enrichment -------------------------------------------------------

    def load_enrichment(self) -> EnrichmentBatch | None:
        return read_model(self.path(ENRICHED_FILE), EnrichmentBatch)

    def load_generative_enrichment(self) -> EnrichmentBatch | None:
        return read_model(self.path(AI_FILE), EnrichmentBatch)

    def save_enrichment(self, batch: EnrichmentBatch) -> None:
        write_json(self.path(ENRICHED_FILE), batch.to_json_dict())
        logger.info("storage.enrichment_saved", count=len(batch.items))

    def load_targets(self) -> TargetFlagsBatch | None:
        return read_model(self.path(TARGETS_FILE), TargetFlagsBatch)

    def save_targets(self, batch: TargetFlagsBatch) -> None:
        write_json(self.path(TARGETS_FILE), batch.to_json_dict())
        logger.info("storage.targets_saved", count=len(batch.items))
