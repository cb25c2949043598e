"""Change detection between two snapshot batches.

Records are compared by identifier on a fixed set of *watched* fields.
Changes elsewhere in a record (tags, derived regions, raw payload, ...)
do not make it "modified".
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

import structlog

from src.models.benefit import BenefitRecord

logger = structlog.get_logger(__name__)

# Watched fields, as (name, accessor) pairs.
WATCHED_FIELDS: tuple[tuple[str, Callable[[BenefitRecord], Any]], ...] = (
    ("title", lambda r: r.title),
    ("benefit.description", lambda r: r.benefit.description),
    ("eligibility.conditions_explained", lambda r: r.eligibility.conditions_explained),
    ("schedule.end", lambda r: r.schedule.end),
)


@dataclass
class SnapshotDiff:
    """Partition of a new batch relative to the previous one.

    Every identifier of the new batch lands in exactly one of ``added``,
    ``modified`` or ``unchanged``.  ``removed_ids`` lists identifiers of the
    previous batch that the new batch no longer carries.  ``restamped_ids``
    lists unchanged records whose upstream "last modified" stamp moved.
    """

    added: list[BenefitRecord] = field(default_factory=list)
    modified: list[BenefitRecord] = field(default_factory=list)
    unchanged: list[BenefitRecord] = field(default_factory=list)
    removed_ids: list[str] = field(default_factory=list)
    restamped_ids: list[str] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.modified or self.removed_ids)

    def counts(self) -> dict[str, int]:
        return {
            "added": len(self.added),
            "modified": len(self.modified),
            "unchanged": len(self.unchanged),
            "removed": len(self.removed_ids),
            "restamped": len(self.restamped_ids),
        }


def changed_fields(previous: BenefitRecord, current: BenefitRecord) -> list[str]:
    """Names of the watched fields whose values differ."""
    return [name for name, get in WATCHED_FIELDS if get(previous) != get(current)]


def diff_snapshots(
    previous: Sequence[BenefitRecord],
    current: Sequence[BenefitRecord],
) -> SnapshotDiff:
    """Classify *current* records against *previous* by identifier."""
    previous_by_id = {record.id: record for record in previous}
    diff = SnapshotDiff()

    for record in current:
        old = previous_by_id.get(record.id)
        if old is None:
            diff.added.append(record)
        elif changed_fields(old, record):
            diff.modified.append(record)
        else:
            diff.unchanged.append(record)
            if old.source_modified != record.source_modified:
                diff.restamped_ids.append(record.id)

    current_ids = {record.id for record in current}
    diff.removed_ids = [rid for rid in previous_by_id if rid not in current_ids]

    logger.info("snapshot.diff_complete", **diff.counts())
    return diff
