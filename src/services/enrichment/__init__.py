"""Deterministic enrichment passes over the snapshot and detail batches."""

from __future__ import annotations

from src.services.enrichment.reformatter import ReformatInput, reformat_by_rules
from src.services.enrichment.runner import EnrichmentRunner, EnrichmentRunResult
from src.services.enrichment.targets import build_target_flags, extract_target_age

__all__ = [
    "EnrichmentRunResult",
    "EnrichmentRunner",
    "ReformatInput",
    "build_target_flags",
    "extract_target_age",
    "reformat_by_rules",
]
