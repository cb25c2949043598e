"""Bundled fallback dataset for the upstream service list.

When no API key is configured, or the upstream returns nothing, the
snapshot pipeline runs against the small illustrative dataset in
``fallback_services.json`` so that every downstream stage still has input.
The records carry fixed ``수정일시`` stamps so that repeated fallback runs
produce stable snapshots.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import structlog

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------

_DATA_DIR: Path = Path(__file__).resolve().parent
FALLBACK_SERVICES_PATH: Path = _DATA_DIR / "fallback_services.json"


def load_fallback_services(path: Path | None = None) -> list[dict[str, Any]]:
    """Load raw upstream-shaped service records from a JSON file.

    Parameters
    ----------
    path:
        Path to the JSON file.  Defaults to the bundled
        ``fallback_services.json``.

    Returns
    -------
    list[dict]
        Raw records keyed exactly like the upstream API payload.

    Raises
    ------
    FileNotFoundError
        If the JSON file does not exist.
    json.JSONDecodeError
        If the JSON is malformed.
    """
    target = path or FALLBACK_SERVICES_PATH
    logger.info("seed.loading_fallback", path=str(target))

    with open(target, encoding="utf-8") as fh:
        raw_list = json.load(fh)

    if not isinstance(raw_list, list):
        logger.error("seed.invalid_format", expected="list", got=type(raw_list).__name__)
        return []

    records = [item for item in raw_list if isinstance(item, dict)]
    skipped = len(raw_list) - len(records)
    if skipped:
        logger.warning("seed.skipped_non_objects", skipped=skipped)

    logger.info("seed.fallback_loaded", count=len(records))
    return records
