"""Raw upstream service records -> canonical :class:`BenefitRecord`.

The transformer never drops a record: even when every extractor misses,
a record is produced with explicit absent values.  Two fields are required
for display and carry defaults instead: a missing title becomes
:data:`UNTITLED` and a missing application URL becomes
:data:`DEFAULT_APPLICATION_URL`.
"""

from __future__ import annotations

import hashlib
import re
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any, Final

import structlog

from src.models.benefit import (
    Application,
    BenefitCategory,
    BenefitInfo,
    BenefitRecord,
    BenefitSummary,
    Eligibility,
    SourceInfo,
)
from src.services.ingestion.extractors import (
    classify_benefit_type,
    extract_age,
    extract_amount,
    extract_documents,
    extract_duration,
    extract_income,
    extract_methods,
    extract_record_regions,
    extract_schedule,
)

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

RECORD_ID_PREFIX: Final = "benefit_"
API_SOURCE: Final = "행안부_공공서비스API"
DEFAULT_APPLICATION_URL: Final = "https://www.bokjiro.go.kr"
# A card always shows a title; the only sentinel besides the application URL.
UNTITLED: Final = "제목 없음"
ONE_LINER_LENGTH: Final = 50

# 서비스분야 keyword -> category.  Order matters: the first hit wins.
CATEGORY_RULES: Final[tuple[tuple[str, BenefitCategory], ...]] = (
    ("주거", BenefitCategory.HOUSING),
    ("취업", BenefitCategory.JOB),
    ("창업", BenefitCategory.JOB),
    ("고용", BenefitCategory.JOB),
    ("교육", BenefitCategory.EDUCATION),
    ("보육", BenefitCategory.CHILDCARE),
    ("임신", BenefitCategory.CHILDCARE),
    ("출산", BenefitCategory.CHILDCARE),
    ("육아", BenefitCategory.CHILDCARE),
    ("건강", BenefitCategory.HEALTH),
    ("의료", BenefitCategory.HEALTH),
    ("문화", BenefitCategory.CULTURE),
    ("여가", BenefitCategory.CULTURE),
    ("금융", BenefitCategory.FINANCE),
    ("대출", BenefitCategory.FINANCE),
)

# 지원대상 keywords -> tag.
TAG_RULES: Final[tuple[tuple[tuple[str, ...], str], ...]] = (
    (("청년",), "청년"),
    (("노인", "어르신"), "어르신"),
    (("장애",), "장애인"),
    (("임산부", "임신"), "임산부"),
    (("영유아", "아동"), "영유아"),
    (("저소득",), "저소득"),
    (("다문화",), "다문화"),
    (("한부모",), "한부모"),
)

_CONDITION_SPLIT_RE = re.compile(r"[,\n]")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _text(raw: dict[str, Any], key: str) -> str:
    value = raw.get(key)
    return str(value).strip() if value is not None else ""


def _optional(raw: dict[str, Any], *keys: str) -> str | None:
    for key in keys:
        value = _text(raw, key)
        if value:
            return value
    return None


def map_category(field: str | None) -> BenefitCategory:
    """Map the upstream 서비스분야 label onto a :class:`BenefitCategory`."""
    if not field:
        return BenefitCategory.OTHER
    for keyword, category in CATEGORY_RULES:
        if keyword in field:
            return category
    return BenefitCategory.OTHER


def generate_tags(raw: dict[str, Any]) -> list[str]:
    target = _text(raw, "지원대상")
    tags = [tag for keywords, tag in TAG_RULES if any(k in target for k in keywords)]
    domain = _text(raw, "서비스분야")
    if domain:
        tags.append(domain)
    return list(dict.fromkeys(tags))


def make_record_id(raw: dict[str, Any]) -> str:
    """Stable identifier: the upstream service ID, or a content hash.

    The hash fallback keeps identifiers stable across runs for records the
    upstream publishes without a 서비스ID.
    """
    service_id = _text(raw, "서비스ID")
    if service_id:
        return f"{RECORD_ID_PREFIX}{service_id}"
    basis = f"{_text(raw, '서비스명')}|{_text(raw, '소관기관명')}"
    digest = hashlib.sha256(basis.encode()).hexdigest()[:12]
    return f"{RECORD_ID_PREFIX}auto-{digest}"


def default_summary(content: str, purpose: str) -> BenefitSummary:
    one_liner = content[:ONE_LINER_LENGTH]
    if len(content) > ONE_LINER_LENGTH:
        one_liner += "..."
    return BenefitSummary(one_liner=one_liner, description=purpose)


# ---------------------------------------------------------------------------
# Transform
# ---------------------------------------------------------------------------


def transform_record(raw: dict[str, Any], *, now: str | None = None) -> BenefitRecord:
    """Transform one raw upstream record into a canonical record."""
    synced_at = now or datetime.now(UTC).isoformat()

    title = _text(raw, "서비스명") or UNTITLED
    agency = _text(raw, "소관기관명")
    selection = _text(raw, "선정기준")
    target = _text(raw, "지원대상")
    content = _text(raw, "지원내용")

    conditions = [c.strip() for c in _CONDITION_SPLIT_RE.split(selection) if c.strip()]
    eligibility_text = "\n".join(part for part in (selection, target) if part)

    online_url = _optional(raw, "온라인신청사이트URL")
    detail_url = _optional(raw, "상세조회URL")

    return BenefitRecord(
        id=make_record_id(raw),
        title=title,
        category=map_category(_text(raw, "서비스분야")),
        tags=generate_tags(raw),
        summary=default_summary(content, _text(raw, "서비스목적")),
        eligibility=Eligibility(
            age=extract_age(selection),
            income=extract_income(selection),
            region=extract_record_regions(eligibility_text, agency, title),
            conditions=conditions,
            conditions_explained=selection,
        ),
        benefit=BenefitInfo(
            type=classify_benefit_type(_text(raw, "지원유형"), content),
            amount=extract_amount(content),
            duration=extract_duration(content),
            description=content,
        ),
        documents=extract_documents(_text(raw, "구비서류")),
        schedule=extract_schedule(_text(raw, "신청기한")),
        application=Application(
            method=extract_methods(_text(raw, "신청방법")),
            url=online_url or detail_url or DEFAULT_APPLICATION_URL,
            contact=_optional(raw, "문의처", "전화문의"),
            receiving_agency=_optional(raw, "접수기관"),
        ),
        warnings=[],
        source=SourceInfo(
            name=agency,
            url=online_url or detail_url or "",
            api_source=API_SOURCE,
            last_sync=synced_at,
        ),
        raw=dict(raw),
    )


def transform_records(raw_records: Iterable[dict[str, Any]]) -> list[BenefitRecord]:
    """Transform a whole upstream batch, one record per input."""
    now = datetime.now(UTC).isoformat()
    records = [transform_record(raw, now=now) for raw in raw_records]
    logger.info("transform.complete", count=len(records))
    return records
