"""Heuristic field extraction from free-form Korean benefit text.

Every function here is pure and total: a pattern that does not match
yields ``None`` (or an empty list), never an exception and never a
placeholder string.  Upstream text is inconsistent, so these are
best-effort heuristics.

Rules are kept as ordered ``(pattern, handler)`` tables evaluated top-down;
the first matching rule wins.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from typing import Final

from src.models.benefit import (
    AgeRange,
    BenefitType,
    DocumentItem,
    IncomeCondition,
    Schedule,
)

# ---------------------------------------------------------------------------
# Age
# ---------------------------------------------------------------------------

AGE_FLOOR: Final = 0
AGE_CEILING: Final = 99
YOUTH_DEFAULT_AGE: Final = (19, 34)

_AGE_RANGE_RE = re.compile(r"(?:만\s*)?(?<!\d)(\d{1,3})\s*세?\s*[~\-–]\s*(?:만\s*)?(\d{1,3})\s*세")
_AGE_MIN_RE = re.compile(r"(?:만\s*)?(?<!\d)(\d{1,3})\s*세\s*이상")
_AGE_MAX_RE = re.compile(r"(?:만\s*)?(?<!\d)(\d{1,3})\s*세\s*이하")
_YOUTH_RANGE_RE = re.compile(r"청년\s*\([^)]*?만\s*(\d{1,3})\s*[~\-–]\s*(\d{1,3})")
_YOUTH_RE = re.compile(r"청년")


def _clamp_age(value: int) -> int:
    return max(AGE_FLOOR, min(AGE_CEILING, value))


def _age_range(match: re.Match[str]) -> AgeRange:
    low, high = int(match.group(1)), int(match.group(2))
    if low > high:
        low, high = high, low
    return AgeRange(min=low, max=high)


_AGE_RULES: Final[list[tuple[re.Pattern[str], Callable[[re.Match[str]], AgeRange]]]] = [
    (_AGE_RANGE_RE, _age_range),
    (_AGE_MIN_RE, lambda m: AgeRange(min=int(m.group(1)))),
    (_AGE_MAX_RE, lambda m: AgeRange(max=int(m.group(1)))),
    (_YOUTH_RANGE_RE, _age_range),
    (_YOUTH_RE, lambda m: AgeRange(min=YOUTH_DEFAULT_AGE[0], max=YOUTH_DEFAULT_AGE[1])),
]


def extract_age(text: str | None) -> AgeRange | None:
    """Extract an age range such as ``만 19~34세`` or ``65세 이상``."""
    if not text:
        return None
    for pattern, build in _AGE_RULES:
        match = pattern.search(text)
        if match is None:
            continue
        age = build(match)
        return AgeRange(
            min=_clamp_age(age.min) if age.min is not None else None,
            max=_clamp_age(age.max) if age.max is not None else None,
        )
    return None


# ---------------------------------------------------------------------------
# Income
# ---------------------------------------------------------------------------

_MEDIAN_INCOME_RE = re.compile(r"중위소득\s*(\d+)\s*%")


def extract_income(text: str | None) -> IncomeCondition | None:
    """Only "중위소득 N%" is recognised; anything else is no condition."""
    if not text:
        return None
    match = _MEDIAN_INCOME_RE.search(text)
    if match is None:
        return None
    return IncomeCondition(type="median", percent=int(match.group(1)))


# ---------------------------------------------------------------------------
# Region
# ---------------------------------------------------------------------------

PROVINCES: Final = (
    "서울", "부산", "대구", "인천", "광주", "대전", "울산", "세종",
    "경기", "강원", "충북", "충남", "전북", "전남", "경북", "경남", "제주",
)

# Longest forms first so that "강원특별자치도" is not half-replaced by "강원도".
_PROVINCE_LONG_FORMS: Final = (
    ("서울특별시", "서울"),
    ("부산광역시", "부산"),
    ("대구광역시", "대구"),
    ("인천광역시", "인천"),
    ("광주광역시", "광주"),
    ("대전광역시", "대전"),
    ("울산광역시", "울산"),
    ("세종특별자치시", "세종"),
    ("강원특별자치도", "강원"),
    ("전북특별자치도", "전북"),
    ("제주특별자치도", "제주"),
    ("충청북도", "충북"),
    ("충청남도", "충남"),
    ("경상북도", "경북"),
    ("경상남도", "경남"),
    ("전라북도", "전북"),
    ("전라남도", "전남"),
    ("경기도", "경기"),
    ("강원도", "강원"),
)

_DISTRICT_RE = re.compile(r"[가-힣]{2,}(?:시|군|구)\b")
_DISTRICT_STOPWORDS: Final = frozenset({"서비스"})


def normalize_provinces(text: str) -> str:
    for long_form, short_form in _PROVINCE_LONG_FORMS:
        text = text.replace(long_form, short_form)
    return text


def extract_regions(text: str | None) -> list[str] | None:
    """Extract province and city/district names, e.g. ``["서울", "강남구"]``."""
    if not text or not text.strip():
        return None
    normalized = normalize_provinces(text)
    found = [p for p in PROVINCES if p in normalized]
    for district in _DISTRICT_RE.findall(normalized):
        if district not in _DISTRICT_STOPWORDS:
            found.append(district)
    regions = list(dict.fromkeys(found))
    return regions or None


def extract_record_regions(
    eligibility_text: str | None,
    agency_name: str | None,
    title: str | None,
) -> list[str] | None:
    """Regions from eligibility text, falling back to agency name + title."""
    regions = extract_regions(eligibility_text)
    if regions:
        return regions
    combined = " ".join(part for part in (agency_name, title) if part)
    return extract_regions(combined)


# ---------------------------------------------------------------------------
# Benefit amount / duration / type
# ---------------------------------------------------------------------------

_AMOUNT_RE = re.compile(r"(?:월\s*)?(?:최대\s*)?\d[\d,]*\s*(?:만\s*)?원")
_DURATION_RE = re.compile(r"(?:최대\s*)?\d+\s*(?:개월|년)(?:\s*(?:간|동안))?")

_BENEFIT_TYPE_RULES: Final = (
    (("할인", "감면", "면제"), BenefitType.DISCOUNT),
    (("현금", "지원금", "수당", "장려금"), BenefitType.MONEY),
    (("서비스", "바우처", "현물", "이용권", "상담"), BenefitType.SERVICE),
)


def extract_amount(text: str | None) -> str | None:
    """First monetary-looking substring such as ``월 최대 20만원``."""
    if not text:
        return None
    match = _AMOUNT_RE.search(text)
    return match.group(0).strip() if match else None


def extract_duration(text: str | None) -> str | None:
    if not text:
        return None
    match = _DURATION_RE.search(text)
    return match.group(0).strip() if match else None


def classify_benefit_type(support_type: str | None, content: str | None) -> BenefitType:
    label = support_type or ""
    for keywords, benefit_type in _BENEFIT_TYPE_RULES:
        if any(k in label for k in keywords):
            return benefit_type
    if extract_amount(content):
        return BenefitType.MONEY
    return BenefitType.OTHER


# ---------------------------------------------------------------------------
# Documents / methods / schedule
# ---------------------------------------------------------------------------

_DOCUMENT_SPLIT_RE = re.compile(r"[,\n·•]")

_METHOD_KEYWORDS: Final = ("온라인", "방문", "우편", "팩스")
_DEFAULT_METHOD: Final = "기타"

_ISO_DATE_RE = re.compile(r"(\d{4})-(\d{2})-(\d{2})")
_DOT_DATE_RE = re.compile(r"(\d{4})\.\s*(\d{1,2})\.\s*(\d{1,2})")
_ALWAYS_OPEN = "상시"


def extract_documents(text: str | None) -> list[DocumentItem]:
    if not text:
        return []
    names = (part.strip() for part in _DOCUMENT_SPLIT_RE.split(text))
    return [DocumentItem(name=name, required=True) for name in names if name]


def extract_methods(text: str | None) -> list[str]:
    if not text:
        return [_DEFAULT_METHOD]
    methods = [k for k in _METHOD_KEYWORDS if k in text]
    return methods or [_DEFAULT_METHOD]


def extract_schedule(deadline: str | None) -> Schedule:
    """Parse an application deadline.

    Unparseable text is kept as ``note`` on an open-ended schedule rather
    than discarded.
    """
    if not deadline or not deadline.strip() or _ALWAYS_OPEN in deadline:
        return Schedule(type="always")

    iso = _ISO_DATE_RE.search(deadline)
    if iso:
        return Schedule(type="period", end=iso.group(0))

    dotted = _DOT_DATE_RE.search(deadline)
    if dotted:
        year, month, day = dotted.groups()
        return Schedule(type="period", end=f"{year}-{int(month):02d}-{int(day):02d}")

    return Schedule(type="always", note=deadline.strip())
