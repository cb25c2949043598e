"""Narrow-audience target flags from eligibility free text.

Flags only ever *tighten* eligibility: a flag is set when its keywords are
present and left unset otherwise.  The age range here is a best-effort
reading that also understands birth-year ranges
(``1990~2005년 출생``), which need the current calendar year.
"""

from __future__ import annotations

import re
from typing import Final

from src.models import AgeRange, BenefitRecord, TargetFlags

AGE_FLOOR: Final = 0
AGE_CEILING: Final = 99
YOUTH_DEFAULT_AGE: Final = (19, 34)
EARLIEST_BIRTH_YEAR: Final = 1920

_WHITESPACE_RE = re.compile(r"\s+")
_RANGE_RE = re.compile(r"(?:만\s*)?(?<!\d)(\d{1,3})\s*세?\s*[~\-]\s*(?:만\s*)?(\d{1,3})\s*세")
_ABOVE_RE = re.compile(r"(?:만\s*)?(?<!\d)(\d{1,3})\s*세\s*이상")
_BELOW_RE = re.compile(r"(?:만\s*)?(?<!\d)(\d{1,3})\s*세\s*이하")
_BIRTH_RANGE_RE = re.compile(r"(\d{4})\s*[~\-]\s*(\d{4})\s*년\s*출생")
_YOUTH_RANGE_RE = re.compile(r"청년\s*\(.*만\s*(\d+)\s*[~\-]\s*(\d+)")
_YOUTH_RE = re.compile(r"청년")

# (pattern, TargetFlags attribute) -- evaluated independently, all may fire.
FLAG_RULES: Final[tuple[tuple[re.Pattern[str], str], ...]] = (
    (
        re.compile(
            r"보호종료아동|보호종료청소년|자립준비청년|시설\s*퇴소청소년|만기\s*퇴소|가정위탁\s*보호종료"
        ),
        "is_care_leaver_only",
    ),
    (re.compile(r"한부모가정|한부모가족"), "is_single_parent_only"),
    (
        re.compile(r"기초생활수급자|기초생활 수급자|차상위계층|차상위 계층"),
        "requires_basic_livelihood_or_near_poor",
    ),
    (re.compile(r"대학교\s*재학생|대학생|재학 중인 자|재학중인 자"), "requires_student"),
    (re.compile(r"등록장애인|장애인|중증장애"), "requires_disabled"),
)


def _clamp(value: int) -> int:
    return max(AGE_FLOOR, min(AGE_CEILING, value))


def extract_target_age(text: str, current_year: int) -> AgeRange | None:
    """Combine every age signal in *text* into one range.

    Explicit ranges set both bounds, ``N세 이상`` only raises the minimum
    and ``N세 이하`` only lowers the maximum; a birth-year range widens
    the bounds.  A ``청년(... 만 N~M ...)`` definition overrides all of
    these.  An inverted final range yields ``None``.
    """
    t = _WHITESPACE_RE.sub(" ", text)
    low: int | None = None
    high: int | None = None

    if match := _RANGE_RE.search(t):
        low, high = sorted((int(match.group(1)), int(match.group(2))))

    if match := _ABOVE_RE.search(t):
        value = int(match.group(1))
        if low is None or value > low:
            low = value

    if match := _BELOW_RE.search(t):
        value = int(match.group(1))
        if high is None or value < high:
            high = value

    if match := _BIRTH_RANGE_RE.search(t):
        years = (int(match.group(1)), int(match.group(2)))
        if all(EARLIEST_BIRTH_YEAR <= year <= current_year - 1 for year in years):
            youngest = current_year - max(years)
            oldest = current_year - min(years)
            if low is None or youngest < low:
                low = youngest
            if high is None or oldest > high:
                high = oldest

    if match := _YOUTH_RANGE_RE.search(t):
        low, high = int(match.group(1)), int(match.group(2))
    elif _YOUTH_RE.search(t) and low is None and high is None:
        low, high = YOUTH_DEFAULT_AGE

    if low is not None:
        low = _clamp(low)
    if high is not None:
        high = _clamp(high)
    if low is None and high is None:
        return None
    if low is not None and high is not None and low > high:
        return None
    return AgeRange(min=low, max=high)


def build_target_flags(text: str, current_year: int) -> TargetFlags:
    t = _WHITESPACE_RE.sub(" ", text)
    flags = TargetFlags(age=extract_target_age(t, current_year))
    for pattern, attribute in FLAG_RULES:
        if pattern.search(t):
            setattr(flags, attribute, True)
    return flags


def eligibility_text(record: BenefitRecord) -> str:
    """Selection criteria and support target from the raw payload."""
    parts = (record.raw.get("선정기준"), record.raw.get("지원대상"))
    return "\n".join(str(part) for part in parts if part).strip()


def flags_for_record(record: BenefitRecord, current_year: int) -> TargetFlags | None:
    """Flags for one record, or ``None`` when nothing was detected."""
    text = eligibility_text(record)
    if not text:
        return None
    flags = build_target_flags(text, current_year)
    return None if flags.is_empty else flags
