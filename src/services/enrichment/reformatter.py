"""Deterministic rule-based reformatting of a benefit into an enrichment record.

The output has the same fixed shape as the externally generated
enrichment (``benefit-ai.json``) so both can be layered by the merge view.
Nothing here performs I/O; identical input always yields identical output.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Final

from src.models import BenefitLine, BenefitRecord, CrawlDetail, DocumentGuide, EligibilitySummary
from src.models.enrichment import EnrichmentRecord

# ---------------------------------------------------------------------------
# Limits and fallbacks
# ---------------------------------------------------------------------------

MAX_SUMMARY_LENGTH: Final = 50
MAX_BENEFITS: Final = 5
MAX_DETAILS: Final = 5
MAX_TIPS: Final = 3
MAX_SIMPLE_LENGTH: Final = 80
FALLBACK_VALUE_LENGTH: Final = 50

EMPTY_SUMMARY: Final = "정보 없음"
DEFAULT_SIMPLE: Final = "자격조건은 상세 내용을 확인하세요."
FALLBACK_BENEFIT_LABEL: Final = "지원 내용"
DEFAULT_DOC_HOW: Final = "신청기관 비치 및 작성"

_LINE_SPLIT_RE = re.compile(r"\r\n|\n|\r")
_BULLET_PREFIX_RE = re.compile(r"^[\s○\-*·]+")
_BENEFIT_BULLET_RE = re.compile(r"^[○\-]\s*")
_FRAGMENT_SPLIT_RE = re.compile(r",\s+|、\s*")
_BENEFIT_PAIR_RE = re.compile(r"^(.+?)\s+(\d[\d,]*)\s*(만\s*)?원\s*$")

# Ordered: the first matching keyword decides where a document is issued.
DOC_HOW_RULES: Final[tuple[tuple[tuple[str, ...], str], ...]] = (
    (("주민등록",), "정부24에서 발급"),
    (("소득", "납세"), "홈택스에서 발급"),
    (("등기",), "인터넷등기소에서 발급"),
    (("건강보험",), "건강보험공단에서 발급"),
    (("가족관계", "혼인"), "대법원 전자가족관계등록시스템에서 발급"),
)

TIP_RULES: Final[tuple[tuple[tuple[str, ...], str], ...]] = (
    (("홈택스", "국세청"), "자세한 산정 및 신청요건은 국세청 홈택스에서 확인하세요."),
    (("복지로",), "온라인 신청은 복지로(www.bokjiro.go.kr)에서 할 수 있습니다."),
)


@dataclass
class ReformatInput:
    """Everything the reformatter reads, flattened from record + detail."""

    title: str
    description: str = ""
    amount: str | None = None
    conditions_explained: str = ""
    support_target: str = ""
    selection_criteria: str = ""
    support_content: str = ""
    required_documents: list[str] = field(default_factory=list)
    duplicate_warning: str | None = None

    @classmethod
    def from_record(cls, record: BenefitRecord, detail: CrawlDetail | None = None) -> ReformatInput:
        raw = record.raw
        return cls(
            title=record.title,
            description=record.benefit.description,
            amount=record.benefit.amount,
            conditions_explained=record.eligibility.conditions_explained,
            support_target=str(raw.get("지원대상") or ""),
            selection_criteria=str(raw.get("선정기준") or ""),
            support_content=str(raw.get("지원내용") or ""),
            required_documents=list(detail.documents.required) if detail else [],
            duplicate_warning=detail.duplicate_warning if detail else None,
        )


# ---------------------------------------------------------------------------
# Pieces
# ---------------------------------------------------------------------------


def split_lines(text: str) -> list[str]:
    """Non-empty lines with leading bullet markers removed."""
    lines = (_BULLET_PREFIX_RE.sub("", line).strip() for line in _LINE_SPLIT_RE.split(text))
    return [line for line in lines if line]


def build_summary(title: str, description: str, max_length: int = MAX_SUMMARY_LENGTH) -> str:
    source = " ".join(part for part in (title.strip(), description.strip()) if part)
    return (source[:max_length].strip() or EMPTY_SUMMARY)[:max_length]


def parse_benefit_lines(content: str) -> list[BenefitLine]:
    """``label amount원`` pairs from bulleted lines.

    A single bulleted line may carry several pairs, e.g.
    ``○ 국공립 100,000원, 사립 280,000원``.
    """
    found: list[BenefitLine] = []
    for line in _LINE_SPLIT_RE.split(content):
        line = line.strip()
        if not _BENEFIT_BULLET_RE.match(line):
            continue
        rest = _BENEFIT_BULLET_RE.sub("", line, count=1)
        for fragment in _FRAGMENT_SPLIT_RE.split(rest):
            match = _BENEFIT_PAIR_RE.match(fragment.strip())
            if match is None:
                continue
            label = match.group(1).strip()
            unit = (match.group(3) or "").replace(" ", "")
            if label:
                found.append(BenefitLine(label=label, value=f"{match.group(2)}{unit}원"))
            if len(found) >= MAX_BENEFITS:
                return found
    return found


def fallback_benefit(data: ReformatInput) -> BenefitLine:
    value = data.amount or data.description[:FALLBACK_VALUE_LENGTH] or "-"
    return BenefitLine(label=FALLBACK_BENEFIT_LABEL, value=value)


def build_eligibility(data: ReformatInput) -> EligibilitySummary:
    text = data.conditions_explained.strip() or "\n\n".join(
        part for part in (data.support_target, data.selection_criteria) if part
    )
    details = split_lines(text)[:MAX_DETAILS]
    simple = details[0][:MAX_SIMPLE_LENGTH] if details else DEFAULT_SIMPLE
    return EligibilitySummary(simple=simple, details=details)


def document_how(name: str) -> str:
    for keywords, how in DOC_HOW_RULES:
        if any(keyword in name for keyword in keywords):
            return how
    return DEFAULT_DOC_HOW


def keyword_tips(data: ReformatInput) -> list[str]:
    text = " ".join(
        part for part in (data.support_content, data.selection_criteria, data.support_target) if part
    )
    tips = [tip for keywords, tip in TIP_RULES if any(k in text for k in keywords)]
    return tips[:MAX_TIPS]


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def reformat_by_rules(
    data: ReformatInput,
    *,
    summary_max_length: int = MAX_SUMMARY_LENGTH,
) -> EnrichmentRecord:
    """Build the fixed-shape enrichment record for one benefit."""
    benefits = parse_benefit_lines(data.support_content or data.description)
    if not benefits:
        benefits = [fallback_benefit(data)]

    warning = (data.duplicate_warning or "").strip() or None

    return EnrichmentRecord(
        summary=build_summary(data.title, data.description, summary_max_length),
        benefits=benefits,
        eligibility=build_eligibility(data),
        documents=[
            DocumentGuide(name=name, how=document_how(name)) for name in data.required_documents
        ],
        tips=keyword_tips(data),
        warning=warning,
    )
