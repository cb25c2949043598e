"""Derived enrichment models: reformatted summaries and target flags."""

from __future__ import annotations

from pydantic import Field

from src.models.benefit import AgeRange, CamelModel


class BenefitLine(CamelModel):
    label: str
    value: str


class EligibilitySummary(CamelModel):
    simple: str
    details: list[str] = Field(default_factory=list)


class DocumentGuide(CamelModel):
    name: str
    how: str | None = None


class EnrichmentRecord(CamelModel):
    """Fixed-shape restatement of a benefit, rule-based or generative."""

    summary: str
    benefits: list[BenefitLine] = Field(default_factory=list)
    eligibility: EligibilitySummary
    documents: list[DocumentGuide] = Field(default_factory=list)
    tips: list[str] = Field(default_factory=list)
    warning: str | None = None

    def to_json_dict(self) -> dict:
        # ``warning`` is persisted as an explicit null.
        return self.model_dump(mode="json", by_alias=True)


class TargetFlags(CamelModel):
    """Narrow-audience markers; only positive signals are set."""

    is_care_leaver_only: bool | None = None
    is_single_parent_only: bool | None = None
    requires_basic_livelihood_or_near_poor: bool | None = None
    requires_student: bool | None = None
    requires_disabled: bool | None = None
    age: AgeRange | None = None

    @property
    def is_empty(self) -> bool:
        return not self.model_dump(exclude_none=True)
