"""Canonical benefit record models.

One :class:`BenefitRecord` exists per upstream service identifier.  The
eligibility sub-fields (age, income, region) are *derived* from free text:
a missing value means "no restriction", never "unknown".
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model persisted with camelCase keys (``generatedAt``, ...)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class BenefitCategory(StrEnum):
    __slots__ = ()

    HOUSING = "housing"
    JOB = "job"
    EDUCATION = "education"
    CHILDCARE = "childcare"
    HEALTH = "health"
    CULTURE = "culture"
    FINANCE = "finance"
    OTHER = "other"


class BenefitType(StrEnum):
    __slots__ = ()

    MONEY = "money"
    SERVICE = "service"
    DISCOUNT = "discount"
    OTHER = "other"


class AgeRange(CamelModel):
    min: int | None = None
    max: int | None = None


class IncomeCondition(CamelModel):
    type: Literal["median"] = "median"
    percent: int


class Eligibility(CamelModel):
    age: AgeRange | None = None
    income: IncomeCondition | None = None
    region: list[str] | None = None
    conditions: list[str] = Field(default_factory=list)
    conditions_explained: str = ""


class BenefitInfo(CamelModel):
    type: BenefitType = BenefitType.OTHER
    amount: str | None = None
    duration: str | None = None
    description: str = ""


class DocumentItem(CamelModel):
    name: str
    required: bool = True


class Schedule(CamelModel):
    type: Literal["always", "period"] = "always"
    end: str | None = None  # ISO date (YYYY-MM-DD)
    note: str | None = None


class Application(CamelModel):
    method: list[str] = Field(default_factory=list)
    url: str
    contact: str | None = None
    receiving_agency: str | None = None


class SourceInfo(CamelModel):
    name: str = ""
    url: str = ""
    api_source: str
    last_sync: str


class BenefitSummary(CamelModel):
    one_liner: str = ""
    description: str = ""
    ai_generated: bool = False
    generated_at: str | None = None


class BenefitRecord(CamelModel):
    id: str
    title: str
    category: BenefitCategory = BenefitCategory.OTHER
    tags: list[str] = Field(default_factory=list)
    summary: BenefitSummary = Field(default_factory=BenefitSummary)
    eligibility: Eligibility = Field(default_factory=Eligibility)
    benefit: BenefitInfo = Field(default_factory=BenefitInfo)
    documents: list[DocumentItem] = Field(default_factory=list)
    schedule: Schedule = Field(default_factory=Schedule)
    application: Application
    warnings: list[str] = Field(default_factory=list)
    source: SourceInfo
    raw: dict[str, Any] = Field(default_factory=dict)

    @property
    def page_id(self) -> str | None:
        """Upstream detail-page identifier carried in the raw payload."""
        value = self.raw.get("서비스ID")
        return str(value) if value else None

    @property
    def source_modified(self) -> str | None:
        """Upstream "last modified" stamp, compared as an opaque token."""
        value = self.raw.get("수정일시")
        return str(value) if value else None
