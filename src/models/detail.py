"""Crawl detail models.

Details are keyed by the upstream page identifier (``서비스ID``), which is
distinct from the :class:`~src.models.benefit.BenefitRecord` identifier.
"""

from __future__ import annotations

from pydantic import Field

from src.models.benefit import CamelModel


class DetailDocuments(CamelModel):
    required: list[str] = Field(default_factory=list)
    optional: list[str] = Field(default_factory=list)


class LegalBasis(CamelModel):
    name: str
    article: str


class ContactInfo(CamelModel):
    agency: str = ""
    phone: list[str] = Field(default_factory=list)


class CrawlDetail(CamelModel):
    documents: DetailDocuments = Field(default_factory=DetailDocuments)
    duplicate_warning: str | None = None
    legal_basis: list[LegalBasis] = Field(default_factory=list)
    contact: ContactInfo = Field(default_factory=ContactInfo)
    last_crawled: str
    # Stamp of the snapshot record this detail was crawled against.
    # Used for incremental crawling only; never exposed to consumers.
    source_modified: str | None = None


class CrawlOutcome(CamelModel):
    """Result of fetching a single detail page."""

    success: bool
    page_id: str
    data: CrawlDetail | None = None
    error: str | None = None
