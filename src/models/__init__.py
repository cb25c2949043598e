from src.models.batches import (
    BATCH_VERSION,
    CrawlCheckpoint,
    DetailBatch,
    EnrichmentBatch,
    SnapshotBatch,
    TargetFlagsBatch,
)
from src.models.benefit import (
    AgeRange,
    Application,
    BenefitCategory,
    BenefitInfo,
    BenefitRecord,
    BenefitSummary,
    BenefitType,
    DocumentItem,
    Eligibility,
    IncomeCondition,
    Schedule,
    SourceInfo,
)
from src.models.detail import (
    ContactInfo,
    CrawlDetail,
    CrawlOutcome,
    DetailDocuments,
    LegalBasis,
)
from src.models.enrichment import (
    BenefitLine,
    DocumentGuide,
    EligibilitySummary,
    EnrichmentRecord,
    TargetFlags,
)

__all__ = [
    "BATCH_VERSION",
    "AgeRange",
    "Application",
    "BenefitCategory",
    "BenefitInfo",
    "BenefitLine",
    "BenefitRecord",
    "BenefitSummary",
    "BenefitType",
    "ContactInfo",
    "CrawlCheckpoint",
    "CrawlDetail",
    "CrawlOutcome",
    "DetailBatch",
    "DetailDocuments",
    "DocumentGuide",
    "DocumentItem",
    "Eligibility",
    "EligibilitySummary",
    "EnrichmentBatch",
    "EnrichmentRecord",
    "IncomeCondition",
    "LegalBasis",
    "Schedule",
    "SnapshotBatch",
    "SourceInfo",
    "TargetFlags",
    "TargetFlagsBatch",
]
