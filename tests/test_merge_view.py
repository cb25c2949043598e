"""Tests for the merged, read-only benefit catalog."""

from __future__ import annotations

import pytest
from conftest import make_detail, make_record

from src.models import (
    BenefitCategory,
    DetailBatch,
    EligibilitySummary,
    EnrichmentBatch,
    EnrichmentRecord,
    SnapshotBatch,
    TargetFlags,
    TargetFlagsBatch,
)
from src.services.merge_view import BenefitCatalog, backfill_region
from src.services.storage import AI_FILE, write_json


def _enrichment(summary: str) -> EnrichmentRecord:
    return EnrichmentRecord(summary=summary, eligibility=EligibilitySummary(simple="누구나"))


@pytest.fixture
def catalog_store(store):
    store.save_snapshot(
        SnapshotBatch.of(
            [
                make_record("P1"),
                make_record("P2", 서비스명="노인 돌봄", 서비스분야="보건·의료", 지원대상="어르신"),
                make_record("P3", 서비스명="아동 수당", 서비스분야="보육"),
            ]
        )
    )
    return store


class TestBackfillRegion:
    def test_existing_region_untouched(self):
        record = make_record("A")
        assert backfill_region(record) is record

    def test_region_from_title(self):
        record = make_record("A", 선정기준="", 지원대상="", 소관기관명="", 서비스명="제목")
        record = record.model_copy(
            update={
                "title": "부산광역시 청년 지원",
                "eligibility": record.eligibility.model_copy(update={"region": None}),
            }
        )
        filled = backfill_region(record)
        assert filled.eligibility.region == ["부산"]
        assert record.eligibility.region is None


class TestGetView:
    def test_canonical_only(self, catalog_store):
        view = BenefitCatalog(catalog_store).get_view("benefit_P1")

        assert view is not None
        assert view.detail is None
        assert view.enrichment is None
        assert view.enrichment_source is None
        assert view.targets is None
        payload = view.to_dict()
        assert payload["id"] == "benefit_P1"
        assert "detail" not in payload
        assert "ai" not in payload
        assert "targets" not in payload

    def test_unknown_id(self, catalog_store):
        assert BenefitCatalog(catalog_store).get_view("benefit_nope") is None

    def test_all_layers(self, catalog_store):
        catalog_store.save_details(
            DetailBatch(items={"P1": make_detail(agency="주민센터", source_modified="x")})
        )
        catalog_store.save_enrichment(EnrichmentBatch(items={"benefit_P1": _enrichment("규칙")}))
        catalog_store.save_targets(
            TargetFlagsBatch(items={"benefit_P1": TargetFlags(requires_student=True)})
        )

        payload = BenefitCatalog(catalog_store).get_view("benefit_P1").to_dict()

        assert payload["detail"]["contact"]["agency"] == "주민센터"
        assert "sourceModified" not in payload["detail"]
        assert payload["ai"]["summary"] == "규칙"
        assert payload["aiSource"] == "rules"
        assert payload["targets"] == {"requiresStudent": True}

    def test_generative_enrichment_takes_precedence(self, catalog_store):
        catalog_store.save_enrichment(
            EnrichmentBatch(
                items={"benefit_P1": _enrichment("규칙"), "benefit_P2": _enrichment("규칙2")}
            )
        )
        write_json(
            catalog_store.path(AI_FILE),
            EnrichmentBatch(items={"benefit_P1": _enrichment("생성")}).to_json_dict(),
        )
        catalog = BenefitCatalog(catalog_store)

        first = catalog.get_view("benefit_P1")
        assert first.enrichment.summary == "생성"
        assert first.enrichment_source == "generative"
        second = catalog.get_view("benefit_P2")
        assert second.enrichment.summary == "규칙2"
        assert second.enrichment_source == "rules"

    def test_detail_keyed_by_page_id(self, catalog_store):
        # Keyed by the record id instead of the upstream page id: no match.
        catalog_store.save_details(DetailBatch(items={"benefit_P1": make_detail()}))
        assert BenefitCatalog(catalog_store).get_view("benefit_P1").detail is None

    def test_malformed_layer_is_absent(self, catalog_store):
        catalog_store.path("benefit-targets.json").write_text("[]", encoding="utf-8")
        view = BenefitCatalog(catalog_store).get_view("benefit_P1")
        assert view is not None
        assert view.targets is None


class TestListRecords:
    def test_snapshot_order(self, catalog_store):
        ids = [r.id for r in BenefitCatalog(catalog_store).list_records()]
        assert ids == ["benefit_P1", "benefit_P2", "benefit_P3"]

    def test_category_filter(self, catalog_store):
        records = BenefitCatalog(catalog_store).list_records(category=BenefitCategory.HEALTH)
        assert [r.id for r in records] == ["benefit_P2"]

    def test_query_matches_title_and_tags(self, catalog_store):
        catalog = BenefitCatalog(catalog_store)
        assert [r.id for r in catalog.list_records(query="돌봄")] == ["benefit_P2"]
        assert [r.id for r in catalog.list_records(query="어르신")] == ["benefit_P2"]

    def test_hidden_ids(self, catalog_store):
        catalog = BenefitCatalog(catalog_store, hidden_ids=["benefit_P2"])
        assert [r.id for r in catalog.list_records()] == ["benefit_P1", "benefit_P3"]
        assert catalog.get_view("benefit_P2") is not None

    def test_empty_store(self, store):
        catalog = BenefitCatalog(store)
        assert catalog.list_records() == []
        assert catalog.snapshot_info() is None


class TestReload:
    def test_reload_picks_up_new_batches(self, catalog_store):
        catalog = BenefitCatalog(catalog_store)
        assert catalog.get_view("benefit_P1").enrichment is None

        catalog_store.save_enrichment(EnrichmentBatch(items={"benefit_P1": _enrichment("새")}))
        assert catalog.get_view("benefit_P1").enrichment is None

        catalog.reload()
        assert catalog.get_view("benefit_P1").enrichment.summary == "새"

    def test_snapshot_info(self, catalog_store):
        info = BenefitCatalog(catalog_store).snapshot_info()
        assert info["totalCount"] == 3
        assert info["version"] == "1.0.0"
