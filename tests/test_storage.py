"""Tests for whole-file batch persistence."""

from __future__ import annotations

import orjson
import pytest
from conftest import make_detail, make_record

from src.models import (
    CrawlCheckpoint,
    DetailBatch,
    EligibilitySummary,
    EnrichmentBatch,
    EnrichmentRecord,
    SnapshotBatch,
)
from src.services.storage import (
    DETAIL_CHECKPOINT_FILE,
    DETAIL_FILE,
    DETAIL_SAMPLE_FILE,
    ENRICHED_FILE,
    SNAPSHOT_FILE,
    BatchUnavailableError,
)


class TestSnapshotFile:
    def test_missing_snapshot(self, store):
        assert store.load_snapshot() is None
        with pytest.raises(BatchUnavailableError):
            store.require_snapshot()

    def test_save_and_load(self, store):
        store.save_snapshot(SnapshotBatch.of([make_record("A"), make_record("B")]))
        loaded = store.require_snapshot()
        assert loaded.total_count == 2
        assert [r.id for r in loaded.items] == ["benefit_A", "benefit_B"]

    def test_camel_case_keys_on_disk(self, store):
        store.save_snapshot(SnapshotBatch.of([make_record("A")]))
        payload = orjson.loads(store.path(SNAPSHOT_FILE).read_bytes())
        assert set(payload) == {"version", "generatedAt", "totalCount", "items"}
        item = payload["items"][0]
        assert "conditionsExplained" in item["eligibility"]
        assert "apiSource" in item["source"]

    def test_malformed_file_counts_as_absent(self, store):
        store.path(SNAPSHOT_FILE).write_text("{not json", encoding="utf-8")
        assert store.load_snapshot() is None

    def test_wrong_shape_counts_as_absent(self, store):
        store.path(SNAPSHOT_FILE).write_text('{"items": [{"id": 1}]}', encoding="utf-8")
        assert store.load_snapshot() is None

    def test_no_temp_file_left_behind(self, store):
        store.save_snapshot(SnapshotBatch.of([make_record("A")]))
        assert sorted(p.name for p in store.data_dir.iterdir()) == [SNAPSHOT_FILE]


class TestDetailFiles:
    def test_sample_and_full_are_separate(self, store):
        full = DetailBatch(total_count=1, success_count=1, items={"P1": make_detail()})
        sample_path = store.save_details(DetailBatch(), sample=True)
        full_path = store.save_details(full)

        assert sample_path.name == DETAIL_SAMPLE_FILE
        assert full_path.name == DETAIL_FILE
        assert store.load_details().items["P1"].contact.agency == "주민센터"
        assert store.load_details(sample=True).items == {}

    def test_checkpoint_lifecycle(self, store):
        checkpoint = CrawlCheckpoint(last_processed_index=4, failed_ids=["P2"], mode="full")
        store.save_checkpoint(checkpoint)
        assert store.path(DETAIL_CHECKPOINT_FILE).exists()

        loaded = store.load_checkpoint()
        assert loaded.last_processed_index == 4
        assert loaded.failed_ids == ["P2"]

        store.delete_checkpoint()
        assert store.load_checkpoint() is None
        # Deleting twice is harmless.
        store.delete_checkpoint()


class TestEnrichmentFile:
    def test_warning_persisted_as_null(self, store):
        record = EnrichmentRecord(summary="요약", eligibility=EligibilitySummary(simple="누구나"))
        store.save_enrichment(EnrichmentBatch(items={"benefit_A": record}))

        payload = orjson.loads(store.path(ENRICHED_FILE).read_bytes())
        assert payload["items"]["benefit_A"]["warning"] is None
        assert store.load_enrichment().items["benefit_A"].summary == "요약"

    def test_generative_batch_absent(self, store):
        assert store.load_generative_enrichment() is None
