"""Tests for the checkpointed crawl orchestrator."""

from __future__ import annotations

import pytest
from conftest import FakeFetcher, make_detail, make_record

from src.models import CrawlCheckpoint, DetailBatch, SnapshotBatch
from src.services.crawl.orchestrator import (
    SAMPLE_PAGE_IDS,
    CrawlMode,
    CrawlOrchestrator,
    snapshot_candidates,
)
from src.services.storage import BatchStore, BatchUnavailableError

STAMP = "20250101000000"


def _save_previous(store, **items):
    store.save_details(
        DetailBatch(total_count=len(items), success_count=len(items), items=items)
    )


# ---------------------------------------------------------------------------
# Candidates
# ---------------------------------------------------------------------------


class TestSnapshotCandidates:
    def test_order_dedup_and_missing_ids(self):
        snapshot = SnapshotBatch.of(
            [
                make_record("P1"),
                make_record("P2", 수정일시="20250202000000"),
                make_record("P1"),
                make_record("NOID", 서비스ID=""),
            ]
        )
        candidates = snapshot_candidates(snapshot)
        assert [c.page_id for c in candidates] == ["P1", "P2"]
        assert candidates[1].source_modified == "20250202000000"

    def test_limit(self):
        snapshot = SnapshotBatch.of([make_record("P1"), make_record("P2"), make_record("P3")])
        assert [c.page_id for c in snapshot_candidates(snapshot, 2)] == ["P1", "P2"]


# ---------------------------------------------------------------------------
# Sample mode
# ---------------------------------------------------------------------------


class TestSampleMode:
    @pytest.mark.asyncio
    async def test_fetches_fixed_ids_into_sample_file(self, store):
        fetcher = FakeFetcher(failing={SAMPLE_PAGE_IDS[1]})
        result = await CrawlOrchestrator(fetcher, store).run(CrawlMode.SAMPLE)

        assert fetcher.calls == list(SAMPLE_PAGE_IDS)
        assert result.mode == "sample"
        assert result.total_count == len(SAMPLE_PAGE_IDS)
        assert result.success_count == len(SAMPLE_PAGE_IDS) - 1
        assert result.failed_ids == [SAMPLE_PAGE_IDS[1]]

        sample = store.load_details(sample=True)
        assert sample is not None
        assert SAMPLE_PAGE_IDS[1] not in sample.items
        assert store.load_details() is None

    @pytest.mark.asyncio
    async def test_needs_no_snapshot(self, store):
        result = await CrawlOrchestrator(FakeFetcher(), store).run(CrawlMode.SAMPLE)
        assert result.failed_ids == []


# ---------------------------------------------------------------------------
# Full mode
# ---------------------------------------------------------------------------


class TestFullMode:
    @pytest.mark.asyncio
    async def test_missing_snapshot_raises(self, store):
        with pytest.raises(BatchUnavailableError):
            await CrawlOrchestrator(FakeFetcher(), store).run(CrawlMode.FULL)

    @pytest.mark.asyncio
    async def test_fetches_every_candidate(self, snapshot_store):
        fetcher = FakeFetcher()
        result = await CrawlOrchestrator(fetcher, snapshot_store).run(CrawlMode.FULL)

        assert fetcher.calls == ["P1", "P2", "P3"]
        assert result.total_count == 3
        assert result.success_count == 3
        assert result.resumed_from is None

        details = snapshot_store.load_details()
        assert list(details.items) == ["P1", "P2", "P3"]
        assert details.items["P2"].contact.agency == "agency-P2"
        assert details.items["P2"].source_modified == STAMP
        assert snapshot_store.load_checkpoint() is None

    @pytest.mark.asyncio
    async def test_failure_keeps_previous_detail(self, snapshot_store):
        _save_previous(snapshot_store, P2=make_detail(agency="old-P2", source_modified=STAMP))

        result = await CrawlOrchestrator(
            FakeFetcher(failing={"P2"}), snapshot_store
        ).run(CrawlMode.FULL)

        assert result.failed_ids == ["P2"]
        assert result.success_count == 2
        details = snapshot_store.load_details()
        assert details.failed_ids == ["P2"]
        assert details.items["P2"].contact.agency == "old-P2"

    @pytest.mark.asyncio
    async def test_failure_without_previous_detail(self, snapshot_store):
        await CrawlOrchestrator(FakeFetcher(failing={"P3"}), snapshot_store).run(CrawlMode.FULL)
        assert "P3" not in snapshot_store.load_details().items

    @pytest.mark.asyncio
    async def test_pages_gone_from_snapshot_are_dropped(self, snapshot_store):
        _save_previous(snapshot_store, OLD=make_detail(agency="gone"))
        await CrawlOrchestrator(FakeFetcher(), snapshot_store).run(CrawlMode.FULL)
        assert "OLD" not in snapshot_store.load_details().items

    @pytest.mark.asyncio
    async def test_limit(self, snapshot_store):
        fetcher = FakeFetcher()
        result = await CrawlOrchestrator(fetcher, snapshot_store).run(CrawlMode.FULL, limit=2)
        assert fetcher.calls == ["P1", "P2"]
        assert result.total_count == 2
        assert list(snapshot_store.load_details().items) == ["P1", "P2"]

    @pytest.mark.asyncio
    async def test_limit_keeps_details_past_the_limit(self, snapshot_store):
        _save_previous(
            snapshot_store,
            P1=make_detail(agency="a1"),
            P2=make_detail(agency="a2"),
            P3=make_detail(agency="a3"),
        )
        fetcher = FakeFetcher()
        await CrawlOrchestrator(fetcher, snapshot_store).run(CrawlMode.FULL, limit=1)

        assert fetcher.calls == ["P1"]
        items = snapshot_store.load_details().items
        assert list(items) == ["P1", "P2", "P3"]
        assert items["P1"].contact.agency == "agency-P1"
        assert items["P3"].contact.agency == "a3"


# ---------------------------------------------------------------------------
# Incremental mode
# ---------------------------------------------------------------------------


class TestIncrementalMode:
    @pytest.mark.asyncio
    async def test_unstamped_details_are_backfilled_not_refetched(self, snapshot_store):
        _save_previous(
            snapshot_store,
            P1=make_detail(agency="a1"),
            P2=make_detail(agency="a2"),
            P3=make_detail(agency="a3"),
        )
        fetcher = FakeFetcher()
        result = await CrawlOrchestrator(fetcher, snapshot_store).run(CrawlMode.INCREMENTAL)

        assert fetcher.calls == []
        assert result.skipped == 3
        details = snapshot_store.load_details()
        assert details.items["P1"].contact.agency == "a1"
        assert all(d.source_modified == STAMP for d in details.items.values())

    @pytest.mark.asyncio
    async def test_only_changed_stamp_is_refetched(self, store):
        store.save_snapshot(
            SnapshotBatch.of(
                [
                    make_record("P1", 수정일시=STAMP),
                    make_record("P2", 수정일시="20250505000000"),
                    make_record("P3", 수정일시=STAMP),
                ]
            )
        )
        _save_previous(
            store,
            P1=make_detail(agency="a1", source_modified=STAMP),
            P2=make_detail(agency="a2", source_modified=STAMP),
            P3=make_detail(agency="a3", source_modified=STAMP),
        )
        fetcher = FakeFetcher()
        result = await CrawlOrchestrator(fetcher, store).run(CrawlMode.INCREMENTAL)

        assert fetcher.calls == ["P2"]
        assert result.fetched == 1
        assert result.skipped == 2
        details = store.load_details()
        assert details.items["P2"].contact.agency == "agency-P2"
        assert details.items["P2"].source_modified == "20250505000000"
        assert details.items["P1"].contact.agency == "a1"

    @pytest.mark.asyncio
    async def test_new_page_is_fetched(self, snapshot_store):
        _save_previous(
            snapshot_store,
            P1=make_detail(source_modified=STAMP),
            P2=make_detail(source_modified=STAMP),
        )
        fetcher = FakeFetcher()
        await CrawlOrchestrator(fetcher, snapshot_store).run(CrawlMode.INCREMENTAL)
        assert fetcher.calls == ["P3"]

    @pytest.mark.asyncio
    async def test_missing_current_stamp_reuses_detail(self, store):
        store.save_snapshot(SnapshotBatch.of([make_record("P1", 수정일시="")]))
        _save_previous(store, P1=make_detail(agency="kept", source_modified=STAMP))
        fetcher = FakeFetcher()
        await CrawlOrchestrator(fetcher, store).run(CrawlMode.INCREMENTAL)
        assert fetcher.calls == []
        assert store.load_details().items["P1"].contact.agency == "kept"


# ---------------------------------------------------------------------------
# Checkpoints
# ---------------------------------------------------------------------------


class TestCheckpointResume:
    @pytest.mark.asyncio
    async def test_crash_then_resume(self, snapshot_store):
        crashing = FakeFetcher(raise_on="P3")
        with pytest.raises(RuntimeError):
            await CrawlOrchestrator(crashing, snapshot_store, checkpoint_every=1).run(
                CrawlMode.FULL
            )

        checkpoint = snapshot_store.load_checkpoint()
        assert checkpoint is not None
        assert checkpoint.last_processed_index == 1
        assert list(checkpoint.items) == ["P1", "P2"]
        assert snapshot_store.load_details() is None

        fetcher = FakeFetcher()
        result = await CrawlOrchestrator(fetcher, snapshot_store, checkpoint_every=1).run(
            CrawlMode.FULL
        )

        assert fetcher.calls == ["P3"]
        assert result.resumed_from == 1
        assert result.success_count == 3
        assert list(snapshot_store.load_details().items) == ["P1", "P2", "P3"]
        assert snapshot_store.load_checkpoint() is None

    @pytest.mark.asyncio
    async def test_resume_reaches_uninterrupted_counts(self, snapshot_store, tmp_path):
        uninterrupted_store = BatchStore(tmp_path / "uninterrupted")
        uninterrupted_store.save_snapshot(snapshot_store.require_snapshot())
        expected = await CrawlOrchestrator(
            FakeFetcher(failing={"P2"}), uninterrupted_store, checkpoint_every=1
        ).run(CrawlMode.FULL)

        crashing = FakeFetcher(failing={"P2"}, raise_on="P3")
        with pytest.raises(RuntimeError):
            await CrawlOrchestrator(crashing, snapshot_store, checkpoint_every=1).run(
                CrawlMode.FULL
            )
        assert snapshot_store.load_checkpoint().failed_ids == ["P2"]

        fetcher = FakeFetcher(failing={"P2"})
        result = await CrawlOrchestrator(fetcher, snapshot_store, checkpoint_every=1).run(
            CrawlMode.FULL
        )

        assert fetcher.calls == ["P3"]
        assert result.failed_ids == expected.failed_ids == ["P2"]
        assert result.success_count == expected.success_count == 2
        assert result.total_count == expected.total_count
        assert list(snapshot_store.load_details().items) == list(
            uninterrupted_store.load_details().items
        )

    @pytest.mark.asyncio
    async def test_checkpoint_from_other_mode_is_discarded(self, snapshot_store):
        snapshot_store.save_checkpoint(
            CrawlCheckpoint(last_processed_index=1, mode="incremental", candidate_count=3)
        )
        fetcher = FakeFetcher()
        result = await CrawlOrchestrator(fetcher, snapshot_store).run(CrawlMode.FULL)

        assert fetcher.calls == ["P1", "P2", "P3"]
        assert result.resumed_from is None

    @pytest.mark.asyncio
    async def test_checkpoint_with_other_candidate_count_is_discarded(self, snapshot_store):
        snapshot_store.save_checkpoint(
            CrawlCheckpoint(last_processed_index=1, mode="full", candidate_count=10)
        )
        fetcher = FakeFetcher()
        await CrawlOrchestrator(fetcher, snapshot_store).run(CrawlMode.FULL)
        assert fetcher.calls == ["P1", "P2", "P3"]

    @pytest.mark.asyncio
    async def test_checkpoint_written_every_n(self, snapshot_store):
        saved: list[int] = []
        original = snapshot_store.save_checkpoint

        def spy(checkpoint):
            saved.append(checkpoint.last_processed_index)
            original(checkpoint)

        snapshot_store.save_checkpoint = spy
        await CrawlOrchestrator(FakeFetcher(), snapshot_store, checkpoint_every=2).run(
            CrawlMode.FULL
        )
        assert saved == [1]
