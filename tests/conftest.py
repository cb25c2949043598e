"""Shared fixtures and factories for the Hyetaek test suite."""

from __future__ import annotations

from typing import Any

import pytest

from src.models import BenefitRecord, ContactInfo, CrawlDetail, CrawlOutcome, SnapshotBatch
from src.services.ingestion.transformer import transform_record
from src.services.storage import BatchStore

FIXED_NOW = "2025-01-01T00:00:00+00:00"


def raw_service(service_id: str = "WF0001", **overrides: Any) -> dict[str, Any]:
    """A raw upstream record shaped like one ``serviceList`` data element."""
    raw: dict[str, Any] = {
        "서비스ID": service_id,
        "서비스명": "청년 월세 지원",
        "서비스목적": "청년의 주거비 부담 완화",
        "신청기한": "2026-03-31",
        "지원내용": "월 최대 20만원, 최대 12개월 지원",
        "선정기준": "만 19~34세, 중위소득 60% 이하, 무주택자",
        "신청방법": "온라인 신청",
        "구비서류": "주민등록등본, 소득증명서",
        "온라인신청사이트URL": "https://www.bokjiro.go.kr",
        "소관기관명": "서울특별시",
        "문의처": "02-120",
        "지원대상": "청년",
        "지원유형": "현금",
        "서비스분야": "주거",
        "수정일시": "20250101000000",
    }
    raw.update(overrides)
    return raw


def make_record(service_id: str = "WF0001", **overrides: Any) -> BenefitRecord:
    return transform_record(raw_service(service_id, **overrides), now=FIXED_NOW)


def make_detail(agency: str = "주민센터", **fields: Any) -> CrawlDetail:
    return CrawlDetail(last_crawled=FIXED_NOW, contact=ContactInfo(agency=agency), **fields)


class FakeFetcher:
    """Detail fetcher returning canned outcomes and recording calls.

    Parameters
    ----------
    failing:
        Page ids that yield an unsuccessful outcome.
    raise_on:
        Page id whose fetch raises, simulating a crashed process.
    """

    def __init__(self, failing: set[str] | None = None, raise_on: str | None = None) -> None:
        self.failing = failing or set()
        self.raise_on = raise_on
        self.calls: list[str] = []

    async def fetch_detail(self, page_id: str) -> CrawlOutcome:
        if page_id == self.raise_on:
            raise RuntimeError(f"crashed on {page_id}")
        self.calls.append(page_id)
        if page_id in self.failing:
            return CrawlOutcome(success=False, page_id=page_id, error="HTTP 500")
        return CrawlOutcome(
            success=True,
            page_id=page_id,
            data=make_detail(agency=f"agency-{page_id}"),
        )


@pytest.fixture
def store(tmp_path) -> BatchStore:
    return BatchStore(tmp_path)


@pytest.fixture
def snapshot_store(store) -> BatchStore:
    """Store holding a three-record snapshot (pages P1, P2, P3)."""
    records = [
        make_record("P1", 수정일시="20250101000000"),
        make_record("P2", 수정일시="20250101000000"),
        make_record("P3", 수정일시="20250101000000"),
    ]
    store.save_snapshot(SnapshotBatch.of(records))
    return store
