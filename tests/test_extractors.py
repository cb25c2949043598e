"""Tests for the free-text field extractors."""

from __future__ import annotations

import pytest

from src.models import BenefitType
from src.services.ingestion.extractors import (
    classify_benefit_type,
    extract_age,
    extract_amount,
    extract_documents,
    extract_duration,
    extract_income,
    extract_methods,
    extract_record_regions,
    extract_regions,
    extract_schedule,
    normalize_provinces,
)


# ---------------------------------------------------------------------------
# Age
# ---------------------------------------------------------------------------


class TestExtractAge:
    def test_range_with_man_prefix(self):
        age = extract_age("만 19~34세, 중위소득 60% 이하")
        assert age is not None
        assert (age.min, age.max) == (19, 34)

    def test_minimum_only(self):
        age = extract_age("65세 이상 어르신")
        assert age is not None
        assert age.min == 65
        assert age.max is None

    def test_maximum_only(self):
        age = extract_age("18세 이하 아동")
        assert age is not None
        assert age.min is None
        assert age.max == 18

    def test_inverted_range_is_reordered(self):
        age = extract_age("34~19세")
        assert age is not None
        assert (age.min, age.max) == (19, 34)

    def test_youth_keyword_defaults(self):
        age = extract_age("청년 누구나")
        assert age is not None
        assert (age.min, age.max) == (19, 34)

    def test_youth_with_explicit_range(self):
        age = extract_age("청년(만 19~39)")
        assert age is not None
        assert (age.min, age.max) == (19, 39)

    def test_youth_range_is_reordered(self):
        age = extract_age("청년 (주민등록 기준 만 39-19)")
        assert age is not None
        assert (age.min, age.max) == (19, 39)

    def test_digits_inside_longer_numbers_are_not_ages(self):
        assert extract_age("20251~30세") is None

    def test_values_are_clamped(self):
        age = extract_age("150세 이상")
        assert age is not None
        assert age.min == 99

    @pytest.mark.parametrize("text", [None, "", "무주택자"])
    def test_no_signal_is_no_restriction(self, text):
        assert extract_age(text) is None


# ---------------------------------------------------------------------------
# Income
# ---------------------------------------------------------------------------


class TestExtractIncome:
    def test_median_percent(self):
        income = extract_income("중위소득 60% 이하")
        assert income is not None
        assert income.type == "median"
        assert income.percent == 60

    def test_other_income_wording_is_ignored(self):
        assert extract_income("소득 무관") is None
        assert extract_income(None) is None


# ---------------------------------------------------------------------------
# Region
# ---------------------------------------------------------------------------


class TestExtractRegions:
    def test_normalize_long_forms(self):
        assert normalize_provinces("강원특별자치도 춘천") == "강원 춘천"
        assert normalize_provinces("경상북도") == "경북"

    def test_province_and_district(self):
        assert extract_regions("서울특별시 강남구 거주자") == ["서울", "강남구"]

    def test_city_in_province(self):
        assert extract_regions("경상북도 포항시 소재") == ["경북", "포항시"]

    def test_duplicates_removed(self):
        assert extract_regions("서울 서울특별시") == ["서울"]

    @pytest.mark.parametrize("text", [None, "", "   ", "전국 누구나"])
    def test_nothing_found(self, text):
        assert extract_regions(text) is None

    def test_record_regions_prefer_eligibility_text(self):
        assert extract_record_regions("부산광역시 거주", "서울특별시", "지원") == ["부산"]

    def test_record_regions_fall_back_to_agency_and_title(self):
        assert extract_record_regions("무주택자", "부산광역시", "청년 지원") == ["부산"]

    def test_record_regions_absent(self):
        assert extract_record_regions("무주택자", "고용노동부", "청년 지원") is None


# ---------------------------------------------------------------------------
# Benefit amount / duration / type
# ---------------------------------------------------------------------------


class TestBenefitExtraction:
    def test_amount(self):
        assert extract_amount("월 최대 20만원, 최대 12개월 지원") == "월 최대 20만원"

    def test_amount_with_commas(self):
        assert extract_amount("2년 후 1,600만원 목돈 마련") == "1,600만원"

    def test_amount_missing(self):
        assert extract_amount("상담 서비스 제공") is None

    def test_duration(self):
        assert extract_duration("월 최대 20만원, 최대 12개월 지원") == "최대 12개월"

    def test_duration_missing(self):
        assert extract_duration(None) is None

    @pytest.mark.parametrize(
        ("support_type", "content", "expected"),
        [
            ("현금", "", BenefitType.MONEY),
            ("감면", "", BenefitType.DISCOUNT),
            ("바우처", "", BenefitType.SERVICE),
            ("", "월 10만원 지급", BenefitType.MONEY),
            ("", "상담 제공", BenefitType.OTHER),
            (None, None, BenefitType.OTHER),
        ],
    )
    def test_classify_benefit_type(self, support_type, content, expected):
        assert classify_benefit_type(support_type, content) == expected


# ---------------------------------------------------------------------------
# Documents / methods / schedule
# ---------------------------------------------------------------------------


class TestDocumentsMethodsSchedule:
    def test_documents_split(self):
        docs = extract_documents("주민등록등본, 소득증명서\n통장사본")
        assert [d.name for d in docs] == ["주민등록등본", "소득증명서", "통장사본"]
        assert all(d.required for d in docs)

    def test_documents_empty(self):
        assert extract_documents(None) == []

    def test_methods(self):
        assert extract_methods("온라인 신청 또는 방문 신청") == ["온라인", "방문"]

    def test_methods_default(self):
        assert extract_methods(None) == ["기타"]
        assert extract_methods("전화 신청") == ["기타"]

    def test_schedule_iso_date(self):
        schedule = extract_schedule("2026-03-31")
        assert schedule.type == "period"
        assert schedule.end == "2026-03-31"

    def test_schedule_dotted_date(self):
        schedule = extract_schedule("2026. 3. 5. 까지")
        assert schedule.type == "period"
        assert schedule.end == "2026-03-05"

    def test_schedule_always_open(self):
        schedule = extract_schedule("상시")
        assert schedule.type == "always"
        assert schedule.end is None
        assert schedule.note is None

    def test_schedule_unparseable_kept_as_note(self):
        schedule = extract_schedule("예산 소진 시까지")
        assert schedule.type == "always"
        assert schedule.note == "예산 소진 시까지"
