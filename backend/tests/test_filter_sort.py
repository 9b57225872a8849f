"""Tests for FilterSortPipeline: validation, predicates, sorting and pagination."""

from datetime import datetime, timedelta, timezone

import pytest

from models.schemas.ranking import MatchFilters, MatchItem, ScoreRange, SortCriteria, TextSearch
from services.exceptions import ValidationError
from services.filter_sort import FilterSortPipeline, filter_options, sort_options

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


def cand(item_id, **fields):
    return MatchItem(item_id=item_id, item_type="candidate", **fields)


def job(item_id, **fields):
    return MatchItem(item_id=item_id, item_type="job", **fields)


@pytest.fixture
def pipeline():
    return FilterSortPipeline()


def kept(pipeline, items, **filters):
    return [i.item_id for i in pipeline.apply_filters(items, MatchFilters(**filters), now=NOW)]


class TestValidation:
    @pytest.mark.parametrize("filters", [
        {"min_years_experience": 5, "max_years_experience": 2},
        {"min_salary": 90000, "max_salary": 50000},
        {"min_score": 150},
        {"min_response_rate": 1.5},
        {"min_company_rating": 6},
        {"work_type": "gig"},
        {"experience_level": "wizard"},
        {"skills_match_type": "most"},
        {"skills": [" "]},
        {"company_size": []},
        {"company_size": ["galactic"]},
        {"location": "  "},
        {"posted_within_days": -1},
        {"score_range": {"min": 80, "max": 20}},
        {"text_search": {"query": "x", "fields": ["salary"]}},
    ])
    def test_rejected(self, pipeline, filters):
        with pytest.raises(ValidationError):
            pipeline.apply_filters([], MatchFilters(**filters))

    @pytest.mark.parametrize("sort", [
        SortCriteria(order="sideways"),
        SortCriteria(page=0),
        SortCriteria(limit=0),
    ])
    def test_bad_sort(self, pipeline, sort):
        with pytest.raises(ValidationError):
            pipeline.filter_and_sort([], sort=sort)


class TestPredicates:
    def test_skills_any_and_all(self, pipeline):
        items = [cand("a", skills=["Python", "Docker"]), cand("b", skills=["Python"]), cand("c", skills=["Java"])]
        assert kept(pipeline, items, skills=["python", "docker"]) == ["a", "b"]
        assert kept(pipeline, items, skills=["python", "docker"], skills_match_type="all") == ["a"]

    def test_location_substring(self, pipeline):
        items = [cand("a", location="Berlin, Germany"), cand("b", location="Paris, France"), cand("c")]
        assert kept(pipeline, items, location="germany") == ["a"]

    def test_candidate_only_filter_passes_jobs(self, pipeline):
        items = [cand("a", years_experience=6), cand("b", years_experience=2), job("j")]
        assert kept(pipeline, items, min_years_experience=5) == ["a", "j"]

    def test_missing_attribute_excludes(self, pipeline):
        items = [cand("a", response_rate=0.9), cand("b")]
        assert kept(pipeline, items, min_response_rate=0.5) == ["a"]

    def test_booleans(self, pipeline):
        items = [cand("a", remote=True), cand("b", remote=False), cand("c")]
        assert kept(pipeline, items, remote=False) == ["b"]

    def test_recent_activity(self, pipeline):
        items = [cand("a", last_active=NOW - timedelta(days=3)), cand("b", last_active=NOW - timedelta(days=40))]
        assert kept(pipeline, items, recent_activity_days=7) == ["a"]

    def test_naive_timestamps_are_utc(self, pipeline):
        items = [cand("a", last_active=datetime(2024, 5, 30))]
        assert kept(pipeline, items, recent_activity_days=7) == ["a"]

    def test_salary(self, pipeline):
        items = [job("a", min_salary=80000, max_salary=100000), job("b", min_salary=50000), job("c")]
        assert kept(pipeline, items, min_salary=60000) == ["a"]
        assert kept(pipeline, items, max_salary=90000) == ["b"]

    def test_company_size_label_or_headcount(self, pipeline):
        items = [job("a", company_size="startup"), job("b", company_employees=30), job("c", company_employees=5000)]
        assert kept(pipeline, items, company_size=["startup", "small"]) == ["a", "b"]
        assert kept(pipeline, items, company_size=["enterprise"]) == ["c"]

    def test_posting_age_and_deadline(self, pipeline):
        items = [
            job("fresh", posted_at=NOW - timedelta(days=2)),
            job("stale", posted_at=NOW - timedelta(days=60)),
            job("closed", posted_at=NOW, application_deadline=NOW - timedelta(days=1)),
        ]
        assert kept(pipeline, items, posted_within_days=30) == ["fresh", "closed"]
        assert kept(pipeline, items, active_only=True) == ["fresh", "stale"]

    def test_score_range(self, pipeline):
        items = [cand("a", overall_score=55.0), cand("b", overall_score=85.0)]
        assert kept(pipeline, items, score_range=ScoreRange(min=50, max=60)) == ["a"]

    def test_text_search(self, pipeline):
        items = [cand("a", title="Data Engineer"), cand("b", skills=["dataframes"]), cand("c", title="Chef")]
        assert kept(pipeline, items, text_search=TextSearch(query="data")) == ["a", "b"]
        assert kept(pipeline, items, text_search=TextSearch(query="data", fields=["title"])) == ["a"]

    def test_filtering_is_idempotent(self, pipeline):
        items = [
            cand("a", skills=["Python"], remote=True, overall_score=80.0, last_active=NOW - timedelta(days=1)),
            cand("b", skills=["Java"], remote=True, overall_score=90.0),
            cand("c", skills=["Python", "Go"], remote=False, overall_score=70.0),
            job("j", min_salary=90000, skills=["Python"], overall_score=60.0),
        ]
        filters = MatchFilters(skills=["python"], min_score=50, min_salary=80000)
        once = pipeline.apply_filters(items, filters, now=NOW)
        twice = pipeline.apply_filters(once, filters, now=NOW)
        assert [i.item_id for i in once] == ["a", "c", "j"]
        assert twice == once

    def test_no_filters(self, pipeline):
        items = [cand("a"), cand("b")]
        assert pipeline.apply_filters(items, None) == items


class TestSortAndPaginate:
    def test_missing_values_last(self, pipeline):
        items = [cand("a", response_rate=0.2), cand("b"), cand("c", response_rate=0.9)]
        desc = pipeline.filter_and_sort(items, sort=SortCriteria(field="response_rate", order="desc"))
        asc = pipeline.filter_and_sort(items, sort=SortCriteria(field="response_rate", order="asc"))
        assert [i.item_id for i in desc.items] == ["c", "a", "b"]
        assert [i.item_id for i in asc.items] == ["a", "c", "b"]

    def test_stable_for_equal_keys(self, pipeline):
        items = [cand(str(i), overall_score=50.0) for i in range(5)]
        result = pipeline.filter_and_sort(items)
        assert [i.item_id for i in result.items] == ["0", "1", "2", "3", "4"]

    def test_unknown_field_uses_overall(self, pipeline):
        items = [cand("a", overall_score=10.0), cand("b", overall_score=20.0)]
        result = pipeline.filter_and_sort(items, sort=SortCriteria(field="vibes"))
        assert [i.item_id for i in result.items] == ["b", "a"]

    def test_breakdown_sort_key(self, pipeline):
        items = [cand("a", score_breakdown={"skills_match": 40.0}), cand("b", score_breakdown={"skills_match": 90.0})]
        result = pipeline.filter_and_sort(items, sort=SortCriteria(field="skills_match"))
        assert [i.item_id for i in result.items] == ["b", "a"]

    def test_pagination(self, pipeline):
        items = [cand(f"c{i:02d}", overall_score=float(100 - i)) for i in range(45)]
        page3 = pipeline.filter_and_sort(items, sort=SortCriteria(page=3, limit=20))
        assert [i.item_id for i in page3.items] == ["c40", "c41", "c42", "c43", "c44"]
        assert page3.total_items == 45
        assert page3.total_pages == 3
        beyond = pipeline.filter_and_sort(items, sort=SortCriteria(page=4, limit=20))
        assert beyond.items == []
        assert beyond.total_pages == 3

    def test_pages_reassemble_sorted_set(self, pipeline):
        items = [cand(f"c{i:02d}", overall_score=float((i * 37) % 50)) for i in range(45)]
        full = pipeline.filter_and_sort(items, sort=SortCriteria(limit=100))
        pages = []
        for page in range(1, full.total_pages + 1):
            pages += pipeline.filter_and_sort(items, sort=SortCriteria(page=page, limit=100)).items
        assert pages == full.items

        first = pipeline.filter_and_sort(items, sort=SortCriteria(limit=7))
        collected = []
        for page in range(1, first.total_pages + 1):
            collected += pipeline.filter_and_sort(items, sort=SortCriteria(page=page, limit=7)).items
        assert [i.item_id for i in collected] == [i.item_id for i in full.items]
        assert len({i.item_id for i in collected}) == 45

    def test_empty(self, pipeline):
        result = pipeline.filter_and_sort([])
        assert result.total_pages == 0
        assert result.items == []

    def test_filters_applied(self, pipeline):
        result = pipeline.filter_and_sort([cand("a", remote=True)], MatchFilters(remote=True, min_score=0))
        assert result.filters_applied == ["remote", "min_score"]


def test_option_listings():
    assert "full-time" in filter_options()["work_type"]
    assert filter_options()["company_size"][0] == "startup"
    assert sort_options()["order"] == ["asc", "desc"]
    assert "ranking_score" in sort_options()["field"]
