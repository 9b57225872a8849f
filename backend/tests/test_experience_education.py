"""Tests for the experience and education factors."""

from datetime import date

import pytest

from conftest import make_candidate, make_job
from config import settings
from models.schemas.profiles import Education, EducationRequirement, ExperienceRequirement, WorkExperience
from services.matching import registry
from services.matching.education_matcher import EducationMatcher, education_tier, recency_score
from services.matching.experience_matcher import (
    ExperienceMatcher,
    duration_years,
    infer_level,
    level_adjacency,
    level_from_title,
)
from services.text_similarity import FuzzyTokenSimilarity, JaccardWordSimilarity

AS_OF = date(2024, 6, 1)


class TestLevels:
    @pytest.mark.parametrize("title,level", [
        ("Senior Engineering Manager", "manager"),
        ("VP of Engineering", "executive"),
        ("Head of Data", "director"),
        ("Sr. Developer", "senior"),
        ("Tech Lead", "lead"),
        ("Junior Analyst", "junior"),
        ("Software Intern", "entry"),
        ("Developer", None),
    ])
    def test_level_from_title(self, title, level):
        assert level_from_title(title) == level

    def test_keywords_need_word_boundaries(self):
        # "head" inside "Headless" and "lead" inside "Leader" are not levels
        assert level_from_title("Headless CMS Developer") is None

    def test_infer_level_falls_back_to_duration(self):
        entry = WorkExperience(position="Developer", start_date=date(2020, 1, 1))
        assert infer_level(entry, 0.5) == "entry"
        assert infer_level(entry, 4) == "mid"
        assert infer_level(entry, 10) == "lead"
        assert infer_level(entry, 25) == "executive"

    def test_level_adjacency(self):
        assert level_adjacency("senior", "senior") == 1.0
        assert level_adjacency("mid", "senior") == pytest.approx(0.8)
        assert level_adjacency("entry", "executive") == pytest.approx(0.2)
        assert level_adjacency(None, "senior") == 0.5

    def test_duration_counts_whole_months(self):
        entry = WorkExperience(position="Dev", start_date=date(2020, 1, 15), end_date=date(2021, 1, 10))
        assert duration_years(entry, AS_OF) == pytest.approx(1.0)

    def test_current_role_runs_to_as_of(self):
        entry = WorkExperience(position="Dev", start_date=date(2019, 6, 1), is_current=True)
        assert duration_years(entry, AS_OF) == pytest.approx(5.0)


class TestExperienceMatcher:
    def test_best_entry_wins(self, candidate, job):
        matcher = ExperienceMatcher()
        result = matcher.match(candidate, job, as_of=AS_OF)
        # Senior entry: title 2/3 x 0.4 + level 1.0 x 0.3 + duration 1.0 x 0.3
        assert result.score == pytest.approx(0.8667, abs=1e-4)
        assert result.matched == ["Software Engineer"]

    def test_best_match_returns_entry(self, candidate, job):
        best = ExperienceMatcher().best_match(candidate.experience, job.experience_requirements[0], AS_OF)
        assert best.company == "Acme"

    def test_industry_bonus(self, candidate):
        job = make_job(experience_requirements=[
            ExperienceRequirement(title="Software Engineer", level="senior", years_required=5, industry="Technology"),
        ])
        score = ExperienceMatcher().match(candidate, job, as_of=AS_OF).score
        assert score == pytest.approx(0.9667, abs=1e-4)

    def test_no_requirements(self, candidate):
        assert ExperienceMatcher().match(candidate, make_job(experience_requirements=[]), as_of=AS_OF).score == 1.0

    def test_no_experience(self, job):
        result = ExperienceMatcher().match(make_candidate(experience=[]), job, as_of=AS_OF)
        assert result.score == 0.0
        assert result.missing == ["Software Engineer"]


class TestTitleSimilaritySetting:
    def test_default_is_word_overlap(self):
        assert isinstance(registry.get_matcher("experience").title_similarity, JaccardWordSimilarity)

    def test_fuzzy_configured(self, monkeypatch):
        monkeypatch.setattr(settings, "title_similarity", "fuzzy")
        matcher = registry.get_matcher("experience")
        assert isinstance(matcher.title_similarity, FuzzyTokenSimilarity)
        # A misspelt title still counts as the same role
        candidate = make_candidate(experience=[
            WorkExperience(position="Sofware Engineer", start_date=date(2018, 6, 1), is_current=True),
        ])
        job = make_job(experience_requirements=[ExperienceRequirement(title="Software Engineer", years_required=5)])
        fuzzy_score = matcher.match(candidate, job, as_of=AS_OF).score
        word_score = ExperienceMatcher().match(candidate, job, as_of=AS_OF).score
        assert fuzzy_score > word_score


class TestEducation:
    @pytest.mark.parametrize("level,tier", [
        ("Master's", 4),
        ("PhD", 5),
        ("bachelor", 3),
        ("High School", 1),
        ("Unknown", 0),
    ])
    def test_education_tier(self, level, tier):
        assert education_tier(level) == tier

    def test_recency(self):
        assert recency_score(Education(level="bachelor", end_date=date(2024, 1, 1)), AS_OF) == 1.0
        assert recency_score(Education(level="bachelor", end_date=date(2016, 5, 1)), AS_OF) == 0.4
        assert recency_score(Education(level="bachelor", is_current=True), AS_OF) == 1.0

    def test_exact_match(self, candidate, job):
        assert EducationMatcher().match(candidate, job, as_of=AS_OF).score == pytest.approx(1.0)

    def test_one_tier_short(self, candidate):
        job = make_job(education_requirements=[EducationRequirement(level="master", field="Computer Science", required=True)])
        assert EducationMatcher().match(candidate, job, as_of=AS_OF).score == pytest.approx(0.9)

    def test_related_field(self):
        candidate = make_candidate(education=[Education(level="bachelor", field="Software Engineering")])
        job = make_job(education_requirements=[EducationRequirement(level="bachelor", field="Computer Science")])
        # level 0.5 + related field 0.7 x 0.4 + 0.1 with no specialization asked
        assert EducationMatcher().match(candidate, job, as_of=AS_OF).score == pytest.approx(0.88)

    def test_unmatched_optional_gets_partial_credit(self, job):
        result = EducationMatcher().match(make_candidate(education=[]), job, as_of=AS_OF)
        assert result.score == pytest.approx(0.3)

    def test_unmatched_required_scores_zero(self):
        job = make_job(education_requirements=[EducationRequirement(level="bachelor", required=True)])
        result = EducationMatcher().match(make_candidate(education=[]), job, as_of=AS_OF)
        assert result.score == 0.0
        assert result.missing == ["bachelor"]
