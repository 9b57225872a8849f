"""Tests for RankingEngine: weighted scores, ordering, custom bonuses and diversity."""

from datetime import datetime, timedelta, timezone

import pytest

from models.schemas.ranking import CustomCriteria, MatchFilters, MatchItem, RankingCriteria
from models.schemas.score_breakdown import ScoreBreakdown
from services.exceptions import ValidationError
from services.ranking import RankingEngine, recency

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def candidate_item(item_id, overall=80.0, **fields):
    return MatchItem(item_id=item_id, item_type="candidate", overall_score=overall, **fields)


@pytest.fixture
def engine():
    return RankingEngine()


class TestRankingScore:
    def test_default_candidate_weights(self, engine):
        item = candidate_item(
            "a",
            score_breakdown={"skills_match": 90.0, "experience_match": 70.0, "location_match": 100.0},
            response_rate=0.5,
            last_active=NOW,
        )
        # 80 x .4 + 90 x .2 + 70 x .15 + 100 x .1 + 50 x .1 + 100 x .05
        assert engine.ranking_score(item, RankingCriteria(), NOW) == pytest.approx(80.5)

    def test_missing_components_count_as_zero(self, engine):
        assert engine.ranking_score(candidate_item("b"), RankingCriteria(), NOW) == pytest.approx(32.0)

    def test_clamped(self, engine):
        criteria = RankingCriteria(weights={"overall_score": 2.0})
        assert engine.ranking_score(candidate_item("a", 90.0), criteria, NOW) == 100.0

    def test_custom_bonuses(self, engine):
        item = candidate_item("a", 50.0, skills=["Python", "Go"], industry="Fintech", education_level="master")
        criteria = RankingCriteria(
            weights={"overall_score": 1.0},
            custom=CustomCriteria(
                preferred_skills=["python", "rust"],
                preferred_industries=["fintech"],
                min_education_level="bachelor",
            ),
        )
        # 50 + 2 (one skill) + 3 (industry) + 5 (education)
        assert engine.ranking_score(item, criteria, NOW) == pytest.approx(60.0)

    def test_job_bonuses(self, engine):
        item = MatchItem(
            item_id="j", item_type="job", overall_score=60.0,
            benefits=["Remote stipend", "Health insurance"], culture_tags=["async"], growth_opportunities=True,
        )
        criteria = RankingCriteria(
            weights={"overall_score": 1.0},
            custom=CustomCriteria(
                required_benefits=["health"],
                preferred_culture=["async"],
                require_growth_opportunities=True,
            ),
        )
        assert engine.ranking_score(item, criteria, NOW) == pytest.approx(70.0)

    def test_negative_weight_rejected(self, engine):
        with pytest.raises(ValidationError):
            engine.rank([candidate_item("a")], RankingCriteria(weights={"overall_score": -1.0}), now=NOW)

    def test_unknown_component_rejected(self, engine):
        with pytest.raises(ValidationError) as exc:
            engine.rank([candidate_item("a")], RankingCriteria(weights={"charisma": 1.0}), now=NOW)
        assert exc.value.field == "charisma"

    def test_job_side_components_accepted(self, engine):
        criteria = RankingCriteria(weights={"growth_potential": 0.5, "culture_fit": 0.5, "collaborative_score": 0.1})
        assert engine.rank([candidate_item("a")], criteria, now=NOW).total_items == 1

    def test_recency_decay(self):
        assert recency(candidate_item("a", last_active=NOW), NOW) == 1.0
        assert recency(candidate_item("a", last_active=NOW - timedelta(days=45)), NOW) == pytest.approx(0.5)
        assert recency(candidate_item("a", last_active=NOW - timedelta(days=200)), NOW) == 0.0
        assert recency(candidate_item("a"), NOW) == 0.0


class TestRank:
    def test_order_and_ranks(self, engine):
        items = [
            candidate_item("low", 40.0),
            candidate_item("high", 90.0),
            candidate_item("mid", 60.0),
        ]
        ranked = engine.rank(items, now=NOW)
        assert [i.item_id for i in ranked.items] == ["high", "mid", "low"]
        assert [i.rank for i in ranked.items] == [1, 2, 3]
        assert ranked.total_items == 3

    def test_ties_break_on_overall_then_id(self, engine):
        criteria = RankingCriteria(weights={"response_rate": 1.0})
        items = [
            candidate_item("b", 70.0, response_rate=0.5),
            candidate_item("a", 70.0, response_rate=0.5),
            candidate_item("c", 90.0, response_rate=0.5),
        ]
        ranked = engine.rank(items, criteria, now=NOW)
        assert [i.item_id for i in ranked.items] == ["c", "a", "b"]

    def test_deterministic(self, engine):
        items = [candidate_item(str(i), float(i % 3) * 10) for i in range(30)]
        first = engine.rank(items, now=NOW)
        second = engine.rank(list(reversed(items)), now=NOW)
        assert [i.item_id for i in first.items] == [i.item_id for i in second.items]

    def test_filters_applied_before_ranking(self, engine):
        items = [candidate_item("a", 90.0), candidate_item("b", 30.0)]
        ranked = engine.rank(items, filters=MatchFilters(min_score=50), now=NOW)
        assert [i.item_id for i in ranked.items] == ["a"]
        assert ranked.metadata["filters_applied"] == ["min_score"]

    def test_inputs_untouched(self, engine):
        items = [candidate_item("a")]
        engine.rank(items, now=NOW)
        assert items[0].rank is None


class TestDiversify:
    def _clones(self, n, company="Acme"):
        return [candidate_item(f"c{i:02d}", 90.0 - i, skills=["Python", "SQL"], company=company) for i in range(n)]

    def test_drops_repeats_after_first_ten(self, engine):
        ranked = engine.rank(self._clones(14), RankingCriteria(diversify=True), now=NOW)
        assert len(ranked.items) == 10
        assert ranked.metadata["diversified"] is True
        assert ranked.total_items == 14

    def test_keeps_new_groups(self, engine):
        items = self._clones(12) + [candidate_item("new", 10.0, skills=["Python", "SQL"], company="Globex")]
        ranked = engine.rank(items, RankingCriteria(diversify=True), now=NOW)
        assert [i.item_id for i in ranked.items][-1] == "new"
        assert len(ranked.items) == 11

    def test_capped_at_twenty(self, engine):
        items = [candidate_item(f"c{i:02d}", 90.0 - i, skills=[f"s{i}"], company=f"co{i}") for i in range(30)]
        ranked = engine.rank(items, RankingCriteria(diversify=True), now=NOW)
        assert len(ranked.items) == 20

    def test_small_pools_not_diversified(self, engine):
        ranked = engine.rank(self._clones(5), RankingCriteria(diversify=True), now=NOW)
        assert len(ranked.items) == 5
        assert ranked.metadata["diversified"] is False


class TestFromBreakdown:
    def test_job_aliases(self):
        breakdown = ScoreBreakdown(candidate_id="c", job_id="j", skills=0.9, salary=0.5, overall_score=0.75)
        item = MatchItem.from_breakdown(breakdown, "job", title="Engineer")
        assert item.item_id == "j"
        assert item.overall_score == 75.0
        assert item.score_breakdown["requirements_match"] == 90.0
        assert item.score_breakdown["compensation_fit"] == 50.0
        assert "culture_fit" not in item.score_breakdown

    def test_candidate_side(self):
        breakdown = ScoreBreakdown(candidate_id="c", job_id="j", skills=0.8, overall_score=0.8)
        item = MatchItem.from_breakdown(breakdown)
        assert item.item_id == "c"
        assert item.score_breakdown == {"skills_match": 80.0}
