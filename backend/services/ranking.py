"""RankingEngine: weighted ranking score, deterministic ordering, diversification.

Ranking score (0-100) = sum(component x weight) + custom-criteria bonuses,
clamped to [0, 100]. Components are item.overall_score, any score_breakdown
key, response_rate, recent_activity and collaborative_score. Ties fall back
to overall_score, then item_id.
"""

import logging
import math
from datetime import datetime, timezone

from models.schemas.ranking import (
    CANDIDATE_COMPONENTS,
    JOB_COMPONENTS,
    MatchFilters,
    MatchItem,
    RankedMatches,
    RankingCriteria,
)
from services.exceptions import ValidationError
from services.filter_sort import FilterSortPipeline, as_utc
from services.matching.education_matcher import education_tier

logger = logging.getLogger(__name__)

CANDIDATE_WEIGHTS = {
    "overall_score": 0.4,
    "skills_match": 0.2,
    "experience_match": 0.15,
    "location_match": 0.1,
    "response_rate": 0.1,
    "recent_activity": 0.05,
}
JOB_WEIGHTS = {
    "overall_score": 0.4,
    "requirements_match": 0.2,
    "compensation_fit": 0.15,
    "culture_fit": 0.1,
    "growth_potential": 0.1,
    "market_demand": 0.05,
}

RECENCY_WINDOW_DAYS = 90
SKILL_BONUS = 2.0
INDUSTRY_BONUS = 3.0
EDUCATION_BONUS = 5.0
BENEFIT_BONUS = 2.0
CULTURE_BONUS = 3.0
GROWTH_BONUS = 5.0

DIVERSIFY_MIN_ITEMS = 5
DIVERSIFY_UNCONDITIONAL = 10
DIVERSIFY_MAX_ITEMS = 20
SIGNATURE_SKILLS = 3

RANKING_COMPONENTS = frozenset(
    set(CANDIDATE_WEIGHTS)
    | set(JOB_WEIGHTS)
    | set(CANDIDATE_COMPONENTS.values())
    | set(JOB_COMPONENTS.values())
    | {"collaborative_score"}
)


def recency(item: MatchItem, now: datetime) -> float:
    """1.0 for activity now, decaying linearly to 0 at 90 days."""
    stamp = item.last_active if item.item_type == "candidate" else item.posted_at
    if stamp is None:
        stamp = item.last_active or item.posted_at
    if stamp is None:
        return 0.0
    days = (now - as_utc(stamp)).total_seconds() / 86400
    return max(0.0, min(1.0, 1.0 - days / RECENCY_WINDOW_DAYS))


def _count_matches(wanted: list[str], values: list[str]) -> int:
    lowered = [v.lower() for v in values if v]
    return sum(1 for w in wanted if w.strip() and any(w.strip().lower() in v for v in lowered))


def validate_criteria(criteria: RankingCriteria) -> None:
    for name, weight in (criteria.weights or {}).items():
        if name not in RANKING_COMPONENTS:
            raise ValidationError(f"Unknown ranking component: {name}", field=name)
        if not math.isfinite(weight) or weight < 0:
            raise ValidationError(f"Ranking weight for {name} must be a finite non-negative number", field=name, value=weight)


class RankingEngine:
    def __init__(self, filter_pipeline: FilterSortPipeline | None = None) -> None:
        self.filters = filter_pipeline or FilterSortPipeline()

    @staticmethod
    def default_weights(item_type: str) -> dict[str, float]:
        return dict(JOB_WEIGHTS if item_type == "job" else CANDIDATE_WEIGHTS)

    def _component(self, item: MatchItem, key: str, now: datetime) -> float:
        if key == "overall_score":
            return item.overall_score
        if key == "response_rate":
            return (item.response_rate or 0.0) * 100
        if key == "recent_activity":
            return recency(item, now) * 100
        if key == "collaborative_score":
            return (item.collaborative_score or 0.0) * 100
        return item.score_breakdown.get(key, 0.0)

    def _bonus(self, item: MatchItem, criteria: RankingCriteria) -> float:
        custom = criteria.custom
        if custom is None:
            return 0.0
        bonus = SKILL_BONUS * _count_matches(custom.preferred_skills, item.skills)
        bonus += INDUSTRY_BONUS * _count_matches(custom.preferred_industries, [item.industry])
        if custom.min_education_level and item.education_level:
            if education_tier(item.education_level) >= education_tier(custom.min_education_level):
                bonus += EDUCATION_BONUS
        bonus += BENEFIT_BONUS * _count_matches(custom.required_benefits, item.benefits)
        bonus += CULTURE_BONUS * _count_matches(custom.preferred_culture, item.culture_tags)
        if custom.require_growth_opportunities and item.growth_opportunities:
            bonus += GROWTH_BONUS
        return bonus

    def ranking_score(self, item: MatchItem, criteria: RankingCriteria, now: datetime) -> float:
        weights = criteria.weights if criteria.weights is not None else self.default_weights(item.item_type)
        score = sum(self._component(item, key, now) * weight for key, weight in weights.items())
        score += self._bonus(item, criteria)
        return round(max(0.0, min(100.0, score)), 2)

    def diversify(self, items: list[MatchItem]) -> list[MatchItem]:
        """Keep rank 1, the next items up to 10, then only new skill sets or employers; at most 20."""
        if not items:
            return []
        kept = [items[0]]
        signatures = {self._signature(items[0])}
        groups = set(self._groups(items[0]))
        for item in items[1:]:
            if len(kept) >= DIVERSIFY_MAX_ITEMS:
                break
            signature = self._signature(item)
            item_groups = self._groups(item)
            if (
                len(kept) < DIVERSIFY_UNCONDITIONAL
                or signature not in signatures
                or any(g not in groups for g in item_groups)
            ):
                kept.append(item)
                signatures.add(signature)
                groups.update(item_groups)
        return kept

    @staticmethod
    def _signature(item: MatchItem) -> str:
        return ",".join(sorted(s.strip().lower() for s in item.skills[:SIGNATURE_SKILLS]))

    @staticmethod
    def _groups(item: MatchItem) -> list[tuple[str, str]]:
        if item.item_type == "job":
            return [("company", (item.company_id or item.company).lower()), ("industry", item.industry.lower())]
        return [("company", item.company.lower())]

    def rank(
        self,
        items: list[MatchItem],
        criteria: RankingCriteria | None = None,
        filters: MatchFilters | None = None,
        *,
        now: datetime | None = None,
    ) -> RankedMatches:
        criteria = criteria or RankingCriteria()
        validate_criteria(criteria)
        now = as_utc(now) if now is not None else datetime.now(timezone.utc)

        pool = self.filters.apply_filters(items, filters, now=now)
        scored = [
            item.model_copy(update={"ranking_score": self.ranking_score(item, criteria, now)})
            for item in pool
        ]
        scored.sort(key=lambda it: (-it.ranking_score, -it.overall_score, it.item_id))
        total = len(scored)

        diversified = criteria.diversify and total > DIVERSIFY_MIN_ITEMS
        if diversified:
            scored = self.diversify(scored)

        ranked = [item.model_copy(update={"rank": n}) for n, item in enumerate(scored, start=1)]
        return RankedMatches(
            items=ranked,
            total_items=total,
            ranking_criteria=criteria,
            metadata={
                "algorithm": "weighted_sum",
                "diversified": diversified,
                "returned": len(ranked),
                "filters_applied": self.filters.active_filters(filters) if filters else [],
                "ranked_at": now.isoformat(),
            },
        )
