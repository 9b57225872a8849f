"""Matching service: wires scoring, retrieval, ranking and filtering together.

Flow:
    job + candidate pool (or candidate + job pool)
      ├─ ScoreEngine.score_batch(...)        → BatchScoreResult (+ per-item failures)
      │       ↓
      ├─ to MatchItem (0-100 scale, profile attributes, caller extras)
      │       ↓                     ↖ collaborative_score from CollaborativeRecommender
      ├─ RankingEngine.rank(items, criteria)  → RankedMatches
      │       ↓
      └─ FilterSortPipeline.filter_and_sort(ranked, filters, sort)  → FilteredMatches
                       ↓
         MatchResponse, cached per fingerprint (job id + filters + request)

SimilaritySearch and the recommender are alternate retrieval paths; their
results convert to MatchItems and go through the same ranking stage.
"""

import logging
from datetime import date, datetime
from typing import Any, Callable

from models.responses import MatchResponse
from models.schemas.interactions import RecommendationOptions, RecommendationResult
from models.schemas.profiles import CandidateProfile, JobProfile
from models.schemas.ranking import FilteredMatches, MatchFilters, MatchItem, RankedMatches, RankingCriteria, SortCriteria
from models.schemas.score_breakdown import BatchScoreResult, ScoreBreakdown
from models.schemas.vectors import EmbeddingRecord, SearchOptions, SearchResponse
from services import embeddings
from services.filter_sort import FilterSortPipeline
from services.matching.experience_matcher import duration_years, infer_level
from services.matching.education_matcher import education_tier
from services.matching.score_engine import ScoreEngine, WeightsArg
from services.ranking import RankingEngine
from services.recommender.collaborative import CollaborativeRecommender
from services.result_cache import ResultCache, fingerprint
from services.similarity import SimilaritySearch

logger = logging.getLogger(__name__)

# Seniority ladder -> the coarse levels MatchFilters accepts
FILTER_LEVELS = {
    "entry": "entry",
    "junior": "entry",
    "mid": "mid",
    "senior": "senior",
    "lead": "senior",
    "manager": "executive",
    "director": "executive",
    "executive": "executive",
}
RANKED_ORDER = SortCriteria(field="ranking_score", order="desc")
IDENTITY_FIELDS = ("item_id", "item_type")


def candidate_fields(candidate: CandidateProfile, as_of: date) -> dict[str, Any]:
    """MatchItem attributes derived from a candidate profile."""
    fields: dict[str, Any] = {"skills": [s.name for s in candidate.skills]}
    if candidate.experience:
        latest = max(candidate.experience, key=lambda e: (e.is_current, e.end_date or as_of, e.start_date))
        fields["title"] = latest.position
        fields["company"] = latest.company
        fields["industry"] = latest.industry
        fields["years_experience"] = round(sum(duration_years(e, as_of) for e in candidate.experience), 1)
        fields["experience_level"] = FILTER_LEVELS[infer_level(latest, duration_years(latest, as_of))]
    if candidate.education:
        fields["education_level"] = max(candidate.education, key=lambda e: education_tier(e.level)).level
    if candidate.location:
        loc = candidate.location
        fields["location"] = ", ".join(p for p in (loc.city, loc.country) if p)
        fields["remote"] = loc.is_remote
        fields["willing_to_relocate"] = loc.relocation_willing
    if candidate.preferences and candidate.preferences.work_types:
        fields["work_type"] = candidate.preferences.work_types[0]
    fields["profile_complete"] = bool(
        candidate.skills and candidate.experience and candidate.education and candidate.location
    )
    return fields


def job_fields(job: JobProfile) -> dict[str, Any]:
    """MatchItem attributes derived from a job profile."""
    fields: dict[str, Any] = {
        "title": job.title,
        "company": job.company,
        "industry": job.industry,
        "skills": [req.name for req in job.skill_requirements],
    }
    if job.location:
        fields["location"] = ", ".join(p for p in (job.location.city, job.location.country) if p)
        fields["remote"] = job.location.is_remote
    if job.compensation:
        fields["min_salary"] = job.compensation.min
        fields["max_salary"] = job.compensation.max
    prefs = job.employer_preferences
    if prefs:
        fields["company_size"] = prefs.company_size
        fields["growth_opportunities"] = prefs.growth_opportunities
        if prefs.work_types:
            fields["work_type"] = prefs.work_types[0]
    return fields


def caller_fields(item_fields: dict[str, dict[str, Any]] | None, item_id: str) -> dict[str, Any]:
    """Caller-supplied attributes for one item, minus the identity keys the breakdown owns."""
    extras = (item_fields or {}).get(item_id, {})
    return {k: v for k, v in extras.items() if k not in IDENTITY_FIELDS}


class MatchingService:
    def __init__(
        self,
        score_engine: ScoreEngine | None = None,
        similarity_search: SimilaritySearch | None = None,
        recommender: CollaborativeRecommender | None = None,
        ranking: RankingEngine | None = None,
        filter_sort: FilterSortPipeline | None = None,
        cache: ResultCache | None = None,
        get_candidate: Callable[[str], CandidateProfile] | None = None,
        get_job: Callable[[str], JobProfile] | None = None,
    ) -> None:
        self.score_engine = score_engine or ScoreEngine()
        self.similarity = similarity_search or SimilaritySearch()
        self.recommender = recommender or CollaborativeRecommender(similarity_search=self.similarity)
        self.filter_sort = filter_sort or FilterSortPipeline()
        self.ranking = ranking or RankingEngine(self.filter_sort)
        self.cache = cache if cache is not None else ResultCache()
        self._get_candidate = get_candidate
        self._get_job = get_job

    # --- Scoring ---

    def score(self, candidate: CandidateProfile, job: JobProfile, weights: WeightsArg = None, *, as_of: date) -> ScoreBreakdown:
        return self.score_engine.score(candidate, job, weights, as_of=as_of)

    def score_batch(self, candidates: list[CandidateProfile], job: JobProfile, weights: WeightsArg = None, *, as_of: date) -> BatchScoreResult:
        return self.score_engine.score_batch(candidates, job, weights, as_of=as_of)

    # --- Full match flow ---

    def _collaborative_scores(self, user_id: str | None, item_type: str, count: int) -> dict[str, float]:
        if not user_id or count == 0:
            return {}
        result = self.recommender.recommend(user_id, item_type, RecommendationOptions(count=min(count, 200)))
        # Random exploration picks carry no signal about the user
        recs = [r for r in result.recommendations if r.metadata.get("strategy") != "random_items"]
        if not recs:
            return {}
        top = max(r.score for r in recs)
        # Cold-start guesses count only as much as the chain trusts them
        scale = result.confidence if result.algorithm == "cold_start" else 1.0
        return {r.item_id: (r.score / top if top > 0 else 0.0) * scale for r in recs}

    def _finish(
        self,
        items: list[MatchItem],
        batch: BatchScoreResult,
        criteria: RankingCriteria | None,
        filters: MatchFilters | None,
        sort: SortCriteria | None,
        now: datetime | None,
        key: str,
    ) -> MatchResponse:
        ranked = self.ranking.rank(items, criteria, now=now)
        matches = self.filter_sort.filter_and_sort(ranked.items, filters, sort or RANKED_ORDER, now=now)
        return MatchResponse(
            matches=matches,
            failures=batch.failures,
            ranking_metadata=ranked.metadata,
            fingerprint=key,
        )

    def match_candidates_for_job(
        self,
        job: JobProfile,
        candidates: list[CandidateProfile],
        weights: WeightsArg = None,
        criteria: RankingCriteria | None = None,
        filters: MatchFilters | None = None,
        sort: SortCriteria | None = None,
        *,
        as_of: date,
        now: datetime | None = None,
        user_id: str | None = None,
        item_fields: dict[str, dict[str, Any]] | None = None,
    ) -> MatchResponse:
        """Score, rank and filter a candidate pool for one job.

        item_fields supplies per-candidate attributes the profile does not
        carry (response_rate, last_active, available_immediately, ...).
        user_id, when given, blends in the recommender's view of that user.
        """
        key = fingerprint(
            "candidates-for-job", job.id, filters, sort, criteria, weights, as_of, now,
            sorted(c.id for c in candidates), user_id, item_fields,
        )

        def compute() -> MatchResponse:
            batch = self.score_engine.score_batch(candidates, job, weights, as_of=as_of)
            by_id = {c.id: c for c in candidates}
            collaborative = self._collaborative_scores(user_id, "candidate", len(candidates))
            items = []
            for breakdown in batch.results:
                fields = candidate_fields(by_id[breakdown.candidate_id], as_of)
                fields.update(caller_fields(item_fields, breakdown.candidate_id))
                if breakdown.candidate_id in collaborative:
                    fields["collaborative_score"] = collaborative[breakdown.candidate_id]
                items.append(MatchItem.from_breakdown(breakdown, "candidate", **fields))
            return self._finish(items, batch, criteria, filters, sort, now, key)

        return self.cache.get_or_compute(key, compute)

    def match_jobs_for_candidate(
        self,
        candidate: CandidateProfile,
        jobs: list[JobProfile],
        weights: WeightsArg = None,
        criteria: RankingCriteria | None = None,
        filters: MatchFilters | None = None,
        sort: SortCriteria | None = None,
        *,
        as_of: date,
        now: datetime | None = None,
        item_fields: dict[str, dict[str, Any]] | None = None,
    ) -> MatchResponse:
        """Score, rank and filter a job pool for one candidate."""
        key = fingerprint(
            "jobs-for-candidate", candidate.id, filters, sort, criteria, weights, as_of, now,
            sorted(j.id for j in jobs), item_fields,
        )

        def compute() -> MatchResponse:
            batch = self.score_engine.score_jobs(candidate, jobs, weights, as_of=as_of)
            by_id = {j.id: j for j in jobs}
            collaborative = self._collaborative_scores(candidate.id, "job", len(jobs))
            items = []
            for breakdown in batch.results:
                fields = job_fields(by_id[breakdown.job_id])
                fields.update(caller_fields(item_fields, breakdown.job_id))
                if breakdown.job_id in collaborative:
                    fields["collaborative_score"] = collaborative[breakdown.job_id]
                items.append(MatchItem.from_breakdown(breakdown, "job", **fields))
            return self._finish(items, batch, criteria, filters, sort, now, key)

        return self.cache.get_or_compute(key, compute)

    def match_job_by_id(self, job_id: str, candidate_ids: list[str], **kwargs: Any) -> MatchResponse:
        """Same as match_candidates_for_job, reading profiles from the external store."""
        if self._get_job is None or self._get_candidate is None:
            raise RuntimeError("MatchingService was created without profile accessors")
        job = self._get_job(job_id)
        candidates = [self._get_candidate(cid) for cid in candidate_ids]
        return self.match_candidates_for_job(job, candidates, **kwargs)

    def invalidate(self, key: str) -> bool:
        return self.cache.invalidate(key)

    # --- Content vectors for cold start ---

    def index_profiles(
        self,
        candidates: list[CandidateProfile] | None = None,
        jobs: list[JobProfile] | None = None,
    ) -> int:
        """Embed profiles and register them as cold-start content vectors."""
        records = embeddings.embed_candidates(candidates or []) + embeddings.embed_jobs(jobs or [])
        for record in records:
            self.recommender.register_item_vector(record.id, record.metadata["item_type"], record.vector)
        logger.info("Indexed %d profile vectors (%s)", len(records), embeddings.backend_name())
        return len(records)

    def index_user(self, user_id: str, profile: CandidateProfile | JobProfile) -> None:
        """Use a profile (a job seeker's own, or a recruiter's open role) as the user's content vector."""
        if isinstance(profile, CandidateProfile):
            record = embeddings.embed_candidates([profile])[0]
        else:
            record = embeddings.embed_jobs([profile])[0]
        self.recommender.register_user_vector(user_id, record.vector)

    # --- Alternate retrieval paths ---

    def top_k_similar(
        self,
        query: list[float],
        pool: list[EmbeddingRecord],
        options: SearchOptions | None = None,
    ) -> SearchResponse:
        return self.similarity.top_k(query, pool, options)

    def rank_similar(
        self,
        query: list[float],
        pool: list[EmbeddingRecord],
        options: SearchOptions | None = None,
        criteria: RankingCriteria | None = None,
        item_type: str = "candidate",
        *,
        now: datetime | None = None,
    ) -> RankedMatches:
        """Rank similarity-search hits with the ranking engine (similarity as overall score)."""
        response = self.similarity.top_k(query, pool, options)
        items = [
            MatchItem(
                item_id=r.id,
                item_type=item_type,
                overall_score=round(max(0.0, min(1.0, r.score)) * 100, 1),
                metadata=r.metadata,
                explanation=[f"Similarity {r.score:.2f} ({response.metric})"],
            )
            for r in response.results
        ]
        return self.ranking.rank(items, criteria or RankingCriteria(weights={"overall_score": 1.0}), now=now)

    def recommendation_items(self, result: RecommendationResult) -> list[MatchItem]:
        """Recommendations as MatchItems, scores scaled to 0-100 by the top result."""
        if not result.recommendations:
            return []
        top = max(r.score for r in result.recommendations)
        return [
            MatchItem(
                item_id=r.item_id,
                item_type=r.item_type,
                overall_score=round((r.score / top if top > 0 else 0.0) * 100, 1),
                collaborative_score=r.score / top if top > 0 else 0.0,
                explanation=[r.explanation] if r.explanation else [],
                metadata={"algorithm": r.algorithm, "confidence": r.confidence},
            )
            for r in result.recommendations
        ]

    def filter_and_sort(
        self,
        items: list[MatchItem],
        filters: MatchFilters | None = None,
        sort: SortCriteria | None = None,
        *,
        now: datetime | None = None,
    ) -> FilteredMatches:
        return self.filter_sort.filter_and_sort(items, filters, sort, now=now)
