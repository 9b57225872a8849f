"""ScoreEngine: per-factor and overall compatibility of a candidate and a job.

Scoring is a pure function of the two profiles, the weights and the `as_of`
date, so pools are scored in parallel with no shared mutable state. Batch
calls never abort on a single bad pair; failures are collected next to the
successful breakdowns.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import date

import numpy as np

from config import settings
from models.schemas.profiles import CandidateProfile, JobProfile
from models.schemas.score_breakdown import (
    BatchScoreResult,
    ScoreBreakdown,
    ScoreFailure,
    ScoreWeights,
)
from services.matching import weights as weight_presets
from services.matching.base import FactorMatcher
from services.matching.registry import DEFAULT_FACTORS, get_matcher

logger = logging.getLogger(__name__)

FACTOR_LABELS = {
    "skills": "skills",
    "experience": "experience",
    "education": "education",
    "location": "location",
    "preferences": "work preference",
    "salary": "salary",
    "cultural_fit": "cultural fit",
    "ai_prediction": "predicted fit",
}
STRENGTH_THRESHOLD = 0.8
CONCERN_THRESHOLD = 0.4

WeightsArg = str | dict[str, float] | ScoreWeights | None


class ScoreEngine:
    def __init__(
        self,
        matchers: dict[str, FactorMatcher] | None = None,
        include_ai_prediction: bool = True,
        max_workers: int | None = None,
    ) -> None:
        if matchers is None:
            names = DEFAULT_FACTORS + (("ai_prediction",) if include_ai_prediction else ())
            matchers = {name: get_matcher(name) for name in names}
        self._matchers = matchers
        self._max_workers = max_workers or settings.score_batch_workers

    @property
    def factors(self) -> list[str]:
        return list(self._matchers)

    def matcher(self, name: str) -> FactorMatcher | None:
        return self._matchers.get(name)

    def score(
        self,
        candidate: CandidateProfile,
        job: JobProfile,
        weights: WeightsArg = None,
        *,
        as_of: date,
    ) -> ScoreBreakdown:
        resolved = weight_presets.resolve_weights(weights, default=settings.default_weight_strategy)
        return self._score(candidate, job, resolved, as_of)

    def _score(
        self,
        candidate: CandidateProfile,
        job: JobProfile,
        weights: ScoreWeights,
        as_of: date,
    ) -> ScoreBreakdown:
        factors: dict[str, float | None] = {}
        matched_skills: list[str] = []
        missing_skills: list[str] = []

        for name, matcher in self._matchers.items():
            if name == "ai_prediction":
                continue
            result = matcher.match(candidate, job, as_of=as_of)
            factors[name] = result.score
            if name == "skills":
                matched_skills, missing_skills = result.matched, result.missing

        # The learned factor consumes the others, so it runs last
        if "ai_prediction" in self._matchers:
            result = self._matchers["ai_prediction"].match(candidate, job, as_of=as_of, factors=dict(factors))
            factors["ai_prediction"] = result.score

        present = {name: value for name, value in factors.items() if value is not None}
        overall = weight_presets.combine(present, weights.weights)
        strengths, concerns = self._explain(present, missing_skills)

        return ScoreBreakdown(
            candidate_id=candidate.id,
            job_id=job.id,
            **factors,
            overall_score=round(overall, 4),
            confidence=round(self._confidence(present), 4),
            strategy=weights.strategy,
            weights_version=weights.version,
            matched_skills=matched_skills,
            missing_required_skills=missing_skills,
            strengths=strengths,
            concerns=concerns,
        )

    def _confidence(self, present: dict[str, float]) -> float:
        """Higher for consistent, well-covered breakdowns."""
        if not present:
            return 0.0
        values = np.array(list(present.values()))
        coverage = len(present) / max(len(self._matchers), 1)
        confidence = float(values.mean()) * 0.7 + coverage * 0.3
        spread = float(values.std())
        if spread > 0.3:
            confidence -= 0.15
        elif spread < 0.1:
            confidence += 0.05
        return max(0.0, min(1.0, confidence))

    def _explain(self, present: dict[str, float], missing_skills: list[str]) -> tuple[list[str], list[str]]:
        strengths: list[str] = []
        concerns: list[str] = []
        for name, value in present.items():
            label = FACTOR_LABELS.get(name, name)
            if value >= STRENGTH_THRESHOLD:
                strengths.append(f"Strong {label} match ({value * 100:.0f}%)")
            elif value <= CONCERN_THRESHOLD:
                concerns.append(f"Weak {label} match ({value * 100:.0f}%)")
        if missing_skills:
            concerns.append(f"Missing required skills: {', '.join(missing_skills)}")
        return strengths, concerns

    def _score_safely(
        self,
        candidate: CandidateProfile,
        job: JobProfile,
        weights: ScoreWeights,
        as_of: date,
    ) -> ScoreBreakdown | ScoreFailure:
        try:
            return self._score(candidate, job, weights, as_of)
        except Exception as e:
            logger.warning("Scoring failed for candidate=%s job=%s: %s", candidate.id, job.id, e)
            return ScoreFailure(
                candidate_id=candidate.id,
                job_id=job.id,
                error_code=getattr(e, "error_code", e.__class__.__name__),
                message=str(e),
            )

    def _run_batch(self, pairs: list[tuple[CandidateProfile, JobProfile]], weights: WeightsArg, as_of: date) -> BatchScoreResult:
        # Malformed weights fail the whole request; they are the caller's, not an item's
        resolved = weight_presets.resolve_weights(weights, default=settings.default_weight_strategy)
        batch = BatchScoreResult()
        if not pairs:
            return batch
        workers = max(1, min(self._max_workers, len(pairs)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            outcomes = pool.map(lambda pair: self._score_safely(pair[0], pair[1], resolved, as_of), pairs)
            for outcome in outcomes:
                if isinstance(outcome, ScoreFailure):
                    batch.failures.append(outcome)
                else:
                    batch.results.append(outcome)
        logger.info("Scored %d pairs (%d failed)", len(pairs), len(batch.failures))
        return batch

    def score_batch(
        self,
        candidates: list[CandidateProfile],
        job: JobProfile,
        weights: WeightsArg = None,
        *,
        as_of: date,
    ) -> BatchScoreResult:
        """Score a candidate pool against one job concurrently."""
        return self._run_batch([(candidate, job) for candidate in candidates], weights, as_of)

    def score_jobs(
        self,
        candidate: CandidateProfile,
        jobs: list[JobProfile],
        weights: WeightsArg = None,
        *,
        as_of: date,
    ) -> BatchScoreResult:
        """Score one candidate against a pool of jobs concurrently."""
        return self._run_batch([(candidate, job) for job in jobs], weights, as_of)
