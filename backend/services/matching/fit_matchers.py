"""Location, preference, salary and cultural-fit matchers.

These factors return score=None when either profile leaves the relevant
section empty, so they drop out of the weighted overall score.
"""

import logging
from typing import Any

from models.schemas.profiles import CandidateProfile, JobProfile
from models.schemas.score_breakdown import FactorScore
from services.matching.base import FactorMatcher, clamp01
from services.text_similarity import normalize

logger = logging.getLogger(__name__)

REMOTE_FRIENDLY_POLICIES = {"remote_only", "flexible", "hybrid"}
FLEXIBLE_WORK_TYPES = {"hybrid", "flexible", "remote"}
TEAM_SIZES = ["solo", "small", "medium", "large", "very_large"]
SCHEDULE_GROUPS = [
    {"standard", "9-5", "regular"},
    {"flexible", "custom"},
    {"shift", "night"},
    {"compressed", "4x10"},
    {"weekend", "sat", "sun"},
]

PREFERENCE_WEIGHTS = {
    "work_type": 0.3,
    "team_size": 0.2,
    "schedule": 0.2,
    "travel": 0.2,
    "environment": 0.1,
}


class LocationMatcher(FactorMatcher):
    factor_name = "location"

    def match(self, candidate: CandidateProfile, job: JobProfile, **context: Any) -> FactorScore:
        cand, loc = candidate.location, job.location
        if cand is None or loc is None:
            return FactorScore()

        same_country = bool(normalize(cand.country)) and normalize(cand.country) == normalize(loc.country)
        if same_country and normalize(cand.city) and normalize(cand.city) == normalize(loc.city):
            return FactorScore(score=1.0)
        if same_country:
            return FactorScore(score=0.8)

        policy = job.employer_preferences.remote_policy if job.employer_preferences else None
        if loc.is_remote and (cand.is_remote or normalize(policy) in REMOTE_FRIENDLY_POLICIES):
            return FactorScore(score=0.9)
        if cand.relocation_willing:
            return FactorScore(score=0.7)
        return FactorScore(score=0.2)


def work_type_score(wanted: list[str], offered: list[str]) -> float:
    wanted_set = {normalize(w) for w in wanted}
    offered_set = {normalize(o) for o in offered}
    if wanted_set <= offered_set:
        return 1.0
    cand_flexible = bool(wanted_set & FLEXIBLE_WORK_TYPES)
    job_flexible = bool(offered_set & FLEXIBLE_WORK_TYPES)
    if cand_flexible and job_flexible:
        flexibility = 1.0
    elif cand_flexible or job_flexible:
        flexibility = 0.7
    else:
        flexibility = 0.4
    return flexibility * 0.8


def team_size_score(wanted: str, offered: str) -> float:
    wanted, offered = normalize(wanted), normalize(offered)
    if wanted not in TEAM_SIZES or offered not in TEAM_SIZES:
        return 0.5
    gap = abs(TEAM_SIZES.index(wanted) - TEAM_SIZES.index(offered))
    return (1.0, 0.8, 0.6)[gap] if gap < 3 else 0.4


def schedule_score(wanted: str, offered: str) -> float:
    wanted, offered = normalize(wanted), normalize(offered)
    if wanted == offered:
        return 1.0
    if "flexible" in (wanted, offered):
        return 0.8
    for group in SCHEDULE_GROUPS:
        if wanted in group and offered in group:
            return 0.9
    return 0.3


def travel_score(accepted: float, required: float) -> float:
    if required <= 0 or accepted >= required:
        return 1.0
    ratio = accepted / required
    if ratio >= 0.8:
        return 0.8
    if ratio >= 0.5:
        return 0.6
    return 0.3


class PreferencesMatcher(FactorMatcher):
    factor_name = "preferences"

    def match(self, candidate: CandidateProfile, job: JobProfile, **context: Any) -> FactorScore:
        prefs, employer = candidate.preferences, job.employer_preferences
        if prefs is None or employer is None:
            return FactorScore()

        scores: dict[str, float] = {}
        if prefs.work_types and employer.work_types:
            scores["work_type"] = work_type_score(prefs.work_types, employer.work_types)
        if prefs.team_size and employer.team_size:
            scores["team_size"] = team_size_score(prefs.team_size, employer.team_size)
        if prefs.schedule and employer.schedule:
            scores["schedule"] = schedule_score(prefs.schedule, employer.schedule)
        if prefs.travel_percent is not None and employer.travel_percent is not None:
            scores["travel"] = travel_score(prefs.travel_percent, employer.travel_percent)
        if prefs.environment and employer.environment:
            # Placeholder until environments have a taxonomy
            scores["environment"] = 1.0 if normalize(prefs.environment) == normalize(employer.environment) else 0.5

        if not scores:
            return FactorScore()
        total_weight = sum(PREFERENCE_WEIGHTS[name] for name in scores)
        value = sum(score * PREFERENCE_WEIGHTS[name] for name, score in scores.items()) / total_weight
        return FactorScore(score=round(clamp01(value), 4), matched=sorted(scores))


def salary_overlap_score(cand_min: float, cand_max: float, job_min: float, job_max: float) -> float:
    """Compare two salary ranges.

    Containment wins first (candidate range holds the job range -> 1.0, the
    reverse -> 0.9). Partial overlap is scored as overlap / larger range,
    doubled and clamped. Disjoint ranges decay with the relative gap.
    """
    if cand_min <= job_min and cand_max >= job_max:
        return 1.0
    if job_min <= cand_min and job_max >= cand_max:
        return 0.9

    overlap = min(cand_max, job_max) - max(cand_min, job_min)
    if overlap > 0:
        larger_range = max(cand_max - cand_min, job_max - job_min)
        return clamp01(overlap / larger_range * 2)

    if cand_max <= job_min:
        # Candidate is cheaper than the posting
        if job_min <= 0:
            return 0.0
        return max(0.0, 1.0 - (job_min - cand_max) / job_min)
    # Candidate expects more than the posting pays
    if cand_min <= 0:
        return 0.0
    return max(0.0, 1.0 - 0.5 * (cand_min - job_max) / cand_min)


class SalaryMatcher(FactorMatcher):
    factor_name = "salary"

    def match(self, candidate: CandidateProfile, job: JobProfile, **context: Any) -> FactorScore:
        wanted = candidate.preferences.salary_range if candidate.preferences else None
        offered = job.compensation
        if wanted is None or offered is None:
            return FactorScore()
        cand_max = wanted.max if wanted.max is not None else wanted.min * 2
        job_max = offered.max if offered.max is not None else offered.min * 1.5
        return FactorScore(score=round(salary_overlap_score(wanted.min, cand_max, offered.min, job_max), 4))


class CulturalFitMatcher(FactorMatcher):
    """Neutral 0.5 plus bonuses for shared work style, company size and growth."""

    factor_name = "cultural_fit"

    def match(self, candidate: CandidateProfile, job: JobProfile, **context: Any) -> FactorScore:
        employer = job.employer_preferences
        candidate_data = candidate.work_style or candidate.company_size or candidate.growth_priority
        employer_data = employer is not None and (
            employer.work_style or employer.company_size or employer.growth_opportunities
        )
        if not candidate_data and not employer_data:
            return FactorScore()

        value = 0.5
        matched: list[str] = []
        if employer is not None:
            if candidate.work_style and normalize(candidate.work_style) == normalize(employer.work_style):
                value += 0.2
                matched.append("work_style")
            if candidate.company_size and normalize(candidate.company_size) == normalize(employer.company_size):
                value += 0.15
                matched.append("company_size")
            if candidate.growth_priority and employer.growth_opportunities:
                value += 0.15
                matched.append("growth")
        return FactorScore(score=round(clamp01(value), 4), matched=matched)
