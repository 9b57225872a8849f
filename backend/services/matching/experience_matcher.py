"""Experience factor: best-matching work entry per required role.

Each work entry is scored against a requirement by title similarity (40%),
seniority-level adjacency (30%) and duration ratio (30%). The entry with the
highest blended score is the best match; its blend plus an optional industry
bonus (10%) is the requirement's contribution.
"""

import logging
from datetime import date
from typing import Any

from models.schemas.profiles import CandidateProfile, ExperienceRequirement, JobProfile, WorkExperience
from models.schemas.score_breakdown import FactorScore
from services.matching.base import FactorMatcher, clamp01, ratio_score
from services.text_similarity import IndustryMatcher, JaccardWordSimilarity, StringSimilarity, contains_phrase

logger = logging.getLogger(__name__)

LEVEL_LADDER = ["entry", "junior", "mid", "senior", "lead", "manager", "director", "executive"]

# Checked from the top of the ladder down so "Senior Engineering Manager" is a manager
LEVEL_KEYWORDS = {
    "executive": ["ceo", "cto", "cfo", "coo", "vp", "vice president", "chief", "president"],
    "director": ["director", "head"],
    "manager": ["manager", "supervisor"],
    "lead": ["lead", "team lead", "tech lead"],
    "senior": ["senior", "sr", "principal", "staff"],
    "mid": ["mid-level", "mid level", "mid", "intermediate", "regular"],
    "junior": ["junior", "jr"],
    "entry": ["intern", "internship", "trainee", "graduate", "associate", "entry level"],
}

# (years below which, level)
DURATION_LEVELS = [(1, "entry"), (3, "junior"), (5, "mid"), (8, "senior"), (12, "lead"), (15, "manager"), (20, "director")]

TITLE_WEIGHT = 0.4
LEVEL_WEIGHT = 0.3
DURATION_WEIGHT = 0.3
INDUSTRY_WEIGHT = 0.1
UNKNOWN_LEVEL_SCORE = 0.5


def duration_years(entry: WorkExperience, as_of: date) -> float:
    """Whole months between start and end (or as_of when ongoing), in years."""
    end = entry.end_date if entry.end_date is not None and not entry.is_current else as_of
    months = (end.year - entry.start_date.year) * 12 + (end.month - entry.start_date.month)
    return max(months, 0) / 12.0


def level_from_title(title: str) -> str | None:
    for level, keywords in LEVEL_KEYWORDS.items():
        if any(contains_phrase(title, kw) for kw in keywords):
            return level
    return None


def infer_level(entry: WorkExperience, years: float) -> str:
    level = level_from_title(entry.position)
    if level is not None:
        return level
    for limit, duration_level in DURATION_LEVELS:
        if years < limit:
            return duration_level
    return "executive"


def level_adjacency(actual: str | None, required: str | None) -> float:
    """1.0 on the same tier, minus 0.2 per tier of distance, floored at 0.2."""
    if actual not in LEVEL_LADDER or required not in LEVEL_LADDER:
        return UNKNOWN_LEVEL_SCORE
    distance = abs(LEVEL_LADDER.index(actual) - LEVEL_LADDER.index(required))
    return max(0.2, 1.0 - 0.2 * distance)


class ExperienceMatcher(FactorMatcher):
    factor_name = "experience"

    def __init__(
        self,
        title_similarity: StringSimilarity | None = None,
        industry_matcher: IndustryMatcher | None = None,
    ) -> None:
        self.title_similarity = title_similarity or JaccardWordSimilarity()
        self.industry_matcher = industry_matcher or IndustryMatcher()

    def match(self, candidate: CandidateProfile, job: JobProfile, **context: Any) -> FactorScore:
        as_of: date = context["as_of"]
        requirements = job.experience_requirements
        if not requirements:
            return FactorScore(score=1.0)

        total_weight = 0.0
        weighted = 0.0
        matched: list[str] = []
        missing: list[str] = []
        for req in requirements:
            weight = 2.0 if req.required else 1.0
            total_weight += weight
            best = self.best_match(candidate.experience, req, as_of)
            if best is None:
                missing.append(req.title)
                continue
            matched.append(req.title)
            weighted += weight * self.contribution(best, req, as_of)

        return FactorScore(
            score=round(clamp01(weighted / total_weight), 4),
            matched=matched,
            missing=missing,
        )

    def _components(self, entry: WorkExperience, req: ExperienceRequirement, as_of: date) -> tuple[float, float, float]:
        years = duration_years(entry, as_of)
        required_level = req.level or level_from_title(req.title)
        title = self.title_similarity.similarity(entry.position, req.title)
        level = level_adjacency(infer_level(entry, years), required_level)
        duration = ratio_score(years, req.years_required)
        return title, level, duration

    def blended_score(self, entry: WorkExperience, req: ExperienceRequirement, as_of: date) -> float:
        title, level, duration = self._components(entry, req, as_of)
        return title * TITLE_WEIGHT + level * LEVEL_WEIGHT + duration * DURATION_WEIGHT

    def best_match(
        self,
        experience: list[WorkExperience],
        req: ExperienceRequirement,
        as_of: date,
    ) -> WorkExperience | None:
        """Return the work entry with the highest blended score, if any scores above 0."""
        best: WorkExperience | None = None
        best_score = 0.0
        for entry in experience:
            score = self.blended_score(entry, req, as_of)
            if score > best_score:
                best, best_score = entry, score
        return best

    def contribution(self, entry: WorkExperience, req: ExperienceRequirement, as_of: date) -> float:
        value = self.blended_score(entry, req, as_of)
        if req.industry:
            text = f"{entry.company} {entry.position} {entry.industry}"
            value += INDUSTRY_WEIGHT * self.industry_matcher.score(req.industry, text)
        return min(value, 1.0)
