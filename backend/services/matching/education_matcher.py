"""Education factor: degree level, field of study and specialization."""

import logging
from datetime import date
from typing import Any

from models.schemas.profiles import CandidateProfile, Education, EducationRequirement, JobProfile
from models.schemas.score_breakdown import FactorScore
from services.matching.base import FactorMatcher, clamp01, ladder_score
from services.text_similarity import FieldMatcher, normalize

logger = logging.getLogger(__name__)

EDUCATION_TIERS = {
    "high_school": 1,
    "associate": 2,
    "certificate": 2,
    "diploma": 2,
    "bachelor": 3,
    "professional": 3,
    "master": 4,
    "phd": 5,
    "postdoctoral": 6,
}

LEVEL_ALIASES = {
    "high school": "high_school",
    "highschool": "high_school",
    "ged": "high_school",
    "bachelors": "bachelor",
    "bachelor's": "bachelor",
    "bs": "bachelor",
    "ba": "bachelor",
    "bsc": "bachelor",
    "masters": "master",
    "master's": "master",
    "ms": "master",
    "msc": "master",
    "mba": "master",
    "doctorate": "phd",
    "ph.d": "phd",
    "ph.d.": "phd",
    "postdoc": "postdoctoral",
}

LEVEL_GAP_SCORES = (0.8, 0.6, 0.4, 0.2)
UNMATCHED_OPTIONAL_CREDIT = 0.3


def education_tier(level: str | None) -> int:
    key = normalize(level)
    key = LEVEL_ALIASES.get(key, key).replace(" ", "_")
    return EDUCATION_TIERS.get(key, 0)


def recency_score(entry: Education, as_of: date) -> float:
    if entry.is_current or entry.end_date is None:
        return 1.0
    months = (as_of.year - entry.end_date.year) * 12 + (as_of.month - entry.end_date.month)
    if months <= 12:
        return 1.0
    if months <= 36:
        return 0.8
    if months <= 60:
        return 0.6
    if months <= 120:
        return 0.4
    return 0.2


class EducationMatcher(FactorMatcher):
    factor_name = "education"

    def __init__(self, field_matcher: FieldMatcher | None = None) -> None:
        self.field_matcher = field_matcher or FieldMatcher()

    def match(self, candidate: CandidateProfile, job: JobProfile, **context: Any) -> FactorScore:
        as_of: date = context["as_of"]
        requirements = job.education_requirements
        if not requirements:
            return FactorScore(score=1.0)

        total_weight = 0.0
        weighted = 0.0
        matched: list[str] = []
        missing: list[str] = []
        for req in requirements:
            weight = 2.0 if req.required else 1.0
            total_weight += weight
            best = self.best_match(candidate.education, req, as_of)
            if best is None:
                missing.append(req.level)
                if not req.required:
                    weighted += weight * UNMATCHED_OPTIONAL_CREDIT
                continue
            matched.append(req.level)
            weighted += weight * self.contribution(best, req)

        return FactorScore(
            score=round(clamp01(weighted / total_weight), 4),
            matched=matched,
            missing=missing,
        )

    def _level(self, entry: Education, req: EducationRequirement) -> float:
        return ladder_score(education_tier(entry.level), education_tier(req.level), LEVEL_GAP_SCORES)

    def _field(self, entry: Education, req: EducationRequirement) -> float:
        if not req.field:
            return 1.0
        return self.field_matcher.score(req.field, entry.field)

    def best_match(self, education: list[Education], req: EducationRequirement, as_of: date) -> Education | None:
        best: Education | None = None
        best_score = 0.0
        for entry in education:
            score = self._level(entry, req) * 0.5 + self._field(entry, req) * 0.4 + recency_score(entry, as_of) * 0.1
            if score > best_score:
                best, best_score = entry, score
        return best

    def contribution(self, entry: Education, req: EducationRequirement) -> float:
        value = self._level(entry, req) * 0.5 + self._field(entry, req) * 0.4
        if not req.specialization:
            value += 0.1
        else:
            wanted = normalize(req.specialization)
            if wanted in normalize(entry.specialization) or wanted in normalize(entry.field):
                value += 0.1
        return min(value, 1.0)
