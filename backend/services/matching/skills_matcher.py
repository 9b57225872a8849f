"""Skills factor: weighted per-requirement match of the candidate's skills."""

import logging
from typing import Any

from models.schemas.profiles import CandidateProfile, JobProfile, Skill, SkillLevel, SkillRequirement
from models.schemas.score_breakdown import FactorScore
from services.matching.base import FactorMatcher, clamp01, ladder_score, ratio_score

logger = logging.getLogger(__name__)

SKILL_TIERS = {
    SkillLevel.BEGINNER: 1,
    SkillLevel.INTERMEDIATE: 2,
    SkillLevel.ADVANCED: 3,
    SkillLevel.EXPERT: 4,
    SkillLevel.MASTER: 5,
}
LEVEL_GAP_SCORES = (0.7, 0.4, 0.1)
DEFAULT_IMPORTANCE = 3

EXACT_NAME_BONUS = 0.3
LEVEL_WEIGHT = 0.7
YEARS_WEIGHT = 0.2
REQUIRED_BONUS = 0.2


def skill_key(name: str) -> str:
    return name.strip().lower()


class SkillsMatcher(FactorMatcher):
    factor_name = "skills"

    def match(self, candidate: CandidateProfile, job: JobProfile, **context: Any) -> FactorScore:
        requirements = job.skill_requirements
        if not requirements:
            return FactorScore(score=1.0)

        by_name = {skill_key(s.name): s for s in candidate.skills}
        total_weight = 0.0
        weighted = 0.0
        matched: list[str] = []
        missing: list[str] = []

        for req in requirements:
            weight = req.importance if req.importance is not None else DEFAULT_IMPORTANCE
            total_weight += weight
            skill = by_name.get(skill_key(req.name))
            if skill is None:
                if req.required:
                    missing.append(req.name)
                continue
            matched.append(req.name)
            weighted += weight * self.contribution(skill, req)

        if total_weight <= 0:
            return FactorScore(score=0.0, matched=matched, missing=missing)
        return FactorScore(
            score=round(clamp01(weighted / total_weight), 4),
            matched=matched,
            missing=missing,
        )

    def contribution(self, skill: Skill, req: SkillRequirement) -> float:
        """Per-skill contribution, capped at 1.0."""
        value = EXACT_NAME_BONUS
        value += LEVEL_WEIGHT * ladder_score(SKILL_TIERS[skill.level], SKILL_TIERS[req.level], LEVEL_GAP_SCORES)
        if skill.years_experience is not None and req.years_required is not None:
            value += YEARS_WEIGHT * ratio_score(skill.years_experience, req.years_required)
        if req.required:
            value += REQUIRED_BONUS
        return min(value, 1.0)
