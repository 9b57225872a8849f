"""Lazy-loading matcher registry for the score engine.

Same pattern as a model registry: one shared instance per factor, created and
loaded on first use.
"""

import logging

from config import settings
from services.matching.base import FactorMatcher

logger = logging.getLogger(__name__)

DEFAULT_FACTORS = (
    "skills",
    "experience",
    "education",
    "location",
    "preferences",
    "salary",
    "cultural_fit",
)

_registry: dict[str, FactorMatcher] = {}


def _create_matcher(name: str) -> FactorMatcher:
    """Factory: create a matcher by factor name with deferred imports."""
    if name == "skills":
        from services.matching.skills_matcher import SkillsMatcher
        return SkillsMatcher()
    elif name == "experience":
        from services.matching.experience_matcher import ExperienceMatcher
        from services.text_similarity import title_similarity
        return ExperienceMatcher(title_similarity=title_similarity(settings.title_similarity))
    elif name == "education":
        from services.matching.education_matcher import EducationMatcher
        return EducationMatcher()
    elif name == "location":
        from services.matching.fit_matchers import LocationMatcher
        return LocationMatcher()
    elif name == "preferences":
        from services.matching.fit_matchers import PreferencesMatcher
        return PreferencesMatcher()
    elif name == "salary":
        from services.matching.fit_matchers import SalaryMatcher
        return SalaryMatcher()
    elif name == "cultural_fit":
        from services.matching.fit_matchers import CulturalFitMatcher
        return CulturalFitMatcher()
    elif name == "ai_prediction":
        from services.matching.ai_prediction import AIPredictionMatcher
        return AIPredictionMatcher()
    else:
        raise ValueError(f"Unknown matcher: {name}")


def get_matcher(name: str) -> FactorMatcher:
    """Get a matcher by factor name, creating and loading it on first access."""
    if name not in _registry:
        _registry[name] = _create_matcher(name)
    matcher = _registry[name]
    matcher.ensure_loaded()
    return matcher


def clear() -> None:
    """Drop all matchers. Useful for testing."""
    _registry.clear()
