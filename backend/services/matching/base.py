"""Abstract base class for the per-factor matchers of the score engine."""

from abc import ABC, abstractmethod
from typing import Any
import logging

from models.schemas.profiles import CandidateProfile, JobProfile
from models.schemas.score_breakdown import FactorScore

logger = logging.getLogger(__name__)

# Actual/required ratio buckets shared by skill years and experience duration
RATIO_STAIRCASE = ((0.8, 0.8), (0.6, 0.6), (0.4, 0.4), (0.2, 0.2))


def clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def ratio_score(actual: float, required: float) -> float:
    """1.0 when actual meets required, else a staircase on actual/required."""
    if required <= 0 or actual >= required:
        return 1.0
    ratio = max(actual, 0.0) / required
    for bucket, score in RATIO_STAIRCASE:
        if ratio >= bucket:
            return score
    return 0.1


def ladder_score(actual: int, required: int, steps: tuple[float, ...]) -> float:
    """Score a tier gap: meeting the tier gives 1.0, then one step per missing tier."""
    gap = required - actual
    if gap <= 0:
        return 1.0
    return steps[min(gap, len(steps)) - 1]


class FactorMatcher(ABC):
    """Base class for factor matchers.

    Subclasses must implement:
        - factor_name: ScoreBreakdown field this matcher fills
        - match(candidate, job, **context): return a FactorScore whose score
          is in [0, 1], or None when the profiles lack the data

    Matchers with artifacts override load(); pure matchers keep the no-op.
    """

    factor_name: str = ""
    _loaded: bool = False

    def load(self) -> None:
        """Load artifacts. Called once by the matcher registry."""

    @abstractmethod
    def match(self, candidate: CandidateProfile, job: JobProfile, **context: Any) -> FactorScore:
        """Compare one candidate with one job."""

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    def ensure_loaded(self) -> None:
        """Load matcher if not already loaded."""
        if not self._loaded:
            logger.info("Loading matcher: %s", self.factor_name)
            self.load()
            self._loaded = True
