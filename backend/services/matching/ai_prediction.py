"""Optional learned factor: a LightGBM regressor over the other factor scores.

The booster is trained offline and loaded from settings.ai_model_path. When
the file is missing the factor is simply not computed.
"""

import logging
from pathlib import Path
from typing import Any

import numpy as np

from config import settings
from models.schemas.profiles import CandidateProfile, JobProfile
from models.schemas.score_breakdown import FactorScore
from services.matching.base import FactorMatcher, clamp01

logger = logging.getLogger(__name__)

FEATURE_NAMES = [
    "skills",
    "experience",
    "education",
    "location",
    "preferences",
    "salary",
    "cultural_fit",
]
MISSING_FEATURE = 0.5


class AIPredictionMatcher(FactorMatcher):
    factor_name = "ai_prediction"

    def __init__(self, model_path: str | None = None) -> None:
        self._model_path = Path(model_path or settings.ai_model_path)
        self._model = None
        self._use_fallback = False

    def load(self) -> None:
        if self._model_path.exists():
            try:
                import lightgbm as lgb
                self._model = lgb.Booster(model_file=str(self._model_path))
                logger.info("Match judge model loaded from %s", self._model_path)
                return
            except Exception as e:
                logger.warning("Failed to load match judge model: %s", e)

        logger.info("Match judge model not found, ai_prediction disabled")
        self._use_fallback = True

    @property
    def model_loaded(self) -> bool:
        return self._model is not None

    def match(self, candidate: CandidateProfile, job: JobProfile, **context: Any) -> FactorScore:
        self.ensure_loaded()
        if self._use_fallback:
            return FactorScore()
        factors: dict[str, float | None] = context.get("factors", {})
        features = np.array([[
            factors[name] if factors.get(name) is not None else MISSING_FEATURE
            for name in FEATURE_NAMES
        ]])
        prediction = float(self._model.predict(features)[0])
        return FactorScore(score=round(clamp01(prediction), 4))
