"""Named weight presets and custom weight-map validation."""

import logging
import math

from models.schemas.score_breakdown import FACTOR_NAMES, ScoreWeights
from services.exceptions import ValidationError

logger = logging.getLogger(__name__)

WEIGHT_EPSILON = 1e-6
PRESET_VERSION = "1"

PRESETS: dict[str, dict[str, float]] = {
    "balanced": {
        "skills": 0.30,
        "experience": 0.20,
        "education": 0.10,
        "location": 0.10,
        "preferences": 0.10,
        "salary": 0.10,
        "cultural_fit": 0.05,
        "ai_prediction": 0.05,
    },
    "skills-first": {
        "skills": 0.45,
        "experience": 0.15,
        "education": 0.10,
        "location": 0.08,
        "preferences": 0.07,
        "salary": 0.07,
        "cultural_fit": 0.04,
        "ai_prediction": 0.04,
    },
    "experience-first": {
        "skills": 0.20,
        "experience": 0.40,
        "education": 0.10,
        "location": 0.08,
        "preferences": 0.07,
        "salary": 0.07,
        "cultural_fit": 0.04,
        "ai_prediction": 0.04,
    },
    "potential-first": {
        "skills": 0.20,
        "experience": 0.10,
        "education": 0.20,
        "location": 0.08,
        "preferences": 0.10,
        "salary": 0.05,
        "cultural_fit": 0.15,
        "ai_prediction": 0.12,
    },
}


def validate_weight_map(weights: dict[str, float]) -> dict[str, float]:
    """Check factor names, non-negativity and sum-to-one. Returns a copy."""
    if not weights:
        raise ValidationError("Weight map is empty", field="weights")
    unknown = sorted(set(weights) - set(FACTOR_NAMES))
    if unknown:
        raise ValidationError(f"Unknown weight factors: {', '.join(unknown)}", field="weights", value=unknown)
    for name, value in weights.items():
        if not math.isfinite(value) or value < 0:
            raise ValidationError(f"Weight for {name} must be a finite non-negative number", field=name, value=value)
    total = sum(weights.values())
    if abs(total - 1.0) > WEIGHT_EPSILON:
        raise ValidationError(f"Weights must sum to 1 (got {total:.6f})", field="weights", value=total)
    return dict(weights)


def resolve_weights(weights: str | dict[str, float] | ScoreWeights | None = None, default: str = "balanced") -> ScoreWeights:
    """Turn a preset name, raw map or ScoreWeights into validated ScoreWeights."""
    if weights is None:
        weights = default
    if isinstance(weights, str):
        if weights not in PRESETS:
            raise ValidationError(f"Unknown weight strategy: {weights}", field="strategy", value=weights)
        return ScoreWeights(strategy=weights, version=PRESET_VERSION, weights=dict(PRESETS[weights]))
    if isinstance(weights, ScoreWeights):
        return ScoreWeights(strategy=weights.strategy, version=weights.version, weights=validate_weight_map(weights.weights))
    return ScoreWeights(strategy="custom", version=PRESET_VERSION, weights=validate_weight_map(weights))


def combine(factors: dict[str, float], weights: dict[str, float]) -> float:
    """Weighted average over the present factors, renormalized by their weight."""
    total_weight = sum(weights.get(name, 0.0) for name in factors)
    if total_weight <= 0:
        return 0.0
    value = sum(score * weights.get(name, 0.0) for name, score in factors.items()) / total_weight
    return max(0.0, min(1.0, value))
