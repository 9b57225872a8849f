"""Tests for weight presets and custom weight validation."""

import pytest

from models.schemas.score_breakdown import ScoreWeights
from services.exceptions import ValidationError
from services.matching.weights import PRESETS, combine, resolve_weights, validate_weight_map


class TestPresets:
    @pytest.mark.parametrize("name", sorted(PRESETS))
    def test_presets_sum_to_one(self, name):
        assert sum(PRESETS[name].values()) == pytest.approx(1.0, abs=1e-6)

    def test_resolve_preset(self):
        weights = resolve_weights("skills-first")
        assert weights.strategy == "skills-first"
        assert weights.weights["skills"] == 0.45

    def test_default_strategy(self):
        assert resolve_weights(None).strategy == "balanced"

    def test_unknown_preset(self):
        with pytest.raises(ValidationError, match="Unknown weight strategy"):
            resolve_weights("vibes-first")


class TestCustomWeights:
    def test_valid_map(self):
        weights = resolve_weights({"skills": 0.5, "experience": 0.5})
        assert weights.strategy == "custom"

    def test_scoreweights_passthrough(self):
        weights = resolve_weights(ScoreWeights(strategy="team-a", version="7", weights={"skills": 1.0}))
        assert (weights.strategy, weights.version) == ("team-a", "7")

    def test_tolerance(self):
        validate_weight_map({"skills": 0.5, "experience": 0.5000004})

    @pytest.mark.parametrize("weights,message", [
        ({}, "empty"),
        ({"skills": 0.6, "experience": 0.6}, "sum to 1"),
        ({"skills": 1.2, "experience": -0.2}, "non-negative"),
        ({"skills": 0.5, "charisma": 0.5}, "Unknown weight factors"),
        ({"skills": float("nan"), "experience": 1.0}, "finite"),
    ])
    def test_rejected(self, weights, message):
        with pytest.raises(ValidationError, match=message) as exc:
            validate_weight_map(weights)
        assert exc.value.error_code == "VALIDATION_ERROR"


class TestCombine:
    def test_renormalizes_over_present_factors(self):
        # (1.0 x 0.3 + 0.5 x 0.2) / 0.5
        assert combine({"skills": 1.0, "experience": 0.5}, PRESETS["balanced"]) == pytest.approx(0.8)

    def test_nothing_present(self):
        assert combine({}, PRESETS["balanced"]) == 0.0

    def test_zero_weight_factors_only(self):
        assert combine({"skills": 0.9}, {"skills": 0.0, "experience": 1.0}) == 0.0
