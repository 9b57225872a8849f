"""Tests for the offline evaluation metrics used by train_latent_factors."""

import math

import pytest

from utils.metrics import mae, ndcg_at_k, precision_at_k, rmse, spearman_correlation


class TestErrorMetrics:
    def test_rmse_and_mae(self):
        assert rmse([1.0, 2.0], [1.0, 4.0]) == pytest.approx(math.sqrt(2.0))
        assert mae([1.0, 2.0], [1.0, 4.0]) == pytest.approx(1.0)

    def test_shape_mismatch(self):
        with pytest.raises(ValueError):
            rmse([1.0, 2.0], [1.0])

    def test_empty(self):
        with pytest.raises(ValueError):
            mae([], [])


class TestRankingMetrics:
    def test_spearman_monotonic(self):
        corr = spearman_correlation([1, 2, 3, 4], [10, 20, 30, 40])
        assert corr["spearman_rho"] == pytest.approx(1.0)
        reversed_corr = spearman_correlation([1, 2, 3, 4], [4, 3, 2, 1])
        assert reversed_corr["spearman_rho"] == pytest.approx(-1.0)

    def test_ndcg_perfect_and_worst(self):
        assert ndcg_at_k([3, 2, 0], [0.9, 0.5, 0.1], k=3) == pytest.approx(1.0)
        assert ndcg_at_k([0, 0, 1], [0.9, 0.5, 0.1], k=2) == 0.0

    def test_ndcg_no_relevant_items(self):
        assert ndcg_at_k([0, 0], [0.5, 0.4], k=2) == 0.0

    def test_precision_at_k(self):
        assert precision_at_k(["a", "b", "c", "d"], {"a", "c"}, k=2) == 0.5
        assert precision_at_k([], {"a"}, k=3) == 0.0
        with pytest.raises(ValueError):
            precision_at_k(["a"], {"a"}, k=0)
