"""Tests for matrix helpers and error metrics."""
import numpy as np
import pytest

from softimpute_cv.metrics import heldout_rss, mae_error, max_error, rmse_error
from softimpute_cv.utils import (
    _as_matrix,
    _truncated_svd,
    _validate_obs,
    merge_observed,
    spectral_norm,
    zero_filled,
)


class TestObservedMask:

    def test_nan_marks_missing(self):
        X = np.array([[1.0, np.nan], [np.nan, 4.0]])
        obs = _validate_obs(X, None, missing_value=None)
        assert obs.tolist() == [[True, False], [False, True]]

    def test_sentinel_marks_missing(self):
        X = np.array([[1.0, -1.0], [-1.0, 4.0]])
        obs = _validate_obs(X, None, missing_value=-1.0)
        assert obs.tolist() == [[True, False], [False, True]]

    def test_explicit_mask_shape_checked(self):
        with pytest.raises(ValueError):
            _validate_obs(np.zeros((2, 2)), np.ones((3, 2)), missing_value=None)

    def test_as_matrix_converts_sentinel_to_nan(self):
        Xa = _as_matrix([[1, -999], [3, 4]], missing_value=-999)
        assert np.isnan(Xa[0, 1])
        assert Xa.dtype == float

    def test_as_matrix_rejects_vectors(self):
        with pytest.raises(ValueError):
            _as_matrix(np.arange(4.0))


class TestSpectralHelpers:

    def test_spectral_norm_of_zero_filled_matrix(self):
        X = np.array([[3.0, np.nan], [np.nan, 4.0], [1.0, 2.0]])
        expected = np.linalg.norm(zero_filled(X), 2)
        assert spectral_norm(X) == pytest.approx(expected)

    def test_spectral_norm_all_missing_is_zero(self):
        assert spectral_norm(np.full((3, 2), np.nan)) == 0.0

    @pytest.mark.parametrize("backend", ["numpy", "randomized"])
    def test_truncated_svd_shapes(self, backend):
        M = np.random.default_rng(0).normal(size=(20, 7))
        U, s, Vt = _truncated_svd(M, 3, backend, random_state=0)
        assert U.shape == (20, 3)
        assert s.shape == (3,)
        assert Vt.shape == (3, 7)
        assert np.all(np.diff(s) <= 1e-12)

    def test_truncated_svd_unknown_backend(self):
        with pytest.raises(ValueError):
            _truncated_svd(np.eye(3), 2, "svds")

    def test_merge_observed_keeps_observed_entries(self):
        X = np.array([[1.5, np.nan], [np.nan, -2.25]])
        Y = np.full((2, 2), 9.0)
        out = merge_observed(X, Y)
        assert out.tolist() == [[1.5, 9.0], [9.0, -2.25]]
        assert np.isnan(X[0, 1])


class TestMetrics:

    def test_heldout_rss_is_not_normalized(self):
        X_true = np.zeros((2, 2))
        X_hat = np.array([[3.0, 100.0], [4.0, 0.0]])
        mask = np.array([[True, False], [True, False]])
        assert heldout_rss(X_true, X_hat, mask) == pytest.approx(5.0)

    def test_heldout_rss_empty_mask_is_nan(self):
        assert np.isnan(heldout_rss(np.zeros((2, 2)), np.ones((2, 2)), np.zeros((2, 2), bool)))

    def test_pointwise_errors(self):
        X_true = np.zeros(4).reshape(2, 2)
        X_hat = np.array([[1.0, -1.0], [3.0, -3.0]])
        assert rmse_error(X_hat, X_true) == pytest.approx(np.sqrt(5.0))
        assert mae_error(X_hat, X_true) == pytest.approx(2.0)
        assert max_error(X_hat, X_true) == pytest.approx(3.0)

    def test_shape_mismatch(self):
        with pytest.raises(ValueError):
            rmse_error(np.zeros((2, 2)), np.zeros((2, 3)))
