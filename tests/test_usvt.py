import numpy as np
import pytest

from softimpute_cv import USVT, USVTConfig, InsufficientDataError


def test_complete_keeps_observed_entries(small_missing_matrix):
    X = small_missing_matrix
    out = USVT(USVTConfig(rank=3)).fit_complete(X)
    obs = ~np.isnan(X)
    assert np.array_equal(out[obs], X[obs])
    assert not np.isnan(out).any()


def test_high_threshold_returns_zero_prediction(small_missing_matrix):
    model = USVT(USVTConfig(tau=1e6)).fit(small_missing_matrix)
    np.testing.assert_allclose(model.predict(), 0.0)


def test_clip(small_missing_matrix):
    Y = USVT(USVTConfig(tau=0.0)).fit(small_missing_matrix).predict(clip=(0.0, 1.0))
    assert Y.min() >= 0.0 and Y.max() <= 1.0


def test_all_missing_raises():
    with pytest.raises(InsufficientDataError):
        USVT().fit(np.full((3, 4), np.nan))


def test_predict_before_fit():
    with pytest.raises(RuntimeError):
        USVT().predict()


def test_fully_observed_zero_threshold_is_exact():
    X = np.random.default_rng(4).normal(size=(6, 4))
    model = USVT(USVTConfig(tau=0.0, scale=False)).fit(X)
    assert model.p_hat == 1.0
    assert model.n_components == 4
    np.testing.assert_allclose(model.predict(), X, atol=1e-10)


def test_factors_hold_only_kept_components(small_missing_matrix):
    model = USVT(USVTConfig(rank=4)).fit(small_missing_matrix)
    assert model.factors.shape == small_missing_matrix.shape
    assert model.factors.rank == max(model.n_components, 1)
    assert np.all(model.factors.d >= 0)
