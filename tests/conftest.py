import numpy as np
import pytest

from softimpute_cv import LowRankDataGenerator, LowRankFactors


@pytest.fixture
def low_rank_sample():
    """30x8 rank-2 matrix and a copy with 20% of entries missing."""
    data_gen = LowRankDataGenerator(30, 8, 2, noise=0.0, seed=1)
    return data_gen.generate_sample(0.2)


@pytest.fixture
def small_missing_matrix():
    rng = np.random.default_rng(3)
    X = rng.normal(size=(12, 6)) + 2.0
    X[rng.uniform(size=X.shape) < 0.15] = np.nan
    return X


def constant_fit(X, lam, rank=None, variant=None, random_state=None):
    """Stub solver whose reconstruction is lam everywhere."""
    n, p = X.shape
    return LowRankFactors(np.ones((n, 1)), np.array([lam]), np.ones((p, 1)))


def flat_fit(X, lam, rank=None, variant=None, random_state=None):
    """Stub solver that ignores lam and reconstructs zeros."""
    n, p = X.shape
    return LowRankFactors(np.zeros((n, 1)), np.array([1.0]), np.zeros((p, 1)))


def first_column_masker(X, missing_fraction, rng):
    """Deterministic masker hiding the first column."""
    X = X.copy()
    X[:, 0] = np.nan
    return X
