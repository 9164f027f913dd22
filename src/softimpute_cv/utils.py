# utils.py
from __future__ import annotations
from typing import Optional, Tuple
import logging
import numpy as np
from numpy.typing import NDArray
from scipy.linalg import svd as dense_svd
from sklearn.utils.extmath import randomized_svd as skl_randomized_svd

from .BaseConfig import SVDBackend

logger = logging.getLogger(__name__)


def _validate_obs(X: NDArray, obs: Optional[NDArray], *, missing_value: Optional[float]) -> NDArray[np.bool_]:
    if obs is not None:
        obs = obs.astype(bool)
        if obs.shape != X.shape:
            raise ValueError("obs mask must match X.shape")
        return obs
    if missing_value is None:
        # treat NaN as missing
        return ~np.isnan(X)
    # else treat specific value as missing
    return ~(X == missing_value)


def _as_matrix(X, *, missing_value: Optional[float] = None) -> NDArray:
    '''
    Float copy of X with NaN marking every missing entry.
    '''
    Xa = np.array(X, dtype=float, copy=True)
    if Xa.ndim != 2:
        raise ValueError(f"Expected 2d matrix, got {Xa.shape} array")
    if missing_value is not None:
        Xa[~_validate_obs(Xa, None, missing_value=missing_value)] = np.nan
    return Xa


def _apply_center_scale(
    X: NDArray, obs: NDArray, *, center: bool, scale: bool
) -> Tuple[NDArray, Optional[float], Optional[float]]:
    Xw = X.copy()
    Xw[~obs] = 0.0
    mu = np.nanmean(Xw[obs]) if center else None
    if center and mu is not None:
        Xw[obs] = Xw[obs] - mu
    s = np.nanmax(np.abs(Xw[obs])) if scale and obs.any() else None
    if scale and s and s > 0:
        Xw[obs] = Xw[obs] / s
    return Xw, mu, s


def _invert_center_scale(Y: NDArray, mu: Optional[float], s: Optional[float]) -> NDArray:
    Z = Y.copy()
    if s and s > 0:
        Z = Z * s
    if mu is not None:
        Z = Z + mu
    return Z


def _truncated_svd(
    M: NDArray, rank: Optional[int], backend: SVDBackend = "auto", random_state: Optional[int] = None
) -> Tuple[NDArray, NDArray, NDArray]:
    m, n = M.shape
    k = min(rank or min(m, n), min(m, n))
    if backend == "auto":
        backend = "randomized" if (max(m, n) > 500 and k < min(m, n)//2) else "numpy"
    if backend == "randomized":
        U, s, Vt = skl_randomized_svd(M, n_components=k, random_state=random_state)
        return U[:, :k], s[:k], Vt[:k, :]
    if backend != "numpy":
        raise ValueError(f"Unknown SVD backend: {backend}")
    # numpy dense
    U, s, Vt = dense_svd(M, full_matrices=False)
    return U[:, :k], s[:k], Vt[:k, :]


def zero_filled(X: NDArray, obs: Optional[NDArray] = None) -> NDArray:
    if obs is None:
        obs = ~np.isnan(X)
    return np.where(obs, X, 0.0)


def spectral_norm(X: NDArray, obs: Optional[NDArray] = None) -> float:
    '''
    Leading singular value of X with its missing entries replaced by 0.
    This is the smallest penalty at which soft-impute returns the zero matrix.
    '''
    s = dense_svd(zero_filled(X, obs), compute_uv=False)
    return float(s[0]) if s.size else 0.0


def merge_observed(X: NDArray, Y: NDArray, obs: Optional[NDArray] = None) -> NDArray:
    '''
    Copy of X whose missing entries are taken from Y.
    Observed entries are left exactly as they are in X.
    '''
    if Y.shape != X.shape:
        raise ValueError(f"Reconstruction shape {Y.shape} does not match {X.shape}")
    if obs is None:
        obs = ~np.isnan(X)
    out = np.array(X, dtype=float, copy=True)
    out[~obs] = Y[~obs]
    return out
