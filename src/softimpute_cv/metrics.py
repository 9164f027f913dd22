from typing import Optional
import numpy as np
from numpy.typing import NDArray

'''
Reconstruction errors, optionally restricted to a boolean mask of positions.
'''


def _select(X_hat: NDArray, X_true: NDArray, mask: Optional[NDArray]):
    if X_hat.shape != X_true.shape:
        raise ValueError(f"Shapes differ: {X_hat.shape} vs {X_true.shape}")
    if mask is None:
        return X_hat.ravel(), X_true.ravel()
    return X_hat[mask], X_true[mask]


def heldout_rss(X_true: NDArray, X_hat: NDArray, mask: NDArray) -> float:
    '''
    Root of the summed squared error over mask (not divided by the count).
    NaN when the mask selects nothing.
    '''
    a, b = _select(X_hat, X_true, mask)
    if a.size == 0:
        return float("nan")
    return float(np.sqrt(np.sum((a - b) ** 2)))


def frob_error(X_hat, X_true, mask=None):
    a, b = _select(X_hat, X_true, mask)
    return float(np.linalg.norm(a - b))


def rmse_error(X_hat, X_true, mask=None):
    a, b = _select(X_hat, X_true, mask)
    return float(np.sqrt(np.mean((a - b) ** 2))) if a.size else float("nan")


def mae_error(X_hat, X_true, mask=None):
    a, b = _select(X_hat, X_true, mask)
    return float(np.mean(np.abs(a - b))) if a.size else float("nan")


def max_error(X_hat, X_true, mask=None):
    a, b = _select(X_hat, X_true, mask)
    return float(np.max(np.abs(a - b))) if a.size else float("nan")
