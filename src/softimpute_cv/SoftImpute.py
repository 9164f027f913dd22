from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Tuple
import logging
import numpy as np
from numpy.typing import NDArray
from scipy.linalg import svd as dense_svd

from .BaseConfig import SoftImputeConfig, SoftImputeVariant
from .MatrixCompletionSolver import MatrixCompletionSolver
from .errors import FitFailureError, InsufficientDataError
from .utils import _as_matrix, _validate_obs, _apply_center_scale, _invert_center_scale, _truncated_svd

logger = logging.getLogger(__name__)

'''
Soft-impute: nuclear-norm regularized matrix completion, from the papers:
Mazumder, Hastie, Tibshirani. "Spectral Regularization Algorithms for Learning Large Incomplete Matrices." JMLR 11 (2010).
Hastie, Mazumder, Lee, Zadeh. "Matrix Completion and Low-Rank SVD via Fast Alternating Least Squares." JMLR 16 (2015).

Two variants are provided:
    "svd": iterated soft-thresholded SVD of the filled-in matrix (exact, slower).
    "als": alternating ridge regressions on the two factors (approximate, faster).
'''


@dataclass
class LowRankFactors:
    '''
    Fitted factors of a soft-impute model, X_hat = u @ diag(d) @ v.T.
    '''
    u: NDArray  # (n, k)
    d: NDArray  # (k,)
    v: NDArray  # (p, k)

    def __post_init__(self):
        # A rank one fit may come back as flat vectors
        self.d = np.atleast_1d(np.asarray(self.d, dtype=float))
        self.u = np.asarray(self.u, dtype=float).reshape(-1, len(self.d))
        self.v = np.asarray(self.v, dtype=float).reshape(-1, len(self.d))

    @property
    def rank(self) -> int:
        return len(self.d)

    @property
    def shape(self) -> Tuple[int, int]:
        return self.u.shape[0], self.v.shape[0]

    def reconstruct(self) -> NDArray:
        return (self.u * self.d) @ self.v.T


def _frob_ratio(U_old, d_old, V_old, U, d, V) -> float:
    # ||U d V' - U_old d_old V_old'||_F^2 / ||U_old d_old V_old'||_F^2 for orthonormal U, V
    denom = np.sum(d_old ** 2)
    utu = d[:, None] * (U.T @ U_old)
    vtv = d_old[:, None] * (V_old.T @ V)
    uvprod = np.trace(utu @ vtv)
    num = denom + np.sum(d ** 2) - 2 * uvprod
    return float(num / max(denom, 1e-9))


class SoftImpute(MatrixCompletionSolver):
    '''
    Low-rank completion by soft-thresholding singular values at lambda_.
    Larger lambda_ gives fewer non-zero singular values.
    '''

    def __init__(self, config: Optional[SoftImputeConfig] = None):
        super().__init__(config if config is not None else SoftImputeConfig())
        self.U = None
        self.d = None
        self.V = None
        self.n_iter = 0
        self.converged = False
        self._mu = None
        self._s = None

    def fit(self, X: NDArray, obs: Optional[NDArray] = None, *, missing_value: Optional[float] = None):
        cfg: SoftImputeConfig = self.config  # type: ignore
        Xa = _as_matrix(X, missing_value=missing_value)
        obs = _validate_obs(Xa, obs, missing_value=None)
        if not obs.any():
            raise InsufficientDataError("soft-impute needs at least one observed entry")
        if not np.all(np.isfinite(Xa[obs])):
            raise ValueError("Observed entries must be finite")
        Xw, mu, s = _apply_center_scale(Xa, obs, center=cfg.center, scale=cfg.scale)
        self._mu, self._s = mu, s

        m, n = Xw.shape
        k = min(cfg.rank or min(m, n), m, n)
        if cfg.rank is not None and k < cfg.rank:
            logger.debug("rank %d capped to %d for a %dx%d matrix", cfg.rank, k, m, n)

        try:
            if cfg.variant == "svd":
                U, d, V = self._fit_svd(Xw, obs, cfg.lambda_, k)
            else:
                U, d, V = self._fit_als(Xw, obs, cfg.lambda_, k)
        except np.linalg.LinAlgError as exc:
            raise FitFailureError(f"SVD failed at lambda={cfg.lambda_:.4g}: {exc}", cfg.lambda_) from exc

        if not (np.all(np.isfinite(U)) and np.all(np.isfinite(d)) and np.all(np.isfinite(V))):
            raise FitFailureError(f"Non-finite factors at lambda={cfg.lambda_:.4g}", cfg.lambda_)
        if not self.converged:
            msg = f"Convergence not achieved by {cfg.maxit} iterations (lambda={cfg.lambda_:.4g})"
            if cfg.strict_convergence:
                raise FitFailureError(msg, cfg.lambda_)
            logger.warning(msg)

        # Drop components shrunk to zero, keep at least one
        keep = max(int(np.sum(d > 0)), 1)
        self.U, self.d, self.V = U[:, :keep], d[:keep], V[:, :keep]
        logger.debug("soft-impute(%s) lambda=%.4g rank=%d iterations=%d",
                     cfg.variant, cfg.lambda_, int(np.sum(self.d > 0)), self.n_iter)
        self._fitted = True
        return self

    def _fit_svd(self, Xw, obs, lam, k):
        cfg: SoftImputeConfig = self.config  # type: ignore
        xfill = np.where(obs, Xw, 0.0)
        U, d, Vt = _truncated_svd(xfill, k, cfg.svd_backend, cfg.random_state)
        V = Vt.T
        self.converged = False
        for it in range(1, cfg.maxit + 1):
            U_old, d_old, V_old = U, d, V
            xhat = (U * np.maximum(d - lam, 0.0)) @ V.T
            xfill[~obs] = xhat[~obs]
            U, d, Vt = _truncated_svd(xfill, k, cfg.svd_backend, cfg.random_state)
            V = Vt.T
            self.n_iter = it
            if _frob_ratio(U_old, d_old, V_old, U, d, V) < cfg.thresh:
                self.converged = True
                break
        return U, np.maximum(d - lam, 0.0), V

    def _fit_als(self, Xw, obs, lam, k):
        cfg: SoftImputeConfig = self.config  # type: ignore
        m, n = Xw.shape
        rng = np.random.default_rng(cfg.random_state)
        U = dense_svd(rng.standard_normal((m, k)), full_matrices=False)[0]
        Dsq = np.ones(k)
        V = np.zeros((n, k))
        xfill = np.where(obs, Xw, 0.0)
        missing = ~obs
        self.converged = False
        for it in range(1, cfg.maxit + 1):
            U_old, V_old, Dsq_old = U, V, Dsq

            # V step: ridge regression of the filled matrix on U
            B = U.T @ xfill
            if lam > 0:
                B = B * (Dsq / (Dsq + lam))[:, None]
            Bu, Bs, Bvt = dense_svd(B.T, full_matrices=False)
            V, Dsq, U = Bu, Bs, U @ Bvt.T
            xhat = (U * Dsq) @ V.T
            xfill[missing] = xhat[missing]

            # U step
            A = (xfill @ V).T
            if lam > 0:
                A = A * (Dsq / (Dsq + lam))[:, None]
            Au, As, Avt = dense_svd(A.T, full_matrices=False)
            U, Dsq, V = Au, As, V @ Avt.T
            xhat = (U * Dsq) @ V.T
            xfill[missing] = xhat[missing]

            self.n_iter = it
            if _frob_ratio(U_old, Dsq_old, V_old, U, Dsq, V) < cfg.thresh:
                self.converged = True
                break

        # Final SVD of the completed matrix, then soft-threshold
        su, sd, svt = dense_svd(xfill @ V, full_matrices=False)
        return su, np.maximum(sd - lam, 0.0), V @ svt.T

    @property
    def factors(self) -> LowRankFactors:
        self._check_fitted()
        return LowRankFactors(self.U, self.d, self.V)

    def predict(self, *, clip: Optional[Tuple[float, float]] = None) -> NDArray:
        self._check_fitted()
        Y = _invert_center_scale(self.factors.reconstruct(), self._mu, self._s)
        if clip is not None:
            Y = np.clip(Y, *clip)
        return Y


def soft_impute_fit(
    X: NDArray,
    lam: float,
    rank: Optional[int] = None,
    variant: Optional[SoftImputeVariant] = None,
    random_state: Optional[int] = None,
) -> LowRankFactors:
    '''
    Fit soft-impute on X (NaN = missing) and return its factors.
    rank and variant fall back to the SoftImputeConfig defaults when None.
    '''
    kwargs = {"lambda_": lam, "random_state": random_state}
    if rank is not None:
        kwargs["rank"] = rank
    if variant is not None:
        kwargs["variant"] = variant
    return SoftImpute(SoftImputeConfig(**kwargs)).fit(X).factors
