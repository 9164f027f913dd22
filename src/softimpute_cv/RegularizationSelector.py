from __future__ import annotations
from typing import Callable, Optional
import logging
import numpy as np
import pandas as pd
from numpy.typing import NDArray

from .BaseConfig import SelectorConfig, SoftImputeVariant
from .MatrixCompletionDataGenerator import MaskingStrategy, produce_mcar
from .SoftImpute import LowRankFactors, soft_impute_fit
from .errors import FitFailureError, InsufficientDataError, ShapeMismatchError
from .metrics import heldout_rss
from .utils import _as_matrix, merge_observed, spectral_norm

logger = logging.getLogger(__name__)

'''
Cross-validated choice of the soft-impute penalty.

Each repetition hides an extra fraction of the observed entries, fits the
completion model at every penalty on a log-spaced grid, and scores the fit
on the hidden entries. The penalty with the lowest mean score wins.
'''

# (X, lam, rank=None, variant=None, random_state=None) -> LowRankFactors
FitFunction = Callable[..., LowRankFactors]


def build_regularization_grid(X: NDArray, grid_length: int = 20, lower_ratio: float = 1e-3,
                              *, missing_value: Optional[float] = None) -> NDArray:
    '''
    grid_length penalties, log-spaced from lower_ratio * sigma_max up to
    sigma_max inclusive, where sigma_max is the leading singular value of the
    zero-filled matrix.
    '''
    if grid_length < 2:
        raise ValueError("grid_length must be at least 2")
    if not 0.0 < lower_ratio < 1.0:
        raise ValueError(f"lower_ratio must be in (0, 1), got {lower_ratio}")
    Xa = _as_matrix(X, missing_value=missing_value)
    obs = ~np.isnan(Xa)
    if not obs.any():
        raise InsufficientDataError("Matrix has no observed entries; cannot bound the penalty grid")
    sigma_max = spectral_norm(Xa, obs)
    if not sigma_max > 0:
        raise InsufficientDataError("Zero-filled matrix has no non-zero singular value")
    return np.geomspace(lower_ratio * sigma_max, sigma_max, grid_length)


class RegularizationSelector:
    '''
    Grid search over the soft-impute penalty by repeated MCAR hold-out.

    fit_fn and masker are pluggable so the search can run on any solver and
    any masking scheme. After fit():
        grid_          ascending penalty grid
        scores_        (repetitions, grid_length) held-out root-sum-of-squares
        mean_scores_   column means of scores_
        best_index_    first index of the minimal mean score
        best_lambda_   grid_[best_index_]
    '''

    def __init__(self, config: Optional[SelectorConfig] = None,
                 fit_fn: FitFunction = soft_impute_fit,
                 masker: MaskingStrategy = produce_mcar):
        self.config = config if config is not None else SelectorConfig()
        self.fit_fn = fit_fn
        self.masker = masker
        self.grid_ = None
        self.scores_ = None
        self.mean_scores_ = None
        self.best_index_ = None
        self.best_lambda_ = None
        self.skipped_repetitions_ = []
        self._fitted = False

    def fit(self, X, *, missing_value: Optional[float] = None):
        cfg = self.config
        Xa = _as_matrix(X, missing_value=missing_value)
        obs = ~np.isnan(Xa)
        self.grid_ = build_regularization_grid(Xa, cfg.grid_length, cfg.lower_ratio)
        logger.info("Penalty grid: %d values in [%.4g, %.4g]", len(self.grid_), self.grid_[0], self.grid_[-1])

        rng = np.random.default_rng(cfg.random_state)
        scores = np.full((cfg.repetitions, len(self.grid_)), np.nan)
        self.skipped_repetitions_ = []
        for rep in range(cfg.repetitions):
            X_masked = self._mask(Xa, obs, rng)
            held_out = np.isnan(X_masked) & obs
            if not held_out.any():
                # Every grid point would be scored over zero entries
                logger.warning("Repetition %d held out no observed entries; skipped", rep)
                self.skipped_repetitions_.append(rep)
                continue
            scores[rep] = self._score_repetition(Xa, X_masked, held_out, rng, rep)

        valid = np.ones(cfg.repetitions, dtype=bool)
        valid[self.skipped_repetitions_] = False
        if not valid.any():
            raise InsufficientDataError(
                f"All {cfg.repetitions} repetitions held out zero entries; too few observed values")
        self.scores_ = scores[valid]
        self.mean_scores_ = self.scores_.mean(axis=0)
        if not np.any(np.isfinite(self.mean_scores_)):
            raise FitFailureError("Completion fit failed at every grid point")

        self.best_index_ = int(np.argmin(self.mean_scores_))
        self.best_lambda_ = float(self.grid_[self.best_index_])
        logger.info("Selected lambda=%.4g (grid index %d, mean score %.4g over %d repetitions)",
                    self.best_lambda_, self.best_index_, self.mean_scores_[self.best_index_], len(self.scores_))
        self._fitted = True
        return self

    def _mask(self, Xa: NDArray, obs: NDArray, rng: np.random.Generator) -> NDArray:
        X_masked = np.asarray(self.masker(Xa.copy(), self.config.missing_fraction, rng), dtype=float)
        if X_masked.shape != Xa.shape:
            raise ShapeMismatchError("masking strategy", Xa.shape, X_masked.shape)
        if not np.isnan(X_masked[~obs]).all():
            raise ValueError("masking strategy revealed entries that were missing in the input")
        return X_masked

    def _score_repetition(self, Xa, X_masked, held_out, rng, rep) -> NDArray:
        cfg = self.config
        row = np.empty(len(self.grid_))
        for j, lam in enumerate(self.grid_):
            seed = int(rng.integers(0, 2**31 - 1))
            try:
                factors = self.fit_fn(X_masked, lam, rank=cfg.rank, variant=cfg.variant, random_state=seed)
            except FitFailureError as exc:
                if cfg.on_fit_failure == "raise":
                    raise
                logger.warning("Fit failed at lambda=%.4g in repetition %d, scored as +inf: %s", lam, rep, exc)
                row[j] = np.inf
                continue
            X_hat = factors.reconstruct()
            if X_hat.shape != Xa.shape:
                raise ShapeMismatchError("completion fit", Xa.shape, X_hat.shape)
            row[j] = heldout_rss(Xa, X_hat, held_out)
            logger.debug("rep=%d lambda=%.4g rank=%d score=%.6g", rep, lam, factors.rank, row[j])
        return row

    def score_table(self) -> pd.DataFrame:
        '''
        One row per grid point: penalty, mean and std of the held-out error.
        '''
        self._check_fitted()
        table = pd.DataFrame({
            'lambda': self.grid_,
            'mean_score': self.mean_scores_,
            'std_score': self.scores_.std(axis=0),
            'n_repetitions': len(self.scores_),
        })
        table['selected'] = table.index == self.best_index_
        return table

    def transform(self, X, *, missing_value: Optional[float] = None, random_state: Optional[int] = None):
        self._check_fitted()
        return impute(X, self.best_lambda_, missing_value=missing_value,
                      rank=self.config.rank, variant=self.config.variant,
                      random_state=random_state, fit_fn=self.fit_fn)

    def _check_fitted(self):
        if not self._fitted:
            raise RuntimeError("Call fit() before using the selection results.")


def select_regularization(
    matrix,
    repetitions: int = 10,
    grid_length: int = 20,
    *,
    missing_fraction: float = 0.2,
    lower_ratio: float = 1e-3,
    on_fit_failure: str = "raise",
    random_state: Optional[int] = None,
    rank: Optional[int] = None,
    variant: Optional[SoftImputeVariant] = None,
    missing_value: Optional[float] = None,
    fit_fn: FitFunction = soft_impute_fit,
    masker: MaskingStrategy = produce_mcar,
) -> float:
    '''
    Penalty on the log grid with the lowest mean held-out error.
    '''
    config = SelectorConfig(
        repetitions=repetitions,
        grid_length=grid_length,
        missing_fraction=missing_fraction,
        lower_ratio=lower_ratio,
        on_fit_failure=on_fit_failure,
        random_state=random_state,
        rank=rank,
        variant=variant,
    )
    selector = RegularizationSelector(config, fit_fn=fit_fn, masker=masker)
    return selector.fit(matrix, missing_value=missing_value).best_lambda_


def impute(
    matrix,
    regularization: float,
    *,
    rank: Optional[int] = None,
    variant: Optional[SoftImputeVariant] = None,
    random_state: Optional[int] = None,
    missing_value: Optional[float] = None,
    fit_fn: FitFunction = soft_impute_fit,
):
    '''
    Fit once at the given penalty and fill only the missing entries.
    Observed entries are returned unchanged. A DataFrame in gives a DataFrame out.
    '''
    if not regularization >= 0:
        raise ValueError(f"regularization must be non-negative, got {regularization}")
    Xa = _as_matrix(matrix, missing_value=missing_value)
    obs = ~np.isnan(Xa)
    if not obs.any():
        raise InsufficientDataError("Matrix has no observed entries")
    factors = fit_fn(Xa, regularization, rank=rank, variant=variant, random_state=random_state)
    X_hat = factors.reconstruct()
    if X_hat.shape != Xa.shape:
        raise ShapeMismatchError("completion fit", Xa.shape, X_hat.shape)
    out = merge_observed(Xa, X_hat, obs)
    logger.info("Imputed %d missing entries at lambda=%.4g (rank %d)", int((~obs).sum()), regularization, factors.rank)
    if isinstance(matrix, pd.DataFrame):
        return pd.DataFrame(out, index=matrix.index, columns=matrix.columns)
    return out
