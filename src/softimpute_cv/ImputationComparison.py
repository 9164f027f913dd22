from typing import Callable, Dict, Iterable, Optional
import logging
import numpy as np
import pandas as pd
from numpy.typing import NDArray
from sklearn.experimental import enable_iterative_imputer  # noqa: F401
from sklearn.impute import IterativeImputer, SimpleImputer
from sklearn.linear_model import BayesianRidge

from .BaseConfig import USVTConfig
from .MatrixCompletionDataGenerator import produce_mcar
from .RegularizationSelector import impute, select_regularization
from .USVT import USVT
from .metrics import mae_error, max_error, rmse_error
from .utils import _as_matrix

logger = logging.getLogger(__name__)

'''
Side-by-side comparison of imputation methods on entries hidden from a
known matrix: column mean, soft-impute with a cross-validated penalty,
USVT, and multiple imputation by chained equations.
'''

Imputer = Callable[[NDArray, int], NDArray]


def mean_imputer(X_miss: NDArray, seed: int) -> NDArray:
    return SimpleImputer(strategy="mean", keep_empty_features=True).fit_transform(X_miss)


def make_softimpute_cv_imputer(repetitions=5, grid_length=20, missing_fraction=0.2) -> Imputer:
    def softimpute_cv_imputer(X_miss: NDArray, seed: int) -> NDArray:
        lam = select_regularization(X_miss, repetitions=repetitions, grid_length=grid_length,
                                    missing_fraction=missing_fraction, random_state=seed)
        return impute(X_miss, lam, random_state=seed)
    return softimpute_cv_imputer


def usvt_imputer(X_miss: NDArray, seed: int) -> NDArray:
    return USVT(USVTConfig(random_state=seed)).fit_complete(X_miss)


def make_mice_imputer(n_imputations=5, max_iter=10) -> Imputer:
    '''
    Chained equations with posterior draws; the n_imputations completed
    matrices are pooled by averaging.
    '''
    def mice_imputer(X_miss: NDArray, seed: int) -> NDArray:
        draws = []
        for i in range(n_imputations):
            mice = IterativeImputer(estimator=BayesianRidge(), sample_posterior=True,
                                    max_iter=max_iter, random_state=seed + i,
                                    keep_empty_features=True)
            draws.append(mice.fit_transform(X_miss))
        return np.mean(draws, axis=0)
    return mice_imputer


def default_methods(cv_repetitions=5, grid_length=20, n_imputations=5) -> Dict[str, Imputer]:
    return {
        'mean': mean_imputer,
        'softimpute_cv': make_softimpute_cv_imputer(cv_repetitions, grid_length),
        'usvt': usvt_imputer,
        'mice': make_mice_imputer(n_imputations),
    }


def compare_imputers(X_complete, missing_fraction: float = 0.2, repetitions: int = 5,
                     methods: Optional[Dict[str, Imputer]] = None,
                     random_state: int = 0, verbose: bool = False) -> pd.DataFrame:
    '''
    Runs every method on the same MCAR-masked copies of X_complete and
    scores each on the entries that were hidden but known.
    X_complete may itself contain NaN; those entries are never scored.
    '''
    X_true = _as_matrix(X_complete)
    known = ~np.isnan(X_true)
    methods = methods if methods is not None else default_methods()
    rng = np.random.default_rng(random_state)

    results = []
    for rep in range(repetitions):
        seed = random_state + rep
        X_miss = produce_mcar(X_true, missing_fraction, rng)
        held_out = np.isnan(X_miss) & known
        for name, imputer in methods.items():
            X_hat = np.asarray(imputer(X_miss.copy(), seed), dtype=float)
            results.append({
                'method': name,
                'rmse': rmse_error(X_hat, X_true, held_out),
                'mae': mae_error(X_hat, X_true, held_out),
                'max_error': max_error(X_hat, X_true, held_out),
                'n_held_out': int(held_out.sum()),
                'repetition': rep,
                'seed': seed,
                'missing_fraction': missing_fraction,
            })
        if verbose:
            logger.info("Finished repetition %d of %d", rep + 1, repetitions)

    return pd.DataFrame(results)


def summarize(results: pd.DataFrame, metrics: Iterable[str] = ('rmse', 'mae')) -> pd.DataFrame:
    metrics = list(metrics)
    return results.groupby('method')[metrics].agg(['mean', 'std']).sort_values((metrics[0], 'mean'))
