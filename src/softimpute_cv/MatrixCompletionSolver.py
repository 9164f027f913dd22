from typing import Optional, Tuple
from numpy.typing import NDArray
from .BaseConfig import BaseConfig
from .utils import _as_matrix, _validate_obs, merge_observed

'''
Base solver class and interface.
Basic requirements for all solvers: fit, predict, check_fitted.
complete() is shared: it keeps observed entries and fills the rest.
'''

class MatrixCompletionSolver:
    """Abstract base class for matrix completion."""

    def __init__(self, config: Optional[BaseConfig] = None):
        self.config = config if config is not None else BaseConfig()
        self._fitted = False

    def fit(self, X: NDArray, obs: Optional[NDArray] = None, *, missing_value: Optional[float] = None):
        raise NotImplementedError

    def predict(self, *, clip: Optional[Tuple[float, float]] = None) -> NDArray:
        raise NotImplementedError

    def complete(self, X: NDArray, obs: Optional[NDArray] = None, *, missing_value: Optional[float] = None) -> NDArray:
        '''
        Fill the missing entries of X with the fitted reconstruction.
        '''
        self._check_fitted()
        Xa = _as_matrix(X, missing_value=missing_value)
        obs = _validate_obs(Xa, obs, missing_value=None)
        return merge_observed(Xa, self.predict(), obs)

    def fit_complete(self, X: NDArray, obs: Optional[NDArray] = None, *, missing_value: Optional[float] = None) -> NDArray:
        return self.fit(X, obs, missing_value=missing_value).complete(X, obs, missing_value=missing_value)

    def _check_fitted(self):
        if not self._fitted:
            raise RuntimeError("Call fit() before predict().")
