from typing import Optional, Tuple
import logging
import numpy as np
from numpy.typing import NDArray

from .BaseConfig import USVTConfig
from .MatrixCompletionSolver import MatrixCompletionSolver
from .SoftImpute import LowRankFactors
from .errors import InsufficientDataError
from .utils import _as_matrix, _validate_obs, _apply_center_scale, _invert_center_scale, _truncated_svd

logger = logging.getLogger(__name__)

'''
Universal singular value thresholding, from the paper:
CHATTERJEE, SOURAV. "MATRIX ESTIMATION BY UNIVERSAL SINGULAR VALUE THRESHOLDING." The Annals of Statistics 43.1 (2015): 177-214.

A single hard-thresholded SVD of the zero-filled matrix, rescaled by the
observed fraction. No penalty to tune, so it serves as a one-shot baseline
next to soft-impute.
'''


class USVT(MatrixCompletionSolver):
    '''
    Keeps the singular components of the zero-filled matrix above tau and
    divides by the estimated sampling rate p_hat.
    '''

    def __init__(self, config: Optional[USVTConfig] = None):
        super().__init__(config if config is not None else USVTConfig())
        self.tau = None
        self.p_hat = None
        self.n_components = 0
        self._factors = None
        self._mu = None
        self._s = None

    def threshold(self, shape: Tuple[int, int], p_hat: float) -> float:
        cfg: USVTConfig = self.config  # type: ignore
        if cfg.tau is not None:
            return cfg.tau
        return cfg.tau_multiplier * np.sqrt(max(shape) * p_hat)

    def fit(self, X: NDArray, obs: Optional[NDArray] = None, *, missing_value: Optional[float] = None):
        cfg: USVTConfig = self.config  # type: ignore
        Xa = _as_matrix(X, missing_value=missing_value)
        obs = _validate_obs(Xa, obs, missing_value=None)
        if not obs.any():
            raise InsufficientDataError("USVT needs at least one observed entry")

        Xw, self._mu, self._s = _apply_center_scale(Xa, obs, center=cfg.center, scale=cfg.scale)
        self.p_hat = max(float(obs.mean()), 1e-8) if cfg.use_p_hat else 1.0
        self.tau = self.threshold(Xw.shape, self.p_hat)

        U, svals, Vt = _truncated_svd(np.where(obs, Xw, 0.0), cfg.rank, cfg.svd_backend, cfg.random_state)
        above = svals > self.tau
        self.n_components = int(above.sum())
        if self.n_components == 0:
            logger.info("USVT threshold %.4g removed all components; prediction is zero", self.tau)
            d = np.zeros(1)
            above = np.arange(len(svals)) == 0
        else:
            d = svals[above] / self.p_hat
        self._factors = LowRankFactors(U[:, above], d, Vt[above, :].T)
        logger.debug("USVT kept %d of %d components (tau=%.4g, p_hat=%.3f)",
                     self.n_components, len(svals), self.tau, self.p_hat)
        self._fitted = True
        return self

    @property
    def factors(self) -> LowRankFactors:
        self._check_fitted()
        return self._factors

    def predict(self, *, clip: Optional[Tuple[float, float]] = None) -> NDArray:
        Y = _invert_center_scale(self.factors.reconstruct(), self._mu, self._s)
        return Y if clip is None else np.clip(Y, *clip)
