from typing import Callable, Optional, Tuple
import logging
import numpy as np
from numpy.typing import NDArray

logger = logging.getLogger(__name__)

# (X, missing_fraction, rng) -> copy of X with extra NaN entries
MaskingStrategy = Callable[[NDArray, float, np.random.Generator], NDArray]


def produce_mcar(X: NDArray, missing_fraction: float, rng: Optional[np.random.Generator] = None) -> NDArray:
    '''
    Add missing-completely-at-random entries to X.

    round(missing_fraction * X.size) currently observed entries, and at least
    one when missing_fraction > 0, are drawn uniformly without replacement and
    set to NaN. Entries already missing are never drawn, and at least one
    observed entry is always left in place, so the count is capped at
    (number observed - 1).
    '''
    if not 0.0 <= missing_fraction <= 1.0:
        raise ValueError(f"missing_fraction must be in [0, 1], got {missing_fraction}")
    rng = rng if rng is not None else np.random.default_rng()
    X_miss = np.array(X, dtype=float, copy=True)
    observed = np.flatnonzero(~np.isnan(X_miss))
    n_new = int(round(missing_fraction * X_miss.size))
    if missing_fraction > 0:
        n_new = max(n_new, 1)
    n_new = min(n_new, max(len(observed) - 1, 0))
    if n_new > 0:
        chosen = rng.choice(observed, size=n_new, replace=False)
        X_miss.flat[chosen] = np.nan
    logger.debug("MCAR mask: %d new missing of %d observed", n_new, len(observed))
    return X_miss


class LowRankDataGenerator:
    '''
    Generator of synthetic low-rank matrices for imputation experiments.

    The complete matrix is U diag(s) V' with random orthonormal U, V and
    singular values drawn from a chosen distribution, plus optional Gaussian
    noise. Missing entries are then introduced with produce_mcar.
    '''
    def __init__(self, n, p, rank, noise=0.0, sv_distribution='uniform', sv_params=None, seed=0):
        """Initialize generator with matrix dimensions and spectrum.

        Args:
            n (int): Number of rows (observations)
            p (int): Number of columns (variables)
            rank (int): Rank of the noiseless matrix
            noise (float): Standard deviation of additive Gaussian noise (default: 0.0)
            sv_distribution (str): Type of singular value distribution
                                 ('wigner', 'uniform', 'exponential', 'constant')
            sv_params (dict): Parameters for singular value generation
            seed (int): Random seed (default: 0)
        """
        if rank < 1 or rank > min(n, p):
            raise ValueError(f"Bad rank: {rank}. Must be in [1, {min(n, p)}].")
        self.n = n
        self.p = p
        self.d = rank
        self.noise = noise
        self.sv_distribution = sv_distribution
        self.sv_params = sv_params or {}
        self.rng = np.random.default_rng(seed)

        self.s = self._gen_singular_values()
        self.U = self._gen_random_rotation_matrix(n)[:, :self.d].copy()
        self.V = self._gen_random_rotation_matrix(p)[:, :self.d].copy()
        self.M = self._construct_matrix(self.U, self.V, self.s)

    def _gen_random_rotation_matrix(self, d):
        """Generate random rotation matrix using QR decomposition."""
        Q, _ = np.linalg.qr(self.rng.normal(size=(d, d)))
        return Q

    def _construct_matrix(self, U, V, s):
        """Construct matrix from its SVD components."""
        return U @ np.diag(s[:self.d]) @ V.T

    def generate_complete(self) -> NDArray:
        """Low-rank matrix plus a fresh draw of noise."""
        if self.noise > 0:
            return self.M + self.rng.normal(0, self.noise, size=self.M.shape)
        return self.M.copy()

    def generate_sample(self, missing_fraction=0.2) -> Tuple[NDArray, NDArray]:
        """Generate complete and masked matrices for an experiment.

        Returns:
            tuple: (X_complete, X_missing) where X_missing has NaN entries
        """
        X = self.generate_complete()
        return X, produce_mcar(X, missing_fraction, self.rng)

    @property
    def singular_vectors(self):
        return self.U, self.V

    @property
    def singular_values(self):
        return self.s

    def _gen_singular_values(self):
        """Generate singular values according to specified distribution."""
        if self.sv_distribution == 'wigner':
            return self._gen_wigner_singular_values()
        elif self.sv_distribution == 'uniform':
            return self._gen_uniform_singular_values()
        elif self.sv_distribution == 'exponential':
            return self._gen_exponential_singular_values()
        elif self.sv_distribution == 'constant':
            return np.ones(self.d)
        else:
            raise ValueError(f"Unknown distribution: {self.sv_distribution}")

    def _gen_wigner_singular_values(self):
        """Sample singular values from Wigner's semicircle law."""
        R = 2 * np.sqrt(max(self.n, self.p))
        x = np.linspace(-R, R, max(self.n, self.p))
        pdf = np.sqrt(np.clip(R**2 - x**2, 0, None))
        pdf = pdf / np.sum(pdf)
        s = np.abs(self.rng.choice(x, size=self.d, p=pdf))
        return np.sort(s)[::-1]

    def _gen_uniform_singular_values(self):
        low = self.sv_params.get('low', 5.0)
        high = self.sv_params.get('high', 10.0)
        s = self.rng.uniform(low=low, high=high, size=self.d)
        return np.sort(s)[::-1]

    def _gen_exponential_singular_values(self):
        """Generate exponentially decaying singular values."""
        scale = self.sv_params.get('scale', 1.0)
        base = self.sv_params.get('base', 0.9)
        return scale * np.power(base, np.arange(self.d))
