from dataclasses import dataclass
from typing import Optional, Literal
SVDBackend = Literal["auto", "numpy", "randomized"]
SoftImputeVariant = Literal["als", "svd"]
FitFailurePolicy = Literal["raise", "penalize"]

'''
Base data classes that contain state information for different
solvers and for the cross-validated regularization search.
'''

@dataclass
class BaseConfig:
    rank: Optional[int] = None
    svd_backend: SVDBackend = "auto"
    center: bool = False
    scale: bool = True
    random_state: Optional[int] = None

@dataclass
class SoftImputeConfig(BaseConfig):
    lambda_: float = 0.0 # Nuclear norm penalty
    rank: Optional[int] = 2 # Upper bound on the rank of the fit
    variant: SoftImputeVariant = "als"
    thresh: float = 1e-5 # Relative change in the fit at convergence
    maxit: int = 100
    strict_convergence: bool = False # Raise instead of warn when maxit is hit
    scale: bool = False

    def __post_init__(self):
        if self.lambda_ < 0:
            raise ValueError(f"lambda_ must be non-negative, got {self.lambda_}")
        if self.rank is not None and self.rank < 1:
            raise ValueError(f"Bad rank: {self.rank}. Must be positive integer.")
        if self.variant not in ("als", "svd"):
            raise ValueError(f"Unknown variant: {self.variant}")
        if self.maxit < 1:
            raise ValueError("maxit must be at least 1")

@dataclass
class USVTConfig(BaseConfig):
    tau: Optional[float] = None # Threshold value for USVT
    tau_multiplier: float = 2.02  # typical constant
    use_p_hat: bool = True # Whether to estimate p (missing probability)

@dataclass
class SelectorConfig:
    repetitions: int = 10
    grid_length: int = 20
    missing_fraction: float = 0.2 # Fraction of all entries held out per repetition
    lower_ratio: float = 1e-3 # Smallest grid value as a fraction of sigma_max
    on_fit_failure: FitFailurePolicy = "raise"
    random_state: Optional[int] = None
    # Passed to every fit; None means the solver defaults
    rank: Optional[int] = None
    variant: Optional[SoftImputeVariant] = None

    def __post_init__(self):
        if self.repetitions < 1:
            raise ValueError("repetitions must be at least 1")
        if self.grid_length < 2:
            raise ValueError("grid_length must be at least 2")
        if not 0.0 < self.missing_fraction < 1.0:
            raise ValueError(f"missing_fraction must be in (0, 1), got {self.missing_fraction}")
        if not 0.0 < self.lower_ratio < 1.0:
            raise ValueError(f"lower_ratio must be in (0, 1), got {self.lower_ratio}")
        if self.on_fit_failure not in ("raise", "penalize"):
            raise ValueError(f"Unknown fit failure policy: {self.on_fit_failure}")
