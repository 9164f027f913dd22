from .BaseConfig import BaseConfig, SoftImputeConfig, USVTConfig, SelectorConfig
from .errors import ImputationError, InsufficientDataError, FitFailureError, ShapeMismatchError
from .MatrixCompletionSolver import MatrixCompletionSolver
from .SoftImpute import SoftImpute, LowRankFactors, soft_impute_fit
from .USVT import USVT
from .MatrixCompletionDataGenerator import LowRankDataGenerator, produce_mcar
from .RegularizationSelector import (
    RegularizationSelector,
    build_regularization_grid,
    select_regularization,
    impute,
)
from .ImputationComparison import compare_imputers, summarize

__version__ = "0.1.0"
