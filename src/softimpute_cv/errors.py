'''
Exceptions raised by the completion solvers and the regularization selector.
'''


class ImputationError(Exception):
    """Base class for errors raised by this package."""


class InsufficientDataError(ImputationError, ValueError):
    """The input has too few observed entries to build a grid or fit a model."""


class FitFailureError(ImputationError, RuntimeError):
    """A completion fit failed numerically or did not converge."""

    def __init__(self, message: str, lambda_: float = None):
        super().__init__(message)
        self.lambda_ = lambda_


class ShapeMismatchError(ImputationError, ValueError):
    """A collaborator returned an array whose shape differs from its input."""

    def __init__(self, what: str, expected, got):
        super().__init__(f"{what} returned shape {tuple(got)}, expected {tuple(expected)}")
        self.expected = tuple(expected)
        self.got = tuple(got)
