"""irls_logit: Multinomial logistic regression by iteratively reweighted least squares.

Fits multinomial (and binary) logit models by Fisher scoring with
step halving, an optional ridge penalty, chunked vectorised kernels
on NumPy or JAX, and cooperative cancellation of long fits.

Public API:
    .. autosummary::
        fit_multinomial_logit
        ConvergenceController
        LearnerSettings
        FitState
        FitTrace
        MultinomialLogitResult
        ArrayDesign
        DataFrameDesign
        DesignMetadata
        DesignRowSource
        CancellationToken
        ImmediateExecutor
        IterationRunner
        assemble_normal_equations
        NormalEquations
        log_likelihood
        print_results_table
        get_backend
        set_backend
        use_backend
        IRLSError
        ConfigurationError
        DivergenceError
        FitCancelledError
        IRLSConvergenceWarning
"""

from ._config import get_backend, set_backend, use_backend
from ._context import FitState, FitTrace
from ._exceptions import (
    ConfigurationError,
    DivergenceError,
    FitCancelledError,
    IRLSConvergenceWarning,
    IRLSError,
)
from ._results import MultinomialLogitResult
from .assembler import NormalEquations, assemble_normal_equations
from .controller import ConvergenceController, LearnerSettings
from .core import fit_multinomial_logit
from .design import ArrayDesign, DataFrameDesign, DesignMetadata, DesignRowSource
from .display import print_results_table
from .likelihood import log_likelihood
from .runner import CancellationToken, ImmediateExecutor, IterationRunner

__version__ = "0.1.0"

__all__ = [
    "ArrayDesign",
    "CancellationToken",
    "ConfigurationError",
    "ConvergenceController",
    "DataFrameDesign",
    "DesignMetadata",
    "DesignRowSource",
    "DivergenceError",
    "FitCancelledError",
    "FitState",
    "FitTrace",
    "IRLSConvergenceWarning",
    "IRLSError",
    "ImmediateExecutor",
    "IterationRunner",
    "LearnerSettings",
    "MultinomialLogitResult",
    "NormalEquations",
    "assemble_normal_equations",
    "fit_multinomial_logit",
    "get_backend",
    "log_likelihood",
    "print_results_table",
    "set_backend",
    "use_backend",
]
