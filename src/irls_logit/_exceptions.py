"""Error taxonomy for the IRLS learner.

Three kinds of outcome can end a fit early:

* **Configuration errors** are fatal and raised before any solve:
  a target with fewer than two categories, no usable regressors, or
  fewer rows than coefficients.  They subclass :class:`ValueError` so
  callers that already guard input validation keep working.
* **Numerical divergence** is fatal: the very first likelihood is not
  finite, the first linear system cannot be solved, or the final
  information matrix cannot be inverted.
* **Cancellation** is not an error.  :class:`FitCancelledError`
  deliberately sits outside the :class:`IRLSError` hierarchy so an
  ``except IRLSError`` clause never mistakes a user abort for a
  computational failure.

Non-fatal problems (iteration budget exhausted, step-halving limit)
are reported with :class:`IRLSConvergenceWarning` and attached to the
result as a human-readable string.
"""

from __future__ import annotations


class IRLSError(Exception):
    """Base class for computational failures of the IRLS learner."""


class ConfigurationError(IRLSError, ValueError):
    """The training data cannot support the requested model."""


class DivergenceError(IRLSError, ArithmeticError):
    """The iteration produced a non-finite or unsolvable state."""


class FitCancelledError(Exception):
    """The caller requested cancellation; no result was produced."""


class IRLSConvergenceWarning(RuntimeWarning):
    """The fit stopped before the convergence criterion was met."""


__all__ = [
    "ConfigurationError",
    "DivergenceError",
    "FitCancelledError",
    "IRLSConvergenceWarning",
    "IRLSError",
]
