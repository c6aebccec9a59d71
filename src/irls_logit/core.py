"""One-call entry point for multinomial logistic regression.

:func:`fit_multinomial_logit` fits

    log( P(y = k | x) / P(y = ref | x) ) = β_k · [1, x]      k ≠ ref

by iteratively reweighted least squares (Fisher scoring).  For a
binary target the model reduces to ordinary logistic regression of the
non-reference category.

Each iteration solves the block system

    A · β_new = A · β_old + b

where A is the Fisher information matrix and b the score at β_old
(see :mod:`~irls_logit.assembler`).  From the second iteration on, a
step that decreases the log-likelihood is halved back towards β_old
until it no longer does.  Iteration stops when every coefficient
changes by at most ε relative to its previous value, or after
``max_iter`` iterations.

The ridge option subtracts ``ridge · SE`` from the non-intercept
diagonal of A, with SE the standard errors of the previous iteration.
The penalty appears on both sides of the system, so it rescales the
steps without moving the maximum-likelihood fixed point.

References:
    Hosmer, D. W. & Lemeshow, S. (2000). *Applied Logistic
    Regression*, 2nd ed.  Wiley.  (Chapter 8: multinomial models.)
"""

from __future__ import annotations

from collections.abc import Sequence
from concurrent.futures import Executor
from typing import Any

from ._compat import DataFrameLike
from ._results import MultinomialLogitResult
from ._typing import CancelCheck, ProgressSink
from .controller import ConvergenceController, LearnerSettings
from .design import DataFrameDesign


def _resolve_reference(design: DataFrameDesign, reference_category: Any) -> int | None:
    """Map a reference category label (or index) to its index.

    Labels take precedence.  An integer that is not a label is read as
    a position in the sorted category domain.
    """
    if reference_category is None:
        return None
    labels = design.metadata.labels
    if reference_category in labels:
        return design.category_index(reference_category)
    if isinstance(reference_category, int) and not isinstance(reference_category, bool):
        if 0 <= reference_category < len(labels):
            return reference_category
    raise ValueError(
        f"{reference_category!r} is neither a target category nor a valid "
        f"category index. Known categories: {labels}."
    )


def fit_multinomial_logit(
    X: DataFrameLike,
    y: DataFrameLike,
    *,
    reference_category: Any = None,
    factors: Sequence[str] | None = None,
    max_iter: int = 30,
    epsilon: float = 1e-14,
    ridge: float = 0.0,
    max_halvings: int = 50,
    chunk_size: int = 1024,
    cancel_check: CancelCheck | None = None,
    progress: ProgressSink | None = None,
    executor: Executor | None = None,
    backend: str | None = None,
) -> MultinomialLogitResult:
    """Fit a multinomial logistic regression model by IRLS.

    Args:
        X: Predictor frame of shape ``(n_samples, n_columns)``.
            Numeric columns are used as covariates; boolean, string and
            categorical columns are dummy-coded (first level omitted).
            Accepts pandas or Polars DataFrames.
        y: Single-column target frame or Series.  Its sorted distinct
            values are the categories.
        reference_category: Label of the reference category (or its
            index in the sorted domain).  Defaults to the last
            category.
        factors: Numeric columns to dummy-code instead of using them
            as covariates.
        max_iter: Maximum number of IRLS iterations.
        epsilon: Relative convergence tolerance.
        ridge: Ridge coefficient; ``0`` (default) disables the penalty.
        max_halvings: Maximum step halvings per iteration.
        chunk_size: Rows per vectorised kernel call.
        cancel_check: Callable returning ``True`` to abort the fit,
            e.g. a :class:`~irls_logit.CancellationToken`.
        progress: Optional ``(fraction, message)`` sink called once
            per iteration.
        executor: Executor for the iteration units.  ``None`` uses a
            private worker thread; pass
            :class:`~irls_logit.ImmediateExecutor` to run on the
            calling thread.
        backend: ``"numpy"`` or ``"jax"``; ``None`` follows
            :func:`~irls_logit.get_backend`.

    Returns:
        The fitted :class:`MultinomialLogitResult`.

    Raises:
        ConfigurationError: On missing values, a target with fewer than
            two categories, no usable regressors, or fewer rows than
            coefficients.
        ValueError: On invalid settings or an unknown reference
            category.
        DivergenceError: If the iteration cannot get started or the
            covariance matrix cannot be computed.
        FitCancelledError: If *cancel_check* requested a stop.

    Examples:
        >>> import pandas as pd
        >>> X = pd.DataFrame({"age": [20, 35, 50, 62, 41, 28]})
        >>> y = pd.Series(["no", "no", "yes", "yes", "no", "yes"], name="chd")
        >>> result = fit_multinomial_logit(X, y)  # doctest: +SKIP
        >>> result.summary_frame()  # doctest: +SKIP
    """
    design = DataFrameDesign.from_frame(X, y, factors=factors)
    settings = LearnerSettings(
        reference_category=_resolve_reference(design, reference_category),
        max_iter=max_iter,
        epsilon=epsilon,
        ridge=ridge,
        max_halvings=max_halvings,
        chunk_size=chunk_size,
    )
    controller = ConvergenceController(settings, executor=executor, backend=backend)
    return controller.fit(design, cancel_check=cancel_check, progress=progress)


__all__ = ["fit_multinomial_logit"]
