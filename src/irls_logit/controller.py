"""IRLS convergence controller.

The controller owns the iteration state machine of the learner::

    INITIALIZING ──▶ ITERATING ──▶ CONVERGED
                      │    ▲   └─▶ MAX_ITER_REACHED
                      ▼    │
                   STEP_HALVING
                      │
                      └──▶ DIVERGED (first iteration only)

Each iteration runs one cancellable unit on the
:class:`~runner.IterationRunner` (assemble at β_old, solve the
Fisher-scoring system, evaluate ℓ(β_new)).  From the second iteration
on, a decrease of the log-likelihood (or a non-finite value) triggers
step halving: β_new is moved halfway back towards β_old until ℓ no
longer decreases.  Convergence is the entrywise relative test

    |β_new[i] − β_old[i]| ≤ ε · |β_old[i]|    for every i.

Outcomes
--------
* Converged: the test passed.  When it passes while halving, β_old
  and ℓ_old are returned so the accepted likelihoods never decrease.
* Iteration budget exhausted (``"max_iter"``), halving ceiling hit
  (``"halving_limit"``) or a later system that could not be solved
  (``"singular"``): the last accepted β is returned together with an
  :class:`~_exceptions.IRLSConvergenceWarning`.
* Divergence: a non-finite first likelihood or an unsolvable first
  system raises :class:`~_exceptions.DivergenceError`.

The covariance matrix is ``−A⁻¹`` of the information matrix assembled
in the last iteration.
"""

from __future__ import annotations

import dataclasses
import logging
import warnings
from concurrent.futures import Executor
from dataclasses import dataclass
from typing import Any

import numpy as np
from typing_extensions import Self

from ._backends import resolve_backend
from ._context import FitState, FitTrace
from ._exceptions import ConfigurationError, DivergenceError, IRLSConvergenceWarning
from ._results import MultinomialLogitResult
from ._typing import CancelCheck, ProgressSink
from .design import DesignRowSource
from .linalg import invert
from .runner import IterationRunner

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------ #
# Settings
# ------------------------------------------------------------------ #


@dataclass(frozen=True)
class LearnerSettings:
    """Tuning knobs of the IRLS learner.

    Attributes:
        reference_category: Index of the reference category, or
            ``None`` for the last category.
        max_iter: Maximum number of IRLS iterations.
        epsilon: Relative tolerance of the entrywise convergence test.
        ridge: Ridge coefficient; ``0`` disables the penalty.
        max_halvings: Maximum number of step halvings per iteration.
        chunk_size: Rows per vectorised kernel call.  Also the
            granularity of cancellation within a data pass.
    """

    reference_category: int | None = None
    max_iter: int = 30
    epsilon: float = 1e-14
    ridge: float = 0.0
    max_halvings: int = 50
    chunk_size: int = 1024

    def validate(self, category_count: int) -> None:
        """Check the settings against a target with *category_count* levels.

        Raises:
            ValueError: On a non-positive iteration budget or chunk
                size, a negative tolerance, ridge or halving ceiling, or
                an out-of-range reference category.
        """
        if self.max_iter < 1:
            raise ValueError(f"max_iter must be at least 1, got {self.max_iter}.")
        if not np.isfinite(self.epsilon) or self.epsilon < 0:
            raise ValueError(f"epsilon must be non-negative, got {self.epsilon}.")
        if not np.isfinite(self.ridge) or self.ridge < 0:
            raise ValueError(f"ridge must be non-negative, got {self.ridge}.")
        if self.max_halvings < 0:
            raise ValueError(
                f"max_halvings must be non-negative, got {self.max_halvings}."
            )
        if self.chunk_size < 1:
            raise ValueError(f"chunk_size must be at least 1, got {self.chunk_size}.")
        ref = self.reference_category
        if ref is not None and not 0 <= ref < category_count:
            raise ValueError(
                f"reference_category must lie in [0, {category_count - 1}], got {ref}."
            )

    def resolve_reference(self, category_count: int) -> int:
        """Reference category index, defaulting to the last category."""
        if self.reference_category is None:
            return category_count - 1
        return self.reference_category

    def with_options(self, **changes: Any) -> Self:
        """Return a copy with the given fields replaced."""
        return dataclasses.replace(self, **changes)


# ------------------------------------------------------------------ #
# Controller
# ------------------------------------------------------------------ #


def _has_converged(beta_new: np.ndarray, beta_old: np.ndarray, epsilon: float) -> bool:
    return bool(np.all(np.abs(beta_new - beta_old) <= epsilon * np.abs(beta_old)))


def _needs_halving(value: float, previous: float) -> bool:
    return not np.isfinite(value) or value < previous


class ConvergenceController:
    """Drives the IRLS iteration over a design row source.

    Args:
        settings: Learner settings; defaults to :class:`LearnerSettings`.
        executor: Executor for the iteration units.  ``None`` uses a
            private single-worker thread pool per fit.
        backend: Chunk-kernel backend name (``"numpy"``, ``"jax"``) or
            ``None`` to follow the configured policy.
    """

    def __init__(
        self,
        settings: LearnerSettings | None = None,
        *,
        executor: Executor | None = None,
        backend: str | None = None,
    ) -> None:
        self.settings = settings if settings is not None else LearnerSettings()
        self._executor = executor
        self._backend_name = backend

    def fit(
        self,
        source: DesignRowSource,
        *,
        cancel_check: CancelCheck | None = None,
        progress: ProgressSink | None = None,
    ) -> MultinomialLogitResult:
        """Fit the multinomial logit model to *source*.

        Args:
            source: Restartable design row source.
            cancel_check: Callable returning ``True`` to abort the fit.
            progress: Sink called once per iteration with the fraction
                of the iteration budget used and a status message.

        Returns:
            The fitted :class:`MultinomialLogitResult`.

        Raises:
            ConfigurationError: If the source has fewer than two
                categories, no regressors, or fewer rows than
                coefficients.
            ValueError: If the settings are invalid.
            DivergenceError: If the first iteration is not finite or
                cannot be solved, or the final covariance cannot be
                computed.
            FitCancelledError: If *cancel_check* requested a stop.
        """
        settings = self.settings
        meta = source.metadata
        if meta.category_count < 2:
            raise ConfigurationError(
                f"The target must have at least 2 categories, got "
                f"{meta.category_count}."
            )
        if meta.regressor_count < 1:
            raise ConfigurationError("At least one regressor is required.")
        settings.validate(meta.category_count)

        dim = meta.n_coefficients
        if meta.row_count is not None and meta.row_count < dim:
            raise ConfigurationError(
                f"The dataset must have at least {dim} rows, but it has only "
                f"{meta.row_count} rows. A larger dataset is recommended to "
                f"increase accuracy."
            )

        reference = settings.resolve_reference(meta.category_count)
        kernels = resolve_backend(self._backend_name)
        trace = FitTrace(
            backend=kernels.name,
            reference_category=reference,
            chunk_size=settings.chunk_size,
        )
        trace.enter(FitState.INITIALIZING)

        beta = np.zeros(dim)
        loglik = 0.0
        information: np.ndarray | None = None
        rows = meta.row_count
        iteration = 0
        converged = False
        termination: str | None = None

        with IterationRunner(
            source,
            reference=reference,
            ridge=settings.ridge,
            chunk_size=settings.chunk_size,
            executor=self._executor,
            cancel_check=cancel_check,
            backend=kernels,
        ) as runner:
            while iteration < settings.max_iter and not converged:
                runner.check_cancelled()
                trace.enter(FitState.ITERATING)
                beta_old, loglik_old = beta, loglik

                try:
                    step = runner.run(beta_old, information)
                except np.linalg.LinAlgError as exc:
                    if information is None:
                        trace.enter(FitState.DIVERGED)
                        raise DivergenceError(
                            f"The first IRLS system could not be solved: {exc}"
                        ) from exc
                    termination = "singular"
                    logger.debug("Solve failed at iteration %d: %s", iteration + 1, exc)
                    break

                information = step.equations.information
                rows = step.equations.rows
                beta, loglik = step.beta, step.log_likelihood

                if iteration == 0 and not np.isfinite(loglik):
                    trace.enter(FitState.DIVERGED)
                    raise DivergenceError(
                        "The log-likelihood of the first iteration is not finite."
                    )

                halvings = 0
                if iteration > 0 and _needs_halving(loglik, loglik_old):
                    trace.enter(FitState.STEP_HALVING)
                    while _needs_halving(loglik, loglik_old):
                        if _has_converged(beta, beta_old, settings.epsilon):
                            converged = True
                            beta, loglik = beta_old, loglik_old
                            break
                        if halvings >= settings.max_halvings:
                            termination = "halving_limit"
                            beta, loglik = beta_old, loglik_old
                            break
                        beta = (beta + beta_old) / 2.0
                        halvings += 1
                        loglik = runner.log_likelihood(beta)
                        logger.debug(
                            "Step halving %d: log-likelihood %.10g", halvings, loglik
                        )

                if not converged and termination is None:
                    converged = _has_converged(beta, beta_old, settings.epsilon)

                iteration += 1
                trace.record_iteration(loglik, halvings)
                logger.debug(
                    "Iteration %d: log-likelihood %.10g, beta %s", iteration, loglik, beta
                )
                if progress is not None:
                    progress(
                        iteration / settings.max_iter,
                        f"#Iterations: {iteration} | Log-likelihood: {loglik:.5f}",
                    )
                if termination is not None:
                    break

            runner.check_cancelled()

        if converged:
            termination = "converged"
            trace.enter(FitState.CONVERGED)
        else:
            if termination is None:
                termination = "max_iter"
            trace.enter(FitState.MAX_ITER_REACHED)
            message = _termination_message(termination, settings, iteration)
            trace.warnings_captured.append(message)
            warnings.warn(message, IRLSConvergenceWarning, stacklevel=3)
        trace.termination = termination
        logger.debug("Fit stopped after %d iterations (%s).", iteration, termination)

        try:
            covariance = invert(information)
        except np.linalg.LinAlgError as exc:
            trace.enter(FitState.DIVERGED)
            raise DivergenceError(
                f"The covariance matrix could not be computed: {exc}"
            ) from exc

        notes = list(trace.warnings_captured)
        if meta.excluded_columns:
            notes.append(
                "The following columns were excluded because they have fewer "
                "than two distinct values: " + ", ".join(meta.excluded_columns) + "."
            )

        return MultinomialLogitResult(
            coefficients=beta.copy(),
            log_likelihood=float(loglik),
            covariance_matrix=covariance,
            iteration_count=iteration,
            converged=converged,
            termination=termination,
            warning=" ".join(notes) if notes else None,
            reference_category=reference,
            category_labels=meta.labels,
            parameter_names=meta.parameter_names,
            factor_names=list(meta.factor_names),
            covariate_names=list(meta.covariate_names),
            factor_levels=dict(meta.factor_levels),
            excluded_columns=list(meta.excluded_columns),
            n_observations=rows,
            backend=kernels.name,
            target_name=getattr(source, "target_name", None),
            trace=trace,
        )


def _termination_message(termination: str, settings: LearnerSettings, iteration: int) -> str:
    if termination == "halving_limit":
        return (
            f"Step halving did not increase the log-likelihood within "
            f"{settings.max_halvings} halvings (iteration {iteration}). "
            f"Returning the last accepted estimate."
        )
    if termination == "singular":
        return (
            f"The information matrix became singular after {iteration} "
            f"iterations. Returning the last accepted estimate."
        )
    return (
        f"The algorithm did not reach convergence after the specified "
        f"number of epochs ({settings.max_iter}). Setting the epoch limit "
        f"higher might result in a better model."
    )


__all__ = ["ConvergenceController", "FitState", "LearnerSettings"]
