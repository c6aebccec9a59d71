"""Fit trace: mutable accumulator for per-iteration artifacts.

A :class:`FitTrace` travels with one IRLS fit, collecting what the
controller observed at each step.  Downstream consumers (display,
diagnostics, tests) read from the trace instead of re-running the fit.

The trace is **not** part of the public serialisation API: it carries
an enum history and raw arrays that should not be JSON'd.
:meth:`~_results.MultinomialLogitResult.to_dict` skips it
automatically.

Lifecycle::

    ┌──────────────────────────────────────────────┐
    │  ConvergenceController.fit()                 │
    │  ├─ trace = FitTrace(backend=…, …)           │
    │  ├─ trace.enter(INITIALIZING)                │
    │  ├─ per iteration:                           │
    │  │   ├─ trace.enter(ITERATING)               │
    │  │   ├─ trace.enter(STEP_HALVING)  (maybe)   │
    │  │   └─ trace.record_iteration(ℓ, halvings)  │
    │  ├─ trace.enter(CONVERGED | MAX_ITER_…)      │
    │  └─ result.trace = trace                     │
    └──────────────────────────────────────────────┘
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field


class FitState(enum.Enum):
    """States of the IRLS convergence state machine."""

    INITIALIZING = "initializing"
    ITERATING = "iterating"
    STEP_HALVING = "step_halving"
    CONVERGED = "converged"
    DIVERGED = "diverged"
    MAX_ITER_REACHED = "max_iter_reached"


@dataclass
class FitTrace:
    """Mutable accumulator for one fit.

    Every field defaults to ``None`` or an empty container so the trace
    can be created at the start of the fit and populated as the
    controller advances.
    """

    # ---- Run configuration ---------------------------------------
    backend: str | None = None
    """Chunk-kernel backend (``"numpy"`` or ``"jax"``)."""

    reference_category: int | None = None
    """Resolved reference category index."""

    chunk_size: int | None = None
    """Rows per kernel call."""

    # ---- State machine -------------------------------------------
    states: list[FitState] = field(default_factory=list)
    """State transitions in the order they happened."""

    termination: str | None = None
    """``"converged"``, ``"max_iter"``, ``"halving_limit"`` or
    ``"singular"`` once the fit has stopped."""

    # ---- Per-iteration artifacts ---------------------------------
    log_likelihoods: list[float] = field(default_factory=list)
    """Accepted log-likelihood after each completed iteration."""

    halvings: list[int] = field(default_factory=list)
    """Number of step halvings performed in each iteration."""

    # ---- Warnings ------------------------------------------------
    warnings_captured: list[str] = field(default_factory=list)
    """Soft-warning messages emitted during the fit."""

    @property
    def state(self) -> FitState | None:
        """Current (last entered) state."""
        return self.states[-1] if self.states else None

    @property
    def iterations(self) -> int:
        return len(self.log_likelihoods)

    def enter(self, state: FitState) -> None:
        """Record a transition into *state*."""
        self.states.append(state)

    def record_iteration(self, log_likelihood: float, halvings: int) -> None:
        """Record the accepted outcome of one iteration."""
        self.log_likelihoods.append(float(log_likelihood))
        self.halvings.append(int(halvings))


__all__ = ["FitState", "FitTrace"]
