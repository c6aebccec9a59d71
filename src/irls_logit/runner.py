"""Cancellable execution of one IRLS iteration.

One iteration (assemble the normal equations at β_old, solve for
β_new, evaluate ℓ(β_new)) is the unit of offloaded work.  The
controller submits it to an executor and blocks on the future, so a
cancellation request that arrives during a long data pass takes effect
at the next chunk boundary instead of after the whole fit.

Scheduling model::

    controller thread                      worker
    ─────────────────                      ──────
    check cancel
    submit(unit, β_old.copy(), A_prev) ──▶ assemble (cancel check per chunk)
    poll future / cancel callback          solve
                                           ℓ(β_new)
    ◀────────────── (A, b), β_new, ℓ ───── return
    decide: accept / halve / stop

At most one unit is in flight; the next one is submitted only after the
previous future resolved.  Nothing mutable crosses the boundary except
the copied β_old going in and the :class:`IterationStep` coming out.

The executor is injectable.  :class:`ImmediateExecutor` runs the unit
synchronously on the calling thread, which keeps the controller's state
machine testable without threads.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import CancelledError, Executor, Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from concurrent.futures import wait as wait_futures
from dataclasses import dataclass
from typing import Any

import numpy as np

from ._backends import BackendProtocol
from ._exceptions import FitCancelledError
from ._typing import CancelCheck
from .assembler import NormalEquations, assemble_normal_equations
from .design import DesignRowSource
from .likelihood import log_likelihood
from .linalg import solve

logger = logging.getLogger(__name__)


class CancellationToken:
    """Thread-safe cancellation flag.

    Calling the token returns whether cancellation was requested, so
    it can be passed anywhere a ``cancel_check`` callable is expected.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def __call__(self) -> bool:
        return self._event.is_set()


class ImmediateExecutor(Executor):
    """Executor that runs every submitted callable before returning.

    The returned future is already resolved, carrying either the
    result or the exception.
    """

    def submit(self, fn: Callable[..., Any], /, *args: Any, **kwargs: Any) -> Future:
        future: Future = Future()
        future.set_running_or_notify_cancel()
        try:
            result = fn(*args, **kwargs)
        except BaseException as exc:  # noqa: BLE001
            future.set_exception(exc)
        else:
            future.set_result(result)
        return future


@dataclass(frozen=True)
class IterationStep:
    """Outcome of one iteration unit.

    Attributes:
        equations: Normal equations assembled at β_old.
        beta: Full Fisher-scoring update β_new.
        log_likelihood: ℓ(β_new).
    """

    equations: NormalEquations
    beta: np.ndarray
    log_likelihood: float


class IterationRunner:
    """Runs IRLS iteration units on an executor with cooperative cancellation.

    Args:
        source: Restartable design row source.
        reference: Index of the reference category.
        ridge: Ridge coefficient forwarded to the assembler.
        chunk_size: Rows per kernel call (and cancellation granularity).
        executor: Executor for the iteration units.  When ``None`` a
            private single-worker thread pool is created and shut down
            by :meth:`close`; an injected executor is left running.
        cancel_check: Callable returning ``True`` once the caller wants
            the fit aborted.
        backend: Kernel backend shared by all passes.
        poll_interval: Seconds between cancellation polls while the
            controller waits on a unit.
    """

    def __init__(
        self,
        source: DesignRowSource,
        *,
        reference: int,
        ridge: float = 0.0,
        chunk_size: int = 1024,
        executor: Executor | None = None,
        cancel_check: CancelCheck | None = None,
        backend: BackendProtocol | None = None,
        poll_interval: float = 0.05,
    ) -> None:
        self._source = source
        self._reference = reference
        self._ridge = ridge
        self._chunk_size = chunk_size
        self._cancel_check = cancel_check
        self._backend = backend
        self._poll_interval = poll_interval
        self._abort = threading.Event()
        self._owns_executor = executor is None
        self._executor: Executor = (
            ThreadPoolExecutor(max_workers=1, thread_name_prefix="irls-iteration")
            if executor is None
            else executor
        )

    # ---- Lifecycle ------------------------------------------------

    def __enter__(self) -> IterationRunner:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Shut down the executor if this runner created it."""
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    # ---- Cancellation ---------------------------------------------

    def cancellation_requested(self) -> bool:
        if self._abort.is_set():
            return True
        if self._cancel_check is not None and self._cancel_check():
            self._abort.set()
            return True
        return False

    def check_cancelled(self) -> None:
        """Raise :class:`FitCancelledError` if cancellation was requested."""
        if self.cancellation_requested():
            raise FitCancelledError("The fit was cancelled by the caller.")

    # ---- Work -----------------------------------------------------

    def run(
        self,
        beta_old: np.ndarray,
        previous_information: np.ndarray | None = None,
    ) -> IterationStep:
        """Execute one iteration unit and wait for its outcome.

        Raises:
            FitCancelledError: If cancellation was requested before or
                during the unit, or the wait was interrupted.
            numpy.linalg.LinAlgError: If the system could not be
                solved to a finite β.
            ConfigurationError: If the data pass found too few rows.
        """
        self.check_cancelled()
        future = self._executor.submit(
            self._iteration_unit, np.array(beta_old, copy=True), previous_information
        )
        return self._await(future)

    def log_likelihood(self, beta: np.ndarray) -> float:
        """Evaluate ℓ(β) inline on the calling thread."""
        self.check_cancelled()
        value = log_likelihood(
            self._source,
            beta,
            reference=self._reference,
            chunk_size=self._chunk_size,
            check_cancelled=self.check_cancelled,
            backend=self._backend,
        )
        self.check_cancelled()
        return value

    def _iteration_unit(
        self,
        beta_old: np.ndarray,
        previous_information: np.ndarray | None,
    ) -> IterationStep:
        equations = assemble_normal_equations(
            self._source,
            beta_old,
            reference=self._reference,
            ridge=self._ridge,
            previous_information=previous_information,
            chunk_size=self._chunk_size,
            check_cancelled=self.check_cancelled,
            backend=self._backend,
        )
        beta_new = solve(equations.information, equations.newton_rhs(beta_old))
        if not np.all(np.isfinite(beta_new)):
            raise np.linalg.LinAlgError("The solve produced a non-finite update.")
        return IterationStep(
            equations=equations,
            beta=beta_new,
            log_likelihood=self.log_likelihood(beta_new),
        )

    def _await(self, future: Future) -> IterationStep:
        try:
            while True:
                try:
                    return future.result(timeout=self._poll_interval)
                except FuturesTimeoutError:
                    if self.cancellation_requested():
                        self._abandon(future)
                        raise FitCancelledError(
                            "The fit was cancelled by the caller."
                        ) from None
                except CancelledError:
                    raise FitCancelledError(
                        "The iteration was cancelled before it started."
                    ) from None
        except KeyboardInterrupt as exc:
            self._abandon(future)
            raise FitCancelledError("The fit was interrupted.") from exc

    def _abandon(self, future: Future) -> None:
        # The unit sees the abort flag at its next chunk boundary.
        self._abort.set()
        if not future.cancel():
            wait_futures([future])
        logger.debug("Abandoned in-flight iteration unit.")


__all__ = [
    "CancellationToken",
    "ImmediateExecutor",
    "IterationRunner",
    "IterationStep",
]
