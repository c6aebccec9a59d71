"""Tests for the cancellable iteration runner and cancellation semantics."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest

from irls_logit import (
    ArrayDesign,
    CancellationToken,
    ConvergenceController,
    FitCancelledError,
    ImmediateExecutor,
    IRLSError,
    IterationRunner,
    LearnerSettings,
)
from irls_logit._backends import resolve_backend

NUMPY = resolve_backend("numpy")

# ------------------------------------------------------------------ #
# Helpers
# ------------------------------------------------------------------ #


def _make_controller(executor=None, **settings):
    settings.setdefault("epsilon", 1e-8)
    return ConvergenceController(
        LearnerSettings(**settings), executor=executor, backend="numpy"
    )


class _CancelAfterProgress:
    """Progress sink that cancels once *after* iterations have completed."""

    def __init__(self, token, after=1):
        self.token = token
        self.after = after
        self.calls = 0

    def __call__(self, fraction, message):
        self.calls += 1
        if self.calls == self.after:
            self.token.cancel()


# ------------------------------------------------------------------ #
# Building blocks
# ------------------------------------------------------------------ #


class TestCancellationToken:
    def test_starts_clear(self):
        token = CancellationToken()
        assert not token.is_cancelled
        assert token() is False

    def test_cancel(self):
        token = CancellationToken()
        token.cancel()
        assert token.is_cancelled
        assert token() is True


class TestImmediateExecutor:
    def test_runs_before_returning(self):
        ran = []
        future = ImmediateExecutor().submit(lambda x: ran.append(x) or x * 2, 21)
        assert ran == [21]
        assert future.done()
        assert future.result() == 42

    def test_captures_exception(self):
        def _fail():
            raise RuntimeError("boom")

        future = ImmediateExecutor().submit(_fail)
        assert future.done()
        with pytest.raises(RuntimeError, match="boom"):
            future.result()

    def test_runs_on_calling_thread(self):
        future = ImmediateExecutor().submit(threading.get_ident)
        assert future.result() == threading.get_ident()


class TestIterationRunner:
    def test_step_matches_direct_computation(self, chd_arrays):
        from irls_logit import assemble_normal_equations, log_likelihood
        from irls_logit.linalg import solve

        X, y = chd_arrays
        design = ArrayDesign(X, y)
        beta = np.zeros(2)
        with IterationRunner(
            design, reference=1, executor=ImmediateExecutor(), backend=NUMPY
        ) as runner:
            step = runner.run(beta)

        eq = assemble_normal_equations(design, beta, reference=1, backend=NUMPY)
        expected = solve(eq.information, eq.newton_rhs(beta))
        np.testing.assert_array_equal(step.beta, expected)
        assert step.log_likelihood == log_likelihood(design, expected, reference=1, backend=NUMPY)

    def test_beta_is_copied_in(self, chd_arrays):
        X, y = chd_arrays
        beta = np.zeros(2)
        with IterationRunner(
            ArrayDesign(X, y), reference=1, executor=ImmediateExecutor(), backend=NUMPY
        ) as runner:
            step = runner.run(beta)
        assert not np.shares_memory(step.beta, beta)
        np.testing.assert_array_equal(beta, [0.0, 0.0])

    def test_injected_executor_left_running(self, chd_arrays):
        X, y = chd_arrays
        with ThreadPoolExecutor(max_workers=1) as pool:
            with IterationRunner(
                ArrayDesign(X, y), reference=1, executor=pool, backend=NUMPY
            ) as runner:
                runner.run(np.zeros(2))
            # Still usable after the runner closed.
            assert pool.submit(lambda: 1).result() == 1

    def test_cancelled_before_submit(self, chd_arrays):
        X, y = chd_arrays
        token = CancellationToken()
        token.cancel()
        with IterationRunner(
            ArrayDesign(X, y), reference=1, cancel_check=token, backend=NUMPY
        ) as runner:
            with pytest.raises(FitCancelledError):
                runner.run(np.zeros(2))


# ------------------------------------------------------------------ #
# Cancellation through the controller
# ------------------------------------------------------------------ #


class TestCancellation:
    @pytest.mark.parametrize("executor_factory", [ImmediateExecutor, lambda: None])
    def test_cancel_between_iterations(self, chd_arrays, executor_factory):
        X, y = chd_arrays
        token = CancellationToken()
        sink = _CancelAfterProgress(token, after=1)

        with pytest.raises(FitCancelledError):
            _make_controller(executor_factory()).fit(
                ArrayDesign(X, y), cancel_check=token, progress=sink
            )
        # Iteration 2 never completed.
        assert sink.calls == 1

    def test_cancel_mid_pass(self, three_class):
        X, y, _ = three_class
        checks = []

        def cancel_on_fifth_check():
            checks.append(1)
            return len(checks) >= 5

        with pytest.raises(FitCancelledError):
            _make_controller(chunk_size=16).fit(
                ArrayDesign(X, y), cancel_check=cancel_on_fifth_check
            )

    def test_cancellation_is_not_a_computational_error(self):
        assert not issubclass(FitCancelledError, IRLSError)

    def test_no_cancellation_completes(self, chd_arrays):
        X, y = chd_arrays
        token = CancellationToken()
        result = _make_controller().fit(ArrayDesign(X, y), cancel_check=token)
        assert result.converged


# ------------------------------------------------------------------ #
# Determinism
# ------------------------------------------------------------------ #


class TestDeterminism:
    @pytest.mark.filterwarnings("ignore::irls_logit.IRLSConvergenceWarning")
    def test_immediate_and_threaded_agree(self, three_class):
        X, y, _ = three_class
        sequential = _make_controller(ImmediateExecutor(), epsilon=1e-14).fit(
            ArrayDesign(X, y)
        )
        threaded = _make_controller(None, epsilon=1e-14).fit(ArrayDesign(X, y))

        np.testing.assert_array_equal(threaded.coefficients, sequential.coefficients)
        assert threaded.log_likelihood == sequential.log_likelihood
        assert threaded.iteration_count == sequential.iteration_count

    def test_repeat_fit_identical(self, chd_arrays):
        X, y = chd_arrays
        first = _make_controller(ImmediateExecutor()).fit(ArrayDesign(X, y))
        second = _make_controller(ImmediateExecutor()).fit(ArrayDesign(X, y))
        np.testing.assert_array_equal(first.coefficients, second.coefficients)
        np.testing.assert_array_equal(first.covariance_matrix, second.covariance_matrix)
