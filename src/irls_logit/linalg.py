"""Decomposition-based solving and inversion of the IRLS system.

The information matrix of a multinomial model with many dummy-coded
factors is frequently ill-conditioned: sparse dummy columns produce
tiny eigenvalues long before the matrix is exactly singular.  Two
decompositions are used:

* :func:`solve` uses the **SVD** A = U Σ Vᵗ and returns
  V Σ⁻¹ Uᵗ b.  Small but non-negligible singular values are inverted
  exactly, so an ill-conditioned but full-rank system still yields the
  Newton step rather than the pivoting artefacts an LU solve can
  produce.
* :func:`invert` uses a **QR** decomposition A = QR and returns
  −R⁻¹Qᵗ, the covariance convention of the learner (the information
  matrix is accumulated with positive weights, the covariance is
  reported as its negated inverse).

Both refuse, loudly, to work on a matrix that is singular at machine
precision or that contains non-finite entries; they raise
:class:`numpy.linalg.LinAlgError` rather than hand back a
pseudo-solution.  The rank threshold is the one NumPy's
``matrix_rank`` uses: ``σ_max · max(m, n) · eps``.
"""

from __future__ import annotations

import numpy as np
import scipy.linalg

_EPS = np.finfo(np.float64).eps


def _require_finite(*arrays: np.ndarray) -> None:
    for arr in arrays:
        if not np.all(np.isfinite(arr)):
            raise np.linalg.LinAlgError("System contains NaN or infinite entries.")


def _rank_tolerance(largest: float, shape: tuple[int, ...]) -> float:
    return largest * max(shape) * _EPS


def solve(A: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Solve ``A x = b`` through the singular value decomposition.

    Args:
        A: Square system matrix ``(d, d)``.
        b: Right-hand side ``(d,)``.

    Returns:
        The solution ``x`` of shape ``(d,)``.

    Raises:
        numpy.linalg.LinAlgError: If *A* or *b* is non-finite, the SVD
            fails, or *A* is rank deficient at machine precision.
    """
    _require_finite(A, b)
    try:
        U, s, Vt = scipy.linalg.svd(A, full_matrices=False, check_finite=False)
    except scipy.linalg.LinAlgError as exc:
        raise np.linalg.LinAlgError(f"SVD did not converge: {exc}") from exc

    if s.size == 0 or s[-1] <= _rank_tolerance(s[0], A.shape):
        raise np.linalg.LinAlgError(
            f"Information matrix is singular (rank deficient, smallest "
            f"singular value {s[-1] if s.size else 0.0:.3e})."
        )
    return Vt.T @ ((U.T @ b) / s)


def invert(A: np.ndarray) -> np.ndarray:
    """Return ``−A⁻¹`` computed from a QR decomposition.

    Raises:
        numpy.linalg.LinAlgError: If *A* is non-finite or its R factor
            has a diagonal entry below the rank tolerance.
    """
    _require_finite(A)
    Q, R = scipy.linalg.qr(A, check_finite=False)
    diag = np.abs(np.diag(R))
    if diag.size == 0 or diag.min() <= _rank_tolerance(diag.max(), A.shape):
        raise np.linalg.LinAlgError("Information matrix is singular; cannot invert.")
    inverse = scipy.linalg.solve_triangular(R, Q.T, check_finite=False)
    return -inverse


def standard_errors(A: np.ndarray) -> np.ndarray:
    """Standard-error estimate ``sqrt(|diag(−A⁻¹)|)`` of an information matrix."""
    return np.sqrt(np.abs(np.diag(invert(A))))


def ridge_penalty(
    reference_information: np.ndarray,
    ridge: float,
    block_size: int,
) -> np.ndarray:
    """Diagonal ridge penalty derived from a previous information matrix.

    The penalty is ``ridge · diag(SE)`` where SE are the standard errors
    implied by *reference_information*.  Intercept positions (every
    *block_size*-th entry starting at 0) are never penalised.

    Args:
        reference_information: Information matrix the standard errors
            are taken from.
        ridge: Penalty coefficient (> 0).
        block_size: Coefficients per category block, ``R + 1``.

    Returns:
        The ``(d, d)`` diagonal penalty matrix.
    """
    se = standard_errors(reference_information)
    se[::block_size] = 0.0
    return np.diag(ridge * se)


__all__ = ["invert", "ridge_penalty", "solve", "standard_errors"]
