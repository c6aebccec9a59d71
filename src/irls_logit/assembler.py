"""Normal-equation assembly for one IRLS iteration.

For the current coefficient vector β the assembler makes one full pass
over the design rows and accumulates

* the **information matrix** A (the negative Hessian of the
  log-likelihood), dimension ``(K-1)(R+1)``, and
* the **score vector** b = Σ (y − π) ⊗ x.

For a row with design vector x = [1, x₁, …, x_R] and non-reference
category probabilities π₁ … π_{K-1}, the row's contribution is

    A[k, k]  +=  x · πₖ(1 − πₖ) · xᵗ
    A[k, k′] +=  x · (−πₖ πₖ′) · xᵗ        k ≠ k′
    b[k]     +=  (yₖ − πₖ) · x

where yₖ = 1 iff the row's category maps to block k.  A reference-
category row contributes to A and to b through −πₖ only.

The matrices are returned as a :class:`NormalEquations` value; nothing
is cached between calls.  The Fisher-scoring update is then

    A · β_new = A · β_old + b

(:meth:`NormalEquations.newton_rhs`).
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

import numpy as np

from ._backends import BackendProtocol, resolve_backend
from ._exceptions import ConfigurationError
from .design import DesignRowSource, augment_intercept, category_blocks, iter_chunks
from .linalg import ridge_penalty

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NormalEquations:
    """Information matrix and score vector of one data pass.

    Attributes:
        information: Symmetric ``(d, d)`` matrix A, ridge penalty
            already applied.
        score: Score vector b ``(d,)``.
        rows: Number of rows that contributed.
    """

    information: np.ndarray
    score: np.ndarray
    rows: int

    @property
    def dimension(self) -> int:
        return self.information.shape[0]

    def newton_rhs(self, beta: np.ndarray) -> np.ndarray:
        """Right-hand side ``A·β + b`` of the Fisher-scoring system."""
        return self.information @ beta + self.score


def _no_cancel() -> None:
    return None


def assemble_normal_equations(
    source: DesignRowSource,
    beta: np.ndarray,
    *,
    reference: int,
    ridge: float = 0.0,
    previous_information: np.ndarray | None = None,
    chunk_size: int = 1024,
    check_cancelled: Callable[[], None] = _no_cancel,
    backend: BackendProtocol | None = None,
) -> NormalEquations:
    """Accumulate ``(A, b)`` at *beta* over one full pass of *source*.

    Args:
        source: Restartable design row source.
        beta: Flat coefficient vector of length ``(K-1)(R+1)``.
        reference: Index of the reference category.
        ridge: Ridge coefficient; ``0`` disables the penalty.
        previous_information: Information matrix of the previous
            iteration, source of the ridge standard errors.  When
            ``None`` the matrix of this pass is used instead.
        chunk_size: Rows per vectorised kernel call.
        check_cancelled: Called before every chunk; expected to raise
            to abort the pass.  Whatever it raises propagates.
        backend: Kernel backend; resolved from the policy if ``None``.

    Returns:
        The assembled :class:`NormalEquations`.

    Raises:
        ConfigurationError: If fewer rows than coefficients were seen.
    """
    meta = source.metadata
    p = meta.regressor_count + 1
    n_blocks = meta.category_count - 1
    dim = n_blocks * p
    beta_blocks = np.asarray(beta, dtype=np.float64).reshape(n_blocks, p)
    kernels = backend if backend is not None else resolve_backend()

    information = np.zeros((dim, dim))
    score = np.zeros(dim)
    rows = 0
    for X, y in iter_chunks(source, chunk_size):
        check_cancelled()
        chunk_info, chunk_score = kernels.chunk_normal_equations(
            augment_intercept(X), category_blocks(y, reference), beta_blocks
        )
        information += chunk_info
        score += chunk_score
        rows += X.shape[0]
    check_cancelled()

    if rows < dim:
        raise ConfigurationError(
            f"The dataset must have at least {dim} rows, but it has only "
            f"{rows} rows. A larger dataset is recommended to increase "
            f"accuracy."
        )

    if ridge > 0.0:
        reference_info = information if previous_information is None else previous_information
        information = information - ridge_penalty(reference_info, ridge, p)
        logger.debug("Applied ridge penalty %g to %d coefficients.", ridge, dim)

    return NormalEquations(information=information, score=score, rows=rows)


__all__ = ["NormalEquations", "assemble_normal_equations"]
