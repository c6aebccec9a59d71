"""Multinomial log-likelihood evaluation.

    ℓ(β) = Σᵢ [ η_{yᵢ}(xᵢ) − log(1 + Σₖ e^{ηₖ(xᵢ)}) ]

with η_ref ≡ 0 for the reference category.  The value is comparable
across coefficient vectors on the same data, which is all the
convergence controller needs.  A NaN or infinite result signals a
numerically broken β (or non-finite input rows) and is left for the
controller to interpret.
"""

from __future__ import annotations

from collections.abc import Callable

import numpy as np

from ._backends import BackendProtocol, resolve_backend
from .design import DesignRowSource, augment_intercept, category_blocks, iter_chunks


def log_likelihood(
    source: DesignRowSource,
    beta: np.ndarray,
    *,
    reference: int,
    chunk_size: int = 1024,
    check_cancelled: Callable[[], None] | None = None,
    backend: BackendProtocol | None = None,
) -> float:
    """Evaluate the multinomial log-likelihood of *beta* over *source*.

    Args:
        source: Restartable design row source.
        beta: Flat coefficient vector of length ``(K-1)(R+1)``.
        reference: Index of the reference category.
        chunk_size: Rows per vectorised kernel call.
        check_cancelled: Optional callable invoked before every chunk;
            it raises to abort the pass.
        backend: Kernel backend; resolved from the policy if ``None``.

    Returns:
        The log-likelihood (≤ 0 when finite).
    """
    meta = source.metadata
    p = meta.regressor_count + 1
    beta_blocks = np.asarray(beta, dtype=np.float64).reshape(meta.category_count - 1, p)
    kernels = backend if backend is not None else resolve_backend()

    total = 0.0
    for X, y in iter_chunks(source, chunk_size):
        if check_cancelled is not None:
            check_cancelled()
        total += kernels.chunk_log_likelihood(
            augment_intercept(X), category_blocks(y, reference), beta_blocks
        )
    return total


__all__ = ["log_likelihood"]
