"""NumPy / SciPy backend (always available).

Implements the two chunk kernels with dense BLAS products.  For a
chunk of n rows, p = R + 1 design columns and K-1 coefficient blocks,
the information contribution is assembled block by block:

    A[k, k]  +=  Xᵗ diag(πₖ(1 − πₖ)) X
    A[k, k′] +=  Xᵗ diag(−πₖ πₖ′) X          (k ≠ k′, mirrored)

which is the per-row rank-one update x·w·xᵗ summed over the chunk as a
single ``(p, n) @ (n, p)`` product.  The score contribution is
``(Y − Π)ᵗ X`` flattened block-major.

Overflow
~~~~~~~~
The category probabilities are πₖ = e^{ηₖ} / (1 + Σ e^{η}).  Both the
numerator and the denominator are rescaled by e^{−m} with
m = max(0, maxₖ ηₖ) so a large linear predictor never overflows; the
quotient is unchanged.  The likelihood uses ``scipy.special.logsumexp``
over ``[0, η₁, …, η_{K-1}]`` for the same reason.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from scipy.special import logsumexp


def _category_probabilities(eta: np.ndarray) -> np.ndarray:
    """Non-reference category probabilities ``(n, K-1)`` from ``η``."""
    shift = np.maximum(eta.max(axis=1, keepdims=True), 0.0)
    expo = np.exp(eta - shift)
    return expo / (np.exp(-shift) + expo.sum(axis=1, keepdims=True))


def _category_indicator(block_idx: np.ndarray, n_blocks: int) -> np.ndarray:
    """One-hot ``(n, K-1)`` matrix; reference rows are all zero."""
    indicator = np.zeros((block_idx.shape[0], n_blocks))
    rows = np.flatnonzero(block_idx >= 0)
    indicator[rows, block_idx[rows]] = 1.0
    return indicator


@dataclass(frozen=True)
class NumpyBackend:
    """NumPy compute backend.

    Stateless frozen dataclass; safe to cache as a singleton and to
    share between the controller thread and the iteration worker.
    """

    @property
    def name(self) -> str:
        return "numpy"

    @property
    def is_available(self) -> bool:  # noqa: PLR6301
        return True

    def chunk_normal_equations(
        self,
        X_aug: np.ndarray,
        block_idx: np.ndarray,
        beta_blocks: np.ndarray,
    ) -> tuple[np.ndarray, np.ndarray]:
        n_blocks, p = beta_blocks.shape
        dim = n_blocks * p
        pi = _category_probabilities(X_aug @ beta_blocks.T)  # (n, K-1)

        information = np.zeros((dim, dim))
        for k in range(n_blocks):
            ok = slice(k * p, (k + 1) * p)
            w = pi[:, k] * (1.0 - pi[:, k])
            information[ok, ok] = X_aug.T @ (w[:, None] * X_aug)
            for kk in range(k + 1, n_blocks):
                okk = slice(kk * p, (kk + 1) * p)
                cross = X_aug.T @ ((-pi[:, k] * pi[:, kk])[:, None] * X_aug)
                information[ok, okk] = cross
                information[okk, ok] = cross.T

        residual = _category_indicator(block_idx, n_blocks) - pi
        score = (residual.T @ X_aug).reshape(-1)
        return information, score

    def chunk_log_likelihood(
        self,
        X_aug: np.ndarray,
        block_idx: np.ndarray,
        beta_blocks: np.ndarray,
    ) -> float:
        n = X_aug.shape[0]
        if n == 0:
            return 0.0
        eta = X_aug @ beta_blocks.T  # (n, K-1)
        log_norm = logsumexp(np.column_stack([np.zeros(n), eta]), axis=1)

        eta_y = np.zeros(n)
        rows = np.flatnonzero(block_idx >= 0)
        eta_y[rows] = eta[rows, block_idx[rows]]
        return float(np.sum(eta_y - log_norm))
