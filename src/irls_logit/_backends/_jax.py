"""JAX-accelerated backend for the per-chunk IRLS kernels.

Wraps JIT-compiled versions of the two chunk kernels behind the
:class:`~._backends.BackendProtocol` interface.  The arithmetic is
identical to the NumPy backend; the information matrix is built with a
single ``einsum`` over the per-row weight tensor

    W[n, k, l] = πₖ (δₖₗ − πₗ)

instead of a Python loop over blocks, which lets XLA fuse the whole
chunk into one kernel.

NumPy ↔ JAX boundary convention
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Public methods accept NumPy arrays and return NumPy arrays (or a
Python float).  Inputs are materialised as float64 JAX arrays with
``jnp.asarray(..., dtype=jnp.float64)``; outputs go back through
``np.asarray``.  Callers never see JAX types.

Float64 rationale
~~~~~~~~~~~~~~~~~
The convergence test compares coefficients entrywise at a relative
tolerance of 1e-14 by default, which is only meaningful in float64.
``jax_enable_x64`` is switched on at import time for that reason.

Graceful degradation
~~~~~~~~~~~~~~~~~~~~
If JAX is not installed, :class:`JaxBackend` can still be instantiated
but ``is_available`` returns ``False`` and
:func:`~._backends.resolve_backend` raises ``ImportError`` when this
backend is explicitly requested.

Recompilation
~~~~~~~~~~~~~
``jit`` specialises on input shapes.  With a fixed ``chunk_size`` a
pass compiles at most twice: once for full chunks and once for the
trailing partial chunk.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

try:
    import jax

    jax.config.update("jax_enable_x64", True)

    import jax.numpy as jnp
    from jax import jit
    from jax.scipy.special import logsumexp as _jax_logsumexp

    _CAN_IMPORT_JAX = True
except ImportError:
    _CAN_IMPORT_JAX = False


if _CAN_IMPORT_JAX:

    def _category_probabilities(eta: jnp.ndarray) -> jnp.ndarray:
        shift = jnp.maximum(jnp.max(eta, axis=1, keepdims=True), 0.0)
        expo = jnp.exp(eta - shift)
        return expo / (jnp.exp(-shift) + jnp.sum(expo, axis=1, keepdims=True))

    @jit
    def _normal_equations(
        X: jnp.ndarray,
        block_idx: jnp.ndarray,
        beta_blocks: jnp.ndarray,
    ) -> tuple[jnp.ndarray, jnp.ndarray]:
        n_blocks, p = beta_blocks.shape
        pi = _category_probabilities(X @ beta_blocks.T)  # (n, K-1)
        eye = jnp.eye(n_blocks, dtype=jnp.float64)
        weights = pi[:, :, None] * (eye[None, :, :] - pi[:, None, :])
        information = jnp.einsum("nkl,ni,nj->kilj", weights, X, X).reshape(
            n_blocks * p, n_blocks * p
        )
        # one_hot maps the reference marker -1 to an all-zero row.
        indicator = jax.nn.one_hot(block_idx, n_blocks, dtype=jnp.float64)
        score = ((indicator - pi).T @ X).reshape(-1)
        return information, score

    @jit
    def _log_likelihood(
        X: jnp.ndarray,
        block_idx: jnp.ndarray,
        beta_blocks: jnp.ndarray,
    ) -> jnp.ndarray:
        eta = X @ beta_blocks.T
        zeros = jnp.zeros((X.shape[0], 1), dtype=jnp.float64)
        log_norm = _jax_logsumexp(jnp.concatenate([zeros, eta], axis=1), axis=1)
        picked = jnp.take_along_axis(
            eta, jnp.clip(block_idx, 0, None)[:, None], axis=1
        )[:, 0]
        eta_y = jnp.where(block_idx >= 0, picked, 0.0)
        return jnp.sum(eta_y - log_norm)


@dataclass(frozen=True)
class JaxBackend:
    """JAX compute backend.

    The frozen dataclass carries no state; all per-call data flows
    through method arguments.
    """

    @property
    def name(self) -> str:
        return "jax"

    @property
    def is_available(self) -> bool:  # noqa: PLR6301
        return _CAN_IMPORT_JAX

    def chunk_normal_equations(
        self,
        X_aug: np.ndarray,
        block_idx: np.ndarray,
        beta_blocks: np.ndarray,
    ) -> tuple[np.ndarray, np.ndarray]:
        information, score = _normal_equations(
            jnp.asarray(X_aug, dtype=jnp.float64),
            jnp.asarray(block_idx, dtype=jnp.int32),
            jnp.asarray(beta_blocks, dtype=jnp.float64),
        )
        return np.asarray(information), np.asarray(score)

    def chunk_log_likelihood(
        self,
        X_aug: np.ndarray,
        block_idx: np.ndarray,
        beta_blocks: np.ndarray,
    ) -> float:
        if X_aug.shape[0] == 0:
            return 0.0
        return float(
            _log_likelihood(
                jnp.asarray(X_aug, dtype=jnp.float64),
                jnp.asarray(block_idx, dtype=jnp.int32),
                jnp.asarray(beta_blocks, dtype=jnp.float64),
            )
        )
