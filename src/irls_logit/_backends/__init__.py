"""Backend abstraction layer for the per-chunk IRLS kernels.

The assembler and the likelihood evaluator never loop over rows in
Python.  They gather rows into chunks and hand each chunk to a backend
kernel that computes the chunk's contribution in one vectorised call.
Both callers dispatch through :func:`resolve_backend`, which makes
adding a backend a local change:

1. A new module ``_backends/_<name>.py`` with a class implementing
   :class:`BackendProtocol`.
2. An entry in ``_LOADERS`` mapping the name to a loader.
3. Adding the name to ``_BACKEND_NAMES`` in :mod:`.._config`.

Resolution follows the policy set by :mod:`.._config`.  When ``"jax"``
is explicitly requested but JAX is not installed, an
:class:`ImportError` is raised; only the ``"auto"`` policy falls back
from JAX to NumPy.

Chunk conventions
~~~~~~~~~~~~~~~~~
Every kernel receives:

* ``X_aug``: ``(n, p)`` float64 design chunk whose column 0 is the
  intercept (``p = R + 1``).
* ``block_idx``: ``(n,)`` integer block index of each row's observed
  category, ``-1`` for rows of the reference category.
* ``beta_blocks``: ``(K-1, p)`` coefficients, one row per block.
"""

from __future__ import annotations

import functools
from collections.abc import Callable
from typing import Protocol, runtime_checkable

import numpy as np

from .._config import get_backend


@runtime_checkable
class BackendProtocol(Protocol):
    """Interface every chunk-kernel backend implements.

    Attributes:
        name: Short identifier (``"numpy"`` or ``"jax"``).
    """

    @property
    def name(self) -> str: ...

    @property
    def is_available(self) -> bool:
        """Whether the backend's dependencies are importable."""
        ...

    def chunk_normal_equations(
        self,
        X_aug: np.ndarray,
        block_idx: np.ndarray,
        beta_blocks: np.ndarray,
    ) -> tuple[np.ndarray, np.ndarray]:
        """Information-matrix and score contribution of one chunk.

        Returns:
            ``(information, score)`` with shapes ``(d, d)`` and
            ``(d,)`` where ``d = (K-1) * p``, laid out block-major
            (block k occupies ``[k*p, (k+1)*p)``).
        """
        ...

    def chunk_log_likelihood(
        self,
        X_aug: np.ndarray,
        block_idx: np.ndarray,
        beta_blocks: np.ndarray,
    ) -> float:
        """Multinomial log-likelihood contribution of one chunk."""
        ...


def _load_numpy() -> BackendProtocol:
    from ._numpy import NumpyBackend

    return NumpyBackend()


def _load_jax() -> BackendProtocol:
    from ._jax import JaxBackend

    backend = JaxBackend()
    if not backend.is_available:
        raise ImportError(
            "The 'jax' backend needs JAX, which is not installed.  "
            "Install the 'jax' extra or pass backend='numpy'."
        )
    return backend


_LOADERS: dict[str, Callable[[], BackendProtocol]] = {
    "numpy": _load_numpy,
    "jax": _load_jax,
}


@functools.cache
def _instance(name: str) -> BackendProtocol:
    return _LOADERS[name]()


def resolve_backend(name: str | None = None) -> BackendProtocol:
    """Return the shared kernel instance for *name*.

    Args:
        name: ``"numpy"`` or ``"jax"`` (case-insensitive).  ``None``
            defers to :func:`~irls_logit.get_backend`.

    Raises:
        ImportError: If JAX is requested but not installed.
        ValueError: If *name* is not a known backend.
    """
    key = get_backend() if name is None else name.strip().lower()
    if key not in _LOADERS:
        raise ValueError(
            f"Unknown backend {name!r}.  Choose from {sorted(_LOADERS)}."
        )
    return _instance(key)


__all__ = ["BackendProtocol", "resolve_backend"]
