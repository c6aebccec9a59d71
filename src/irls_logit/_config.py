"""Process-wide choice of the chunk-kernel backend.

A fit evaluates its normal equations and likelihoods either with the
JAX kernels (jit-compiled, float64) or the NumPy kernels.  Unless a
fit names a backend explicitly, the choice is made here:

1. a name set with :func:`set_backend` or inside :func:`use_backend`,
2. otherwise ``IRLS_LOGIT_BACKEND`` from the environment,
3. otherwise ``"jax"`` when JAX imports, else ``"numpy"``.

``"auto"`` clears a programmatic choice.  Unrecognised environment
values are ignored.

Example::

    with irls_logit.use_backend("numpy"):
        result = irls_logit.fit_multinomial_logit(X, y)
"""

from __future__ import annotations

import contextlib
import importlib.util
import os
from collections.abc import Iterator

_BACKEND_NAMES = ("numpy", "jax")

_ENV_VAR = "IRLS_LOGIT_BACKEND"

_backend_override: str | None = None


def _normalise(name: str) -> str:
    choice = name.strip().lower()
    if choice != "auto" and choice not in _BACKEND_NAMES:
        raise ValueError(
            f"Unknown backend '{name}'. Choose from: "
            f"{sorted((*_BACKEND_NAMES, 'auto'))}"
        )
    return choice


def get_backend() -> str:
    """Name of the backend a fit uses when none is passed explicitly."""
    if _backend_override is not None:
        return _backend_override

    env = os.environ.get(_ENV_VAR, "").strip().lower()
    if env in _BACKEND_NAMES:
        return env

    return "jax" if importlib.util.find_spec("jax") is not None else "numpy"


def set_backend(name: str) -> None:
    """Pin the default backend for this process.

    Args:
        name: ``"numpy"``, ``"jax"`` or ``"auto"`` (case-insensitive).

    Raises:
        ValueError: If *name* is not one of those.
    """
    global _backend_override
    choice = _normalise(name)
    _backend_override = None if choice == "auto" else choice


@contextlib.contextmanager
def use_backend(name: str) -> Iterator[str]:
    """Temporarily pin the default backend, restoring the previous pin."""
    global _backend_override
    previous = _backend_override
    set_backend(name)
    try:
        yield get_backend()
    finally:
        _backend_override = previous


__all__ = ["get_backend", "set_backend", "use_backend"]
