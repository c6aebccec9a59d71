"""Shared fixtures.

The CHD/age data are the 100 subjects of Table 1.1 in Hosmer &
Lemeshow, *Applied Logistic Regression* (2nd ed., 2000).  The maximum
log-likelihood of ``chd ~ age`` is −53.67656 with β = (−5.309, 0.111)
(Table 1.3).
"""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

CHD_AGE = [
    20, 23, 24, 25, 25, 26, 26, 28, 28, 29, 30, 30, 30, 30, 30, 30, 32, 32, 33, 33,
    34, 34, 34, 34, 34, 35, 35, 36, 36, 36, 37, 37, 37, 38, 38, 39, 39, 40, 40, 41,
    41, 42, 42, 42, 42, 43, 43, 43, 44, 44, 44, 44, 45, 45, 46, 46, 47, 47, 47, 48,
    48, 48, 49, 49, 49, 50, 50, 51, 52, 52, 53, 53, 54, 55, 55, 55, 56, 56, 56, 57,
    57, 57, 57, 57, 57, 58, 58, 58, 59, 59, 60, 60, 61, 62, 62, 63, 64, 64, 65, 69,
]  # fmt: skip

CHD = [
    0, 0, 0, 1, 0, 0, 0, 0, 0, 0, 0, 0, 1, 0, 0, 0, 0, 0, 0, 0,
    0, 0, 1, 0, 0, 0, 0, 1, 0, 0, 1, 0, 0, 0, 0, 1, 0, 1, 0, 0,
    0, 0, 0, 1, 0, 0, 0, 1, 0, 1, 1, 0, 0, 1, 0, 1, 1, 0, 0, 0,
    1, 1, 1, 0, 0, 1, 0, 0, 1, 0, 1, 1, 1, 1, 1, 0, 1, 1, 1, 1,
    1, 0, 1, 0, 1, 0, 1, 1, 1, 1, 0, 1, 1, 1, 1, 1, 1, 0, 1, 1,
]  # fmt: skip

CHD_LOG_LIKELIHOOD = -53.67656


@pytest.fixture()
def chd_arrays() -> tuple[np.ndarray, np.ndarray]:
    """``(age (100, 1), chd (100,))`` as float/int arrays."""
    return (
        np.asarray(CHD_AGE, dtype=np.float64)[:, None],
        np.asarray(CHD, dtype=np.intp),
    )


@pytest.fixture()
def chd_frames() -> tuple[pd.DataFrame, pd.DataFrame]:
    """CHD data as ``(X, y)`` frames with the target coded ``"0"``/``"1"``."""
    X = pd.DataFrame({"Age": CHD_AGE})
    y = pd.DataFrame({"CHD": [str(v) for v in CHD]})
    return X, y


def _make_three_class(
    n: int = 200,
    seed: int = 7,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Three-category data from a known β (reference category 0).

    Returns:
        ``(X (n, 2), y (n,), beta (2, 3))`` where row k of *beta* holds
        ``[intercept, x1, x2]`` for category k + 1.
    """
    rng = np.random.default_rng(seed)
    beta = np.array([[0.5, 1.0, -0.8], [-0.3, -0.6, 1.2]])
    X = rng.normal(0.0, 1.0, size=(n, 2))
    eta = np.column_stack([np.zeros(n), np.column_stack([np.ones(n), X]) @ beta.T])
    prob = np.exp(eta - eta.max(axis=1, keepdims=True))
    prob /= prob.sum(axis=1, keepdims=True)
    u = rng.random(n)
    y = (u[:, None] > np.cumsum(prob, axis=1)).sum(axis=1)
    return X, np.minimum(y, 2).astype(np.intp), beta


@pytest.fixture()
def three_class() -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    return _make_three_class()


@pytest.fixture()
def make_three_class():
    """Factory fixture around the three-category generator."""
    return _make_three_class
