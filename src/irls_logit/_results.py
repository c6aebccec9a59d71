"""Typed result object for multinomial logit fits.

A frozen dataclass that provides:

* **Attribute access**: ``result.coefficients``, ``result.converged``.
* **Dict-like access**: ``result["coefficients"]``,
  ``result.get("key")``, ``"key" in result`` for consumers that prefer
  bracket syntax.
* **Serialisation**: ``.to_dict()`` returns a plain ``dict[str, Any]``
  with all NumPy types converted to native Python.
* **Inference helpers**: coefficient matrix, standard errors, Wald
  z-scores, two-sided p-values and a long-form summary table.

The flat coefficient vector is laid out block by block: the block of
the k-th non-reference category occupies entries
``[k(R+1), (k+1)(R+1))`` with the intercept first.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import TYPE_CHECKING, Any, ClassVar

import numpy as np
import pandas as pd
from scipy import stats

if TYPE_CHECKING:
    from ._context import FitTrace

# ------------------------------------------------------------------ #
# Serialisation helper
# ------------------------------------------------------------------ #


def _numpy_to_python(obj: Any) -> Any:
    """Recursively convert NumPy scalars/arrays to Python-native types.

    Handles nested dicts, lists, np.ndarray, np.integer, and
    np.floating so that :meth:`to_dict` returns a fully
    JSON-serialisable structure.
    """
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, np.bool_):
        return bool(obj)
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, np.floating):
        return float(obj)
    if isinstance(obj, dict):
        return {k: _numpy_to_python(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        converted = [_numpy_to_python(item) for item in obj]
        return type(obj)(converted)
    return obj


# ------------------------------------------------------------------ #
# Dict-compatibility mixin
# ------------------------------------------------------------------ #


class _DictAccessMixin:
    """Dict-like access convenience for result dataclasses.

    Supports three access patterns:

    1. ``result["key"]``: raises ``KeyError`` on miss
    2. ``result.get(key, d)``: returns *d* on miss (default ``None``)
    3. ``"key" in result``: membership test
    """

    # Fields to exclude from to_dict() serialisation.
    _EXCLUDE_FROM_DICT: ClassVar[frozenset[str]] = frozenset({"trace"})

    def __getitem__(self, key: str) -> Any:
        """Attribute lookup via bracket syntax."""
        try:
            return getattr(self, key)
        except AttributeError:
            raise KeyError(key) from None

    def get(self, key: str, default: Any = None) -> Any:
        """Attribute lookup with a fallback default."""
        return getattr(self, key, default)

    def __contains__(self, key: object) -> bool:
        """Membership test: ``"key" in result``."""
        if not isinstance(key, str):
            return False
        return hasattr(self, key)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dictionary.

        Runs :func:`_numpy_to_python` on every field value so the
        returned dict is fully JSON-serialisable.
        """
        result: dict[str, Any] = {}
        for f in fields(self):  # type: ignore[arg-type]
            if f.name in self._EXCLUDE_FROM_DICT:
                continue
            result[f.name] = _numpy_to_python(getattr(self, f.name))
        return result


# ------------------------------------------------------------------ #
# MultinomialLogitResult
# ------------------------------------------------------------------ #


@dataclass(frozen=True)
class MultinomialLogitResult(_DictAccessMixin):
    """Result of an IRLS multinomial logit fit.

    All fields are accessible both as attributes
    (``result.coefficients``) and via dict syntax
    (``result["coefficients"]``).
    """

    # ---- Estimates -------------------------------------------------
    coefficients: np.ndarray
    """Flat coefficient vector β of length ``(K-1)(R+1)``."""

    log_likelihood: float
    """Log-likelihood at β."""

    covariance_matrix: np.ndarray
    """``−A⁻¹`` of the last assembled information matrix."""

    # ---- Convergence -----------------------------------------------
    iteration_count: int
    """Number of IRLS iterations executed."""

    converged: bool
    """Whether the entrywise convergence test passed."""

    termination: str
    """``"converged"``, ``"max_iter"``, ``"halving_limit"`` or
    ``"singular"``."""

    warning: str | None
    """Human-readable notes on non-fatal problems, or ``None``."""

    # ---- Labelling -------------------------------------------------
    reference_category: int
    """Index of the reference category."""

    category_labels: list[Any]
    """Labels of the K target categories."""

    parameter_names: list[str]
    """Labels of the R regressors (intercept excluded)."""

    factor_names: list[str] = field(default_factory=list)
    """Source columns that were dummy-expanded."""

    covariate_names: list[str] = field(default_factory=list)
    """Source columns used as numeric regressors."""

    factor_levels: dict[str, int] = field(default_factory=dict)
    """Number of dummy columns per factor."""

    excluded_columns: list[str] = field(default_factory=list)
    """Source columns dropped during encoding."""

    n_observations: int | None = None
    """Number of rows the model was fitted on."""

    backend: str | None = None
    """Chunk-kernel backend used (``"numpy"`` or ``"jax"``)."""

    target_name: str | None = None
    """Target column name, when known."""

    # ---- Trace -----------------------------------------------------
    trace: FitTrace | None = field(default=None, repr=False, compare=False)
    """Per-iteration artifacts.  Excluded from :meth:`to_dict`."""

    # ---- Shape helpers ---------------------------------------------

    @property
    def reference_label(self) -> Any:
        return self.category_labels[self.reference_category]

    @property
    def logit_labels(self) -> list[Any]:
        """Labels of the non-reference categories, in block order."""
        return [
            label
            for i, label in enumerate(self.category_labels)
            if i != self.reference_category
        ]

    @property
    def variable_names(self) -> list[str]:
        """Coefficient labels within one block, intercept first."""
        return ["Intercept", *self.parameter_names]

    def coefficient_matrix(self) -> np.ndarray:
        """Coefficients reshaped to ``(K-1, R+1)``, one row per logit."""
        return np.asarray(self.coefficients).reshape(
            len(self.logit_labels), len(self.variable_names)
        )

    # ---- Inference -------------------------------------------------

    def standard_errors(self) -> np.ndarray:
        """``sqrt(|diag(covariance)|)``, flat like :attr:`coefficients`."""
        return np.sqrt(np.abs(np.diag(self.covariance_matrix)))

    def z_scores(self) -> np.ndarray:
        """Wald statistics β / SE (``nan`` where SE is zero)."""
        se = self.standard_errors()
        with np.errstate(divide="ignore", invalid="ignore"):
            return np.where(se > 0, np.asarray(self.coefficients) / se, np.nan)

    def p_values(self) -> np.ndarray:
        """Two-sided normal p-values of the Wald statistics."""
        return 2.0 * stats.norm.sf(np.abs(self.z_scores()))

    def summary_frame(self) -> pd.DataFrame:
        """Long-form coefficient table, one row per coefficient.

        Columns: ``Logit, Variable, Coeff., Std. Err., z-score, P>|z|``.
        """
        n_vars = len(self.variable_names)
        return pd.DataFrame(
            {
                "Logit": np.repeat(np.array(self.logit_labels, dtype=object), n_vars),
                "Variable": self.variable_names * len(self.logit_labels),
                "Coeff.": np.asarray(self.coefficients, dtype=np.float64),
                "Std. Err.": self.standard_errors(),
                "z-score": self.z_scores(),
                "P>|z|": self.p_values(),
            }
        )


__all__ = ["MultinomialLogitResult"]
