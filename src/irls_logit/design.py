"""Design-row sources consumed by the IRLS learner.

The learner itself has no notion of column types.  It consumes a
*design row source*: a restartable iterable yielding, per observation,
the encoded regressor vector (without intercept) and the integer index
of the observed target category, together with a
:class:`DesignMetadata` record fixed for the whole run.

Two concrete sources ship with the package:

* :class:`ArrayDesign` wraps an already-encoded ``(n, R)`` float array
  and an ``(n,)`` integer target vector.
* :class:`DataFrameDesign` encodes a pandas (or Polars) frame.  Numeric
  columns become covariates; nominal columns become factors expanded
  into dummy variables that omit the first (sorted) domain value::

      colour ∈ {blue, green, red}   →   colour=green, colour=red

  The target's sorted domain defines the category indices.

Anything else that satisfies :class:`DesignRowSource` (a database
cursor, a memory-mapped file reader, …) can be passed to the learner
directly.  Sources may implement ``iter_chunks(chunk_size)`` to hand
over whole ``(X_chunk, y_chunk)`` blocks; otherwise :func:`iter_chunks`
batches the row iterator.
"""

from __future__ import annotations

from collections.abc import Hashable, Iterator, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

import numpy as np
import pandas as pd
from pandas.api.types import is_bool_dtype, is_numeric_dtype

from ._compat import DataFrameLike, _ensure_pandas_df, _ensure_target_series
from ._exceptions import ConfigurationError

# ------------------------------------------------------------------ #
# Metadata
# ------------------------------------------------------------------ #


@dataclass(frozen=True)
class DesignMetadata:
    """Counts and labels describing a design row source.

    Only ``regressor_count`` and ``category_count`` are required by
    the solver.  ``row_count`` enables an up-front underdetermination
    check; the remaining fields label the fitted coefficients.

    Attributes:
        regressor_count: Number of encoded regressors R (intercept
            excluded).
        category_count: Number of target categories K.
        row_count: Number of rows, or ``None`` if unknown.
        regressor_names: R labels for the regressor columns.
        category_labels: K labels for the target categories.
        factor_names: Source columns that were dummy-expanded.
        covariate_names: Source columns used as numeric regressors.
        factor_levels: Dummy-expansion length per factor.
        excluded_columns: Source columns dropped during encoding.
    """

    regressor_count: int
    category_count: int
    row_count: int | None = None
    regressor_names: tuple[str, ...] = ()
    category_labels: tuple[Any, ...] = ()
    factor_names: tuple[str, ...] = ()
    covariate_names: tuple[str, ...] = ()
    factor_levels: dict[str, int] = field(default_factory=dict)
    excluded_columns: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.regressor_count < 0:
            raise ValueError("regressor_count must be non-negative.")
        if self.category_count < 0:
            raise ValueError("category_count must be non-negative.")
        if self.row_count is not None and self.row_count < 0:
            raise ValueError("row_count must be non-negative.")
        if self.regressor_names and len(self.regressor_names) != self.regressor_count:
            raise ValueError(
                f"Got {len(self.regressor_names)} regressor names for "
                f"{self.regressor_count} regressors."
            )
        if self.category_labels and len(self.category_labels) != self.category_count:
            raise ValueError(
                f"Got {len(self.category_labels)} category labels for "
                f"{self.category_count} categories."
            )

    @property
    def parameter_names(self) -> list[str]:
        """Regressor labels, defaulting to ``x1 … xR``."""
        if self.regressor_names:
            return list(self.regressor_names)
        return [f"x{i + 1}" for i in range(self.regressor_count)]

    @property
    def labels(self) -> list[Any]:
        """Category labels, defaulting to the indices ``0 … K-1``."""
        if self.category_labels:
            return list(self.category_labels)
        return list(range(self.category_count))

    @property
    def n_coefficients(self) -> int:
        """Length of the flat coefficient vector, ``(K-1)(R+1)``."""
        return max(self.category_count - 1, 0) * (self.regressor_count + 1)


# ------------------------------------------------------------------ #
# Source protocol
# ------------------------------------------------------------------ #


@runtime_checkable
class DesignRowSource(Protocol):
    """Restartable source of ``(regressors, target_index)`` rows.

    Every call to ``__iter__`` must start a fresh pass over the same
    rows in the same order; the learner makes several passes per
    iteration.
    """

    @property
    def metadata(self) -> DesignMetadata: ...

    def __iter__(self) -> Iterator[tuple[Sequence[float], int]]: ...


def _stack_rows(
    regressors: list[Any],
    targets: list[int],
    regressor_count: int,
) -> tuple[np.ndarray, np.ndarray]:
    try:
        X = np.asarray(regressors, dtype=np.float64)
    except ValueError as exc:
        raise ConfigurationError(
            f"Design rows must be numeric vectors of length {regressor_count}: {exc}"
        ) from exc
    if X.size == 0:
        X = X.reshape(len(regressors), regressor_count)
    if X.ndim != 2 or X.shape[1] != regressor_count:
        raise ConfigurationError(
            f"Every design row must carry {regressor_count} regressors, "
            f"got rows of shape {X.shape[1:] if X.ndim > 1 else X.shape}."
        )
    return X, np.asarray(targets, dtype=np.intp)


def iter_chunks(
    source: DesignRowSource,
    chunk_size: int,
) -> Iterator[tuple[np.ndarray, np.ndarray]]:
    """Yield ``(X_chunk, y_chunk)`` blocks of at most *chunk_size* rows.

    Uses the source's own ``iter_chunks`` when it has one; otherwise
    the row iterator is batched.  Target indices are checked against
    the declared category count.

    Raises:
        ConfigurationError: If a row has the wrong width or a target
            index is out of range.
    """
    meta = source.metadata
    native = getattr(source, "iter_chunks", None)
    if callable(native):
        chunks: Iterator[tuple[np.ndarray, np.ndarray]] = native(chunk_size)
    else:
        chunks = _batched(source, chunk_size, meta.regressor_count)

    for X, y in chunks:
        if y.size and (y.min() < 0 or y.max() >= meta.category_count):
            raise ConfigurationError(
                f"Target indices must lie in [0, {meta.category_count - 1}], "
                f"got values in [{y.min()}, {y.max()}]."
            )
        yield X, y


def _batched(
    source: DesignRowSource,
    chunk_size: int,
    regressor_count: int,
) -> Iterator[tuple[np.ndarray, np.ndarray]]:
    regressors: list[Any] = []
    targets: list[int] = []
    for row, target in source:
        regressors.append(row)
        targets.append(int(target))
        if len(targets) == chunk_size:
            yield _stack_rows(regressors, targets, regressor_count)
            regressors, targets = [], []
    if targets:
        yield _stack_rows(regressors, targets, regressor_count)


def category_blocks(targets: np.ndarray, reference: int) -> np.ndarray:
    """Map category indices to coefficient-block indices.

    Non-reference categories keep their order; the reference maps to
    ``-1``.  For K = 4 and reference 1: ``0→0, 1→-1, 2→1, 3→2``.
    """
    return np.where(
        targets == reference, -1, np.where(targets < reference, targets, targets - 1)
    )


def augment_intercept(X: np.ndarray) -> np.ndarray:
    """Prepend a ones column to a design chunk ``(n, R) → (n, R+1)``."""
    return np.hstack([np.ones((X.shape[0], 1), dtype=np.float64), X])


# ------------------------------------------------------------------ #
# In-memory sources
# ------------------------------------------------------------------ #


class ArrayDesign:
    """Design row source over in-memory NumPy arrays.

    Args:
        X: Encoded regressors ``(n, R)``.  A 1-D array is treated as a
            single regressor column.
        y: Target category indices ``(n,)`` in ``[0, K-1]``.
        category_count: K.  Defaults to ``max(y) + 1``.
        metadata: Optional metadata overriding the inferred counts
            (labels, factor bookkeeping).  Its counts must agree with
            the arrays.

    Raises:
        ConfigurationError: On shape mismatches or out-of-range
            targets.
    """

    def __init__(
        self,
        X: np.ndarray,
        y: np.ndarray,
        *,
        category_count: int | None = None,
        metadata: DesignMetadata | None = None,
    ) -> None:
        X_arr = np.asarray(X, dtype=np.float64)
        if X_arr.ndim == 1:
            X_arr = X_arr[:, None]
        if X_arr.ndim != 2:
            raise ConfigurationError(
                f"X must be 2-dimensional, got shape {X_arr.shape}."
            )
        y_arr = np.asarray(y)
        if y_arr.ndim != 1 or y_arr.shape[0] != X_arr.shape[0]:
            raise ConfigurationError(
                f"y must be 1-dimensional with {X_arr.shape[0]} entries, "
                f"got shape {y_arr.shape}."
            )
        if y_arr.size and not np.all(np.equal(np.mod(y_arr, 1), 0)):
            raise ConfigurationError("Target indices must be integers.")
        y_arr = y_arr.astype(np.intp)

        if metadata is not None:
            category_count = metadata.category_count
        elif category_count is None:
            category_count = int(y_arr.max()) + 1 if y_arr.size else 0

        if y_arr.size and (y_arr.min() < 0 or y_arr.max() >= category_count):
            raise ConfigurationError(
                f"Target indices must lie in [0, {category_count - 1}]."
            )

        if metadata is None:
            metadata = DesignMetadata(
                regressor_count=X_arr.shape[1],
                category_count=category_count,
                row_count=X_arr.shape[0],
            )
        elif metadata.regressor_count != X_arr.shape[1]:
            raise ConfigurationError(
                f"Metadata declares {metadata.regressor_count} regressors "
                f"but X has {X_arr.shape[1]} columns."
            )

        self._X = X_arr
        self._y = y_arr
        self._metadata = metadata

    @property
    def metadata(self) -> DesignMetadata:
        return self._metadata

    @property
    def X(self) -> np.ndarray:
        return self._X

    @property
    def y(self) -> np.ndarray:
        return self._y

    def __len__(self) -> int:
        return self._X.shape[0]

    def __iter__(self) -> Iterator[tuple[np.ndarray, int]]:
        for i in range(self._X.shape[0]):
            yield self._X[i], int(self._y[i])

    def iter_chunks(self, chunk_size: int) -> Iterator[tuple[np.ndarray, np.ndarray]]:
        for start in range(0, self._X.shape[0], chunk_size):
            stop = start + chunk_size
            yield self._X[start:stop], self._y[start:stop]


def _sorted_domain(values: pd.Series) -> list[Hashable]:
    """Sorted distinct values of *values*; mixed types sort by ``str``."""
    uniques = list(pd.unique(values))
    try:
        return sorted(uniques)
    except TypeError:
        return sorted(uniques, key=str)


class DataFrameDesign(ArrayDesign):
    """Design row source encoding a pandas or Polars frame.

    Use :meth:`from_frame` to build one.  The encoded arrays and the
    full labelling metadata are computed once, up front.
    """

    def __init__(
        self,
        X: np.ndarray,
        y: np.ndarray,
        *,
        metadata: DesignMetadata,
        target_name: str | None = None,
    ) -> None:
        super().__init__(X, y, metadata=metadata)
        self.target_name = target_name

    @classmethod
    def from_frame(
        cls,
        X: DataFrameLike,
        y: DataFrameLike,
        *,
        factors: Sequence[str] | None = None,
    ) -> DataFrameDesign:
        """Encode *X* and the single-column target *y*.

        Args:
            X: Predictor frame.  Non-numeric and boolean columns (and
                any column named in *factors*) are treated as nominal.
            y: Single-column target frame (or Series).
            factors: Numeric columns to force into dummy coding.

        Returns:
            The encoded :class:`DataFrameDesign`.

        Raises:
            ConfigurationError: On missing values, a multi-column or
                misaligned target, fewer than two target categories, or
                no usable regressor column.
        """
        X_df = _ensure_pandas_df(X, name="X")
        target = _ensure_target_series(y, name="y")
        forced = set(factors or ())

        if len(X_df) != len(target):
            raise ConfigurationError(
                f"X has {len(X_df)} rows but y has {len(target)}."
            )
        if X_df.isna().to_numpy().any() or target.isna().any():
            raise ConfigurationError(
                "Missing values are not supported. Remove or impute them "
                "before fitting."
            )
        unknown = forced - {str(c) for c in X_df.columns}
        if unknown:
            raise ConfigurationError(f"Unknown factor columns: {sorted(unknown)}.")

        categories = _sorted_domain(target)
        if len(categories) < 2:
            raise ConfigurationError(
                f"The target column must contain at least 2 categories, "
                f"found {len(categories)}."
            )

        blocks: list[np.ndarray] = []
        names: list[str] = []
        factor_names: list[str] = []
        covariate_names: list[str] = []
        factor_levels: dict[str, int] = {}
        excluded: list[str] = []

        for col in X_df.columns:
            name = str(col)
            series = X_df[col]
            nominal = (
                name in forced
                or is_bool_dtype(series)
                or not is_numeric_dtype(series)
            )
            if nominal:
                levels = _sorted_domain(series)
                if len(levels) < 2:
                    excluded.append(name)
                    continue
                # The first level is the dummy-coding baseline.
                for level in levels[1:]:
                    blocks.append((series == level).to_numpy(dtype=np.float64))
                    names.append(f"{name}={level}")
                factor_names.append(name)
                factor_levels[name] = len(levels) - 1
            else:
                if series.nunique() < 2:
                    excluded.append(name)
                    continue
                blocks.append(series.to_numpy(dtype=np.float64))
                names.append(name)
                covariate_names.append(name)

        if not blocks:
            raise ConfigurationError(
                "No usable regressor columns: every predictor was excluded."
            )

        codes = pd.Categorical(target, categories=categories).codes
        metadata = DesignMetadata(
            regressor_count=len(names),
            category_count=len(categories),
            row_count=len(X_df),
            regressor_names=tuple(names),
            category_labels=tuple(categories),
            factor_names=tuple(factor_names),
            covariate_names=tuple(covariate_names),
            factor_levels=factor_levels,
            excluded_columns=tuple(excluded),
        )
        return cls(
            np.column_stack(blocks),
            np.asarray(codes, dtype=np.intp),
            metadata=metadata,
            target_name=str(target.name),
        )

    def category_index(self, label: Any) -> int:
        """Index of the target category *label*.

        Raises:
            ValueError: If *label* is not a target category.
        """
        labels = self.metadata.labels
        try:
            return labels.index(label)
        except ValueError:
            raise ValueError(
                f"{label!r} is not a target category. Known: {labels}."
            ) from None


__all__ = [
    "ArrayDesign",
    "DataFrameDesign",
    "DesignMetadata",
    "DesignRowSource",
    "augment_intercept",
    "category_blocks",
    "iter_chunks",
]
