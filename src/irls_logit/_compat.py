"""Frame normalisation at the public entry points.

:class:`~irls_logit.design.DataFrameDesign` works on pandas objects.
Predictors and target may also arrive as Polars objects; they are
converted here, once, before encoding.  Polars stays optional: it is
only consulted when a non-pandas object shows up.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, TypeAlias

import pandas as pd

from ._exceptions import ConfigurationError

if TYPE_CHECKING:
    import polars as pl

    DataFrameLike: TypeAlias = (
        pd.DataFrame | pd.Series | pl.DataFrame | pl.LazyFrame | pl.Series
    )
else:
    DataFrameLike: TypeAlias = pd.DataFrame | pd.Series


def _from_polars(obj: Any) -> pd.DataFrame | pd.Series | None:
    """Convert a Polars frame, lazy frame or series; ``None`` otherwise."""
    try:
        import polars as pl
    except ImportError:
        return None

    if isinstance(obj, pl.LazyFrame):
        obj = obj.collect()
    if isinstance(obj, (pl.DataFrame, pl.Series)):
        return obj.to_pandas()
    return None


def _ensure_pandas_df(obj: DataFrameLike, *, name: str = "X") -> pd.DataFrame:
    """Return the predictor table *obj* as a :class:`pandas.DataFrame`.

    A Series becomes a one-column frame.  Polars inputs are converted
    with ``to_pandas()``.

    Raises:
        TypeError: If *obj* is neither a pandas nor a Polars table.
    """
    if not isinstance(obj, (pd.DataFrame, pd.Series)):
        converted = _from_polars(obj)
        if converted is None:
            raise TypeError(
                f"'{name}' must be a pandas or Polars DataFrame, "
                f"got {type(obj).__name__}."
            )
        obj = converted
    return obj.to_frame() if isinstance(obj, pd.Series) else obj


def _ensure_target_series(obj: DataFrameLike, *, name: str = "y") -> pd.Series:
    """Return the single target column held by *obj* as a Series.

    Raises:
        TypeError: If *obj* is not a pandas or Polars object.
        ConfigurationError: If *obj* is a table with more or fewer
            than one column.
    """
    frame = _ensure_pandas_df(obj, name=name)
    if frame.shape[1] != 1:
        raise ConfigurationError(
            f"{name} must have exactly one column, got {frame.shape[1]}."
        )
    return frame.iloc[:, 0]


__all__ = ["DataFrameLike", "_ensure_pandas_df", "_ensure_target_series"]
