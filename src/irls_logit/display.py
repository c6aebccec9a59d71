"""Formatted ASCII table display for multinomial logit results.

The table mirrors the statsmodels summary style: a header panel with
the fit diagnostics followed by one coefficient block per non-reference
category (each block is the logit of that category against the
reference).
"""

from __future__ import annotations

import textwrap
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ._results import MultinomialLogitResult


def _truncate(name: str, max_len: int) -> str:
    """Truncate *name* to *max_len*, appending ``'...'`` if needed."""
    if len(name) <= max_len:
        return name
    return name[: max_len - 3] + "..."


def _wrap(text: str, width: int = 80, indent: int = 2) -> str:
    """Word-wrap *text* to *width*, indenting continuation lines."""
    return textwrap.fill(
        text,
        width=width,
        initial_indent="",
        subsequent_indent=" " * indent,
    )


def _header_row(left_label: str, left_value: object, right_label: str, right_value: object) -> str:
    col1, col2 = 40, 38
    left = f"{left_label:<16}{str(left_value):<{col1 - 16}}"
    right = f"{right_label:>{col2 - 11}} {str(right_value):>10}" if right_label else ""
    return f"{left}{right}"


def print_results_table(
    results: MultinomialLogitResult,
    *,
    title: str = "Multinomial Logistic Regression Results",
) -> None:
    """Print the fitted coefficients in a formatted ASCII table.

    All labels (target, categories, regressors) are taken from the
    result object.

    Args:
        results: Result returned by
            :func:`~irls_logit.fit_multinomial_logit` or
            :meth:`~irls_logit.ConvergenceController.fit`.
        title: Title for the output table.
    """
    print("=" * 80)
    for line in textwrap.wrap(title, width=78):
        print(f"{line:^80}")
    print("=" * 80)

    target = _truncate(results.target_name, 20) if results.target_name else "N/A"
    n_obs = results.n_observations if results.n_observations is not None else "N/A"
    reference = _truncate(str(results.reference_label), 20)
    print(_header_row("Dep. Variable:", target, "No. Observations:", n_obs))
    print(_header_row("Reference:", reference, "Log-Likelihood:", f"{results.log_likelihood:.4f}"))
    print(_header_row("Backend:", results.backend or "N/A", "Iterations:", results.iteration_count))
    print(_header_row("Converged:", results.converged, "Termination:", results.termination))
    print("-" * 80)

    # Variable (fc=24) | Coeff. (12) | Std. Err. (12) | z (10) | P>|z| (10)
    fc = 24
    print(f"{'Variable':<{fc}}{'Coeff.':>12}{'Std. Err.':>12}{'z-score':>10}{'P>|z|':>10}")

    frame = results.summary_frame()
    for label, block in frame.groupby("Logit", sort=False):
        print("-" * 80)
        print(_truncate(f"Logit: {label} vs. {results.reference_label}", 80))
        for row in block.itertuples(index=False):
            _, variable, coef, se, z, p = row
            print(
                f"{_truncate(str(variable), fc):<{fc}}"
                f"{coef:>12.4f}{se:>12.4f}{z:>10.3f}{p:>10.4f}"
            )

    if results.warning:
        print("-" * 80)
        print("Notes")
        print("-" * 80)
        print(_wrap(f"  [!] {results.warning}", width=80, indent=6))

    print("=" * 80)
    print()


__all__ = ["print_results_table"]
