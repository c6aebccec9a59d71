"""Tests for the result object and the ASCII results table."""

from __future__ import annotations

import json

import numpy as np
import pandas as pd
import pytest

from irls_logit import (
    ImmediateExecutor,
    MultinomialLogitResult,
    fit_multinomial_logit,
    print_results_table,
)

# ------------------------------------------------------------------ #
# Helpers
# ------------------------------------------------------------------ #


def _make_result(**overrides):
    fields = {
        "coefficients": np.array([1.0, -2.0, 0.5, 0.0]),
        "log_likelihood": -12.5,
        "covariance_matrix": -np.diag([0.25, 1.0, 0.04, 0.0]),
        "iteration_count": 5,
        "converged": True,
        "termination": "converged",
        "warning": None,
        "reference_category": 1,
        "category_labels": ["a", "b", "c"],
        "parameter_names": ["x"],
    }
    fields.update(overrides)
    return MultinomialLogitResult(**fields)


def _fit_chd(chd_frames, **kwargs):
    X, y = chd_frames
    return fit_multinomial_logit(
        X, y, epsilon=1e-8, executor=ImmediateExecutor(), backend="numpy", **kwargs
    )


# ------------------------------------------------------------------ #
# MultinomialLogitResult
# ------------------------------------------------------------------ #


class TestMultinomialLogitResult:
    def test_dict_access(self):
        result = _make_result()
        assert result["iteration_count"] == 5
        assert result.get("missing", "fallback") == "fallback"
        assert "converged" in result
        assert 3 not in result
        with pytest.raises(KeyError):
            result["missing"]

    def test_labels(self):
        result = _make_result()
        assert result.reference_label == "b"
        assert result.logit_labels == ["a", "c"]
        assert result.variable_names == ["Intercept", "x"]

    def test_coefficient_matrix(self):
        np.testing.assert_array_equal(
            _make_result().coefficient_matrix(), [[1.0, -2.0], [0.5, 0.0]]
        )

    def test_standard_errors_use_absolute_diagonal(self):
        np.testing.assert_allclose(_make_result().standard_errors(), [0.5, 1.0, 0.2, 0.0])

    def test_z_scores_and_p_values(self):
        result = _make_result()
        z = result.z_scores()
        np.testing.assert_allclose(z[:3], [2.0, -2.0, 2.5])
        assert np.isnan(z[3])
        p = result.p_values()
        assert p[0] == pytest.approx(0.0455, abs=1e-4)
        assert p[0] == pytest.approx(p[1])

    def test_summary_frame(self):
        frame = _make_result().summary_frame()
        assert list(frame.columns) == [
            "Logit",
            "Variable",
            "Coeff.",
            "Std. Err.",
            "z-score",
            "P>|z|",
        ]
        assert frame["Logit"].tolist() == ["a", "a", "c", "c"]
        assert frame["Variable"].tolist() == ["Intercept", "x", "Intercept", "x"]

    def test_to_dict_is_json_safe(self, chd_frames):
        result = _fit_chd(chd_frames)
        payload = result.to_dict()
        assert "trace" not in payload
        assert isinstance(payload["coefficients"], list)
        assert isinstance(payload["converged"], bool)
        json.dumps(payload)

    def test_frozen(self):
        result = _make_result()
        with pytest.raises(AttributeError):
            result.converged = False


class TestChdInference:
    def test_standard_errors_match_published(self, chd_frames):
        # Hosmer & Lemeshow Table 1.3: SE(constant) = 1.1337, SE(age) = 0.0241.
        result = _fit_chd(chd_frames, reference_category="0")
        np.testing.assert_allclose(result.coefficients, [-5.309, 0.111], atol=2e-3)
        np.testing.assert_allclose(result.standard_errors(), [1.1337, 0.0241], atol=2e-4)

    def test_summary_labels(self, chd_frames):
        frame = _fit_chd(chd_frames).summary_frame()
        assert frame["Logit"].tolist() == ["0", "0"]
        assert frame["Variable"].tolist() == ["Intercept", "Age"]
        assert isinstance(frame, pd.DataFrame)


# ------------------------------------------------------------------ #
# print_results_table
# ------------------------------------------------------------------ #


class TestPrintResultsTable:
    def test_renders(self, chd_frames, capsys):
        result = _fit_chd(chd_frames)
        print_results_table(result)
        out = capsys.readouterr().out
        assert "Multinomial Logistic Regression Results" in out
        assert "Dep. Variable:" in out
        assert "CHD" in out
        assert "Logit: 0 vs. 1" in out
        assert "Age" in out
        assert f"{result.log_likelihood:.4f}" in out

    def test_notes_section(self, capsys):
        result = _make_result(warning="Something to know.")
        print_results_table(result, title="Custom Title")
        out = capsys.readouterr().out
        assert "Custom Title" in out
        assert "Notes" in out
        assert "Something to know." in out

    def test_line_width(self, chd_frames, capsys):
        print_results_table(_fit_chd(chd_frames))
        out = capsys.readouterr().out
        assert max(len(line) for line in out.splitlines()) <= 80
