"""Tests for the default-backend policy."""

import importlib.util

import pytest

import irls_logit._config as _cfg
from irls_logit._config import get_backend, set_backend, use_backend

_AUTO = "jax" if importlib.util.find_spec("jax") is not None else "numpy"


@pytest.fixture(autouse=True)
def _clean_policy(monkeypatch):
    monkeypatch.setattr(_cfg, "_backend_override", None)
    monkeypatch.delenv("IRLS_LOGIT_BACKEND", raising=False)


# ------------------------------------------------------------------ #
# Resolution order
# ------------------------------------------------------------------ #


class TestGetBackend:
    def test_auto_detects_installed_backend(self):
        assert get_backend() == _AUTO

    @pytest.mark.parametrize("value, expected", [("numpy", "numpy"), (" NumPy ", "numpy"), ("jax", "jax")])
    def test_environment(self, monkeypatch, value, expected):
        monkeypatch.setenv("IRLS_LOGIT_BACKEND", value)
        assert get_backend() == expected

    def test_unknown_environment_value_ignored(self, monkeypatch):
        monkeypatch.setenv("IRLS_LOGIT_BACKEND", "cupy")
        assert get_backend() == _AUTO

    def test_programmatic_choice_beats_environment(self, monkeypatch):
        monkeypatch.setenv("IRLS_LOGIT_BACKEND", "numpy")
        set_backend("jax")
        assert get_backend() == "jax"

    def test_auto_clears_programmatic_choice(self):
        set_backend("numpy")
        set_backend("AUTO")
        assert _cfg._backend_override is None
        assert get_backend() == _AUTO


class TestSetBackend:
    def test_rejects_unknown_name(self):
        with pytest.raises(ValueError, match="Unknown backend 'tensorflow'"):
            set_backend("tensorflow")

    def test_rejected_name_keeps_previous_choice(self):
        set_backend("numpy")
        with pytest.raises(ValueError):
            set_backend("cuda")
        assert get_backend() == "numpy"


class TestUseBackend:
    def test_restores_previous_choice(self):
        set_backend("jax")
        with use_backend("numpy") as active:
            assert active == "numpy"
            assert get_backend() == "numpy"
        assert get_backend() == "jax"

    def test_restores_on_error(self):
        with pytest.raises(RuntimeError):
            with use_backend("numpy"):
                raise RuntimeError("fit failed")
        assert _cfg._backend_override is None


# ------------------------------------------------------------------ #
# Fits follow the policy
# ------------------------------------------------------------------ #


class TestPolicyReachesFit:
    def test_numpy_policy_runs_fit(self, chd_frames):
        from irls_logit import ImmediateExecutor, fit_multinomial_logit

        X, y = chd_frames
        with use_backend("numpy"):
            result = fit_multinomial_logit(X, y, epsilon=1e-8, executor=ImmediateExecutor())
        assert result.backend == "numpy"
        assert result.trace.backend == "numpy"

    def test_explicit_argument_beats_policy(self, chd_frames):
        from irls_logit import ImmediateExecutor, fit_multinomial_logit

        pytest.importorskip("jax")
        X, y = chd_frames
        with use_backend("jax"):
            result = fit_multinomial_logit(
                X, y, epsilon=1e-8, executor=ImmediateExecutor(), backend="numpy"
            )
        assert result.backend == "numpy"

    def test_public_exports(self):
        import irls_logit

        assert irls_logit.get_backend is get_backend
        assert irls_logit.use_backend is use_backend
