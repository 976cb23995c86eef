"""Unit tests for RaytraceParams validation and derived values."""

import pytest


class TestRaytraceParams:
    """Tests for RaytraceParams."""

    def test_defaults(self):
        """Test the default configuration values."""
        from prismtrace.core.params import RaytraceParams

        params = RaytraceParams()
        assert params.brightness == 100.0
        assert params.iters_per_frame == 1000
        assert params.diffuse_probability == 0.25
        assert params.refraction_cooldown == 3
        assert params.diagnostic_color == (10.0, -10.0, -10.0)

    def test_eta_for_hue(self):
        """Test dispersion is linear in hue."""
        from prismtrace.core.params import RaytraceParams

        params = RaytraceParams()
        assert params.eta_for_hue(0.0) == pytest.approx(1.3)
        assert params.eta_for_hue(0.5) == pytest.approx(1.4)

    def test_step_budget(self):
        """Test the step budget scales with the larger image side."""
        from prismtrace.core.params import RaytraceParams

        assert RaytraceParams().step_budget(640, 480) == 1280
        assert RaytraceParams(step_budget_factor=3).step_budget(10, 20) == 60

    def test_params_are_frozen(self):
        """Test parameters cannot be mutated after construction."""
        import dataclasses

        from prismtrace.core.params import RaytraceParams

        params = RaytraceParams()
        with pytest.raises(dataclasses.FrozenInstanceError):
            params.brightness = 1.0

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"brightness": -1.0},
            {"brightness": float("inf")},
            {"iters_per_frame": 0},
            {"diffuse_probability": 1.5},
            {"diffuse_probability": -0.1},
            {"refraction_cooldown": -1},
            {"eta_base": 0.0},
            {"eta_base": 1.0, "eta_spread": -2.0},
            {"step_budget_factor": 0},
            {"gamma": 0.0},
            {"diagnostic_color": (1.0, 0.0)},
        ],
    )
    def test_invalid_values_rejected(self, kwargs):
        """Test out-of-range parameters raise ValueError."""
        from prismtrace.core.params import RaytraceParams

        with pytest.raises(ValueError):
            RaytraceParams(**kwargs)
