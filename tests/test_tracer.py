"""Tests for single-ray tracing through material scenes.

Tests cover:
- A straight ray through a vertical interface (one crossing, one refraction)
- Oblique refraction following Snell's law
- Total internal reflection when leaving the dense side
- Undefined normals flagging the pixel and terminating the ray
- Zero directions, step budgets and origins outside the image
"""

import math

import numpy as np
import pytest


def _state(scene, origin, **param_kwargs):
    from prismtrace.core.params import RaytraceParams
    from prismtrace.core.progressive import RaytraceState

    size, edge, blur = scene
    return RaytraceState(
        size, edge, blur, origin, params=RaytraceParams(**param_kwargs), rng=0
    )


class TestStraightRay:
    """A ray crossing a single vertical interface head-on."""

    def test_end_to_end_step_scene(self, step_scene):
        """Test the ray refracts once without bending and leaves the image."""
        from prismtrace.core.tracer import Termination

        state = _state(step_scene, (0.5, 1.5))
        result = state.trace_ray((1.0, 0.0), hue=0.0)

        assert result.termination == Termination.OUT_OF_BOUNDS
        assert result.steps == 4
        assert result.direction == pytest.approx((1.0, 0.0), abs=1e-6)
        assert result.events["crossing"] == 1
        assert result.events["refraction"] == 1
        assert result.events["reflection"] == 0
        assert result.events["diffuse"] == 0

    def test_ray_paints_its_row(self, step_scene):
        """Test every pixel along the ray receives the ray color times the weight."""
        state = _state(step_scene, (0.5, 1.5))
        state.trace_ray((1.0, 0.0), hue=0.0, weight=0.5)

        image = state.image_numpy()
        # Hue 0 is pure red
        assert np.allclose(image[1, :, 0], 0.5, atol=1e-6)
        assert np.allclose(image[1, :, 1:], 0.0)
        assert np.allclose(image[0], 0.0)
        assert np.allclose(image[2:], 0.0)

    def test_direction_is_normalized(self, step_scene):
        """Test a non-unit initial direction is normalized before walking."""
        state = _state(step_scene, (0.5, 1.5))
        result = state.trace_ray((5.0, 0.0))

        assert result.direction == pytest.approx((1.0, 0.0), abs=1e-6)
        assert result.steps == 4


class TestRefraction:
    """Oblique rays at a vertical interface."""

    def _scene(self, rgba_columns):
        edge = rgba_columns([0, 0, 0, 0, 255, 255, 255, 255], 8)
        blur = rgba_columns([0, 0, 0, 64, 191, 255, 255, 255], 8)
        return (8, 8), edge, blur

    def test_oblique_ray_bends_toward_normal(self, rgba_columns):
        """Test the tangential component shrinks by 1/eta entering the dense side."""
        state = _state(self._scene(rgba_columns), (0.5, 1.5))
        angle = math.radians(30.0)
        result = state.trace_ray((math.cos(angle), math.sin(angle)), hue=0.0)

        assert result.events["refraction"] == 1
        assert result.direction[1] == pytest.approx(0.5 / 1.3, abs=1e-4)
        assert math.hypot(*result.direction) == pytest.approx(1.0, abs=1e-5)

    def test_dispersion_depends_on_hue(self, rgba_columns):
        """Test a higher hue bends more strongly."""
        angle = math.radians(30.0)
        direction = (math.cos(angle), math.sin(angle))

        red = _state(self._scene(rgba_columns), (0.5, 1.5)).trace_ray(direction, hue=0.0)
        blue = _state(self._scene(rgba_columns), (0.5, 1.5)).trace_ray(direction, hue=0.9)

        assert blue.direction[1] < red.direction[1]
        assert blue.direction[1] == pytest.approx(0.5 / (1.3 + 0.9 * 0.2), abs=1e-4)


class TestTotalInternalReflection:
    """A steep ray leaving the dense side."""

    def test_reflects_back(self, rgba_columns):
        """Test the ray mirrors back into the dense half."""
        edge = rgba_columns([255] * 8 + [0] * 8, 16)
        blur = rgba_columns([255] * 7 + [191, 64] + [0] * 7, 16)
        state = _state(((16, 16), edge, blur), (2.5, 2.5), diffuse_probability=0.0)

        angle = math.radians(60.0)
        result = state.trace_ray((math.cos(angle), math.sin(angle)))

        assert result.events["reflection"] >= 1
        assert result.events["diffuse"] == 0
        assert result.direction[0] < 0.0
        assert result.direction[1] > 0.0


class TestDiffuse:
    """Diffuse bounces into the lower-valued material."""

    def test_always_diffuse_when_probability_one(self, rgba_columns):
        """Test leaving the dense side always scatters diffusely at probability 1."""
        edge = rgba_columns([255] * 8 + [0] * 8, 16)
        blur = rgba_columns([255] * 7 + [191, 64] + [0] * 7, 16)
        state = _state(((16, 16), edge, blur), (2.5, 8.5), diffuse_probability=1.0)

        result = state.trace_ray((1.0, 0.0), seed=77)

        assert result.events["crossing"] == 1
        assert result.events["diffuse"] == 1
        assert result.events["refraction"] + result.events["reflection"] == 0
        # The bounce keeps moving away from the dense side
        assert result.direction[0] >= 0.0

    def test_entering_dense_side_never_diffuses(self, step_scene):
        """Test diffuse bounces only happen when moving into lower material."""
        state = _state(step_scene, (0.5, 1.5), diffuse_probability=1.0)
        result = state.trace_ray((1.0, 0.0))

        assert result.events["diffuse"] == 0
        assert result.events["refraction"] == 1


class TestUndefinedNormal:
    """Crossings where the blur image is flat."""

    def _scene(self, rgba_columns):
        edge = rgba_columns([0, 0, 255, 255], 4)
        blur = rgba_columns([128] * 4, 4)
        return (4, 4), edge, blur

    def test_terminates_and_flags_pixel(self, rgba_columns):
        """Test the ray stops at the crossing pixel and that pixel is flagged."""
        from prismtrace.core.tracer import Termination

        state = _state(self._scene(rgba_columns), (0.5, 1.5))
        result = state.trace_ray((1.0, 0.0))

        assert result.termination == Termination.UNDEFINED_NORMAL
        assert result.steps == 3
        assert result.events["undefined_normal"] == 1

        mask = state.diagnostic_mask()
        assert mask[1, 2]
        assert mask.sum() == 1

    def test_flagged_pixel_drawn_red(self, rgba_columns):
        """Test flagged pixels show the diagnostic color in the output."""
        state = _state(self._scene(rgba_columns), (0.5, 1.5))
        state.trace_ray((1.0, 0.0))

        rgba = state.to_rgba()
        assert tuple(rgba[1, 2]) == (255, 0, 0, 255)
        # The accumulation buffer itself holds only ordinary light
        assert np.all(state.image_numpy() >= 0.0)

    def test_marking_can_be_disabled(self, rgba_columns):
        """Test the diagnostic overlay is skipped when turned off."""
        state = _state(
            self._scene(rgba_columns), (0.5, 1.5), mark_undefined_normals=False
        )
        state.trace_ray((1.0, 0.0), hue=0.5)

        rgba = state.to_rgba()
        assert rgba[1, 2, 0] == 0


class TestTermination:
    """Termination conditions."""

    def test_zero_direction(self, step_scene):
        """Test a zero direction ends the ray before it writes anything."""
        from prismtrace.core.tracer import Termination

        state = _state(step_scene, (0.5, 1.5))
        result = state.trace_ray((0.0, 0.0))

        assert result.termination == Termination.NON_FINITE
        assert result.steps == 0
        assert result.events["non_finite"] == 1
        assert np.all(state.image_numpy() == 0.0)

    def test_step_budget(self, empty_scene):
        """Test a ray stops after step_budget_factor * max(width, height) pixels."""
        from prismtrace.core.tracer import Termination

        state = _state(empty_scene, (0.5, 0.5), step_budget_factor=1)
        result = state.trace_ray((1.0, 1.0))

        assert result.termination == Termination.STEP_BUDGET
        assert result.steps == 8

    def test_origin_outside_image(self, step_scene):
        """Test a ray emitted outside the image terminates without writing."""
        from prismtrace.core.tracer import Termination

        state = _state(step_scene, (-3.0, 1.5))
        result = state.trace_ray((1.0, 0.0))

        assert result.termination == Termination.OUT_OF_BOUNDS
        assert result.steps == 0
        assert np.all(state.image_numpy() == 0.0)

    def test_steps_bounded_in_circle_scene(self):
        """Test rays in every direction respect the step budget."""
        from prismtrace.scene.masks import circle_mask

        mask = circle_mask(32, 32)
        state = _state((mask.size, mask.edge, mask.blur), (4.5, 4.5))

        for k in range(16):
            angle = 2.0 * math.pi * k / 16
            result = state.trace_ray((math.cos(angle), math.sin(angle)), hue=k / 16, seed=k + 1)
            assert 1 <= result.steps <= state.max_steps

    def test_seed_out_of_range(self, step_scene):
        """Test stream seeds outside [1, 2**31 - 1] raise ValueError."""
        state = _state(step_scene, (0.5, 1.5))
        with pytest.raises(ValueError, match="Seed"):
            state.trace_ray((1.0, 0.0), seed=0)
