"""Render configuration.

``RaytraceParams`` collects the tunable constants of the progressive renderer.
The dispersion coefficients, diffuse probability and refraction cooldown only
shape the look of the image; the defaults reproduce the classic prism render.

Example:
    >>> from prismtrace.core.params import RaytraceParams
    >>> params = RaytraceParams(iters_per_frame=200, diffuse_probability=0.0)
    >>> params.step_budget(640, 480)
    1280
"""

from __future__ import annotations

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class RaytraceParams:
    """Parameters for a ``RaytraceState``.

    Attributes:
        brightness: Scale ``K`` of the per-ray weight
            ``K / (iters_per_frame * frame)``.
        iters_per_frame: Rays cast per call to ``raytrace``.
        diffuse_probability: Chance of a diffuse bounce when a ray passes into
            the lower-valued material.
        refraction_cooldown: Steps after a crossing during which further
            crossings are ignored.
        eta_base: Index of refraction for hue 0.
        eta_spread: Index of refraction added across the hue range, giving
            wavelength dependent dispersion.
        step_budget_factor: A ray visits at most
            ``step_budget_factor * max(width, height)`` pixels.
        gamma: Display gamma used by the blit.
        mark_undefined_normals: Paint pixels where a ray hit a boundary with
            an undefined normal in ``diagnostic_color``.
        diagnostic_color: Linear RGB written for flagged pixels. The default
            is deliberately outside ``[0, 1]`` and encodes to pure red.
    """

    brightness: float = 100.0
    iters_per_frame: int = 1000
    diffuse_probability: float = 0.25
    refraction_cooldown: int = 3
    eta_base: float = 1.3
    eta_spread: float = 0.2
    step_budget_factor: int = 2
    gamma: float = 2.2
    mark_undefined_normals: bool = True
    diagnostic_color: tuple[float, float, float] = (10.0, -10.0, -10.0)

    def __post_init__(self) -> None:
        if not math.isfinite(self.brightness) or self.brightness < 0.0:
            raise ValueError(
                f"brightness = {self.brightness} must be finite and non-negative"
            )
        if self.iters_per_frame < 1:
            raise ValueError(
                f"iters_per_frame = {self.iters_per_frame} must be at least 1"
            )
        if not 0.0 <= self.diffuse_probability <= 1.0:
            raise ValueError(
                f"diffuse_probability = {self.diffuse_probability} is outside [0, 1]"
            )
        if self.refraction_cooldown < 0:
            raise ValueError(
                f"refraction_cooldown = {self.refraction_cooldown} must be non-negative"
            )
        if self.eta_base <= 0.0 or self.eta_base + self.eta_spread <= 0.0:
            raise ValueError(
                f"Index of refraction range [{self.eta_base}, "
                f"{self.eta_base + self.eta_spread}] must be positive"
            )
        if self.step_budget_factor < 1:
            raise ValueError(
                f"step_budget_factor = {self.step_budget_factor} must be at least 1"
            )
        if self.gamma <= 0.0:
            raise ValueError(f"gamma = {self.gamma} must be positive")
        if len(self.diagnostic_color) != 3:
            raise ValueError("diagnostic_color must have exactly 3 components")

    def eta_for_hue(self, hue: float) -> float:
        """Index of refraction for a ray of the given hue."""
        return self.eta_base + hue * self.eta_spread

    def step_budget(self, width: int, height: int) -> int:
        """Maximum number of pixels a single ray may visit."""
        return self.step_budget_factor * max(width, height)
