"""Randomness for ray emission and scattering.

Every random draw in a render comes from an explicitly passed source:

- On the host, a NumPy ``Generator`` supplies each frame's ray batch:
  emission angles uniform in ``[0, 2pi)``, hues uniform in ``[0, 1)`` and one
  stream seed per ray.
- In Taichi scope, each ray owns a small xorshift32 stream seeded from its
  batch seed. Diffuse bounces draw from that stream, so a seeded generator
  reproduces a frame exactly regardless of how Taichi schedules the rays.

Example:
    >>> import numpy as np
    >>> from prismtrace.core.sampling import sample_ray_batch
    >>> rng = np.random.default_rng(42)
    >>> batch = sample_ray_batch(rng, 1000)
    >>> batch.colors.shape
    (1000, 3)
"""

import math
from dataclasses import dataclass

import numpy as np
import numpy.typing as npt
import taichi as ti

# Largest stream seed drawn on the host; seeds are nonzero so xorshift never stalls
MAX_STREAM_SEED = 2**31 - 1

# 2^-24: maps the top 24 bits of the stream state onto [0, 1)
_INV_2_24 = 1.0 / 16777216.0


@ti.func
def next_random(state: ti.u32):
    """Advance a per-ray xorshift32 stream.

    Args:
        state: The current nonzero stream state.

    Returns:
        A tuple ``(state, value)`` of the new state and a float uniform in
        ``[0, 1)``.
    """
    x = ti.cast(state, ti.u32)
    x ^= x << ti.u32(13)
    x ^= x >> ti.u32(17)
    x ^= x << ti.u32(5)
    value = ti.cast(x >> ti.u32(8), ti.f32) * _INV_2_24
    return x, value


def hue_to_rgb(hue: npt.ArrayLike) -> npt.NDArray[np.float32]:
    """Map hues in ``[0, 1)`` to saturated RGB colors.

    The hue circle is split into three equal bands, each a linear ramp between
    two primaries (red to green, green to blue, blue to red). The result is
    square-rooted to lift the dim midpoints of each ramp.

    Args:
        hue: Scalar or array of hues in ``[0, 1)``.

    Returns:
        Array of shape ``hue.shape + (3,)`` with dtype float32.
    """
    h = np.asarray(hue, dtype=np.float64) * 3.0
    band = np.clip(np.floor(h), 0.0, 2.0)
    t = h - band
    zero = np.zeros_like(t)

    red_green = np.stack([1.0 - t, t, zero], axis=-1)
    green_blue = np.stack([zero, 1.0 - t, t], axis=-1)
    blue_red = np.stack([t, zero, 1.0 - t], axis=-1)

    rgb = np.where(
        (band == 0.0)[..., None],
        red_green,
        np.where((band == 1.0)[..., None], green_blue, blue_red),
    )
    return np.sqrt(np.clip(rgb, 0.0, 1.0)).astype(np.float32)


@dataclass
class RayBatch:
    """Random inputs for one frame's rays.

    Attributes:
        angles: Emission angles in radians, shape ``(n,)``, float32.
        hues: Ray hues in ``[0, 1)``, shape ``(n,)``, float32.
        colors: RGB color per ray from ``hue_to_rgb``, shape ``(n, 3)``.
        etas: Dispersive index of refraction per ray, shape ``(n,)``.
        seeds: Nonzero in-kernel stream seed per ray, shape ``(n,)``, int32.
    """

    angles: npt.NDArray[np.float32]
    hues: npt.NDArray[np.float32]
    colors: npt.NDArray[np.float32]
    etas: npt.NDArray[np.float32]
    seeds: npt.NDArray[np.int32]

    def __len__(self) -> int:
        return int(self.angles.shape[0])


def sample_ray_batch(
    rng: np.random.Generator,
    count: int,
    eta_base: float = 1.3,
    eta_spread: float = 0.2,
) -> RayBatch:
    """Draw the random inputs for ``count`` rays.

    Draw order is fixed (angles, hues, seeds) so that a generator seeded the
    same way always yields the same batch.

    Args:
        rng: The random source.
        count: Number of rays.
        eta_base: Index of refraction at hue 0.
        eta_spread: Added index of refraction per unit hue.

    Returns:
        The batch, with arrays ready to hand to a Taichi kernel.
    """
    angles = rng.uniform(0.0, 2.0 * math.pi, size=count)
    hues = rng.random(size=count)
    seeds = rng.integers(1, MAX_STREAM_SEED, size=count, endpoint=True)

    return RayBatch(
        angles=np.ascontiguousarray(angles, dtype=np.float32),
        hues=np.ascontiguousarray(hues, dtype=np.float32),
        colors=np.ascontiguousarray(hue_to_rgb(hues)),
        etas=np.ascontiguousarray(eta_base + hues * eta_spread, dtype=np.float32),
        seeds=np.ascontiguousarray(seeds, dtype=np.int32),
    )
