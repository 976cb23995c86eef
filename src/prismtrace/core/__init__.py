"""Core rendering module.

Components:
    vector: 2D vector helpers used in Taichi scope
    walker: Exact grid traversal (voxel walker) and bounds validation
    sampling: Host ray batches, per-ray random streams and hue colors
    params: Render configuration
    tracer: Ray walking kernels with boundary scattering
    progressive: ``RaytraceState``, the progressive render driver

Each frame reweights the accumulation buffer by ``(frame - 1) / frame`` and
adds a batch of rays, so the buffer is the running mean of all frames.
"""

from .params import RaytraceParams
from .sampling import RayBatch, hue_to_rgb, next_random, sample_ray_batch
from .vector import (
    dot,
    floor,
    floor_to_int_pair,
    fract,
    is_finite,
    ivec2,
    length,
    length_squared,
    normalize,
    vec2,
    vec3,
)
from .walker import VOXEL_EPSILON, crossing_distance, next_voxel, validate_bounds

# Note: tracer and progressive are NOT imported here to avoid circular imports
# with the materials package. Import them directly:
#   from prismtrace.core.progressive import RaytraceState

__all__ = [
    "RaytraceParams",
    "RayBatch",
    "hue_to_rgb",
    "next_random",
    "sample_ray_batch",
    "vec2",
    "ivec2",
    "vec3",
    "dot",
    "length",
    "length_squared",
    "normalize",
    "floor",
    "fract",
    "floor_to_int_pair",
    "is_finite",
    "VOXEL_EPSILON",
    "crossing_distance",
    "next_voxel",
    "validate_bounds",
]
