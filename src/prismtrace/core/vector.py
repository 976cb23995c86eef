"""Two-dimensional vector utilities for the grid ray tracer.

Positions and directions are ``taichi.math.vec2`` values; pixel positions are
``taichi.math.ivec2`` pairs of ``(col, row)``. Arithmetic, negation and scalar
multiplication come from Taichi's vector type, the helpers below add the
decompositions the voxel walker needs. All helpers are ``ti.func`` and can only
be called from Taichi scope.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from prismtrace.core.vector import fract, vec2
    >>> # Inside a kernel:
    >>> # frac = fract(vec2(1.25, -0.5))  # vec2(0.25, 0.5)
"""

import taichi as ti
import taichi.math as tm

vec2 = tm.vec2
ivec2 = tm.ivec2
vec3 = tm.vec3


@ti.func
def dot(a: vec2, b: vec2) -> ti.f32:
    """Compute the dot product of two vectors."""
    return tm.dot(a, b)


@ti.func
def length_squared(v: vec2) -> ti.f32:
    """Compute the squared length of a vector."""
    return tm.dot(v, v)


@ti.func
def length(v: vec2) -> ti.f32:
    """Compute the Euclidean length of a vector."""
    return ti.sqrt(tm.dot(v, v))


@ti.func
def normalize(v: vec2) -> vec2:
    """Scale a vector to unit length.

    Unlike ``tm.normalize`` there is no epsilon guard: a zero-length input
    produces non-finite components, which callers detect with ``is_finite``.

    Args:
        v: The input vector.

    Returns:
        ``v / sqrt(dot(v, v))``.
    """
    return v / ti.sqrt(tm.dot(v, v))


@ti.func
def floor(v: vec2) -> vec2:
    """Round each component down to the nearest integer (as floats)."""
    return tm.floor(v)


@ti.func
def fract(v: vec2) -> vec2:
    """Fractional part of each component, always in ``[0, 1)``.

    For negative inputs this is ``v - floor(v)``, so ``fract(-0.25) == 0.75``.
    """
    return v - tm.floor(v)


@ti.func
def floor_to_int_pair(v: vec2) -> ivec2:
    """Convert a continuous position to the integer cell that contains it."""
    return ti.cast(tm.floor(v), ti.i32)


@ti.func
def is_finite(v: vec2) -> ti.i32:
    """Check that no component of ``v`` is NaN or infinite.

    Returns:
        1 if both components are finite, 0 otherwise.
    """
    ok = 1
    for c in ti.static(range(2)):
        if tm.isnan(v[c]) or tm.isinf(v[c]):
            ok = 0
    return ok
