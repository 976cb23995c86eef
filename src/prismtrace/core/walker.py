"""Voxel walker: exact grid traversal for a continuous ray.

A ray is advanced one pixel cell at a time. For each axis the parametric
distance to the next integer grid line is computed from the fractional part of
the position and the direction component (a 2D digital differential analyzer),
the nearer crossing wins, and a small epsilon pushes the position over the
line so the next floor lands in the neighbouring cell.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from prismtrace.core.walker import next_voxel, validate_bounds
    >>> # Inside a kernel:
    >>> # pos = next_voxel(vec2(0.5, 0.5), vec2(1.0, 0.0))  # vec2(1.01, 0.5)
    >>> # ipos, ok = validate_bounds(pos, width, height)
"""

import math

import taichi as ti
import taichi.math as tm

from prismtrace.core.vector import floor_to_int_pair, fract, ivec2, vec2

# Overshoot past a grid line so the step always enters the next cell
VOXEL_EPSILON = 0.01

# Substitute distance for an axis whose crossing distance is not finite
SQRT_2 = math.sqrt(2.0)


@ti.func
def _finite_min(a: ti.f32, b: ti.f32) -> ti.f32:
    """Minimum of two crossing distances with non-finite operands replaced.

    An operand that is NaN or infinite is replaced by ``sqrt(2)``, the
    diagonal of one cell. This is a numerical guard for the walker, not a
    general purpose min.
    """
    a_safe = a
    b_safe = b
    if tm.isnan(a) or tm.isinf(a):
        a_safe = SQRT_2
    if tm.isnan(b) or tm.isinf(b):
        b_safe = SQRT_2
    return ti.min(a_safe, b_safe)


@ti.func
def crossing_distance(frac: ti.f32, d: ti.f32) -> ti.f32:
    """Parametric distance to the next grid line along one axis.

    Args:
        frac: Fractional part of the position on this axis, in ``[0, 1)``.
        d: Direction component on this axis.

    Returns:
        ``(1 - frac) / d`` for positive ``d``, ``frac / -d`` for negative
        ``d``. An axis the ray never crosses (``d == 0``) reports ``sqrt(2)``.
    """
    t = SQRT_2
    if d > 0.0:
        t = (1.0 - frac) * (1.0 / d)
    elif d < 0.0:
        t = frac * (-1.0 / d)
    return t


@ti.func
def next_voxel(pos: vec2, direction: vec2) -> vec2:
    """Advance a position into the next grid cell along ``direction``.

    Args:
        pos: Current continuous position.
        direction: Unit direction of travel.

    Returns:
        The position just past the nearest x or y grid-line crossing.
    """
    frac = fract(pos)
    tx = crossing_distance(frac.x, direction.x)
    ty = crossing_distance(frac.y, direction.y)
    t = _finite_min(tx, ty)
    return pos + direction * (t + VOXEL_EPSILON)


@ti.func
def validate_bounds(pos: vec2, width: ti.i32, height: ti.i32):
    """Floor a position and check it against the image rectangle.

    Args:
        pos: Continuous position.
        width: Image width in pixels.
        height: Image height in pixels.

    Returns:
        A tuple ``(ipos, ok)`` where ``ipos`` is the ``(col, row)`` cell and
        ``ok`` is 1 when ``0 <= col < width`` and ``0 <= row < height``.
        ``ipos`` must not be used to index anything when ``ok`` is 0.
    """
    ipos = ivec2(-1, -1)
    ok = 0
    # Compare as floats first so huge or NaN positions never reach the cast
    if pos.x >= 0.0 and pos.y >= 0.0 and pos.x < width and pos.y < height:
        cell = floor_to_int_pair(pos)
        if cell.x < width and cell.y < height:
            ipos = cell
            ok = 1
    return ipos, ok
