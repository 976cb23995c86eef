"""Scattering at material boundaries: diffuse, reflection and refraction.

All functions take unit direction vectors and a unit normal and run in Taichi
scope. The normal handed in by the tracer comes from the blur-image gradient
and points toward the denser (higher material value) side; ``refract`` works
with either orientation.

Key physics:
    - Snell's law: the tangential component of the direction scales by eta
    - Total internal reflection when ``1 - eta^2 (1 - cos_i^2) < 0``
    - Mirror reflection ``d - 2 (d . n) n``

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from prismtrace.materials.scatter import reflect, refract
    >>> # Inside a kernel:
    >>> # refracted, ok = refract(1.5, incident, normal)
    >>> # if ok == 0:
    >>> #     refracted = reflect(incident, normal)
"""

import taichi as ti
import taichi.math as tm

from prismtrace.core.sampling import next_random
from prismtrace.core.vector import length_squared, normalize, vec2


@ti.func
def reflect(incident: vec2, normal: vec2) -> vec2:
    """Mirror an incident direction about a normal.

    Args:
        incident: The incoming direction.
        normal: The surface normal (unit length, either orientation).

    Returns:
        ``incident - normal * 2 dot(incident, normal)``.
    """
    return incident - normal * (2.0 * tm.dot(incident, normal))


@ti.func
def refract(eta: ti.f32, incident: vec2, normal: vec2):
    """Refract an incident direction through an interface.

    If the incident ray arrives from the back of the normal
    (``dot(incident, normal) >= 0``) the normal is flipped and eta inverted,
    so the result does not depend on which way the normal points.

    Args:
        eta: Ratio of refractive indices, leaving medium over entering medium,
            for a ray that arrives against the normal.
        incident: The incoming direction (unit length).
        normal: The surface normal (unit length).

    Returns:
        A tuple ``(direction, ok)``. ``ok`` is 0 on total internal reflection,
        in which case the caller should reflect instead. ``direction`` is not
        normalized.
    """
    n = normal
    ratio = eta
    if tm.dot(incident, normal) >= 0.0:
        n = -normal
        ratio = 1.0 / eta

    cos_i = -tm.dot(incident, n)
    k = 1.0 - ratio * ratio * (1.0 - cos_i * cos_i)

    direction = vec2(0.0, 0.0)
    ok = 0
    if k >= 0.0:
        direction = incident * ratio + n * (ratio * cos_i - ti.sqrt(k))
        ok = 1
    return direction, ok


@ti.func
def diffuse(incident: vec2, normal: vec2, state: ti.u32):
    """Scatter into a random direction on the incident ray's side.

    A point is drawn uniformly from ``[-1, 1]^2`` and normalized. If it lies
    on the opposite side of the normal from ``incident`` it is negated, so the
    bounce keeps travelling through the interface instead of back toward the
    source.

    Args:
        incident: The incoming direction.
        normal: The surface normal.
        state: The ray's random stream state.

    Returns:
        A tuple ``(direction, ok, state)``. ``ok`` is 0 when the drawn point
        has zero length and no direction exists.
    """
    s = ti.cast(state, ti.u32)
    s, u = next_random(s)
    s, v = next_random(s)
    point = vec2(u * 2.0 - 1.0, v * 2.0 - 1.0)

    direction = vec2(0.0, 0.0)
    ok = 0
    if length_squared(point) > 0.0:
        direction = normalize(point)
        ok = 1
        if tm.dot(direction, normal) * tm.dot(incident, normal) < 0.0:
            direction = -direction
    return direction, ok, s
