"""Grid ray tracer: walking rays through the material images.

A ray starts at the emission origin and is advanced one pixel at a time by
the voxel walker. Every in-bounds pixel it visits receives the ray's color
times the per-ray weight. When the material value straddles 0.5 relative to
the previous pixel the ray has crossed a boundary and scatters:

    - undefined normal (flat blur neighbourhood): the pixel is flagged and the
      ray terminates
    - moving into the lower-valued material: diffuse bounce with probability
      ``diffuse_probability``
    - otherwise: refraction with the ray's dispersive eta, or mirror
      reflection when refraction is impossible (total internal reflection)

After a crossing, further crossings are ignored for ``cooldown_steps`` pixels
so sampling jitter right at the interface does not refract the ray twice.

A ray terminates when it leaves the image, exhausts its step budget, meets an
undefined normal, or its direction stops being finite.

All buffer writes use Taichi's atomic ``+=`` on global fields, so the rays of
one frame can run in parallel inside a single kernel launch.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from prismtrace.core.tracer import cast_rays, scale_buffer
    >>> # scale_buffer(accum, (frame - 1) / frame)
    >>> # cast_rays(accum, sampler.edge, sampler.blur, events, diagnostics, ...)
"""

from enum import IntEnum

import taichi as ti
import taichi.math as tm

from prismtrace.core.sampling import next_random
from prismtrace.core.vector import is_finite, length_squared, normalize, vec2, vec3
from prismtrace.core.walker import next_voxel, validate_bounds
from prismtrace.materials.sampler import MATERIAL_THRESHOLD, sample_value, sobel_normal
from prismtrace.materials.scatter import diffuse, reflect, refract


class Termination(IntEnum):
    """Why a ray stopped walking."""

    OUT_OF_BOUNDS = 0
    STEP_BUDGET = 1
    UNDEFINED_NORMAL = 2
    NON_FINITE = 3


class Event(IntEnum):
    """Slots of the event counter field."""

    CROSSING = 0
    REFRACTION = 1
    REFLECTION = 2
    DIFFUSE = 3
    UNDEFINED_NORMAL = 4
    NON_FINITE = 5


NUM_EVENTS = len(Event)

_OUT_OF_BOUNDS = int(Termination.OUT_OF_BOUNDS)
_STEP_BUDGET = int(Termination.STEP_BUDGET)
_UNDEFINED_NORMAL = int(Termination.UNDEFINED_NORMAL)
_NON_FINITE = int(Termination.NON_FINITE)

_EV_CROSSING = int(Event.CROSSING)
_EV_REFRACTION = int(Event.REFRACTION)
_EV_REFLECTION = int(Event.REFLECTION)
_EV_DIFFUSE = int(Event.DIFFUSE)
_EV_UNDEFINED_NORMAL = int(Event.UNDEFINED_NORMAL)
_EV_NON_FINITE = int(Event.NON_FINITE)


@ti.func
def walk_ray(
    accum: ti.template(),
    edge: ti.template(),
    blur: ti.template(),
    events: ti.template(),
    diagnostics: ti.template(),
    origin: vec2,
    direction: vec2,
    color: vec3,
    weight: ti.f32,
    eta: ti.f32,
    seed: ti.i32,
    max_steps: ti.i32,
    diffuse_probability: ti.f32,
    cooldown_steps: ti.i32,
):
    """Trace one ray from emission to termination.

    Args:
        accum: Accumulation field ``(width, height)`` of linear RGB.
        edge: Edge-image values ``(width, height)``.
        blur: Blur-image values ``(width, height)``.
        events: Event counter field of length ``NUM_EVENTS``.
        diagnostics: Per-pixel count of undefined-normal terminations.
        origin: Emission point in continuous image coordinates.
        direction: Initial direction, normalized here.
        color: Linear RGB color of the ray.
        weight: Per-ray weight applied to every pixel write.
        eta: Index of refraction ratio used at crossings.
        seed: Nonzero seed of the ray's random stream.
        max_steps: Maximum number of pixels the ray may visit.
        diffuse_probability: Chance of a diffuse bounce into lower material.
        cooldown_steps: Pixels to skip crossing checks after a crossing.

    Returns:
        A tuple ``(position, direction, steps, termination)`` describing the
        ray when it stopped.
    """
    width = edge.shape[0]
    height = edge.shape[1]

    pos = origin
    d = direction
    state = ti.cast(seed, ti.u32)
    prev_inside = 0
    prev_value = 0.0
    first = 1
    cooldown = 0
    steps = 0
    termination = _OUT_OF_BOUNDS
    active = 1

    if length_squared(direction) > 0.0:
        d = normalize(direction)
    if is_finite(d) == 0 or length_squared(d) == 0.0:
        events[_EV_NON_FINITE] += 1
        termination = _NON_FINITE
        active = 0

    while active == 1:
        ipos, in_bounds = validate_bounds(pos, width, height)
        if in_bounds == 0:
            termination = _OUT_OF_BOUNDS
            active = 0
        else:
            accum[ipos.x, ipos.y] += color * weight
            steps += 1

            value = sample_value(edge, ipos)
            inside = 0
            if value >= MATERIAL_THRESHOLD:
                inside = 1

            if cooldown > 0:
                cooldown -= 1
            elif first == 0 and inside != prev_inside:
                events[_EV_CROSSING] += 1
                normal, has_normal = sobel_normal(blur, ipos)
                if has_normal == 0:
                    events[_EV_UNDEFINED_NORMAL] += 1
                    diagnostics[ipos.x, ipos.y] += 1
                    termination = _UNDEFINED_NORMAL
                    active = 0
                else:
                    use_diffuse = 0
                    if value < prev_value:
                        r = 0.0
                        state, r = next_random(state)
                        if r < diffuse_probability:
                            use_diffuse = 1

                    scattered = d
                    scattered_ok = 1
                    if use_diffuse == 1:
                        scattered, scattered_ok, state = diffuse(d, normal, state)
                        events[_EV_DIFFUSE] += 1
                    else:
                        refracted, can_refract = refract(eta, d, normal)
                        if can_refract == 1:
                            scattered = normalize(refracted)
                            events[_EV_REFRACTION] += 1
                        else:
                            scattered = reflect(d, normal)
                            events[_EV_REFLECTION] += 1

                    if scattered_ok == 0 or is_finite(scattered) == 0:
                        events[_EV_NON_FINITE] += 1
                        termination = _NON_FINITE
                        active = 0
                    else:
                        d = scattered
                        cooldown = cooldown_steps

            prev_inside = inside
            prev_value = value
            first = 0

            if active == 1:
                if steps >= max_steps:
                    termination = _STEP_BUDGET
                    active = 0
                else:
                    pos = next_voxel(pos, d)

    return pos, d, steps, termination


@ti.kernel
def scale_buffer(accum: ti.template(), factor: ti.f32):
    """Multiply every accumulation cell by ``factor``."""
    for I in ti.grouped(accum):
        accum[I] *= factor


@ti.kernel
def cast_rays(
    accum: ti.template(),
    edge: ti.template(),
    blur: ti.template(),
    events: ti.template(),
    diagnostics: ti.template(),
    angles: ti.types.ndarray(),
    colors: ti.types.ndarray(),
    etas: ti.types.ndarray(),
    seeds: ti.types.ndarray(),
    origin_x: ti.f32,
    origin_y: ti.f32,
    weight: ti.f32,
    max_steps: ti.i32,
    diffuse_probability: ti.f32,
    cooldown_steps: ti.i32,
):
    """Cast one frame's batch of rays in parallel.

    Ray ``i`` leaves the origin at ``angles[i]`` with color ``colors[i]``,
    refraction ratio ``etas[i]`` and random stream ``seeds[i]``.
    """
    for i in range(angles.shape[0]):
        origin = vec2(origin_x, origin_y)
        direction = vec2(ti.cos(angles[i]), ti.sin(angles[i]))
        color = vec3(colors[i, 0], colors[i, 1], colors[i, 2])
        _pos, _dir, _steps, _termination = walk_ray(
            accum,
            edge,
            blur,
            events,
            diagnostics,
            origin,
            direction,
            color,
            weight,
            etas[i],
            seeds[i],
            max_steps,
            diffuse_probability,
            cooldown_steps,
        )


@ti.kernel
def trace_one(
    accum: ti.template(),
    edge: ti.template(),
    blur: ti.template(),
    events: ti.template(),
    diagnostics: ti.template(),
    result_vec: ti.template(),
    result_int: ti.template(),
    origin_x: ti.f32,
    origin_y: ti.f32,
    direction_x: ti.f32,
    direction_y: ti.f32,
    color_r: ti.f32,
    color_g: ti.f32,
    color_b: ti.f32,
    weight: ti.f32,
    eta: ti.f32,
    seed: ti.i32,
    max_steps: ti.i32,
    diffuse_probability: ti.f32,
    cooldown_steps: ti.i32,
):
    """Trace a single ray and store its final state.

    ``result_vec`` receives ``(x, y, dx, dy)``; ``result_int`` receives
    ``(steps, termination)``.
    """
    pos, d, steps, termination = walk_ray(
        accum,
        edge,
        blur,
        events,
        diagnostics,
        vec2(origin_x, origin_y),
        vec2(direction_x, direction_y),
        vec3(color_r, color_g, color_b),
        weight,
        eta,
        seed,
        max_steps,
        diffuse_probability,
        cooldown_steps,
    )
    result_vec[None] = tm.vec4(pos.x, pos.y, d.x, d.y)
    result_int[None] = tm.ivec2(steps, termination)
