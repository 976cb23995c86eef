"""Progressive render driver.

``RaytraceState`` owns the accumulation buffer for one rendered image and
turns a stream of frames into a converging picture:

1. Reweight: every cell is multiplied by ``(frame - 1) / frame``.
2. Cast: ``iters_per_frame`` rays from the origin, each adding
   ``color * K / (iters_per_frame * frame)`` to every pixel it visits.
3. Blit: gamma encode the buffer into the caller's RGBA8 output bytes.

Steps 1 and 2 together keep the buffer equal to ``K / iters_per_frame`` times
the arithmetic mean, over frames, of each frame's summed ray contributions.
This is an incremental mean, not an exponential decay, so all frames count
equally no matter how long the render runs.

Randomness comes from an injected NumPy ``Generator``; two states built with
identically seeded generators render identical frames.

The NaN guards of the tracer need Taichi's ``fast_math`` turned off
(``ti.init(..., fast_math=False)``); with it on, rays whose direction stops
being finite may not be detected.

Example:
    >>> import numpy as np
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu, fast_math=False)
    >>> from prismtrace.core.progressive import RaytraceState
    >>> from prismtrace.scene.masks import circle_mask
    >>>
    >>> mask = circle_mask(128, 128)
    >>> state = RaytraceState(
    ...     (128, 128), mask.edge, mask.blur, (10.0, 10.0),
    ...     rng=np.random.default_rng(42),
    ... )
    >>> output = bytearray(128 * 128 * 4)
    >>> for frame in range(1, 11):
    ...     state.raytrace(output, frame)
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import numpy.typing as npt
import taichi as ti

from prismtrace.core.params import RaytraceParams
from prismtrace.core.sampling import MAX_STREAM_SEED, hue_to_rgb, sample_ray_batch
from prismtrace.core.tracer import (
    NUM_EVENTS,
    Event,
    Termination,
    cast_rays,
    scale_buffer,
    trace_one,
)
from prismtrace.materials.sampler import MaterialSampler
from prismtrace.preview.display import encode_rgba

logger = logging.getLogger(__name__)


@dataclass
class RayResult:
    """Final state of a ray traced with ``RaytraceState.trace_ray``.

    Attributes:
        position: Position where the ray stopped.
        direction: Unit direction when the ray stopped.
        steps: Number of pixels the ray wrote to.
        termination: Why the ray stopped.
        events: Boundary events raised by this ray, keyed by event name.
    """

    position: tuple[float, float]
    direction: tuple[float, float]
    steps: int
    termination: Termination
    events: dict[str, int] = field(default_factory=dict)


def _output_view(output: Any, expected: int) -> npt.NDArray[np.uint8]:
    """Wrap a caller's output buffer as a writable flat uint8 array.

    Raises:
        TypeError: If the buffer is read-only.
        ValueError: If the buffer length is not ``expected``.
    """
    view = np.frombuffer(memoryview(output).cast("B"), dtype=np.uint8)
    if not view.flags.writeable:
        raise TypeError("Output buffer is read-only")
    if view.size != expected:
        raise ValueError(f"Output buffer has {view.size} bytes, expected {expected}")
    return view


def _event_dict(counts: npt.NDArray[np.int32]) -> dict[str, int]:
    return {event.name.lower(): int(counts[event]) for event in Event}


class RaytraceState:
    """Progressive light transport render of one mask image.

    The frame kernels take this state's fields as templates, so the first
    frame of every new state compiles them again. Keep one state per image
    rather than building many short-lived ones.

    Attributes:
        width: Image width in pixels.
        height: Image height in pixels.
        origin: Emission point in continuous image coordinates.
        params: The render configuration.
        sampler: Read-only material data.
    """

    def __init__(
        self,
        size: tuple[int, int],
        orig_buf: Any,
        blur_buf: Any,
        origin: tuple[float, float],
        *,
        params: RaytraceParams | None = None,
        rng: np.random.Generator | int | None = None,
    ) -> None:
        """Create the render state.

        Args:
            size: ``(width, height)`` of the image.
            orig_buf: RGBA8 edge (mask) image, ``width*height*4`` bytes.
            blur_buf: RGBA8 blurred mask image of the same size.
            origin: Emission point. It may lie outside the image, in which
                case every ray terminates before writing anything.
            params: Render configuration, defaults to ``RaytraceParams()``.
            rng: Random source, or a seed for ``np.random.default_rng``.
                ``None`` draws fresh OS entropy.

        Raises:
            ValueError: If the size is not positive, a buffer length does not
                match it, or the origin is not finite.
        """
        width, height = int(size[0]), int(size[1])
        origin_x, origin_y = float(origin[0]), float(origin[1])
        if not (math.isfinite(origin_x) and math.isfinite(origin_y)):
            raise ValueError(f"Origin {origin} must be finite")

        self.params = params if params is not None else RaytraceParams()
        self.sampler = MaterialSampler(width, height, orig_buf, blur_buf)
        self.width = width
        self.height = height
        self.origin = (origin_x, origin_y)
        self._rng = np.random.default_rng(rng)

        # Taichi fields start zeroed
        self._accum = ti.Vector.field(3, dtype=ti.f32, shape=(width, height))
        self._events = ti.field(dtype=ti.i32, shape=NUM_EVENTS)
        self._diagnostics = ti.field(dtype=ti.i32, shape=(width, height))
        self._result_vec = ti.Vector.field(4, dtype=ti.f32, shape=())
        self._result_int = ti.Vector.field(2, dtype=ti.i32, shape=())

        self._frame = 0
        self._rays_cast = 0

    @property
    def frame(self) -> int:
        """The last frame index passed to ``raytrace`` (0 before the first)."""
        return self._frame

    @property
    def rays_cast(self) -> int:
        """Total rays cast so far, including ``trace_ray`` calls."""
        return self._rays_cast

    @property
    def max_steps(self) -> int:
        """Step budget of a single ray."""
        return self.params.step_budget(self.width, self.height)

    @property
    def events(self) -> dict[str, int]:
        """Cumulative boundary event counts keyed by event name."""
        return _event_dict(self._events.to_numpy())

    def ray_weight(self, frame: int) -> float:
        """Weight ``K / (iters_per_frame * frame)`` of one ray in ``frame``."""
        return self.params.brightness / (self.params.iters_per_frame * frame)

    def raytrace(self, output: Any, frame: int) -> None:
        """Render one progressive frame into ``output``.

        Args:
            output: Writable RGBA8 buffer of ``width*height*4`` bytes. Every
                byte is overwritten.
            frame: Frame index, 1 for the first frame and increasing by one
                per call.

        Raises:
            ValueError: If ``frame < 1`` or the output has the wrong length.
            TypeError: If the output buffer is read-only.
        """
        if frame < 1:
            raise ValueError(f"Frame index {frame} must be at least 1")
        view = _output_view(output, self.width * self.height * 4)

        scale_buffer(self._accum, (frame - 1) / frame)
        self._cast_frame(self.ray_weight(frame))
        view[:] = self.to_rgba().reshape(-1)

        self._frame = frame
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "Frame %d: %d rays cast, events %s", frame, self._rays_cast, self.events
            )

    def _cast_frame(self, weight: float) -> None:
        params = self.params
        batch = sample_ray_batch(
            self._rng, params.iters_per_frame, params.eta_base, params.eta_spread
        )
        cast_rays(
            self._accum,
            self.sampler.edge,
            self.sampler.blur,
            self._events,
            self._diagnostics,
            batch.angles,
            batch.colors,
            batch.etas,
            batch.seeds,
            self.origin[0],
            self.origin[1],
            weight,
            self.max_steps,
            params.diffuse_probability,
            params.refraction_cooldown,
        )
        self._rays_cast += len(batch)

    def trace_ray(
        self,
        direction: tuple[float, float],
        hue: float = 0.0,
        *,
        seed: int = 1,
        weight: float | None = None,
    ) -> RayResult:
        """Trace a single ray from the origin into the accumulation buffer.

        Args:
            direction: Initial direction; normalized before tracing. A zero or
                non-finite direction terminates the ray immediately.
            hue: Ray hue in ``[0, 1)``, selecting its color and eta.
            seed: Seed of the ray's random stream, in ``[1, 2**31 - 1]``.
            weight: Weight of each pixel write. Defaults to the first-frame
                per-ray weight.

        Returns:
            The ray's final state and the boundary events it raised.

        Raises:
            ValueError: If ``seed`` is out of range.
        """
        if not 1 <= seed <= MAX_STREAM_SEED:
            raise ValueError(f"Seed {seed} is outside [1, {MAX_STREAM_SEED}]")
        if weight is None:
            weight = self.ray_weight(1)

        params = self.params
        color = hue_to_rgb(hue)
        before = self._events.to_numpy()
        trace_one(
            self._accum,
            self.sampler.edge,
            self.sampler.blur,
            self._events,
            self._diagnostics,
            self._result_vec,
            self._result_int,
            self.origin[0],
            self.origin[1],
            float(direction[0]),
            float(direction[1]),
            float(color[0]),
            float(color[1]),
            float(color[2]),
            weight,
            params.eta_for_hue(hue),
            seed,
            self.max_steps,
            params.diffuse_probability,
            params.refraction_cooldown,
        )
        self._rays_cast += 1

        x, y, dx, dy = (float(v) for v in self._result_vec.to_numpy())
        steps, termination = (int(v) for v in self._result_int.to_numpy())
        return RayResult(
            position=(x, y),
            direction=(dx, dy),
            steps=steps,
            termination=Termination(termination),
            events=_event_dict(self._events.to_numpy() - before),
        )

    def image_numpy(self) -> npt.NDArray[np.float32]:
        """Copy of the linear accumulation buffer, shape ``(height, width, 3)``."""
        return np.ascontiguousarray(np.transpose(self._accum.to_numpy(), (1, 0, 2)))

    def diagnostic_mask(self) -> npt.NDArray[np.bool_]:
        """Pixels where a ray met an undefined normal, shape ``(height, width)``."""
        return np.ascontiguousarray(self._diagnostics.to_numpy().T > 0)

    def to_rgba(self) -> npt.NDArray[np.uint8]:
        """Gamma-encode the buffer into RGBA8, shape ``(height, width, 4)``.

        Pixels flagged by undefined normals are painted with the diagnostic
        color when ``params.mark_undefined_normals`` is set.
        """
        rgba = encode_rgba(self.image_numpy(), gamma=self.params.gamma)
        if self.params.mark_undefined_normals:
            mask = self.diagnostic_mask()
            if mask.any():
                marker = np.asarray(self.params.diagnostic_color, dtype=np.float32)
                rgba[mask, :3] = encode_rgba(marker.reshape(1, 1, 3), gamma=self.params.gamma)[
                    0, 0, :3
                ]
        return rgba

    def __repr__(self) -> str:
        return (
            f"RaytraceState(width={self.width}, height={self.height}, "
            f"origin={self.origin}, frame={self.frame})"
        )
