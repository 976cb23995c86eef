"""Material sampler: read-only access to the edge and blur images.

The scene is described by two same-sized RGBA8 images. The *edge* image is a
thresholded mask whose channel average is the material value of a pixel
(``>= 0.5`` is inside a refractive object). The *blur* image is a smoothed
copy of the mask, used only to estimate surface normals with a Sobel filter.

On construction the channel averages of both images are uploaded once into
Taichi fields of shape ``(width, height)``. The caller's buffers are never
written to and need not outlive the sampler.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from prismtrace.materials.sampler import MaterialSampler
    >>> from prismtrace.scene.masks import circle_mask
    >>> mask = circle_mask(64, 64)
    >>> sampler = MaterialSampler(64, 64, mask.edge, mask.blur)
    >>> sampler.material_value(32, 32)
    1.0
"""

from typing import Any

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from prismtrace.core.vector import ivec2, vec2

# Material values at or above this are inside the refractive medium
MATERIAL_THRESHOLD = 0.5


def _channel_average(
    buffer: Any, width: int, height: int, name: str
) -> npt.NDArray[np.float32]:
    """Average the RGB channels of an RGBA8 buffer into ``[0, 1]``.

    Returns:
        Array of shape ``(height, width)``.

    Raises:
        ValueError: If the buffer length is not ``width * height * 4``.
    """
    data = np.frombuffer(memoryview(buffer).cast("B"), dtype=np.uint8)
    expected = width * height * 4
    if data.size != expected:
        raise ValueError(
            f"{name} buffer has {data.size} bytes, expected {expected} "
            f"({width}x{height} RGBA8)"
        )
    rgba = data.reshape(height, width, 4)
    return (rgba[..., :3].astype(np.float32).sum(axis=-1) / 3.0 / 255.0).astype(
        np.float32
    )


@ti.func
def sample_value(values: ti.template(), ipos: ivec2) -> ti.f32:
    """Read the channel-averaged value at a pixel.

    Args:
        values: A sampler field (``MaterialSampler.edge`` or ``.blur``).
        ipos: In-bounds ``(col, row)`` pixel position.
    """
    return values[ipos.x, ipos.y]


@ti.func
def sobel_normal(blur: ti.template(), ipos: ivec2):
    """Estimate the surface normal at a pixel from the blur image gradient.

    Applies the 3x3 Sobel kernels to the blur values. Neighbour indices are
    clamped to the image, so border pixels never read outside the field.
    The gradient points toward increasing material value.

    Args:
        blur: The sampler's blur field of shape ``(width, height)``.
        ipos: In-bounds ``(col, row)`` pixel position.

    Returns:
        A tuple ``(normal, ok)``. ``ok`` is 0 when both gradient components
        are exactly zero (flat neighbourhood); ``normal`` is then meaningless.
    """
    width = blur.shape[0]
    height = blur.shape[1]
    left = ti.max(ipos.x - 1, 0)
    right = ti.min(ipos.x + 1, width - 1)
    up = ti.max(ipos.y - 1, 0)
    down = ti.min(ipos.y + 1, height - 1)

    tl = blur[left, up]
    tc = blur[ipos.x, up]
    tr = blur[right, up]
    ml = blur[left, ipos.y]
    mr = blur[right, ipos.y]
    bl = blur[left, down]
    bc = blur[ipos.x, down]
    br = blur[right, down]

    gx = (tr + 2.0 * mr + br) - (tl + 2.0 * ml + bl)
    gy = (bl + 2.0 * bc + br) - (tl + 2.0 * tc + tr)

    normal = vec2(0.0, 0.0)
    ok = 0
    if gx != 0.0 or gy != 0.0:
        normal = tm.normalize(vec2(gx, gy))
        ok = 1
    return normal, ok


@ti.kernel
def _normal_kernel(blur: ti.template(), col: ti.i32, row: ti.i32, out: ti.template()):
    normal, ok = sobel_normal(blur, ivec2(col, row))
    out[None] = tm.vec3(normal.x, normal.y, ti.cast(ok, ti.f32))


class MaterialSampler:
    """Edge and blur material images on the Taichi device.

    Attributes:
        width: Image width in pixels.
        height: Image height in pixels.
        edge: Taichi f32 field ``(width, height)`` of edge-image values.
        blur: Taichi f32 field ``(width, height)`` of blur-image values.
    """

    def __init__(self, width: int, height: int, edge_buffer: Any, blur_buffer: Any) -> None:
        """Upload the material images.

        Args:
            width: Image width in pixels.
            height: Image height in pixels.
            edge_buffer: RGBA8 mask bytes, row-major, ``width*height*4`` long.
            blur_buffer: RGBA8 blurred mask bytes of the same size.

        Raises:
            ValueError: If the size is not positive or a buffer length does
                not match it.
        """
        if width <= 0 or height <= 0:
            raise ValueError(f"Image size ({width}x{height}) must be positive")

        self.width = width
        self.height = height

        edge_values = _channel_average(edge_buffer, width, height, "Edge")
        blur_values = _channel_average(blur_buffer, width, height, "Blur")

        # Fields are indexed (col, row), images are stored (row, col)
        self.edge = ti.field(dtype=ti.f32, shape=(width, height))
        self.blur = ti.field(dtype=ti.f32, shape=(width, height))
        self.edge.from_numpy(np.ascontiguousarray(edge_values.T))
        self.blur.from_numpy(np.ascontiguousarray(blur_values.T))

        self._normal_out = ti.Vector.field(3, dtype=ti.f32, shape=())

    def _check_pixel(self, col: int, row: int) -> None:
        if not (0 <= col < self.width and 0 <= row < self.height):
            raise ValueError(
                f"Pixel ({col}, {row}) is outside the {self.width}x{self.height} image"
            )

    def material_value(self, col: int, row: int) -> float:
        """Material value of a pixel in ``[0, 1]``."""
        self._check_pixel(col, row)
        return float(self.edge[col, row])

    def blur_value(self, col: int, row: int) -> float:
        """Blurred material value of a pixel in ``[0, 1]``."""
        self._check_pixel(col, row)
        return float(self.blur[col, row])

    def is_inside(self, col: int, row: int) -> bool:
        """Whether a pixel lies inside the refractive medium."""
        return self.material_value(col, row) >= MATERIAL_THRESHOLD

    def normal_at(self, col: int, row: int) -> tuple[float, float] | None:
        """Sobel-estimated unit normal at a pixel.

        Returns:
            ``(nx, ny)``, or ``None`` where the blur image is locally flat.
        """
        self._check_pixel(col, row)
        _normal_kernel(self.blur, col, row, self._normal_out)
        nx, ny, ok = self._normal_out.to_numpy()
        if ok == 0.0:
            return None
        return (float(nx), float(ny))

    def __repr__(self) -> str:
        return f"MaterialSampler(width={self.width}, height={self.height})"
