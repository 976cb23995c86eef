"""Material mask buffers from image files or procedural shapes.

A scene is a pair of RGBA8 images of the same size: the *edge* image is the
thresholded mask (0 outside, 255 inside) and the *blur* image is that mask
after a Gaussian blur, used for normal estimation.

Example:
    >>> from prismtrace.scene.masks import circle_mask, load_mask
    >>> mask = circle_mask(640, 480)
    >>> mask.width, mask.height
    (640, 480)
    >>> mask = load_mask("circle.bmp", blur_radius=2.0)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import numpy as np
import numpy.typing as npt
from PIL import Image as PILImage
from PIL import ImageFilter

logger = logging.getLogger(__name__)

# Default Gaussian blur radius, in pixels, for the normal-estimation image
DEFAULT_BLUR_RADIUS = 1.0


@dataclass(frozen=True)
class MaskBuffers:
    """Edge and blur images of a scene.

    Attributes:
        width: Image width in pixels.
        height: Image height in pixels.
        edge: RGBA8 thresholded mask bytes, row-major.
        blur: RGBA8 blurred mask bytes, row-major.
    """

    width: int
    height: int
    edge: bytes
    blur: bytes

    @property
    def size(self) -> tuple[int, int]:
        """``(width, height)`` of the images."""
        return (self.width, self.height)


def _to_rgba_bytes(gray: PILImage.Image) -> bytes:
    return gray.convert("RGBA").tobytes()


def mask_from_array(
    mask: npt.ArrayLike,
    *,
    blur_radius: float = DEFAULT_BLUR_RADIUS,
    threshold: float = 0.5,
) -> MaskBuffers:
    """Build scene buffers from a 2D array.

    Args:
        mask: Array of shape ``(height, width)`` with values in ``[0, 1]``.
        blur_radius: Gaussian blur radius in pixels (0 copies the edge image).
        threshold: Values at or above this become inside (255).

    Returns:
        The edge and blur buffers.

    Raises:
        ValueError: If the array is not 2D or is empty, or the blur radius is
            negative.
    """
    values = np.asarray(mask, dtype=np.float32)
    if values.ndim != 2 or values.size == 0:
        raise ValueError(f"Mask must be a non-empty 2D array, got shape {values.shape}")
    if blur_radius < 0.0:
        raise ValueError(f"blur_radius = {blur_radius} must be non-negative")

    height, width = values.shape
    binary = np.where(values >= threshold, 255, 0).astype(np.uint8)
    edge_image = PILImage.fromarray(binary)
    blur_image = edge_image
    if blur_radius > 0.0:
        blur_image = edge_image.filter(ImageFilter.GaussianBlur(radius=blur_radius))

    return MaskBuffers(
        width=width,
        height=height,
        edge=_to_rgba_bytes(edge_image),
        blur=_to_rgba_bytes(blur_image),
    )


def load_mask(
    path: str | Path,
    *,
    size: tuple[int, int] | None = None,
    blur_radius: float = DEFAULT_BLUR_RADIUS,
    threshold: float = 0.5,
) -> MaskBuffers:
    """Load a mask image from disk.

    The image is converted to grayscale; bright pixels are inside.

    Args:
        path: Image file (any format Pillow reads, e.g. BMP or PNG).
        size: Optional ``(width, height)`` to resize to.
        blur_radius: Gaussian blur radius in pixels.
        threshold: Gray level in ``[0, 1]`` at which pixels become inside.

    Returns:
        The edge and blur buffers.
    """
    with PILImage.open(path) as image:
        gray = image.convert("L")
        if size is not None:
            gray = gray.resize(size, PILImage.Resampling.NEAREST)
        values = np.asarray(gray, dtype=np.float32) / 255.0

    logger.debug("Loaded mask %s (%dx%d)", path, values.shape[1], values.shape[0])
    return mask_from_array(values, blur_radius=blur_radius, threshold=threshold)


def circle_mask(
    width: int,
    height: int,
    *,
    center: tuple[float, float] | None = None,
    radius: float | None = None,
    blur_radius: float = DEFAULT_BLUR_RADIUS,
) -> MaskBuffers:
    """A filled disc, the classic prism scene.

    Args:
        width: Image width in pixels.
        height: Image height in pixels.
        center: Disc center in pixel coordinates (default: image center).
        radius: Disc radius in pixels (default: a quarter of the smaller side).
        blur_radius: Gaussian blur radius in pixels.

    Returns:
        The edge and blur buffers.
    """
    if center is None:
        center = (width / 2.0, height / 2.0)
    if radius is None:
        radius = min(width, height) / 4.0

    rows, cols = np.mgrid[0:height, 0:width]
    # Distance from pixel centers
    dx = cols + 0.5 - center[0]
    dy = rows + 0.5 - center[1]
    inside = dx * dx + dy * dy <= radius * radius
    return mask_from_array(inside.astype(np.float32), blur_radius=blur_radius)


def step_mask(
    width: int,
    height: int,
    *,
    boundary: int | None = None,
    blur_radius: float = DEFAULT_BLUR_RADIUS,
) -> MaskBuffers:
    """A single vertical interface: columns at or right of ``boundary`` are inside.

    Args:
        width: Image width in pixels.
        height: Image height in pixels.
        boundary: First inside column (default: ``width // 2``).
        blur_radius: Gaussian blur radius in pixels.

    Returns:
        The edge and blur buffers.
    """
    if boundary is None:
        boundary = width // 2
    cols = np.arange(width)
    row = (cols >= boundary).astype(np.float32)
    return mask_from_array(np.tile(row, (height, 1)), blur_radius=blur_radius)
