"""PNG export of rendered images.

Example:
    >>> from prismtrace.preview.export import save_png
    >>> state.raytrace(output, frame)
    >>> save_png(state, "prism.png")
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import numpy as np
from PIL import Image as PILImage

if TYPE_CHECKING:
    from prismtrace.core.progressive import RaytraceState


def save_png(state: RaytraceState, filepath: str) -> None:
    """Save the current render of a state as an RGBA PNG.

    Args:
        state: The render state to save.
        filepath: Output file path (should end in .png).
    """
    PILImage.fromarray(state.to_rgba()).save(filepath)


def save_rgba_png(buffer: Any, width: int, height: int, filepath: str) -> None:
    """Save a raw RGBA8 output buffer as a PNG.

    Args:
        buffer: RGBA8 bytes as written by ``RaytraceState.raytrace``.
        width: Image width in pixels.
        height: Image height in pixels.
        filepath: Output file path (should end in .png).

    Raises:
        ValueError: If the buffer length does not match the size.
    """
    data = np.frombuffer(memoryview(buffer).cast("B"), dtype=np.uint8)
    if data.size != width * height * 4:
        raise ValueError(
            f"Buffer has {data.size} bytes, expected {width * height * 4} "
            f"({width}x{height} RGBA8)"
        )
    PILImage.fromarray(data.reshape(height, width, 4).copy()).save(filepath)
