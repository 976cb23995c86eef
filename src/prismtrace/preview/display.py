"""Gamma encoding and Matplotlib preview of rendered images.

The accumulation buffer holds linear light. Before display every channel is
clamped to ``[0, 1]``, gamma encoded with ``value ** (1 / gamma)`` and scaled
to 8 bits; alpha is always opaque.

Example:
    >>> from prismtrace.preview.display import show_preview
    >>> from prismtrace.core.progressive import RaytraceState
    >>>
    >>> state = RaytraceState((128, 128), edge, blur, (10.0, 10.0))
    >>> state.raytrace(bytearray(128 * 128 * 4), 1)
    >>> show_preview(state)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import numpy as np
import numpy.typing as npt

if TYPE_CHECKING:
    from prismtrace.core.progressive import RaytraceState


def apply_gamma(
    image: npt.NDArray[np.float32],
    gamma: float = 2.2,
) -> npt.NDArray[np.float32]:
    """Apply gamma correction for display.

    Args:
        image: Linear image array of any shape.
        gamma: Gamma value (default 2.2 for sRGB-like displays).

    Returns:
        The encoded image, clamped to ``[0, 1]``.
    """
    # Clamp to [0, 1] before gamma to avoid NaN from negative values
    image = np.clip(image, 0.0, 1.0)

    if gamma == 1.0:
        return image.astype(np.float32)

    return np.power(image, 1.0 / gamma).astype(np.float32)


def encode_rgba(
    image: npt.NDArray[np.float32],
    gamma: float = 2.2,
) -> npt.NDArray[np.uint8]:
    """Convert a linear RGB image to opaque RGBA8.

    Args:
        image: Linear image of shape ``(H, W, 3)``.
        gamma: Gamma value.

    Returns:
        Array of shape ``(H, W, 4)`` with dtype uint8 and alpha 255.

    Raises:
        ValueError: If the image does not have 3 channels.
    """
    if image.ndim != 3 or image.shape[2] != 3:
        raise ValueError(f"Expected an (H, W, 3) image, got shape {image.shape}")

    height, width = image.shape[:2]
    rgba = np.full((height, width, 4), 255, dtype=np.uint8)
    rgba[..., :3] = (apply_gamma(image, gamma) * 255).astype(np.uint8)
    return rgba


def rgba_to_image(buffer: Any, width: int, height: int) -> npt.NDArray[np.float32]:
    """View RGBA8 bytes as a float RGB image in ``[0, 1]``.

    Args:
        buffer: RGBA8 bytes, ``width*height*4`` long, row-major.
        width: Image width in pixels.
        height: Image height in pixels.

    Returns:
        Array of shape ``(height, width, 3)`` with dtype float32.

    Raises:
        ValueError: If the buffer length does not match the size.
    """
    data = np.frombuffer(memoryview(buffer).cast("B"), dtype=np.uint8)
    if data.size != width * height * 4:
        raise ValueError(
            f"Buffer has {data.size} bytes, expected {width * height * 4} "
            f"({width}x{height} RGBA8)"
        )
    rgba = data.reshape(height, width, 4)
    return (rgba[..., :3].astype(np.float32) / 255.0).astype(np.float32)


def show_preview(
    state: RaytraceState,
    *,
    title: str | None = None,
    figsize: tuple[float, float] = (8, 8),
    block: bool = True,
) -> None:
    """Display the current render as a Matplotlib figure.

    Args:
        state: The render state to display.
        title: Custom title (default shows frame and ray counts).
        figsize: Figure size in inches (width, height).
        block: Whether to block execution until the figure is closed.
    """
    import matplotlib.pyplot as plt

    display_image = state.to_rgba()

    fig, ax = plt.subplots(1, 1, figsize=figsize)
    ax.imshow(display_image)
    ax.axis("off")

    if title is None:
        title = f"Frame {state.frame} - {state.rays_cast} rays"
    ax.set_title(title)

    plt.tight_layout()
    plt.show(block=block)
