"""Scene module: material masks.

A scene is an edge image (the thresholded mask) plus a blurred copy of it
used for normal estimation, both RGBA8 and the same size.
"""

from prismtrace.scene.masks import (
    MaskBuffers,
    circle_mask,
    load_mask,
    mask_from_array,
    step_mask,
)

__all__ = [
    "MaskBuffers",
    "circle_mask",
    "load_mask",
    "mask_from_array",
    "step_mask",
]
