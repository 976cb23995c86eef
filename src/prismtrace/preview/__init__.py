"""Preview module for output and visualization.

Components:
    display: Gamma encoding and Matplotlib-based preview display
    export: PNG export of a render or a raw RGBA8 buffer
    interactive: Taichi GGUI-based interactive preview window

Example:
    >>> from prismtrace.preview import save_png, show_preview
    >>> state.raytrace(output, 1)
    >>> show_preview(state)
    >>> save_png(state, "prism.png")
"""

from prismtrace.preview.display import (
    apply_gamma,
    encode_rgba,
    rgba_to_image,
    show_preview,
)
from prismtrace.preview.export import save_png, save_rgba_png
from prismtrace.preview.interactive import InteractivePreview

__all__ = [
    # Interactive preview
    "InteractivePreview",
    # Display functions
    "show_preview",
    "apply_gamma",
    "encode_rgba",
    "rgba_to_image",
    # Export functions
    "save_png",
    "save_rgba_png",
]
