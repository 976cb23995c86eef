#!/usr/bin/env python3
"""Interactive progressive render of a mask scene.

Opens a window and renders one frame per refresh; the image converges as
frames accumulate. Close the window or press Escape to quit.

Usage:
    python examples/interactive_mask.py [--mask PATH] [--origin X Y]

Example:
    python examples/interactive_mask.py --mask circle.bmp --iters 50
"""

from __future__ import annotations

import argparse
import platform
import sys
from pathlib import Path

# Ensure the package is importable when run from a source checkout
_src_root = Path(__file__).parent.parent / "src"
if str(_src_root) not in sys.path:
    sys.path.insert(0, str(_src_root))

import taichi as ti  # noqa: E402


def initialize_taichi() -> str:
    """Initialize Taichi with the best available backend.

    On macOS, prefers Metal. Falls back to CPU if GPU is unavailable.

    Returns:
        Name of the backend being used.
    """
    system = platform.system()

    if system == "Darwin":
        try:
            ti.init(arch=ti.metal, fast_math=False)
            return "Metal (GPU)"
        except Exception:
            pass

    try:
        ti.init(arch=ti.gpu, fast_math=False)
        return "GPU"
    except Exception:
        pass

    ti.init(arch=ti.cpu, fast_math=False)
    return "CPU"


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(description="Interactive mask renderer.")
    parser.add_argument("--mask", type=str, default=None, help="Mask image file")
    parser.add_argument("--width", type=int, default=512, help="Width without a mask")
    parser.add_argument("--height", type=int, default=512, help="Height without a mask")
    parser.add_argument("--iters", type=int, default=50, help="Rays per frame")
    parser.add_argument(
        "--origin",
        type=float,
        nargs=2,
        default=(10.0, 10.0),
        metavar=("X", "Y"),
        help="Emission point (default: 10 10)",
    )
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    return parser.parse_args()


def main() -> int:
    """Main entry point for the interactive renderer.

    Returns:
        Exit code (0 for success, non-zero for error).
    """
    args = parse_args()

    # Initialize Taichi first (before importing modules that use ti.kernel)
    backend = initialize_taichi()
    print(f"Taichi backend: {backend}")

    import numpy as np

    from prismtrace.core.params import RaytraceParams
    from prismtrace.core.progressive import RaytraceState
    from prismtrace.preview.interactive import InteractivePreview
    from prismtrace.scene.masks import circle_mask, load_mask

    if not InteractivePreview.is_display_available():
        print("Error: No display available. Cannot run interactive preview.")
        print("This script requires a graphical display environment.")
        return 1

    if args.mask is not None:
        mask = load_mask(args.mask)
    else:
        mask = circle_mask(args.width, args.height)

    state = RaytraceState(
        mask.size,
        mask.edge,
        mask.blur,
        tuple(args.origin),
        params=RaytraceParams(iters_per_frame=args.iters),
        rng=np.random.default_rng(args.seed),
    )

    print(f"Creating interactive preview window ({mask.width}x{mask.height})...")
    preview = InteractivePreview(mask.width, mask.height)

    print("Starting progressive rendering, press Escape to exit")
    try:
        frames = preview.run_progressive(state)
        print(f"Rendered {frames} frames ({state.rays_cast} rays)")
    except KeyboardInterrupt:
        print("\nInterrupted by user.")
    finally:
        preview.close()
        print("Preview window closed.")

    return 0


if __name__ == "__main__":
    sys.exit(main())
