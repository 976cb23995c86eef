#!/usr/bin/env python3
"""Render light dispersing through a mask image.

Rays are emitted from a point, refracted with a hue-dependent index at every
material boundary of the mask and accumulated over progressive frames. The
final frame is written as an RGBA PNG.

Usage:
    python examples/render_mask.py [options]

Options:
    --mask PATH         Mask image, bright pixels are inside (default: a disc)
    --width WIDTH       Image width in pixels (default: 512)
    --height HEIGHT     Image height in pixels (default: 512)
    --frames FRAMES     Number of progressive frames (default: 50)
    --iters ITERS       Rays per frame (default: 1000)
    --origin X Y        Emission point (default: 10 10)
    --blur RADIUS       Gaussian blur radius for normals (default: 1.0)
    --seed SEED         Random seed (default: fresh entropy)
    --output OUTPUT     Output file path (default: prism.png)
    --quiet             Suppress progress output
    --verbose           Log per-frame event counts

Example:
    python examples/render_mask.py --mask circle.bmp --frames 200 --seed 7
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

# Ensure the package is importable when run from a source checkout
_src_root = Path(__file__).parent.parent / "src"
if str(_src_root) not in sys.path:
    sys.path.insert(0, str(_src_root))

import taichi as ti  # noqa: E402


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Render light dispersing through a mask image.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--mask",
        type=str,
        default=None,
        help="Mask image, bright pixels are inside (default: a centered disc)",
    )
    parser.add_argument(
        "--width",
        type=int,
        default=512,
        help="Image width in pixels (default: 512, or the mask's width)",
    )
    parser.add_argument(
        "--height",
        type=int,
        default=512,
        help="Image height in pixels (default: 512, or the mask's height)",
    )
    parser.add_argument(
        "--frames",
        type=int,
        default=50,
        help="Number of progressive frames (default: 50)",
    )
    parser.add_argument(
        "--iters",
        type=int,
        default=1000,
        help="Rays per frame (default: 1000)",
    )
    parser.add_argument(
        "--origin",
        type=float,
        nargs=2,
        default=(10.0, 10.0),
        metavar=("X", "Y"),
        help="Emission point in pixel coordinates (default: 10 10)",
    )
    parser.add_argument(
        "--blur",
        type=float,
        default=1.0,
        help="Gaussian blur radius for normal estimation (default: 1.0)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed (default: fresh entropy)",
    )
    parser.add_argument(
        "--output",
        type=str,
        default="prism.png",
        help="Output file path (default: prism.png)",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress progress output",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log per-frame event counts",
    )
    return parser.parse_args()


def render_mask(
    mask_path: str | None = None,
    width: int = 512,
    height: int = 512,
    num_frames: int = 50,
    iters_per_frame: int = 1000,
    origin: tuple[float, float] = (10.0, 10.0),
    blur_radius: float = 1.0,
    seed: int | None = None,
    output_path: str = "prism.png",
    quiet: bool = False,
) -> Path:
    """Render a mask scene and save the final frame.

    Args:
        mask_path: Mask image file, or None for a centered disc.
        width: Image width in pixels (ignored when a mask file is given).
        height: Image height in pixels (ignored when a mask file is given).
        num_frames: Number of progressive frames.
        iters_per_frame: Rays cast per frame.
        origin: Emission point.
        blur_radius: Gaussian blur radius for the normal image.
        seed: Random seed, or None for fresh entropy.
        output_path: Output file path (PNG).
        quiet: If True, suppress progress output.

    Returns:
        Path to the saved image file.
    """
    # Lazy imports to allow Taichi initialization first
    import numpy as np

    from prismtrace.core.params import RaytraceParams
    from prismtrace.core.progressive import RaytraceState
    from prismtrace.preview.export import save_rgba_png
    from prismtrace.scene.masks import circle_mask, load_mask

    if mask_path is not None:
        mask = load_mask(mask_path, blur_radius=blur_radius)
    else:
        mask = circle_mask(width, height, blur_radius=blur_radius)

    if not quiet:
        print(f"Scene: {mask.width}x{mask.height}, origin {origin}")

    state = RaytraceState(
        mask.size,
        mask.edge,
        mask.blur,
        origin,
        params=RaytraceParams(iters_per_frame=iters_per_frame),
        rng=np.random.default_rng(seed),
    )
    output = bytearray(mask.width * mask.height * 4)

    if not quiet:
        print(f"Rendering {num_frames} frames of {iters_per_frame} rays...")

    start_time = time.time()
    for frame in range(1, num_frames + 1):
        state.raytrace(output, frame)
        if not quiet:
            elapsed = time.time() - start_time
            rays_per_sec = state.rays_cast / elapsed if elapsed > 0 else 0
            print(
                f"\r  Progress: {frame}/{num_frames} frames "
                f"({frame / num_frames * 100:.1f}%) - {rays_per_sec:.0f} rays/s",
                end="",
                flush=True,
            )

    if not quiet:
        print()  # Newline after progress
        undefined = state.events["undefined_normal"]
        if undefined:
            print(f"Warning: {undefined} rays met an undefined normal (marked red)")

    output_file = Path(output_path)
    save_rgba_png(output, mask.width, mask.height, str(output_file))

    total_time = time.time() - start_time
    if not quiet:
        print(f"Saved to: {output_file.absolute()}")
        print(f"Total time: {total_time:.2f}s")

    return output_file


def main() -> int:
    """Main entry point."""
    args = parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    # Use GPU if available, fall back to CPU
    try:
        ti.init(arch=ti.gpu, fast_math=False)
        if not args.quiet:
            print("Using GPU backend")
    except Exception:
        ti.init(arch=ti.cpu, fast_math=False)
        if not args.quiet:
            print("Using CPU backend")

    try:
        render_mask(
            mask_path=args.mask,
            width=args.width,
            height=args.height,
            num_frames=args.frames,
            iters_per_frame=args.iters,
            origin=tuple(args.origin),
            blur_radius=args.blur,
            seed=args.seed,
            output_path=args.output,
            quiet=args.quiet,
        )
        return 0
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
