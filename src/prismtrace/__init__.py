"""Two-dimensional progressive light transport through a bitmap mask.

Rays are emitted from a point, walked cell by cell across the pixel grid and
refracted, reflected or diffusely scattered wherever the mask's material value
crosses 0.5. Their paths are accumulated into a linear RGB buffer that is
averaged frame over frame and blitted to RGBA8 bytes.

All per-ray and per-pixel work runs in Taichi kernels.

Subpackages:
    core: Vector helpers, voxel walker, ray tracing kernels and the
        progressive render driver
    materials: Material sampling and scattering functions
    scene: Mask buffers from image files or procedural shapes
    preview: Gamma encoding, PNG export and preview windows
"""

__version__ = "0.1.0"
