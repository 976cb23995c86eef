"""Materials module.

Components:
    sampler: Edge and blur material images, Sobel normal estimation
    scatter: Diffuse, mirror reflection and refraction at boundaries

A pixel is inside the refractive medium when the channel average of the
edge image is at least 0.5.
"""

from .sampler import MATERIAL_THRESHOLD, MaterialSampler, sample_value, sobel_normal
from .scatter import diffuse, reflect, refract

__all__ = [
    "MATERIAL_THRESHOLD",
    "MaterialSampler",
    "sample_value",
    "sobel_normal",
    "diffuse",
    "reflect",
    "refract",
]
