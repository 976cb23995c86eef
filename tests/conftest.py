"""Pytest configuration for prismtrace tests.

This module provides shared fixtures for all test modules, including
Taichi initialization which must happen once per session.
"""

import numpy as np
import pytest
import taichi as ti


@pytest.fixture(scope="session", autouse=True)
def init_taichi_session():
    """Initialize Taichi once for the entire test session.

    Using session scope prevents multiple ti.init() calls which can cause
    segmentation faults due to Taichi runtime conflicts. Bounds checking is
    on so any out-of-range field access fails the test that caused it, and
    fast_math is off so the tracer's NaN guards behave as in production.
    """
    ti.init(arch=ti.cpu, random_seed=42, fast_math=False, check_out_of_bound=True)
    yield


def _rgba_columns(values, height):
    row = np.asarray(values, dtype=np.uint8)
    gray = np.tile(row, (height, 1))
    rgba = np.empty(gray.shape + (4,), dtype=np.uint8)
    rgba[..., :3] = gray[..., None]
    rgba[..., 3] = 255
    return rgba.tobytes()


@pytest.fixture
def rgba_columns():
    """Factory for RGBA8 bytes of an image whose columns have given gray levels.

    Usage: ``rgba_columns([0, 0, 255, 255], height)``.
    """
    return _rgba_columns


@pytest.fixture
def step_scene():
    """4x4 scene: columns 0-1 empty, 2-3 dense, blur ramping across.

    Returns:
        ``(size, edge, blur)`` ready for ``RaytraceState``.
    """
    edge = _rgba_columns([0, 0, 255, 255], 4)
    blur = _rgba_columns([0, 64, 191, 255], 4)
    return (4, 4), edge, blur


@pytest.fixture
def empty_scene():
    """8x8 scene with no material anywhere.

    Returns:
        ``(size, edge, blur)`` ready for ``RaytraceState``.
    """
    edge = _rgba_columns([0] * 8, 8)
    return (8, 8), edge, edge
