"""Unit tests for the voxel walker.

Tests cover:
- next_voxel steps along each axis, diagonally and from negative directions
- crossing_distance for axes the ray never crosses
- validate_bounds on the image edges and on non-finite positions
- Every step moves into an adjacent cell, for random positions and directions
"""

import math

import numpy as np
import taichi as ti


class TestNextVoxel:
    """Tests for next_voxel."""

    def _step(self, pos, direction):
        from prismtrace.core.vector import vec2
        from prismtrace.core.walker import next_voxel

        result = ti.field(dtype=ti.math.vec2, shape=())

        @ti.kernel
        def test_kernel(px: ti.f32, py: ti.f32, dx: ti.f32, dy: ti.f32):
            result[None] = next_voxel(vec2(px, py), vec2(dx, dy))

        test_kernel(pos[0], pos[1], direction[0], direction[1])
        return result.to_numpy()

    def test_step_positive_x(self):
        """Test a +x step lands just past the next vertical grid line."""
        r = self._step((0.5, 0.5), (1.0, 0.0))
        assert np.allclose(r, [1.01, 0.5], atol=1e-5)

    def test_step_positive_y(self):
        """Test a +y step lands just past the next horizontal grid line."""
        r = self._step((0.5, 0.5), (0.0, 1.0))
        assert np.allclose(r, [0.5, 1.01], atol=1e-5)

    def test_step_negative_x(self):
        """Test a -x step lands just before the previous grid line."""
        r = self._step((1.5, 0.5), (-1.0, 0.0))
        assert np.allclose(r, [0.99, 0.5], atol=1e-5)

    def test_step_diagonal_crosses_both_lines(self):
        """Test a diagonal step through a cell corner enters the diagonal cell."""
        s = 1.0 / math.sqrt(2.0)
        r = self._step((0.5, 0.5), (s, s))
        assert r[0] > 1.0 and r[1] > 1.0
        assert np.floor(r[0]) == 1.0 and np.floor(r[1]) == 1.0

    def test_step_from_grid_line(self):
        """Test a step starting exactly on a grid line still moves forward."""
        r = self._step((2.0, 0.5), (-1.0, 0.0))
        assert r[0] < 2.0
        assert np.floor(r[0]) == 1.0


class TestCrossingDistance:
    """Tests for crossing_distance."""

    def test_distances(self):
        """Test the parametric distance for positive, negative and zero components."""
        from prismtrace.core.walker import SQRT_2, crossing_distance

        result = ti.field(dtype=ti.f32, shape=3)

        @ti.kernel
        def test_kernel():
            result[0] = crossing_distance(0.25, 0.5)
            result[1] = crossing_distance(0.25, -0.5)
            result[2] = crossing_distance(0.25, 0.0)

        test_kernel()
        assert abs(result[0] - 1.5) < 1e-6
        assert abs(result[1] - 0.5) < 1e-6
        assert abs(result[2] - SQRT_2) < 1e-6


class TestValidateBounds:
    """Tests for validate_bounds."""

    def _validate(self, points, width=4, height=4):
        from prismtrace.core.vector import vec2
        from prismtrace.core.walker import validate_bounds

        points = np.asarray(points, dtype=np.float32)
        cells = np.zeros((len(points), 2), dtype=np.int32)
        flags = np.zeros(len(points), dtype=np.int32)

        @ti.kernel
        def test_kernel(
            pts: ti.types.ndarray(),
            out_cells: ti.types.ndarray(),
            out_flags: ti.types.ndarray(),
            w: ti.i32,
            h: ti.i32,
        ):
            for i in range(pts.shape[0]):
                ipos, ok = validate_bounds(vec2(pts[i, 0], pts[i, 1]), w, h)
                out_cells[i, 0] = ipos.x
                out_cells[i, 1] = ipos.y
                out_flags[i] = ok

        test_kernel(points, cells, flags, width, height)
        return cells, flags

    def test_inside_points(self):
        """Test positions inside the image map to their cells."""
        cells, flags = self._validate([(0.0, 0.0), (3.99, 3.99), (2.5, 1.2)])
        assert flags.tolist() == [1, 1, 1]
        assert cells.tolist() == [[0, 0], [3, 3], [2, 1]]

    def test_outside_points(self):
        """Test positions on or past the far edges, or negative, are rejected."""
        cells, flags = self._validate([(4.0, 0.5), (0.5, 4.0), (-0.01, 1.0), (1.0, -3.0)])
        assert flags.tolist() == [0, 0, 0, 0]
        assert (cells == -1).all()

    def test_non_finite_points(self):
        """Test NaN and infinite positions are rejected."""
        cells, flags = self._validate(
            [(math.nan, 1.0), (1.0, math.inf), (-math.inf, 0.0), (1.0e30, 1.0)]
        )
        assert flags.tolist() == [0, 0, 0, 0]


class TestWalkerAdjacency:
    """Each step must enter a neighbouring cell."""

    def test_random_steps_move_to_adjacent_cells(self):
        """Test 10,000 random steps never skip a cell."""
        from prismtrace.core.vector import floor_to_int_pair, vec2
        from prismtrace.core.walker import next_voxel

        rng = np.random.default_rng(1234)
        count = 10_000
        positions = rng.uniform(0.0, 64.0, size=(count, 2)).astype(np.float32)
        angles = rng.uniform(0.0, 2.0 * np.pi, size=count)
        directions = np.stack([np.cos(angles), np.sin(angles)], axis=-1).astype(np.float32)
        moves = np.zeros((count, 2), dtype=np.int32)

        @ti.kernel
        def test_kernel(
            pos: ti.types.ndarray(),
            dirs: ti.types.ndarray(),
            out: ti.types.ndarray(),
        ):
            for i in range(pos.shape[0]):
                p = vec2(pos[i, 0], pos[i, 1])
                d = vec2(dirs[i, 0], dirs[i, 1])
                before = floor_to_int_pair(p)
                after = floor_to_int_pair(next_voxel(p, d))
                out[i, 0] = after.x - before.x
                out[i, 1] = after.y - before.y

        test_kernel(positions, directions, moves)

        assert np.abs(moves).max() <= 1
        # Moves follow the direction's sign on each axis
        assert not np.any((moves[:, 0] != 0) & (np.sign(moves[:, 0]) != np.sign(directions[:, 0])))
        assert not np.any((moves[:, 1] != 0) & (np.sign(moves[:, 1]) != np.sign(directions[:, 1])))


class TestPackageImport:
    """The Taichi-decorated modules must load through the package."""

    def test_core_and_materials_import(self):
        """Test the package entry points import and expose the tracer pieces."""
        import prismtrace.core as core
        import prismtrace.materials as materials
        from prismtrace.core.progressive import RaytraceState
        from prismtrace.core.tracer import cast_rays, walk_ray

        assert callable(core.next_random)
        assert callable(materials.sobel_normal)
        assert callable(materials.MaterialSampler)
        assert callable(walk_ray)
        assert callable(cast_rays)
        assert RaytraceState.__name__ == "RaytraceState"


class TestWalkBoundsSafety:
    """Full ray walks never touch memory outside the image."""

    def test_random_origins_and_directions(self):
        """Test 10,000 walks from random origins, some outside the image.

        The session runs with check_out_of_bound, so any out-of-range field
        access raises inside the kernel.
        """
        from prismtrace.core.tracer import NUM_EVENTS, Termination, walk_ray
        from prismtrace.core.vector import vec2, vec3
        from prismtrace.materials.sampler import MaterialSampler
        from prismtrace.scene.masks import circle_mask

        width, height = 32, 24
        mask = circle_mask(width, height)
        sampler = MaterialSampler(width, height, mask.edge, mask.blur)
        edge = sampler.edge
        blur = sampler.blur
        accum = ti.Vector.field(3, dtype=ti.f32, shape=(width, height))
        events = ti.field(dtype=ti.i32, shape=NUM_EVENTS)
        diagnostics = ti.field(dtype=ti.i32, shape=(width, height))
        max_steps = 2 * max(width, height)

        rng = np.random.default_rng(2024)
        count = 10_000
        origins = np.stack(
            [rng.uniform(-8.0, width + 8.0, count), rng.uniform(-8.0, height + 8.0, count)],
            axis=-1,
        ).astype(np.float32)
        angles = rng.uniform(0.0, 2.0 * np.pi, size=count)
        directions = np.stack([np.cos(angles), np.sin(angles)], axis=-1).astype(np.float32)
        steps_out = np.zeros(count, dtype=np.int32)
        term_out = np.zeros(count, dtype=np.int32)

        @ti.kernel
        def test_kernel(
            pos: ti.types.ndarray(),
            dirs: ti.types.ndarray(),
            steps: ti.types.ndarray(),
            terms: ti.types.ndarray(),
        ):
            for i in range(pos.shape[0]):
                _p, _d, n, t = walk_ray(
                    accum,
                    edge,
                    blur,
                    events,
                    diagnostics,
                    vec2(pos[i, 0], pos[i, 1]),
                    vec2(dirs[i, 0], dirs[i, 1]),
                    vec3(1.0, 1.0, 1.0),
                    0.001,
                    1.3,
                    i + 1,
                    max_steps,
                    0.25,
                    3,
                )
                steps[i] = n
                terms[i] = t

        test_kernel(origins, directions, steps_out, term_out)

        image = accum.to_numpy()
        assert np.all(np.isfinite(image))
        assert image.min() >= 0.0
        assert steps_out.max() <= max_steps
        assert set(np.unique(term_out)) <= {int(t) for t in Termination}

        outside = (
            (origins[:, 0] < 0.0)
            | (origins[:, 1] < 0.0)
            | (origins[:, 0] >= width)
            | (origins[:, 1] >= height)
        )
        assert outside.any() and (~outside).any()
        assert np.all(steps_out[outside] == 0)
        assert np.all(steps_out[~outside] >= 1)
