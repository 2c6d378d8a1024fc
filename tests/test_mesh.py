"""Tests for vertex/index buffer construction and buffer concatenation."""

import numpy as np
import pytest
import trimesh

from grapher.config import VERTEX_STRIDE
from grapher.mesh import MeshBuffers, build_index_buffer, build_vertex_buffer
from grapher.sampler import SENTINEL


def make_buffers(vertex_count, indices):
    vertices = np.arange(vertex_count * VERTEX_STRIDE, dtype=np.float32)
    return MeshBuffers(vertices, np.asarray(indices, dtype=np.uint32))


class TestIndexBuffer:

    def test_full_grid(self):
        indices = build_index_buffer(np.full(9, 0.5), 3)
        assert indices.dtype == np.uint32
        assert indices.size == 2 * 4 * 3
        np.testing.assert_array_equal(indices[:6], [0, 1, 3, 1, 4, 3])
        np.testing.assert_array_equal(indices[6:12], [1, 2, 4, 2, 5, 4])

    def test_triangle_count_formula(self):
        for dimension in (2, 5, 10):
            indices = build_index_buffer(np.zeros(dimension * dimension), dimension)
            assert indices.size // 3 == 2 * (dimension - 1) ** 2

    def test_invalid_corner_drops_first_triangle(self):
        heights = np.full(9, 0.5)
        heights[0] = SENTINEL
        indices = build_index_buffer(heights, 3).reshape(-1, 3)
        assert len(indices) == 7
        np.testing.assert_array_equal(indices[0], [1, 4, 3])

    def test_invalid_far_corner_drops_second_triangle(self):
        heights = np.full(4, 0.5)
        heights[3] = SENTINEL
        indices = build_index_buffer(heights, 2).reshape(-1, 3)
        np.testing.assert_array_equal(indices, [[0, 1, 2]])

    def test_no_triangle_touches_invalid_vertex(self):
        rng = np.random.default_rng(7)
        heights = rng.uniform(-1.0, 1.0, size=36)
        heights[heights < 0] = SENTINEL
        indices = build_index_buffer(heights, 6)
        assert np.all(heights[indices] >= 0.0)

    def test_all_invalid(self):
        indices = build_index_buffer(np.full(16, SENTINEL), 4)
        assert indices.size == 0


class TestVertexBuffer:

    def test_layout(self):
        positions = [[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]]
        normals = [[0.0, 1.0, 0.0], [0.0, 0.0, 1.0]]
        colors = [[0.1, 0.2, 0.3, 0.4], [0.5, 0.6, 0.7, 0.8]]
        buffer = build_vertex_buffer(positions, normals, colors)

        assert buffer.dtype == np.float32
        assert buffer.size == 2 * VERTEX_STRIDE
        np.testing.assert_allclose(
            buffer[:VERTEX_STRIDE],
            [1.0, 2.0, 3.0, 0.0, 1.0, 0.0, 0.1, 0.2, 0.3, 0.4, 0.0, 0.0],
            rtol=1e-6,
        )
        np.testing.assert_allclose(buffer[VERTEX_STRIDE + 10:], [0.0, 0.0])


class TestMeshBuffers:

    def test_counts(self):
        mesh = make_buffers(4, [0, 1, 2, 1, 3, 2])
        assert mesh.vertex_count == 4
        assert mesh.triangle_count == 2
        assert mesh.vertex_records().shape == (4, VERTEX_STRIDE)

    def test_combine_offsets_indices(self):
        base = make_buffers(3, [0, 1, 2])
        first = make_buffers(4, [0, 1, 2, 1, 3, 2])
        second = make_buffers(2, [0, 1, 1])

        scene = MeshBuffers.combine(base, first, second)

        assert scene.vertex_count == 9
        np.testing.assert_array_equal(
            scene.indices, [0, 1, 2, 3, 4, 5, 4, 6, 5, 7, 8, 8]
        )
        np.testing.assert_array_equal(scene.vertices[:base.vertices.size], base.vertices)

    def test_combine_nothing(self):
        scene = MeshBuffers.combine()
        assert scene.vertex_count == 0
        assert scene.triangle_count == 0

    def test_from_trimesh(self):
        box = trimesh.creation.box()
        mesh = MeshBuffers.from_trimesh(box)

        assert mesh.vertex_count == len(box.vertices)
        assert mesh.triangle_count == len(box.faces)
        records = mesh.vertex_records()
        np.testing.assert_allclose(records[:, 0:3], box.vertices, rtol=1e-6)
        assert np.all(records[:, 3:6] == 0.0)
        assert np.all(records[:, 6:10] == 1.0)

    def test_to_trimesh(self):
        positions = [[0, 0, 0], [1, 0, 0], [0, 0, 1], [1, 0, 1]]
        normals = [[0, 1, 0]] * 4
        colors = [[0.0, 0.0, 0.8, 1.0]] * 4
        mesh = MeshBuffers(
            build_vertex_buffer(positions, normals, colors),
            build_index_buffer(np.full(4, 0.5), 2),
        )

        converted = mesh.to_trimesh()
        assert isinstance(converted, trimesh.Trimesh)
        assert converted.vertices.shape == (4, 3)
        np.testing.assert_array_equal(converted.faces, [[0, 1, 2], [1, 3, 2]])
        np.testing.assert_array_equal(converted.visual.vertex_colors[0], [0, 0, 204, 255])

    @pytest.mark.parametrize("name", ["scene.obj", "scene.ply"])
    def test_export(self, tmp_path, name):
        mesh = MeshBuffers(
            build_vertex_buffer([[0, 0, 0], [1, 0, 0], [0, 0, 1]], [[0, 1, 0]] * 3, [[1, 0, 0, 1]] * 3),
            np.array([0, 1, 2], dtype=np.uint32),
        )
        path = tmp_path / name
        mesh.export(str(path))
        assert path.exists()
        assert path.stat().st_size > 0
