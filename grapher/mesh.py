import logging
from dataclasses import dataclass

import numpy as np
import trimesh

from grapher.config import VERTEX_STRIDE

logger = logging.getLogger(__name__)


def build_vertex_buffer(positions, normals, colors):
    # position(3), normal(3), color(4), texcoord(2); generated graphs have no texture mapping
    positions = np.asarray(positions, dtype=np.float32).reshape(-1, 3)
    count = positions.shape[0]
    texcoords = np.zeros((count, 2), dtype=np.float32)

    interleaved = np.hstack((
        positions,
        np.asarray(normals, dtype=np.float32).reshape(count, 3),
        np.asarray(colors, dtype=np.float32).reshape(count, 4),
        texcoords,
    ))
    return interleaved.ravel()


def build_index_buffer(heights, dimension):
    """Triangulates the grid, dropping every triangle that touches an undefined sample."""
    # per cell: (c, c+1, c+d) then (c+1, c+d+1, c+d)
    valid = np.asarray(heights).reshape(dimension, dimension) >= 0.0

    # Helper grid of 1D vertex indices, same layout as the samples
    index = np.arange(dimension * dimension, dtype=np.uint32).reshape(dimension, dimension)

    v1 = index[:-1, :-1]  # current
    v2 = index[:-1, 1:]   # right
    v3 = index[1:, :-1]   # above
    v4 = index[1:, 1:]    # diagonal

    # Triangle 1 and triangle 2 of every cell, interleaved per cell
    triangles = np.stack((
        np.stack((v1, v2, v3), axis=-1),
        np.stack((v2, v4, v3), axis=-1),
    ), axis=2).reshape(-1, 3)

    ok_1 = valid[:-1, :-1] & valid[:-1, 1:] & valid[1:, :-1]
    ok_2 = valid[1:, 1:] & valid[:-1, 1:] & valid[1:, :-1]
    keep = np.stack((ok_1, ok_2), axis=2).reshape(-1)

    return triangles[keep].ravel()


@dataclass(frozen=True)
class MeshBuffers:
    vertices: np.ndarray  # float32, VERTEX_STRIDE values per vertex
    indices: np.ndarray   # uint32, 3 per triangle

    @property
    def vertex_count(self):
        return self.vertices.size // VERTEX_STRIDE

    @property
    def triangle_count(self):
        return self.indices.size // 3

    def vertex_records(self):
        return self.vertices.reshape(-1, VERTEX_STRIDE)

    @classmethod
    def combine(cls, *buffers):
        # indices are shifted by the vertex count placed before each mesh
        vertex_blocks = []
        index_blocks = []
        offset = 0
        for mesh in buffers:
            vertex_blocks.append(mesh.vertices)
            index_blocks.append(mesh.indices.astype(np.uint32) + np.uint32(offset))
            offset += mesh.vertex_count

        if not vertex_blocks:
            return cls(np.zeros(0, dtype=np.float32), np.zeros(0, dtype=np.uint32))
        return cls(
            np.concatenate(vertex_blocks).astype(np.float32),
            np.concatenate(index_blocks).astype(np.uint32),
        )

    @classmethod
    def from_trimesh(cls, mesh):
        # base meshes are textured: zero normals, opaque white, uv kept when present
        positions = np.asarray(mesh.vertices, dtype=np.float32)
        count = positions.shape[0]

        normals = np.zeros((count, 3), dtype=np.float32)
        colors = np.ones((count, 4), dtype=np.float32)

        uv = getattr(mesh.visual, 'uv', None)
        texcoords = np.zeros((count, 2), dtype=np.float32)
        if uv is not None and len(uv) == count:
            texcoords = np.asarray(uv, dtype=np.float32)

        vertices = np.hstack((positions, normals, colors, texcoords)).ravel()
        indices = np.asarray(mesh.faces, dtype=np.uint32).ravel()
        return cls(vertices, indices)

    def to_trimesh(self):
        records = self.vertex_records()
        faces = self.indices.reshape(-1, 3)

        # Colors are stored as floats in [0, 1]; trimesh expects RGBA bytes
        colors = np.round(np.clip(records[:, 6:10], 0.0, 1.0) * 255).astype(np.uint8)

        # process=False because the vertex order has to match the index buffer
        return trimesh.Trimesh(
            vertices=records[:, 0:3].astype(np.float64),
            faces=faces,
            vertex_normals=records[:, 3:6].astype(np.float64),
            vertex_colors=colors,
            process=False,
        )

    def export(self, path):
        mesh = self.to_trimesh()
        mesh.export(path)
        logger.info(f"Mesh saved to: {path} ({self.vertex_count} vertices, {self.triangle_count} triangles)")
        return path
