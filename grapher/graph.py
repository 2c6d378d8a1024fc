import logging

import numpy as np

from grapher.config import GraphConfig, validate_dimension
from grapher.errors import ConfigurationError
from grapher.expression import compile_expression
from grapher.heightmap import HeightmapTexture, write_heightmap
from grapher.mesh import MeshBuffers, build_index_buffer, build_vertex_buffer
from grapher.normals import estimate_normals
from grapher.sampler import sample_height_field

logger = logging.getLogger(__name__)


def _read_only(array):
    array.flags.writeable = False
    return array


class Graph:
    # Everything is computed up front; a bad equation raises ParseError before anything is written.
    # Owns its height array and heightmap texture until close().

    def __init__(self, equation, dimension, graph_id, config=None):
        if isinstance(graph_id, bool) or not isinstance(graph_id, (int, np.integer)):
            raise ConfigurationError(f"graph id must be an integer, got {graph_id!r}")

        self.config = config or GraphConfig()
        self.equation = equation
        self.dimension = validate_dimension(dimension)
        self.id = int(graph_id)

        self.expression = compile_expression(equation)

        field = sample_height_field(self.expression, self.dimension, self.id, self.config.clip_bound)
        self.step = field.step
        self._heights = _read_only(field.heights)
        self.valid = _read_only(field.valid)

        self.heightmap_path = write_heightmap(
            field.heights, self.dimension, self.id, self.config.output_dir, equation=equation
        )
        self._texture = HeightmapTexture(self.heightmap_path)

        self.normals = _read_only(
            estimate_normals(field.heights, self.dimension, field.step, self.config.clip_bound)
        )
        self.positions = _read_only(field.positions)
        self.colors = _read_only(field.colors)

        self.buffers = MeshBuffers(
            vertices=_read_only(build_vertex_buffer(field.positions, self.normals, field.colors)),
            indices=_read_only(build_index_buffer(field.heights, self.dimension)),
        )

        logger.info(f"Graph {self.id}: z = {equation} -> {self.buffers.vertex_count} vertices, "
                    f"{self.buffers.triangle_count} triangles ({field.invalid_count} invalid samples)")

    def __repr__(self):
        return f"Graph(id={self.id}, equation={self.equation!r}, dimension={self.dimension})"

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    @property
    def closed(self):
        return self._heights is None

    @property
    def heights(self):
        if self._heights is None:
            raise RuntimeError(f"Graph {self.id} has been closed")
        return self._heights

    @property
    def texture(self):
        if self._texture is None:
            raise RuntimeError(f"Graph {self.id} has been closed")
        return self._texture

    @property
    def vertex_buffer(self):
        return self.buffers.vertices

    @property
    def index_buffer(self):
        return self.buffers.indices

    def close(self):
        """Releases the heightmap texture and the height array."""
        if self._texture is not None:
            self._texture.release()
            self._texture = None
        self._heights = None
