"""Defaults shared by the sampler, the mesh builder and the front ends."""
import math
import numbers
import os
from dataclasses import dataclass

from grapher.errors import ConfigurationError

# Samples are taken over [-DOMAIN_HALF_EXTENT, DOMAIN_HALF_EXTENT] on both axes
DOMAIN_HALF_EXTENT = 5.0
DEFAULT_CLIP_BOUND = 50.0
DEFAULT_DIMENSION = 100
MAX_EQUATIONS = 3

# position(3) + normal(3) + color(4) + texcoord(2)
VERTEX_STRIDE = 12

OUTPUT_FOLDER = os.environ.get("GRAPHER_OUTPUT_DIR", "generated")
HEIGHTMAP_EXTENSION = "ppm"


@dataclass(frozen=True)
class GraphConfig:
    clip_bound: float = DEFAULT_CLIP_BOUND
    output_dir: str = OUTPUT_FOLDER

    def __post_init__(self):
        if not math.isfinite(self.clip_bound) or self.clip_bound <= 0:
            raise ConfigurationError(f"clip_bound must be a positive finite number, got {self.clip_bound}")


def validate_dimension(dimension):
    # bool is an int subclass but never a sensible grid size
    if isinstance(dimension, bool) or not isinstance(dimension, numbers.Integral):
        raise ConfigurationError(f"dimension must be an integer, got {dimension!r}")
    if dimension < 2:
        raise ConfigurationError(f"dimension must be at least 2, got {dimension}")
    return int(dimension)


def grid_step(dimension):
    return 2.0 * DOMAIN_HALF_EXTENT / (dimension - 1)
