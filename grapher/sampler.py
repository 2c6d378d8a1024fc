import logging
from dataclasses import dataclass

import numpy as np

from grapher.config import DEFAULT_CLIP_BOUND, DOMAIN_HALF_EXTENT, grid_step, validate_dimension

logger = logging.getLogger(__name__)

# Height stored for samples that are undefined (NaN) or outside the clip bound
SENTINEL = -1.0

# Per-graph tint: id 1 draws in blue, id 2 in green, everything else in red
_CHANNEL_BY_ID = {1: 2, 2: 1}
_DEFAULT_CHANNEL = 0


@dataclass(frozen=True)
class HeightField:
    dimension: int
    step: float
    clip_bound: float
    xs: np.ndarray        # (dimension,) x coordinate of each column
    ys: np.ndarray        # (dimension,) y coordinate of each row
    raw: np.ndarray       # (N,) evaluated z, NaN/inf preserved
    heights: np.ndarray   # (N,) normalized height in [0, 1] or SENTINEL
    valid: np.ndarray     # (N,) bool
    positions: np.ndarray  # (N, 3) x, reconstructed z, y
    colors: np.ndarray    # (N, 4) rgba

    @property
    def invalid_count(self):
        return int(np.count_nonzero(~self.valid))


def normalize_height(z, clip_bound=DEFAULT_CLIP_BOUND):
    """Maps z from [-B, B] into [0, 1]."""
    return (np.asarray(z, dtype=np.float64) + clip_bound) / (clip_bound * 2)


def reconstruct_height(height, clip_bound=DEFAULT_CLIP_BOUND):
    """Inverse of normalize_height, clamped to [-B, B] so sentinels sit on the floor."""
    z = np.asarray(height, dtype=np.float64) * (clip_bound * 2) - clip_bound
    return np.clip(z, -clip_bound, clip_bound)


def channel_for_graph(graph_id):
    return _CHANNEL_BY_ID.get(graph_id, _DEFAULT_CHANNEL)


def height_colors(heights, valid, graph_id):
    # high samples fade toward black, invalid samples toward transparency
    tint = np.clip(heights * 8 - 3.8, 0.0, 1.0)

    colors = np.zeros((heights.shape[0], 4), dtype=np.float64)
    colors[:, channel_for_graph(graph_id)] = 1.0 - tint

    validity_alpha = valid.astype(np.float64)
    colors[:, 3] = np.clip(validity_alpha - 0.1, 0.0, 1.0)
    return colors


def sample_height_field(expression, dimension, graph_id, clip_bound=DEFAULT_CLIP_BOUND):
    # row-major: sample (col, row) lives at col + row * dimension
    dimension = validate_dimension(dimension)
    step = grid_step(dimension)

    xs = np.linspace(-DOMAIN_HALF_EXTENT, DOMAIN_HALF_EXTENT, dimension)
    ys = np.linspace(-DOMAIN_HALF_EXTENT, DOMAIN_HALF_EXTENT, dimension)
    grid_x, grid_y = np.meshgrid(xs, ys)

    raw = expression.evaluate(grid_x, grid_y).ravel()

    # NaN compares False everywhere, so it has to be caught explicitly
    undefined = np.isnan(raw)
    with np.errstate(invalid='ignore'):
        out_of_bound = np.abs(raw) > clip_bound
    valid = ~(undefined | out_of_bound)

    heights = np.full(raw.shape, SENTINEL, dtype=np.float64)
    heights[valid] = normalize_height(raw[valid], clip_bound)

    positions = np.column_stack((
        grid_x.ravel(),
        reconstruct_height(heights, clip_bound),
        grid_y.ravel(),
    ))
    colors = height_colors(heights, valid, graph_id)

    invalid = int(np.count_nonzero(~valid))
    if invalid:
        logger.debug(f"{invalid} of {raw.size} samples are undefined or out of bound "
                     f"({int(np.count_nonzero(undefined))} NaN)")

    return HeightField(
        dimension=dimension,
        step=step,
        clip_bound=clip_bound,
        xs=xs,
        ys=ys,
        raw=raw,
        heights=heights,
        valid=valid,
        positions=positions,
        colors=colors,
    )
