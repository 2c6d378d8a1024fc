import numpy as np

from grapher.sampler import reconstruct_height


def normalize_vectors(vectors):
    """Scales each row to unit length; zero-length rows stay (0, 0, 0)."""
    vectors = np.asarray(vectors, dtype=np.float64)
    lengths = np.linalg.norm(vectors, axis=-1, keepdims=True)
    safe_lengths = np.where(lengths > 0, lengths, 1.0)
    return np.where(lengths > 0, vectors / safe_lengths, 0.0)


def estimate_normals(heights, dimension, step, clip_bound):
    """Unit normal per sample from its four neighbours; zero on the border and next to holes."""
    heights = np.asarray(heights, dtype=np.float64).reshape(dimension, dimension)
    normals = np.zeros((dimension, dimension, 3), dtype=np.float64)

    if dimension < 3:
        return normals.reshape(-1, 3)

    # Central differences of the world-space height (rows are y, columns are x).
    # np.gradient uses (f[i+1] - f[i-1]) / (2 * step) on the interior.
    elevation = reconstruct_height(heights, clip_bound)
    partial_y, partial_x = np.gradient(elevation, step)

    undefined = heights < 0
    interior = np.zeros_like(undefined)
    interior[1:-1, 1:-1] = True

    # Any undefined left/right/down/up neighbour disqualifies the sample
    bad_neighbour = np.zeros_like(undefined)
    bad_neighbour[1:-1, 1:-1] = (
        undefined[1:-1, :-2] | undefined[1:-1, 2:] |
        undefined[:-2, 1:-1] | undefined[2:, 1:-1]
    )
    usable = interior & ~bad_neighbour

    # Tangents (1, dx, 0) and (0, dy, 1); cross(tangent_y, tangent_x) = (-dx, 1, -dy)
    tangent_x = np.stack((np.ones_like(partial_x), partial_x, np.zeros_like(partial_x)), axis=-1)
    tangent_y = np.stack((np.zeros_like(partial_y), partial_y, np.ones_like(partial_y)), axis=-1)
    surface = normalize_vectors(np.cross(tangent_y, tangent_x))

    normals[usable] = surface[usable]
    return normals.reshape(-1, 3)
