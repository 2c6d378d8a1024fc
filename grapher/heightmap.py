import logging
import os

import cv2
import numpy as np

from grapher.config import HEIGHTMAP_EXTENSION
from grapher.errors import HeightmapWriteError

logger = logging.getLogger(__name__)


def heightmap_path(output_dir, graph_id):
    return os.path.join(output_dir, f"graph{graph_id}.{HEIGHTMAP_EXTENSION}")


def heightmap_pixels(heights, dimension):
    # sentinel heights clamp to 0, so undefined samples are black
    heights = np.asarray(heights, dtype=np.float64).reshape(dimension, dimension)
    # round half up to the nearest representable level in [0, 255]
    return np.floor(np.clip(heights, 0.0, 1.0) * 255.0 + 0.5).astype(np.uint8)


def _insert_equation_comment(path, equation):
    with open(path, 'r', encoding='ascii') as f:
        magic, rest = f.read().split('\n', 1)
    comment = ' '.join(equation.split())
    with open(path, 'w', encoding='ascii', errors='replace', newline='\n') as f:
        f.write(f"{magic}\n# Generated .ppm file from equation z = {comment}\n{rest}")


def write_heightmap(heights, dimension, graph_id, output_dir, equation=None):
    """Saves the heights as an ASCII PPM, first row at y = -5."""
    path = heightmap_path(output_dir, graph_id)
    gray = heightmap_pixels(heights, dimension)

    # P3 stores a colour triple per pixel; grey is the same value three times
    rgb = np.dstack((gray, gray, gray))

    try:
        os.makedirs(output_dir, exist_ok=True)
        written = cv2.imwrite(path, rgb, [cv2.IMWRITE_PXM_BINARY, 0])
        if written and equation is not None:
            _insert_equation_comment(path, equation)
    except (OSError, cv2.error) as exc:
        raise HeightmapWriteError(f"Could not write heightmap to {path}: {exc}") from exc

    if not written:
        raise HeightmapWriteError(f"Could not write heightmap to {path}")

    if equation is not None:
        logger.info(f"Heightmap for z = {equation} saved to: {path}")
    else:
        logger.info(f"Heightmap saved to: {path}")
    return path


class HeightmapTexture:
    # single owner, released explicitly or on leaving a with block

    def __init__(self, path):
        image = cv2.imread(path, cv2.IMREAD_UNCHANGED)
        if image is None:
            raise HeightmapWriteError(f"Could not load heightmap texture from {path}")

        self.path = path
        # OpenCV hands back BGR; the renderer expects RGB
        self._image = cv2.cvtColor(image, cv2.COLOR_BGR2RGB) if image.ndim == 3 else image

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()

    @property
    def released(self):
        return self._image is None

    @property
    def image(self):
        if self._image is None:
            raise RuntimeError(f"Texture {self.path} has already been released")
        return self._image

    @property
    def size(self):
        height, width = self.image.shape[:2]
        return width, height

    def release(self):
        self._image = None
