"""
Depth Decoding Module

The view renders encode surface depth in the alpha channel as its inverse:
a fully opaque pixel lies on the near plane, a fully transparent one on the
far plane.

    depth = 1 - alpha
    x     = round(depth * (N - 1))

Samples right at the near and far planes are the least reliable, so a
symmetric rejection band [0, t) and (1 - t, 1] is filtered out before any
voxel is produced.
"""

from typing import Tuple
import numpy as np


DEFAULT_DEPTH_THRESHOLD = 0.05


def alpha_to_depth(alpha: np.ndarray) -> np.ndarray:
    """
    Decode normalized depth from normalized alpha.

    Args:
        alpha: Alpha values in [0, 1]

    Returns:
        Depth values in [0, 1] (0 = nearest)
    """
    return 1.0 - np.asarray(alpha, dtype=np.float64)


def depth_to_index(depth: np.ndarray, size: int) -> np.ndarray:
    """
    Quantize normalized depth to an along-axis voxel index.

    Rounds half away from zero, so depth 0.5 at N=4 gives index 2.

    Args:
        depth: Depth values in [0, 1]
        size: Cubic volume resolution N

    Returns:
        Integer indices in [0, N-1]
    """
    scaled = np.asarray(depth, dtype=np.float64) * (size - 1)
    return np.floor(scaled + 0.5).astype(np.int64)


class DepthFilter:
    """
    Near/far rejection band for decoded depth.

    A sample is kept when t <= depth <= 1 - t.
    """

    def __init__(self, threshold: float = DEFAULT_DEPTH_THRESHOLD):
        """
        Initialize the filter.

        Args:
            threshold: Width t of each rejection band, in [0, 0.5)
        """
        if not 0.0 <= threshold < 0.5:
            raise ValueError(
                f"Depth threshold must be in [0, 0.5), got {threshold}"
            )
        self.threshold = float(threshold)

    @property
    def band(self) -> Tuple[float, float]:
        """Accepted depth range (low, high), inclusive."""
        return (self.threshold, 1.0 - self.threshold)

    def mask(self, depth: np.ndarray) -> np.ndarray:
        """Boolean mask of samples inside the accepted band."""
        depth = np.asarray(depth, dtype=np.float64)
        low, high = self.band
        return (depth >= low) & (depth <= high)

    def __repr__(self) -> str:
        return f"DepthFilter(threshold={self.threshold})"
