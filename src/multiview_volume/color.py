"""
Color Management Module

Handles:
- sRGB to Linear color space conversion (optional, before merging views)
- Linear to sRGB conversion (for 8-bit palette export)
- Color quantization for palette-limited formats (.vox)

Color Space Background:
- PNG view renders are in sRGB (perceptual) space
- Averaging colors is only physically meaningful in Linear space
- Renderers sampling volume colors generally expect Linear values

The kernels are compiled without numba's parallel backend: they run inside
frame worker threads, and numba's fallback threading layer may not be
entered from several threads at once.
"""

from typing import Tuple
import numpy as np
from numba import njit


SRGB = "srgb"
LINEAR = "linear"


@njit(cache=True)
def _srgb_to_linear_component(c: float) -> float:
    """Decode one sRGB component in [0, 1] (IEC 61966-2-1 transfer curve)."""
    if c <= 0.04045:
        return c / 12.92
    else:
        return ((c + 0.055) / 1.055) ** 2.4


@njit(cache=True)
def _linear_to_srgb_component(c: float) -> float:
    """Encode one linear component in [0, 1] with the sRGB curve."""
    if c <= 0.0031308:
        return c * 12.92
    else:
        return 1.055 * (c ** (1.0 / 2.4)) - 0.055


@njit(cache=True)
def srgb_to_linear(colors: np.ndarray) -> np.ndarray:
    """
    Linearize view colors before they are merged.

    Args:
        colors: Array of shape (N, 3) with float64 sRGB values in [0, 1]

    Returns:
        Array of shape (N, 3) with float64 Linear values in [0, 1]
    """
    n = colors.shape[0]
    result = np.empty((n, 3), dtype=np.float64)

    for i in range(n):
        for c in range(3):
            value = max(0.0, min(1.0, colors[i, c]))
            result[i, c] = _srgb_to_linear_component(value)

    return result


@njit(cache=True)
def linear_to_srgb(colors: np.ndarray) -> np.ndarray:
    """
    Convert Linear colors to 8-bit sRGB.

    Args:
        colors: Array of shape (N, 3) with float64 Linear values [0, 1]

    Returns:
        Array of shape (N, 3) with uint8 sRGB values
    """
    n = colors.shape[0]
    result = np.empty((n, 3), dtype=np.uint8)

    for i in range(n):
        for c in range(3):
            linear_val = max(0.0, min(1.0, colors[i, c]))
            srgb_val = _linear_to_srgb_component(linear_val)
            result[i, c] = np.uint8(srgb_val * 255.0 + 0.5)

    return result


def to_uint8(colors: np.ndarray, color_space: str = SRGB) -> np.ndarray:
    """
    Convert normalized float colors to 8-bit sRGB.

    Args:
        colors: Array of shape (N, 3) with values in [0, 1]
        color_space: Space the input colors are in ("srgb" or "linear")

    Returns:
        uint8 array of shape (N, 3)
    """
    colors = np.ascontiguousarray(colors, dtype=np.float64).reshape(-1, 3)
    if color_space == LINEAR:
        return linear_to_srgb(colors)
    if color_space != SRGB:
        raise ValueError(f"Unknown color space: {color_space}")
    return (np.clip(colors, 0.0, 1.0) * 255.0 + 0.5).astype(np.uint8)


class ColorQuantizer:
    """
    Palette reduction for the .vox preview writer.

    Exact palettes are kept when the frame has few enough distinct colors;
    otherwise colors are clustered with k-means.
    """

    def __init__(self, max_colors: int = 255, iterations: int = 20):
        """
        Initialize the quantizer.

        Args:
            max_colors: Maximum number of colors in output palette
            iterations: K-Means iterations when reduction is needed
        """
        self.max_colors = max_colors
        self.iterations = iterations

    def quantize(self, colors: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Map colors onto at most max_colors palette entries.

        Args:
            colors: uint8 array of shape (N, 3)

        Returns:
            Tuple of (palette, indices) where:
            - palette: uint8 array of shape (M, 3), M <= max_colors
            - indices: Array of shape (N,) mapping each input to palette index
        """
        colors = np.asarray(colors, dtype=np.uint8).reshape(-1, 3)
        if len(colors) == 0:
            return np.zeros((0, 3), dtype=np.uint8), np.zeros(0, dtype=np.int64)

        unique, inverse = np.unique(colors, axis=0, return_inverse=True)
        inverse = np.asarray(inverse).reshape(-1)

        if len(unique) <= self.max_colors:
            return unique, inverse

        return self._kmeans_quantize(colors, len(unique))

    def _kmeans_quantize(
        self,
        colors: np.ndarray,
        unique_count: int
    ) -> Tuple[np.ndarray, np.ndarray]:
        """K-Means color quantization (k-means++ initialization)."""
        from scipy.cluster.vq import kmeans2

        k = min(self.max_colors, unique_count)

        centroids, labels = kmeans2(
            colors.astype(np.float64),
            k,
            minit='++',
            iter=self.iterations
        )

        palette = np.clip(np.rint(centroids), 0, 255).astype(np.uint8)
        return palette, labels
