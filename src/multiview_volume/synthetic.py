"""
Synthetic view renders for demos and tests.

Renders the six orthographic views of a sphere centered in an N³ volume,
encoding depth in alpha (alpha = 1 - depth) the same way the real renders do.
"""

from typing import Dict, Tuple
import numpy as np

from .projection import VIEW_ORDER, ViewAxis


# Distinct tint per view so overlaps are visible after fusion
VIEW_TINTS: Dict[ViewAxis, Tuple[int, int, int]] = {
    ViewAxis.NEG_X: (220, 80, 80),
    ViewAxis.NEG_Y: (80, 220, 80),
    ViewAxis.NEG_Z: (80, 80, 220),
    ViewAxis.POS_X: (220, 220, 80),
    ViewAxis.POS_Y: (80, 220, 220),
    ViewAxis.POS_Z: (220, 80, 220),
}


def render_sphere_view(
    size: int,
    radius: float,
    color: Tuple[int, int, int] = (100, 150, 200)
) -> np.ndarray:
    """
    Render one view of a centered sphere.

    Pixels outside the silhouette get alpha 0 (depth 1), which the depth
    filter rejects.

    Args:
        size: Image and volume resolution N
        radius: Sphere radius in voxels
        color: RGB color (0-255)

    Returns:
        uint8 RGBA array of shape (size, size, 4)
    """
    rgba = np.zeros((size, size, 4), dtype=np.uint8)
    center = (size - 1) / 2.0

    rows, cols = np.mgrid[0:size, 0:size]
    rho_sq = (rows - center) ** 2 + (cols - center) ** 2
    inside = rho_sq < radius * radius

    # Distance from the near plane to the front surface
    near = center - np.sqrt(np.maximum(radius * radius - rho_sq, 0.0))
    depth = np.clip(near / max(size - 1, 1), 0.0, 1.0)

    rgba[inside, 0] = color[0]
    rgba[inside, 1] = color[1]
    rgba[inside, 2] = color[2]
    rgba[inside, 3] = np.rint((1.0 - depth[inside]) * 255.0).astype(np.uint8)
    return rgba


def render_sphere_views(
    size: int = 64,
    radius: float = None,
    tinted: bool = True
) -> Dict[ViewAxis, np.ndarray]:
    """
    Render all six views of a centered sphere.

    Args:
        size: Image and volume resolution N
        radius: Sphere radius (defaults to 3/8 of the size)
        tinted: Give each view its own color

    Returns:
        RGBA arrays keyed by ViewAxis
    """
    if radius is None:
        radius = size * 3 / 8

    return {
        view: render_sphere_view(size, radius, VIEW_TINTS[view] if tinted else (100, 150, 200))
        for view in VIEW_ORDER
    }


def uniform_view(
    width: int,
    height: int,
    color: Tuple[float, float, float],
    alpha: float
) -> np.ndarray:
    """
    A float RGBA view with every pixel at the same color and alpha.

    Returns:
        float64 array of shape (height, width, 4) in [0, 1]
    """
    rgba = np.empty((height, width, 4), dtype=np.float64)
    rgba[:, :, :3] = color
    rgba[:, :, 3] = alpha
    return rgba
