"""
View Axis Mapping and Coordinate Frames

This module holds the fixed camera-rig geometry of the six orthographic
views and the output coordinate-frame rotation.

Each view looks along one principal axis. A pixel at image row ``y`` and
column ``z`` together with its along-axis depth index ``x`` is remapped to a
volume coordinate by a hand-specified permutation/reflection:

    view   volume x    volume y    volume z
    -x     N-1-x       y           z
    -y     N-1-z       N-1-y       x
    -z     N-1-y       N-1-x       z
    +x     x           N-1-y       z
    +y     N-1-z       y           N-1-x
    +z     y           x           z

Views along +-x and +-z assume up = +y, views along +-y assume up = +x.

Coordinate Systems:
- Rig: Y-up (views along X and Z use +Y as up)
- Renderer: Z-up, reached by a 90 degree rotation about X
"""

from enum import Enum
from typing import Callable, Dict, Tuple, Union
import numpy as np
from scipy.spatial.transform import Rotation


class ViewAxis(Enum):
    """The six fixed orthographic views, valued by their filename suffix."""
    NEG_X = "nx"
    NEG_Y = "ny"
    NEG_Z = "nz"
    POS_X = "px"
    POS_Y = "py"
    POS_Z = "pz"

    @property
    def suffix(self) -> str:
        """Filename suffix of the view image."""
        return self.value

    @property
    def principal_axis(self) -> int:
        """Index (0=x, 1=y, 2=z) of the axis the view looks along."""
        return "xyz".index(self.value[1])

    @property
    def sign(self) -> int:
        """-1 for the negative views, +1 for the positive ones."""
        return -1 if self.value[0] == "n" else 1

    @property
    def up_axis(self) -> int:
        """Index of the assumed "up" axis (+x for the y views, +y otherwise)."""
        return 0 if self.principal_axis == 1 else 1

    @classmethod
    def from_label(cls, label: Union[str, "ViewAxis"]) -> "ViewAxis":
        """
        Resolve a view from its suffix ("nx") or signed label ("-x").

        Raises:
            ValueError: If the label names no view
        """
        if isinstance(label, ViewAxis):
            return label
        text = label.strip().lower()
        if len(text) == 2 and text[0] in "+-":
            text = ("n" if text[0] == "-" else "p") + text[1]
        return cls(text)


# Canonical processing order, also the order of the input files
VIEW_ORDER: Tuple[ViewAxis, ...] = (
    ViewAxis.NEG_X,
    ViewAxis.NEG_Y,
    ViewAxis.NEG_Z,
    ViewAxis.POS_X,
    ViewAxis.POS_Y,
    ViewAxis.POS_Z,
)


Coords = Tuple[np.ndarray, np.ndarray, np.ndarray]


def _remap_neg_x(x, y, z, n1) -> Coords:
    return n1 - x, y, z


def _remap_neg_y(x, y, z, n1) -> Coords:
    return n1 - z, n1 - y, x


def _remap_neg_z(x, y, z, n1) -> Coords:
    return n1 - y, n1 - x, z


def _remap_pos_x(x, y, z, n1) -> Coords:
    return x, n1 - y, z


def _remap_pos_y(x, y, z, n1) -> Coords:
    return n1 - z, y, n1 - x


def _remap_pos_z(x, y, z, n1) -> Coords:
    return y, x, z


VIEW_REMAPS: Dict[ViewAxis, Callable[..., Coords]] = {
    ViewAxis.NEG_X: _remap_neg_x,
    ViewAxis.NEG_Y: _remap_neg_y,
    ViewAxis.NEG_Z: _remap_neg_z,
    ViewAxis.POS_X: _remap_pos_x,
    ViewAxis.POS_Y: _remap_pos_y,
    ViewAxis.POS_Z: _remap_pos_z,
}


def remap_to_volume(
    view: ViewAxis,
    x: np.ndarray,
    y: np.ndarray,
    z: np.ndarray,
    size: int
) -> np.ndarray:
    """
    Map view-space indices to volume coordinates.

    Args:
        view: The view the samples come from
        x: Along-axis depth indices
        y: Image row indices
        z: Image column indices
        size: Cubic volume resolution N

    Returns:
        Integer array of shape (M, 3) with volume (x, y, z) coordinates
    """
    x = np.asarray(x, dtype=np.int64)
    y = np.asarray(y, dtype=np.int64)
    z = np.asarray(z, dtype=np.int64)

    vx, vy, vz = VIEW_REMAPS[view](x, y, z, size - 1)
    return np.stack(np.broadcast_arrays(vx, vy, vz), axis=-1).reshape(-1, 3)


class FrameRotation:
    """
    Rigid rotation attached to an exported volume's transform.

    The default (90 degrees about X) turns the rig's +Y-up volume into the
    +Z-up convention expected by the target renderer.
    """

    def __init__(self, axis: str = "x", degrees: float = 90.0):
        """
        Initialize the rotation.

        Args:
            axis: Rotation axis, one of "x", "y", "z"
            degrees: Rotation angle in degrees (right-handed)
        """
        axis = axis.lower()
        if axis not in ("x", "y", "z"):
            raise ValueError(f"Unknown rotation axis: {axis}")

        self.axis = axis
        self.degrees = float(degrees)
        self._matrix = Rotation.from_euler(axis, self.degrees, degrees=True).as_matrix()

        # Snap floating noise so 90 degree turns stay exact permutations
        self._matrix[np.abs(self._matrix) < 1e-12] = 0.0

    @property
    def matrix(self) -> np.ndarray:
        """3x3 rotation matrix."""
        return self._matrix.copy()

    def as_transform(self) -> np.ndarray:
        """4x4 homogeneous transform of the rotation."""
        transform = np.eye(4)
        transform[:3, :3] = self._matrix
        return transform

    def apply(self, transform: np.ndarray) -> np.ndarray:
        """Pre-multiply a 4x4 transform by this rotation."""
        return self.as_transform() @ transform

    def __repr__(self) -> str:
        return f"FrameRotation(axis={self.axis!r}, degrees={self.degrees})"


def index_to_world(coords: np.ndarray, transform: np.ndarray) -> np.ndarray:
    """
    Transform integer voxel indices to world positions.

    Args:
        coords: Array of shape (M, 3) with voxel indices
        transform: 4x4 index-to-world matrix

    Returns:
        Array of shape (M, 3) with world positions
    """
    coords = np.asarray(coords, dtype=np.float64).reshape(-1, 3)
    homogeneous = np.column_stack([coords, np.ones(len(coords))])
    return (homogeneous @ transform.T)[:, :3]
