"""
Sparse Voxel Data Structures and Accumulation Engine

This module provides:
- SparseGrid: dict-backed grid storing only touched voxels
- VoxelAccumulator: alpha-weighted merge of contributions from all views

Memory consideration: a dense 128³ float RGBA volume is 32 MB, yet the
surfaces seen by six orthographic views are a thin shell of at most
6 × N² voxels. Only occupied coordinates are stored.
"""

import logging
from typing import Dict, Iterable, Iterator, Optional, Tuple, Union
import numpy as np

from .extractor import ContributionBatch, VoxelContribution

logger = logging.getLogger(__name__)

Coord = Tuple[int, int, int]


class SparseGrid:
    """
    Sparse 3D grid keyed by integer (x, y, z) coordinates.

    Mirrors a VDB-style grid: a name, a background value returned for
    absent coordinates, and an index-to-world transform.
    """

    def __init__(
        self,
        name: str,
        background: Union[float, Tuple[float, ...]] = 0.0,
        transform: Optional[np.ndarray] = None
    ):
        """
        Initialize an empty grid.

        Args:
            name: Grid name ("RGB", "Alpha")
            background: Value reported for unset coordinates
            transform: 4x4 index-to-world matrix (identity if None)
        """
        self.name = name
        self.background = background
        self._values: Dict[Coord, Union[float, Tuple[float, ...]]] = {}
        self._transform = np.eye(4) if transform is None else np.array(transform, dtype=np.float64)

    @property
    def transform(self) -> np.ndarray:
        """Get a copy of the index-to-world transform."""
        return self._transform.copy()

    @transform.setter
    def transform(self, matrix: np.ndarray):
        matrix = np.array(matrix, dtype=np.float64)
        if matrix.shape != (4, 4):
            raise ValueError(f"Transform must be 4x4, got {matrix.shape}")
        self._transform = matrix

    def set_value(self, coord: Coord, value):
        """Store a value at a coordinate (overwrites)."""
        self._values[tuple(int(c) for c in coord)] = value

    def get_value(self, coord: Coord):
        """Get the value at a coordinate, or the background."""
        return self._values.get(tuple(int(c) for c in coord), self.background)

    def is_active(self, coord: Coord) -> bool:
        """Check whether a coordinate holds a value."""
        return tuple(int(c) for c in coord) in self._values

    def __contains__(self, coord) -> bool:
        return self.is_active(coord)

    def __len__(self) -> int:
        return len(self._values)

    def items(self) -> Iterator[Tuple[Coord, Union[float, Tuple[float, ...]]]]:
        """Iterate over (coord, value) pairs in coordinate order."""
        for coord in sorted(self._values):
            yield coord, self._values[coord]

    @property
    def active_count(self) -> int:
        return len(self._values)

    def bounds(self) -> Tuple[Coord, Coord]:
        """
        Inclusive bounding box of active coordinates.

        Returns:
            ((min_x, min_y, min_z), (max_x, max_y, max_z)), all zero if empty
        """
        if not self._values:
            return ((0, 0, 0), (0, 0, 0))
        coords = np.array(list(self._values), dtype=np.int64)
        return (tuple(coords.min(axis=0).tolist()), tuple(coords.max(axis=0).tolist()))

    def to_arrays(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        Convert to columnar arrays, sorted by coordinate.

        Returns:
            Tuple of (coords, values) where coords is an int32 (M, 3) array
            and values is float32 (M,) or (M, K)
        """
        if not self._values:
            shape = np.shape(self.background)
            return (
                np.zeros((0, 3), dtype=np.int32),
                np.zeros((0,) + shape, dtype=np.float32),
            )
        keys = sorted(self._values)
        coords = np.array(keys, dtype=np.int32)
        values = np.array([self._values[k] for k in keys], dtype=np.float32)
        return coords, values

    @classmethod
    def from_arrays(
        cls,
        name: str,
        coords: np.ndarray,
        values: np.ndarray,
        background=0.0,
        transform: Optional[np.ndarray] = None
    ) -> "SparseGrid":
        """Rebuild a grid from columnar arrays."""
        grid = cls(name, background, transform)
        for coord, value in zip(np.asarray(coords).tolist(), np.asarray(values).tolist()):
            grid.set_value(coord, tuple(value) if isinstance(value, list) else value)
        return grid

    def __repr__(self) -> str:
        return f"SparseGrid(name={self.name!r}, active={len(self)})"


class VoxelAccumulator:
    """
    Alpha-weighted accumulation of voxel contributions.

    Every contribution is an equally valid, co-located observation; there is
    no occlusion ordering and no view priority. For running opacity A0 and
    color C0, a contribution (Cn, w) gives:

        A1 = A0 + w
        C1 = (C0 * A0 + Cn * w) / A1

    The update is a running weighted mean, so the result does not depend on
    arrival order. Opacity is never clamped.
    """

    def __init__(self, resolution: int):
        """
        Initialize an empty accumulator.

        Args:
            resolution: Cubic volume resolution N; valid indices are [0, N-1]
        """
        self.resolution = resolution
        # coord -> (r, g, b, opacity)
        self._voxels: Dict[Coord, Tuple[float, float, float, float]] = {}
        self.accepted = 0
        self.out_of_bounds = 0

    def _in_bounds(self, x: int, y: int, z: int) -> bool:
        """Check if coordinates are within grid bounds."""
        n = self.resolution
        return 0 <= x < n and 0 <= y < n and 0 <= z < n

    def merge(
        self,
        coord: Coord,
        color: Tuple[float, float, float],
        weight: float
    ) -> bool:
        """
        Merge one observation into the accumulator.

        Args:
            coord: Integer (x, y, z) voxel coordinate
            color: RGB color in [0, 1]
            weight: Observation weight (opacity contribution)

        Returns:
            True if the observation was recorded
        """
        x, y, z = (int(c) for c in coord)
        if not self._in_bounds(x, y, z):
            self.out_of_bounds += 1
            return False
        if weight <= 0.0:
            return False

        key = (x, y, z)
        existing = self._voxels.get(key)
        if existing is None:
            self._voxels[key] = (float(color[0]), float(color[1]), float(color[2]), float(weight))
        else:
            r0, g0, b0, a0 = existing
            a1 = a0 + weight
            self._voxels[key] = (
                (r0 * a0 + color[0] * weight) / a1,
                (g0 * a0 + color[1] * weight) / a1,
                (b0 * a0 + color[2] * weight) / a1,
                a1,
            )

        self.accepted += 1
        return True

    def add(
        self,
        contributions: Union[ContributionBatch, Iterable[VoxelContribution]]
    ) -> "VoxelAccumulator":
        """
        Merge a batch of contributions in arrival order.

        Args:
            contributions: ContributionBatch or iterable of VoxelContribution

        Returns:
            self for method chaining
        """
        if isinstance(contributions, ContributionBatch):
            rows = zip(
                contributions.coords.tolist(),
                contributions.colors.tolist(),
                contributions.weights.tolist(),
            )
        else:
            rows = ((c.coord, c.color, c.weight) for c in contributions)

        for coord, color, weight in rows:
            self.merge(coord, color, weight)

        return self

    def merge_accumulator(self, other: "VoxelAccumulator") -> "VoxelAccumulator":
        """
        Fold another accumulator into this one.

        Each voxel of ``other`` enters as a single observation whose weight
        is its accumulated opacity, which yields the same weighted mean as
        merging the original contributions one by one.

        Returns:
            self for method chaining
        """
        for key, (r, g, b, a) in other._voxels.items():
            self.merge(key, (r, g, b), a)
        self.out_of_bounds += other.out_of_bounds
        return self

    def __len__(self) -> int:
        return len(self._voxels)

    def build(self) -> Tuple[SparseGrid, SparseGrid]:
        """
        Produce the co-indexed color and opacity grids.

        Returns:
            Tuple of (color_grid, opacity_grid)
        """
        color_grid = SparseGrid("RGB", background=(0.0, 0.0, 0.0))
        opacity_grid = SparseGrid("Alpha", background=0.0)

        for key, (r, g, b, a) in self._voxels.items():
            color_grid.set_value(key, (r, g, b))
            opacity_grid.set_value(key, a)

        if self.out_of_bounds:
            logger.debug("Dropped %d out-of-bounds contributions", self.out_of_bounds)

        return color_grid, opacity_grid
