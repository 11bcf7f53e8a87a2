"""
Volume Assembly

Packages a frame's finished color and opacity grids into a VolumePair and
attaches the output coordinate-frame rotation. Assembly only touches the
transform; voxel data is never resampled, merged or filtered here.
"""

from dataclasses import dataclass
from typing import Optional
import numpy as np

from .color import SRGB
from .projection import FrameRotation, index_to_world
from .voxelizer import SparseGrid


@dataclass
class VolumePair:
    """
    Exportable volume of one frame.

    Attributes:
        frame: Frame number the volume was fused from
        resolution: Cubic resolution N of the index space
        color: "RGB" grid of 3-float colors
        opacity: "Alpha" grid of accumulated opacity
        transform: 4x4 index-to-world matrix shared by both grids
        color_space: "srgb" or "linear"
    """

    frame: int
    resolution: int
    color: SparseGrid
    opacity: SparseGrid
    transform: np.ndarray
    color_space: str = SRGB

    @property
    def voxel_count(self) -> int:
        return len(self.opacity)

    @property
    def is_empty(self) -> bool:
        return len(self.opacity) == 0

    def world_positions(self) -> np.ndarray:
        """World-space positions of the occupied voxels, in coordinate order."""
        coords, _ = self.opacity.to_arrays()
        return index_to_world(coords, self.transform)

    def stats(self) -> dict:
        """Summary statistics of the volume."""
        _, opacity = self.opacity.to_arrays()
        return {
            "frame": self.frame,
            "resolution": self.resolution,
            "voxel_count": self.voxel_count,
            "bounds": self.opacity.bounds(),
            "max_opacity": float(opacity.max()) if len(opacity) else 0.0,
            "overlapping_voxels": int(np.sum(opacity > 1.0)),
        }


class VolumeAssembler:
    """Attach the output frame rotation to a frame's grids."""

    def __init__(self, rotation: Optional[FrameRotation] = None):
        """
        Initialize the assembler.

        Args:
            rotation: Frame rotation to apply (90 degrees about X if None)
        """
        self.rotation = rotation or FrameRotation()

    def assemble(
        self,
        color: SparseGrid,
        opacity: SparseGrid,
        frame: int = 0,
        resolution: int = 0,
        color_space: str = SRGB
    ) -> VolumePair:
        """
        Build the frame's exportable volume pair.

        Both grids receive the same rotated transform.

        Args:
            color: Completed color grid
            opacity: Completed opacity grid
            frame: Frame number
            resolution: Volume resolution N
            color_space: Color space of the color grid values

        Returns:
            VolumePair ready for a writer
        """
        transform = self.rotation.apply(opacity.transform)
        color.transform = transform
        opacity.transform = transform

        return VolumePair(
            frame=frame,
            resolution=resolution,
            color=color,
            opacity=opacity,
            transform=transform,
            color_space=color_space,
        )
