"""
View Sample Extraction

Turns one decoded view image into candidate voxel contributions:

1. Normalize RGBA to [0, 1]
2. Decode depth from alpha and quantize it to an along-axis index
3. Drop samples inside the near/far rejection bands
4. Remap (depth index, row, column) to volume coordinates for the view
"""

import logging
from dataclasses import dataclass, field
from typing import Iterator, NamedTuple, Optional, Tuple
import numpy as np

from .color import LINEAR, SRGB, srgb_to_linear
from .depth import DEFAULT_DEPTH_THRESHOLD, DepthFilter, alpha_to_depth, depth_to_index
from .ingestion import DecodedImage
from .projection import ViewAxis, remap_to_volume

logger = logging.getLogger(__name__)


class VoxelContribution(NamedTuple):
    """A single candidate observation of one voxel."""
    x: int
    y: int
    z: int
    color: Tuple[float, float, float]
    weight: float

    @property
    def coord(self) -> Tuple[int, int, int]:
        return (self.x, self.y, self.z)


@dataclass
class ContributionBatch:
    """
    Columnar batch of voxel contributions from one view.

    Attributes:
        coords: int64 array of shape (M, 3)
        colors: float64 array of shape (M, 3)
        weights: float64 array of shape (M,)
        view: The view the batch was extracted from (None if mixed)
        rejected: Number of pixels dropped by the depth filter
    """

    coords: np.ndarray
    colors: np.ndarray
    weights: np.ndarray
    view: Optional[ViewAxis] = None
    rejected: int = field(default=0)

    @classmethod
    def empty(cls, view: Optional[ViewAxis] = None) -> "ContributionBatch":
        return cls(
            coords=np.zeros((0, 3), dtype=np.int64),
            colors=np.zeros((0, 3), dtype=np.float64),
            weights=np.zeros(0, dtype=np.float64),
            view=view,
        )

    @classmethod
    def from_contributions(cls, contributions) -> "ContributionBatch":
        """Build a batch from an iterable of VoxelContribution."""
        items = list(contributions)
        if not items:
            return cls.empty()
        return cls(
            coords=np.array([c.coord for c in items], dtype=np.int64),
            colors=np.array([c.color for c in items], dtype=np.float64),
            weights=np.array([c.weight for c in items], dtype=np.float64),
        )

    def __len__(self) -> int:
        return len(self.weights)

    def __iter__(self) -> Iterator[VoxelContribution]:
        for (x, y, z), color, weight in zip(
            self.coords.tolist(), self.colors.tolist(), self.weights.tolist()
        ):
            yield VoxelContribution(x, y, z, tuple(color), weight)


class ViewSampleExtractor:
    """
    Per-view pixel to voxel mapping.

    The extractor is stateless between calls apart from its configuration,
    so one instance can serve every view of every frame.
    """

    def __init__(
        self,
        resolution: int = 128,
        depth_threshold: float = DEFAULT_DEPTH_THRESHOLD,
        color_space: str = SRGB
    ):
        """
        Initialize the extractor.

        Args:
            resolution: Cubic volume resolution N (texture size)
            depth_threshold: Width of the near/far depth rejection bands
            color_space: "srgb" keeps the image colors, "linear" converts them
        """
        if resolution < 1:
            raise ValueError(f"Resolution must be positive, got {resolution}")
        if color_space not in (SRGB, LINEAR):
            raise ValueError(f"Unknown color space: {color_space}")

        self.resolution = resolution
        self.depth_filter = DepthFilter(depth_threshold)
        self.color_space = color_space

    def extract(
        self,
        image: Optional[DecodedImage],
        view: ViewAxis
    ) -> ContributionBatch:
        """
        Extract voxel contributions from one view image.

        A missing or empty image yields an empty batch.

        Args:
            image: Decoded view image (or None when decoding failed)
            view: The view the image was rendered from

        Returns:
            ContributionBatch with one entry per retained pixel
        """
        if image is None or image.is_empty:
            logger.debug("View %s has no pixels, skipping", view.suffix)
            return ContributionBatch.empty(view)

        rgba = image.normalized_rgba()
        depth = alpha_to_depth(rgba[:, :, 3])
        keep = self.depth_filter.mask(depth)

        rows, cols = np.nonzero(keep)
        along = depth_to_index(depth[rows, cols], self.resolution)
        coords = remap_to_volume(view, along, rows, cols, self.resolution)

        colors = np.ascontiguousarray(rgba[rows, cols, :3])
        if self.color_space == LINEAR:
            colors = srgb_to_linear(colors)

        rejected = int(keep.size - len(rows))
        logger.debug(
            "View %s: %d samples kept, %d rejected by depth band %s",
            view.suffix, len(rows), rejected, self.depth_filter.band
        )

        return ContributionBatch(
            coords=coords,
            colors=colors,
            weights=np.ones(len(rows), dtype=np.float64),
            view=view,
            rejected=rejected,
        )
