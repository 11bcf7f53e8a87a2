"""
Multi-View Volume Fusion
========================

Bakes six orthographic depth+color renders of an object into sparse
volumetric assets, one volume per animation frame.

Each view (-x, -y, -z, +x, +y, +z) encodes surface depth in its alpha
channel. Pixels are mapped to integer voxel coordinates through a fixed
per-view axis remap, filtered by a near/far depth band, merged with
alpha-weighted averaging, and exported as co-indexed color and opacity grids.

Key Features:
- Fixed six-view rig geometry with exact integer voxel coordinates
- Order-independent alpha-weighted merge of overlapping observations
- Sparse dict-backed grids (only touched voxels are stored)
- Export to compressed NumPy archives (.npz) and MagicaVoxel (.vox)
- Batch driver with per-view and per-frame failure isolation

Example Usage:
    from multiview_volume import FusionSettings, FrameSequenceDriver

    settings = FusionSettings(input_dir="renders", output_dir="volumes",
                              start_frame=1, end_frame=25, resolution=128)
    report = FrameSequenceDriver(settings).run()
"""

__version__ = "1.0.0"
__author__ = "Multi-View Volume Team"

from .projection import ViewAxis, VIEW_ORDER, FrameRotation
from .ingestion import DecodedImage, ImageLoader, ImageDecodeError
from .extractor import ViewSampleExtractor, VoxelContribution, ContributionBatch
from .voxelizer import SparseGrid, VoxelAccumulator
from .assembly import VolumeAssembler, VolumePair
from .config import FusionSettings
from .generator import VolumeFuser, FrameSequenceDriver, FrameResult, BatchReport

__all__ = [
    "ViewAxis",
    "VIEW_ORDER",
    "FrameRotation",
    "DecodedImage",
    "ImageLoader",
    "ImageDecodeError",
    "ViewSampleExtractor",
    "VoxelContribution",
    "ContributionBatch",
    "SparseGrid",
    "VoxelAccumulator",
    "VolumeAssembler",
    "VolumePair",
    "FusionSettings",
    "VolumeFuser",
    "FrameSequenceDriver",
    "FrameResult",
    "BatchReport",
]
