"""
Compressed NumPy Sparse Volume Exporter

Stores both grids of a VolumePair losslessly in one .npz archive:

    color_coords    int32   (M, 3)   active coordinates of the "RGB" grid
    color_values    float32 (M, 3)
    opacity_coords  int32   (K, 3)   active coordinates of the "Alpha" grid
    opacity_values  float32 (K,)
    transform       float64 (4, 4)   shared index-to-world matrix
    resolution      int64   ()
    frame           int64   ()
    color_space     str     ()

The archive is written to a temporary file beside the target and moved into
place, so a reader never observes one grid without the other.
"""

from pathlib import Path
from typing import Union
import numpy as np

from ..assembly import VolumePair
from ..voxelizer import SparseGrid
from .atomic import write_atomically


NPZ_FORMAT_VERSION = 1


class NpzExporter:
    """
    Export a VolumePair to a compressed .npz archive.

    Usage:
        exporter = NpzExporter()
        exporter.export(volume, "volume_0001.npz")
    """

    extension = ".npz"

    def __init__(self, compress: bool = True):
        """
        Initialize the exporter.

        Args:
            compress: Use zlib compression (np.savez_compressed)
        """
        self.compress = compress

    def export(self, volume: VolumePair, output_path: Union[str, Path]):
        """
        Write a volume pair, overwriting any existing file.

        Args:
            volume: Assembled volume of one frame
            output_path: Output file path
        """
        output_path = Path(output_path)

        color_coords, color_values = volume.color.to_arrays()
        opacity_coords, opacity_values = volume.opacity.to_arrays()

        arrays = {
            "format_version": np.int64(NPZ_FORMAT_VERSION),
            "color_coords": color_coords,
            "color_values": color_values.reshape(-1, 3),
            "opacity_coords": opacity_coords,
            "opacity_values": opacity_values.reshape(-1),
            "transform": np.asarray(volume.transform, dtype=np.float64),
            "resolution": np.int64(volume.resolution),
            "frame": np.int64(volume.frame),
            "color_space": np.array(volume.color_space),
        }

        save = np.savez_compressed if self.compress else np.savez
        write_atomically(output_path, lambda f: save(f, **arrays))

    # Writer protocol
    write = export


def load_npz(file_path: Union[str, Path]) -> VolumePair:
    """
    Load a volume pair written by NpzExporter.

    Args:
        file_path: Path to .npz file

    Returns:
        VolumePair with both grids and the shared transform
    """
    with np.load(Path(file_path), allow_pickle=False) as data:
        transform = data["transform"]
        color = SparseGrid.from_arrays(
            "RGB", data["color_coords"], data["color_values"],
            background=(0.0, 0.0, 0.0), transform=transform,
        )
        opacity = SparseGrid.from_arrays(
            "Alpha", data["opacity_coords"], data["opacity_values"],
            background=0.0, transform=transform,
        )
        return VolumePair(
            frame=int(data["frame"]),
            resolution=int(data["resolution"]),
            color=color,
            opacity=opacity,
            transform=np.array(transform),
            color_space=str(data["color_space"]),
        )
