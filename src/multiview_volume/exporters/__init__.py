"""
Export modules for sparse volume formats.

Supported formats:
- NumPy archive (.npz) - Lossless color + opacity grids with transform
- MagicaVoxel (.vox) - Palette-quantized color grid for inspection
"""

from .npz_exporter import NpzExporter, load_npz
from .vox_exporter import VoxExporter, load_vox

WRITERS = {
    "npz": NpzExporter,
    "vox": VoxExporter,
}


def get_writer(format_name: str):
    """
    Create a writer for an output format.

    Args:
        format_name: "npz" or "vox"

    Returns:
        Writer instance with an ``extension`` attribute and ``write(volume, path)``
    """
    try:
        return WRITERS[format_name.lower()]()
    except KeyError:
        raise ValueError(
            f"Unknown output format: {format_name} "
            f"(expected one of {', '.join(sorted(WRITERS))})"
        ) from None


__all__ = ["NpzExporter", "VoxExporter", "load_npz", "load_vox", "get_writer", "WRITERS"]
