"""
MagicaVoxel Preview Writer

Writes the color grid of a fused frame as a MagicaVoxel model so a sequence
can be scrubbed through in a voxel editor. This is a lossy preview:

- Colors are reduced to a palette of at most 255 entries
- Opacity and the frame transform are not stored
- Coordinates are single bytes, so the volume resolution must be <= 256

Layout written:

    "VOX " <version:u32>
    MAIN
      SIZE   N, N, N
      XYZI   <count:u32> then (x, y, z, palette_index) byte records
      RGBA   256 palette entries, entry k holds palette_index k + 1
"""

from pathlib import Path
from typing import Iterator, Tuple, Union
import struct
import numpy as np

from ..assembly import VolumePair
from ..color import ColorQuantizer, to_uint8
from .atomic import write_atomically


VOX_MAGIC = b'VOX '
VOX_VERSION = 150
VOX_MAX_SIZE = 256

# chunk id, content size, children size
_CHUNK_HEADER = struct.Struct('<4sII')


class VoxChunk:
    """A chunk with its own content and already-packed children."""

    def __init__(self, chunk_id: bytes, content: bytes = b''):
        self.chunk_id = chunk_id
        self.content = content
        self.children = b''

    def pack(self) -> bytes:
        header = _CHUNK_HEADER.pack(self.chunk_id, len(self.content), len(self.children))
        return header + self.content + self.children


class SizeChunk(VoxChunk):
    """Model extent along x, y and z."""

    def __init__(self, extent: int):
        super().__init__(b'SIZE', struct.pack('<III', extent, extent, extent))


class XYZIChunk(VoxChunk):
    """Voxel records packed as four bytes each."""

    def __init__(self, coords: np.ndarray, color_indices: np.ndarray):
        """
        Args:
            coords: Array of shape (M, 3) with coordinates in [0, 255]
            color_indices: Array of shape (M,) with palette indices in [1, 255]
        """
        records = np.column_stack([
            np.asarray(coords, dtype=np.uint8).reshape(-1, 3),
            np.asarray(color_indices, dtype=np.uint8).reshape(-1),
        ]).astype(np.uint8)
        super().__init__(b'XYZI', struct.pack('<I', len(records)) + records.tobytes())


class RGBAChunk(VoxChunk):
    """Palette table, always 256 opaque entries."""

    def __init__(self, palette: np.ndarray):
        table = np.zeros((256, 4), dtype=np.uint8)
        table[:, 3] = 255
        n = min(len(palette), 255)
        table[:n, :3] = palette[:n, :3]
        super().__init__(b'RGBA', table.tobytes())


class MainChunk(VoxChunk):
    """Root container."""

    def __init__(self, *children: VoxChunk):
        super().__init__(b'MAIN')
        for child in children:
            self.children += child.pack()


class VoxExporter:
    """
    Write the color grid of a VolumePair as a .vox model.

    Voxel indices are written unshifted so every frame of a sequence shares
    the same N x N x N model space.

    Usage:
        VoxExporter().export(volume, "volume_0001.vox")
    """

    extension = ".vox"

    def __init__(self, max_colors: int = 255):
        self._quantizer = ColorQuantizer(max_colors=min(max_colors, 255))

    def export(self, volume: VolumePair, output_path: Union[str, Path]):
        """
        Write one frame, atomically replacing any existing file.

        Raises:
            ValueError: If the volume resolution exceeds 256
        """
        if volume.resolution > VOX_MAX_SIZE:
            raise ValueError(
                f"VOX models are limited to {VOX_MAX_SIZE}^3, "
                f"got a resolution of {volume.resolution}"
            )

        coords, colors = volume.color.to_arrays()
        palette, palette_indices = self._quantizer.quantize(
            to_uint8(colors, volume.color_space)
        )

        # Index 0 means empty in XYZI records
        model = MainChunk(
            SizeChunk(max(volume.resolution, 1)),
            XYZIChunk(coords, np.asarray(palette_indices) + 1),
            RGBAChunk(palette),
        )

        data = VOX_MAGIC + struct.pack('<I', VOX_VERSION) + model.pack()
        write_atomically(output_path, lambda f: f.write(data))

    write = export


def _iter_chunks(body: bytes) -> Iterator[Tuple[bytes, bytes]]:
    """Yield (chunk_id, content) for each top-level chunk in a byte string."""
    offset = 0
    while offset + _CHUNK_HEADER.size <= len(body):
        chunk_id, content_size, children_size = _CHUNK_HEADER.unpack_from(body, offset)
        start = offset + _CHUNK_HEADER.size
        yield chunk_id, body[start:start + content_size]
        offset = start + content_size + children_size


def load_vox(file_path: Union[str, Path]) -> Tuple[Tuple[int, int, int], np.ndarray, np.ndarray]:
    """
    Read back a .vox model written by VoxExporter.

    Returns:
        (dimensions, voxels, palette): the SIZE extent, an (M, 4) uint8 array
        of (x, y, z, palette_index) records and the (256, 4) RGBA table
    """
    data = Path(file_path).read_bytes()

    if data[:4] != VOX_MAGIC:
        raise ValueError(f"Not a VOX file: {file_path}")

    main_id, main_content_size, _ = _CHUNK_HEADER.unpack_from(data, 8)
    if main_id != b'MAIN':
        raise ValueError(f"VOX file has no MAIN chunk: {file_path}")
    body_start = 8 + _CHUNK_HEADER.size + main_content_size

    dimensions = (0, 0, 0)
    voxels = np.zeros((0, 4), dtype=np.uint8)
    palette = np.zeros((256, 4), dtype=np.uint8)
    palette[:, 3] = 255

    for chunk_id, content in _iter_chunks(data[body_start:]):
        if chunk_id == b'SIZE':
            dimensions = struct.unpack('<III', content[:12])
        elif chunk_id == b'XYZI':
            (count,) = struct.unpack('<I', content[:4])
            voxels = np.frombuffer(content, dtype=np.uint8, count=4 * count, offset=4).reshape(-1, 4)
        elif chunk_id == b'RGBA':
            palette = np.frombuffer(content[:1024], dtype=np.uint8).reshape(256, 4).copy()

    return dimensions, voxels, palette
