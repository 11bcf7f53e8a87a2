"""
Image Ingestion Module

This module handles:
- Decoding view images to RGBA pixel buffers with Pillow
- Rejecting images that carry no alpha (depth) channel
- View image filename conventions (<frame:04d><suffix>.png)
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Union
import numpy as np
from PIL import Image, UnidentifiedImageError

from .projection import ViewAxis


class ImageDecodeError(ValueError):
    """Raised when a view image cannot be turned into an RGBA buffer."""


@dataclass(frozen=True)
class DecodedImage:
    """
    A decoded view image.

    Attributes:
        width: Image width in pixels
        height: Image height in pixels
        channels: Number of interleaved channels (>= 4)
        pixels: Array of shape (height, width, channels), uint8 or float in [0, 1]
    """

    width: int
    height: int
    channels: int
    pixels: np.ndarray

    @classmethod
    def from_array(cls, pixels: np.ndarray) -> "DecodedImage":
        """
        Wrap an in-memory RGBA array.

        Args:
            pixels: Array of shape (H, W, C) with C >= 4

        Raises:
            ImageDecodeError: If the array has no alpha channel
        """
        pixels = np.asarray(pixels)
        if pixels.ndim != 3 or pixels.shape[2] < 4:
            raise ImageDecodeError(
                f"Expected an (H, W, >=4) RGBA array, got shape {pixels.shape}"
            )
        height, width, channels = pixels.shape
        return cls(width=width, height=height, channels=channels, pixels=pixels)

    @property
    def is_empty(self) -> bool:
        """True when the buffer holds no pixels."""
        return self.pixels.size == 0

    def normalized_rgba(self) -> np.ndarray:
        """
        Get the RGBA channels as float64 in [0, 1].

        Returns:
            Array of shape (H, W, 4)
        """
        rgba = self.pixels[:, :, :4]
        if rgba.dtype == np.uint8:
            return rgba.astype(np.float64) / 255.0
        if np.issubdtype(rgba.dtype, np.integer):
            return rgba.astype(np.float64) / float(np.iinfo(rgba.dtype).max)
        return rgba.astype(np.float64)


class ImageLoader:
    """
    View image decoder.

    Accepts any Pillow-readable image that carries transparency
    (RGBA, LA, or palette images with a transparency entry) and converts
    it to 8-bit RGBA.
    """

    def load(self, image_path: Union[str, Path]) -> DecodedImage:
        """
        Decode a view image.

        Args:
            image_path: Path to the image file (PNG expected)

        Returns:
            DecodedImage with 4 channels

        Raises:
            FileNotFoundError: If the file does not exist
            ImageDecodeError: If the file is unreadable or has no alpha
        """
        image_path = Path(image_path)
        if not image_path.exists():
            raise FileNotFoundError(f"Image not found: {image_path}")

        try:
            with Image.open(image_path) as img:
                has_alpha = "A" in img.getbands() or "transparency" in img.info
                if not has_alpha:
                    raise ImageDecodeError(
                        f"Image has no alpha channel to decode depth from: "
                        f"{image_path} (mode {img.mode})"
                    )

                # Ensure RGBA format
                if img.mode != "RGBA":
                    img = img.convert("RGBA")

                pixels = np.array(img, dtype=np.uint8)
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError) as e:
            raise ImageDecodeError(f"Failed to decode {image_path}: {e}") from e

        decoded = DecodedImage.from_array(pixels)
        if decoded.is_empty:
            raise ImageDecodeError(f"Image has no pixels: {image_path}")
        return decoded


def view_filename(frame: int, view: ViewAxis, extension: str = ".png") -> str:
    """
    Build the filename of one view of one frame.

    Example:
        view_filename(7, ViewAxis.POS_Y) -> "0007py.png"
    """
    return f"{frame:04d}{view.suffix}{extension}"


def output_filename(prefix: str, frame: int, extension: str) -> str:
    """
    Build the filename of a frame's volume.

    Example:
        output_filename("volume", 7, ".npz") -> "volume_0007.npz"
    """
    if not extension.startswith("."):
        extension = "." + extension
    return f"{prefix}_{frame:04d}{extension}"
