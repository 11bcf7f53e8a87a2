"""
Batch configuration.

FusionSettings gathers every option of a fusion run, validates it, and
derives the per-frame input and output paths.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Union

from .color import LINEAR, SRGB
from .depth import DEFAULT_DEPTH_THRESHOLD
from .ingestion import output_filename, view_filename
from .projection import ViewAxis


@dataclass
class FusionSettings:
    """
    Options of a multi-view fusion batch.

    Attributes:
        input_dir: Directory holding <frame:04d><view>.png images
        output_dir: Directory receiving <prefix>_<frame:04d>.<ext> volumes
        start_frame: First frame (inclusive)
        end_frame: Last frame (inclusive)
        prefix: Output filename prefix
        resolution: Cubic volume resolution N (texture size)
        depth_threshold: Width of the near/far depth rejection bands
        output_format: "npz" or "vox"
        linear_color: Convert view colors from sRGB to Linear before merging
        rotation_axis: Axis of the output frame rotation
        rotation_degrees: Angle of the output frame rotation
        workers: Number of frames processed concurrently
        write_retries: Extra attempts after a failed write
    """

    input_dir: Path = field(default_factory=lambda: Path("textures/viewdepthmaps"))
    output_dir: Path = field(default_factory=lambda: Path("output"))
    start_frame: int = 1
    end_frame: int = 25
    prefix: str = "volume"
    resolution: int = 128
    depth_threshold: float = DEFAULT_DEPTH_THRESHOLD
    output_format: str = "npz"
    linear_color: bool = False
    rotation_axis: str = "x"
    rotation_degrees: float = 90.0
    workers: int = 1
    write_retries: int = 0

    def __post_init__(self):
        self.input_dir = Path(self.input_dir)
        self.output_dir = Path(self.output_dir)

    def validate(self) -> "FusionSettings":
        """
        Check option ranges.

        Raises:
            ValueError: On the first invalid option
        """
        if self.end_frame < self.start_frame:
            raise ValueError(
                f"End frame {self.end_frame} precedes start frame {self.start_frame}"
            )
        if self.start_frame < 0:
            raise ValueError(f"Frames must be non-negative, got {self.start_frame}")
        if self.resolution < 1:
            raise ValueError(f"Resolution must be positive, got {self.resolution}")
        if not 0.0 <= self.depth_threshold < 0.5:
            raise ValueError(
                f"Depth threshold must be in [0, 0.5), got {self.depth_threshold}"
            )
        if self.output_format not in ("npz", "vox"):
            raise ValueError(f"Unknown output format: {self.output_format}")
        if self.rotation_axis not in ("x", "y", "z"):
            raise ValueError(f"Unknown rotation axis: {self.rotation_axis}")
        if self.workers < 1:
            raise ValueError(f"Workers must be at least 1, got {self.workers}")
        if self.write_retries < 0:
            raise ValueError(f"Write retries must be >= 0, got {self.write_retries}")
        return self

    @property
    def frames(self) -> range:
        """Inclusive frame range."""
        return range(self.start_frame, self.end_frame + 1)

    @property
    def color_space(self) -> str:
        return LINEAR if self.linear_color else SRGB

    def view_path(self, frame: int, view: Union[ViewAxis, str]) -> Path:
        """Path of one view image of a frame."""
        return self.input_dir / view_filename(frame, ViewAxis.from_label(view))

    def output_path(self, frame: int) -> Path:
        """Path of a frame's output volume."""
        return self.output_dir / output_filename(self.prefix, frame, "." + self.output_format)

    @classmethod
    def from_args(cls, args) -> "FusionSettings":
        """Build settings from a parsed argparse namespace."""
        return cls(
            input_dir=Path(args.input_dir),
            output_dir=Path(args.output_dir),
            start_frame=args.start_frame,
            end_frame=args.end_frame,
            prefix=args.prefix,
            resolution=args.texture_size,
            depth_threshold=args.depth_threshold,
            output_format=args.format,
            linear_color=args.linear_color,
            rotation_axis=args.rotation_axis,
            rotation_degrees=args.rotation_degrees,
            workers=args.workers,
            write_retries=args.write_retries,
        )
