"""
Command-Line Interface for Multi-View Volume Fusion

Usage:
    mvfuse -i renders/ -o volumes/
    mvfuse -i renders/ -o volumes/ --start-frame 10 --end-frame 20 -n 256
    mvfuse -i renders/ -o volumes/ --format vox --linear-color -v

"""

import argparse
import logging
import sys
import time
from typing import List, Optional

from . import __version__
from .config import FusionSettings
from .depth import DEFAULT_DEPTH_THRESHOLD
from .generator import FrameSequenceDriver
from .logging_config import configure_logging

logger = logging.getLogger("multiview_volume")


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="mvfuse",
        description="Multi-View Volume Fusion - Bake six depth+color views into sparse volumes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  mvfuse -i renders/ -o volumes/
      Fuse frames 1-25 at 128^3 into volumes/volume_0001.npz ...

  mvfuse -i renders/ -o volumes/ --start-frame 1 --end-frame 1 -n 64 -v
      Fuse a single frame at 64^3 with debug logging

  mvfuse -i renders/ -o volumes/ --format vox --prefix smoke
      Export MagicaVoxel files smoke_0001.vox ...

Input layout:
  <input-dir>/<frame:04d><view>.png for views nx ny nz px py pz,
  alpha encodes depth (opaque = near, transparent = far)
        """
    )

    # Frames
    parser.add_argument(
        "--start-frame",
        type=int,
        default=1,
        help="First frame to process (default: 1)"
    )

    parser.add_argument(
        "--end-frame",
        type=int,
        default=25,
        help="Last frame to process, inclusive (default: 25)"
    )

    # Paths
    parser.add_argument(
        "-i", "--input-dir",
        default="textures/viewdepthmaps",
        help="Directory of view images (default: textures/viewdepthmaps)"
    )

    parser.add_argument(
        "-o", "--output-dir",
        default="output",
        help="Directory for fused volumes (default: output)"
    )

    parser.add_argument(
        "--prefix",
        default="volume",
        help="Output filename prefix (default: volume)"
    )

    parser.add_argument(
        "-f", "--format",
        choices=["npz", "vox"],
        default="npz",
        help="Output format (default: npz)"
    )

    # Fusion settings
    parser.add_argument(
        "-n", "--texture-size",
        type=int,
        default=128,
        help="Cubic volume resolution N (default: 128)"
    )

    parser.add_argument(
        "-t", "--depth-threshold",
        type=float,
        default=DEFAULT_DEPTH_THRESHOLD,
        help=f"Near/far depth rejection band width (default: {DEFAULT_DEPTH_THRESHOLD})"
    )

    parser.add_argument(
        "--linear-color",
        action="store_true",
        help="Convert view colors from sRGB to Linear before merging"
    )

    parser.add_argument(
        "--rotation-axis",
        choices=["x", "y", "z"],
        default="x",
        help="Axis of the output frame rotation (default: x)"
    )

    parser.add_argument(
        "--rotation-degrees",
        type=float,
        default=90.0,
        help="Angle of the output frame rotation (default: 90)"
    )

    # Execution
    parser.add_argument(
        "-j", "--workers",
        type=int,
        default=1,
        help="Frames processed concurrently (default: 1)"
    )

    parser.add_argument(
        "--write-retries",
        type=int,
        default=0,
        help="Extra attempts after a failed volume write (default: 0)"
    )

    # Misc
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output with per-view statistics"
    )

    parser.add_argument(
        "--log-file",
        help="Also write the log to this file"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=args.verbose, log_file=args.log_file)

    start_time = time.time()

    try:
        settings = FusionSettings.from_args(args).validate()
        report = FrameSequenceDriver(settings).run()
    except (ValueError, FileNotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1

    elapsed = time.time() - start_time
    logger.info("Completed in %.2fs: %s", elapsed, report.summary())
    print(f"Output directory: {settings.output_dir}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
