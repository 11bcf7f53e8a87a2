#!/usr/bin/env python3
"""
Multi-View Volume Fusion Demo Script

This script demonstrates the full fusion pipeline by:
1. Rendering synthetic six-view sphere sequences (no external images needed)
2. Writing them as <frame><view>.png files
3. Running the frame sequence driver over them
4. Printing volume statistics and timings

Run with: python examples/demo.py
"""

import sys
from pathlib import Path
import time
from PIL import Image

# Add src to path for development
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from multiview_volume import FusionSettings, FrameSequenceDriver, VolumeFuser
from multiview_volume.exporters import load_npz
from multiview_volume.ingestion import view_filename
from multiview_volume.logging_config import configure_logging
from multiview_volume.synthetic import render_sphere_views


def write_sphere_sequence(view_dir: Path, size: int, frames: int) -> None:
    """
    Render a sphere that grows over the sequence and save every view.

    Frame 2 is written without its +z view to show view-level skipping.
    """
    view_dir.mkdir(parents=True, exist_ok=True)

    for frame in range(1, frames + 1):
        radius = size * (0.2 + 0.05 * frame)
        views = render_sphere_views(size, radius)
        for view, rgba in views.items():
            if frame == 2 and view.suffix == "pz":
                continue
            Image.fromarray(rgba).save(view_dir / view_filename(frame, view))


def run_demo():
    """Run the demonstration."""
    print("=" * 60)
    print("Multi-View Volume Fusion - Demo")
    print("=" * 60)
    print()

    configure_logging(verbose=False)

    base_dir = Path(__file__).parent / "output"
    view_dir = base_dir / "views"
    volume_dir = base_dir / "volumes"

    size = 64
    frames = 4

    print(f"Rendering {frames} frames of six {size}x{size} views...")
    write_sphere_sequence(view_dir, size, frames)

    settings = FusionSettings(
        input_dir=view_dir,
        output_dir=volume_dir,
        start_frame=1,
        end_frame=frames,
        resolution=size,
        prefix="sphere",
    )

    total_start = time.time()
    report = FrameSequenceDriver(settings).run()
    total_time = time.time() - total_start

    print()
    for frame in report.written:
        volume = load_npz(settings.output_path(frame))
        stats = volume.stats()
        print(f"--- Frame {frame} ---")
        print(f"  Occupied voxels: {stats['voxel_count']}")
        print(f"  Overlapping voxels: {stats['overlapping_voxels']}")
        print(f"  Max opacity: {stats['max_opacity']:.1f}")
        print(f"  Bounds: {stats['bounds']}")

    print("\n" + "=" * 60)
    print(f"Demo complete! {report.summary()}")
    print(f"Total time: {total_time:.2f}s")
    print(f"Output files in: {volume_dir}")
    print("=" * 60)

    return 0


def benchmark_fusion():
    """Benchmark single-frame fusion at several resolutions."""
    print("\n--- Fusion Benchmark ---\n")

    for size in [32, 64, 128, 256]:
        views = render_sphere_views(size)
        fuser = VolumeFuser(resolution=size)

        start = time.time()
        volume = fuser.fuse(views)
        elapsed = time.time() - start

        print(f"Resolution: {size}^3")
        print(f"  Fusion: {elapsed*1000:.1f}ms, {volume.voxel_count} voxels")
        print()


if __name__ == "__main__":
    run_demo()

    # Uncomment to run benchmark
    # benchmark_fusion()
