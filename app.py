#!/usr/bin/env python3
"""
Multi-View Volume Fusion Web Interface

A simple Gradio-based web UI for fusing six depth+color view renders into a
sparse volume.

Run with: python app.py
Then open http://localhost:7860 in your browser
"""

import sys
from pathlib import Path
import tempfile
import numpy as np

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

import gradio as gr
from multiview_volume import VIEW_ORDER, VolumeFuser, FrameRotation
from multiview_volume.color import LINEAR, SRGB
from multiview_volume.exporters import NpzExporter, VoxExporter
from multiview_volume.synthetic import render_sphere_views


VIEW_LABELS = {
    "nx": "-X view",
    "ny": "-Y view",
    "nz": "-Z view",
    "px": "+X view",
    "py": "+Y view",
    "pz": "+Z view",
}


def _to_rgba(image):
    """Normalize a Gradio image to an RGBA uint8 array (None if unusable)."""
    if image is None or not isinstance(image, np.ndarray):
        return None
    if image.ndim != 3 or image.shape[2] < 4:
        # No alpha channel, no depth
        return None
    return image[:, :, :4].astype(np.uint8)


def fuse_views(
    img_nx, img_ny, img_nz, img_px, img_py, img_pz,
    resolution: int,
    depth_threshold: float,
    linear_color: bool,
    export_vox: bool
):
    """
    Fuse the uploaded views and export the volume.

    Returns stats text and file paths for downloads.
    """
    uploads = [img_nx, img_ny, img_nz, img_px, img_py, img_pz]
    images = {}
    missing = []
    for view, upload in zip(VIEW_ORDER, uploads):
        rgba = _to_rgba(upload)
        if rgba is None:
            missing.append(VIEW_LABELS[view.suffix])
        else:
            images[view] = rgba

    if not images:
        return "Please upload at least one RGBA view image.", None, None

    resolution = int(resolution)
    fuser = VolumeFuser(
        resolution=resolution,
        depth_threshold=depth_threshold,
        color_space=LINEAR if linear_color else SRGB,
        rotation=FrameRotation("x", 90.0)
    )
    volume = fuser.fuse(images, frame=1)
    stats = volume.stats()

    stats_text = f"""## Fusion Complete!

| Metric | Value |
|--------|-------|
| Views Used | {len(images)} of 6 |
| Resolution | {resolution}³ |
| Occupied Voxels | {stats['voxel_count']:,} |
| Overlapping Voxels | {stats['overlapping_voxels']:,} |
| Max Opacity | {stats['max_opacity']:.2f} |
| Bounds | {stats['bounds']} |

**Settings:** threshold={depth_threshold}, {'linear' if linear_color else 'sRGB'} color
"""
    if missing:
        stats_text += f"\n**Skipped:** {', '.join(missing)}\n"

    export_dir = tempfile.mkdtemp(prefix="volume_")

    npz_path = str(Path(export_dir) / "volume_0001.npz")
    NpzExporter().export(volume, npz_path)

    vox_path = None
    if export_vox and resolution <= 256:
        vox_path = str(Path(export_dir) / "volume_0001.vox")
        VoxExporter().export(volume, vox_path)

    return stats_text, npz_path, vox_path


def load_demo_views(resolution: int):
    """Render the six views of a demo sphere."""
    views = render_sphere_views(int(resolution))
    return [views[view] for view in VIEW_ORDER]


# Build the Gradio interface
with gr.Blocks(title="Multi-View Volume Fusion") as app:

    gr.Markdown("""
    # Multi-View Volume Fusion
    ### Fuse six depth+color views into a sparse volume

    Upload one RGBA render per view (alpha encodes depth: opaque = near),
    or load the demo sphere, then download the fused volume.
    """)

    with gr.Row():
        # Left column - Inputs
        with gr.Column(scale=2):
            gr.Markdown("### View Images")

            view_inputs = []
            with gr.Row():
                for view in VIEW_ORDER[:3]:
                    view_inputs.append(gr.Image(
                        label=VIEW_LABELS[view.suffix],
                        type="numpy",
                        image_mode="RGBA"
                    ))
            with gr.Row():
                for view in VIEW_ORDER[3:]:
                    view_inputs.append(gr.Image(
                        label=VIEW_LABELS[view.suffix],
                        type="numpy",
                        image_mode="RGBA"
                    ))

            demo_btn = gr.Button("Load Demo Sphere")

        # Right column - Settings and downloads
        with gr.Column(scale=1):
            gr.Markdown("### Settings")

            resolution = gr.Slider(
                minimum=8,
                maximum=512,
                value=128,
                step=8,
                label="Volume Resolution (N)"
            )

            depth_threshold = gr.Slider(
                minimum=0.0,
                maximum=0.45,
                value=0.05,
                step=0.01,
                label="Depth Rejection Band"
            )

            linear_color = gr.Checkbox(value=False, label="Merge in Linear color")
            export_vox = gr.Checkbox(value=True, label="Also export VOX (N <= 256)")

            generate_btn = gr.Button("Fuse Volume", variant="primary")

            stats_output = gr.Markdown(
                value="Upload views and click 'Fuse Volume' to see results."
            )

            gr.Markdown("### Downloads")
            npz_output = gr.File(label="NPZ (color + opacity)")
            vox_output = gr.File(label="VOX (MagicaVoxel)")

    # Wire up events
    demo_btn.click(
        fn=load_demo_views,
        inputs=[resolution],
        outputs=view_inputs
    )

    generate_btn.click(
        fn=fuse_views,
        inputs=view_inputs + [resolution, depth_threshold, linear_color, export_vox],
        outputs=[stats_output, npz_output, vox_output]
    )


if __name__ == "__main__":
    print("\n" + "="*60)
    print("Multi-View Volume Fusion Web Interface")
    print("="*60)
    print("\nStarting server...")
    print("Open http://localhost:7860 in your browser\n")

    app.launch(
        server_name="0.0.0.0",
        server_port=7860,
        share=False
    )
