"""
Fusion Pipeline

This is the primary interface for turning multi-view depth renders into
sparse volumes. It orchestrates, per frame:
1. View image loading (missing or broken views are skipped)
2. Sample extraction for each of the six views
3. Alpha-weighted voxel accumulation
4. Volume assembly with the output frame rotation
5. Export through a sparse volume writer

Frames are independent; nothing is carried from one frame to the next.

Example Usage:
    settings = FusionSettings(input_dir="renders", output_dir="volumes")
    report = FrameSequenceDriver(settings).run()
    print(report.summary())
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple, Union
import numpy as np

from . import runtime
from .assembly import VolumeAssembler, VolumePair
from .color import SRGB
from .config import FusionSettings
from .depth import DEFAULT_DEPTH_THRESHOLD
from .exporters import get_writer
from .extractor import ViewSampleExtractor
from .ingestion import DecodedImage, ImageDecodeError, ImageLoader
from .projection import VIEW_ORDER, FrameRotation, ViewAxis
from .voxelizer import VoxelAccumulator

logger = logging.getLogger(__name__)

ViewImage = Union[DecodedImage, np.ndarray, None]


class VolumeFuser:
    """
    Fuse the six views of one frame into a volume pair.

    Example:
        fuser = VolumeFuser(resolution=64)
        volume = fuser.fuse({"nx": rgba_nx, "px": rgba_px}, frame=1)
    """

    def __init__(
        self,
        resolution: int = 128,
        depth_threshold: float = DEFAULT_DEPTH_THRESHOLD,
        color_space: str = SRGB,
        rotation: Optional[FrameRotation] = None
    ):
        """
        Initialize the fuser.

        Args:
            resolution: Cubic volume resolution N
            depth_threshold: Width of the near/far depth rejection bands
            color_space: "srgb" or "linear" (converts view colors before merging)
            rotation: Output frame rotation (90 degrees about X if None)
        """
        self.resolution = resolution
        self.color_space = color_space
        self.extractor = ViewSampleExtractor(resolution, depth_threshold, color_space)
        self.assembler = VolumeAssembler(rotation)

    def accumulate(self, images: Mapping[Union[ViewAxis, str], ViewImage]) -> VoxelAccumulator:
        """
        Extract and merge all available views.

        Args:
            images: View images keyed by ViewAxis or label; absent, None
                    or alpha-less entries contribute nothing

        Returns:
            VoxelAccumulator holding the merged frame
        """
        by_view = {ViewAxis.from_label(k): v for k, v in images.items()}
        accumulator = VoxelAccumulator(self.resolution)

        for view in VIEW_ORDER:
            image = by_view.get(view)
            if isinstance(image, np.ndarray):
                try:
                    image = DecodedImage.from_array(image)
                except ImageDecodeError as e:
                    logger.warning("Treating view %s as empty: %s", view.suffix, e)
                    image = None
            accumulator.add(self.extractor.extract(image, view))

        return accumulator

    def fuse(
        self,
        images: Mapping[Union[ViewAxis, str], ViewImage],
        frame: int = 0
    ) -> VolumePair:
        """
        Fuse one frame.

        Args:
            images: View images keyed by ViewAxis or label
            frame: Frame number recorded in the result

        Returns:
            Assembled VolumePair
        """
        accumulator = self.accumulate(images)
        color, opacity = accumulator.build()
        return self.assembler.assemble(
            color, opacity,
            frame=frame,
            resolution=self.resolution,
            color_space=self.color_space,
        )


@dataclass
class FrameResult:
    """Outcome of one frame."""

    frame: int
    output_path: Optional[Path] = None
    voxel_count: int = 0
    views_loaded: List[ViewAxis] = field(default_factory=list)
    views_skipped: List[ViewAxis] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def written(self) -> bool:
        return self.error is None and self.output_path is not None


@dataclass
class BatchReport:
    """Aggregate outcome of a batch."""

    results: List[FrameResult] = field(default_factory=list)
    cancelled: List[int] = field(default_factory=list)

    def add(self, result: FrameResult):
        self.results.append(result)

    @property
    def written(self) -> List[int]:
        return [r.frame for r in self.results if r.written]

    @property
    def failed(self) -> Dict[int, str]:
        return {r.frame: r.error for r in self.results if r.error is not None}

    @property
    def skipped_views(self) -> int:
        return sum(len(r.views_skipped) for r in self.results)

    def result_for(self, frame: int) -> Optional[FrameResult]:
        for result in self.results:
            if result.frame == frame:
                return result
        return None

    def summary(self) -> str:
        text = (
            f"{len(self.written)} frame(s) written, {len(self.failed)} failed, "
            f"{self.skipped_views} view(s) skipped"
        )
        if self.cancelled:
            text += f", {len(self.cancelled)} cancelled"
        return text


class FrameSequenceDriver:
    """
    Run the fusion pipeline over an inclusive frame range.

    View failures are skipped and any other frame failure is recorded; neither
    stops the batch. A missing input directory aborts before any frame.
    """

    def __init__(
        self,
        settings: FusionSettings,
        writer=None,
        loader: Optional[ImageLoader] = None
    ):
        """
        Initialize the driver.

        Args:
            settings: Batch options
            writer: Object with ``write(volume, path)`` (from settings if None)
            loader: Image decoder (Pillow ImageLoader if None)
        """
        self.settings = settings
        self.writer = writer if writer is not None else get_writer(settings.output_format)
        self.loader = loader or ImageLoader()
        self.fuser = VolumeFuser(
            resolution=settings.resolution,
            depth_threshold=settings.depth_threshold,
            color_space=settings.color_space,
            rotation=FrameRotation(settings.rotation_axis, settings.rotation_degrees),
        )
        self._cancel = threading.Event()

    def cancel(self):
        """Stop before the next frame starts."""
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def load_views(self, frame: int) -> Tuple[Dict[ViewAxis, DecodedImage], List[ViewAxis]]:
        """
        Decode the six view images of a frame.

        Returns:
            Tuple of (decoded images by view, skipped views)
        """
        images: Dict[ViewAxis, DecodedImage] = {}
        skipped: List[ViewAxis] = []

        for view in VIEW_ORDER:
            path = self.settings.view_path(frame, view)
            try:
                images[view] = self.loader.load(path)
            except (FileNotFoundError, ImageDecodeError) as e:
                logger.warning("Skipping view %s of frame %d: %s", view.suffix, frame, e)
                skipped.append(view)

        return images, skipped

    def _write(self, volume: VolumePair, path: Path):
        """Write with bounded retry on I/O errors."""
        attempts = self.settings.write_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                self.writer.write(volume, path)
                return
            except OSError as e:
                if attempt == attempts:
                    raise
                logger.warning(
                    "Write of frame %d failed (attempt %d/%d): %s",
                    volume.frame, attempt, attempts, e
                )

    def process_frame(self, frame: int) -> FrameResult:
        """
        Load, fuse and write one frame.

        Returns:
            FrameResult; any failure of this frame is recorded, not raised
        """
        try:
            return self._process_frame(frame)
        except Exception as e:
            logger.exception("Frame %d failed", frame)
            return FrameResult(frame=frame, error=f"{type(e).__name__}: {e}")

    def _process_frame(self, frame: int) -> FrameResult:
        logger.info("Processing frame %d", frame)

        images, skipped = self.load_views(frame)
        result = FrameResult(frame=frame, views_loaded=list(images), views_skipped=skipped)
        if not images:
            logger.warning("Frame %d has no readable views, writing an empty volume", frame)

        volume = self.fuser.fuse(images, frame=frame)
        result.voxel_count = volume.voxel_count
        logger.debug("Frame %d stats: %s", frame, volume.stats())

        output_path = self.settings.output_path(frame)
        try:
            self._write(volume, output_path)
        except (OSError, ValueError) as e:
            logger.error("Failed to write frame %d to %s: %s", frame, output_path, e)
            result.error = str(e)
            return result

        result.output_path = output_path
        logger.info("Processed frame %d and saved as %s", frame, output_path)
        return result

    def run(self) -> BatchReport:
        """
        Process every frame of the configured range.

        Returns:
            BatchReport of the batch

        Raises:
            ValueError: If the settings are invalid
            FileNotFoundError: If the input directory does not exist
        """
        self.settings.validate()

        input_dir = self.settings.input_dir
        if not input_dir.is_dir():
            raise FileNotFoundError(f"Input directory not found: {input_dir}")

        self.settings.output_dir.mkdir(parents=True, exist_ok=True)
        runtime.initialize()

        frames = list(self.settings.frames)
        logger.info(
            "Fusing frames %d-%d from %s (N=%d, %d worker(s))",
            self.settings.start_frame, self.settings.end_frame,
            input_dir, self.settings.resolution, self.settings.workers
        )

        report = BatchReport()
        if self.settings.workers == 1:
            for frame in frames:
                if self.cancelled:
                    report.cancelled.append(frame)
                    continue
                report.add(self.process_frame(frame))
        else:
            self._run_pooled(frames, report)

        logger.info("Batch finished: %s", report.summary())
        return report

    def _run_pooled(self, frames: List[int], report: BatchReport):
        """Process frames on a bounded thread pool, reporting in frame order."""

        def job(frame: int) -> Optional[FrameResult]:
            if self.cancelled:
                return None
            return self.process_frame(frame)

        with ThreadPoolExecutor(max_workers=self.settings.workers) as pool:
            futures = [(frame, pool.submit(job, frame)) for frame in frames]
            for frame, future in futures:
                if self.cancelled:
                    future.cancel()
                result = None if future.cancelled() else future.result()
                if result is None:
                    report.cancelled.append(frame)
                else:
                    report.add(result)
