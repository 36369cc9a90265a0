"""
Main pipeline orchestration: folder of page images -> fixed-layout EPUB.
"""

import logging
import shutil
import tempfile
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Sequence, TypeVar

from .classifier import PairClassifier
from .config import PipelineConfig, VolumeRequest
from .epub_builder import EPUBBuilder
from .errors import ConversionCancelled, ConversionError, NoImagesFound
from .imaging import ImageNormalizer
from .models import (
    CanonicalSize,
    ClassifiedImage,
    LogicalItem,
    PageRecord,
    SourceImage,
    Volume,
)
from .progress import ProgressSink, Stage, VolumeProgress, batch_slice
from .sequencer import PageSequencer
from .sizing import resolve_canonical_size
from .splitter import SpreadSplitter

logger = logging.getLogger(__name__)

LogSink = Callable[[str], None]
T = TypeVar("T")
R = TypeVar("R")


@dataclass
class VolumeResult:
    """Result of converting one volume."""

    title: str
    success: bool
    epub_path: Path | None
    message: str
    page_count: int = 0
    canonical_size: CanonicalSize | None = None
    error: Exception | None = None

    @property
    def error_kind(self) -> str | None:
        if self.error is None:
            return None
        return getattr(self.error, "kind", type(self.error).__name__)


@dataclass
class BatchResult:
    """Result of converting several volumes in order."""

    results: list[VolumeResult] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @property
    def success(self) -> bool:
        return self.failed == 0


def map_in_order(
    func: Callable[[int, T], R],
    items: Sequence[T],
    workers: int,
    on_done: Callable[[int], None] | None = None,
) -> list[R]:
    """Apply `func(index, item)` to every item, returning results in order.

    Runs on a thread pool when `workers` > 1. Results are collected in
    input order, so `on_done` sees a steadily growing count. The first
    failure cancels everything not yet started and is re-raised.
    """
    results: list[R] = []

    if workers <= 1 or len(items) <= 1:
        for index, item in enumerate(items):
            results.append(func(index, item))
            if on_done:
                on_done(index + 1)
        return results

    executor = ThreadPoolExecutor(max_workers=workers)
    try:
        futures: list[Future] = [
            executor.submit(func, index, item) for index, item in enumerate(items)
        ]
        for index, future in enumerate(futures):
            results.append(future.result())
            if on_done:
                on_done(index + 1)
    finally:
        # Running tasks finish; queued ones are dropped on failure
        executor.shutdown(wait=True, cancel_futures=True)

    return results


class VolumePipeline:
    """Converts one volume of page images into an EPUB.

    Usage:
        config = PipelineConfig()
        request = VolumeRequest.from_folder("./vol01", config, author="Author")
        result = VolumePipeline(config).run(request)
    """

    def __init__(
        self,
        config: PipelineConfig | None = None,
        classifier: PairClassifier | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            config: Run settings (defaults if None)
            classifier: Spread classifier (default filename matchers if None)
        """
        self.config = config or PipelineConfig()
        self.classifier = classifier or PairClassifier()
        self._setup_logging()

    def _setup_logging(self) -> None:
        """Ensure logging is configured.

        Only sets up a basic config if no handlers are configured,
        allowing the CLI to control logging setup.
        """
        if not logging.root.handlers:
            logging.basicConfig(
                level=logging.INFO,
                format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                datefmt="%H:%M:%S",
            )

    def run(
        self,
        request: VolumeRequest,
        on_progress: ProgressSink | None = None,
        on_log: LogSink | None = None,
        cancel_event: threading.Event | None = None,
    ) -> VolumeResult:
        """Run every stage for one volume.

        Args:
            request: Sources, metadata and output path
            on_progress: Receives non-decreasing fractions in [0, 1]
            on_log: Receives human-readable log lines
            cancel_event: Checked between stages; set it to stop early

        Returns:
            VolumeResult with output path and status
        """
        def log(message: str) -> None:
            logger.info(message)
            if on_log is not None:
                on_log(message)

        progress = VolumeProgress(on_progress)
        start_time = time.time()

        work_dir = Path(tempfile.mkdtemp(prefix="mangapipeline_"))
        log(f"=== Converting: {request.title} ===")
        log(f"Images: {len(request.source_paths)}, output: {request.output_path}")

        try:
            pages, size = self._convert(request, work_dir, progress, log, cancel_event)

            elapsed = time.time() - start_time
            log(f"Finished {request.output_path.name} ({len(pages)} pages, {elapsed:.1f}s)")
            progress.complete()

            return VolumeResult(
                title=request.title,
                success=True,
                epub_path=request.output_path,
                message=f"Successfully converted {len(pages)} pages",
                page_count=len(pages),
                canonical_size=size,
            )

        except ConversionError as e:
            logger.error(f"{request.title}: {e.kind}: {e}")
            if on_log is not None:
                on_log(f"Failed ({e.kind}): {e}")
            return VolumeResult(
                title=request.title,
                success=False,
                epub_path=None,
                message=f"{e.kind}: {e}",
                error=e,
            )

        except Exception as e:
            logger.exception(f"{request.title}: pipeline failed")
            if on_log is not None:
                on_log(f"Failed: {e}")
            return VolumeResult(
                title=request.title,
                success=False,
                epub_path=None,
                message=f"Pipeline failed: {e}",
                error=e,
            )

        finally:
            if self.config.keep_work_dir:
                log(f"Work directory kept: {work_dir}")
            else:
                shutil.rmtree(work_dir, ignore_errors=True)

    def _convert(
        self,
        request: VolumeRequest,
        work_dir: Path,
        progress: VolumeProgress,
        log: LogSink,
        cancel_event: threading.Event | None,
    ) -> tuple[list[PageRecord], CanonicalSize]:
        """Run the stages in order; any ConversionError aborts the volume."""

        def checkpoint(stage: Stage) -> None:
            if cancel_event is not None and cancel_event.is_set():
                raise ConversionCancelled(f"Cancelled before: {stage.value}")
            log(f"[{list(Stage).index(stage) + 1}/{len(Stage)}] {stage.value}")
            progress.update(stage, 0.0)

        if not request.source_paths:
            raise NoImagesFound("No images to convert", request.output_path.parent)

        checkpoint(Stage.INTAKE)
        classified = self._classify_images(request, work_dir / "normalized", progress)

        checkpoint(Stage.SIZE)
        size = resolve_canonical_size(
            classified, log=log, default=self.config.default_canonical_size
        )

        checkpoint(Stage.SPLIT)
        items = self._split_spreads(classified, size, work_dir / "pages", progress, log)

        checkpoint(Stage.SEQUENCE)
        pages = PageSequencer(log=log).sequence(items)
        log(f"Final page count: {len(pages)}")
        progress.update(Stage.SEQUENCE, 1.0)

        checkpoint(Stage.PACKAGE)
        volume = Volume(
            title=request.title,
            page_records=pages,
            canonical_size=size,
            output_path=request.output_path,
            author=request.author,
            publisher=request.publisher,
            language=self.config.language,
        )
        EPUBBuilder(volume, log=log).build(work_dir / "book")
        progress.update(Stage.PACKAGE, 1.0)

        return pages, size

    def _classify_images(
        self,
        request: VolumeRequest,
        output_dir: Path,
        progress: VolumeProgress,
    ) -> list[ClassifiedImage]:
        """Re-encode every source image and classify it."""
        output_dir.mkdir(parents=True, exist_ok=True)
        normalizer = ImageNormalizer(
            supported_extensions=self.config.supported_extensions,
            quality=self.config.normalize_quality,
        )
        sources = [SourceImage(path) for path in request.source_paths]
        total = len(sources)

        def process(index: int, source: SourceImage) -> ClassifiedImage:
            image = normalizer.normalize(source, index, output_dir)
            classification = self.classifier.classify(
                image.file_name, image.pixel_width, image.pixel_height
            )
            return ClassifiedImage(image, classification)

        return map_in_order(
            process,
            sources,
            self.config.workers,
            on_done=lambda done: progress.update(Stage.INTAKE, done / total),
        )

    def _split_spreads(
        self,
        classified: list[ClassifiedImage],
        size: CanonicalSize,
        output_dir: Path,
        progress: VolumeProgress,
        log: LogSink,
    ) -> list[LogicalItem]:
        """Split spread candidates and fit singles to the canonical size."""
        output_dir.mkdir(parents=True, exist_ok=True)
        splitter = SpreadSplitter(output_dir, quality=self.config.page_quality)
        names = splitter.plan_names(classified)
        total = len(classified)

        for item in classified:
            if item.spread_hint is not None:
                log(f"{item.image.file_name}: spread (numbered pair {item.spread_hint})")
            elif item.is_wide_aspect:
                log(f"{item.image.file_name}: spread (wide image)")

        def process(index: int, item: ClassifiedImage) -> LogicalItem:
            return splitter.process(item, names[index], size)

        return map_in_order(
            process,
            classified,
            self.config.workers,
            on_done=lambda done: progress.update(Stage.SPLIT, done / total),
        )


class BatchPipeline:
    """Converts several volumes one after another.

    A failed volume is logged and skipped; later volumes still run.
    """

    def __init__(self, config: PipelineConfig | None = None) -> None:
        self.config = config or PipelineConfig()
        self.volume_pipeline = VolumePipeline(self.config)

    def run(
        self,
        requests: Sequence[VolumeRequest],
        on_progress: ProgressSink | None = None,
        on_log: LogSink | None = None,
        cancel_event: threading.Event | None = None,
    ) -> BatchResult:
        """Convert every request in order.

        Args:
            requests: Volumes to build
            on_progress: Batch-wide progress; volume i of N covers [i/N, (i+1)/N]
            on_log: Receives log lines from every volume
            cancel_event: Checked between stages of each volume

        Returns:
            BatchResult with per-volume results and success/failure counts
        """
        batch = BatchResult()
        total = len(requests)

        for index, request in enumerate(requests):
            if on_log is not None:
                on_log(f"Volume {index + 1}/{total}: {request.title}")

            result = self.volume_pipeline.run(
                request,
                on_progress=batch_slice(on_progress, index, total),
                on_log=on_log,
                cancel_event=cancel_event,
            )
            batch.results.append(result)

        logger.info(f"Batch complete: {batch.succeeded} succeeded, {batch.failed} failed")
        return batch
